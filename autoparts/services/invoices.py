"""Création des factures d'achat et de vente avec leurs mouvements de stock."""
from typing import Any, Dict, List, Optional, Tuple
import logging
import uuid

from sqlalchemy import update, func
from sqlalchemy.orm import Session

from ..database import Invoice, InvoiceItem, Customer
from ..schemas import InvoiceCreate, InvoiceLine, Creator
from .errors import InvalidRequest, InvalidInvoiceItem, NotFound
from .stock import apply_stock_change, StockChange

logger = logging.getLogger(__name__)

INVOICE_TYPES = ("purchase", "sale")

# Noms acceptés pour chaque champ d'une ligne, par ordre de priorité
ITEM_ALIASES = {
    "product_id": ("product_id", "productId", "id"),
    "product_name": ("product_name", "productName", "name"),
    "barcode": ("barcode",),
    "buying_price": ("buying_price", "purchase_price", "purchasePrice", "buyingPrice"),
    "margin_percent": ("margin_percent", "marginPercent"),
    "selling_price": ("selling_price", "sellingPrice"),
    "quantity": ("quantity",),
    "min_quantity": ("min_quantity", "minQuantity"),
    "total": ("total",),
}


def _pick(raw: Dict[str, Any], keys) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _whole(value: Any) -> int:
    number = float(value or 0)
    if not number.is_integer():
        raise ValueError(f"{value} n'est pas un entier")
    return int(number)


def normalize_item(raw: Dict[str, Any], index: int = 0) -> InvoiceLine:
    """Ramener une ligne reçue du frontend à la forme canonique InvoiceLine.

    Lève InvalidInvoiceItem si l'identifiant ou le nom du produit manque,
    si l'identifiant n'est pas strictement positif ou si une quantité n'est
    pas entière.
    """
    values = {field: _pick(raw, keys) for field, keys in ITEM_ALIASES.items()}

    if values["product_id"] is None:
        raise InvalidInvoiceItem(index, "identifiant du produit manquant")
    if values["product_name"] is None:
        raise InvalidInvoiceItem(index, "nom du produit manquant")

    try:
        line = InvoiceLine(
            product_id=_whole(values["product_id"]),
            product_name=str(values["product_name"]),
            barcode=str(values["barcode"]) if values["barcode"] is not None else None,
            buying_price=float(values["buying_price"] or 0),
            margin_percent=float(values["margin_percent"] or 0),
            selling_price=float(values["selling_price"]) if values["selling_price"] is not None else None,
            quantity=_whole(values["quantity"]),
            min_quantity=_whole(values["min_quantity"]),
            total=float(values["total"] or 0),
        )
    except (TypeError, ValueError):
        raise InvalidInvoiceItem(index, "valeur numérique invalide")

    if line.product_id <= 0:
        raise InvalidInvoiceItem(index, "identifiant du produit invalide")
    return line


def validate_invoice(payload: InvoiceCreate) -> None:
    if not payload.type or payload.total is None or not payload.items:
        raise InvalidRequest("Champs requis manquants: type, total, items")
    if payload.type not in INVOICE_TYPES:
        raise InvalidRequest("Type de facture invalide (purchase ou sale)")


def create_invoice(db: Session, payload: InvoiceCreate, creator: Optional[Creator] = None) -> Tuple[Invoice, List[str]]:
    """Enregistrer une facture, ses lignes et les mouvements de stock en une seule transaction.

    Les lignes dont le produit n'existe plus sont enregistrées sans toucher
    au stock; elles sont signalées dans la liste d'avertissements retournée.
    Toute erreur annule l'ensemble de la facture.
    """
    validate_invoice(payload)
    warnings: List[str] = []
    change = StockChange.INCREASE if payload.type == "purchase" else StockChange.DECREASE

    try:
        invoice = Invoice(
            type=payload.type,
            supplier_id=payload.supplier_id,
            client_id=payload.client_id,
            client_name=payload.client_name,
            total=payload.total,
            amount_paid=payload.amount_paid or 0,
            created_by=creator.id if creator else None,
            created_by_type=creator.kind if creator else "admin",
        )
        db.add(invoice)
        db.flush()

        lines_total = 0.0
        for index, raw in enumerate(payload.items):
            line = normalize_item(raw, index)
            lines_total += line.total
            db.add(InvoiceItem(
                invoice_id=invoice.id,
                product_id=line.product_id,
                product_name=line.product_name,
                barcode=line.barcode,
                purchase_price=line.buying_price,
                margin_percent=line.margin_percent,
                selling_price=line.selling_price or 0,
                quantity=line.quantity,
                min_quantity=line.min_quantity,
                total=line.total,
            ))

            if change == StockChange.INCREASE:
                found = apply_stock_change(
                    db, line.product_id, line.quantity, change,
                    buying_price=line.buying_price,
                    selling_price=line.selling_price,
                    margin_percent=line.margin_percent,
                    min_quantity=line.min_quantity,
                    supplier_id=payload.supplier_id,
                )
            else:
                found = apply_stock_change(
                    db, line.product_id, line.quantity, change,
                    selling_price=line.selling_price,
                )
            if not found:
                message = f"Produit {line.product_id} ({line.product_name}) introuvable: stock non modifié"
                logger.warning(f"Facture {invoice.id}: {message}")
                warnings.append(message)

        if abs(lines_total - float(payload.total)) > 0.01:
            logger.warning(
                f"Facture {invoice.id}: total déclaré {payload.total} différent de la somme des lignes {lines_total}"
            )

        if payload.type == "sale" and not payload.client_id:
            # SQLite peut redonner l'id d'une facture supprimée; le nom du client doit rester unique
            placeholder = f"client_{invoice.id}"
            if db.query(Customer.id).filter(Customer.name == placeholder).first() is not None:
                placeholder = f"{placeholder}_{uuid.uuid4().hex[:8]}"
            customer = Customer(name=placeholder)
            db.add(customer)
            db.flush()
            invoice.client_id = customer.id

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(invoice)
    logger.info(f"Facture {invoice.id} ({invoice.type}) créée avec {len(payload.items)} ligne(s)")
    return invoice, warnings


def add_payment(db: Session, invoice_id: int, amount: float) -> Invoice:
    """Ajouter un versement au montant déjà payé (le statut n'est pas recalculé)."""
    stmt = (
        update(Invoice)
        .where(Invoice.id == invoice_id)
        .values({Invoice.amount_paid: func.coalesce(Invoice.amount_paid, 0) + (amount or 0)})
        .execution_options(synchronize_session=False)
    )
    if (db.execute(stmt).rowcount or 0) == 0:
        db.rollback()
        raise NotFound("Facture introuvable")
    db.commit()
    return db.get(Invoice, invoice_id)


def delete_invoice(db: Session, invoice_id: int) -> None:
    invoice = db.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFound("Facture introuvable")
    try:
        db.query(InvoiceItem).filter(InvoiceItem.invoice_id == invoice_id).delete(synchronize_session=False)
        db.delete(invoice)
        db.commit()
    except Exception:
        db.rollback()
        raise
