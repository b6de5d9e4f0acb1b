from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy import or_, and_, func, cast, String
from typing import Optional
import logging

from ..database import get_db, Invoice, InvoiceItem, User, Employee
from ..schemas import InvoiceCreate, InvoicePaymentUpdate, AdminCreator, EmployeeCreator, creator_from_wire
from ..auth import get_current_user, AuthUser
from ..middleware import server_error
from ..services.errors import ServiceError
from ..services.invoices import create_invoice as create_invoice_record, add_payment, delete_invoice as delete_invoice_record

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/invoices",
    tags=["invoices"],
    dependencies=[Depends(get_current_user)]
)


def invoice_to_dict(invoice: Invoice) -> dict:
    return {
        "id": invoice.id,
        "type": invoice.type,
        "supplierId": invoice.supplier_id,
        "clientId": invoice.client_id,
        "client_name": invoice.client_name,
        "total": invoice.total,
        "amount_paid": invoice.amount_paid,
        "status": invoice.status,
        "created_at": invoice.created_at,
        "createdBy": invoice.created_by,
        "createdByType": invoice.created_by_type,
    }


def invoice_item_to_dict(item: InvoiceItem) -> dict:
    return {
        "id": item.id,
        "invoice_id": item.invoice_id,
        "product_id": item.product_id,
        "product_name": item.product_name,
        "barcode": item.barcode,
        "purchase_price": item.purchase_price,
        "margin_percent": item.margin_percent,
        "selling_price": item.selling_price,
        "quantity": item.quantity,
        "min_quantity": item.min_quantity,
        "total": item.total,
    }


def _creator_for(payload: InvoiceCreate, current_user: AuthUser):
    creator = creator_from_wire(payload.created_by, payload.created_by_type)
    if creator is None and getattr(current_user, "user_id", None) is not None:
        if getattr(current_user, "role", None) == "admin":
            creator = AdminCreator(id=current_user.user_id)
        else:
            creator = EmployeeCreator(id=current_user.user_id)
    return creator


@router.get("/")
async def list_invoices(
    type: Optional[str] = Query(None, description="purchase ou sale"),
    search: Optional[str] = Query(None, description="Recherche par numéro ou nom du client"),
    status: Optional[str] = Query(None, description="'debts' pour les factures non soldées"),
    createdByType: Optional[str] = Query(None),
    createdBy: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    """Lister les factures avec le nom de leur auteur"""
    query = (
        db.query(Invoice, func.coalesce(User.username, Employee.username, User.email))
        .outerjoin(User, and_(Invoice.created_by_type == "admin", Invoice.created_by == User.id))
        .outerjoin(Employee, and_(Invoice.created_by_type == "employee", Invoice.created_by == Employee.id))
    )
    if type:
        query = query.filter(Invoice.type == type)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(cast(Invoice.id, String).like(term), Invoice.client_name.like(term)))
    if status == "debts":
        query = query.filter(Invoice.amount_paid < Invoice.total)
    if createdByType and createdBy is not None:
        query = query.filter(Invoice.created_by_type == createdByType, Invoice.created_by == createdBy)

    rows = query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()
    result = []
    for invoice, display in rows:
        data = invoice_to_dict(invoice)
        data["created_by_display"] = display
        result.append(data)
    return result


@router.get("/{invoice_id}")
async def get_invoice(invoice_id: int, db: Session = Depends(get_db)):
    invoice = db.get(Invoice, invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Facture introuvable")
    data = invoice_to_dict(invoice)
    data["clientName"] = invoice.client.name if invoice.client else None
    data["items"] = [invoice_item_to_dict(item) for item in invoice.items]
    return data


@router.post("/", status_code=201)
async def create_invoice(
    payload: InvoiceCreate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
):
    """Créer une facture d'achat ou de vente et mettre à jour le stock"""
    try:
        invoice, warnings = create_invoice_record(db, payload, _creator_for(payload, current_user))
    except ServiceError:
        raise
    except Exception as e:
        logger.exception(f"Erreur lors de la création de la facture: {e}")
        raise server_error(e)

    data = invoice_to_dict(invoice)
    data["warnings"] = warnings
    return data


@router.put("/{invoice_id}/pay")
async def pay_invoice(invoice_id: int, data: InvoicePaymentUpdate, db: Session = Depends(get_db)):
    """Ajouter un versement au montant déjà payé"""
    try:
        invoice = add_payment(db, invoice_id, data.amount_paid)
    except ServiceError:
        raise
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors du paiement de la facture {invoice_id}: {e}")
        raise server_error(e)
    return invoice_to_dict(invoice)


@router.delete("/{invoice_id}")
async def delete_invoice(invoice_id: int, db: Session = Depends(get_db)):
    try:
        delete_invoice_record(db, invoice_id)
    except ServiceError:
        raise
    except Exception as e:
        logger.exception(f"Erreur lors de la suppression de la facture {invoice_id}: {e}")
        raise server_error(e)
    return {"message": "Facture supprimée"}
