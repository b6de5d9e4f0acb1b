"""Mouvements de stock partagés par les factures et les commandes.

Chaque mouvement est une seule instruction UPDATE dont l'arithmétique est
faite par la base: deux requêtes concurrentes sur le même produit ne
peuvent pas se faire perdre une mise à jour.
"""
from enum import Enum
from typing import Optional

from sqlalchemy import update, case, func
from sqlalchemy.orm import Session

from ..database import Product


class StockChange(str, Enum):
    INCREASE = "increase"  # facture d'achat
    DECREASE = "decrease"  # facture de vente, commande terminée


def _run_update(db: Session, product_id: int, values: dict) -> bool:
    values[Product.updated_at] = func.now()
    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    return (result.rowcount or 0) > 0


def increase_stock(
    db: Session,
    product_id: int,
    quantity: int,
    buying_price: float = 0,
    selling_price: Optional[float] = None,
    margin_percent: float = 0,
    min_quantity: int = 0,
    supplier_id: Optional[int] = None,
) -> bool:
    """Entrée en stock d'une ligne d'achat.

    Un produit dont la quantité vaut 0 (ou NULL) repart de la quantité
    achetée, sinon la quantité s'ajoute. Les prix (0 si absents) et le
    seuil minimum sont remplacés par ceux de la ligne; le fournisseur n'est
    remplacé que s'il est fourni. Retourne False si le produit n'existe pas.
    """
    qty = int(quantity or 0)
    initial = func.coalesce(Product.initial_quantity, 0)
    current = func.coalesce(Product.current_quantity, 0)
    new_initial = case((initial == 0, qty), else_=initial + qty)

    values = {
        Product.initial_quantity: new_initial,
        Product.current_quantity: case((current == 0, new_initial), else_=current + qty),
        Product.buying_price: buying_price or 0,
        Product.selling_price: selling_price or 0,
        Product.margin_percent: margin_percent or 0,
        Product.min_quantity: min_quantity or 0,
    }
    if supplier_id is not None:
        values[Product.supplier] = supplier_id
    return _run_update(db, product_id, values)


def decrease_stock(db: Session, product_id: int, quantity: int, selling_price: Optional[float] = None) -> bool:
    """Sortie de stock, bornée à zéro. Le prix de vente n'est mis à jour que s'il est fourni."""
    remaining = func.coalesce(Product.current_quantity, 0) - int(quantity or 0)
    values = {Product.current_quantity: case((remaining < 0, 0), else_=remaining)}
    if selling_price is not None:
        values[Product.selling_price] = selling_price
    return _run_update(db, product_id, values)


def apply_stock_change(db: Session, product_id: int, quantity: int, change: StockChange, **fields) -> bool:
    if change == StockChange.INCREASE:
        return increase_stock(db, product_id, quantity, **fields)
    return decrease_stock(db, product_id, quantity, fields.get("selling_price"))
