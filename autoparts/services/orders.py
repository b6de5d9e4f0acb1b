"""Cycle de vie des commandes passées sur la boutique."""
import logging

from sqlalchemy.orm import Session

from ..database import Order, OrderItem
from ..schemas import OrderCreate
from .errors import InvalidRequest, NotFound
from .stock import apply_stock_change, StockChange

logger = logging.getLogger(__name__)

COMPLETED = "completed"


def create_order(db: Session, payload: OrderCreate) -> Order:
    """Enregistrer une commande; le total est la somme des totaux de lignes fournis."""
    if not payload.client_name or not payload.items or not payload.address or not payload.wilaya:
        raise InvalidRequest("Champs requis manquants: client_name, items, address, wilaya")

    try:
        order = Order(
            client_name=payload.client_name,
            client_email=payload.client_email,
            client_phone=payload.client_phone,
            wilaya=payload.wilaya,
            address=payload.address,
            notes=payload.notes,
            payment_method=payload.payment_method or "cod",
            total=sum(item.total or 0 for item in payload.items),
        )
        db.add(order)
        db.flush()

        for item in payload.items:
            db.add(OrderItem(
                order_id=order.id,
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                price=item.price,
                total=item.total,
            ))
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info(f"Commande {order.id} créée pour {order.client_name} ({len(payload.items)} article(s))")
    return order


def update_order_status(db: Session, order_id: int, status: str) -> Order:
    """Changer le statut d'une commande.

    Le passage à "completed" retire du stock la quantité de chaque ligne.
    Aucun mouvement inverse n'est fait si la commande quitte ensuite ce statut.
    """
    if not status:
        raise InvalidRequest("Statut requis")

    order = db.get(Order, order_id)
    if order is None:
        raise NotFound("Commande introuvable")

    try:
        order.status = status
        if status == COMPLETED:
            for item in order.items:
                if item.product_id is None:
                    continue
                if not apply_stock_change(db, item.product_id, item.quantity, StockChange.DECREASE):
                    logger.warning(f"Commande {order_id}: produit {item.product_id} introuvable, stock non modifié")
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info(f"Commande {order_id} passée au statut '{status}'")
    return order


def delete_order(db: Session, order_id: int) -> None:
    order = db.get(Order, order_id)
    if order is None:
        raise NotFound("Commande introuvable")
    try:
        db.query(OrderItem).filter(OrderItem.order_id == order_id).delete(synchronize_session=False)
        db.delete(order)
        db.commit()
    except Exception:
        db.rollback()
        raise
