from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from ..database import get_db, Order, OrderItem
from ..schemas import OrderCreate, OrderStatusUpdate
from ..auth import get_current_user
from ..middleware import server_error
from ..services.errors import ServiceError
from ..services import orders as order_service

logger = logging.getLogger(__name__)

# La création est publique (boutique), le reste est réservé au back-office
router = APIRouter(prefix="/api/orders", tags=["orders"])
protected = [Depends(get_current_user)]


def order_item_to_dict(item: OrderItem) -> dict:
    return {
        "id": item.id,
        "order_id": item.order_id,
        "product_id": item.product_id,
        "product_name": item.product_name,
        "quantity": item.quantity,
        "price": item.price,
        "total": item.total,
    }


def order_to_dict(order: Order) -> dict:
    return {
        "id": order.id,
        "client_name": order.client_name,
        "client_email": order.client_email,
        "client_phone": order.client_phone,
        "wilaya": order.wilaya,
        "address": order.address,
        "notes": order.notes,
        "payment_method": order.payment_method,
        "total": order.total,
        "status": order.status,
        "payment_status": order.payment_status,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
        "items": [order_item_to_dict(item) for item in order.items],
    }


@router.get("/", dependencies=protected)
async def list_orders(db: Session = Depends(get_db)):
    orders = db.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).all()
    return [order_to_dict(o) for o in orders]


@router.get("/{order_id}", dependencies=protected)
async def get_order(order_id: int, db: Session = Depends(get_db)):
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Commande introuvable")
    return order_to_dict(order)


@router.post("/", status_code=201)
async def create_order(payload: OrderCreate, db: Session = Depends(get_db)):
    """Commande passée depuis la boutique"""
    try:
        order = order_service.create_order(db, payload)
    except ServiceError:
        raise
    except Exception as e:
        logger.exception(f"Erreur lors de la création de la commande: {e}")
        raise server_error(e)
    return order_to_dict(order)


@router.put("/{order_id}/status", dependencies=protected)
async def update_order_status(order_id: int, data: OrderStatusUpdate, db: Session = Depends(get_db)):
    try:
        order = order_service.update_order_status(db, order_id, data.status)
    except ServiceError:
        raise
    except Exception as e:
        logger.exception(f"Erreur lors du changement de statut de la commande {order_id}: {e}")
        raise server_error(e)
    return order_to_dict(order)


@router.delete("/{order_id}", dependencies=protected)
async def delete_order(order_id: int, db: Session = Depends(get_db)):
    try:
        order_service.delete_order(db, order_id)
    except ServiceError:
        raise
    except Exception as e:
        logger.exception(f"Erreur lors de la suppression de la commande {order_id}: {e}")
        raise server_error(e)
    return {"success": True}
