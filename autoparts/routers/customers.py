from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List
import logging

from ..database import get_db, Customer
from ..schemas import CustomerCreate, CustomerResponse
from ..auth import get_current_user
from ..middleware import server_error

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/customers",
    tags=["customers"],
    dependencies=[Depends(get_current_user)]
)


def _check_unique_name(db: Session, name: str, exclude_id: int = None):
    query = db.query(Customer).filter(Customer.name == name)
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=400, detail="Un client avec ce nom existe déjà")


@router.get("/", response_model=List[CustomerResponse])
async def list_customers(db: Session = Depends(get_db)):
    """Lister les clients, plus récents d'abord"""
    return db.query(Customer).order_by(Customer.created_at.desc(), Customer.id.desc()).all()


@router.post("/", response_model=CustomerResponse, status_code=201)
async def create_customer(data: CustomerCreate, db: Session = Depends(get_db)):
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Le nom du client est requis")
    _check_unique_name(db, name)
    try:
        customer = Customer(name=name, phone=data.phone, address=data.address)
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la création du client: {e}")
        raise server_error(e)


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(customer_id: int, data: CustomerCreate, db: Session = Depends(get_db)):
    customer = db.get(Customer, customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Client non trouvé")
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Le nom du client est requis")
    _check_unique_name(db, name, exclude_id=customer_id)
    try:
        customer.name = name
        customer.phone = data.phone
        customer.address = data.address
        db.commit()
        db.refresh(customer)
        return customer
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la mise à jour du client {customer_id}: {e}")
        raise server_error(e)


@router.delete("/{customer_id}")
async def delete_customer(customer_id: int, db: Session = Depends(get_db)):
    customer = db.get(Customer, customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Client non trouvé")
    try:
        db.delete(customer)
        db.commit()
        return {"success": True}
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Client référencé par des factures: suppression impossible")
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la suppression du client {customer_id}: {e}")
        raise server_error(e)
