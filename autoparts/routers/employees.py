from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from datetime import date
from typing import List
import logging

from ..database import get_db, Employee, EmployeePayment
from ..schemas import EmployeeCreate, EmployeePaymentCreate, EmployeePaymentResponse
from ..auth import get_current_user, get_password_hash
from ..middleware import server_error

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/employees",
    tags=["employees"],
    dependencies=[Depends(get_current_user)]
)


def employee_to_dict(employee: Employee, last_payment: EmployeePayment = None) -> dict:
    # Le mot de passe n'est jamais renvoyé
    return {
        "id": employee.id,
        "name": employee.name,
        "phone": employee.phone,
        "role": employee.role,
        "salary": employee.salary,
        "hireDate": employee.hire_date,
        "status": employee.status,
        "address": employee.address,
        "username": employee.username,
        "hasAccount": bool(employee.has_account),
        "created_at": employee.created_at,
        "updated_at": employee.updated_at,
        "lastPayment": {
            "amount": last_payment.amount,
            "date": last_payment.date,
            "type": last_payment.type,
        } if last_payment else None,
    }


def _last_payment(db: Session, employee_id: int):
    return (
        db.query(EmployeePayment)
        .filter(EmployeePayment.employee_id == employee_id)
        .order_by(EmployeePayment.date.desc(), EmployeePayment.id.desc())
        .first()
    )


def _validate(data: EmployeeCreate):
    if not data.name.strip() or not data.role.strip() or not data.salary:
        raise HTTPException(status_code=400, detail="Nom, poste et salaire requis")


@router.get("/")
async def list_employees(db: Session = Depends(get_db)):
    """Lister les employés avec leur dernier paiement"""
    employees = db.query(Employee).order_by(Employee.created_at.desc(), Employee.id.desc()).all()
    return [employee_to_dict(e, _last_payment(db, e.id)) for e in employees]


@router.post("/", status_code=201)
async def create_employee(data: EmployeeCreate, db: Session = Depends(get_db)):
    _validate(data)
    try:
        employee = Employee(
            name=data.name,
            phone=data.phone,
            role=data.role,
            salary=data.salary,
            address=data.address,
            username=data.username or None,
            password=get_password_hash(data.password) if data.password else None,
            hire_date=date.today().isoformat(),
            has_account=data.has_account,
        )
        db.add(employee)
        db.commit()
        db.refresh(employee)
        logger.info(f"Employé créé: {employee.name}")
        return employee_to_dict(employee)
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la création de l'employé: {e}")
        raise server_error(e)


@router.put("/{employee_id}")
async def update_employee(employee_id: int, data: EmployeeCreate, db: Session = Depends(get_db)):
    """Remplacer la fiche d'un employé; le mot de passe n'est changé que s'il est fourni"""
    _validate(data)
    employee = db.get(Employee, employee_id)
    if not employee:
        raise HTTPException(status_code=404, detail="Employé introuvable")
    try:
        employee.name = data.name
        employee.phone = data.phone
        employee.role = data.role
        employee.salary = data.salary
        employee.address = data.address
        employee.username = data.username or None
        employee.has_account = data.has_account
        if data.password:
            employee.password = get_password_hash(data.password)
        db.commit()
        db.refresh(employee)
        return employee_to_dict(employee, _last_payment(db, employee_id))
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la mise à jour de l'employé {employee_id}: {e}")
        raise server_error(e)


@router.delete("/{employee_id}")
async def delete_employee(employee_id: int, db: Session = Depends(get_db)):
    """Supprimer un employé et l'historique de ses paiements"""
    employee = db.get(Employee, employee_id)
    if not employee:
        raise HTTPException(status_code=404, detail="Employé introuvable")
    try:
        db.delete(employee)  # paiements supprimés par cascade dans la même transaction
        db.commit()
        return {"success": True}
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la suppression de l'employé {employee_id}: {e}")
        raise server_error(e)


@router.post("/{employee_id}/pay", response_model=EmployeePaymentResponse, status_code=201)
async def pay_employee(employee_id: int, data: EmployeePaymentCreate, db: Session = Depends(get_db)):
    if not data.amount or not data.date or not data.type:
        raise HTTPException(status_code=400, detail="Montant, date et type requis")
    if not db.get(Employee, employee_id):
        raise HTTPException(status_code=404, detail="Employé introuvable")
    try:
        payment = EmployeePayment(employee_id=employee_id, amount=data.amount, date=data.date, type=data.type)
        db.add(payment)
        db.commit()
        db.refresh(payment)
        return payment
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors du paiement de l'employé {employee_id}: {e}")
        raise server_error(e)


@router.get("/{employee_id}/payments", response_model=List[EmployeePaymentResponse])
async def employee_payments(employee_id: int, db: Session = Depends(get_db)):
    return (
        db.query(EmployeePayment)
        .filter(EmployeePayment.employee_id == employee_id)
        .order_by(EmployeePayment.date.desc(), EmployeePayment.id.desc())
        .all()
    )
