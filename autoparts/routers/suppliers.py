from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func, distinct
from typing import List
import logging

from ..database import get_db, Supplier, Product, Invoice
from ..schemas import SupplierCreate, SupplierResponse
from ..auth import get_current_user
from ..middleware import server_error

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/suppliers",
    tags=["suppliers"],
    dependencies=[Depends(get_current_user)]
)

@router.get("/", response_model=List[SupplierResponse])
async def get_suppliers(db: Session = Depends(get_db)):
    """Récupérer la liste des fournisseurs, les plus récents d'abord"""
    return db.query(Supplier).order_by(Supplier.created_at.desc(), Supplier.id.desc()).all()

@router.get("/stats")
async def get_suppliers_stats(db: Session = Depends(get_db)):
    """Statistiques d'achat globales et par fournisseur"""
    purchase = Invoice.type == "purchase"
    total_suppliers = db.query(func.count(Supplier.id)).scalar() or 0
    total_orders = db.query(func.count(Invoice.id)).filter(purchase).scalar() or 0
    total_amount = db.query(func.coalesce(func.sum(Invoice.total), 0)).filter(purchase).scalar() or 0
    total_products = db.query(func.count(Product.id)).scalar() or 0

    # Sous-requêtes séparées pour éviter de multiplier les montants par le nombre de produits
    product_counts = (
        db.query(Product.supplier.label("supplier_id"), func.count(Product.id).label("cnt"))
        .group_by(Product.supplier)
        .subquery()
    )
    purchases = (
        db.query(
            Invoice.supplier_id.label("supplier_id"),
            func.count(distinct(Invoice.id)).label("orders"),
            func.coalesce(func.sum(Invoice.total), 0).label("spent"),
        )
        .filter(purchase)
        .group_by(Invoice.supplier_id)
        .subquery()
    )
    rows = (
        db.query(
            Supplier,
            func.coalesce(product_counts.c.cnt, 0),
            func.coalesce(purchases.c.orders, 0),
            func.coalesce(purchases.c.spent, 0),
        )
        .outerjoin(product_counts, product_counts.c.supplier_id == Supplier.id)
        .outerjoin(purchases, purchases.c.supplier_id == Supplier.id)
        .all()
    )
    supplier_stats = [
        {
            "id": s.id,
            "name": s.name,
            "phone": s.phone,
            "address": s.address,
            "productCount": int(product_count),
            "totalOrders": int(orders),
            "totalSpent": float(spent),
        }
        for s, product_count, orders, spent in rows
    ]
    supplier_stats.sort(key=lambda row: row["totalSpent"], reverse=True)

    return {
        "totalSuppliers": total_suppliers,
        "totalPurchaseOrders": total_orders,
        "totalPurchaseAmount": float(total_amount),
        "totalProducts": total_products,
        "supplierStats": supplier_stats,
    }

@router.get("/{supplier_id}", response_model=SupplierResponse)
async def get_supplier(supplier_id: int, db: Session = Depends(get_db)):
    supplier = db.get(Supplier, supplier_id)
    if not supplier:
        raise HTTPException(status_code=404, detail="Fournisseur introuvable")
    return supplier

@router.post("/", response_model=SupplierResponse, status_code=201)
async def create_supplier(supplier_data: SupplierCreate, db: Session = Depends(get_db)):
    """Créer un nouveau fournisseur"""
    if not supplier_data.name.strip():
        raise HTTPException(status_code=400, detail="Le nom du fournisseur est requis")
    try:
        supplier = Supplier(**supplier_data.model_dump())
        db.add(supplier)
        db.commit()
        db.refresh(supplier)
        return supplier
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la création du fournisseur: {e}")
        raise server_error(e)

@router.put("/{supplier_id}", response_model=SupplierResponse)
async def update_supplier(supplier_id: int, supplier_data: SupplierCreate, db: Session = Depends(get_db)):
    supplier = db.get(Supplier, supplier_id)
    if not supplier:
        raise HTTPException(status_code=404, detail="Fournisseur introuvable")
    if not supplier_data.name.strip():
        raise HTTPException(status_code=400, detail="Le nom du fournisseur est requis")
    try:
        for field, value in supplier_data.model_dump().items():
            setattr(supplier, field, value)
        db.commit()
        db.refresh(supplier)
        return supplier
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la mise à jour du fournisseur {supplier_id}: {e}")
        raise server_error(e)

@router.delete("/{supplier_id}")
async def delete_supplier(supplier_id: int, db: Session = Depends(get_db)):
    supplier = db.get(Supplier, supplier_id)
    if not supplier:
        raise HTTPException(status_code=404, detail="Fournisseur introuvable")
    try:
        db.delete(supplier)
        db.commit()
        return {"success": True}
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Fournisseur référencé par des factures: suppression impossible")
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la suppression du fournisseur {supplier_id}: {e}")
        raise server_error(e)
