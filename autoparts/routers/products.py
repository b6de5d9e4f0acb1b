from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy import or_
from typing import Optional
import logging

from ..database import get_db, Product, Category, CategoryProduct
from ..schemas import ProductCreate, ProductUpdate
from ..auth import get_current_user
from ..middleware import server_error

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/products",
    tags=["products"],
    dependencies=[Depends(get_current_user)]
)

PRODUCT_FIELDS = (
    "id", "name", "barcode", "brand", "category", "category_id",
    "buying_price", "selling_price", "margin_percent",
    "initial_quantity", "current_quantity", "min_quantity",
    "supplier", "created_at", "updated_at",
)


def product_to_dict(product: Product) -> dict:
    data = {field: getattr(product, field) for field in PRODUCT_FIELDS}
    data["supplierName"] = product.supplier_ref.name if product.supplier_ref else None
    data["categoryName"] = product.category_ref.name_fr if product.category_ref else product.category
    return data


def _resolve_category(db: Session, category_id: Optional[int], category_name: Optional[str]):
    """Retourner (category_id, libellé) à partir de l'identifiant ou du nom fourni."""
    if category_id is not None:
        category = db.get(Category, category_id)
        if not category:
            raise HTTPException(status_code=400, detail="Catégorie introuvable")
        return category.id, category.name_fr
    if category_name:
        category = db.query(Category).filter(Category.name_fr == category_name.strip()).first()
        if category:
            return category.id, category.name_fr
        return None, category_name.strip()
    return None, None


def _check_barcode(db: Session, barcode: str, exclude_id: Optional[int] = None):
    query = db.query(Product).filter(Product.barcode == barcode)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=400, detail="Un produit avec ce code-barres existe déjà")


@router.get("/")
async def list_products(
    search: Optional[str] = Query(None, description="Recherche par nom ou code-barres"),
    forCategory: Optional[int] = Query(None, description="Exclure les produits déjà liés à cette catégorie"),
    db: Session = Depends(get_db),
):
    """Lister les produits avec le nom de leur fournisseur"""
    query = db.query(Product)
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.like(term), Product.barcode.like(term)))
    if forCategory is not None:
        linked = (
            db.query(CategoryProduct.product_id)
            .filter(CategoryProduct.category_id == forCategory, CategoryProduct.product_id.isnot(None))
        )
        query = query.filter(Product.id.notin_(linked))
    products = query.order_by(Product.created_at.desc(), Product.id.desc()).all()
    return [product_to_dict(p) for p in products]


@router.get("/low-stock")
async def low_stock_products(db: Session = Depends(get_db)):
    """Produits dont la quantité courante a atteint le seuil minimum"""
    products = (
        db.query(Product)
        .filter(Product.current_quantity <= Product.min_quantity)
        .order_by(Product.current_quantity)
        .all()
    )
    return [product_to_dict(p) for p in products]


@router.get("/{product_id}")
async def get_product(product_id: int, db: Session = Depends(get_db)):
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Produit introuvable")
    return product_to_dict(product)


@router.post("/", status_code=201)
async def create_product(data: ProductCreate, db: Session = Depends(get_db)):
    """Créer un produit; la catégorie est donnée par identifiant ou par nom"""
    if data.category_id is None and not data.category:
        raise HTTPException(status_code=400, detail="Catégorie requise")

    _check_barcode(db, data.barcode)
    category_id, label = _resolve_category(db, data.category_id, data.category)

    try:
        fields = data.model_dump(exclude={"category", "category_id"})
        product = Product(**fields, category_id=category_id, category=label)
        db.add(product)
        db.commit()
        db.refresh(product)
        logger.info(f"Produit créé: {product.name} ({product.barcode})")
        return product_to_dict(product)
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la création du produit: {e}")
        raise server_error(e)


@router.put("/{product_id}")
async def update_product(product_id: int, data: ProductUpdate, db: Session = Depends(get_db)):
    """Mise à jour partielle d'un produit"""
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Produit introuvable")

    fields = data.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="Aucun champ à mettre à jour")

    if fields.get("barcode"):
        _check_barcode(db, fields["barcode"], exclude_id=product_id)

    if "category_id" in fields or "category" in fields:
        product.category_id, product.category = _resolve_category(
            db, fields.pop("category_id", None), fields.pop("category", None)
        )

    try:
        for field, value in fields.items():
            setattr(product, field, value)
        db.commit()
        db.refresh(product)
        return product_to_dict(product)
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la mise à jour du produit {product_id}: {e}")
        raise server_error(e)


@router.delete("/{product_id}")
async def delete_product(product_id: int, db: Session = Depends(get_db)):
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Produit introuvable")
    try:
        db.delete(product)
        db.commit()
        return {"success": True}
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la suppression du produit {product_id}: {e}")
        raise server_error(e)
