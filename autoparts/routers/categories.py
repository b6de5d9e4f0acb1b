from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional
import logging

from ..database import get_db, Category, CategoryProduct, Product
from ..auth import get_current_user
from ..middleware import server_error
from ..uploads import save_upload, remove_upload
from .products import product_to_dict

logger = logging.getLogger(__name__)

# Lecture publique (boutique), écriture réservée au back-office
router = APIRouter(prefix="/api/categories", tags=["categories"])
category_products_router = APIRouter(prefix="/api/category-products", tags=["categories"])
protected = [Depends(get_current_user)]


def category_to_dict(category: Category, products_count: int = None) -> dict:
    data = {
        "id": category.id,
        "nameFr": category.name_fr,
        "nameAr": category.name_ar,
        "image": category.image,
        "created_at": category.created_at,
        "updated_at": category.updated_at,
    }
    if products_count is not None:
        data["productsCount"] = products_count
    return data


def category_product_to_dict(item: CategoryProduct) -> dict:
    return {
        "id": item.id,
        "category_id": item.category_id,
        "product_id": item.product_id,
        "name": item.name,
        "nameFr": item.name_fr,
        "nameAr": item.name_ar,
        "description": item.description,
        "descriptionFr": item.description_fr,
        "descriptionAr": item.description_ar,
        "selling_price": item.selling_price,
        "quality": item.quality,
        "image": item.image,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
    }


@router.get("/")
async def list_categories(db: Session = Depends(get_db)):
    """Catégories de la boutique avec leur nombre de produits"""
    rows = (
        db.query(Category, func.count(CategoryProduct.id))
        .outerjoin(CategoryProduct, CategoryProduct.category_id == Category.id)
        .group_by(Category.id)
        .order_by(Category.created_at.desc(), Category.id.desc())
        .all()
    )
    return [category_to_dict(category, count) for category, count in rows]


@router.get("/{category_id}")
async def get_category(category_id: int, db: Session = Depends(get_db)):
    category = db.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Catégorie introuvable")
    products = (
        db.query(Product)
        .filter(Product.category_id == category_id)
        .order_by(Product.created_at.desc(), Product.id.desc())
        .all()
    )
    data = category_to_dict(category)
    data["products"] = [product_to_dict(p) for p in products]
    return data


@router.post("/", status_code=201, dependencies=protected)
async def create_category(
    name_fr: Optional[str] = Form(None, alias="nameFr"),
    name_ar: Optional[str] = Form(None, alias="nameAr"),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    if not name_fr:
        raise HTTPException(status_code=400, detail="Le nom (nameFr) est requis")
    if db.query(Category).filter(Category.name_fr == name_fr).first():
        raise HTTPException(status_code=400, detail="Cette catégorie existe déjà")

    image_path = save_upload(image, "categories") if image and image.filename else None
    try:
        category = Category(name_fr=name_fr, name_ar=name_ar, image=image_path)
        db.add(category)
        db.commit()
        db.refresh(category)
        return category_to_dict(category)
    except Exception as e:
        db.rollback()
        remove_upload(image_path)
        logger.exception(f"Erreur lors de la création de la catégorie: {e}")
        raise server_error(e)


@router.put("/{category_id}", dependencies=protected)
async def update_category(
    category_id: int,
    name_fr: Optional[str] = Form(None, alias="nameFr"),
    name_ar: Optional[str] = Form(None, alias="nameAr"),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    category = db.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Catégorie introuvable")

    try:
        if image and image.filename:
            old_image = category.image
            category.image = save_upload(image, "categories")
            remove_upload(old_image)
        if name_fr and name_fr != category.name_fr:
            category.name_fr = name_fr
            # Libellé texte recopié sur les produits liés
            db.query(Product).filter(Product.category_id == category_id).update(
                {Product.category: name_fr}, synchronize_session=False
            )
        if name_ar:
            category.name_ar = name_ar
        db.commit()
        db.refresh(category)
        return category_to_dict(category)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la mise à jour de la catégorie {category_id}: {e}")
        raise server_error(e)


@router.delete("/{category_id}", dependencies=protected)
async def delete_category(category_id: int, db: Session = Depends(get_db)):
    """Supprimer une catégorie; les produits liés sont détachés"""
    category = db.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Catégorie introuvable")

    try:
        db.query(Product).filter(Product.category_id == category_id).update(
            {Product.category_id: None, Product.category: None}, synchronize_session=False
        )
        image_paths = [category.image] + [cp.image for cp in category.category_products]
        db.delete(category)
        db.commit()
        for path in image_paths:
            remove_upload(path)
        return {"success": True}
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la suppression de la catégorie {category_id}: {e}")
        raise server_error(e)


@router.get("/{category_id}/products")
async def list_category_products(category_id: int, db: Session = Depends(get_db)):
    items = (
        db.query(CategoryProduct)
        .filter(CategoryProduct.category_id == category_id)
        .order_by(CategoryProduct.created_at.desc(), CategoryProduct.id.desc())
        .all()
    )
    return [category_product_to_dict(item) for item in items]


@category_products_router.get("/{item_id}")
async def get_category_product(item_id: int, db: Session = Depends(get_db)):
    item = db.get(CategoryProduct, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Produit introuvable")
    return category_product_to_dict(item)


@category_products_router.post("/", status_code=201, dependencies=protected)
async def create_category_product(
    category_id: Optional[int] = Form(None, alias="categoryId"),
    product_id: Optional[int] = Form(None, alias="productId"),
    name: Optional[str] = Form(None),
    name_fr: Optional[str] = Form(None, alias="nameFr"),
    name_ar: Optional[str] = Form(None, alias="nameAr"),
    description: Optional[str] = Form(None),
    description_fr: Optional[str] = Form(None, alias="descriptionFr"),
    description_ar: Optional[str] = Form(None, alias="descriptionAr"),
    selling_price: Optional[float] = Form(None, alias="sellingPrice"),
    quality: Optional[int] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    """Ajouter un produit à la vitrine d'une catégorie"""
    if not category_id:
        raise HTTPException(status_code=400, detail="categoryId est requis")
    if not db.get(Category, category_id):
        raise HTTPException(status_code=404, detail="Catégorie introuvable")

    image_path = save_upload(image, "category-products") if image and image.filename else None
    try:
        item = CategoryProduct(
            category_id=category_id,
            product_id=product_id,
            name=name or "",
            name_fr=name_fr or "",
            name_ar=name_ar or "",
            description=description or "",
            description_fr=description_fr or "",
            description_ar=description_ar or "",
            selling_price=selling_price or 0,
            quality=quality or 5,
            image=image_path,
        )
        db.add(item)
        db.commit()
        db.refresh(item)
        return category_product_to_dict(item)
    except Exception as e:
        db.rollback()
        remove_upload(image_path)
        logger.exception(f"Erreur lors de l'ajout du produit de catégorie: {e}")
        raise server_error(e)


@category_products_router.put("/{item_id}", dependencies=protected)
async def update_category_product(
    item_id: int,
    name: Optional[str] = Form(None),
    name_fr: Optional[str] = Form(None, alias="nameFr"),
    name_ar: Optional[str] = Form(None, alias="nameAr"),
    description: Optional[str] = Form(None),
    description_fr: Optional[str] = Form(None, alias="descriptionFr"),
    description_ar: Optional[str] = Form(None, alias="descriptionAr"),
    selling_price: Optional[float] = Form(None, alias="sellingPrice"),
    quality: Optional[int] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    item = db.get(CategoryProduct, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Produit introuvable")

    updates = {
        "name": name,
        "name_fr": name_fr,
        "name_ar": name_ar,
        "description": description,
        "description_fr": description_fr,
        "description_ar": description_ar,
        "selling_price": selling_price,
        "quality": quality,
    }
    try:
        for field, value in updates.items():
            if value not in (None, ""):
                setattr(item, field, value)
        if image and image.filename:
            old_image = item.image
            item.image = save_upload(image, "category-products")
            remove_upload(old_image)
        db.commit()
        db.refresh(item)
        return category_product_to_dict(item)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la mise à jour du produit de catégorie {item_id}: {e}")
        raise server_error(e)


@category_products_router.delete("/{item_id}", dependencies=protected)
async def delete_category_product(item_id: int, db: Session = Depends(get_db)):
    item = db.get(CategoryProduct, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Produit introuvable")
    image_path = item.image
    db.delete(item)
    db.commit()
    remove_upload(image_path)
    return {"success": True}
