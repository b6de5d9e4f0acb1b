from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from sqlalchemy.orm import Session
from sqlalchemy import or_, func
from datetime import datetime, timezone
from typing import Optional
import logging

from ..database import get_db, SpecialOffer, SpecialOfferProduct, Product
from ..schemas import SpecialOfferCreate
from ..auth import get_current_user
from ..middleware import server_error
from ..uploads import save_upload, remove_upload
from .products import product_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/special-offers", tags=["special-offers"])
protected = [Depends(get_current_user)]


def offer_to_dict(offer: SpecialOffer) -> dict:
    return {
        "id": offer.id,
        "name": offer.name,
        "nameFr": offer.name_fr,
        "nameAr": offer.name_ar,
        "description": offer.description,
        "descriptionFr": offer.description_fr,
        "descriptionAr": offer.description_ar,
        "end_time": offer.end_time,
        "is_active": bool(offer.is_active),
        "products_count": offer.products_count or 0,
        "quality": offer.quality,
        "created_at": offer.created_at,
        "updated_at": offer.updated_at,
    }


def offer_product_to_dict(entry: SpecialOfferProduct) -> dict:
    """Produit complet enrichi des champs propres à l'offre"""
    data = product_to_dict(entry.product)
    data.update({
        "offer_price": entry.offer_price,
        "descriptionFr": entry.description_fr,
        "descriptionAr": entry.description_ar,
        "quality": entry.quality,
        "image": entry.image,
        "added_date": entry.created_at,
    })
    return data


def _now_iso() -> str:
    # Même format que les dates end_time envoyées par le frontend (ISO 8601, UTC)
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def _get_offer(db: Session, offer_id: int) -> SpecialOffer:
    offer = db.get(SpecialOffer, offer_id)
    if not offer:
        raise HTTPException(status_code=404, detail="Offre introuvable")
    return offer


def _sync_products_count(db: Session, offer: SpecialOffer) -> None:
    db.flush()
    offer.products_count = (
        db.query(func.count(SpecialOfferProduct.id))
        .filter(SpecialOfferProduct.offer_id == offer.id)
        .scalar() or 0
    )


@router.get("/")
async def list_offers(db: Session = Depends(get_db)):
    offers = db.query(SpecialOffer).order_by(SpecialOffer.created_at.desc(), SpecialOffer.id.desc()).all()
    return [offer_to_dict(o) for o in offers]


@router.get("/active")
async def list_active_offers(db: Session = Depends(get_db)):
    """Offres actives et non expirées"""
    offers = (
        db.query(SpecialOffer)
        .filter(
            SpecialOffer.is_active.is_(True),
            or_(SpecialOffer.end_time.is_(None), SpecialOffer.end_time > _now_iso()),
        )
        .order_by(SpecialOffer.created_at.desc(), SpecialOffer.id.desc())
        .all()
    )
    return [offer_to_dict(o) for o in offers]


@router.post("/", status_code=201, dependencies=protected)
async def create_offer(data: SpecialOfferCreate, db: Session = Depends(get_db)):
    if not data.name_fr or not data.end_time:
        raise HTTPException(status_code=400, detail="Nom français et date de fin requis")
    try:
        offer = SpecialOffer(
            name=data.name_fr,
            name_fr=data.name_fr,
            name_ar=data.name_ar,
            description=data.description_fr,
            description_fr=data.description_fr,
            description_ar=data.description_ar,
            end_time=data.end_time,
            is_active=True if data.is_active is None else data.is_active,
        )
        db.add(offer)
        db.commit()
        db.refresh(offer)
        return offer_to_dict(offer)
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la création de l'offre: {e}")
        raise server_error(e)


@router.put("/{offer_id}", dependencies=protected)
async def update_offer(offer_id: int, data: SpecialOfferCreate, db: Session = Depends(get_db)):
    offer = _get_offer(db, offer_id)
    fields = data.model_dump(exclude_unset=True)
    try:
        for field, value in fields.items():
            setattr(offer, field, value)
        if "name_fr" in fields:
            offer.name = fields["name_fr"]
        if "description_fr" in fields:
            offer.description = fields["description_fr"]
        db.commit()
        db.refresh(offer)
        return offer_to_dict(offer)
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la mise à jour de l'offre {offer_id}: {e}")
        raise server_error(e)


@router.patch("/{offer_id}/toggle-status", dependencies=protected)
async def toggle_offer(offer_id: int, db: Session = Depends(get_db)):
    offer = _get_offer(db, offer_id)
    offer.is_active = not bool(offer.is_active)
    db.commit()
    db.refresh(offer)
    return offer_to_dict(offer)


@router.delete("/{offer_id}", dependencies=protected)
async def delete_offer(offer_id: int, db: Session = Depends(get_db)):
    offer = _get_offer(db, offer_id)
    images = [entry.image for entry in offer.offer_products]
    try:
        db.delete(offer)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la suppression de l'offre {offer_id}: {e}")
        raise server_error(e)
    for image in images:
        remove_upload(image)
    return {"success": True}


@router.get("/{offer_id}/products")
async def list_offer_products(offer_id: int, db: Session = Depends(get_db)):
    entries = (
        db.query(SpecialOfferProduct)
        .filter(SpecialOfferProduct.offer_id == offer_id)
        .order_by(SpecialOfferProduct.created_at.desc(), SpecialOfferProduct.id.desc())
        .all()
    )
    return [offer_product_to_dict(e) for e in entries]


@router.post("/{offer_id}/products", status_code=201, dependencies=protected)
async def add_offer_product(
    offer_id: int,
    product_id: Optional[int] = Form(None),
    offer_price: Optional[float] = Form(None),
    description_fr: Optional[str] = Form(None, alias="descriptionFr"),
    description_ar: Optional[str] = Form(None, alias="descriptionAr"),
    quality: Optional[int] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    """Ajouter un produit du stock à une offre"""
    if not product_id:
        raise HTTPException(status_code=400, detail="product_id est requis")
    offer = _get_offer(db, offer_id)
    if not db.get(Product, product_id):
        raise HTTPException(status_code=404, detail="Produit introuvable")

    existing = db.query(SpecialOfferProduct).filter(
        SpecialOfferProduct.offer_id == offer_id,
        SpecialOfferProduct.product_id == product_id,
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="Produit déjà présent dans cette offre")

    image_path = save_upload(image, "special-offers") if image and image.filename else None
    try:
        entry = SpecialOfferProduct(
            offer_id=offer_id,
            product_id=product_id,
            offer_price=offer_price or 0,
            description_fr=description_fr or "",
            description_ar=description_ar or "",
            quality=quality or 5,
            image=image_path,
        )
        db.add(entry)
        _sync_products_count(db, offer)
        db.commit()
        db.refresh(entry)
        return offer_product_to_dict(entry)
    except Exception as e:
        db.rollback()
        remove_upload(image_path)
        logger.exception(f"Erreur lors de l'ajout du produit {product_id} à l'offre {offer_id}: {e}")
        raise server_error(e)


@router.put("/{offer_id}/products/{product_id}", dependencies=protected)
async def update_offer_product(
    offer_id: int,
    product_id: int,
    offer_price: Optional[float] = Form(None),
    description_fr: Optional[str] = Form(None, alias="descriptionFr"),
    description_ar: Optional[str] = Form(None, alias="descriptionAr"),
    quality: Optional[int] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    entry = db.query(SpecialOfferProduct).filter(
        SpecialOfferProduct.offer_id == offer_id,
        SpecialOfferProduct.product_id == product_id,
    ).first()
    if not entry:
        raise HTTPException(status_code=404, detail="Produit absent de cette offre")

    try:
        entry.offer_price = offer_price or 0
        entry.description_fr = description_fr or ""
        entry.description_ar = description_ar or ""
        entry.quality = quality or 5
        if image and image.filename:
            old_image = entry.image
            entry.image = save_upload(image, "special-offers")
            remove_upload(old_image)
        db.commit()
        db.refresh(entry)
        return offer_product_to_dict(entry)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la mise à jour du produit {product_id} de l'offre {offer_id}: {e}")
        raise server_error(e)


@router.delete("/{offer_id}/products/{product_id}", dependencies=protected)
async def remove_offer_product(offer_id: int, product_id: int, db: Session = Depends(get_db)):
    offer = _get_offer(db, offer_id)
    entry = db.query(SpecialOfferProduct).filter(
        SpecialOfferProduct.offer_id == offer_id,
        SpecialOfferProduct.product_id == product_id,
    ).first()
    image_path = entry.image if entry else None
    if entry:
        db.delete(entry)
    _sync_products_count(db, offer)
    db.commit()
    remove_upload(image_path)
    return {"success": True}
