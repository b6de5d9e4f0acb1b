from fastapi import APIRouter, Depends, UploadFile, File, Form
from sqlalchemy.orm import Session
from typing import Optional
import logging

from ..database import get_db, Contact, WebsiteSettings
from ..schemas import ContactUpdate
from ..auth import get_current_user
from ..middleware import server_error
from ..uploads import save_upload, remove_upload

logger = logging.getLogger(__name__)

# Fiches uniques (id=1) lues par la boutique et modifiées par le back-office
router = APIRouter(prefix="/api", tags=["site"])
protected = [Depends(get_current_user)]


def contact_to_dict(contact: Contact) -> dict:
    return {
        "id": contact.id,
        "phone": contact.phone,
        "whatsapp": contact.whatsapp,
        "email": contact.email,
        "facebook": contact.facebook,
        "instagram": contact.instagram,
        "tiktok": contact.tiktok,
        "viber": contact.viber,
        "mapUrl": contact.map_url,
        "created_at": contact.created_at,
        "updated_at": contact.updated_at,
    }


def settings_to_dict(settings: WebsiteSettings) -> dict:
    return {
        "id": settings.id,
        "site_name_fr": settings.site_name_fr,
        "site_name_ar": settings.site_name_ar,
        "description_fr": settings.description_fr,
        "description_ar": settings.description_ar,
        "logo_url": settings.logo_url,
        "favicon_url": settings.favicon_url,
        "created_at": settings.created_at,
        "updated_at": settings.updated_at,
    }


def _singleton(db: Session, model):
    row = db.get(model, 1)
    if row is None:
        row = model(id=1)
        db.add(row)
        db.flush()
    return row


@router.get("/contacts")
async def get_contacts(db: Session = Depends(get_db)):
    contact = db.get(Contact, 1)
    return contact_to_dict(contact) if contact else {}


@router.post("/contacts", dependencies=protected)
async def save_contacts(data: ContactUpdate, db: Session = Depends(get_db)):
    """Créer ou remplacer les coordonnées de l'entreprise"""
    try:
        contact = _singleton(db, Contact)
        for field, value in data.model_dump().items():
            setattr(contact, field, value)
        db.commit()
        db.refresh(contact)
        return contact_to_dict(contact)
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de l'enregistrement des contacts: {e}")
        raise server_error(e)


@router.get("/settings")
async def get_settings(db: Session = Depends(get_db)):
    settings = db.get(WebsiteSettings, 1)
    return settings_to_dict(settings) if settings else {}


@router.put("/settings", dependencies=protected)
async def update_settings(
    site_name_fr: Optional[str] = Form(None),
    site_name_ar: Optional[str] = Form(None),
    description_fr: Optional[str] = Form(None),
    description_ar: Optional[str] = Form(None),
    logo: Optional[UploadFile] = File(None),
    favicon: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    """Paramètres du site; le logo et le favicon ne sont remplacés que s'ils sont envoyés"""
    settings = _singleton(db, WebsiteSettings)
    settings.site_name_fr = site_name_fr
    settings.site_name_ar = site_name_ar
    settings.description_fr = description_fr
    settings.description_ar = description_ar

    replaced = []
    if logo and logo.filename:
        replaced.append(settings.logo_url)
        settings.logo_url = save_upload(logo, "settings")
    if favicon and favicon.filename:
        replaced.append(settings.favicon_url)
        settings.favicon_url = save_upload(favicon, "settings")

    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la mise à jour des paramètres: {e}")
        raise server_error(e)

    for path in replaced:
        remove_upload(path)
    db.refresh(settings)
    return settings_to_dict(settings)
