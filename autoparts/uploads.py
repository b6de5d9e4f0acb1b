"""Stockage des images envoyées par le back-office (servies sous /uploads)."""
from fastapi import HTTPException, UploadFile
from pathlib import Path
import logging
import os
import shutil
import uuid
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", "uploads"))
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".ico"}


def save_upload(file: UploadFile, subdir: str) -> str:
    """Copier le fichier reçu dans UPLOAD_DIR/subdir et retourner son URL publique."""
    file_ext = Path(file.filename or "").suffix.lower()
    if file_ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Type de fichier non autorisé. Types acceptés : {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    target_dir = UPLOAD_DIR / subdir
    target_dir.mkdir(parents=True, exist_ok=True)
    unique_filename = f"{uuid.uuid4().hex}{file_ext}"
    with (target_dir / unique_filename).open("wb") as buffer:
        shutil.copyfileobj(file.file, buffer)
    return f"/uploads/{subdir}/{unique_filename}"


def remove_upload(public_path: str) -> None:
    """Supprimer le fichier derrière une URL /uploads/...; un fichier absent est ignoré."""
    if not public_path or not public_path.startswith("/uploads/"):
        return
    file_path = UPLOAD_DIR / public_path[len("/uploads/"):]
    try:
        file_path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Impossible de supprimer l'ancienne image {file_path}: {e}")
