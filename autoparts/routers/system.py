from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from datetime import datetime
from pathlib import Path
import logging
import os
import shutil
import time
from dotenv import load_dotenv

from ..database import get_db
from ..auth import get_current_user, require_admin
from ..init_db import init_database

load_dotenv()

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"
STARTED_AT = time.time()
SQLITE_HEADER = b"SQLite format 3\x00"

router = APIRouter(prefix="/api", tags=["system"])


def _backup_dir() -> Path:
    return Path(os.getenv("BACKUP_DIR", "backups"))


def _database_path(db: Session) -> Path:
    """Fichier SQLite derrière la session courante"""
    url = db.get_bind().url
    if not url.drivername.startswith("sqlite") or not url.database or url.database == ":memory:":
        raise HTTPException(status_code=400, detail="Sauvegarde disponible uniquement pour une base SQLite fichier")
    return Path(url.database)


@router.get("/system-info")
async def system_info(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    bind = db.get_bind()
    db_size = None
    if bind.url.drivername.startswith("sqlite") and bind.url.database and os.path.exists(bind.url.database):
        db_size = os.path.getsize(bind.url.database)
    return {
        "database": "SQLite" if bind.url.drivername.startswith("sqlite") else bind.url.drivername,
        "dbSize": db_size,
        "uptime": round(time.time() - STARTED_AT, 3),
        "networkStatus": "connected",
        "version": APP_VERSION,
    }


@router.get("/backup/export")
async def export_backup(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """Copier la base dans BACKUP_DIR et la renvoyer en téléchargement"""
    db_path = _database_path(db)
    if not db_path.exists():
        raise HTTPException(status_code=404, detail="Base de données non trouvée")

    try:
        backup_dir = _backup_dir()
        backup_dir.mkdir(parents=True, exist_ok=True)
        backup_filename = f"database-backup-{datetime.now().strftime('%Y-%m-%dT%H-%M-%S')}.sqlite"
        backup_path = backup_dir / backup_filename
        shutil.copy2(db_path, backup_path)
        logger.info(f"Sauvegarde créée: {backup_path}")
    except Exception as e:
        logger.exception(f"Erreur lors de la création de la sauvegarde: {e}")
        raise HTTPException(status_code=500, detail="Erreur lors de la création de la sauvegarde")

    return FileResponse(
        path=str(backup_path),
        filename=backup_filename,
        media_type="application/octet-stream"
    )


@router.post("/backup/import")
async def import_backup(
    backup: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user=Depends(require_admin),
):
    """Remplacer la base par un fichier SQLite envoyé (une copie de sécurité est gardée)"""
    db_path = _database_path(db)
    content = await backup.read()
    if not content.startswith(SQLITE_HEADER):
        raise HTTPException(status_code=400, detail="Le fichier n'est pas une base SQLite valide")

    bind = db.get_bind()
    db.close()
    try:
        if db_path.exists():
            backup_dir = _backup_dir()
            backup_dir.mkdir(parents=True, exist_ok=True)
            safety_path = backup_dir / f"before-import-{datetime.now().strftime('%Y%m%d-%H%M%S')}.sqlite"
            shutil.copy2(db_path, safety_path)
            logger.info(f"Sauvegarde de sécurité créée: {safety_path}")

        temp_path = db_path.with_name(db_path.name + ".importing")
        temp_path.write_bytes(content)
        bind.dispose()
        for suffix in ("-wal", "-shm"):
            Path(str(db_path) + suffix).unlink(missing_ok=True)
        os.replace(temp_path, db_path)

        # Mettre le schéma importé à niveau (colonnes ajoutées depuis)
        init_database(bind)
    except Exception as e:
        logger.exception(f"Erreur lors de l'import de la sauvegarde: {e}")
        raise HTTPException(status_code=500, detail="Échec de l'import de la sauvegarde")

    logger.info("Base de données restaurée depuis une sauvegarde")
    return {"message": "Sauvegarde importée avec succès"}
