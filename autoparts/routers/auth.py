from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from datetime import timedelta
from ..database import get_db, User, Employee
from ..schemas import LoginRequest, UserUpdate, WorkerUpdate, WorkerPasswordChange
from ..auth import (
    verify_password,
    needs_rehash,
    get_password_hash,
    create_access_token,
    get_current_user,
    AuthUser,
    ACCESS_TOKEN_EXPIRE_MINUTES,
)
from ..middleware import server_error
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["authentication"])


def _issue_token(user_id: int, username: str, role: str, email: str = None) -> str:
    token_payload = {
        "sub": username,
        "user_id": user_id,
        "email": email,
        "role": role,
    }
    return create_access_token(data=token_payload, expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))


def _upgrade_legacy_password(db: Session, account, password: str) -> None:
    # Les anciennes bases stockaient le mot de passe en clair
    if needs_rehash(account.password):
        account.password = get_password_hash(password)
        db.commit()
        logger.info(f"Mot de passe re-haché pour le compte {account.id}")


@router.post("/login")
async def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    """Connexion: e-mail pour un administrateur, nom d'utilisateur pour un employé"""
    if not credentials.login or not credentials.password:
        raise HTTPException(status_code=400, detail="Identifiant et mot de passe requis")

    try:
        if "@" in credentials.login:
            user = db.query(User).filter(User.email == credentials.login).first()
            if not user or not verify_password(credentials.password, user.password):
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Identifiants administrateur invalides"
                )
            _upgrade_legacy_password(db, user, credentials.password)
            username = user.username or "admin"
            return {
                "message": "Connexion administrateur réussie",
                "access_token": _issue_token(user.id, username, "admin", user.email),
                "token_type": "bearer",
                "user": {"id": user.id, "username": username, "email": user.email, "role": "admin"},
            }

        worker = db.query(Employee).filter(Employee.username == credentials.login).first()
        if not worker or not worker.password or not verify_password(credentials.password, worker.password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Identifiants employé invalides"
            )
        _upgrade_legacy_password(db, worker, credentials.password)
        return {
            "message": "Connexion employé réussie",
            "access_token": _issue_token(worker.id, worker.username, "employee"),
            "token_type": "bearer",
            "user": {"id": worker.id, "username": worker.username, "role": "employee"},
        }

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la connexion: {e}")
        raise server_error(e)


@router.get("/users/{user_id}")
async def get_user(user_id: int, db: Session = Depends(get_db), current_user: AuthUser = Depends(get_current_user)):
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="Utilisateur introuvable")
    return {"id": user.id, "username": user.username, "email": user.email, "role": user.role}


@router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
):
    """Modifier le nom, l'e-mail ou le mot de passe d'un administrateur"""
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="Utilisateur introuvable")

    if not (data.username or data.email or data.new_password):
        raise HTTPException(status_code=400, detail="Aucun champ à mettre à jour")

    if data.new_password and not verify_password(data.current_password, user.password):
        raise HTTPException(status_code=401, detail="Mot de passe actuel invalide")

    try:
        if data.username:
            user.username = data.username
        if data.email:
            user.email = data.email
        if data.new_password:
            user.password = get_password_hash(data.new_password)
        db.commit()
        return {"message": "Utilisateur mis à jour"}
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la mise à jour de l'utilisateur {user_id}: {e}")
        raise server_error(e)


@router.get("/workers/{worker_id}")
async def get_worker(worker_id: int, db: Session = Depends(get_db), current_user: AuthUser = Depends(get_current_user)):
    worker = db.get(Employee, worker_id)
    if not worker:
        raise HTTPException(status_code=404, detail="Employé introuvable")
    return {
        "id": worker.id,
        "username": worker.username,
        "name": worker.name,
        "phone": worker.phone,
        "role": worker.role,
        "address": worker.address,
    }


@router.put("/workers/{worker_id}")
async def update_worker(
    worker_id: int,
    data: WorkerUpdate,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
):
    """Profil de l'employé: les champs absents gardent leur valeur"""
    worker = db.get(Employee, worker_id)
    if not worker:
        raise HTTPException(status_code=404, detail="Employé introuvable")

    try:
        for field, value in data.model_dump(exclude_none=True).items():
            if value != "":
                setattr(worker, field, value)
        db.commit()
        return {"message": "Profil mis à jour"}
    except Exception as e:
        db.rollback()
        logger.exception(f"Erreur lors de la mise à jour de l'employé {worker_id}: {e}")
        raise server_error(e)


@router.put("/workers/{worker_id}/password")
async def change_worker_password(
    worker_id: int,
    data: WorkerPasswordChange,
    db: Session = Depends(get_db),
    current_user: AuthUser = Depends(get_current_user),
):
    worker = db.get(Employee, worker_id)
    if not worker:
        raise HTTPException(status_code=404, detail="Employé introuvable")
    if not worker.password:
        raise HTTPException(status_code=400, detail="Cet employé n'a pas encore de compte")
    if not verify_password(data.current_password, worker.password):
        raise HTTPException(status_code=401, detail="Mot de passe actuel invalide")

    worker.password = get_password_hash(data.new_password)
    db.commit()
    return {"message": "Mot de passe mis à jour"}
