from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status, Header
import os
from dotenv import load_dotenv

load_dotenv()

SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "10080"))

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password):
    return pwd_context.hash(password)


def verify_password(plain_password, stored_password):
    """Vérifier un mot de passe contre la valeur stockée.

    Les anciennes bases conservaient les mots de passe en clair: une valeur
    qui n'est pas un hash reconnu est comparée telle quelle.
    """
    if not stored_password or plain_password is None:
        return False
    if pwd_context.identify(stored_password) is None:
        return plain_password == stored_password
    return pwd_context.verify(plain_password, stored_password)


def needs_rehash(stored_password) -> bool:
    return pwd_context.identify(stored_password) is None or pwd_context.needs_update(stored_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


class AuthUser:
    """Utilisateur reconstruit depuis les claims du JWT (admin ou employé)."""
    def __init__(self, **kwargs):
        for k, v in kwargs.items():
            setattr(self, k, v)


def get_current_user(authorization: Optional[str] = Header(None)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not authorization or not authorization.startswith("Bearer "):
        raise credentials_exception
    token = authorization.split(" ", 1)[1]

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception

    if payload.get("sub") is None or payload.get("user_id") is None:
        raise credentials_exception

    return AuthUser(
        username=payload.get("sub"),
        user_id=payload.get("user_id"),
        email=payload.get("email"),
        role=payload.get("role", "employee"),
    )


def require_admin(current_user: AuthUser = Depends(get_current_user)):
    if getattr(current_user, "role", None) != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permissions insuffisantes"
        )
    return current_user
