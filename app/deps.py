from datetime import timedelta
from typing import Generator, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import models, schemas
from .config import settings
from .database import SessionLocal
from .lifecycle import utcnow


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ----- Auth -----
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# password flow served by POST /users/login (form-encoded body)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="users/login")

# may read other users' bookings and work the ticket queue
STAFF_ROLES = ("admin", "facility_manager")

CREDENTIALS_ERROR = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def authenticate_user(db: Session, username: str, password: str) -> Optional[models.User]:
    user = db.query(models.User).filter(models.User.username == username).first()
    if user is None or not pwd_context.verify(password, user.hashed_password):
        return None
    return user


def create_access_token(claims: dict, expires_delta: Optional[timedelta] = None) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {**claims, "exp": utcnow() + lifetime}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[schemas.TokenData]:
    """Return the token's claims, or ``None`` if it is expired, forged or has no subject."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if not payload.get("sub"):
        return None
    return schemas.TokenData(username=payload["sub"], role=payload.get("role"))


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    token_data = decode_access_token(token)
    if token_data is None:
        raise CREDENTIALS_ERROR
    user = db.query(models.User).filter(models.User.username == token_data.username).first()
    if user is None:
        raise CREDENTIALS_ERROR
    return user


def is_staff(user: models.User) -> bool:
    return user.role in STAFF_ROLES


def require_roles(*allowed_roles: str):
    """
    Dependency factory gating an endpoint on the caller's role.

    Usage: ``_: models.User = Depends(require_roles(*STAFF_ROLES))``
    """
    async def role_checker(current_user: models.User = Depends(get_current_user)) -> models.User:
        if current_user.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")
        return current_user

    return role_checker


def ensure_owner_or_admin(resource_user_id: str, current_user: models.User, detail: str) -> None:
    """Raise 403 unless ``current_user`` owns the resource or is an admin."""
    if resource_user_id != current_user.id and current_user.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def ensure_owner_or_staff(resource_user_id: str, current_user: models.User, detail: str) -> None:
    """Raise 403 unless ``current_user`` owns the resource or is staff."""
    if resource_user_id != current_user.id and not is_staff(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
