"""
Authentication utilities: JWT tokens, password hashing and the per-request
identity context handed to the publishing components.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from .database import get_db
from .models.user import User
from .config import get_settings, Settings

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

# Roles, highest privilege first
SUPER_ADMIN = "super_admin"
ADMIN = "admin"
CONTENT_MANAGER = "content_manager"
VIEWER = "viewer"
ROLES = (SUPER_ADMIN, ADMIN, CONTENT_MANAGER, VIEWER)


@dataclass(frozen=True)
class RequestContext:
    """Identity of the caller for one request."""
    user_id: int
    email: str
    role: str

    @property
    def is_super_admin(self) -> bool:
        return self.role == SUPER_ADMIN


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password for storage."""
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_refresh_token(data: dict) -> str:
    """Create a JWT refresh token with longer expiration."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(days=settings.refresh_token_expire_days)
    to_encode.update({"exp": expire, "type": "refresh"})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_tokens(user_id: int) -> Tuple[str, str]:
    """Create both access and refresh tokens for a user."""
    data = {"sub": str(user_id)}  # JWT sub claim must be a string
    return create_access_token(data), create_refresh_token(data)


def verify_token(token: str, expected_type: str = "access") -> Optional[dict]:
    """Verify a JWT token and return its payload."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        if payload.get("type", "access") != expected_type:
            return None
        return payload
    except JWTError:
        return None


def _user_id_from_payload(payload: Optional[dict]) -> Optional[int]:
    if not payload:
        return None
    try:
        return int(payload.get("sub"))
    except (ValueError, TypeError):
        return None


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """Get the current user from the JWT token (optional auth)."""
    if not token:
        return None

    user_id = _user_id_from_payload(verify_token(token, "access"))
    if user_id is None:
        return None

    return db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()


def get_required_user(
    current_user: Optional[User] = Depends(get_current_user)
) -> User:
    """Get the current user, raising 401 if not authenticated."""
    if not current_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user


def resolve_role(user: User, config: Optional[Settings] = None) -> str:
    """Effective role of a user; bootstrap administrators are always super_admin."""
    config = config or get_settings()
    bootstrap = {email.strip().lower() for email in config.bootstrap_admin_emails}
    if user.email and user.email.lower() in bootstrap:
        return SUPER_ADMIN
    return user.role if user.role in ROLES else VIEWER


def get_request_context(current_user: User = Depends(get_required_user)) -> RequestContext:
    """Build the request-scoped identity passed into every publishing component."""
    return RequestContext(
        user_id=current_user.id,
        email=current_user.email,
        role=resolve_role(current_user),
    )


def refresh_access_token(refresh_token: str, db: Session) -> Optional[Tuple[str, str]]:
    """Use a refresh token to get new access and refresh tokens."""
    user_id = _user_id_from_payload(verify_token(refresh_token, "refresh"))
    if user_id is None:
        return None

    # Verify user still exists and is active
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        return None

    return create_tokens(user_id)
