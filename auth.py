from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from fastapi import Depends, HTTPException, Request
from jose import JWTError, jwt
from passlib.context import CryptContext

from config import Settings, get_settings
from schemas import Session

logger = structlog.get_logger(__name__)

ADMIN_ROLE = "admin"

# Use pbkdf2_sha256 to avoid external bcrypt dependency issues
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

_admin_hash_cache: dict = {}


def admin_password_hash(settings: Settings) -> str:
    # Support providing a precomputed hash; otherwise hash the configured password once
    if settings.admin_password_hash:
        return settings.admin_password_hash
    if settings.admin_password not in _admin_hash_cache:
        _admin_hash_cache[settings.admin_password] = pwd_context.hash(settings.admin_password)
    return _admin_hash_cache[settings.admin_password]


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def authenticate_admin(email: str, password: str, settings: Settings) -> Optional[Session]:
    if email.lower() != settings.admin_email.lower():
        return None
    if not verify_password(password, admin_password_hash(settings)):
        return None
    return Session(user_id=settings.admin_user_id, email=settings.admin_email, role=ADMIN_ROLE)


def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def session_token(session: Session, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    claims = {"sub": session.user_id, "email": session.email, "role": session.role}
    return create_access_token(claims, settings, expires_delta)


def _read_token(request: Request, settings: Settings) -> Optional[str]:
    authorization = request.headers.get("authorization")
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    return request.cookies.get(settings.session_cookie_name)


def resolve_session(request: Request, settings: Settings) -> Optional[Session]:
    """Return the admin session carried by the request, or None.

    None covers every failure: no token, bad signature, expired token and a
    role claim other than "admin". Callers must not tell these apart.
    """
    token = _read_token(request, settings)
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        logger.info("session_rejected", reason="invalid_token", error=str(exc))
        return None
    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or role != ADMIN_ROLE:
        logger.info("session_rejected", reason="not_admin", user_id=user_id)
        return None
    return Session(user_id=user_id, email=payload.get("email"), role=role)


def require_admin(request: Request, settings: Settings = Depends(get_settings)) -> Session:
    session = resolve_session(request, settings)
    if session is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return session
