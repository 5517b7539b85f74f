import secrets
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from jose import JWTError, jwt
from passlib.context import CryptContext

from meetslot.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _encode(host_id: int, kind: str, lifetime: timedelta, **extra: str) -> str:
    claims = {"sub": str(host_id), "exp": datetime.now(UTC) + lifetime, "type": kind, **extra}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def _decode(token: str, kind: str) -> dict | None:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("type") != kind or not payload.get("sub"):
        return None
    return payload


def create_access_token(host_id: int) -> str:
    return _encode(host_id, ACCESS, timedelta(minutes=settings.access_token_expire_minutes))


def create_refresh_token(host_id: int) -> str:
    return _encode(
        host_id, REFRESH, timedelta(days=settings.refresh_token_expire_days), jti=str(uuid4())
    )


def decode_access_token(token: str) -> int | None:
    payload = _decode(token, ACCESS)
    if payload is None:
        return None
    try:
        return int(payload["sub"])
    except ValueError:
        return None


def decode_refresh_token(token: str) -> tuple[int | None, str | None]:
    """Returns (host_id, jti) or (None, None)."""
    payload = _decode(token, REFRESH)
    if payload is None or not payload.get("jti"):
        return None, None
    try:
        return int(payload["sub"]), payload["jti"]
    except ValueError:
        return None, None


def new_confirmation_token() -> str:
    """Opaque token e-mailed to a customer to confirm a booking request."""
    return secrets.token_urlsafe(32)
