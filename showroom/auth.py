from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import hmac
import jwt
from fastapi import HTTPException, Request
from typing import Optional
from shared.core import get_logger, set_request_context
from .core_settings import get_settings

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Principal:
    """The identity a request acts as; recorded on the orders it creates."""
    user_id: str


def create_access_token(subject: str, expires_minutes: Optional[int] = None) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_MINUTES
    payload = {"sub": subject, "iat": now, "exp": now + timedelta(minutes=minutes)}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_access_token(token: str) -> Optional[dict]:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except jwt.PyJWTError:
        return None


def check_credentials(username: str, password: str) -> bool:
    settings = get_settings()
    user_ok = hmac.compare_digest(username.encode(), settings.ADMIN_USERNAME.encode())
    password_ok = hmac.compare_digest(password.encode(), settings.ADMIN_PASSWORD.encode())
    return user_ok and password_ok


async def get_principal(request: Request) -> Principal:
    """FastAPI dependency: resolve the bearer token into the acting principal.

    Async so it runs in the request's own context; the user id it sets
    stays visible to the endpoint and everything it logs.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        raise HTTPException(status_code=401, detail="Missing token")
    token_data = decode_access_token(auth_header[len(BEARER_PREFIX):])
    if not token_data or not token_data.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")
    principal = Principal(user_id=token_data["sub"])
    set_request_context(user_id=principal.user_id)
    return principal
