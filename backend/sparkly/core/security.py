# sparkly/core/security.py
from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from jose import jwt
from passlib.context import CryptContext

from sparkly.core.config import settings, require_jwt_secret

if TYPE_CHECKING:
    from sparkly.models.user import User

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

REFRESH_TOKEN_BYTES = 64


# -------------------------
# Password hashing
# -------------------------
class PasswordCheck(str, Enum):
    MATCH = "match"
    MISMATCH = "mismatch"
    NEEDS_REHASH = "needs_rehash"


def hash_password(password: str) -> str:
    # argon2 embeds its salt and parameters in the digest.
    return pwd_context.hash(password)


def check_password(password_hash: str, password: str) -> PasswordCheck:
    """
    Never raises for a wrong password. A malformed or unknown digest is a
    mismatch too: it can't have been produced from this plaintext.
    """
    if not password_hash or not password:
        return PasswordCheck.MISMATCH
    try:
        ok = pwd_context.verify(password, password_hash)
    except (ValueError, TypeError):
        return PasswordCheck.MISMATCH
    if not ok:
        return PasswordCheck.MISMATCH
    if pwd_context.needs_update(password_hash):
        return PasswordCheck.NEEDS_REHASH
    return PasswordCheck.MATCH


# -------------------------
# JWT helpers
# -------------------------
def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def access_token_lifetime() -> timedelta:
    return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)


def create_access_token(user: User, *, now: datetime | None = None) -> str:
    """
    Access token used for API auth: Authorization: Bearer <token>
    Claims: sub (user id), email, name (username), role, iat/nbf/exp.
    """
    require_jwt_secret()

    now = now or _now_utc()
    exp = now + access_token_lifetime()

    payload = {
        "sub": str(user.id),
        "email": user.email,
        "name": user.username,
        "role": user.role,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "iat": int(now.timestamp()),
        "nbf": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }

    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Verifies signature, exp and nbf (with clock skew leeway). Issuer and
    audience are only enforced when enabled in settings.
    Raises JWTError; callers decide how to map it.
    """
    require_jwt_secret()

    options = {
        "verify_aud": settings.JWT_VALIDATE_AUDIENCE,
        "verify_iss": settings.JWT_VALIDATE_ISSUER,
        "leeway": settings.JWT_CLOCK_SKEW_SECONDS,
    }
    return jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        audience=settings.JWT_AUDIENCE if settings.JWT_VALIDATE_AUDIENCE else None,
        issuer=settings.JWT_ISSUER if settings.JWT_VALIDATE_ISSUER else None,
        options=options,
    )


# -------------------------
# Refresh token helpers
# -------------------------
def generate_refresh_token() -> str:
    """
    Opaque refresh secret: 64 random bytes, base64 encoded.
    This raw token is ONLY returned to the client.
    """
    return base64.b64encode(secrets.token_bytes(REFRESH_TOKEN_BYTES)).decode("ascii")


def hash_refresh_token(raw_token: str) -> str:
    """
    Store only a keyed hash in DB so a leaked table can't be replayed.
    """
    require_jwt_secret()
    secret = settings.JWT_SECRET.encode("utf-8")
    return hmac.new(secret, raw_token.encode("utf-8"), hashlib.sha256).hexdigest()
