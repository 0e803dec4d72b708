# sparkly/services/sessions.py
"""
Session lifecycle: login, refresh, logout.

Per refresh-token record the states are Active -> Revoked (explicit) or
Active -> Expired (time). Neither terminal state is ever left.

Refresh policy is controlled by settings.REFRESH_TOKEN_ROTATION:
- off (default): the same refresh secret is handed back with its original
  expiry; only the access token is new.
- on: the presented secret is revoked and replaced by a fresh one whose
  hash is recorded in replaced_by_token_hash.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from sparkly.core.config import settings
from sparkly.core.errors import AuthFailure
from sparkly.core.security import access_token_lifetime, create_access_token, generate_refresh_token
from sparkly.models.refresh_token import as_utc
from sparkly.models.user import User
from sparkly.services import refresh_tokens
from sparkly.services.credentials import authenticate, looks_like_email
from sparkly.services.users import get_user_by_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _mint_access(user: User, now: datetime) -> tuple[str, datetime]:
    return create_access_token(user, now=now), now + access_token_lifetime()


def login(db: Session, identifier: str, password: str) -> SessionTokens | AuthFailure:
    """
    Tokens are only returned after the refresh record is committed. If the
    store write fails, PersistenceError propagates and the minted values are
    dropped.
    """
    user = authenticate(db, identifier, password)
    if isinstance(user, AuthFailure):
        logger.info("Login rejected (email_like=%s)", looks_like_email(identifier or ""))
        return user

    now = _now_utc()
    access_token, access_expires_at = _mint_access(user, now)
    raw_refresh = generate_refresh_token()
    refresh_expires_at = refresh_tokens.refresh_token_expiry(now)

    refresh_tokens.create_refresh_token(db, user.id, raw_refresh, refresh_expires_at)

    logger.info("Login succeeded user_id=%s", user.id)
    return SessionTokens(
        access_token=access_token,
        refresh_token=raw_refresh,
        access_expires_at=access_expires_at,
        refresh_expires_at=refresh_expires_at,
    )


def refresh(db: Session, raw_refresh_token: str, *, origin_ip: str | None = None) -> SessionTokens | AuthFailure:
    raw = (raw_refresh_token or "").strip()
    if not raw:
        return AuthFailure.INVALID_OR_EXPIRED_TOKEN

    rt = refresh_tokens.find_active_refresh_token(db, raw)
    if rt is None:
        logger.info("Refresh rejected: token absent, revoked or expired")
        return AuthFailure.INVALID_OR_EXPIRED_TOKEN

    user = get_user_by_id(db, rt.user_id)
    if user is None:
        return AuthFailure.INVALID_OR_EXPIRED_TOKEN

    now = _now_utc()
    access_token, access_expires_at = _mint_access(user, now)

    if not settings.REFRESH_TOKEN_ROTATION:
        return SessionTokens(
            access_token=access_token,
            refresh_token=raw,
            access_expires_at=access_expires_at,
            refresh_expires_at=as_utc(rt.expires_at),
        )

    new_raw = generate_refresh_token()
    new_expires_at = refresh_tokens.refresh_token_expiry(now)
    new_id = refresh_tokens.rotate_refresh_token(db, rt, new_raw, new_expires_at, origin_ip=origin_ip)
    if new_id is None:
        # Someone revoked or rotated this token between our read and write.
        logger.info("Refresh rejected: token revoked concurrently id=%s", rt.id)
        return AuthFailure.INVALID_OR_EXPIRED_TOKEN

    return SessionTokens(
        access_token=access_token,
        refresh_token=new_raw,
        access_expires_at=access_expires_at,
        refresh_expires_at=new_expires_at,
    )


def logout(db: Session, raw_refresh_token: str | None, *, origin_ip: str | None = None) -> None:
    """
    Always succeeds from the caller's view: empty, unknown and already
    revoked secrets are no-ops, and nothing reveals which case applied.
    """
    raw = (raw_refresh_token or "").strip()
    if not raw:
        return

    rt = refresh_tokens.find_refresh_token(db, raw)
    if rt is None or rt.is_revoked:
        return

    refresh_tokens.revoke_refresh_token(db, rt, origin_ip=origin_ip)
