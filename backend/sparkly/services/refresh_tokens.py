from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import update
from sqlalchemy.orm import Session

from sparkly.core.config import settings
from sparkly.core.database import persistence_guard
from sparkly.core.security import hash_refresh_token
from sparkly.models.refresh_token import RefreshToken

logger = logging.getLogger(__name__)


# -----------------------------
# Refresh token settings
# -----------------------------
def refresh_token_lifetime() -> timedelta:
    days = int(getattr(settings, "REFRESH_TOKEN_EXPIRE_DAYS", 7))
    return timedelta(days=days)


def refresh_token_expiry(now: datetime | None = None) -> datetime:
    return (now or datetime.now(timezone.utc)) + refresh_token_lifetime()


# -----------------------------
# Store
# -----------------------------
def create_refresh_token(db: Session, user_id: str, raw_token: str, expires_at: datetime) -> str:
    """
    Persist a new active record for raw_token and commit. Returns the record id.
    """
    rt = RefreshToken(
        user_id=user_id,
        token_hash=hash_refresh_token(raw_token),
        expires_at=expires_at,
        revoked_at=None,
    )
    with persistence_guard(db, "refresh token create"):
        db.add(rt)
        db.commit()
    return rt.id


def find_refresh_token(db: Session, raw_token: str) -> RefreshToken | None:
    """Look up a record by raw secret regardless of state."""
    if not raw_token:
        return None
    token_hash = hash_refresh_token(raw_token)
    with persistence_guard(db, "refresh token lookup"):
        # populate_existing: always take revocation state from the row, never the identity map.
        return (
            db.query(RefreshToken)
            .filter(RefreshToken.token_hash == token_hash)
            .populate_existing()
            .first()
        )


def find_active_refresh_token(db: Session, raw_token: str) -> RefreshToken | None:
    """
    Absent, revoked and expired all come back as None.
    """
    rt = find_refresh_token(db, raw_token)
    if rt is None or not rt.is_active():
        return None
    return rt


def revoke_refresh_token(
    db: Session,
    rt: RefreshToken,
    *,
    origin_ip: str | None = None,
    replaced_by: str | None = None,
) -> bool:
    """
    Mark rt revoked. Revocation is monotonic: a second call is a no-op.

    The write is a conditional UPDATE guarded on revoked_at IS NULL, so two
    concurrent revokes converge on one revoked state. Returns True only for
    the call that performed the transition.
    """
    values: dict = {"revoked_at": datetime.now(timezone.utc)}
    if origin_ip:
        values["revoked_by_ip"] = origin_ip[:64]
    if replaced_by:
        values["replaced_by_token_hash"] = hash_refresh_token(replaced_by)

    with persistence_guard(db, "refresh token revoke"):
        result = db.execute(
            update(RefreshToken)
            .where(RefreshToken.id == rt.id, RefreshToken.revoked_at.is_(None))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.refresh(rt)

    revoked = result.rowcount == 1
    if revoked:
        logger.info("Revoked refresh token id=%s user_id=%s", rt.id, rt.user_id)
    return revoked


def rotate_refresh_token(
    db: Session,
    rt: RefreshToken,
    new_raw_token: str,
    expires_at: datetime,
    *,
    origin_ip: str | None = None,
) -> str | None:
    """
    Revoke rt and create its replacement in one transaction.

    Returns the new record id, or None when rt was revoked concurrently, in
    which case nothing is written.
    """
    now = datetime.now(timezone.utc)
    new_hash = hash_refresh_token(new_raw_token)
    values: dict = {"revoked_at": now, "replaced_by_token_hash": new_hash}
    if origin_ip:
        values["revoked_by_ip"] = origin_ip[:64]

    with persistence_guard(db, "refresh token rotate"):
        result = db.execute(
            update(RefreshToken)
            .where(RefreshToken.id == rt.id, RefreshToken.revoked_at.is_(None))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            return None

        replacement = RefreshToken(
            user_id=rt.user_id,
            token_hash=new_hash,
            expires_at=expires_at,
            revoked_at=None,
        )
        db.add(replacement)
        db.commit()
        db.refresh(rt)

    logger.info("Rotated refresh token id=%s -> id=%s user_id=%s", rt.id, replacement.id, rt.user_id)
    return replacement.id
