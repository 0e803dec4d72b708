# sparkly/models/refresh_token.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from sparkly.core.base import Base


def as_utc(value: datetime) -> datetime:
    # SQLite round-trips tz-aware datetimes as naive. Treat naive as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Store ONLY a keyed hash of the refresh token (never store raw refresh token)
    token_hash = Column(String(128), unique=True, index=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Absolute expiration for this refresh token; never extended
    expires_at = Column(DateTime(timezone=True), nullable=False)

    # If set, token is no longer valid. Once set it is never cleared.
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_by_ip = Column(String(64), nullable=True)
    # Hash of the token that replaced this one when rotated
    replaced_by_token_hash = Column(String(128), nullable=True)

    user = relationship("User", back_populates="refresh_tokens")

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now > as_utc(self.expires_at)

    def is_active(self, now: datetime | None = None) -> bool:
        return not self.is_revoked and not self.is_expired(now)
