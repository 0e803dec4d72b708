# sparkly/models/user.py
import uuid

from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.orm import relationship

from sparkly.core.base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)

    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    # argon2 digest; salt + parameters are embedded. Set once at registration.
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="user", server_default="user")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # user → refresh tokens
    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
