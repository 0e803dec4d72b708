# sparkly/services/users.py
"""
User directory.

Responsibilities:
- User lookup by email, username or id
- Registration (uniqueness checks, password policy, argon2 hash)

Token code consumes users read-only through the lookups below.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sparkly.core.database import persistence_guard
from sparkly.core.errors import RegistrationError
from sparkly.core.password_policy import evaluate_password
from sparkly.core.security import hash_password
from sparkly.models.user import User

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "user"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Look up a user by email address."""
    with persistence_guard(db, "user lookup"):
        return db.query(User).filter(User.email == normalize_email(email)).first()


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    """Look up a user by exact username."""
    with persistence_guard(db, "user lookup"):
        return db.query(User).filter(User.username == (username or "").strip()).first()


def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
    with persistence_guard(db, "user lookup"):
        return db.get(User, user_id)


def _conflict(db: Session, *, email: str, username: str) -> RegistrationError:
    if get_user_by_username(db, username) is not None and get_user_by_email(db, email) is None:
        return RegistrationError("USERNAME_TAKEN", "User with this username already exists.")
    return RegistrationError("EMAIL_TAKEN", "User with this email already exists.")


def register_user(db: Session, *, username: str, email: str, password: str) -> User:
    """
    Create a new user with role "user".

    Raises:
        RegistrationError: blank input, duplicate email/username or weak password
        PersistenceError: the store is unavailable
    """
    username = (username or "").strip()
    email = normalize_email(email)

    if not username or not email:
        raise RegistrationError("INVALID_INPUT", "Please provide valid name and email.")
    if "@" in username:
        # Login treats any identifier with "@" as an email.
        raise RegistrationError("INVALID_INPUT", "Username must not contain '@'.")

    violations = evaluate_password(password, email=email, username=username)
    if violations:
        raise RegistrationError("WEAK_PASSWORD", "Password does not meet requirements.", violations)

    if get_user_by_email(db, email) is not None:
        raise RegistrationError("EMAIL_TAKEN", "User with this email already exists.")
    if get_user_by_username(db, username) is not None:
        raise RegistrationError("USERNAME_TAKEN", "User with this username already exists.")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=DEFAULT_ROLE,
    )

    with persistence_guard(db, "user registration"):
        try:
            db.add(user)
            db.commit()
        except IntegrityError:
            # Lost a race against a concurrent registration.
            db.rollback()
            raise _conflict(db, email=email, username=username)
        db.refresh(user)

    logger.info("Registered user id=%s", user.id)
    return user
