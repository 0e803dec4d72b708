# sparkly/services/credentials.py
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from sparkly.core.errors import AuthFailure
from sparkly.core.security import PasswordCheck, check_password
from sparkly.services.users import get_user_by_email, get_user_by_username
from sparkly.models.user import User

logger = logging.getLogger(__name__)


def looks_like_email(identifier: str) -> bool:
    # Heuristic only: anything containing "@" is looked up as an email.
    return "@" in identifier


def authenticate(db: Session, identifier: str, password: str) -> User | AuthFailure:
    """
    Resolve an email or username and check the password.

    Unknown user and wrong password both return INVALID_CREDENTIALS.
    Read-only: a NEEDS_REHASH result still authenticates but the stored
    hash is left untouched.
    """
    identifier = (identifier or "").strip()
    if not identifier or not password:
        return AuthFailure.INVALID_CREDENTIALS

    if looks_like_email(identifier):
        user = get_user_by_email(db, identifier)
    else:
        user = get_user_by_username(db, identifier)

    if user is None:
        return AuthFailure.INVALID_CREDENTIALS

    result = check_password(user.password_hash, password)
    if result is PasswordCheck.MISMATCH:
        return AuthFailure.INVALID_CREDENTIALS
    if result is PasswordCheck.NEEDS_REHASH:
        logger.info("Password hash for user id=%s uses outdated parameters", user.id)

    return user
