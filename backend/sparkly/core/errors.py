# sparkly/core/errors.py
from __future__ import annotations

from enum import Enum


class AuthFailure(str, Enum):
    """
    Expected authentication outcomes. Returned, never raised.

    Messages are deliberately generic: callers must not be able to tell
    "no such user" from "wrong password", or "revoked" from "expired".
    """

    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_OR_EXPIRED_TOKEN = "INVALID_OR_EXPIRED_TOKEN"

    @property
    def message(self) -> str:
        if self is AuthFailure.INVALID_CREDENTIALS:
            return "Invalid credentials"
        return "Invalid or expired refresh token."


class ConfigurationError(RuntimeError):
    """Signing key or another required setting is missing. Fatal."""


class PersistenceError(RuntimeError):
    """The backing store failed. Transient; safe to retry."""


class RegistrationError(ValueError):
    def __init__(self, code: str, message: str, violations: list[str] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.violations = violations or []
