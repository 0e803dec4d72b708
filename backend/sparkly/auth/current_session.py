# sparkly/auth/current_session.py
"""
Identity of the caller, built from an access token that has ALREADY been
verified (signature, exp, nbf) by the bearer dependency.

CurrentSession does no I/O and no validation. Route handlers receive it as
an explicit parameter instead of reading ambient request state.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class CurrentSession:
    """
    Attributes:
        user_id: ``sub`` claim, the internal user id.
        email: ``email`` claim.
        username: ``name`` claim.
        role: ``role`` claim, a single tag such as ``"user"`` or ``"admin"``.
        is_authenticated: True when built from a verified token.
    """

    user_id: str | None = None
    email: str | None = None
    username: str | None = None
    role: str | None = None
    is_authenticated: bool = False

    @classmethod
    def unauthenticated(cls) -> CurrentSession:
        return cls()

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> CurrentSession:
        sub = claims.get("sub")
        if not sub:
            return cls.unauthenticated()
        return cls(
            user_id=str(sub),
            email=claims.get("email"),
            username=claims.get("name"),
            role=claims.get("role"),
            is_authenticated=True,
        )

    def is_in_role(self, role: str) -> bool:
        if not self.is_authenticated or not self.role:
            return False
        return self.role.lower() == (role or "").lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "username": self.username,
            "role": self.role,
            "is_authenticated": self.is_authenticated,
        }
