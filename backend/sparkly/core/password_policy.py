from __future__ import annotations

from typing import List

from sparkly.core.config import settings

COMMON_WEAK_PASSWORDS = {
    "password",
    "password123",
    "123456",
    "123456789",
    "12345678",
    "qwerty",
    "abc123",
    "letmein",
    "111111",
    "iloveyou",
    "admin",
    "welcome",
    "monkey",
    "dragon",
    "football",
    "123123",
    "qwerty123",
    "trustno1",
    "passw0rd",
    "sunshine",
}


def _normalize(value: str | None) -> str:
    return (value or "").strip().lower()


def evaluate_password(
    password: str,
    *,
    email: str | None = None,
    username: str | None = None,
) -> List[str]:
    """
    Returns a list of violation codes if the password does not meet policy.
    """
    pw = password or ""
    violations: list[str] = []
    min_length = max(int(getattr(settings, "PASSWORD_MIN_LENGTH", 6) or 0), 1)

    if not pw.strip():
        violations.append("empty")
    if len(pw) < min_length:
        violations.append("min_length")

    normalized_pw = pw.lower()

    email_norm = _normalize(email)
    local_part = email_norm.split("@")[0] if email_norm else ""
    if local_part and len(local_part) >= 3 and local_part in normalized_pw:
        violations.append("contains_email")

    username_norm = _normalize(username)
    if username_norm and len(username_norm) >= 3 and username_norm in normalized_pw:
        violations.append("contains_name")

    if normalized_pw in COMMON_WEAK_PASSWORDS:
        violations.append("denylist_common")

    return violations
