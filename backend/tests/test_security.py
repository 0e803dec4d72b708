from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from jose import JWTError, jwt

from sparkly.core import config as app_config
from sparkly.core import security
from sparkly.core.errors import ConfigurationError
from sparkly.core.security import (
    PasswordCheck,
    check_password,
    create_access_token,
    decode_access_token,
    generate_refresh_token,
    hash_password,
    hash_refresh_token,
)


def _user(**overrides):
    data = {"id": "u-123", "email": "alice@x.com", "username": "alice", "role": "user"}
    data.update(overrides)
    return SimpleNamespace(**data)


# -------------------------
# Password hashing
# -------------------------
def test_hash_password_is_salted_and_not_plaintext():
    h1 = hash_password("Secret123!")
    h2 = hash_password("Secret123!")
    assert h1 != h2
    assert "Secret123!" not in h1
    assert h1.startswith("$argon2")


def test_check_password_match_and_mismatch():
    digest = hash_password("Secret123!")
    assert check_password(digest, "Secret123!") is PasswordCheck.MATCH
    assert check_password(digest, "wrong") is PasswordCheck.MISMATCH


def test_check_password_never_raises_on_garbage_digest():
    assert check_password("not-a-real-hash", "Secret123!") is PasswordCheck.MISMATCH
    assert check_password("", "Secret123!") is PasswordCheck.MISMATCH
    assert check_password(hash_password("x1234567"), "") is PasswordCheck.MISMATCH


def test_check_password_reports_needs_rehash(monkeypatch):
    digest = hash_password("Secret123!")
    monkeypatch.setattr(security.pwd_context, "needs_update", lambda _h: True)
    assert check_password(digest, "Secret123!") is PasswordCheck.NEEDS_REHASH
    # A wrong password is still a mismatch, never NEEDS_REHASH.
    assert check_password(digest, "wrong") is PasswordCheck.MISMATCH


# -------------------------
# Access tokens
# -------------------------
def test_access_token_claims():
    now = datetime.now(timezone.utc).replace(microsecond=0)
    token = create_access_token(_user(), now=now)
    claims = decode_access_token(token)

    assert claims["sub"] == "u-123"
    assert claims["email"] == "alice@x.com"
    assert claims["name"] == "alice"
    assert claims["role"] == "user"
    assert claims["iss"] == app_config.settings.JWT_ISSUER
    assert claims["aud"] == app_config.settings.JWT_AUDIENCE
    assert claims["nbf"] == int(now.timestamp())
    assert claims["exp"] - claims["nbf"] == 15 * 60


def test_access_token_rejected_with_other_key():
    token = create_access_token(_user())
    with pytest.raises(JWTError):
        jwt.decode(token, "some-other-key", algorithms=["HS256"], options={"verify_aud": False})


def test_expired_access_token_rejected():
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    token = create_access_token(_user(), now=past)
    with pytest.raises(JWTError):
        decode_access_token(token)


def test_not_yet_valid_access_token_rejected():
    future = datetime.now(timezone.utc) + timedelta(minutes=10)
    token = create_access_token(_user(), now=future)
    with pytest.raises(JWTError):
        decode_access_token(token)


def test_audience_checked_only_when_enabled():
    app_config.settings.JWT_AUDIENCE = "sparkly-api"
    token = create_access_token(_user())

    app_config.settings.JWT_AUDIENCE = "someone-else"
    # Informational by default.
    assert decode_access_token(token)["sub"] == "u-123"

    app_config.settings.JWT_VALIDATE_AUDIENCE = True
    with pytest.raises(JWTError):
        decode_access_token(token)
    app_config.settings.JWT_AUDIENCE = "sparkly-api"


def test_minting_without_secret_is_configuration_error():
    app_config.settings.JWT_SECRET = "   "
    with pytest.raises(ConfigurationError):
        create_access_token(_user())


# -------------------------
# Refresh secrets
# -------------------------
def test_refresh_secret_has_64_random_bytes():
    raw = generate_refresh_token()
    assert len(base64.b64decode(raw)) == 64
    assert len({generate_refresh_token() for _ in range(50)}) == 50


def test_refresh_secret_is_stored_as_keyed_hash():
    raw = generate_refresh_token()
    digest = hash_refresh_token(raw)
    assert digest == hash_refresh_token(raw)
    assert raw not in digest
    assert len(digest) == 64

    app_config.settings.JWT_SECRET = "another-signing-key-for-tests-000000"
    assert hash_refresh_token(raw) != digest
