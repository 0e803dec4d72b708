import os

# Settings are read at import time; pin a test environment before importing sparkly.
os.environ.setdefault("ENV", "test")
os.environ.setdefault("JWT_SECRET", "test_jwt_secret_that_is_long_enough_123")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sparkly.core.base import Base
from sparkly.core import config as app_config
from sparkly.core.security import hash_password

# Import models so they register with SQLAlchemy metadata.
from sparkly.models.user import User
from sparkly.models.refresh_token import RefreshToken  # noqa: F401

from sparkly.core.database import get_db

ALICE_PASSWORD = "Secret123!"
ADMIN_PASSWORD = "Adm1n-Passw0rd!"


def _enable_sqlite_fks(engine) -> None:
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture(scope="session")
def db_engine():
    # In-memory SQLite for fast, isolated tests.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_sqlite_fks(engine)
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def db_session(db_engine):
    # The in-memory DB persists across tests (StaticPool). Reset schema per test.
    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def file_sessionmaker(tmp_path):
    """
    File-backed SQLite so several sessions (and threads) get their own
    connections, like separate service instances sharing one database.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'sparkly-test.db'}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )
    _enable_sqlite_fks(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


@pytest.fixture(autouse=True)
def _reset_mutable_settings():
    """
    Tests sometimes tweak global settings (app_config.settings.*). Because that object is
    process-global, we must restore values after each test to avoid cross-test coupling.
    """
    keys = [
        "JWT_SECRET",
        "JWT_ISSUER",
        "JWT_AUDIENCE",
        "JWT_VALIDATE_ISSUER",
        "JWT_VALIDATE_AUDIENCE",
        "ACCESS_TOKEN_EXPIRE_MINUTES",
        "REFRESH_TOKEN_EXPIRE_DAYS",
        "REFRESH_TOKEN_ROTATION",
        "PASSWORD_MIN_LENGTH",
    ]
    original = {k: getattr(app_config.settings, k) for k in keys}
    try:
        yield
    finally:
        for k, v in original.items():
            setattr(app_config.settings, k, v)


def make_user(db, *, username: str, email: str, password: str, role: str = "user") -> User:
    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def users(db_session):
    """
    alice (role "user") and root (role "admin").
    """
    alice = make_user(db_session, username="alice", email="alice@x.com", password=ALICE_PASSWORD)
    admin = make_user(db_session, username="root", email="root@x.com", password=ADMIN_PASSWORD, role="admin")
    return alice, admin


@pytest.fixture()
def alice(users):
    return users[0]


@pytest.fixture()
def app(db_session):
    import sparkly.main as main

    fastapi_app = main.app

    def override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app, users):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def seeded_refresh_token(file_sessionmaker):
    """Raw secret of an active refresh token owned by alice in the file-backed DB."""
    from sparkly.core.security import generate_refresh_token
    from sparkly.services.refresh_tokens import create_refresh_token, refresh_token_expiry

    db = file_sessionmaker()
    try:
        user = make_user(db, username="alice", email="alice@x.com", password=ALICE_PASSWORD)
        raw = generate_refresh_token()
        create_refresh_token(db, user.id, raw, refresh_token_expiry())
    finally:
        db.close()
    return raw
