import logging
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from sparkly.core.config import settings
from sparkly.core.errors import PersistenceError

logger = logging.getLogger(__name__)


def _build_engine(url: str):
    if url.startswith("sqlite"):
        eng = create_engine(url, connect_args={"check_same_thread": False})

        # SQLite needs foreign keys switched on for ON DELETE CASCADE.
        @event.listens_for(eng, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return eng

    return create_engine(
        url,
        pool_pre_ping=True,   # checks stale connections
    )


engine = _build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def persistence_guard(db: Session, action: str) -> Iterator[None]:
    """
    Roll back and re-raise store failures as PersistenceError so callers can
    tell "database down" apart from an authentication failure.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Persistence failure during %s", action)
        raise PersistenceError(f"Persistence failure during {action}") from exc
