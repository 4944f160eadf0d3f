"""
Database engine and session management for tempchat.
"""

from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from tempchat.core.errors import StoreUnavailable
from tempchat.core.logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()


def normalize_database_url(database_url: str) -> str:
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for ``database_url``.

    SQLite connections get foreign keys switched on so that deleting a room
    cascades to its messages. In-memory SQLite shares one connection so every
    session sees the same database.
    """
    database_url = normalize_database_url(database_url)

    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=False, **kwargs)

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(database_url, echo=False, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create the rooms and messages tables (and their indexes) if missing."""
    # Register the tables on Base.metadata
    from tempchat.models import tables  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("✓ Database tables ready")


@contextmanager
def session_scope(session_factory: sessionmaker):
    """
    Context manager for database sessions with automatic commit/rollback.

    Connection-level failures surface as StoreUnavailable; everything else
    (IntegrityError included) propagates unchanged for the caller to map.
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except (OperationalError, InterfaceError) as e:
        db.rollback()
        logger.error("Store unavailable: %s", e)
        raise StoreUnavailable("Store unavailable") from e
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
