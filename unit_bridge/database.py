"""Database connection and session management."""

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from . import config

logger = logging.getLogger(__name__)

Base = declarative_base()


def _install_sqlite_hooks(engine: Engine) -> None:
    """Serialize SQLite writers and enforce foreign keys.

    pysqlite defers BEGIN until the first write, which lets two transactions
    read the same snapshot and then race. Taking the write lock up front makes
    each transaction see the previous one's committed state.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _install_postgres_timeouts(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute(f"SET statement_timeout = '{config.STATEMENT_TIMEOUT_MS}ms'")
        cursor.execute(f"SET lock_timeout = '{config.LOCK_TIMEOUT_MS}ms'")
        cursor.execute(
            "SET idle_in_transaction_session_timeout = "
            f"'{config.IDLE_IN_TRANSACTION_TIMEOUT_MS}ms'"
        )
        cursor.close()


def create_bridge_engine(url: str, **kwargs) -> Engine:
    """Create an engine with the per-backend hooks the occupancy ledger relies on."""
    backend = make_url(url).get_backend_name()

    if backend == "sqlite":
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("timeout", config.SQLITE_BUSY_TIMEOUT)
        connect_args.setdefault("check_same_thread", False)
        engine = create_engine(url, echo=False, connect_args=connect_args, **kwargs)
        _install_sqlite_hooks(engine)
    else:
        engine = create_engine(url, echo=False, pool_pre_ping=True, **kwargs)
        if backend == "postgresql" and config.APPLY_SESSION_TIMEOUTS:
            _install_postgres_timeouts(engine)

    logger.debug(f"Created {backend} engine")
    return engine


engine = create_bridge_engine(config.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency for getting database sessions."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Commit the session's current transaction on success, roll back on any error.

    Reads issued earlier on the same session belong to the same transaction.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db(bind: Engine | None = None) -> None:
    """Create all tables."""
    # Models must be registered on Base.metadata before create_all
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
