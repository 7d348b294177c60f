"""Database engine and session management.

The backend is any SQLAlchemy URL (``database_url`` in config.yaml or the
DASHBOARD_DATABASE_URL environment variable). SQLite files get foreign keys
enabled so shift rows follow their shopper on delete.
"""
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import APP_CONFIG, dashboard_logger
from data_manager.models import Base

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def configure_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    """(Re)create the module engine. Tests call this with a temporary URL."""
    global _engine, _session_factory

    url = url or APP_CONFIG['database_url']
    kwargs = {'echo': echo}
    if url in ('sqlite://', 'sqlite:///:memory:'):
        # One shared connection, otherwise every session sees an empty DB
        kwargs['connect_args'] = {'check_same_thread': False}
        kwargs['poolclass'] = StaticPool
    elif url.startswith('sqlite'):
        kwargs['connect_args'] = {'check_same_thread': False}

    engine = create_engine(url, **kwargs)

    if url.startswith('sqlite'):
        # pysqlite defers BEGIN on its own, which breaks SAVEPOINT (used for
        # per-row sync writes and shift restore); emit BEGIN ourselves.
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            dbapi_conn.isolation_level = None
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN")

    if _engine is not None:
        _engine.dispose()
    _engine = engine
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    return engine


def get_engine() -> Engine:
    if _engine is None:
        configure_engine()
    return _engine


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Context manager for database sessions with auto-commit/rollback."""
    if _session_factory is None:
        configure_engine()
    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Optional[Engine] = None) -> None:
    """Create all tables (for initial setup or testing)."""
    Base.metadata.create_all(engine or get_engine())
    dashboard_logger.info("Database tables created.")


def check_connection() -> bool:
    with get_engine().connect() as conn:
        conn.execute(text("SELECT 1"))
    return True
