"""
Database engine and session management for the flight record store.

One SQLite file holds monitored airports, recipients, tracked flights and
the bounded history tables. The store is the only writer: it flushes a
poll's batch (history rows, trend point, poll log, tracked state) in one
transaction, and registry edits from API threads go through the same
store lock. Any SQLAlchemy URL works via DATABASE_URL; the pragmas below
only apply to SQLite.
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session

from delaywatch.config import config

# Milliseconds a flush waits on a lock held by another connection
SQLITE_BUSY_TIMEOUT_MS = 5000


class Base(DeclarativeBase):
    """Declarative base shared by monitoring and history tables."""
    pass


engine_kwargs = {
    'echo': config.debug,  # Log SQL in debug mode
}

if config.database.is_sqlite:
    # Background poll thread and Flask request threads share the pool
    engine_kwargs['connect_args'] = {'check_same_thread': False}

engine = create_engine(config.database.url, **engine_kwargs)


if config.database.is_sqlite:
    @event.listens_for(engine, 'connect')
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """
        Tune each new SQLite connection for the poll/report workload.

        - journal_mode=WAL: a report reading flight_records never blocks
          the poll cycle's batch insert and trim, and vice versa
        - synchronous=NORMAL: a poll batch is synced at WAL checkpoints
          rather than on every commit
        - busy_timeout: a flush queued behind another writer waits
          instead of failing with "database is locked"
        """
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA journal_mode=WAL')
        cursor.execute('PRAGMA synchronous=NORMAL')
        cursor.execute(f'PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}')
        cursor.close()


# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,  # Rows are read once at load, then detached
)


@contextmanager
def get_session(factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    Transaction scope for one store flush.

    Usage:
        with get_session(store_factory) as session:
            session.execute(insert(FlightHistory), rows)

    Commits on success, rolls back on any exception, always closes.
    A flush therefore lands whole or not at all.
    """
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind: Optional[Engine] = None) -> None:
    """
    Create the monitoring and history tables if missing.

    A fresh database starts empty, which the store treats as first run.
    """
    Base.metadata.create_all(bind=bind or engine)
