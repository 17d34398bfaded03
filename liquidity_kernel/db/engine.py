"""
Module: liquidity_kernel.db.engine
Responsibility: SQLAlchemy engine construction, table management, and the
    transactional scope every public pool call runs in.
Architecture position: Kernel > DB.  May import from db/base.py and
    db/immutability.py.  create_tables imports the kernel models so that
    Base.metadata knows every table.

Invariants enforced:
    - ATOMIC_CALLS: session_scope() commits on success and rolls back on any
      exception, so no public pool call is partially applied.
    - SQLite in-memory databases share one connection (StaticPool) so that
      every session on the engine sees the same data.

Engines and session factories are owned by the caller (LiquidityPool takes
a session factory); this module keeps no process-wide state.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from liquidity_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
    pool_pre_ping: bool = True,
) -> Engine:
    """
    Create an engine for SQLite or PostgreSQL.

    SQLite connections get foreign keys enabled; in-memory SQLite uses a
    single shared connection.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    else:
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            isolation_level="READ COMMITTED",
        )

    logger.info(
        "engine_initialized",
        extra={"dialect": engine.dialect.name, "echo": echo},
    )
    return engine


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed.  The exception
        is re-raised to the caller.

    Usage:
        with session_scope(factory) as session:
            service = PoolService(session, ...)
            service.refresh(actor)
    """
    session = session_factory()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine) -> None:
    """Create all kernel tables and register ORM immutability listeners."""
    from liquidity_kernel.db.base import Base
    from liquidity_kernel.db.immutability import register_immutability_listeners
    from liquidity_kernel.models import import_all_models

    import_all_models()
    register_immutability_listeners()
    Base.metadata.create_all(engine)


def drop_tables(engine: Engine) -> None:
    """
    Drop all tables. Use with caution - primarily for testing.
    """
    from liquidity_kernel.db.base import Base

    Base.metadata.drop_all(engine)
