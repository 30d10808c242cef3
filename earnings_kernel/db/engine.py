"""
Module: earnings_kernel.db.engine
Responsibility: SQLAlchemy engine construction, session factories, and the
    transactional scope used by every SQL repository call.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from services/ or outer layers (create_tables takes the metadata
    owner implicitly through Base, which the ORM module registers on import).

Invariants enforced:
    - No module-level engine singleton: callers build an engine and inject
      the session factory into the repositories that need it.
    - PostgreSQL runs at READ COMMITTED with a pre-pinged QueuePool.  Atomic
      increments and conditional UPDATEs in the repositories provide the
      per-row guarantees; no table locks are taken.
    - SQLite (tests) runs on a single shared connection when in-memory.

Failure modes:
    - OperationalError / DBAPIError from the driver surface through
      session_scope() unchanged; repositories translate them into
      StoreUnavailableError.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from earnings_kernel.db.base import Base
from earnings_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def create_store_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Build a SQLAlchemy engine for the ledger store.

    Args:
        database_url: ``postgresql://...`` in production, ``sqlite://`` for tests.
        echo: If True, log all SQL statements.
        pool_size: Connections kept in the pool (PostgreSQL only).
        max_overflow: Max connections beyond pool_size (PostgreSQL only).
        pool_pre_ping: Test connections before use (PostgreSQL only).
        pool_timeout: Seconds to wait for a pooled connection (PostgreSQL only).
        pool_recycle: Seconds after which a connection is recycled (PostgreSQL only).
    """
    url = make_url(database_url)
    backend = url.get_backend_name()

    if backend == "sqlite":
        in_memory = url.database in (None, "", ":memory:")
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if in_memory else None,
        )
    else:
        engine = create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    logger.info(
        "engine_initialized",
        extra={"dialect": backend, "echo": echo},
    )
    return engine


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory bound to ``engine``; objects survive commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(
    session_factory: sessionmaker[Session],
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed.  The exception
        is re-raised to the caller.

    Usage:
        with session_scope(factory) as session:
            session.add(entity)
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
    """
    Create all tables registered on ``Base.metadata``.

    Preconditions: the ORM models module has been imported.
    """
    Base.metadata.create_all(engine)
    logger.info(
        "tables_created",
        extra={"table_count": len(Base.metadata.tables)},
    )


def drop_tables(engine: Engine) -> None:
    """Drop all ledger tables. FOR TESTING ONLY."""
    Base.metadata.drop_all(engine)
    logger.info("tables_dropped")
