"""
quote_kernel.db.engine -- Engine and session factory.

Responsibility:
    Holds the process-wide engine and session factory and offers a
    commit-or-rollback ``session_scope`` for scripts and setup code.  The
    workflow facade takes ``get_session_factory()`` and manages its own
    transactions.

Architecture position:
    Kernel > DB.  Imports db/base.py only (models are imported lazily by
    create_tables/drop_tables so their tables are registered).

Backends:
    - PostgreSQL in production, READ COMMITTED.  Racing approvals are
      settled by conditional ``UPDATE ... WHERE status = 'pending'``, which
      PostgreSQL re-checks once it holds the row lock.
    - SQLite for tests.  Foreign keys are switched on per connection and no
      pool tuning is applied.

Failure modes:
    - RuntimeError from any accessor called before init_engine_from_url().
"""

from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from quote_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."


def _postgres_options(
    pool_size: int,
    max_overflow: int,
    pool_timeout: int,
    pool_recycle: int,
) -> dict[str, Any]:
    return {
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_timeout": pool_timeout,
        "pool_recycle": pool_recycle,
        "isolation_level": "READ COMMITTED",
    }


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_engine_from_url(
    database_url: str | URL,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine and session factory for ``database_url``.

    A second call replaces the first.  Pool arguments only apply to
    PostgreSQL.  Sessions are created with ``expire_on_commit=False`` so
    DTOs built inside a unit of work stay readable after it commits.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    dialect = url.get_backend_name()
    options: dict[str, Any] = {"echo": echo, "pool_pre_ping": pool_pre_ping}
    if dialect == "postgresql":
        options.update(
            _postgres_options(pool_size, max_overflow, pool_timeout, pool_recycle)
        )

    _engine = create_engine(url, **options)
    if dialect == "sqlite":
        event.listen(_engine, "connect", _enable_sqlite_foreign_keys)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": dialect, "database": url.database, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory the workflow facade opens one session per action from."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Commit on normal exit, roll back and re-raise on error.

    Usage::

        with session_scope() as session:
            install_routes(session, load_approval_routes())
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every kernel table and index that does not exist yet."""
    from quote_kernel.db.base import Base
    import quote_kernel.models  # noqa: F401

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop every kernel table.  Tests only."""
    from quote_kernel.db.base import Base
    import quote_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
