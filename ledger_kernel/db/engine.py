"""
Engine and session lifecycle, plus the unit-of-work helpers.

One process talks to one ledger database. ``init_engine_from_url`` sets it
up; services never see the URL, only the Session they are handed.

SQLite (tests in memory, the desktop install on a file) gets
foreign keys switched on and SQLAlchemy-managed BEGIN so SAVEPOINTs work
for the document sweep. In-memory URLs share a single connection.
PostgreSQL gets a pre-pinged QueuePool at READ COMMITTED; counters that
must serialize lock their row with ``SELECT ... FOR UPDATE``.
"""

import atexit
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from ledger_kernel.exceptions import PersistenceError
from ledger_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

T = TypeVar("T")

_IN_MEMORY = (None, "", ":memory:")


@dataclass(frozen=True)
class PoolSettings:
    """QueuePool options; ignored for SQLite."""

    pool_size: int = 10
    max_overflow: int = 10
    pool_pre_ping: bool = True
    pool_timeout: int = 30
    pool_recycle: int = 1800


class _Registry:
    engine: Engine | None = None
    session_factory: sessionmaker[Session] | None = None


def _sqlite_connection_setup(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, _record):
        # pysqlite would otherwise issue its own BEGIN and break SAVEPOINT
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, echo: bool = False, pool: PoolSettings | None = None) -> Engine:
    """Engine for ``database_url``; does not touch the process-wide registry."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            isolation_level="READ COMMITTED",
            **asdict(pool or PoolSettings()),
        )

    options: dict = {"connect_args": {"check_same_thread": False}}
    if url.database in _IN_MEMORY:
        options["poolclass"] = StaticPool
    engine = create_engine(url, echo=echo, **options)
    _sqlite_connection_setup(engine)
    return engine


def init_engine_from_url(database_url: str, echo: bool = False, pool: PoolSettings | None = None) -> Engine:
    """Build the process-wide engine and session factory, replacing any previous ones."""
    reset_engine()
    engine = build_engine(database_url, echo=echo, pool=pool)
    _Registry.engine = engine
    _Registry.session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": engine.dialect.name, "echo": echo})
    return engine


def _require(value):
    if value is None:
        raise RuntimeError("No ledger database configured; call init_engine_from_url() first")
    return value


def get_engine() -> Engine:
    return _require(_Registry.engine)


def get_session_factory() -> sessionmaker[Session]:
    return _require(_Registry.session_factory)


def get_session() -> Session:
    return get_session_factory()()


def reset_engine() -> None:
    """Dispose the process-wide engine (pooled connections included) and forget it."""
    if _Registry.engine is not None:
        _Registry.engine.dispose()
    _Registry.engine = None
    _Registry.session_factory = None


atexit.register(reset_engine)


@contextmanager
def session_scope(session_factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """
    One unit of work: commit when the block completes, roll back if it raises.

    The session is closed either way and the exception reaches the caller
    unchanged.
    """
    session = (session_factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def run_in_transaction(
    operation: Callable[[Session], T],
    *,
    session_factory: sessionmaker[Session] | None = None,
    max_attempts: int = 3,
    backoff_seconds: float = 0.05,
    name: str = "transaction",
) -> T:
    """
    ``operation(session)`` in its own session_scope, retried on OperationalError.

    Only the database's transient failures are retried (lock timeouts,
    "database is locked", dropped connections). Ledger errors and anything
    else propagate from the first attempt. Each retry waits
    ``backoff_seconds * attempt``.

    Raises:
        PersistenceError: every attempt hit an OperationalError.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 0
    while True:
        attempt += 1
        try:
            with session_scope(session_factory) as session:
                return operation(session)
        except OperationalError as exc:
            if attempt == max_attempts:
                logger.error("transaction_retries_exhausted", extra={"operation": name, "attempts": attempt})
                raise PersistenceError(name, attempt, str(exc.orig)) from exc
            logger.warning(
                "transaction_retry",
                extra={"operation": name, "attempt": attempt, "max_attempts": max_attempts},
            )
            time.sleep(backoff_seconds * attempt)


def _metadata():
    from ledger_kernel.db.base import Base
    import ledger_kernel.models  # noqa: F401  (registers every table)

    return Base.metadata


def create_tables(engine: Engine | None = None) -> None:
    """Create any missing ledger tables; existing ones are left alone."""
    _metadata().create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    _metadata().drop_all(engine or get_engine())
