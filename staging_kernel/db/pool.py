"""
Module: staging_kernel.db.pool
Responsibility: The process-wide store pool.  Owns the SQLAlchemy engine
    (and therefore the bounded connection pool), hands out scoped sessions
    and connections, and tears everything down exactly once.
Architecture position: Kernel > DB.  May import from db/base.py and
    models/ (for create_tables only).  MUST NOT import from services/.

Invariants enforced:
    - Lazy init-once: the engine is created on first acquisition (or an
      explicit initialize()) and never recreated.
    - Scoped acquisition: every session_scope()/connection_scope() commits
      on normal exit, rolls back on exception, and releases its connection
      on every exit path.
    - Teardown-once: close() disposes the engine once; later calls are
      no-ops and later acquisitions raise StoreNotInitializedError.
    - The pool is an injected object, not a module global, so tests hand
      the services an in-memory SQLite pool.

Failure modes:
    - PersistenceError when the store rejects a statement, a commit fails,
      or the pool wait (pool_timeout) expires.
    - StoreNotInitializedError when used after close().
"""

import atexit
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from staging_kernel.exceptions import (
    PersistenceError,
    StagingError,
    StoreNotInitializedError,
)
from staging_kernel.logging_config import get_logger

logger = get_logger("db.pool")

_thick_mode_lock = threading.Lock()
_thick_mode_attempted = False


def init_oracle_thick_mode(lib_dir: str | None) -> bool:
    """
    Switch python-oracledb to Thick mode (needed for older password verifiers).

    Called at most once per process.  "Already initialized" is accepted;
    any other failure leaves the driver in Thin mode with a warning.

    Returns:
        True if Thick mode is active after the call.
    """
    global _thick_mode_attempted
    with _thick_mode_lock:
        if _thick_mode_attempted:
            return False
        _thick_mode_attempted = True

    import oracledb

    try:
        oracledb.init_oracle_client(lib_dir=lib_dir)
    except oracledb.Error as exc:
        if "already" in str(exc).lower():
            return True
        logger.warning(
            "oracle_thick_mode_unavailable",
            extra={"lib_dir": lib_dir, "detail": str(exc)},
        )
        return False
    logger.info("oracle_thick_mode_initialized", extra={"lib_dir": lib_dir})
    return True


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class StorePool:
    """
    Shared resource manager for the staging store.

    Contract:
        Constructed once at process start from a database URL and pool
        sizing; passed to every component that touches the store.

    Guarantees:
        - pool_min connections are kept; up to pool_max are opened under
          load (pool_max - pool_min overflow).  pool_increment has no
          SQLAlchemy counterpart and is recorded for operators only.
        - A caller blocked on an exhausted pool waits at most pool_timeout
          seconds, then gets PersistenceError.

    Non-goals:
        - No retries, no cross-request serialization.  Concurrency
          correctness is the store's job.
    """

    def __init__(
        self,
        url: str | URL,
        *,
        pool_min: int = 2,
        pool_max: int = 10,
        pool_increment: int = 1,
        pool_timeout: int = 30,
        pool_pre_ping: bool = True,
        echo: bool = False,
        oracle_client_lib_dir: str | None = None,
    ):
        self.url = make_url(url)
        self.pool_min = pool_min
        self.pool_max = pool_max
        self.pool_increment = pool_increment
        self.pool_timeout = pool_timeout
        self.pool_pre_ping = pool_pre_ping
        self.echo = echo
        self.oracle_client_lib_dir = oracle_client_lib_dir

        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None
        self._closed = False
        self._shutdown_registered = False
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def dialect_name(self) -> str:
        return self.url.get_backend_name()

    def initialize(self) -> Engine:
        """
        Create the engine if it does not exist yet and return it.

        Safe to call from several threads; only the first call builds.

        Raises:
            StoreNotInitializedError: If the pool was closed.
            PersistenceError: If the engine cannot be created.
        """
        with self._lock:
            if self._closed:
                raise StoreNotInitializedError()
            if self._engine is not None:
                return self._engine

            if self.dialect_name == "oracle" and self.oracle_client_lib_dir:
                init_oracle_thick_mode(self.oracle_client_lib_dir)

            try:
                engine = create_engine(self.url, echo=self.echo, **self._engine_kwargs())
            except (SQLAlchemyError, ImportError) as exc:
                raise PersistenceError("initialize", str(exc)) from exc

            if self.dialect_name == "sqlite":
                event.listen(engine, "connect", _enable_sqlite_foreign_keys)

            self._engine = engine
            self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

        logger.info(
            "pool_initialized",
            extra={
                "dialect": self.dialect_name,
                "pool_min": self.pool_min,
                "pool_max": self.pool_max,
                "pool_increment": self.pool_increment,
                "pool_timeout": self.pool_timeout,
            },
        )
        return engine

    def _engine_kwargs(self) -> dict:
        if self.dialect_name == "sqlite" and self.url.database in (None, "", ":memory:"):
            # One shared connection, otherwise each checkout sees an empty database
            return {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        # QueuePool reads pool_size=0 as "unbounded"
        pool_size = max(self.pool_min, 1)
        return {
            "poolclass": QueuePool,
            "pool_size": pool_size,
            "max_overflow": max(self.pool_max - pool_size, 0),
            "pool_timeout": self.pool_timeout,
            "pool_pre_ping": self.pool_pre_ping,
        }

    def close(self) -> None:
        """Dispose the engine and release every pooled connection.  Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            engine, self._engine = self._engine, None
            self._session_factory = None

        if engine is not None:
            engine.dispose()
        logger.info("pool_closed", extra={"dialect": self.dialect_name})

    def register_shutdown(self) -> None:
        """Close the pool when the interpreter exits."""
        with self._lock:
            if self._shutdown_registered:
                return
            self._shutdown_registered = True
        atexit.register(self.close)

    # ------------------------------------------------------------------
    # Scoped acquisition
    # ------------------------------------------------------------------

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Provide a transactional ORM session.

        Postconditions: On normal exit the session is committed and closed.
            On exception it is rolled back and closed, and the exception
            propagates (store errors as PersistenceError).
        """
        self.initialize()
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.warning("transaction_rolled_back", exc_info=True)
            raise PersistenceError("transaction", str(exc)) from exc
        except Exception as exc:
            session.rollback()
            if not isinstance(exc, StagingError):
                logger.warning("transaction_rolled_back", exc_info=True)
            raise
        finally:
            session.close()

    @contextmanager
    def connection_scope(self) -> Iterator[Connection]:
        """
        Provide a Core connection inside one transaction.

        Same commit/rollback/release guarantees as session_scope().
        """
        engine = self.initialize()
        try:
            with engine.begin() as connection:
                yield connection
        except SQLAlchemyError as exc:
            logger.warning("transaction_rolled_back", exc_info=True)
            raise PersistenceError("execute", str(exc)) from exc

    # ------------------------------------------------------------------
    # Schema (dev / test)
    # ------------------------------------------------------------------

    def create_tables(self) -> None:
        """Create the staging and interface tables if they do not exist."""
        from staging_kernel.db.base import Base
        from staging_kernel.models import staging  # noqa: F401  (registers tables)

        Base.metadata.create_all(self.initialize())

    def drop_tables(self) -> None:
        """Drop all tables. Use with caution - primarily for testing."""
        from staging_kernel.db.base import Base
        from staging_kernel.models import staging  # noqa: F401

        Base.metadata.drop_all(self.initialize())
