"""
Module: inventory_ledger.db.engine
Responsibility: SQLAlchemy engine lifecycle, session factory and
    transactional scopes for the ledger.  ``LedgerDatabase`` is the
    repository handle injected into every service; there is no module-level
    engine.
Architecture position: Ledger > DB.  May import from db/ and models/ (for
    create_tables).  MUST NOT import from services/ or selectors/.

Invariants enforced:
    - unit_of_work() is all-or-nothing: commit on normal exit, rollback on
      any exception (including timeouts), so a failed operation leaves the
      ledger exactly as if it had not been attempted.
    - PostgreSQL sessions run at READ COMMITTED with explicit row locks
      (SELECT ... FOR UPDATE) for writes; read_scope() upgrades to
      REPEATABLE READ so multi-statement reports see one snapshot.
    - SQLite connections share one busy timeout, and units of work are
      serialized in-process by a single write lock so two deferred
      transactions never race to upgrade the file lock.
    - SQLite transactions are begun explicitly, so read_scope() holds one
      shared lock and every statement in it sees the same committed state.

Failure modes:
    - DatabaseNotOpenError if a scope is requested before open() or after
      close().
    - StoreUnavailableError / LockTimeoutError when the driver fails inside
      a scope (the original exception is chained).
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from inventory_ledger.exceptions import (
    DatabaseNotOpenError,
    LockTimeoutError,
    StoreUnavailableError,
)
from inventory_ledger.logging_config import get_logger

logger = get_logger("db.engine")

# PostgreSQL lock_not_available / query_canceled (lock_timeout, statement_timeout)
_LOCK_TIMEOUT_SQLSTATES = frozenset({"55P03", "57014"})


def _is_lock_timeout(exc: DBAPIError) -> bool:
    sqlstate = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
    if sqlstate in _LOCK_TIMEOUT_SQLSTATES:
        return True
    return "database is locked" in str(exc.orig).lower()


class LedgerDatabase:
    """
    Injected database handle with an explicit open/close lifecycle.

    Contract:
        Construct with a URL, call ``open()`` once, hand the instance to the
        services that need it, and call ``close()`` at shutdown.  Usable as
        a context manager.

    Guarantees:
        - ``unit_of_work()`` yields a session inside one database
          transaction and commits or rolls back as a whole.
        - Driver errors leaving a scope are translated into the ledger's
          InfrastructureError family; ledger errors pass through untouched.

    Non-goals:
        - No automatic retry of failed units of work.
        - No schema migration; ``create_tables()`` is for fresh databases.
    """

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        pool_size: int = 20,
        max_overflow: int = 10,
        pool_timeout: float = 30,
        pool_recycle: int = 1800,
        lock_timeout_seconds: float = 10,
        sqlite_busy_timeout_seconds: float = 30,
    ):
        self.database_url = database_url
        self.echo = echo
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.pool_timeout = pool_timeout
        self.pool_recycle = pool_recycle
        self.lock_timeout_seconds = lock_timeout_seconds
        self.sqlite_busy_timeout_seconds = sqlite_busy_timeout_seconds
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None
        self._sqlite_write_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> "LedgerDatabase":
        """Build an (unopened) database from LedgerSettings."""
        return cls(
            settings.database_url,
            echo=settings.echo,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_timeout=settings.pool_timeout_seconds,
            lock_timeout_seconds=settings.lock_timeout_seconds,
            sqlite_busy_timeout_seconds=settings.sqlite_busy_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> "LedgerDatabase":
        """
        Create the engine and session factory.  Idempotent.

        Postconditions: ``is_open`` is True and sessions can be created.
        """
        if self._engine is not None:
            return self

        if self.database_url.startswith("sqlite"):
            engine = create_engine(
                self.database_url,
                echo=self.echo,
                connect_args={
                    "check_same_thread": False,
                    "timeout": self.sqlite_busy_timeout_seconds,
                },
            )
            event.listen(engine, "connect", _configure_sqlite_connection)
            event.listen(engine, "begin", _begin_sqlite_transaction)
        else:
            engine = create_engine(
                self.database_url,
                echo=self.echo,
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_pre_ping=True,
                pool_timeout=self.pool_timeout,
                pool_recycle=self.pool_recycle,
                isolation_level="READ COMMITTED",
            )

        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

        logger.info(
            "database_opened",
            extra={
                "dialect": engine.dialect.name,
                "pool_size": self.pool_size,
                "echo": self.echo,
            },
        )
        return self

    def close(self) -> None:
        """Dispose the engine and release all pooled connections.  Idempotent."""
        if self._engine is None:
            return
        dialect = self._engine.dialect.name
        self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("database_closed", extra={"dialect": dialect})

    def __enter__(self) -> "LedgerDatabase":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise DatabaseNotOpenError()
        return self._engine

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    @property
    def is_postgres(self) -> bool:
        return self.dialect_name == "postgresql"

    def session(self) -> Session:
        """Return a new, caller-managed session."""
        if self._session_factory is None:
            raise DatabaseNotOpenError()
        return self._session_factory()

    # ------------------------------------------------------------------
    # Scopes
    # ------------------------------------------------------------------

    @contextmanager
    def unit_of_work(self, operation: str = "unit_of_work") -> Generator[Session, None, None]:
        """
        Provide a transactional scope around one ledger mutation.

        Postconditions: On normal exit the session is committed and closed.
            On exception it is rolled back and closed, and the exception is
            re-raised (driver errors translated, see module docstring).

        Usage:
            with database.unit_of_work("transfer") as session:
                ...
        """
        write_lock = self._acquire_write_lock(operation)
        session = self.session()
        logger.debug("transaction_started", extra={"operation": operation})
        try:
            if self.is_postgres:
                # Bounds every row-lock wait inside this transaction
                timeout_ms = int(self.lock_timeout_seconds * 1000)
                session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))
            yield session
            session.commit()
            logger.debug("transaction_committed", extra={"operation": operation})
        except DBAPIError as exc:
            session.rollback()
            logger.warning(
                "transaction_rolled_back",
                extra={"operation": operation, "reason": "store_error"},
                exc_info=True,
            )
            if _is_lock_timeout(exc):
                raise LockTimeoutError([], self.lock_timeout_seconds) from exc
            raise StoreUnavailableError(operation, str(exc.orig)) from exc
        except Exception as exc:
            session.rollback()
            logger.debug(
                "transaction_rolled_back",
                extra={"operation": operation, "reason": type(exc).__name__},
            )
            raise
        finally:
            session.close()
            if write_lock is not None:
                write_lock.release()

    def _acquire_write_lock(self, operation: str) -> threading.Lock | None:
        if self.dialect_name != "sqlite":
            return None
        if not self._sqlite_write_lock.acquire(timeout=self.sqlite_busy_timeout_seconds):
            logger.warning(
                "sqlite_write_lock_timeout",
                extra={"operation": operation},
            )
            raise LockTimeoutError([], self.sqlite_busy_timeout_seconds)
        return self._sqlite_write_lock

    @contextmanager
    def read_scope(self) -> Generator[Session, None, None]:
        """
        Provide a read-only scope for selectors.

        Every statement in the scope sees the same committed snapshot:
        REPEATABLE READ on PostgreSQL, one explicit transaction on SQLite.
        Nothing is ever committed.
        """
        session = self.session()
        try:
            if self.is_postgres:
                session.connection(
                    execution_options={"isolation_level": "REPEATABLE READ"}
                )
            yield session
        except DBAPIError as exc:
            raise StoreUnavailableError("read", str(exc.orig)) from exc
        finally:
            session.rollback()
            session.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def create_tables(self) -> None:
        """Create all ledger tables (no-op for existing ones)."""
        from inventory_ledger.db.base import Base
        import inventory_ledger.models  # noqa: F401  registers tables on Base

        Base.metadata.create_all(self.engine)
        logger.info(
            "tables_created",
            extra={"tables": sorted(Base.metadata.tables)},
        )

    def drop_tables(self) -> None:
        """Drop all ledger tables. Use with caution - primarily for testing."""
        from inventory_ledger.db.base import Base
        import inventory_ledger.models  # noqa: F401

        Base.metadata.drop_all(self.engine)


def _configure_sqlite_connection(dbapi_connection, connection_record):
    # pysqlite defers BEGIN until the first write; take over transaction
    # control so a read scope is one snapshot.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_sqlite_transaction(connection):
    connection.exec_driver_sql("BEGIN")
