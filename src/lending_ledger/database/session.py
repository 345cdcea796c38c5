"""
Database session management for the Lending Ledger.

Every borrow, return and loss is one unit of work: a single session whose
transaction either commits in full or is rolled back. ``session_scope`` is
the only place that commits.

Key considerations:
- Sessions are short-lived (one per operation)
- File-backed SQLite gets one connection per thread and a busy timeout, so
  a writer blocked by another writer waits a bounded time instead of hanging
- In-memory SQLite shares a single connection (StaticPool)
- Write units of work on file-backed SQLite open with BEGIN IMMEDIATE, so
  their reads and writes hold the database write lock together, across
  processes as well as threads
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .schema import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Manages database connections and sessions for the ledger.

    This class provides:
    - Engine creation tuned per backend
    - Session factory with explicit transactions
    - Schema initialization for development and tests
    """

    def __init__(self, database_url: str | None = None, busy_timeout: float | None = None):
        """
        Initialize the database manager.

        Args:
            database_url: SQLAlchemy database URL. If None, uses the configured URL.
            busy_timeout: Seconds SQLite waits on a locked database before
                raising. Defaults to the configured lock timeout.
        """
        config = get_config()
        if database_url is None:
            database_url = config.get_database_url()
            if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
                Path(database_url.removeprefix("sqlite:///")).parent.mkdir(
                    exist_ok=True, parents=True
                )
            logger.info("Using database at: %s", database_url)

        self.database_url = database_url
        self.busy_timeout = (
            busy_timeout if busy_timeout is not None else config.lock_timeout_seconds
        )
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        """
        Get or create the database engine.

        SQLite engines enable foreign keys on every connection so that
        ``ON DELETE SET NULL`` on loans behaves as on other backends.
        """
        if self._engine is None:
            if self.database_url.startswith("sqlite"):
                if not self.is_file_sqlite:
                    self._engine = create_engine(
                        self.database_url,
                        poolclass=StaticPool,
                        connect_args={"check_same_thread": False},
                        echo=False,
                    )
                else:
                    self._engine = create_engine(
                        self.database_url,
                        connect_args={
                            "check_same_thread": False,
                            "timeout": self.busy_timeout,
                        },
                        echo=False,
                    )

                @event.listens_for(self._engine, "connect")
                def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
                    cursor = dbapi_connection.cursor()
                    cursor.execute("PRAGMA foreign_keys=ON")
                    cursor.close()
            else:
                self._engine = create_engine(
                    self.database_url,
                    pool_size=10,
                    max_overflow=20,
                    pool_pre_ping=True,
                    pool_timeout=self.busy_timeout,
                    echo=False,
                )

            logger.info("Database engine created: %s", self._engine.url)

        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                # Flushes are explicit so a unit of work controls write order
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory

    def create_session(self) -> Session:
        """Create a new database session."""
        return self.session_factory()

    @property
    def is_file_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite") and not (
            ":memory:" in self.database_url or self.database_url == "sqlite://"
        )

    @contextmanager
    def session_scope(self, immediate: bool = False) -> Generator[Session, None, None]:
        """
        Provide a transactional scope for one unit of work.

        ```python
        with db_manager.session_scope() as session:
            item = session.get(Item, item_id)
        # Session is committed, or rolled back on any error
        ```

        Args:
            immediate: Take the SQLite write lock before the first statement.
                Check-then-write units of work need this: pysqlite otherwise
                runs their SELECTs outside any transaction, and
                ``FOR UPDATE`` is a no-op on SQLite. A busy database raises
                ``OperationalError`` after the busy timeout.

        A scope abandoned before commit (an exception, or a cancelled caller)
        is rolled back when the session closes.
        """
        session = self.create_session()
        try:
            if immediate and self.is_file_sqlite:
                session.execute(text("BEGIN IMMEDIATE"))
            yield session
            session.commit()
            logger.debug("Database transaction committed successfully")
        except OperationalError as e:
            # Lock contention; callers decide whether to retry
            logger.debug("Database busy, rolling back: %s", e.orig)
            session.rollback()
            raise
        except SQLAlchemyError:
            logger.exception("Database error, rolling back")
            session.rollback()
            raise
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        """
        Initialize the database schema.

        Args:
            drop_existing: If True, drop all tables before creating
        """
        engine = self.engine

        if drop_existing:
            logger.warning("Dropping all existing tables...")
            Base.metadata.drop_all(bind=engine)

        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialization complete")

    def verify_connection(self) -> bool:
        """Verify the database connection is working."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database connection failed")
            return False
        logger.info("Database connection verified")
        return True

    def close(self) -> None:
        """Close the database connection and cleanup resources."""
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


_db_manager: DatabaseManager | None = None


def get_db_manager(database_url: str | None = None) -> DatabaseManager:
    """
    Get the global database manager instance.

    Args:
        database_url: Database URL (only used on first call)
    """
    global _db_manager  # noqa: PLW0603 - Singleton pattern for database manager

    if _db_manager is None:
        _db_manager = DatabaseManager(database_url)

    return _db_manager


def reset_db_manager() -> None:
    """Dispose and forget the global database manager."""
    global _db_manager  # noqa: PLW0603

    if _db_manager is not None:
        _db_manager.close()
    _db_manager = None


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Convenience context manager for database sessions."""
    with get_db_manager().session_scope() as session:
        yield session
