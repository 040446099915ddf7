"""Database connection and management utilities."""

from collections.abc import Generator
from typing import Any
from contextlib import contextmanager
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .models import Base
import logging

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages the SQLite connection (with sqlite-vec loaded) and schema."""

    def __init__(
        self,
        db_path: str = ":memory:",
        echo: bool = False,
        expire_on_commit: bool = True,
    ):
        """Initialize database manager.

        Args:
            db_path: Path to SQLite database file or ":memory:" for in-memory
            echo: Whether to echo SQL statements for debugging
            expire_on_commit: Whether to expire objects on commit
        """
        self.db_path = db_path
        self.echo = echo
        self._expire_on_commit = expire_on_commit
        self._initialize_engine_and_session()

    def _initialize_engine_and_session(self) -> None:
        """Initialize the database engine and session factory."""

        connect_args = {
            "check_same_thread": False,
        }
        if self.db_path == ":memory:":
            # For in-memory databases, use StaticPool to persist across connections
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=self.echo,
                connect_args=connect_args,
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=self.echo,
                connect_args=connect_args,
            )

        logger.info(f"Connecting to db at {self.db_path}")

        @event.listens_for(self.engine, "connect")
        def set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
            cursor = dbapi_connection.cursor()
            # Set journal mode to WAL for better concurrency
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            # Wait for competing writers instead of failing immediately
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

        # sqlite-vec provides vec_distance_cosine used by nearest-neighbor search
        def _load_sqlite_vec(dbapi_connection: Any, _) -> None:  # noqa: ANN401
            import sqlite_vec

            dbapi_connection.enable_load_extension(True)
            sqlite_vec.load(dbapi_connection)  # type: ignore[attr-defined]
            dbapi_connection.enable_load_extension(False)

        event.listen(self.engine, "connect", _load_sqlite_vec)

        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
            expire_on_commit=self._expire_on_commit,
        )

        self.create_tables()

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session that commits on success and rolls back on error."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def execute_raw_sql(
        self, sql: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Execute raw SQL and return results as dictionaries.

        Args:
            sql: SQL query to execute
            params: Optional parameters for the query

        Returns:
            List of dictionaries representing query results
        """
        with self.get_session() as session:
            result = session.execute(text(sql), params or {})
            columns = result.keys()
            return [dict(zip(columns, row)) for row in result.fetchall()]

    def vector_extension_version(self) -> str:
        """Return the loaded sqlite-vec version (raises if the extension is missing)."""
        rows = self.execute_raw_sql("SELECT vec_version() AS version")
        return str(rows[0]["version"])

    def close(self) -> None:
        """Close database connection and dispose of engine."""
        if hasattr(self, "engine"):
            self.engine.dispose()
