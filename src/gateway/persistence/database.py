"""
Database Connection Layer

Supports SQLite (dev, tests) and PostgreSQL (production). Queries are written
with `?` positional placeholders; the PostgreSQL path rewrites them.
"""

import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Optional, Sequence
import structlog

from .errors import DatabaseConnectionError

logger = structlog.get_logger()

SQLITE_PREFIX = "sqlite:///"
POSTGRES_PREFIXES = ("postgres://", "postgresql://")


def redact_url(database_url: str) -> str:
    """Hide credentials before a URL ends up in logs."""
    scheme, sep, rest = database_url.partition("://")
    if "@" in rest:
        rest = "***@" + rest.split("@", 1)[1]
    return scheme + sep + rest


class Database:
    """
    Database connection manager with SQLite and PostgreSQL support.

    Usage:
        db = Database("sqlite:///gateway.db")
        db.connect()
        rows = db.execute("SELECT * FROM AllowedFi WHERE domain = ?", ("banka.com",))

    SQLite connections are opened per thread. PostgreSQL connections come from
    a shared threaded pool.
    """

    def __init__(self, database_url: str, max_connections: int = 10):
        self.database_url = database_url
        self.is_postgres = database_url.startswith(POSTGRES_PREFIXES)
        self.is_sqlite = database_url.startswith(SQLITE_PREFIX)
        self.max_connections = max_connections
        self._local = threading.local()
        self._lock = threading.Lock()
        self._sqlite_connections: List[sqlite3.Connection] = []
        self._pool: Any = None

    @property
    def dialect(self) -> str:
        return "postgres" if self.is_postgres else "sqlite"

    def _get_sqlite_path(self) -> str:
        """Extract SQLite file path from URL."""
        return self.database_url[len(SQLITE_PREFIX):]

    def _is_sqlite_memory(self) -> bool:
        path, _, query = self._get_sqlite_path().partition("?")
        return path in (":memory:", "file::memory:") or "mode=memory" in query

    def connect(self) -> None:
        """Open the store and check it answers; raises DatabaseConnectionError otherwise."""
        if not (self.is_postgres or self.is_sqlite):
            raise DatabaseConnectionError(f"Unsupported database URL: {redact_url(self.database_url)}")

        if self.is_sqlite and not self._get_sqlite_path():
            raise DatabaseConnectionError("SQLite URL is missing a database path")

        # Connections are per thread, so an in-memory store would differ per thread.
        if self.is_sqlite and self._is_sqlite_memory():
            raise DatabaseConnectionError("In-memory SQLite is not supported; use a database file")

        try:
            if self.is_postgres:
                self._open_pool()
            self.execute("SELECT 1")
        except sqlite3.Error as e:
            raise DatabaseConnectionError(f"Cannot open {redact_url(self.database_url)}: {e}") from e

        logger.info("database_connected", url=redact_url(self.database_url), is_postgres=self.is_postgres)

    def _open_pool(self) -> None:
        try:
            import psycopg2
            from psycopg2.extras import RealDictCursor
            from psycopg2.pool import ThreadedConnectionPool
        except ImportError:
            raise ImportError("psycopg2 required for PostgreSQL. Install with: pip install psycopg2-binary")

        try:
            self._pool = ThreadedConnectionPool(
                1,
                self.max_connections,
                self.database_url,
                cursor_factory=RealDictCursor,
            )
        except psycopg2.Error as e:
            raise DatabaseConnectionError(f"Cannot open {redact_url(self.database_url)}: {e}") from e

    @contextmanager
    def connection(self) -> Generator[Any, None, None]:
        """Get a database connection; commits on success, rolls back on error."""
        if self.is_postgres:
            with self._postgres_connection() as conn:
                yield conn
        elif self.is_sqlite:
            with self._sqlite_connection() as conn:
                yield conn
        else:
            raise DatabaseConnectionError(f"Unsupported database URL: {redact_url(self.database_url)}")

    def _sqlite_handle(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(
                self._get_sqlite_path(),
                check_same_thread=False,
                timeout=30.0,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            self._local.conn = conn
            with self._lock:
                self._sqlite_connections.append(conn)
        return conn

    @contextmanager
    def _sqlite_connection(self) -> Generator[sqlite3.Connection, None, None]:
        conn = self._sqlite_handle()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    @contextmanager
    def _postgres_connection(self) -> Generator[Any, None, None]:
        if self._pool is None:
            raise DatabaseConnectionError("PostgreSQL pool is not open; call connect() first")

        conn = self._pool.getconn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)

    def _adapt(self, query: str) -> str:
        """Rewrite `?` placeholders into the driver's paramstyle."""
        if self.is_postgres:
            return query.replace("%", "%%").replace("?", "%s")
        return query

    def execute(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Execute a query and return results as list of dicts."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(self._adapt(query), tuple(params))
            if cursor.description:
                return [dict(row) for row in cursor.fetchall()]
            return []

    def execute_write(self, query: str, params: Sequence[Any] = ()) -> int:
        """Execute a write statement and return the number of affected rows."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(self._adapt(query), tuple(params))
            return cursor.rowcount

    def insert(self, query: str, params: Sequence[Any] = (), returning: Optional[str] = None) -> Optional[int]:
        """
        Execute an INSERT.

        With `returning` set, the generated value of that column is returned
        (RETURNING on PostgreSQL, lastrowid on SQLite). Otherwise None.
        """
        with self.connection() as conn:
            cursor = conn.cursor()
            if self.is_postgres:
                if returning:
                    query = f"{query} RETURNING {returning}"
                cursor.execute(self._adapt(query), tuple(params))
                if returning:
                    row = cursor.fetchone()
                    return row[returning] if row else None
                return None

            cursor.execute(query, tuple(params))
            return cursor.lastrowid if returning else None

    def advance_sequence(self, table: str, column: str) -> None:
        """
        Move a serial column's sequence past the highest stored value.

        Needed on PostgreSQL after a row was inserted with an explicit id;
        SQLite's AUTOINCREMENT already tracks the maximum.
        """
        if not self.is_postgres:
            return
        self.execute(
            f"SELECT setval(pg_get_serial_sequence(?, ?), (SELECT MAX({column}) FROM {table}))",
            (table.lower(), column),
        )

    def apply_script(self, script: str, record_query: str, record_params: Sequence[Any] = ()) -> None:
        """
        Run a multi-statement script and a bookkeeping statement in one transaction.

        If any statement fails nothing from the script is kept. Scripts must not
        issue their own BEGIN/COMMIT.
        """
        if self.is_postgres:
            with self._postgres_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(script)
                cursor.execute(self._adapt(record_query), tuple(record_params))
            return

        conn = self._sqlite_handle()
        try:
            conn.executescript("BEGIN;\n" + script)
            conn.execute(record_query, tuple(record_params))
            conn.commit()
        except Exception:
            if conn.in_transaction:
                conn.rollback()
            raise

    def close(self) -> None:
        """Close database connections."""
        with self._lock:
            for conn in self._sqlite_connections:
                conn.close()
            self._sqlite_connections = []
            if self._pool is not None:
                self._pool.closeall()
                self._pool = None
        self._local = threading.local()
