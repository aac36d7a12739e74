"""
PostgreSQL access for the token store.

Connection settings come from gallery.config. Every helper raises a
DatabaseError subclass on failure; callers decide whether that is a 5xx.
"""

import hashlib
import logging
from contextlib import contextmanager
from typing import Optional, Any, Dict, List

import psycopg
from psycopg.rows import dict_row

from gallery.config import config

logger = logging.getLogger("gallery.db")


class DatabaseError(Exception):
    """Base exception for database errors."""
    pass


class DatabaseNotConfiguredError(DatabaseError):
    def __init__(self, message: str = "Database is not configured"):
        super().__init__(message)


class DatabaseConnectionError(DatabaseError):
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class DatabaseQueryError(DatabaseError):
    def __init__(self, message: str, query: str = None, original_error: Exception = None):
        super().__init__(message)
        self.query = query
        self.original_error = original_error


class DatabaseIntegrityError(DatabaseError):
    """A unique or check constraint on the tokens table was violated."""
    def __init__(self, message: str, constraint: str = None, original_error: Exception = None):
        super().__init__(message)
        self.constraint = constraint
        self.original_error = original_error


# Tests flip this to run the token layer against a fake cursor.
USE_DB = config.HAS_DATABASE


class Tables:
    TOKENS = f"{config.APP_SCHEMA}.tokens"


def _connect():
    if not USE_DB:
        raise DatabaseNotConfiguredError("DATABASE_URL is not set")

    try:
        conn = psycopg.connect(
            config.DATABASE_URL,
            connect_timeout=config.DB_CONNECT_TIMEOUT,
            row_factory=dict_row,
        )
    except psycopg.OperationalError as e:
        raise DatabaseConnectionError(f"Failed to connect to database: {e}", original_error=e)

    with conn.cursor() as cur:
        cur.execute(f"SET search_path TO {config.APP_SCHEMA}, public;")
    return conn


def _close(conn) -> None:
    try:
        conn.close()
    except psycopg.Error as e:
        logger.warning("[DB] Error closing connection: %s", e)


def _constraint_error(kind: str, e: psycopg.Error) -> DatabaseIntegrityError:
    return DatabaseIntegrityError(
        f"{kind} constraint violation: {e}",
        constraint=getattr(e.diag, "constraint_name", None),
        original_error=e,
    )


@contextmanager
def get_conn():
    """Yield a raw connection. Nothing is committed unless the caller does it."""
    conn = _connect()
    try:
        yield conn
    finally:
        _close(conn)


@contextmanager
def transaction():
    """
    Yield a dict_row cursor inside one transaction.

    Commits when the block exits cleanly. Any exception rolls the whole
    transaction back; psycopg errors are re-raised as DatabaseQueryError or
    DatabaseIntegrityError, anything else propagates unchanged.
    """
    conn = _connect()
    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except psycopg.errors.UniqueViolation as e:
        conn.rollback()
        raise _constraint_error("Unique", e)
    except psycopg.errors.CheckViolation as e:
        conn.rollback()
        raise _constraint_error("Check", e)
    except psycopg.Error as e:
        conn.rollback()
        raise DatabaseQueryError(f"Database error: {e}", original_error=e)
    except Exception:
        conn.rollback()
        raise
    finally:
        _close(conn)


def fetch_one(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    if row is None or isinstance(row, dict):
        return row
    if not cur.description:
        return None
    return dict(zip((d[0] for d in cur.description), row))


def fetch_all(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall() or []
    if not rows or isinstance(rows[0], dict):
        return list(rows)
    if not cur.description:
        return []
    columns = [d[0] for d in cur.description]
    return [dict(zip(columns, row)) for row in rows]


def fetch_scalar(cur) -> Any:
    """First column of the next row, or None."""
    row = cur.fetchone()
    if not row:
        return None
    if isinstance(row, dict):
        return next(iter(row.values()), None)
    return row[0]


def query_one(sql: str, params: tuple = None) -> Optional[Dict[str, Any]]:
    """Run one statement in its own transaction and return the first row."""
    with transaction() as cur:
        cur.execute(sql, params or ())
        return fetch_one(cur)


def execute(sql: str, params: tuple = None) -> int:
    """Run one statement in its own transaction and return the rowcount."""
    with transaction() as cur:
        cur.execute(sql, params or ())
        return cur.rowcount


def sql_in_clause(values: List[Any]) -> tuple:
    """Return ("%s, %s, ...", params) for an IN (...) list; "NULL" when empty."""
    if not values:
        return "NULL", ()
    return ", ".join(["%s"] * len(values)), tuple(values)


def hash_string(value: str) -> str:
    """SHA-256 hex digest; tokens are only ever stored in this form."""
    return hashlib.sha256(value.encode()).hexdigest()


def is_available() -> bool:
    return USE_DB


def require_db():
    if not USE_DB:
        raise DatabaseNotConfiguredError(
            "This operation requires a database connection. "
            "Please configure DATABASE_URL environment variable."
        )


def verify_connection() -> bool:
    """SELECT 1 against the database. Never raises."""
    if not USE_DB:
        return False
    try:
        row = query_one("SELECT 1 AS ok")
    except DatabaseError as e:
        logger.warning("[DB] Connection check failed: %s", e)
        return False
    return bool(row) and row.get("ok") == 1


def ensure_schema() -> None:
    """Create the schema, the tokens table and its indexes if missing."""
    with transaction() as cur:
        cur.execute(f"CREATE SCHEMA IF NOT EXISTS {config.APP_SCHEMA}")
        cur.execute(f"""
            CREATE TABLE IF NOT EXISTS {Tables.TOKENS} (
                id BIGSERIAL PRIMARY KEY,
                type VARCHAR(16) NOT NULL CHECK (type IN ('access', 'code', 'refresh')),
                token_hash CHAR(64) NOT NULL,
                user_id VARCHAR(255),
                client_id VARCHAR(255),
                scope TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                expires_at TIMESTAMPTZ NOT NULL,
                revoked_at TIMESTAMPTZ
            )
        """)
        cur.execute(f"""
            CREATE UNIQUE INDEX IF NOT EXISTS uq_tokens_token_hash
            ON {Tables.TOKENS} (token_hash)
        """)
        cur.execute(f"""
            CREATE INDEX IF NOT EXISTS ix_tokens_expires_at
            ON {Tables.TOKENS} (expires_at)
        """)
    logger.info("[DB] Schema ensured (%s)", Tables.TOKENS)


def init_db() -> bool:
    """
    Startup hook: verify connectivity and create the schema.

    Returns False when no DATABASE_URL is configured. Raises
    DatabaseConnectionError when one is configured but unreachable.
    """
    if not USE_DB:
        logger.info("[DB] DATABASE_URL not set - running without database")
        return False

    if not verify_connection():
        raise DatabaseConnectionError("Connection test query failed")

    logger.info("[DB] Database connection verified successfully")
    ensure_schema()
    return True


__all__ = [
    "USE_DB",
    "DatabaseError",
    "DatabaseNotConfiguredError",
    "DatabaseConnectionError",
    "DatabaseQueryError",
    "DatabaseIntegrityError",
    "Tables",
    "get_conn",
    "transaction",
    "fetch_one",
    "fetch_all",
    "fetch_scalar",
    "query_one",
    "execute",
    "sql_in_clause",
    "hash_string",
    "is_available",
    "require_db",
    "verify_connection",
    "ensure_schema",
    "init_db",
]
