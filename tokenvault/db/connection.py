"""
Single connection factory with pooling for PostgreSQL.

Uses psycopg2 connection pooling for thread safety. Every connection handed
out can carry a statement timeout so that no vault operation blocks
indefinitely on the backing store.

Usage:
    from tokenvault.db import get_connection

    with get_connection(timeout=2.0) as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Generator
from contextlib import contextmanager

import psycopg2
import psycopg2.pool

from tokenvault.config import get_config

logger = logging.getLogger(__name__)

_pool: psycopg2.pool.ThreadedConnectionPool | None = None
_pool_lock = threading.Lock()


def get_pool(minconn: int = 1, maxconn: int = 20) -> psycopg2.pool.ThreadedConnectionPool:
    """Get or create the connection pool."""
    global _pool
    if _pool is not None and not _pool.closed:
        return _pool

    with _pool_lock:
        if _pool is not None and not _pool.closed:
            return _pool

        cfg = get_config().db
        logger.info(
            "Creating connection pool: %s@%s:%s/%s (min=%d, max=%d)",
            cfg.user,
            cfg.host,
            cfg.port,
            cfg.name,
            minconn,
            maxconn,
        )
        try:
            _pool = psycopg2.pool.ThreadedConnectionPool(
                minconn=minconn,
                maxconn=maxconn,
                **cfg.dict,
            )
        except psycopg2.OperationalError as e:
            raise ConnectionError(
                f"Cannot connect to PostgreSQL at {cfg.host}:{cfg.port}/{cfg.name}: {e}\n"
                f"Check TOKENVAULT_DB_* environment variables and ensure PostgreSQL is running."
            ) from e
        return _pool


def timeout_ms(timeout: float) -> int:
    """Convert a timeout in seconds to a positive statement_timeout in ms.

    PostgreSQL reads 0 as "no limit", so sub-millisecond timeouts round up
    to 1 ms and non-positive ones are rejected.
    """
    if timeout <= 0:
        raise ValueError(f"timeout must be positive, got {timeout!r}")
    return max(1, math.ceil(round(timeout * 1000, 6)))


def set_statement_timeout(conn, timeout: float) -> None:
    """Bound every statement in the connection's current transaction."""
    with conn.cursor() as cur:
        cur.execute("SET LOCAL statement_timeout = %s", (timeout_ms(timeout),))


@contextmanager
def get_connection(
    timeout: float | None = None,
) -> Generator[psycopg2.extensions.connection, None, None]:
    """Get a connection from the pool.

    ``timeout`` (seconds) is applied as ``SET LOCAL statement_timeout`` for
    the duration of the transaction; a statement that exceeds it raises
    ``psycopg2.errors.QueryCanceled``.

    Usage:
        with get_connection(timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
        # Committed and returned to pool automatically.
        # On exception, transaction is rolled back.
    """
    pool = get_pool()
    conn = pool.getconn()
    try:
        if timeout is not None:
            set_statement_timeout(conn, timeout)
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)


def close_pool() -> None:
    """Close all connections in the pool."""
    global _pool
    if _pool is not None:
        _pool.closeall()
        _pool = None
