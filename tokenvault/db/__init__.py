"""Database connection management for the token vault."""

from tokenvault.db.connection import (
    close_pool,
    get_connection,
    get_pool,
    set_statement_timeout,
    timeout_ms,
)

__all__ = ["close_pool", "get_connection", "get_pool", "set_statement_timeout", "timeout_ms"]
