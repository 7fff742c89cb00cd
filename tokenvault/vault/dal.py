"""
Vault DAL — storage adapter over the secret tables.

Every call runs in its own pooled transaction under a statement timeout.
psycopg2 failures are translated into StorageError so callers only ever see
the vault taxonomy. Values are opaque here: this module never hashes,
encrypts, or logs them.

Usage:
    from tokenvault.vault.dal import TOKENS

    record_id = TOKENS.upsert("site-1", "email", "a@b.com", encoded, timeout=5)
    encoded = TOKENS.fetch_value("site-1", "email", "a@b.com", timeout=5)
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import psycopg2
import psycopg2.errors
import psycopg2.pool
from psycopg2 import sql
from psycopg2.extras import RealDictCursor

from tokenvault.db.connection import get_connection
from tokenvault.vault.errors import StorageError
from tokenvault.vault.models import SecretRecord

logger = logging.getLogger(__name__)


@contextmanager
def storage_errors(action: str) -> Generator[None, None, None]:
    """Translate backing-store failures into StorageError."""
    try:
        yield
    except psycopg2.errors.QueryCanceled as e:
        logger.warning("%s timed out", action)
        raise StorageError(f"{action} timed out", retryable=True) from e
    except (
        psycopg2.OperationalError,
        psycopg2.InterfaceError,
        psycopg2.pool.PoolError,
        ConnectionError,
    ) as e:
        logger.warning("%s failed: backing store unavailable (%s)", action, type(e).__name__)
        raise StorageError(f"{action} failed: backing store unavailable", retryable=True) from e
    except psycopg2.Error as e:
        logger.error("%s failed: %s", action, type(e).__name__)
        raise StorageError(f"{action} failed: {type(e).__name__}", retryable=False) from e


class SecretTable:
    """CRUD on one secret table keyed by (tenant_id, secret_class, identifier)."""

    def __init__(self, table: str, value_column: str) -> None:
        self.table = table
        self.value_column = value_column
        self._table = sql.Identifier(table)
        self._value = sql.Identifier(value_column)

    def upsert(
        self,
        tenant_id: str,
        secret_class: str,
        identifier: str,
        value: Any,
        *,
        timeout: float | None = None,
    ) -> str:
        """Insert or replace the value for the key in one statement. Returns the row id."""
        query = sql.SQL(
            """
            INSERT INTO {table} (tenant_id, secret_class, identifier, {value})
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (tenant_id, secret_class, identifier)
            DO UPDATE SET {value} = EXCLUDED.{value},
                          updated_at = NOW()
            RETURNING id
            """
        ).format(table=self._table, value=self._value)
        with storage_errors(f"store {self.table}"), get_connection(timeout) as conn:
            with conn.cursor() as cur:
                cur.execute(query, (tenant_id, secret_class, identifier, value))
                row = cur.fetchone()
        if not row:
            raise StorageError(f"store {self.table} returned no id", retryable=False)
        return str(row[0])

    def fetch_value(
        self,
        tenant_id: str,
        secret_class: str,
        identifier: str,
        *,
        timeout: float | None = None,
    ) -> Any | None:
        """Return the stored value for the key, or None if absent."""
        query = sql.SQL(
            "SELECT {value} FROM {table} "
            "WHERE tenant_id = %s AND secret_class = %s AND identifier = %s"
        ).format(table=self._table, value=self._value)
        with storage_errors(f"read {self.table}"), get_connection(timeout) as conn:
            with conn.cursor() as cur:
                cur.execute(query, (tenant_id, secret_class, identifier))
                row = cur.fetchone()
        return row[0] if row else None

    def touch_last_used(
        self,
        tenant_id: str,
        secret_class: str,
        identifier: str,
        *,
        timeout: float | None = None,
    ) -> bool:
        """Set last_used_at = NOW(). Returns True if a row was updated."""
        query = sql.SQL(
            "UPDATE {table} SET last_used_at = NOW() "
            "WHERE tenant_id = %s AND secret_class = %s AND identifier = %s"
        ).format(table=self._table)
        with storage_errors(f"touch {self.table}"), get_connection(timeout) as conn:
            with conn.cursor() as cur:
                cur.execute(query, (tenant_id, secret_class, identifier))
                return cur.rowcount > 0

    def exists(
        self,
        tenant_id: str,
        secret_class: str,
        identifier: str,
        *,
        timeout: float | None = None,
    ) -> bool:
        query = sql.SQL(
            "SELECT EXISTS (SELECT 1 FROM {table} "
            "WHERE tenant_id = %s AND secret_class = %s AND identifier = %s)"
        ).format(table=self._table)
        with storage_errors(f"check {self.table}"), get_connection(timeout) as conn:
            with conn.cursor() as cur:
                cur.execute(query, (tenant_id, secret_class, identifier))
                row = cur.fetchone()
        return bool(row and row[0])

    def remove(
        self,
        tenant_id: str,
        secret_class: str,
        identifier: str,
        *,
        timeout: float | None = None,
    ) -> bool:
        """Delete the row for the key. Returns True if a row was deleted."""
        query = sql.SQL(
            "DELETE FROM {table} "
            "WHERE tenant_id = %s AND secret_class = %s AND identifier = %s"
        ).format(table=self._table)
        with storage_errors(f"delete {self.table}"), get_connection(timeout) as conn:
            with conn.cursor() as cur:
                cur.execute(query, (tenant_id, secret_class, identifier))
                return cur.rowcount > 0

    def list_records(
        self,
        tenant_id: str,
        secret_class: str | None = None,
        *,
        timeout: float | None = None,
    ) -> list[SecretRecord]:
        """List metadata for a tenant's secrets, optionally filtered by class."""
        query = sql.SQL(
            "SELECT id, tenant_id, secret_class, identifier, last_used_at, created_at, updated_at "
            "FROM {table} WHERE tenant_id = %s"
        ).format(table=self._table)
        params: list = [tenant_id]
        if secret_class:
            query += sql.SQL(" AND secret_class = %s")
            params.append(secret_class)
        query += sql.SQL(" ORDER BY secret_class, identifier")

        with storage_errors(f"list {self.table}"), get_connection(timeout) as conn:
            cur = conn.cursor(cursor_factory=RealDictCursor)
            cur.execute(query, params)
            rows = cur.fetchall()
        return [SecretRecord.from_row(r) for r in rows]


TOKENS = SecretTable("secure_tokens", "encoded_value")
CREDENTIALS = SecretTable("credential_secrets", "encrypted_value")
