"""
Vault Audit Log — structured audit trail of secret lifecycle events.

Event types:
  - vault.store, vault.delete — verification-vault mutations
  - vault.verify — failed verifications (status="denied")
  - credential.store, credential.delete, credential.retrieve — reversible store
  - system.error — operational failures

Details carry the secret class and identifier only. Plaintext, hashes and
ciphertexts are never written here.

Usage:
    from tokenvault.audit.logger import log_vault_event, query_log
    log_vault_event("store", "site-1", "email", "a@b.com")
"""

from __future__ import annotations

import logging

import psycopg2
from psycopg2.extras import Json

from tokenvault.db.connection import set_statement_timeout

logger = logging.getLogger(__name__)

# Lazy connection resolution so tests can inject a connection factory
_conn_factory = None


def _get_connection():
    """Get a database connection from the pool, or a direct one as fallback."""
    if _conn_factory is not None:
        return _conn_factory()

    try:
        from tokenvault.db.connection import get_pool

        return get_pool().getconn()
    except Exception:
        from tokenvault.config import get_config

        return psycopg2.connect(get_config().db.dsn)


def _release_connection(conn):
    """Return connection to pool if using pooled connections."""
    if _conn_factory is not None:
        return
    try:
        from tokenvault.db.connection import get_pool

        get_pool().putconn(conn)
    except Exception:
        conn.close()


def set_connection_factory(factory):
    """Override connection factory for testing."""
    global _conn_factory
    _conn_factory = factory


def reset_connection_factory():
    """Reset connection factory to default."""
    global _conn_factory
    _conn_factory = None


def log_event(
    event_type: str,
    action: str,
    *,
    category: str | None = None,
    actor: str = "tokenvault",
    details: dict | None = None,
    target: str | None = None,
    status: str = "ok",
    tenant_id: str | None = None,
    timeout: float | None = None,
) -> dict | None:
    """Log a structured audit event.

    ``timeout`` (seconds) bounds the INSERT via ``SET LOCAL statement_timeout``.
    Returns {"id": int, "timestamp": str} on success, None on failure.
    Failures are logged but never raise: audit must not break callers.
    """
    try:
        conn = _get_connection()
        try:
            if timeout is not None:
                set_statement_timeout(conn, timeout)
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO audit_log
                    (event_type, category, actor, action, details, target, status, tenant_id)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id, timestamp
                """,
                (
                    event_type,
                    category,
                    actor,
                    action,
                    Json(details) if details else None,
                    target,
                    status,
                    tenant_id,
                ),
            )
            row = cur.fetchone()
            conn.commit()
        finally:
            _release_connection(conn)
        return {"id": row[0], "timestamp": row[1].isoformat()}
    except Exception as e:
        logger.warning("Audit log_event failed: %s", e)
        return None


def log_vault_event(
    operation: str,
    tenant_id: str,
    secret_class: str,
    identifier: str,
    *,
    store: str = "vault",
    actor: str = "tokenvault",
    status: str = "ok",
    timeout: float | None = None,
) -> dict | None:
    """Convenience wrapper for secret lifecycle events.

    operation: store, delete, verify, retrieve
    store: vault (one-way) or credential (reversible)
    """
    target = f"{secret_class}:{identifier}"
    return log_event(
        f"{store}.{operation}",
        f"{operation} {secret_class} secret {identifier}",
        category=store,
        actor=actor,
        details={"secret_class": secret_class, "identifier": identifier},
        target=target,
        status=status,
        tenant_id=tenant_id,
        timeout=timeout,
    )


def query_log(
    limit: int = 50,
    event_type: str | None = None,
    tenant_id: str | None = None,
    target: str | None = None,
    since: str | None = None,
    status: str | None = None,
) -> list[dict]:
    """Query audit log with filters."""
    try:
        conn = _get_connection()
        try:
            cur = conn.cursor()
            query = (
                "SELECT id, timestamp, event_type, category, actor, action, "
                "details, target, status, tenant_id "
                "FROM audit_log WHERE 1=1"
            )
            params: list = []

            if event_type:
                query += " AND event_type = %s"
                params.append(event_type)
            if tenant_id:
                query += " AND tenant_id = %s"
                params.append(tenant_id)
            if target:
                query += " AND target LIKE %s"
                params.append(f"%{target}%")
            if since:
                query += " AND timestamp >= %s"
                params.append(since)
            if status:
                query += " AND status = %s"
                params.append(status)

            query += " ORDER BY timestamp DESC LIMIT %s"
            params.append(limit)

            cur.execute(query, params)
            rows = cur.fetchall()
        finally:
            _release_connection(conn)

        return [
            {
                "id": r[0],
                "timestamp": r[1].isoformat(),
                "event_type": r[2],
                "category": r[3],
                "actor": r[4],
                "action": r[5],
                "details": r[6],
                "target": r[7],
                "status": r[8],
                "tenant_id": r[9],
            }
            for r in rows
        ]
    except Exception as e:
        logger.warning("Audit query_log failed: %s", e)
        return []
