"""Audit trail for vault operations."""

from tokenvault.audit.logger import log_event, log_vault_event, query_log

__all__ = ["log_event", "log_vault_event", "query_log"]
