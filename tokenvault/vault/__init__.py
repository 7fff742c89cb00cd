"""
Token vault — tenant-scoped secret storage backed by PostgreSQL.

Public API (verification vault, one-way salted hashes):
    vault.store(tenant_id, secret_class, identifier, plaintext)  → StoreResult
    vault.verify(tenant_id, secret_class, identifier, candidate) → bool
    vault.check(tenant_id, secret_class, identifier)             → bool
    vault.delete(tenant_id, secret_class, identifier)            → None
    vault.list_tokens(tenant_id, secret_class=None)              → [SecretRecord]

Reversible secrets that must be replayed to third parties live in
CredentialStore (AES-256-GCM), never in the verification vault.
"""

from __future__ import annotations

from tokenvault.vault.credentials import CredentialStore
from tokenvault.vault.dispatch import TokenDispatcher, dispatch
from tokenvault.vault.errors import StorageError, ValidationError, VaultError
from tokenvault.vault.keys import init_keys
from tokenvault.vault.models import SecretRecord, StoreResult, TokenType
from tokenvault.vault.service import TokenVault, get_vault


def store(tenant_id: str, secret_class: str, identifier: str, plaintext: str, *, timeout: float | None = None) -> StoreResult:
    """Hash and upsert a secret."""
    return get_vault().store(tenant_id, secret_class, identifier, plaintext, timeout=timeout)


def verify(tenant_id: str, secret_class: str, identifier: str, candidate: str, *, timeout: float | None = None) -> bool:
    """Check a candidate against the stored hash. Absent secrets verify False."""
    return get_vault().verify(tenant_id, secret_class, identifier, candidate, timeout=timeout)


def check(tenant_id: str, secret_class: str, identifier: str, *, timeout: float | None = None) -> bool:
    """True if a secret is stored for the key."""
    return get_vault().check(tenant_id, secret_class, identifier, timeout=timeout)


def delete(tenant_id: str, secret_class: str, identifier: str, *, timeout: float | None = None) -> None:
    """Remove a secret. Idempotent."""
    get_vault().delete(tenant_id, secret_class, identifier, timeout=timeout)


def list_tokens(tenant_id: str, secret_class: str | None = None) -> list[SecretRecord]:
    """List stored secrets' metadata for a tenant."""
    return get_vault().list_tokens(tenant_id, secret_class)


__all__ = [
    "CredentialStore",
    "SecretRecord",
    "StorageError",
    "StoreResult",
    "TokenDispatcher",
    "TokenType",
    "TokenVault",
    "ValidationError",
    "VaultError",
    "check",
    "delete",
    "dispatch",
    "init_keys",
    "list_tokens",
    "store",
    "verify",
]
