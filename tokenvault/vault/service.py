"""
Verification vault — one-way salted hashes of tenant secrets.

Lifecycle per (tenant_id, secret_class, identifier):

    ABSENT --store--> PRESENT --delete--> ABSENT
    verify / check never change state (verify touches last_used_at on success)

Callers pass plaintext in and get booleans or opaque ids back. Plaintext
lives only on the stack of the current call: it is never logged, cached
or persisted.
"""

from __future__ import annotations

import logging
from typing import Any

from tokenvault.vault.dal import TOKENS, SecretTable
from tokenvault.vault.hashing import TokenHasher, get_hasher, hash_secret, verify_secret
from tokenvault.vault.keys import get_pepper
from tokenvault.vault.models import SecretRecord, StoreResult
from tokenvault.vault.validation import (
    validate_key,
    validate_secret,
    validate_tenant,
    validate_timeout,
)

logger = logging.getLogger(__name__)


def _safe_audit(
    operation: str, tenant_id: str, secret_class: str, identifier: str, **kwargs: Any
) -> None:
    """Wrap audit logging so it never propagates exceptions."""
    try:
        from tokenvault.audit.logger import log_vault_event

        log_vault_event(operation, tenant_id, secret_class, identifier, **kwargs)
    except Exception as e:
        logger.warning("Audit call failed (non-fatal): %s", e)


class TokenVault:
    """store / verify / check / delete over the secure_tokens table.

    Args:
        table: storage adapter (defaults to the secure_tokens table).
        hasher: hash step; defaults to the configured TOKENVAULT_HASHER.
        pepper: deployment key mixed into every hash; defaults to keys.get_pepper().
        timeout: default statement timeout (seconds) for store/verify/check/delete.
        touch_timeout: timeout for the best-effort last_used_at update.
    """

    def __init__(
        self,
        table: SecretTable | None = None,
        *,
        hasher: TokenHasher | None = None,
        pepper: bytes | None = None,
        timeout: float | None = None,
        touch_timeout: float | None = None,
    ) -> None:
        from tokenvault.config import get_config

        cfg = get_config().vault
        self.table = table if table is not None else TOKENS
        self.hasher = hasher or get_hasher(cfg.hasher, iterations=cfg.pbkdf2_iterations)
        self.timeout = validate_timeout(timeout if timeout is not None else cfg.statement_timeout)
        self.touch_timeout = validate_timeout(
            touch_timeout if touch_timeout is not None else cfg.touch_timeout, "touch_timeout"
        )
        self._pepper = pepper

    @property
    def pepper(self) -> bytes:
        if self._pepper is None:
            self._pepper = get_pepper()
        return self._pepper

    def _deadline(self, timeout: float | None) -> float:
        return self.timeout if timeout is None else validate_timeout(timeout)

    def _audit(
        self, operation: str, tenant_id: str, secret_class: str, identifier: str, **kwargs: Any
    ) -> None:
        # Audit shares the touch budget: a stalled audit_log never holds a caller.
        _safe_audit(
            operation, tenant_id, secret_class, identifier, timeout=self.touch_timeout, **kwargs
        )

    def store(
        self,
        tenant_id: str,
        secret_class: str,
        identifier: str,
        plaintext: str,
        *,
        timeout: float | None = None,
    ) -> StoreResult:
        """Hash plaintext under a fresh salt and upsert it for the key.

        Raises ValidationError on empty input (nothing written) and
        StorageError if the upsert fails (previous value untouched).
        """
        tenant_id, secret_class, identifier = validate_key(tenant_id, secret_class, identifier)
        validate_secret(plaintext, "plaintext")

        encoded = hash_secret(plaintext, self.pepper, self.hasher)
        record_id = self.table.upsert(
            tenant_id, secret_class, identifier, encoded, timeout=self._deadline(timeout)
        )
        logger.info("Stored %s secret %s for tenant %s", secret_class, identifier, tenant_id)
        self._audit("store", tenant_id, secret_class, identifier)
        return StoreResult(record_id=record_id)

    def verify(
        self,
        tenant_id: str,
        secret_class: str,
        identifier: str,
        candidate: str,
        *,
        timeout: float | None = None,
    ) -> bool:
        """True iff a record exists for the key and candidate matches it."""
        tenant_id, secret_class, identifier = validate_key(tenant_id, secret_class, identifier)
        validate_secret(candidate, "candidate")

        encoded = self.table.fetch_value(
            tenant_id, secret_class, identifier, timeout=self._deadline(timeout)
        )
        if encoded is None:
            return False

        try:
            is_valid = verify_secret(candidate, encoded, self.pepper, self.hasher)
        except ValueError:
            logger.error(
                "Stored %s secret %s for tenant %s is malformed; treating as mismatch",
                secret_class,
                identifier,
                tenant_id,
            )
            return False

        if is_valid:
            self._touch(tenant_id, secret_class, identifier)
        else:
            self._audit("verify", tenant_id, secret_class, identifier, status="denied")
        return is_valid

    def _touch(self, tenant_id: str, secret_class: str, identifier: str) -> None:
        # Best-effort: a lost last_used_at update never fails verification.
        try:
            self.table.touch_last_used(
                tenant_id, secret_class, identifier, timeout=self.touch_timeout
            )
        except Exception as e:
            logger.warning(
                "last_used_at update failed for %s secret %s (tenant %s): %s",
                secret_class,
                identifier,
                tenant_id,
                e,
            )

    def check(
        self,
        tenant_id: str,
        secret_class: str,
        identifier: str,
        *,
        timeout: float | None = None,
    ) -> bool:
        """Existence query. Never touches last_used_at."""
        tenant_id, secret_class, identifier = validate_key(tenant_id, secret_class, identifier)
        return self.table.exists(tenant_id, secret_class, identifier, timeout=self._deadline(timeout))

    def delete(
        self,
        tenant_id: str,
        secret_class: str,
        identifier: str,
        *,
        timeout: float | None = None,
    ) -> None:
        """Remove the record if present. Deleting an absent record is a no-op."""
        tenant_id, secret_class, identifier = validate_key(tenant_id, secret_class, identifier)
        deleted = self.table.remove(
            tenant_id, secret_class, identifier, timeout=self._deadline(timeout)
        )
        if deleted:
            logger.info("Deleted %s secret %s for tenant %s", secret_class, identifier, tenant_id)
            self._audit("delete", tenant_id, secret_class, identifier)

    def list_tokens(
        self,
        tenant_id: str,
        secret_class: str | None = None,
        *,
        timeout: float | None = None,
    ) -> list[SecretRecord]:
        """Metadata for a tenant's stored secrets (no values)."""
        tenant_id = validate_tenant(tenant_id)
        return self.table.list_records(tenant_id, secret_class or None, timeout=self._deadline(timeout))


_vault: TokenVault | None = None


def get_vault() -> TokenVault:
    """Process-wide vault built from the current config."""
    global _vault
    if _vault is None:
        _vault = TokenVault()
    return _vault


def reset_vault() -> None:
    """Drop the cached vault (for testing)."""
    global _vault
    _vault = None
