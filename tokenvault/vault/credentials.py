"""
Reversible credential store, for secrets that must be replayed to a third
party (SMTP/IMAP logins, provider API tokens).

Values are AES-256-GCM encrypted under the deployment master key and bound
to their (tenant, class, identifier) key. This is a separate table from the
verification vault: a one-way hash can never be turned back into a password,
so secrets that need retrieval must be stored here instead.
"""

from __future__ import annotations

import hmac
import logging

from cryptography.exceptions import InvalidTag

from tokenvault.vault.crypto import associated_data, decrypt, encrypt
from tokenvault.vault.dal import CREDENTIALS, SecretTable
from tokenvault.vault.errors import StorageError
from tokenvault.vault.keys import get_master_key
from tokenvault.vault.models import SecretRecord, StoreResult
from tokenvault.vault.service import _safe_audit
from tokenvault.vault.validation import (
    validate_key,
    validate_secret,
    validate_tenant,
    validate_timeout,
)

logger = logging.getLogger(__name__)


class CredentialStore:
    """put / get / verify / exists / delete over the credential_secrets table."""

    def __init__(
        self,
        table: SecretTable | None = None,
        *,
        master_key: bytes | None = None,
        timeout: float | None = None,
        touch_timeout: float | None = None,
    ) -> None:
        from tokenvault.config import get_config

        cfg = get_config().vault
        self.table = table if table is not None else CREDENTIALS
        self.timeout = validate_timeout(timeout if timeout is not None else cfg.statement_timeout)
        self.touch_timeout = validate_timeout(
            touch_timeout if touch_timeout is not None else cfg.touch_timeout, "touch_timeout"
        )
        self._master_key = master_key

    @property
    def master_key(self) -> bytes:
        if self._master_key is None:
            self._master_key = get_master_key()
        return self._master_key

    def _deadline(self, timeout: float | None) -> float:
        return self.timeout if timeout is None else validate_timeout(timeout)

    def _audit(self, operation: str, tenant_id: str, secret_class: str, identifier: str) -> None:
        _safe_audit(
            operation,
            tenant_id,
            secret_class,
            identifier,
            store="credential",
            timeout=self.touch_timeout,
        )

    def put(
        self,
        tenant_id: str,
        secret_class: str,
        identifier: str,
        plaintext: str,
        *,
        timeout: float | None = None,
    ) -> StoreResult:
        """Encrypt and upsert plaintext for the key."""
        tenant_id, secret_class, identifier = validate_key(tenant_id, secret_class, identifier)
        validate_secret(plaintext, "plaintext")

        blob = encrypt(
            plaintext, self.master_key, associated_data(tenant_id, secret_class, identifier)
        )
        record_id = self.table.upsert(
            tenant_id, secret_class, identifier, blob, timeout=self._deadline(timeout)
        )
        logger.info("Stored %s credential %s for tenant %s", secret_class, identifier, tenant_id)
        self._audit("store", tenant_id, secret_class, identifier)
        return StoreResult(record_id=record_id)

    def _read(self, tenant_id: str, secret_class: str, identifier: str, timeout: float | None) -> str | None:
        blob = self.table.fetch_value(
            tenant_id, secret_class, identifier, timeout=self._deadline(timeout)
        )
        if blob is None:
            return None
        try:
            return decrypt(
                bytes(blob), self.master_key, associated_data(tenant_id, secret_class, identifier)
            )
        except (InvalidTag, ValueError) as e:
            logger.error(
                "Stored %s credential %s for tenant %s could not be decrypted",
                secret_class,
                identifier,
                tenant_id,
            )
            raise StorageError("Stored credential could not be decrypted", retryable=False) from e

    def _touch(self, tenant_id: str, secret_class: str, identifier: str) -> None:
        try:
            self.table.touch_last_used(
                tenant_id, secret_class, identifier, timeout=self.touch_timeout
            )
        except Exception as e:
            logger.warning(
                "last_used_at update failed for %s credential %s (tenant %s): %s",
                secret_class,
                identifier,
                tenant_id,
                e,
            )

    def get(
        self,
        tenant_id: str,
        secret_class: str,
        identifier: str,
        *,
        timeout: float | None = None,
    ) -> str | None:
        """Decrypt and return the stored plaintext, or None if absent."""
        tenant_id, secret_class, identifier = validate_key(tenant_id, secret_class, identifier)
        value = self._read(tenant_id, secret_class, identifier, timeout)
        if value is not None:
            self._touch(tenant_id, secret_class, identifier)
            self._audit("retrieve", tenant_id, secret_class, identifier)
        return value

    def verify(
        self,
        tenant_id: str,
        secret_class: str,
        identifier: str,
        candidate: str,
        *,
        timeout: float | None = None,
    ) -> bool:
        """Compare candidate with the stored plaintext in constant time."""
        tenant_id, secret_class, identifier = validate_key(tenant_id, secret_class, identifier)
        validate_secret(candidate, "candidate")
        try:
            stored = self._read(tenant_id, secret_class, identifier, timeout)
        except StorageError as e:
            if e.retryable:
                raise
            return False
        if stored is None:
            return False
        is_valid = hmac.compare_digest(stored.encode("utf-8"), candidate.encode("utf-8"))
        if is_valid:
            self._touch(tenant_id, secret_class, identifier)
        return is_valid

    def exists(
        self,
        tenant_id: str,
        secret_class: str,
        identifier: str,
        *,
        timeout: float | None = None,
    ) -> bool:
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
        tenant_id, secret_class, identifier = validate_key(tenant_id, secret_class, identifier)
        if self.table.remove(tenant_id, secret_class, identifier, timeout=self._deadline(timeout)):
            logger.info("Deleted %s credential %s for tenant %s", secret_class, identifier, tenant_id)
            self._audit("delete", tenant_id, secret_class, identifier)

    def list_credentials(
        self,
        tenant_id: str,
        secret_class: str | None = None,
        *,
        timeout: float | None = None,
    ) -> list[SecretRecord]:
        tenant_id = validate_tenant(tenant_id)
        return self.table.list_records(tenant_id, secret_class or None, timeout=self._deadline(timeout))
