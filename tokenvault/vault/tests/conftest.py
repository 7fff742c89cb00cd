"""
Vault test fixtures.

FakeSecretTable mirrors SecretTable's interface over a dict so the vault's
behaviour can be exercised without PostgreSQL. Individual operations can be
made to fail via ``fail`` to test error propagation.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import UTC, datetime

import pytest

from tokenvault.vault.credentials import CredentialStore
from tokenvault.vault.dispatch import reset_dispatcher
from tokenvault.vault.errors import StorageError
from tokenvault.vault.hashing import Sha256Hasher
from tokenvault.vault.keys import reset_key_cache
from tokenvault.vault.models import SecretRecord
from tokenvault.vault.service import TokenVault, reset_vault

TEST_PEPPER = b"test-pepper-0123456789abcdef"


class FakeSecretTable:
    def __init__(self, table: str = "secure_tokens") -> None:
        self.table = table
        self.rows: dict[tuple[str, str, str], dict] = {}
        self.fail: dict[str, Exception] = {}
        self.timeouts: list[tuple[str, float | None]] = []

    def _enter(self, op: str, timeout: float | None) -> None:
        self.timeouts.append((op, timeout))
        if op in self.fail:
            raise self.fail[op]

    def upsert(self, tenant_id, secret_class, identifier, value, *, timeout=None):
        self._enter("upsert", timeout)
        key = (tenant_id, secret_class, identifier)
        now = datetime.now(UTC)
        row = self.rows.get(key)
        if row is None:
            row = {
                "id": str(uuid.uuid4()),
                "tenant_id": tenant_id,
                "secret_class": secret_class,
                "identifier": identifier,
                "last_used_at": None,
                "created_at": now,
            }
            self.rows[key] = row
        row["value"] = value
        row["updated_at"] = now
        return row["id"]

    def fetch_value(self, tenant_id, secret_class, identifier, *, timeout=None):
        self._enter("fetch", timeout)
        row = self.rows.get((tenant_id, secret_class, identifier))
        return row["value"] if row else None

    def touch_last_used(self, tenant_id, secret_class, identifier, *, timeout=None):
        self._enter("touch", timeout)
        row = self.rows.get((tenant_id, secret_class, identifier))
        if row is None:
            return False
        row["last_used_at"] = datetime.now(UTC)
        return True

    def exists(self, tenant_id, secret_class, identifier, *, timeout=None):
        self._enter("exists", timeout)
        return (tenant_id, secret_class, identifier) in self.rows

    def remove(self, tenant_id, secret_class, identifier, *, timeout=None):
        self._enter("remove", timeout)
        return self.rows.pop((tenant_id, secret_class, identifier), None) is not None

    def list_records(self, tenant_id, secret_class=None, *, timeout=None):
        self._enter("list", timeout)
        return [
            SecretRecord.from_row(row)
            for key, row in sorted(self.rows.items())
            if key[0] == tenant_id and (secret_class is None or key[1] == secret_class)
        ]

    def row(self, tenant_id, secret_class, identifier) -> dict | None:
        return self.rows.get((tenant_id, secret_class, identifier))


@pytest.fixture(autouse=True)
def _reset_singletons():
    reset_key_cache()
    reset_vault()
    reset_dispatcher()
    yield
    reset_key_cache()
    reset_vault()
    reset_dispatcher()


@pytest.fixture(autouse=True)
def _no_audit(monkeypatch):
    """Keep unit tests off the audit database."""
    monkeypatch.setattr("tokenvault.audit.logger.log_event", lambda *a, **kw: None)


@pytest.fixture
def token_table() -> FakeSecretTable:
    return FakeSecretTable()


@pytest.fixture
def vault(token_table) -> TokenVault:
    return TokenVault(token_table, hasher=Sha256Hasher(), pepper=TEST_PEPPER, timeout=2.0, touch_timeout=0.5)


@pytest.fixture
def credential_table() -> FakeSecretTable:
    return FakeSecretTable("credential_secrets")


@pytest.fixture
def credential_store(credential_table) -> CredentialStore:
    return CredentialStore(credential_table, master_key=secrets.token_bytes(32), timeout=2.0)


@pytest.fixture
def storage_down() -> StorageError:
    return StorageError("store secure_tokens failed: backing store unavailable", retryable=True)
