"""Tests for the reversible credential store."""

import secrets

import pytest

from tokenvault.vault.credentials import CredentialStore
from tokenvault.vault.errors import StorageError, ValidationError


class TestPutGet:
    def test_roundtrip(self, credential_store):
        credential_store.put("site-1", "email", "ops@example.com", "imap-app-password")
        assert credential_store.get("site-1", "email", "ops@example.com") == "imap-app-password"

    def test_stored_encrypted(self, credential_store, credential_table):
        credential_store.put("site-1", "email", "ops@example.com", "imap-app-password")
        blob = credential_table.row("site-1", "email", "ops@example.com")["value"]
        assert isinstance(blob, bytes)
        assert b"imap-app-password" not in blob

    def test_get_absent(self, credential_store):
        assert credential_store.get("site-1", "email", "nobody@example.com") is None

    def test_get_touches(self, credential_store, credential_table):
        credential_store.put("site-1", "api", "openai", "sk-123")
        credential_store.get("site-1", "api", "openai")
        assert credential_table.row("site-1", "api", "openai")["last_used_at"] is not None

    def test_overwrite(self, credential_store, credential_table):
        first = credential_store.put("site-1", "api", "openai", "sk-old")
        second = credential_store.put("site-1", "api", "openai", "sk-new")
        assert first.record_id == second.record_id
        assert credential_store.get("site-1", "api", "openai") == "sk-new"

    def test_empty_plaintext_rejected(self, credential_store, credential_table):
        with pytest.raises(ValidationError):
            credential_store.put("site-1", "api", "openai", "")
        assert credential_table.rows == {}

    def test_wrong_master_key(self, credential_table):
        CredentialStore(credential_table, master_key=secrets.token_bytes(32)).put(
            "site-1", "api", "openai", "sk-123"
        )
        other = CredentialStore(credential_table, master_key=secrets.token_bytes(32))
        with pytest.raises(StorageError, match="could not be decrypted") as exc:
            other.get("site-1", "api", "openai")
        assert exc.value.retryable is False

    def test_ciphertext_moved_between_rows(self, credential_store, credential_table):
        credential_store.put("site-1", "api", "openai", "sk-123")
        credential_store.put("site-2", "api", "openai", "sk-456")
        credential_table.row("site-2", "api", "openai")["value"] = credential_table.row(
            "site-1", "api", "openai"
        )["value"]
        with pytest.raises(StorageError):
            credential_store.get("site-2", "api", "openai")


class TestVerify:
    def test_match(self, credential_store):
        credential_store.put("site-1", "email", "a@b.com", "pw")
        assert credential_store.verify("site-1", "email", "a@b.com", "pw") is True
        assert credential_store.verify("site-1", "email", "a@b.com", "pw2") is False

    def test_absent(self, credential_store):
        assert credential_store.verify("site-1", "email", "a@b.com", "pw") is False

    def test_undecryptable_is_mismatch(self, credential_store, credential_table):
        credential_store.put("site-1", "email", "a@b.com", "pw")
        credential_table.row("site-1", "email", "a@b.com")["value"] = b"\x00" * 40
        assert credential_store.verify("site-1", "email", "a@b.com", "pw") is False

    def test_unavailable_propagates(self, credential_store, credential_table, storage_down):
        credential_store.put("site-1", "email", "a@b.com", "pw")
        credential_table.fail["fetch"] = storage_down
        with pytest.raises(StorageError):
            credential_store.verify("site-1", "email", "a@b.com", "pw")


class TestExistsDelete:
    def test_lifecycle(self, credential_store):
        credential_store.put("site-1", "api", "openai", "sk")
        assert credential_store.exists("site-1", "api", "openai") is True
        credential_store.delete("site-1", "api", "openai")
        credential_store.delete("site-1", "api", "openai")
        assert credential_store.exists("site-1", "api", "openai") is False

    def test_list(self, credential_store):
        credential_store.put("site-1", "api", "openai", "sk")
        credential_store.put("site-1", "email", "a@b.com", "pw")
        assert [r.identifier for r in credential_store.list_credentials("site-1", "api")] == ["openai"]
        assert len(credential_store.list_credentials("site-1")) == 2
