"""
AES-256-GCM envelope for the reversible credential store.

Each value gets a unique 12-byte nonce prepended to the ciphertext. The
(tenant, class, identifier) key is bound in as associated data, so a
ciphertext copied onto another row fails to decrypt.
"""

from __future__ import annotations

import secrets

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_BYTES = 12
TAG_BYTES = 16


def associated_data(tenant_id: str, secret_class: str, identifier: str) -> bytes:
    return "\x1f".join((tenant_id, secret_class, identifier)).encode("utf-8")


def encrypt(plaintext: str, master_key: bytes, aad: bytes | None = None) -> bytes:
    """Encrypt plaintext. Returns nonce (12 bytes) + ciphertext + tag (16 bytes)."""
    nonce = secrets.token_bytes(NONCE_BYTES)
    return nonce + AESGCM(master_key).encrypt(nonce, plaintext.encode("utf-8"), aad)


def decrypt(data: bytes, master_key: bytes, aad: bytes | None = None) -> str:
    """Decrypt nonce + ciphertext + tag back to plaintext."""
    if len(data) < NONCE_BYTES + TAG_BYTES:
        raise ValueError("Encrypted data too short")
    nonce, ciphertext = data[:NONCE_BYTES], data[NONCE_BYTES:]
    return AESGCM(master_key).decrypt(nonce, ciphertext, aad).decode("utf-8")
