"""
Hashing primitives for the verification vault.

    encoded_value = salt + ":" + H(plaintext || key || salt)

The salt is 128 random bits (hex) generated per store. The default hasher is
a single SHA-256 pass. It is fast, which is a known weakness for
user-chosen passwords; PBKDF2 can be selected through TOKENVAULT_HASHER
without touching the store/verify contracts. Records hashed under one
scheme do not verify under another, so switching requires re-storing.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from abc import ABC, abstractmethod

SALT_BYTES = 16  # 128 bits
SEPARATOR = ":"


class TokenHasher(ABC):
    """One-way hash step: (plaintext, key, salt) -> hex digest."""

    name: str = ""

    @abstractmethod
    def digest(self, plaintext: str, key: bytes, salt: str) -> str: ...


class Sha256Hasher(TokenHasher):
    name = "sha256"

    def digest(self, plaintext: str, key: bytes, salt: str) -> str:
        h = hashlib.sha256()
        h.update(plaintext.encode("utf-8"))
        h.update(key)
        h.update(salt.encode("ascii"))
        return h.hexdigest()


class Pbkdf2Hasher(TokenHasher):
    """PBKDF2-HMAC-SHA256 over the plaintext, salted with key || salt."""

    name = "pbkdf2"

    def __init__(self, iterations: int = 600_000) -> None:
        if iterations < 1:
            raise ValueError("iterations must be positive")
        self.iterations = iterations

    def digest(self, plaintext: str, key: bytes, salt: str) -> str:
        return hashlib.pbkdf2_hmac(
            "sha256",
            plaintext.encode("utf-8"),
            key + salt.encode("ascii"),
            self.iterations,
        ).hex()


def get_hasher(name: str, *, iterations: int = 600_000) -> TokenHasher:
    """Build a hasher by configured name."""
    if name == Sha256Hasher.name:
        return Sha256Hasher()
    if name == Pbkdf2Hasher.name:
        return Pbkdf2Hasher(iterations)
    raise ValueError(f"Unknown hasher {name!r} (expected 'sha256' or 'pbkdf2')")


def generate_salt() -> str:
    return secrets.token_hex(SALT_BYTES)


def encode_value(salt: str, digest: str) -> str:
    return f"{salt}{SEPARATOR}{digest}"


def decode_value(encoded: str) -> tuple[str, str]:
    """Split an encoded value into (salt, digest). Raises ValueError if malformed."""
    salt, sep, digest = encoded.partition(SEPARATOR)
    if not sep or not salt or not digest or SEPARATOR in digest:
        raise ValueError("Malformed encoded value")
    return salt, digest


def hash_secret(plaintext: str, key: bytes, hasher: TokenHasher) -> str:
    """Hash plaintext under a fresh salt and return the encoded value."""
    salt = generate_salt()
    return encode_value(salt, hasher.digest(plaintext, key, salt))


def verify_secret(candidate: str, encoded: str, key: bytes, hasher: TokenHasher) -> bool:
    """Recompute the digest with the stored salt and compare in constant time."""
    salt, expected = decode_value(encoded)
    actual = hasher.digest(candidate, key, salt)
    return hmac.compare_digest(actual.encode("ascii"), expected.encode("ascii"))
