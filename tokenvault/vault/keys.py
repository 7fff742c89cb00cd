"""
Per-deployment key material.

Two keys live in the workspace (chmod 600), each generated once by
``tokenvault init`` and cached for the life of the process:

    .vault-pepper   mixed into every one-way hash (verification vault)
    .vault-key      32-byte AES-256-GCM master key (reversible store)

When the deployment injects the pepper from a managed secret store, it is
read from $TOKENVAULT_PEPPER instead of the file. Neither key is ever logged.
"""

from __future__ import annotations

import os
import secrets
import stat
from pathlib import Path

PEPPER_FILE = ".vault-pepper"
MASTER_KEY_FILE = ".vault-key"
PEPPER_ENV = "TOKENVAULT_PEPPER"
KEY_BYTES = 32
MIN_PEPPER_BYTES = 16

_cached_pepper: bytes | None = None
_cached_master_key: bytes | None = None


def _default_workspace() -> Path:
    from tokenvault.config import get_config

    return get_config().workspace


def _write_key(path: Path) -> Path:
    if path.exists():
        return path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(secrets.token_bytes(KEY_BYTES))
    path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 600
    return path


def init_keys(workspace: Path | str) -> tuple[Path, Path]:
    """Generate the pepper and master key files. Existing files are kept."""
    workspace = Path(workspace)
    return _write_key(workspace / PEPPER_FILE), _write_key(workspace / MASTER_KEY_FILE)


def get_pepper(workspace: Path | str | None = None) -> bytes:
    """Load the hash pepper (env first, then workspace file), cached after first read."""
    global _cached_pepper
    if _cached_pepper is not None:
        return _cached_pepper

    env_value = os.environ.get(PEPPER_ENV)
    if env_value:
        pepper = env_value.encode("utf-8")
    else:
        path = Path(workspace or _default_workspace()) / PEPPER_FILE
        if not path.exists():
            raise FileNotFoundError(
                f"Vault pepper not found at {path} and {PEPPER_ENV} is unset. "
                "Run 'tokenvault init' to generate one."
            )
        pepper = path.read_bytes()

    if len(pepper) < MIN_PEPPER_BYTES:
        raise ValueError(f"Vault pepper must be at least {MIN_PEPPER_BYTES} bytes, got {len(pepper)}")
    _cached_pepper = pepper
    return _cached_pepper


def get_master_key(workspace: Path | str | None = None) -> bytes:
    """Load the reversible-store master key from disk (cached after first read)."""
    global _cached_master_key
    if _cached_master_key is not None:
        return _cached_master_key

    path = Path(workspace or _default_workspace()) / MASTER_KEY_FILE
    if not path.exists():
        raise FileNotFoundError(
            f"Vault master key not found at {path}. Run 'tokenvault init' to generate one."
        )
    key = path.read_bytes()
    if len(key) != KEY_BYTES:
        raise ValueError(f"Vault master key must be {KEY_BYTES} bytes, got {len(key)}")
    _cached_master_key = key
    return _cached_master_key


def reset_key_cache() -> None:
    """Clear cached key material (for testing)."""
    global _cached_pepper, _cached_master_key
    _cached_pepper = None
    _cached_master_key = None
