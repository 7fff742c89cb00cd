"""
Centralized configuration for the token vault.

All configuration is loaded from environment variables with sensible defaults.
Key material is never part of the config object; see tokenvault.vault.keys.

Usage:
    from tokenvault.config import get_config
    cfg = get_config()
    print(cfg.db.name)              # "tokenvault"
    print(cfg.vault.hasher)         # "sha256"
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class DatabaseConfig:
    """PostgreSQL connection parameters."""

    host: str = ""  # empty = Unix socket (peer auth); set to 127.0.0.1 for TCP
    port: int = 5432
    name: str = "tokenvault"
    user: str = "tokenvault"
    password: str = ""
    connect_timeout: int = 5

    @property
    def dsn(self) -> str:
        """Return a psycopg2-compatible DSN string."""
        parts = [f"dbname={self.name}"]
        if self.host:
            parts.append(f"host={self.host}")
        parts.append(f"port={self.port}")
        if self.user:
            parts.append(f"user={self.user}")
        if self.password:
            parts.append(f"password={self.password}")
        parts.append(f"connect_timeout={self.connect_timeout}")
        return " ".join(parts)

    @property
    def dict(self) -> dict[str, str | int]:
        """Return a psycopg2.connect() kwargs dict."""
        d: dict[str, str | int] = {
            "dbname": self.name,
            "port": self.port,
            "connect_timeout": self.connect_timeout,
        }
        if self.host:
            d["host"] = self.host
        if self.user:
            d["user"] = self.user
        if self.password:
            d["password"] = self.password
        return d


@dataclass(frozen=True)
class VaultConfig:
    """Hashing and storage behaviour of the vault."""

    hasher: str = "sha256"  # "sha256" | "pbkdf2"
    pbkdf2_iterations: int = 600_000
    statement_timeout: float = 5.0  # seconds, per backing-store call
    touch_timeout: float = 1.0  # seconds, for the best-effort last_used_at update
    reversible_classes: tuple[str, ...] = ()


@dataclass(frozen=True)
class Config:
    """Top-level token vault configuration."""

    workspace: Path = field(default_factory=lambda: Path.home() / ".tokenvault")
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    vault: VaultConfig = field(default_factory=VaultConfig)

    api_host: str = "127.0.0.1"
    api_port: int = 9120
    log_level: str = "INFO"

    @property
    def api_url(self) -> str:
        return f"http://{self.api_host}:{self.api_port}"


# Singleton
_config: Config | None = None


def get_config() -> Config:
    """Get or create the singleton config from environment variables."""
    global _config
    if _config is not None:
        return _config
    _config = _load_from_env()
    return _config


def _split_classes(raw: str) -> tuple[str, ...]:
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


def _load_from_env() -> Config:
    """Load configuration from environment variables."""
    workspace = Path(os.environ.get("TOKENVAULT_WORKSPACE", Path.home() / ".tokenvault"))

    db = DatabaseConfig(
        host=os.environ.get("TOKENVAULT_DB_HOST", ""),
        port=int(os.environ.get("TOKENVAULT_DB_PORT", "5432")),
        name=os.environ.get("TOKENVAULT_DB_NAME", "tokenvault"),
        user=os.environ.get("TOKENVAULT_DB_USER", os.environ.get("USER", "tokenvault")),
        password=os.environ.get("TOKENVAULT_DB_PASSWORD", ""),
        connect_timeout=int(os.environ.get("TOKENVAULT_DB_CONNECT_TIMEOUT", "5")),
    )

    vault = VaultConfig(
        hasher=os.environ.get("TOKENVAULT_HASHER", "sha256").lower(),
        pbkdf2_iterations=int(os.environ.get("TOKENVAULT_PBKDF2_ITERATIONS", "600000")),
        statement_timeout=float(os.environ.get("TOKENVAULT_STATEMENT_TIMEOUT", "5")),
        touch_timeout=float(os.environ.get("TOKENVAULT_TOUCH_TIMEOUT", "1")),
        reversible_classes=_split_classes(os.environ.get("TOKENVAULT_REVERSIBLE_CLASSES", "")),
    )

    return Config(
        workspace=workspace,
        db=db,
        vault=vault,
        api_host=os.environ.get("TOKENVAULT_API_HOST", "127.0.0.1"),
        api_port=int(os.environ.get("TOKENVAULT_API_PORT", "9120")),
        log_level=os.environ.get("TOKENVAULT_LOG_LEVEL", "INFO").upper(),
    )


def reset_config() -> None:
    """Reset the singleton config (for testing)."""
    global _config
    _config = None
