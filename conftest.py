"""
Root-level shared test fixtures.

Inherited by tests/ and the in-package suites under tokenvault/.
"""

from __future__ import annotations

import uuid

import pytest


@pytest.fixture
def test_prefix():
    """Unique prefix for test isolation."""
    return f"test_{uuid.uuid4().hex[:8]}"


@pytest.fixture
def clean_env(monkeypatch):
    """Remove env vars that leak between tests."""
    for key in [
        "TOKENVAULT_WORKSPACE",
        "TOKENVAULT_DB_HOST",
        "TOKENVAULT_DB_PORT",
        "TOKENVAULT_DB_NAME",
        "TOKENVAULT_DB_USER",
        "TOKENVAULT_DB_PASSWORD",
        "TOKENVAULT_HASHER",
        "TOKENVAULT_PBKDF2_ITERATIONS",
        "TOKENVAULT_STATEMENT_TIMEOUT",
        "TOKENVAULT_TOUCH_TIMEOUT",
        "TOKENVAULT_REVERSIBLE_CLASSES",
        "TOKENVAULT_PEPPER",
        "TOKENVAULT_LOG_LEVEL",
    ]:
        monkeypatch.delenv(key, raising=False)
