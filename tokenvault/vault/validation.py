"""
Vault input validation.

Every operation validates its key triple before touching the store, so an
invalid call never reaches PostgreSQL and never leaves a partial record.

Usage:
    from tokenvault.vault.validation import validate_key, validate_secret

    validate_key("site-1", "email", "a@b.com")
    validate_secret(password, "plaintext")
"""

from __future__ import annotations

import re

from tokenvault.vault.errors import ValidationError

MAX_TENANT_LENGTH = 128
MAX_IDENTIFIER_LENGTH = 320  # longest legal email address
MAX_SECRET_LENGTH = 8192

# Open set of classes: any short lowercase slug ("email", "twilio_whatsapp", "api")
SECRET_CLASS_RE = re.compile(r"^[a-z0-9][a-z0-9_.-]{0,63}$")


def _require_text(value: object, field: str, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing required field: {field}", field=field)
    if len(value) > max_length:
        raise ValidationError(f"{field} exceeds {max_length} characters", field=field)
    return value


def validate_tenant(tenant_id: object) -> str:
    return _require_text(tenant_id, "tenant_id", MAX_TENANT_LENGTH)


def validate_key(tenant_id: object, secret_class: object, identifier: object) -> tuple[str, str, str]:
    """Validate the (tenant, class, identifier) triple. Returns it unchanged."""
    tenant_id = validate_tenant(tenant_id)
    secret_class = _require_text(secret_class, "secret_class", 64)
    if not SECRET_CLASS_RE.match(secret_class):
        raise ValidationError(
            f"Invalid secret_class {secret_class!r}: expected a lowercase slug",
            field="secret_class",
        )
    identifier = _require_text(identifier, "identifier", MAX_IDENTIFIER_LENGTH)
    return tenant_id, secret_class, identifier


def validate_secret(value: object, field: str = "plaintext") -> str:
    """Validate a plaintext secret or candidate.

    Secrets are not stripped: surrounding whitespace is part of the value.
    """
    if not isinstance(value, str) or value == "":
        raise ValidationError(f"Missing required field: {field}", field=field)
    if len(value) > MAX_SECRET_LENGTH:
        raise ValidationError(f"{field} exceeds {MAX_SECRET_LENGTH} characters", field=field)
    return value


def validate_timeout(timeout: object, field: str = "timeout") -> float:
    """A statement timeout must be a positive number of seconds (0 would mean no limit)."""
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or not timeout > 0:
        raise ValidationError(f"{field} must be a positive number of seconds", field=field)
    return float(timeout)
