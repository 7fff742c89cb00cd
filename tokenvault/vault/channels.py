"""
Channel helpers for integration setup flows.

Thin wrappers that fix the secret class and identifier convention for each
channel. They answer with booleans: a failed store logs and returns False
rather than raising, because the settings screens only need a yes/no.

Usage:
    from tokenvault.vault.channels import store_email_credentials, verify_email_password

    store_email_credentials("site-1", "ops@example.com", password)
    ok = verify_email_password("site-1", "ops@example.com", candidate)
"""

from __future__ import annotations

import logging

from tokenvault.vault.errors import VaultError
from tokenvault.vault.models import TokenType
from tokenvault.vault.service import TokenVault, get_vault

logger = logging.getLogger(__name__)

DEFAULT_EMAIL_IDENTIFIER = "default"


def _email_identifier(email: str | None) -> str:
    return email or DEFAULT_EMAIL_IDENTIFIER


def _store(
    vault: TokenVault | None, site_id: str, token_type: TokenType, identifier: str, secret: str
) -> bool:
    try:
        (vault or get_vault()).store(site_id, token_type.value, identifier, secret)
        return True
    except VaultError as e:
        logger.error("Storing %s secret for site %s failed: %s", token_type.value, site_id, e)
        return False


# ─── Email ───────────────────────────────────────────────────────────────


def store_email_credentials(
    site_id: str, email: str | None, password: str, *, vault: TokenVault | None = None
) -> bool:
    """Store a mailbox password, keyed by address ("default" if none configured)."""
    return _store(vault, site_id, TokenType.EMAIL, _email_identifier(email), password)


def verify_email_password(
    site_id: str, email: str | None, password: str, *, vault: TokenVault | None = None
) -> bool:
    return (vault or get_vault()).verify(
        site_id, TokenType.EMAIL.value, _email_identifier(email), password
    )


def has_email_credentials(
    site_id: str, email: str | None, *, vault: TokenVault | None = None
) -> bool:
    return (vault or get_vault()).check(site_id, TokenType.EMAIL.value, _email_identifier(email))


# ─── WhatsApp (Twilio) ───────────────────────────────────────────────────


def store_whatsapp_token(
    site_id: str, token: str, phone_number: str, *, vault: TokenVault | None = None
) -> bool:
    """Store a Twilio WhatsApp token, keyed by the sending number (e.g. +1234567890)."""
    return _store(vault, site_id, TokenType.TWILIO_WHATSAPP, phone_number, token)


def verify_whatsapp_token(
    site_id: str, token: str, phone_number: str, *, vault: TokenVault | None = None
) -> bool:
    return (vault or get_vault()).verify(
        site_id, TokenType.TWILIO_WHATSAPP.value, phone_number, token
    )


def has_whatsapp_token(
    site_id: str, phone_number: str, *, vault: TokenVault | None = None
) -> bool:
    return (vault or get_vault()).check(site_id, TokenType.TWILIO_WHATSAPP.value, phone_number)
