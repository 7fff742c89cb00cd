"""
Multiplexed vault entry point.

Accepts the secure-tokens wire payload used by the dashboard:

    {"operation": "store", "siteId": "...", "tokenType": "email",
     "tokenValue": "...", "identifier": "a@b.com"}

and routes it to the verification vault, or to the reversible credential
store for classes listed in TOKENVAULT_REVERSIBLE_CLASSES.

    store    -> {"success": true, "tokenId": "<uuid>"}
    verify   -> {"isValid": bool}
    check    -> {"exists": bool}
    delete   -> {"success": true}
    list     -> {"tokens": [...]}
    retrieve -> {"tokenValue": str | null}   (reversible classes only)
"""

from __future__ import annotations

import logging
from typing import Any

import pydantic

from tokenvault.vault.credentials import CredentialStore
from tokenvault.vault.errors import ValidationError
from tokenvault.vault.models import SecretRecord, VaultRequest
from tokenvault.vault.service import TokenVault

logger = logging.getLogger(__name__)

OPERATIONS = ("store", "verify", "check", "delete", "list", "retrieve")


def parse_request(payload: dict[str, Any] | VaultRequest) -> VaultRequest:
    """Validate the envelope; per-field checks happen in the vault itself."""
    if isinstance(payload, VaultRequest):
        request = payload
    else:
        try:
            request = VaultRequest.model_validate(payload)
        except pydantic.ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ValidationError(f"Invalid request body: {fields}") from None

    # list may span every class of a tenant; all other operations name one
    if not request.tenant_id or not (request.secret_class or request.operation == "list"):
        raise ValidationError("Missing required parameters: siteId and tokenType")
    if request.operation not in OPERATIONS:
        raise ValidationError(f"Invalid operation: {request.operation!r}", field="operation")
    return request


class TokenDispatcher:
    """Routes secure-tokens operations to the right store."""

    def __init__(
        self,
        vault: TokenVault | None = None,
        credentials: CredentialStore | None = None,
        *,
        reversible_classes: tuple[str, ...] | None = None,
    ) -> None:
        if reversible_classes is None:
            from tokenvault.config import get_config

            reversible_classes = get_config().vault.reversible_classes
        self.reversible_classes = frozenset(reversible_classes)
        self._vault = vault
        self._credentials = credentials

    @property
    def vault(self) -> TokenVault:
        if self._vault is None:
            self._vault = TokenVault()
        return self._vault

    @property
    def credentials(self) -> CredentialStore:
        if self._credentials is None:
            self._credentials = CredentialStore()
        return self._credentials

    def is_reversible(self, secret_class: str) -> bool:
        return secret_class in self.reversible_classes

    def _list(self, tenant_id: str, secret_class: str) -> list[SecretRecord]:
        if secret_class:
            if self.is_reversible(secret_class):
                return self.credentials.list_credentials(tenant_id, secret_class)
            return self.vault.list_tokens(tenant_id, secret_class)

        records = self.vault.list_tokens(tenant_id)
        if self.reversible_classes:
            records += self.credentials.list_credentials(tenant_id)
        return sorted(records, key=lambda r: (r.secret_class, r.identifier))

    def dispatch(self, payload: dict[str, Any] | VaultRequest) -> dict[str, Any]:
        request = parse_request(payload)
        op = request.operation
        tenant_id = request.tenant_id
        secret_class = request.secret_class
        identifier = request.identifier
        secret = request.token_value.get_secret_value() if request.token_value else None
        reversible = self.is_reversible(secret_class)

        logger.debug("Processing %s operation for site %s, type %s", op, tenant_id, secret_class)

        if op == "store":
            if reversible:
                result = self.credentials.put(tenant_id, secret_class, identifier, secret)
            else:
                result = self.vault.store(tenant_id, secret_class, identifier, secret)
            return {"success": True, "tokenId": result.record_id}

        if op == "verify":
            store = self.credentials if reversible else self.vault
            return {"isValid": store.verify(tenant_id, secret_class, identifier, secret)}

        if op == "check":
            if reversible:
                return {"exists": self.credentials.exists(tenant_id, secret_class, identifier)}
            return {"exists": self.vault.check(tenant_id, secret_class, identifier)}

        if op == "delete":
            store = self.credentials if reversible else self.vault
            store.delete(tenant_id, secret_class, identifier)
            return {"success": True}

        if op == "list":
            return {"tokens": [r.to_dict() for r in self._list(tenant_id, secret_class)]}

        # retrieve
        if not reversible:
            raise ValidationError(
                f"Secrets of type {secret_class!r} are stored as one-way hashes and cannot be "
                "retrieved; use verify instead",
                field="operation",
            )
        return {"tokenValue": self.credentials.get(tenant_id, secret_class, identifier)}


_dispatcher: TokenDispatcher | None = None


def get_dispatcher() -> TokenDispatcher:
    """Process-wide dispatcher built from the current config."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = TokenDispatcher()
    return _dispatcher


def reset_dispatcher() -> None:
    """Drop the cached dispatcher (for testing)."""
    global _dispatcher
    _dispatcher = None


def dispatch(payload: dict[str, Any] | VaultRequest) -> dict[str, Any]:
    return get_dispatcher().dispatch(payload)
