"""Vault data models. Metadata only: no model ever carries a secret or its hash."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class TokenType(str, Enum):
    """Secret classes used by the dashboard's integration flows.

    The vault accepts any slug as a class; these are the known ones.
    """

    EMAIL = "email"
    WHATSAPP = "whatsapp"
    TWILIO_WHATSAPP = "twilio_whatsapp"
    API = "api"


class SecretRecord(BaseModel):
    """A stored secret's metadata (never includes encoded_value)."""

    id: str
    tenant_id: str
    secret_class: str
    identifier: str
    last_used_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict) -> SecretRecord:
        return cls(
            id=str(row["id"]),
            tenant_id=row["tenant_id"],
            secret_class=row["secret_class"],
            identifier=row["identifier"],
            last_used_at=row.get("last_used_at"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_dict(self) -> dict:
        """API response shape (camelCase, ISO timestamps)."""
        return {
            "id": self.id,
            "siteId": self.tenant_id,
            "tokenType": self.secret_class,
            "identifier": self.identifier,
            "lastUsed": self.last_used_at.isoformat() if self.last_used_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class StoreResult(BaseModel):
    record_id: str


class VaultRequest(BaseModel):
    """Payload of the multiplexed secure-tokens entry point."""

    model_config = ConfigDict(populate_by_name=True)

    operation: str = ""
    tenant_id: str = Field("", alias="siteId")
    secret_class: str = Field("", alias="tokenType")
    token_value: SecretStr | None = Field(None, alias="tokenValue")
    identifier: str | None = None
