"""Composite results of the bulk and export paths."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from payping._constants import EXPORT_VERSION
from payping.models.customer import Customer
from payping.models.payment import Payment
from payping.models.settings import Settings
from payping.models.template import Template


class ExportSnapshot(BaseModel):
    """Everything one principal owns, read at a single point in time."""

    model_config = ConfigDict(frozen=True)

    customers: list[Customer] = Field(default_factory=list)
    templates: list[Template] = Field(default_factory=list)
    payments: list[Payment] = Field(default_factory=list)
    settings: Settings = Field(default_factory=Settings.defaults)
    exported_at: datetime
    version: str = EXPORT_VERSION

    def to_document(self) -> dict[str, Any]:
        """JSON-compatible dict using the store's camelCase keys."""
        return {
            "customers": [c.to_document(include_server_fields=True) for c in self.customers],
            "templates": [t.to_document(include_server_fields=True) for t in self.templates],
            "payments": [p.to_document(include_server_fields=True) for p in self.payments],
            "settings": self.settings.to_document(),
            "exportedAt": self.exported_at.isoformat(),
            "version": self.version,
        }


class BulkImportResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    imported: int
    ids: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.imported == len(self.ids)
