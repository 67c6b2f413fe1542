"""Per-principal settings singleton."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from payping._constants import SETTINGS_SECTIONS, default_settings


class Settings(BaseModel):
    """Settings partitioned into independently updatable sections.

    Sections never constrain each other.  A section missing from the
    stored document reads as its built-in default.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    company: dict[str, Any] = Field(default_factory=dict)
    notifications: dict[str, Any] = Field(default_factory=dict)
    payment: dict[str, Any] = Field(default_factory=dict)
    branding: dict[str, Any] = Field(default_factory=dict)
    subscription: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def defaults(cls) -> Settings:
        return cls.model_validate(default_settings())

    @classmethod
    def from_document(cls, document: Mapping[str, Any] | None) -> Settings:
        """Build settings from a stored document, filling missing sections."""
        sections = default_settings()
        for name in SETTINGS_SECTIONS:
            stored = (document or {}).get(name)
            if isinstance(stored, Mapping):
                sections[name] = dict(stored)
        return cls.model_validate(sections)

    def section(self, name: str) -> dict[str, Any]:
        if name not in SETTINGS_SECTIONS:
            raise KeyError(f"unknown settings section: {name!r}")
        return copy.deepcopy(getattr(self, name))

    def with_section(self, name: str, partial: Mapping[str, Any]) -> Settings:
        """Return a copy with *partial* shallow-merged into one section."""
        merged = self.section(name)
        merged.update(copy.deepcopy(dict(partial)))
        return self.model_copy(update={name: merged})

    def to_document(self) -> dict[str, dict[str, Any]]:
        return {name: self.section(name) for name in SETTINGS_SECTIONS}
