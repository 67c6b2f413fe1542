"""Store actions.

Every change to the local snapshot is one of these frozen models, passed
to :meth:`payping.state.store.LocalStore.dispatch`.  Only the reducer
interprets them.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from payping._constants import Collection
from payping.models import Customer, Entity, Payment, Settings, Template


class ErrorScope(StrEnum):
    """Where a failure originated; each scope has its own error slot."""

    CUSTOMERS = "customers"
    TEMPLATES = "templates"
    PAYMENTS = "payments"
    SETTINGS = "settings"
    SESSION = "session"


class _Action(BaseModel):
    model_config = ConfigDict(frozen=True)


class SetLoading(_Action):
    loading: bool


class SetError(_Action):
    """Record a failure message; always clears ``loading``."""

    message: str
    scope: ErrorScope = ErrorScope.SESSION


class ClearError(_Action):
    """Clear one scope, or every scope when ``scope`` is ``None``."""

    scope: ErrorScope | None = None


class SessionStarted(_Action):
    """A principal signed in; discard everything and start loading."""

    principal_id: str


class SessionEnded(_Action):
    """The principal signed out; reset to the uninitialized state."""


class DataLoaded(_Action):
    customers: list[Customer] = Field(default_factory=list)
    templates: list[Template] = Field(default_factory=list)
    payments: list[Payment] = Field(default_factory=list)
    settings: Settings


class CollectionReplaced(_Action):
    """Authoritative full snapshot of one collection (fetch or push)."""

    collection: Collection
    entities: list[Entity] = Field(default_factory=list)


class EntityAdded(_Action):
    collection: Collection
    entity: Entity


class EntityPatched(_Action):
    collection: Collection
    entity_id: str
    changes: dict[str, Any]


class EntityConfirmed(_Action):
    """Server-confirmed record, replacing its provisional or stale local copy."""

    collection: Collection
    entity: Entity
    provisional_id: str | None = None


class EntityRemoved(_Action):
    collection: Collection
    entity_id: str


class SettingsLoaded(_Action):
    settings: Settings


class SettingsSectionUpdated(_Action):
    """Shallow-merge ``data`` into one settings section."""

    section: str
    data: dict[str, Any]


class SettingsSectionReplaced(_Action):
    section: str
    data: dict[str, Any]


Action = (
    SetLoading
    | SetError
    | ClearError
    | SessionStarted
    | SessionEnded
    | DataLoaded
    | CollectionReplaced
    | EntityAdded
    | EntityPatched
    | EntityConfirmed
    | EntityRemoved
    | SettingsLoaded
    | SettingsSectionUpdated
    | SettingsSectionReplaced
)
