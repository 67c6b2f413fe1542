"""Pure state transitions for the local store."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from payping._constants import Collection
from payping.models import Customer, Entity, Payment, Settings, Template, sort_newest_first
from payping.state.actions import (
    Action,
    ClearError,
    CollectionReplaced,
    DataLoaded,
    EntityAdded,
    EntityConfirmed,
    EntityPatched,
    EntityRemoved,
    ErrorScope,
    SessionEnded,
    SessionStarted,
    SetError,
    SetLoading,
    SettingsLoaded,
    SettingsSectionReplaced,
    SettingsSectionUpdated,
)

_logger = logging.getLogger(__name__)


class StoreState(BaseModel):
    """Read-only snapshot handed to consumers.

    ``error`` always carries the most recently recorded message, while
    ``errors`` keeps one slot per :class:`ErrorScope`.
    """

    model_config = ConfigDict(frozen=True)

    customers: tuple[Customer, ...] = ()
    templates: tuple[Template, ...] = ()
    payments: tuple[Payment, ...] = ()
    settings: Settings | None = None
    loading: bool = False
    error: str | None = None
    errors: dict[ErrorScope, str] = Field(default_factory=dict)
    is_initialized: bool = False
    principal_id: str | None = None
    version: int = 0

    def collection(self, collection: Collection) -> tuple[Any, ...]:
        return getattr(self, Collection(collection).value)

    def find(self, collection: Collection, entity_id: str) -> Entity | None:
        for entity in self.collection(collection):
            if entity.id == entity_id:
                return entity
        return None


def _dedupe(entities: list[Entity]) -> list[Entity]:
    seen: set[str] = set()
    unique: list[Entity] = []
    for entity in entities:
        if entity.id in seen:
            continue
        seen.add(entity.id)
        unique.append(entity)
    return unique


def _added(items: tuple[Entity, ...], entity: Entity) -> list[Entity]:
    if any(item.id == entity.id for item in items):
        return [entity if item.id == entity.id else item for item in items]
    return [entity, *items]


def _patched(items: tuple[Entity, ...], entity_id: str, changes: dict[str, Any]) -> list[Entity] | None:
    result: list[Entity] = []
    found = False
    for item in items:
        if item.id == entity_id:
            try:
                item = item.with_patch(changes)
            except ValidationError:
                _logger.warning("Ignoring invalid patch for id=%s", entity_id, exc_info=True)
                return None
            found = True
        result.append(item)
    return result if found else None


def _confirmed(items: tuple[Entity, ...], entity: Entity, provisional_id: str | None) -> list[Entity]:
    # Every branch re-sorts; confirmations may land out of order.
    ids = {item.id for item in items}
    if provisional_id is not None and provisional_id in ids:
        replaced = [entity if item.id == provisional_id else item for item in items if item.id != entity.id]
        return sort_newest_first(_dedupe(replaced))
    if entity.id in ids:
        return sort_newest_first(entity if item.id == entity.id else item for item in items)
    return sort_newest_first([*items, entity])


def _reset_errors(state: StoreState, scope: ErrorScope | None) -> dict[str, Any]:
    if scope is None:
        return {"errors": {}, "error": None}
    errors = {key: value for key, value in state.errors.items() if key != scope}
    error = state.error if state.errors.get(scope) != state.error else None
    return {"errors": errors, "error": error}


def _collection_changes(state: StoreState, action: Action) -> dict[str, Any] | None:
    match action:
        case CollectionReplaced(collection=collection, entities=entities):
            return {collection.value: tuple(_dedupe(list(entities)))}
        case EntityAdded(collection=collection, entity=entity):
            return {collection.value: tuple(_added(state.collection(collection), entity))}
        case EntityPatched(collection=collection, entity_id=entity_id, changes=changes):
            patched = _patched(state.collection(collection), entity_id, changes)
            return None if patched is None else {collection.value: tuple(patched)}
        case EntityConfirmed(collection=collection, entity=entity, provisional_id=provisional_id):
            return {collection.value: tuple(_confirmed(state.collection(collection), entity, provisional_id))}
        case EntityRemoved(collection=collection, entity_id=entity_id):
            items = state.collection(collection)
            if not any(item.id == entity_id for item in items):
                return None
            return {collection.value: tuple(item for item in items if item.id != entity_id)}
    return None


def reduce(state: StoreState, action: Action) -> StoreState:
    """Return the state after *action*; never raises.

    Actions that change nothing return *state* itself, so ``version``
    only moves when the snapshot does.
    """
    changes: dict[str, Any] | None
    match action:
        case SetLoading(loading=loading):
            changes = {"loading": loading}
        case SetError(message=message, scope=scope):
            changes = {"loading": False, "error": message, "errors": {**state.errors, scope: message}}
        case ClearError(scope=scope):
            changes = _reset_errors(state, scope)
        case SessionStarted(principal_id=principal_id):
            return StoreState(principal_id=principal_id, loading=True, version=state.version + 1)
        case SessionEnded():
            return StoreState(version=state.version + 1)
        case DataLoaded(customers=customers, templates=templates, payments=payments, settings=settings):
            changes = {
                "customers": tuple(sort_newest_first(customers)),
                "templates": tuple(sort_newest_first(templates)),
                "payments": tuple(sort_newest_first(payments)),
                "settings": settings,
                "loading": False,
                "is_initialized": True,
            }
        case SettingsLoaded(settings=settings):
            changes = {"settings": settings}
        case SettingsSectionUpdated(section=section, data=data):
            current = state.settings or Settings.defaults()
            try:
                changes = {"settings": current.with_section(section, data)}
            except KeyError:
                _logger.warning("Ignoring update for unknown settings section %r", section)
                changes = None
        case SettingsSectionReplaced(section=section, data=data):
            current = state.settings or Settings.defaults()
            try:
                current.section(section)
            except KeyError:
                _logger.warning("Ignoring replace for unknown settings section %r", section)
                changes = None
            else:
                changes = {"settings": current.model_copy(update={section: dict(data)})}
        case CollectionReplaced() | EntityAdded() | EntityPatched() | EntityConfirmed() | EntityRemoved():
            changes = _collection_changes(state, action)
        case _:
            _logger.debug("Ignoring unknown action %r", action)
            changes = None

    if changes is None:
        return state
    return state.model_copy(update={**changes, "version": state.version + 1})
