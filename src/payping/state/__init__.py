"""Local snapshot store: actions, reducer and orchestration."""

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
from payping.state.reducer import StoreState, reduce
from payping.state.store import LocalStore

__all__ = [
    "Action",
    "ClearError",
    "CollectionReplaced",
    "DataLoaded",
    "EntityAdded",
    "EntityConfirmed",
    "EntityPatched",
    "EntityRemoved",
    "ErrorScope",
    "LocalStore",
    "SessionEnded",
    "SessionStarted",
    "SetError",
    "SetLoading",
    "SettingsLoaded",
    "SettingsSectionReplaced",
    "SettingsSectionUpdated",
    "StoreState",
    "reduce",
]
