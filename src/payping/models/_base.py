"""Base model and enum for payping documents.

Every synchronized entity inherits from :class:`Entity` which provides:

* ``alias_generator=to_camel`` so camelCase document keys map
  automatically to snake_case fields.
* ``extra="allow"`` so document fields this library does not model
  survive a read-modify-write round trip.
* The three server-owned fields (``id``, ``created_at``,
  ``updated_at``).  Timestamps accept ISO strings, epoch seconds,
  epoch milliseconds and ``{"seconds": .., "nanos": ..}`` mappings and
  are always normalised to timezone-aware UTC datetimes.

State enums inherit from :class:`PaypingEnum` which adds an ``UNKNOWN``
member and a ``_missing_`` hook so an unexpected status string from the
store never breaks decoding of a whole collection.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Annotated, Any, Self, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

_logger = logging.getLogger(__name__)

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000

#: Fields only the server may assign.
SERVER_FIELDS: frozenset[str] = frozenset({"id", "createdAt", "updatedAt"})


def parse_timestamp(value: Any) -> datetime | None:
    """Convert a stored timestamp to a UTC datetime.

    Returns ``None`` for ``None`` and empty strings.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, Mapping) and "seconds" in value:
        seconds = float(value["seconds"]) + float(value.get("nanos", 0)) / 1e9
        return datetime.fromtimestamp(seconds, tz=UTC)
    if isinstance(value, (int, float)):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=UTC)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    raise ValueError(f"unsupported timestamp value: {value!r}")


ServerTimestamp = Annotated[datetime | None, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces stored timestamps to UTC datetimes."""


class PaypingEnum(enum.StrEnum):
    """Base for document status enums.

    Every subclass **must** define ``UNKNOWN = "unknown"``.
    """

    @classmethod
    def _missing_(cls, value: object) -> PaypingEnum:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        unknown: PaypingEnum = cls["UNKNOWN"]
        return unknown


class PaypingModel(BaseModel):
    """Frozen camelCase model shared by entities and snapshots."""

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @classmethod
    def document_keys(cls, data: Mapping[str, Any]) -> dict[str, Any]:
        """Rewrite snake_case field names in *data* to their document aliases.

        Keys that are not model fields are passed through unchanged.
        """
        aliases = {name: (info.alias or name) for name, info in cls.model_fields.items()}
        return {aliases.get(key, key): value for key, value in data.items()}


class Entity(PaypingModel):
    """A document in one of the synchronized collections."""

    id: str
    created_at: ServerTimestamp = None
    updated_at: ServerTimestamp = None

    def to_document(self, *, include_server_fields: bool = False) -> dict[str, Any]:
        """Serialise to a JSON-compatible document dict (camelCase keys)."""
        document = self.model_dump(mode="json", by_alias=True)
        if not include_server_fields:
            for key in SERVER_FIELDS:
                document.pop(key, None)
        return document

    def with_patch(self, partial: Mapping[str, Any]) -> Self:
        """Return a copy with *partial* applied (keys in either naming style)."""
        document = self.to_document(include_server_fields=True)
        document.update(self.document_keys(partial))
        return type(self).model_validate(document)


E = TypeVar("E", bound=Entity)


def _created_sort_key(entity: Entity) -> float:
    created = entity.created_at
    return created.timestamp() if created is not None else float("-inf")


def sort_newest_first(entities: Iterable[E]) -> list[E]:
    """Order entities by ``created_at`` descending; undated entries last."""
    return sorted(entities, key=_created_sort_key, reverse=True)


def decode_documents(model: type[E], documents: Iterable[Mapping[str, Any]]) -> list[E]:
    """Validate *documents* as *model*, newest-first.

    Documents that fail validation are skipped with a warning so one bad
    record never hides the rest of its collection.
    """
    entities: list[E] = []
    for document in documents:
        try:
            entities.append(model.model_validate(document))
        except ValidationError:
            _logger.warning(
                "Skipping invalid %s document id=%s", model.__name__, document.get("id"), exc_info=True
            )
    return sort_newest_first(entities)
