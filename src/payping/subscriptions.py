"""Real-time subscription manager.

Owns one push channel per synchronized collection.  Every delivery is
the complete collection, decoded and ordered newest-first, never a
delta.  Settings are not subscribed.

Channels are bound to the principal they were opened for.  A delivery
that arrives after :meth:`SubscriptionManager.close_all`, or while a
different principal is signed in, is dropped so one user's updates can
never reach a subscriber that outlived them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from payping._constants import Collection, user_collection_path
from payping._push import Document, PushSource
from payping.exceptions import PaypingUnauthenticatedError
from payping.identity import IdentityGate
from payping.models import ENTITY_MODELS, Customer, Entity, Payment, Template, decode_documents

_logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[list[Any]], None]
CollectionSink = Callable[[Collection, list[Entity]], None]


@dataclass(eq=False)
class _Channel:
    collection: Collection
    principal_id: str
    unwatch: Callable[[], None] = field(default=lambda: None)
    closed: bool = False


def decode_collection(collection: Collection, documents: list[Document]) -> list[Entity]:
    """Validate pushed documents and order them newest-first.

    Decoding matches the initial fetch: documents that fail validation are
    skipped with a warning and the rest of the snapshot is still delivered.
    """
    return decode_documents(ENTITY_MODELS[collection], documents)


class SubscriptionManager:
    """Opens and tears down push channels for the current principal."""

    def __init__(self, push_source: PushSource, identity: IdentityGate) -> None:
        self._push_source = push_source
        self._identity = identity
        self._channels: list[_Channel] = []
        self._store_channels: list[_Channel] = []

    @property
    def open_collections(self) -> list[Collection]:
        return [channel.collection for channel in self._channels]

    def subscribe(self, collection: Collection, on_snapshot: SnapshotCallback) -> Callable[[], None]:
        """Open a channel; returns a function that closes it immediately."""
        principal_id = self._identity.current_principal_id()
        if principal_id is None:
            raise PaypingUnauthenticatedError()
        channel = self._open(Collection(collection), principal_id, on_snapshot)
        return lambda: self._close(channel)

    def subscribe_customers(self, on_snapshot: Callable[[list[Customer]], None]) -> Callable[[], None]:
        return self.subscribe(Collection.CUSTOMERS, on_snapshot)

    def subscribe_templates(self, on_snapshot: Callable[[list[Template]], None]) -> Callable[[], None]:
        return self.subscribe(Collection.TEMPLATES, on_snapshot)

    def subscribe_payments(self, on_snapshot: Callable[[list[Payment]], None]) -> Callable[[], None]:
        return self.subscribe(Collection.PAYMENTS, on_snapshot)

    def sync(self, *, is_initialized: bool, sink: CollectionSink) -> None:
        """Reconcile the store-feeding channels with the current state.

        Channels are open iff a principal is signed in and the store has
        completed its first fetch.
        """
        principal_id = self._identity.current_principal_id()
        if principal_id is None or not is_initialized:
            self.close_all()
            return
        if self._store_channels and all(ch.principal_id == principal_id for ch in self._store_channels):
            return
        self.close_all()
        for collection in Collection:
            channel = self._open(collection, principal_id, lambda entities, c=collection: sink(c, entities))
            self._store_channels.append(channel)

    def close_all(self) -> None:
        """Close every open channel synchronously."""
        for channel in list(self._channels):
            self._close(channel)
        self._store_channels.clear()

    def _open(self, collection: Collection, principal_id: str, on_snapshot: SnapshotCallback) -> _Channel:
        channel = _Channel(collection=collection, principal_id=principal_id)

        def _on_documents(documents: list[Document]) -> None:
            if channel.closed:
                return
            if self._identity.current_principal_id() != channel.principal_id:
                _logger.debug("Dropping %s push for stale principal=%s", collection, channel.principal_id)
                return
            on_snapshot(decode_collection(collection, documents))

        channel.unwatch = self._push_source.watch(user_collection_path(principal_id, collection), _on_documents)
        self._channels.append(channel)
        _logger.debug("Channel opened collection=%s principal=%s", collection, principal_id)
        return channel

    def _close(self, channel: _Channel) -> None:
        if channel.closed:
            return
        channel.closed = True
        if channel in self._channels:
            self._channels.remove(channel)
        if channel in self._store_channels:
            self._store_channels.remove(channel)
        channel.unwatch()
        _logger.debug("Channel closed collection=%s principal=%s", channel.collection, channel.principal_id)
