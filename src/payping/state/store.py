"""The local store: one reducer-driven snapshot of a principal's data.

The store is the only thing a presentation layer reads from or writes
through.  Mutations are applied optimistically through :meth:`LocalStore.dispatch`
and then confirmed (or failed) by the gateway; pushes replace whole
collections, so the last remote snapshot always wins.

Every remote call is tagged with the principal id and session generation
current when it was issued.  A result that arrives after the principal
changed is returned to its caller but never applied to the snapshot.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Awaitable, Callable, Coroutine, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeVar

from pydantic import ValidationError

from payping._constants import COPY_SUFFIX, PROVISIONAL_ID_PREFIX, Collection
from payping.backup import write_backup
from payping.exceptions import PaypingError, PaypingNotFoundError
from payping.gateway import EntityData, RemoteDataGateway, writable_fields
from payping.identity import IdentityGate, Principal
from payping.models import (
    ENTITY_MODELS,
    BulkImportResult,
    Customer,
    Entity,
    ExportSnapshot,
    Payment,
    Settings,
    Template,
)
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
from payping.subscriptions import SubscriptionManager

_logger = logging.getLogger(__name__)

T = TypeVar("T")
StateListener = Callable[[StoreState], None]


@dataclass(frozen=True)
class _CallTag:
    principal_id: str | None
    generation: int


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class LocalStore:
    """Snapshot owner and orchestrator of gateway calls and push channels.

    Parameters
    ----------
    gateway : RemoteDataGateway
        Remote reads and writes for the current principal.
    identity : IdentityGate
        Source of the current principal; the store follows its changes
        once :meth:`attach` has been called.
    subscriptions : SubscriptionManager, optional
        Push channels.  Without one the snapshot only changes through
        local mutations and explicit fetches.
    """

    def __init__(
        self,
        gateway: RemoteDataGateway,
        identity: IdentityGate,
        subscriptions: SubscriptionManager | None = None,
    ) -> None:
        self._gateway = gateway
        self._identity = identity
        self._subscriptions = subscriptions
        self._state = StoreState()
        self._generation = 0
        self._listeners: list[StateListener] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._unsubscribe_identity: Callable[[], None] | None = None

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> StoreState:
        return self._state

    def dispatch(self, action: Action) -> StoreState:
        """Apply *action* through the reducer and notify listeners on change."""
        state = reduce(self._state, action)
        if state is self._state:
            return state
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                _logger.exception("State listener failed")
        return state

    def on_change(self, listener: StateListener) -> Callable[[], None]:
        """Call *listener* with every new snapshot; returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self) -> None:
        """Follow the identity gate; starts loading if someone is signed in.

        Must be called from a running event loop.
        """
        if self._unsubscribe_identity is not None:
            return
        self._unsubscribe_identity = self._identity.on_change(self._on_principal_changed)
        if self._identity.principal is not None:
            self._on_principal_changed(self._identity.principal)

    def detach(self) -> None:
        """Stop following the identity gate and close every channel."""
        if self._unsubscribe_identity is not None:
            self._unsubscribe_identity()
            self._unsubscribe_identity = None
        self._generation += 1
        if self._subscriptions is not None:
            self._subscriptions.close_all()

    async def __aenter__(self) -> LocalStore:
        self.attach()
        return self

    async def __aexit__(self, *args: object) -> None:
        self.detach()
        await self.wait_until_idle()

    async def wait_until_idle(self) -> None:
        """Wait for background initialization triggered by principal changes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.debug("Background initialization failed: %s", _describe(exc))

    def _on_principal_changed(self, principal: Principal | None) -> None:
        self._generation += 1
        if self._subscriptions is not None:
            self._subscriptions.close_all()
        if principal is None:
            _logger.debug("Principal signed out; resetting store")
            self.dispatch(SessionEnded())
            return
        self.dispatch(SessionStarted(principal_id=principal.user_id))
        self._spawn(self._initialize(self._tag()))

    # ------------------------------------------------------------------
    # Call tagging
    # ------------------------------------------------------------------

    def _tag(self) -> _CallTag:
        return _CallTag(self._identity.current_principal_id(), self._generation)

    def _is_current(self, tag: _CallTag) -> bool:
        return tag.generation == self._generation and tag.principal_id == self._identity.current_principal_id()

    def _apply(self, tag: _CallTag, action: Action) -> None:
        if self._is_current(tag):
            self.dispatch(action)
        else:
            _logger.debug("Discarding stale %s for principal=%s", type(action).__name__, tag.principal_id)

    async def _remote(self, scope: ErrorScope, tag: _CallTag, call: Awaitable[T]) -> T:
        """Await a gateway call, recording a failure in *scope* before re-raising."""
        try:
            return await call
        except Exception as exc:
            if self._is_current(tag):
                self.dispatch(SetError(message=_describe(exc), scope=scope))
            else:
                _logger.debug("Discarding stale failure for principal=%s: %s", tag.principal_id, exc)
            raise

    # ------------------------------------------------------------------
    # Initial fetch and pushes
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """(Re)load every collection and the settings for the current principal."""
        await self._initialize(self._tag())

    async def _initialize(self, tag: _CallTag) -> None:
        if not self._is_current(tag):
            return
        if self._subscriptions is not None:
            self._subscriptions.close_all()
        if tag.principal_id is not None and self._state.principal_id != tag.principal_id:
            self.dispatch(SessionStarted(principal_id=tag.principal_id))
        else:
            self.dispatch(SetLoading(loading=True))

        customers, templates, payments, settings = await self._remote(
            ErrorScope.SESSION,
            tag,
            asyncio.gather(
                self._gateway.list_customers(),
                self._gateway.list_templates(),
                self._gateway.list_payments(),
                self._gateway.read_settings(),
            ),
        )
        if not self._is_current(tag):
            _logger.debug("Discarding stale initial load for principal=%s", tag.principal_id)
            return
        self.dispatch(DataLoaded(customers=customers, templates=templates, payments=payments, settings=settings))
        _logger.debug(
            "Store ready customers=%d templates=%d payments=%d", len(customers), len(templates), len(payments)
        )
        self._sync_subscriptions()

    def _sync_subscriptions(self) -> None:
        if self._subscriptions is None:
            return
        try:
            self._subscriptions.sync(is_initialized=self._state.is_initialized, sink=self._on_push)
        except PaypingError as exc:
            _logger.warning("Could not open push channels: %s", exc)
            self.dispatch(SetError(message=_describe(exc), scope=ErrorScope.SESSION))

    def _on_push(self, collection: Collection, entities: list[Entity]) -> None:
        self.dispatch(CollectionReplaced(collection=collection, entities=entities))

    # ------------------------------------------------------------------
    # Generic optimistic mutations
    # ------------------------------------------------------------------

    def _add_provisional(self, collection: Collection, fields: Mapping[str, Any]) -> str | None:
        if not self._state.is_initialized:
            return None
        model = ENTITY_MODELS[collection]
        provisional_id = f"{PROVISIONAL_ID_PREFIX}{secrets.token_hex(8)}"
        now = datetime.now(UTC)
        try:
            entity = model.model_validate({**fields, "id": provisional_id, "createdAt": now, "updatedAt": now})
        except ValidationError:
            _logger.debug("Skipping optimistic %s add; data does not validate", collection, exc_info=True)
            return None
        self.dispatch(EntityAdded(collection=collection, entity=entity))
        return provisional_id

    async def _add(self, collection: Collection, data: EntityData, create: Callable[[], Awaitable[T]]) -> T:
        tag = self._tag()
        provisional_id = self._add_provisional(collection, writable_fields(ENTITY_MODELS[collection], data))
        entity = await self._remote(ErrorScope(collection.value), tag, create())
        self._apply(
            tag, EntityConfirmed(collection=collection, entity=entity, provisional_id=provisional_id)
        )
        return entity

    async def _update(
        self, collection: Collection, entity_id: str, partial: EntityData, update: Callable[[], Awaitable[T]]
    ) -> T:
        tag = self._tag()
        if self._state.is_initialized:
            changes = writable_fields(ENTITY_MODELS[collection], partial)
            self.dispatch(EntityPatched(collection=collection, entity_id=entity_id, changes=changes))
        entity = await self._remote(ErrorScope(collection.value), tag, update())
        self._apply(tag, EntityConfirmed(collection=collection, entity=entity))
        return entity

    async def _delete(self, collection: Collection, entity_id: str, delete: Callable[[], Awaitable[None]]) -> None:
        tag = self._tag()
        if self._state.is_initialized:
            self.dispatch(EntityRemoved(collection=collection, entity_id=entity_id))
        await self._remote(ErrorScope(collection.value), tag, delete())

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    async def add_customer(self, data: EntityData) -> Customer:
        return await self._add(Collection.CUSTOMERS, data, lambda: self._gateway.create_customer(data))

    async def update_customer(self, customer_id: str, partial: EntityData) -> Customer:
        return await self._update(
            Collection.CUSTOMERS, customer_id, partial, lambda: self._gateway.update_customer(customer_id, partial)
        )

    async def delete_customer(self, customer_id: str) -> None:
        await self._delete(Collection.CUSTOMERS, customer_id, lambda: self._gateway.delete_customer(customer_id))

    async def toggle_customer_reminders(self, customer_id: str, enabled: bool | None = None) -> Customer:
        """Set ``reminders_enabled`` on a customer.

        With *enabled* omitted the value loaded in the snapshot is flipped,
        which requires the customer to be loaded.
        """
        if enabled is None:
            customer = self._state.find(Collection.CUSTOMERS, customer_id)
            if not isinstance(customer, Customer):
                raise PaypingNotFoundError(f"Customer {customer_id} is not loaded", code="not-found")
            enabled = not customer.reminders_enabled
        return await self.update_customer(customer_id, {"reminders_enabled": enabled})

    async def bulk_import_customers(self, customers: Sequence[EntityData]) -> BulkImportResult:
        """Import *customers* in one batch, then reload the customer list."""
        tag = self._tag()
        self._apply(tag, SetLoading(loading=True))
        result = await self._remote(ErrorScope.CUSTOMERS, tag, self._gateway.bulk_import_customers(customers))
        refreshed = await self._remote(ErrorScope.CUSTOMERS, tag, self._gateway.list_customers())
        self._apply(tag, CollectionReplaced(collection=Collection.CUSTOMERS, entities=refreshed))
        self._apply(tag, SetLoading(loading=False))
        return result

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def add_template(self, data: EntityData) -> Template:
        return await self._add(Collection.TEMPLATES, data, lambda: self._gateway.create_template(data))

    async def update_template(self, template_id: str, partial: EntityData) -> Template:
        return await self._update(
            Collection.TEMPLATES, template_id, partial, lambda: self._gateway.update_template(template_id, partial)
        )

    async def delete_template(self, template_id: str) -> None:
        await self._delete(Collection.TEMPLATES, template_id, lambda: self._gateway.delete_template(template_id))

    async def duplicate_template(self, template_id: str) -> Template:
        """Copy a template; the copy shows up immediately if the source is loaded."""
        tag = self._tag()
        provisional_id = None
        source = self._state.find(Collection.TEMPLATES, template_id)
        if isinstance(source, Template):
            fields = source.to_document()
            fields.pop("lastUsed", None)
            fields.update(name=f"{source.name}{COPY_SUFFIX}", usage=0)
            provisional_id = self._add_provisional(Collection.TEMPLATES, fields)
        copy = await self._remote(ErrorScope.TEMPLATES, tag, self._gateway.duplicate_template(template_id))
        self._apply(tag, EntityConfirmed(collection=Collection.TEMPLATES, entity=copy, provisional_id=provisional_id))
        return copy

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def add_payment(self, data: EntityData) -> Payment:
        return await self._add(Collection.PAYMENTS, data, lambda: self._gateway.create_payment(data))

    async def update_payment(self, payment_id: str, partial: EntityData) -> Payment:
        return await self._update(
            Collection.PAYMENTS, payment_id, partial, lambda: self._gateway.update_payment(payment_id, partial)
        )

    async def delete_payment(self, payment_id: str) -> None:
        await self._delete(Collection.PAYMENTS, payment_id, lambda: self._gateway.delete_payment(payment_id))

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def update_settings(self, section: str, data: Mapping[str, Any]) -> Settings:
        tag = self._tag()
        if self._state.is_initialized:
            self.dispatch(SettingsSectionUpdated(section=section, data=dict(data)))
        settings = await self._remote(ErrorScope.SETTINGS, tag, self._gateway.write_settings_section(section, data))
        self._apply(tag, SettingsLoaded(settings=settings))
        return settings

    async def get_subscription(self) -> dict[str, Any]:
        tag = self._tag()
        subscription = await self._remote(ErrorScope.SETTINGS, tag, self._gateway.get_subscription())
        if self._state.settings is not None:
            self._apply(tag, SettingsSectionReplaced(section="subscription", data=subscription))
        return subscription

    async def update_subscription(self, data: Mapping[str, Any]) -> Settings:
        tag = self._tag()
        if self._state.is_initialized:
            self.dispatch(SettingsSectionUpdated(section="subscription", data=dict(data)))
        settings = await self._remote(ErrorScope.SETTINGS, tag, self._gateway.update_subscription(data))
        self._apply(tag, SettingsLoaded(settings=settings))
        return settings

    # ------------------------------------------------------------------
    # Export / errors
    # ------------------------------------------------------------------

    async def export_data(self) -> ExportSnapshot:
        tag = self._tag()
        return await self._remote(ErrorScope.SESSION, tag, self._gateway.export_all())

    async def backup(self, directory: Path) -> Path:
        """Export everything and write it as a dated JSON file under *directory*."""
        snapshot = await self.export_data()
        path = await asyncio.to_thread(write_backup, snapshot, directory)
        _logger.info("Backup written to %s", path)
        return path

    def clear_error(self, scope: ErrorScope | None = None) -> None:
        self.dispatch(ClearError(scope=scope))
