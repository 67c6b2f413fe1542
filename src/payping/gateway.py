"""Remote data gateway: every read and write of one principal's documents.

The gateway is stateless between calls.  Each call resolves the current
principal from the :class:`~payping.identity.IdentityGate` and scopes its
paths under ``users/{uid}/``; without a principal it raises
:class:`~payping.exceptions.PaypingUnauthenticatedError` before touching
the store.  Remote failures propagate unchanged and nothing is retried.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from pydantic_core import to_jsonable_python

from payping._constants import (
    COPY_SUFFIX,
    CUSTOMERS,
    EXPORT_VERSION,
    PAYMENTS,
    SETTINGS,
    SETTINGS_DOCUMENT_ID,
    SETTINGS_SECTIONS,
    TEMPLATES,
    default_subscription,
    user_collection_path,
)
from payping._transport import BatchWrite, DocumentStore
from payping.exceptions import PaypingNotFoundError, PaypingUnauthenticatedError
from payping.identity import IdentityGate
from payping.models._base import SERVER_FIELDS, Entity, PaypingModel, decode_documents
from payping.models.customer import Customer
from payping.models.export import BulkImportResult, ExportSnapshot
from payping.models.payment import Payment
from payping.models.settings import Settings
from payping.models.template import Template

_logger = logging.getLogger(__name__)

_CREATE_STAMPS: tuple[str, ...] = ("createdAt", "updatedAt")
_UPDATE_STAMPS: tuple[str, ...] = ("updatedAt",)
_TEMPLATE_CREATE_STAMPS: tuple[str, ...] = ("createdAt", "updatedAt", "lastUsed")

EntityData = Mapping[str, Any] | PaypingModel


def writable_fields(model: type[Entity], data: EntityData) -> dict[str, Any]:
    """Normalise caller data to document keys, dropping server-owned fields."""
    if isinstance(data, Entity):
        fields = data.to_document()
    elif isinstance(data, PaypingModel):
        fields = data.model_dump(mode="json", by_alias=True)
    else:
        fields = to_jsonable_python(model.document_keys(data))
    return {key: value for key, value in fields.items() if key not in SERVER_FIELDS}


class RemoteDataGateway:
    """Per-principal façade over a :class:`~payping._transport.DocumentStore`."""

    def __init__(self, store: DocumentStore, identity: IdentityGate) -> None:
        self._store = store
        self._identity = identity

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    def _require_principal_id(self) -> str:
        principal_id = self._identity.current_principal_id()
        if principal_id is None:
            raise PaypingUnauthenticatedError()
        return principal_id

    def collection_path(self, collection: str) -> str:
        """``users/{uid}/{collection}`` for the current principal."""
        return user_collection_path(self._require_principal_id(), collection)

    def _document_path(self, collection: str, doc_id: str) -> str:
        if not doc_id or "/" in doc_id:
            raise ValueError(f"invalid document id: {doc_id!r}")
        return f"{self.collection_path(collection)}/{doc_id}"

    # ------------------------------------------------------------------
    # Generic collection operations
    # ------------------------------------------------------------------

    async def _list(self, collection: str, model: type[Entity]) -> list[Any]:
        documents = await self._store.list_documents(self.collection_path(collection))
        return decode_documents(model, documents)

    async def _create(
        self,
        collection: str,
        model: type[Entity],
        data: EntityData,
        *,
        server_timestamps: Sequence[str] = _CREATE_STAMPS,
    ) -> Any:
        fields = writable_fields(model, data)
        document = await self._store.add_document(
            self.collection_path(collection), fields, server_timestamps=server_timestamps
        )
        _logger.debug("Created %s id=%s", collection, document.get("id"))
        return model.model_validate(document)

    async def _update(self, collection: str, model: type[Entity], doc_id: str, partial: EntityData) -> Any:
        fields = writable_fields(model, partial)
        document = await self._store.update_document(
            self._document_path(collection, doc_id), fields, server_timestamps=_UPDATE_STAMPS
        )
        return model.model_validate(document)

    async def _delete(self, collection: str, doc_id: str) -> None:
        await self._store.delete_document(self._document_path(collection, doc_id))
        _logger.debug("Deleted %s id=%s", collection, doc_id)

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    async def list_customers(self) -> list[Customer]:
        return await self._list(CUSTOMERS, Customer)

    async def create_customer(self, data: EntityData) -> Customer:
        return await self._create(CUSTOMERS, Customer, data)

    async def update_customer(self, customer_id: str, partial: EntityData) -> Customer:
        return await self._update(CUSTOMERS, Customer, customer_id, partial)

    async def delete_customer(self, customer_id: str) -> None:
        await self._delete(CUSTOMERS, customer_id)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def list_templates(self) -> list[Template]:
        return await self._list(TEMPLATES, Template)

    async def create_template(self, data: EntityData) -> Template:
        """Create a template; usage starts at zero and ``lastUsed`` is stamped."""
        fields = writable_fields(Template, data)
        fields["usage"] = 0
        return await self._create(TEMPLATES, Template, fields, server_timestamps=_TEMPLATE_CREATE_STAMPS)

    async def update_template(self, template_id: str, partial: EntityData) -> Template:
        return await self._update(TEMPLATES, Template, template_id, partial)

    async def delete_template(self, template_id: str) -> None:
        await self._delete(TEMPLATES, template_id)

    async def duplicate_template(self, template_id: str) -> Template:
        """Copy a template under ``"<name> (Copy)"`` with usage reset to zero.

        Raises
        ------
        PaypingNotFoundError
            The source template does not exist.
        """
        path = self._document_path(TEMPLATES, template_id)
        source = await self._store.get_document(path)
        if source is None:
            raise PaypingNotFoundError("Template not found", code="not-found", path=path)

        fields = {key: value for key, value in source.items() if key not in SERVER_FIELDS | {"usage", "lastUsed"}}
        fields["name"] = f"{source.get('name', '')}{COPY_SUFFIX}"
        fields["usage"] = 0
        document = await self._store.add_document(
            self.collection_path(TEMPLATES), fields, server_timestamps=_TEMPLATE_CREATE_STAMPS
        )
        return Template.model_validate(document)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def list_payments(self) -> list[Payment]:
        return await self._list(PAYMENTS, Payment)

    async def create_payment(self, data: EntityData) -> Payment:
        return await self._create(PAYMENTS, Payment, data)

    async def update_payment(self, payment_id: str, partial: EntityData) -> Payment:
        return await self._update(PAYMENTS, Payment, payment_id, partial)

    async def delete_payment(self, payment_id: str) -> None:
        await self._delete(PAYMENTS, payment_id)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def _settings_path(self) -> str:
        return self._document_path(SETTINGS, SETTINGS_DOCUMENT_ID)

    async def read_settings(self) -> Settings:
        """Read settings, persisting the built-in defaults on first read."""
        path = self._settings_path()
        document = await self._store.get_document(path)
        if document is not None:
            return Settings.from_document(document)

        settings = Settings.defaults()
        _logger.debug("No settings stored at %s; persisting defaults", path)
        await self._store.set_document(path, settings.to_document(), merge=True, server_timestamps=_UPDATE_STAMPS)
        return settings

    async def write_settings_section(self, name: str, partial: Mapping[str, Any]) -> Settings:
        """Shallow-merge *partial* into one section; sibling sections are untouched."""
        if name not in SETTINGS_SECTIONS:
            raise ValueError(f"unknown settings section: {name!r}")
        path = self._settings_path()
        document = await self._store.get_document(path) or {}
        current = document.get(name)
        merged = {**(current if isinstance(current, Mapping) else {}), **to_jsonable_python(dict(partial))}
        stored = await self._store.set_document(path, {name: merged}, merge=True, server_timestamps=_UPDATE_STAMPS)
        return Settings.from_document(stored)

    async def get_subscription(self) -> dict[str, Any]:
        """Stored subscription section, or the free plan when none was saved."""
        document = await self._store.get_document(self._settings_path())
        stored = document.get("subscription") if document is not None else None
        if isinstance(stored, Mapping) and stored:
            return dict(stored)
        return default_subscription()

    async def update_subscription(self, data: Mapping[str, Any]) -> Settings:
        return await self.write_settings_section(
            "subscription", {**dict(data), "updatedAt": datetime.now(UTC).isoformat()}
        )

    # ------------------------------------------------------------------
    # Bulk / export
    # ------------------------------------------------------------------

    async def bulk_import_customers(self, customers: Sequence[EntityData]) -> BulkImportResult:
        """Create all *customers* in one atomic batch (all or nothing)."""
        collection_path = self.collection_path(CUSTOMERS)
        writes = [
            BatchWrite(collection_path, writable_fields(Customer, customer), server_timestamps=_CREATE_STAMPS)
            for customer in customers
        ]
        if not writes:
            return BulkImportResult(imported=0)
        documents = await self._store.commit_batch(writes)
        _logger.debug("Bulk imported %d customers", len(documents))
        return BulkImportResult(imported=len(writes), ids=[str(doc["id"]) for doc in documents])

    async def export_all(self) -> ExportSnapshot:
        """Read every collection and the settings concurrently."""
        self._require_principal_id()
        customers, templates, payments, settings = await asyncio.gather(
            self.list_customers(),
            self.list_templates(),
            self.list_payments(),
            self.read_settings(),
        )
        return ExportSnapshot(
            customers=customers,
            templates=templates,
            payments=payments,
            settings=settings,
            exported_at=datetime.now(UTC),
            version=EXPORT_VERSION,
        )
