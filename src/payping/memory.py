"""In-process document store with push notification.

:class:`InMemoryDocumentStore` implements both the
:class:`~payping._transport.DocumentStore` and the
:class:`~payping._push.PushSource` protocols.  It backs the demo mode
and the test-suite, and mirrors the remote store's guarantees: ids and
server timestamps are assigned at write time, creation timestamps are
strictly increasing, batches are all-or-nothing, and watchers receive
the full ordered collection after every change.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import secrets
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from payping._transport import BatchWrite, Document
from payping.exceptions import PaypingBatchError, PaypingNotFoundError
from payping.models._base import parse_timestamp

_logger = logging.getLogger(__name__)

DocumentsCallback = Callable[[list[Document]], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _split_document_path(document_path: str) -> tuple[str, str]:
    collection_path, _, doc_id = document_path.strip("/").rpartition("/")
    if not collection_path or not doc_id:
        raise ValueError(f"not a document path: {document_path!r}")
    return collection_path, doc_id


def _sort_value(document: Document, order_by: str) -> float:
    try:
        stamp = parse_timestamp(document.get(order_by))
    except (TypeError, ValueError):
        stamp = None
    return stamp.timestamp() if stamp is not None else float("-inf")


class InMemoryDocumentStore:
    """Dict-backed document store keyed by collection path."""

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._collections: dict[str, dict[str, Document]] = {}
        self._watchers: dict[str, list[DocumentsCallback]] = {}
        self._last_stamp: datetime | None = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _server_now(self) -> datetime:
        now = self._clock()
        if self._last_stamp is not None and now <= self._last_stamp:
            now = self._last_stamp + timedelta(microseconds=1)
        self._last_stamp = now
        return now

    def _stamp(self, fields: dict[str, Any], server_timestamps: Sequence[str]) -> None:
        if not server_timestamps:
            return
        now = self._server_now().isoformat()
        for name in server_timestamps:
            fields[name] = now

    @staticmethod
    def _new_id() -> str:
        return secrets.token_urlsafe(15)

    def _ordered(self, collection_path: str, order_by: str = "createdAt", descending: bool = True) -> list[Document]:
        documents = self._collections.get(collection_path, {})
        ordered = sorted(documents.values(), key=lambda doc: _sort_value(doc, order_by), reverse=descending)
        return copy.deepcopy(ordered)

    def _notify(self, collection_path: str) -> None:
        watchers = self._watchers.get(collection_path)
        if not watchers:
            return
        snapshot = self._ordered(collection_path)
        for callback in list(watchers):
            self._deliver(collection_path, callback, copy.deepcopy(snapshot))

    def _deliver(self, collection_path: str, callback: DocumentsCallback, documents: list[Document]) -> None:
        def _run() -> None:
            # Unsubscribed between scheduling and delivery.
            if callback not in self._watchers.get(collection_path, []):
                return
            callback(documents)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _run()
            return
        loop.call_soon(_run)

    # ------------------------------------------------------------------
    # DocumentStore
    # ------------------------------------------------------------------

    async def list_documents(
        self, collection_path: str, *, order_by: str = "createdAt", descending: bool = True
    ) -> list[Document]:
        return self._ordered(collection_path, order_by, descending)

    async def get_document(self, document_path: str) -> Document | None:
        collection_path, doc_id = _split_document_path(document_path)
        document = self._collections.get(collection_path, {}).get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    async def add_document(
        self, collection_path: str, fields: Mapping[str, Any], *, server_timestamps: Sequence[str] = ()
    ) -> Document:
        document = copy.deepcopy(dict(fields))
        document["id"] = self._new_id()
        self._stamp(document, server_timestamps)
        self._collections.setdefault(collection_path, {})[document["id"]] = document
        self._notify(collection_path)
        return copy.deepcopy(document)

    async def update_document(
        self, document_path: str, fields: Mapping[str, Any], *, server_timestamps: Sequence[str] = ()
    ) -> Document:
        collection_path, doc_id = _split_document_path(document_path)
        existing = self._collections.get(collection_path, {}).get(doc_id)
        if existing is None:
            raise PaypingNotFoundError(f"Document not found: {document_path}", code="not-found", path=document_path)
        updated = {**existing, **copy.deepcopy(dict(fields)), "id": doc_id}
        self._stamp(updated, server_timestamps)
        self._collections[collection_path][doc_id] = updated
        self._notify(collection_path)
        return copy.deepcopy(updated)

    async def set_document(
        self,
        document_path: str,
        fields: Mapping[str, Any],
        *,
        merge: bool = True,
        server_timestamps: Sequence[str] = (),
    ) -> Document:
        collection_path, doc_id = _split_document_path(document_path)
        documents = self._collections.setdefault(collection_path, {})
        base = documents.get(doc_id, {}) if merge else {}
        stored = {**base, **copy.deepcopy(dict(fields)), "id": doc_id}
        self._stamp(stored, server_timestamps)
        documents[doc_id] = stored
        self._notify(collection_path)
        return copy.deepcopy(stored)

    async def delete_document(self, document_path: str) -> None:
        collection_path, doc_id = _split_document_path(document_path)
        removed = self._collections.get(collection_path, {}).pop(doc_id, None)
        if removed is not None:
            self._notify(collection_path)

    def _stage_write(self, staged: dict[str, dict[str, Document]], write: BatchWrite) -> Document:
        document = copy.deepcopy(dict(write.fields))
        document["id"] = self._new_id()
        self._stamp(document, write.server_timestamps)
        staged.setdefault(write.collection_path, {})[document["id"]] = document
        return document

    async def commit_batch(self, writes: Sequence[BatchWrite]) -> list[Document]:
        staged: dict[str, dict[str, Document]] = {}
        created: list[Document] = []
        try:
            for write in writes:
                created.append(self._stage_write(staged, write))
        except Exception as exc:
            raise PaypingBatchError(
                f"Batch of {len(writes)} writes rejected: {exc}",
                code="aborted",
                path=":commit",
            ) from exc

        for collection_path, documents in staged.items():
            self._collections.setdefault(collection_path, {}).update(documents)
        for collection_path in staged:
            self._notify(collection_path)
        return copy.deepcopy(created)

    # ------------------------------------------------------------------
    # PushSource
    # ------------------------------------------------------------------

    def watch(self, collection_path: str, on_documents: DocumentsCallback) -> Callable[[], None]:
        """Deliver the ordered collection now and after every change."""
        watchers = self._watchers.setdefault(collection_path, [])
        watchers.append(on_documents)
        _logger.debug("Watch opened path=%s watchers=%d", collection_path, len(watchers))
        self._deliver(collection_path, on_documents, self._ordered(collection_path))

        def _unwatch() -> None:
            current = self._watchers.get(collection_path, [])
            if on_documents in current:
                current.remove(on_documents)
                _logger.debug("Watch closed path=%s", collection_path)

        return _unwatch
