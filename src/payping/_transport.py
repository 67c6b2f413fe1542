"""Document store interface and its HTTP implementation.

The gateway never talks HTTP directly; it goes through the
:class:`DocumentStore` protocol so the REST client below and the
in-memory store (:mod:`payping.memory`) are interchangeable.

Wire format of :class:`RestDocumentStore` (JSON, bearer auth)::

    GET    /v1/documents/{collection}?orderBy=createdAt&direction=desc
           -> {"documents": [{"id": ..., ...}, ...]}
    GET    /v1/documents/{collection}/{id}          -> document | 404
    POST   /v1/documents/{collection}               -> created document
           {"fields": {...}, "serverTimestamps": ["createdAt", ...]}
    PATCH  /v1/documents/{collection}/{id}          -> updated document | 404
           {"fields": {...}, "serverTimestamps": ["updatedAt"]}
    PUT    /v1/documents/{collection}/{id}          -> stored document
           {"fields": {...}, "merge": true, "serverTimestamps": [...]}
    DELETE /v1/documents/{collection}/{id}
    POST   /v1/documents:commit                     -> {"documents": [...]}
           {"writes": [{"collection": ..., "fields": ..., "serverTimestamps": ...}]}

Errors come back as ``{"error": {"code": ..., "message": ...}}``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

import aiohttp

from payping._constants import USER_AGENT
from payping._redact import redact_for_log
from payping.config import PaypingConfig
from payping.exceptions import (
    PaypingApiError,
    PaypingBatchError,
    PaypingNotFoundError,
    PaypingTransportError,
)

_logger = logging.getLogger(__name__)

Document = dict[str, Any]


@dataclass(frozen=True)
class BatchWrite:
    """One document creation inside an atomic batch."""

    collection_path: str
    fields: Mapping[str, Any]
    server_timestamps: tuple[str, ...] = field(default=("createdAt", "updatedAt"))


class DocumentStore(Protocol):
    """Structural interface of the remote document store.

    Ids and every field named in ``server_timestamps`` are assigned by
    the store at write time.  Every method returns documents with their
    ``id`` merged in.
    """

    async def list_documents(
        self, collection_path: str, *, order_by: str = "createdAt", descending: bool = True
    ) -> list[Document]: ...

    async def get_document(self, document_path: str) -> Document | None: ...

    async def add_document(
        self, collection_path: str, fields: Mapping[str, Any], *, server_timestamps: Sequence[str] = ()
    ) -> Document: ...

    async def update_document(
        self, document_path: str, fields: Mapping[str, Any], *, server_timestamps: Sequence[str] = ()
    ) -> Document: ...

    async def set_document(
        self,
        document_path: str,
        fields: Mapping[str, Any],
        *,
        merge: bool = True,
        server_timestamps: Sequence[str] = (),
    ) -> Document: ...

    async def delete_document(self, document_path: str) -> None: ...

    async def commit_batch(self, writes: Sequence[BatchWrite]) -> list[Document]: ...


class RestDocumentStore:
    """HTTP document store client authenticated with the principal's token."""

    def __init__(
        self,
        config: PaypingConfig,
        http_session: aiohttp.ClientSession,
        token_provider: Callable[[], str | None],
    ) -> None:
        self._config = config
        self._http = http_session
        self._token_provider = token_provider
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _url(self, path: str) -> str:
        return f"{self._config.base_url.rstrip('/')}/v1/documents/{path.strip('/')}"

    def _headers(self) -> dict[str, str]:
        headers = {
            "accept": "application/json",
            "content-type": "application/json; charset=UTF-8",
            "user-agent": USER_AGENT,
        }
        token = self._token_provider()
        if token:
            headers["authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
        url: str | None = None,
    ) -> tuple[int, Any]:
        target = url or self._url(path)
        _logger.debug("%s %s", method, target)
        if self._config.api_trace_enabled and body is not None:
            _logger.debug("Request body path=%s body=%s", path, redact_for_log(body))

        try:
            async with self._http.request(
                method,
                target,
                data=json.dumps(body) if body is not None else None,
                params=params,
                headers=self._headers(),
                timeout=self._timeout,
            ) as resp:
                status = resp.status
                text = await resp.text()
        except aiohttp.ClientError as exc:
            raise PaypingTransportError(f"{method} {path} failed: {exc}", path=path) from exc
        except TimeoutError as exc:
            raise PaypingTransportError(f"{method} {path} timed out", path=path) from exc

        payload: Any = None
        if text.strip():
            try:
                payload = json.loads(text)
            except json.JSONDecodeError as exc:
                raise PaypingTransportError(
                    f"Invalid JSON from {method} {path}: {text[:200]}",
                    status_code=status,
                    path=path,
                ) from exc

        if self._config.api_trace_enabled:
            _logger.debug("Response path=%s status=%s body=%s", path, status, redact_for_log(payload))
        return status, payload

    @staticmethod
    def _error_details(payload: Any) -> tuple[str, str]:
        error = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error, dict):
            return str(error.get("code", "")), str(error.get("message", ""))
        return "", ""

    def _raise_for_status(self, method: str, path: str, status: int, payload: Any) -> None:
        if 200 <= status < 300:
            return
        code, message = self._error_details(payload)
        if status == 404:
            raise PaypingNotFoundError(f"Document not found: {path}", code=code or "not-found", path=path)
        if status in (400, 401, 403, 409, 412) and code:
            raise PaypingApiError(f"{method} {path} rejected: code={code} message={message}", code=code, path=path)
        raise PaypingTransportError(
            f"HTTP {status} from {method} {path}: {message or str(payload)[:200]}",
            status_code=status,
            path=path,
        )

    @staticmethod
    def _document(path: str, payload: Any) -> Document:
        if not isinstance(payload, dict) or "id" not in payload:
            raise PaypingTransportError(f"Response for {path} is not a document", path=path)
        return payload

    async def list_documents(
        self, collection_path: str, *, order_by: str = "createdAt", descending: bool = True
    ) -> list[Document]:
        params = {"orderBy": order_by, "direction": "desc" if descending else "asc"}
        status, payload = await self._request("GET", collection_path, params=params)
        self._raise_for_status("GET", collection_path, status, payload)
        documents = payload.get("documents") if isinstance(payload, dict) else None
        if not isinstance(documents, list):
            raise PaypingTransportError(f"Missing 'documents' in listing of {collection_path}", path=collection_path)
        return [self._document(collection_path, doc) for doc in documents]

    async def get_document(self, document_path: str) -> Document | None:
        status, payload = await self._request("GET", document_path)
        if status == 404:
            return None
        self._raise_for_status("GET", document_path, status, payload)
        return self._document(document_path, payload)

    async def add_document(
        self, collection_path: str, fields: Mapping[str, Any], *, server_timestamps: Sequence[str] = ()
    ) -> Document:
        body = {"fields": dict(fields), "serverTimestamps": list(server_timestamps)}
        status, payload = await self._request("POST", collection_path, body=body)
        self._raise_for_status("POST", collection_path, status, payload)
        return self._document(collection_path, payload)

    async def update_document(
        self, document_path: str, fields: Mapping[str, Any], *, server_timestamps: Sequence[str] = ()
    ) -> Document:
        body = {"fields": dict(fields), "serverTimestamps": list(server_timestamps)}
        status, payload = await self._request("PATCH", document_path, body=body)
        self._raise_for_status("PATCH", document_path, status, payload)
        return self._document(document_path, payload)

    async def set_document(
        self,
        document_path: str,
        fields: Mapping[str, Any],
        *,
        merge: bool = True,
        server_timestamps: Sequence[str] = (),
    ) -> Document:
        body = {"fields": dict(fields), "merge": merge, "serverTimestamps": list(server_timestamps)}
        status, payload = await self._request("PUT", document_path, body=body)
        self._raise_for_status("PUT", document_path, status, payload)
        return self._document(document_path, payload)

    async def delete_document(self, document_path: str) -> None:
        status, payload = await self._request("DELETE", document_path)
        self._raise_for_status("DELETE", document_path, status, payload)

    async def commit_batch(self, writes: Sequence[BatchWrite]) -> list[Document]:
        body = {
            "writes": [
                {
                    "collection": write.collection_path,
                    "fields": dict(write.fields),
                    "serverTimestamps": list(write.server_timestamps),
                }
                for write in writes
            ]
        }
        url = f"{self._config.base_url.rstrip('/')}/v1/documents:commit"
        status, payload = await self._request("POST", ":commit", body=body, url=url)
        if not 200 <= status < 300:
            code, message = self._error_details(payload)
            raise PaypingBatchError(
                f"Batch of {len(writes)} writes rejected (HTTP {status}): {message or 'no details'}",
                code=code or str(status),
                path=":commit",
            )
        documents = payload.get("documents") if isinstance(payload, dict) else None
        if not isinstance(documents, list):
            raise PaypingTransportError("Missing 'documents' in batch commit response", path=":commit")
        return [self._document(":commit", doc) for doc in documents]
