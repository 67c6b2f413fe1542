"""High-level async client wiring the sync core together."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from payping._push import MqttPushSource, PushSource
from payping._transport import DocumentStore, RestDocumentStore
from payping.config import PaypingConfig
from payping.exceptions import PaypingError
from payping.gateway import RemoteDataGateway
from payping.identity import IdentityGate
from payping.onboarding import OnboardingFlag
from payping.state.store import LocalStore
from payping.subscriptions import SubscriptionManager

_logger = logging.getLogger(__name__)


class PaypingClient:
    """Owns the HTTP session, push connection and local store.

    Usage::

        identity = IdentityGate()
        async with PaypingClient(PaypingConfig.from_env(), identity) as client:
            identity.set_principal(Principal(user_id=uid, id_token=token))
            await client.store.wait_until_idle()
            print(client.store.snapshot.customers)

    Parameters
    ----------
    config : PaypingConfig
        Endpoints, timeouts and push settings.
    identity : IdentityGate
        The gate the embedding application signs principals into.
    document_store : DocumentStore, optional
        Replaces the REST store, e.g. with
        :class:`~payping.memory.InMemoryDocumentStore`.
    push_source : PushSource, optional
        Replaces the MQTT push source.  When a document store is given but
        no push source, the document store is used if it can ``watch``.
    session : aiohttp.ClientSession, optional
        Externally managed HTTP session; it is not closed on exit.
    """

    def __init__(
        self,
        config: PaypingConfig,
        identity: IdentityGate,
        *,
        document_store: DocumentStore | None = None,
        push_source: PushSource | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._identity = identity
        self._document_store = document_store
        self._push_source = push_source
        self._external_session = session is not None
        self._http_session = session
        self._mqtt_source: MqttPushSource | None = None
        self._gateway: RemoteDataGateway | None = None
        self._subscriptions: SubscriptionManager | None = None
        self._store: LocalStore | None = None
        self.onboarding = OnboardingFlag(config.state_dir)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PaypingClient:
        loop = asyncio.get_running_loop()
        document_store = self._document_store
        if document_store is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            document_store = RestDocumentStore(self._config, self._http_session, self._id_token)

        push_source = self._push_source
        if push_source is None and hasattr(document_store, "watch"):
            push_source = document_store  # type: ignore[assignment]
        if push_source is None and self._config.mqtt_enabled:
            self._mqtt_source = MqttPushSource(self._config, self._identity, loop=loop, logger=_logger)
            push_source = self._mqtt_source

        self._gateway = RemoteDataGateway(document_store, self._identity)
        self._subscriptions = SubscriptionManager(push_source, self._identity) if push_source is not None else None
        self._store = LocalStore(self._gateway, self._identity, self._subscriptions)
        self._store.attach()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._store is not None:
            self._store.detach()
            await self._store.wait_until_idle()
        if self._mqtt_source is not None:
            self._mqtt_source.close()
            self._mqtt_source = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    def _id_token(self) -> str | None:
        principal = self._identity.principal
        return principal.id_token if principal is not None else None

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @property
    def identity(self) -> IdentityGate:
        return self._identity

    @property
    def gateway(self) -> RemoteDataGateway:
        if self._gateway is None:
            raise PaypingError("Client not entered; use 'async with PaypingClient(...)'")
        return self._gateway

    @property
    def subscriptions(self) -> SubscriptionManager | None:
        return self._subscriptions

    @property
    def store(self) -> LocalStore:
        if self._store is None:
            raise PaypingError("Client not entered; use 'async with PaypingClient(...)'")
        return self._store
