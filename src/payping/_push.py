"""Push channels: the ``PushSource`` interface and its MQTT runtime.

The broker publishes the complete, current collection on
``{topic_prefix}/users/{uid}/{collection}`` after every change, as
``{"documents": [...]}`` with the retain flag set, so a fresh
subscription immediately receives the latest snapshot.
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt

from payping.config import PaypingConfig
from payping.exceptions import PaypingError, PaypingUnauthenticatedError
from payping.identity import IdentityGate, Principal

Document = dict[str, Any]
DocumentsCallback = Callable[[list[Document]], None]


class PushSource(Protocol):
    """Anything that can stream full collection snapshots."""

    def watch(self, collection_path: str, on_documents: DocumentsCallback) -> Callable[[], None]: ...


@dataclass(frozen=True)
class PushBootstrap:
    """Broker/session data required to connect for one principal."""

    user_id: str
    broker_host: str
    broker_port: int
    client_id: str
    username: str
    password: str
    topic_prefix: str
    tls: bool = True


def collection_topic(topic_prefix: str, collection_path: str) -> str:
    return f"{topic_prefix.rstrip('/')}/{collection_path.strip('/')}"


def build_push_bootstrap(config: PaypingConfig, principal: Principal) -> PushBootstrap:
    """Derive broker credentials from the signed-in principal."""
    return PushBootstrap(
        user_id=principal.user_id,
        broker_host=config.mqtt_host,
        broker_port=config.mqtt_port,
        client_id=f"payping_{principal.user_id}_{secrets.token_hex(4)}",
        username=principal.user_id,
        password=principal.id_token,
        topic_prefix=config.mqtt_topic_prefix,
        tls=config.mqtt_tls,
    )


def decode_push_payload(payload: bytes) -> list[Document]:
    """Parse a push message into the list of documents it carries."""
    parsed = json.loads(payload.decode("utf-8"))
    if isinstance(parsed, list):
        documents = parsed
    elif isinstance(parsed, dict) and isinstance(parsed.get("documents"), list):
        documents = parsed["documents"]
    else:
        raise PaypingError("Push payload carries no 'documents' list")
    if not all(isinstance(doc, dict) for doc in documents):
        raise PaypingError("Push payload contains non-object documents")
    return cast(list[Document], documents)


class MqttPushRuntime:
    """Threaded paho-mqtt client that hands decoded snapshots to an asyncio loop.

    Topic handlers are registered and removed on the loop thread.  A
    message that arrives for a topic whose handlers are already gone is
    dropped when it reaches the loop, so closing is immediate even with
    a message in flight.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        keepalive: int = 120,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._keepalive = keepalive
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._bootstrap: PushBootstrap | None = None
        self._handlers: dict[str, list[DocumentsCallback]] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def user_id(self) -> str | None:
        return self._bootstrap.user_id if self._bootstrap is not None else None

    def start(self, bootstrap: PushBootstrap) -> None:
        """Connect (asynchronously, on paho's network thread) for one principal."""
        self.stop()
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s client_id=%s",
            bootstrap.broker_host,
            bootstrap.broker_port,
            bootstrap.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=bootstrap.client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        client.username_pw_set(bootstrap.username, bootstrap.password)
        if bootstrap.tls:
            client.tls_set()

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            topics = list(self._handlers)
            self._logger.debug("MQTT connected reason=%s topics=%d", reason_code, len(topics))
            for topic in topics:
                c.subscribe(topic, qos=1)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                documents = decode_push_payload(msg.payload)
            except (ValueError, PaypingError):
                self._logger.warning("Dropping undecodable push on topic=%s", msg.topic, exc_info=True)
                return
            self._logger.debug("Push received topic=%s documents=%d", msg.topic, len(documents))
            self._loop.call_soon_threadsafe(self._dispatch, msg.topic, documents)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect_async(bootstrap.broker_host, bootstrap.broker_port, keepalive=self._keepalive)
        client.loop_start()

        self._client = client
        self._bootstrap = bootstrap
        self._running = True

    def stop(self) -> None:
        """Disconnect and forget every topic handler."""
        client = self._client
        self._client = None
        self._bootstrap = None
        self._handlers.clear()
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def add_handler(self, topic: str, handler: DocumentsCallback) -> None:
        handlers = self._handlers.setdefault(topic, [])
        handlers.append(handler)
        if len(handlers) == 1 and self._client is not None and self._client.is_connected():
            self._client.subscribe(topic, qos=1)

    def remove_handler(self, topic: str, handler: DocumentsCallback) -> None:
        handlers = self._handlers.get(topic)
        if not handlers or handler not in handlers:
            return
        handlers.remove(handler)
        if handlers:
            return
        del self._handlers[topic]
        if self._client is not None and self._client.is_connected():
            self._client.unsubscribe(topic)

    @property
    def has_handlers(self) -> bool:
        return bool(self._handlers)

    def _dispatch(self, topic: str, documents: list[Document]) -> None:
        for handler in list(self._handlers.get(topic, [])):
            try:
                handler(documents)
            except Exception:
                self._logger.exception("Push handler failed topic=%s", topic)


class MqttPushSource:
    """:class:`PushSource` backed by one MQTT connection per principal.

    The connection is opened on the first :meth:`watch` and closed when
    the last watch is released or the principal changes.
    """

    def __init__(
        self,
        config: PaypingConfig,
        identity: IdentityGate,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._identity = identity
        self._loop = loop
        self._logger = logger or logging.getLogger(__name__)
        self._runtime: MqttPushRuntime | None = None

    def _ensure_runtime(self) -> MqttPushRuntime:
        principal = self._identity.principal
        if principal is None:
            raise PaypingUnauthenticatedError()
        runtime = self._runtime
        if runtime is not None and runtime.is_running and runtime.user_id == principal.user_id:
            return runtime
        if runtime is not None:
            runtime.stop()
        loop = self._loop or asyncio.get_running_loop()
        runtime = MqttPushRuntime(loop=loop, keepalive=self._config.mqtt_keepalive, logger=self._logger)
        runtime.start(build_push_bootstrap(self._config, principal))
        self._runtime = runtime
        return runtime

    def watch(self, collection_path: str, on_documents: DocumentsCallback) -> Callable[[], None]:
        runtime = self._ensure_runtime()
        topic = collection_topic(self._config.mqtt_topic_prefix, collection_path)
        runtime.add_handler(topic, on_documents)

        def _unwatch() -> None:
            runtime.remove_handler(topic, on_documents)
            if runtime is self._runtime and not runtime.has_handlers:
                self.close()

        return _unwatch

    def close(self) -> None:
        runtime = self._runtime
        self._runtime = None
        if runtime is not None:
            runtime.stop()
