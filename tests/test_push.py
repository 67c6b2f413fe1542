from __future__ import annotations

import asyncio
import json

import pytest

from conftest import principal
from payping._push import (
    MqttPushRuntime,
    MqttPushSource,
    build_push_bootstrap,
    collection_topic,
    decode_push_payload,
)
from payping.config import PaypingConfig
from payping.exceptions import PaypingError, PaypingUnauthenticatedError
from payping.identity import IdentityGate


def test_decode_accepts_wrapped_and_bare_lists() -> None:
    docs = [{"id": "a", "name": "Acme"}]
    assert decode_push_payload(json.dumps({"documents": docs}).encode()) == docs
    assert decode_push_payload(json.dumps(docs).encode()) == docs


@pytest.mark.parametrize("payload", [b'{"items": []}', b'"text"', b"[1, 2]"])
def test_decode_rejects_other_shapes(payload: bytes) -> None:
    with pytest.raises(PaypingError):
        decode_push_payload(payload)


def test_collection_topic() -> None:
    assert collection_topic("payping/", "/users/u1/customers") == "payping/users/u1/customers"


def test_bootstrap_uses_principal_credentials() -> None:
    config = PaypingConfig(mqtt_host="broker.test", mqtt_port=1883, mqtt_tls=False)

    bootstrap = build_push_bootstrap(config, principal("u1"))

    assert bootstrap.username == "u1"
    assert bootstrap.password == "token-u1"
    assert bootstrap.broker_host == "broker.test"
    assert bootstrap.client_id.startswith("payping_u1_")
    assert bootstrap.tls is False


@pytest.mark.asyncio
async def test_runtime_dispatch_isolates_failing_handlers() -> None:
    runtime = MqttPushRuntime(loop=asyncio.get_running_loop())
    received: list[list[dict[str, object]]] = []

    def broken(_documents: list[dict[str, object]]) -> None:
        raise RuntimeError("boom")

    runtime.add_handler("payping/users/u1/customers", broken)
    runtime.add_handler("payping/users/u1/customers", received.append)
    runtime._dispatch("payping/users/u1/customers", [{"id": "a"}])  # type: ignore[attr-defined]

    assert received == [[{"id": "a"}]]

    runtime.remove_handler("payping/users/u1/customers", broken)
    runtime.remove_handler("payping/users/u1/customers", received.append)
    assert not runtime.has_handlers
    runtime._dispatch("payping/users/u1/customers", [{"id": "b"}])  # type: ignore[attr-defined]
    assert len(received) == 1


@pytest.mark.asyncio
async def test_source_requires_principal() -> None:
    source = MqttPushSource(PaypingConfig(), IdentityGate())

    with pytest.raises(PaypingUnauthenticatedError):
        source.watch("users/u1/customers", lambda _docs: None)
