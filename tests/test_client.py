from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from conftest import principal
from payping.client import PaypingClient
from payping.config import PaypingConfig
from payping.exceptions import PaypingError
from payping.identity import IdentityGate
from payping.memory import InMemoryDocumentStore


@pytest.mark.asyncio
async def test_client_wires_store_to_injected_document_store(tmp_path: Path) -> None:
    identity = IdentityGate()
    documents = InMemoryDocumentStore()
    config = PaypingConfig(mqtt_enabled=False, state_dir=tmp_path)

    async with PaypingClient(config, identity, document_store=documents) as client:
        identity.set_principal(principal("u1"))
        await client.store.wait_until_idle()
        assert client.store.snapshot.is_initialized

        await documents.add_document("users/u1/templates", {"name": "Pushed"}, server_timestamps=("createdAt",))
        await asyncio.sleep(0)
        assert [t.name for t in client.store.snapshot.templates] == ["Pushed"]

        client.onboarding.mark_complete()

    assert client.subscriptions is not None
    assert client.subscriptions.open_collections == []
    assert PaypingClient(config, identity).onboarding.is_complete()


def test_components_require_entering_the_client() -> None:
    client = PaypingClient(PaypingConfig(mqtt_enabled=False), IdentityGate())
    with pytest.raises(PaypingError):
        _ = client.store
