from __future__ import annotations

import pytest

from payping.gateway import RemoteDataGateway
from payping.identity import IdentityGate, Principal
from payping.memory import InMemoryDocumentStore


def principal(user_id: str = "u1") -> Principal:
    return Principal(user_id=user_id, id_token=f"token-{user_id}", email=f"{user_id}@example.com")


@pytest.fixture
def identity() -> IdentityGate:
    return IdentityGate(principal("u1"))


@pytest.fixture
def documents() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def gateway(documents: InMemoryDocumentStore, identity: IdentityGate) -> RemoteDataGateway:
    return RemoteDataGateway(documents, identity)
