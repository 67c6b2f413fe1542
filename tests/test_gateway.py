from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from conftest import principal
from payping._transport import BatchWrite
from payping.exceptions import PaypingBatchError, PaypingNotFoundError, PaypingUnauthenticatedError
from payping.gateway import RemoteDataGateway
from payping.identity import IdentityGate
from payping.memory import InMemoryDocumentStore
from payping.models import CustomerStatus, TemplateType


class _FailingBatchStore(InMemoryDocumentStore):
    """Rejects the n-th staged write of a batch."""

    def __init__(self, fail_at: int) -> None:
        super().__init__()
        self._fail_at = fail_at
        self._staged = 0

    def _stage_write(self, staged: dict[str, dict[str, Any]], write: BatchWrite) -> dict[str, Any]:
        self._staged += 1
        if self._staged == self._fail_at:
            raise RuntimeError("quota exceeded")
        return super()._stage_write(staged, write)


@pytest.mark.asyncio
async def test_create_customer_round_trips_with_server_fields(gateway: RemoteDataGateway) -> None:
    created = await gateway.create_customer({"name": "Acme", "email": "a@b.com", "total_owed": 100})

    assert created.id
    assert created.created_at is not None
    assert created.updated_at == created.created_at
    assert created.name == "Acme"
    assert created.total_owed == 100
    assert created.status == CustomerStatus.CURRENT

    assert await gateway.list_customers() == [created]


@pytest.mark.asyncio
async def test_caller_supplied_server_fields_are_ignored(gateway: RemoteDataGateway) -> None:
    created = await gateway.create_customer({"id": "mine", "createdAt": "2001-01-01T00:00:00Z", "name": "Acme"})

    assert created.id != "mine"
    assert created.created_at is not None
    assert created.created_at.year != 2001


@pytest.mark.asyncio
async def test_list_is_newest_first(gateway: RemoteDataGateway) -> None:
    for name in ("first", "second", "third"):
        await gateway.create_customer({"name": name})

    customers = await gateway.list_customers()
    assert [c.name for c in customers] == ["third", "second", "first"]


@pytest.mark.asyncio
async def test_list_skips_documents_that_do_not_validate(
    gateway: RemoteDataGateway, documents: InMemoryDocumentStore
) -> None:
    await documents.add_document("users/u1/customers", {"name": "Good"}, server_timestamps=("createdAt",))
    await documents.add_document("users/u1/customers", {"name": None}, server_timestamps=("createdAt",))

    assert [c.name for c in await gateway.list_customers()] == ["Good"]
    assert [c.name for c in (await gateway.export_all()).customers] == ["Good"]


@pytest.mark.asyncio
async def test_update_stamps_updated_at_and_returns_full_record(gateway: RemoteDataGateway) -> None:
    created = await gateway.create_customer({"name": "Acme", "email": "a@b.com"})

    updated = await gateway.update_customer(created.id, {"status": "overdue", "overdue_amount": 50})

    assert updated.id == created.id
    assert updated.email == "a@b.com"
    assert updated.status == CustomerStatus.OVERDUE
    assert updated.overdue_amount == 50
    assert updated.created_at == created.created_at
    assert updated.updated_at is not None and created.updated_at is not None
    assert updated.updated_at > created.updated_at


@pytest.mark.asyncio
async def test_update_missing_document_raises_not_found(gateway: RemoteDataGateway) -> None:
    with pytest.raises(PaypingNotFoundError):
        await gateway.update_payment("missing", {"amount": 5})


@pytest.mark.asyncio
async def test_delete_removes_document(gateway: RemoteDataGateway) -> None:
    payment = await gateway.create_payment({"customer_id": "c1", "amount": 25, "due_date": "2026-02-01"})
    assert payment.due_date is not None

    await gateway.delete_payment(payment.id)

    assert await gateway.list_payments() == []


@pytest.mark.asyncio
async def test_every_call_requires_a_principal(documents: InMemoryDocumentStore) -> None:
    gateway = RemoteDataGateway(documents, IdentityGate())

    calls = [
        gateway.list_customers(),
        gateway.create_customer({"name": "Acme"}),
        gateway.update_template("t1", {"name": "x"}),
        gateway.delete_payment("p1"),
        gateway.read_settings(),
        gateway.write_settings_section("company", {"name": "x"}),
        gateway.duplicate_template("t1"),
        gateway.bulk_import_customers([{"name": "a"}]),
        gateway.export_all(),
    ]
    for call in calls:
        with pytest.raises(PaypingUnauthenticatedError):
            await call

    assert await documents.list_documents("users/u1/customers") == []


@pytest.mark.asyncio
async def test_paths_are_scoped_to_the_current_principal(
    gateway: RemoteDataGateway, identity: IdentityGate
) -> None:
    await gateway.create_customer({"name": "Acme"})

    identity.set_principal(principal("u2"))

    assert await gateway.list_customers() == []
    assert gateway.collection_path("customers") == "users/u2/customers"


@pytest.mark.asyncio
async def test_create_template_starts_unused(gateway: RemoteDataGateway) -> None:
    template = await gateway.create_template(
        {"type": "email", "name": "Reminder", "subject": "Due", "content": "Hi", "usage": 7}
    )

    assert template.usage == 0
    assert template.last_used is not None
    assert template.type == TemplateType.EMAIL


@pytest.mark.asyncio
async def test_duplicate_template_copies_fields_and_resets_usage(gateway: RemoteDataGateway) -> None:
    source = await gateway.create_template({"type": "sms", "name": "Nudge", "content": "Pay up"})
    await gateway.update_template(source.id, {"usage": 5})

    copy = await gateway.duplicate_template(source.id)

    assert copy.id != source.id
    assert copy.name == "Nudge (Copy)"
    assert copy.usage == 0
    assert copy.type == TemplateType.SMS
    assert copy.content == "Pay up"
    assert {t.id for t in await gateway.list_templates()} == {source.id, copy.id}


@pytest.mark.asyncio
async def test_duplicate_missing_template_raises_not_found(gateway: RemoteDataGateway) -> None:
    with pytest.raises(PaypingNotFoundError):
        await gateway.duplicate_template("missing")


@pytest.mark.asyncio
async def test_first_settings_read_persists_defaults(
    gateway: RemoteDataGateway, documents: InMemoryDocumentStore
) -> None:
    settings = await gateway.read_settings()

    assert settings.payment["currency"] == "USD"
    assert settings.subscription["plan"] == "free"
    stored = await documents.get_document("users/u1/settings/userSettings")
    assert stored is not None
    assert stored["company"]["name"] == "PayPing Solutions"


@pytest.mark.asyncio
async def test_missing_settings_section_reads_as_default(
    gateway: RemoteDataGateway, documents: InMemoryDocumentStore
) -> None:
    await documents.set_document("users/u1/settings/userSettings", {"company": {"name": "Acme"}})

    settings = await gateway.read_settings()

    assert settings.company == {"name": "Acme"}
    assert settings.notifications["daysBefore"] == 3


@pytest.mark.asyncio
async def test_settings_section_write_is_a_shallow_merge(gateway: RemoteDataGateway) -> None:
    await gateway.read_settings()

    settings = await gateway.write_settings_section("company", {"name": "Acme"})

    assert settings.company["name"] == "Acme"
    assert settings.company["email"] == "admin@payping.com"
    assert settings.notifications["emailReminders"] is True


@pytest.mark.asyncio
async def test_settings_section_values_are_stored_as_json(
    gateway: RemoteDataGateway, documents: InMemoryDocumentStore
) -> None:
    renewal = datetime(2026, 5, 1, tzinfo=UTC)

    settings = await gateway.write_settings_section("subscription", {"renewsAt": renewal})

    assert settings.subscription["renewsAt"] == "2026-05-01T00:00:00Z"
    stored = await documents.get_document("users/u1/settings/userSettings")
    assert stored is not None
    assert stored["subscription"]["renewsAt"] == "2026-05-01T00:00:00Z"


@pytest.mark.asyncio
async def test_unknown_settings_section_is_rejected(gateway: RemoteDataGateway) -> None:
    with pytest.raises(ValueError):
        await gateway.write_settings_section("billing", {"x": 1})


@pytest.mark.asyncio
async def test_subscription_defaults_to_free_plan_and_updates(gateway: RemoteDataGateway) -> None:
    subscription = await gateway.get_subscription()
    assert subscription["plan"] == "free"
    assert subscription["features"]["maxCustomers"] == 10

    settings = await gateway.update_subscription({"plan": "pro"})

    assert settings.subscription["plan"] == "pro"
    assert "updatedAt" in settings.subscription
    assert (await gateway.get_subscription())["plan"] == "pro"


@pytest.mark.asyncio
async def test_bulk_import_creates_every_customer(gateway: RemoteDataGateway) -> None:
    result = await gateway.bulk_import_customers([{"name": "a"}, {"name": "b"}, {"name": "c"}])

    assert result.imported == 3
    assert result.success
    customers = await gateway.list_customers()
    assert sorted(c.id for c in customers) == sorted(result.ids)


@pytest.mark.asyncio
async def test_bulk_import_is_all_or_nothing(identity: IdentityGate) -> None:
    documents = _FailingBatchStore(fail_at=2)
    gateway = RemoteDataGateway(documents, identity)

    with pytest.raises(PaypingBatchError):
        await gateway.bulk_import_customers([{"name": "a"}, {"name": "b"}, {"name": "c"}])

    assert await gateway.list_customers() == []


@pytest.mark.asyncio
async def test_bulk_import_of_nothing_writes_nothing(gateway: RemoteDataGateway) -> None:
    result = await gateway.bulk_import_customers([])

    assert result.imported == 0
    assert await gateway.list_customers() == []


@pytest.mark.asyncio
async def test_export_all_collects_everything(gateway: RemoteDataGateway) -> None:
    await gateway.create_customer({"name": "Acme"})
    await gateway.create_template({"type": "email", "name": "Reminder", "subject": "Due"})
    await gateway.create_payment({"customer_id": "c1", "amount": 10})

    snapshot = await gateway.export_all()

    assert snapshot.version == "1.0"
    assert len(snapshot.customers) == 1
    assert len(snapshot.templates) == 1
    assert len(snapshot.payments) == 1
    assert snapshot.exported_at.tzinfo is not None
    document = snapshot.to_document()
    assert document["customers"][0]["name"] == "Acme"
    assert "exportedAt" in document
