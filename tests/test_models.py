from __future__ import annotations

from datetime import UTC, datetime

import pytest

from payping.models import (
    Customer,
    CustomerStatus,
    Payment,
    PaymentStatus,
    Settings,
    Template,
    TemplateType,
    parse_timestamp,
    sort_newest_first,
)


@pytest.mark.parametrize(
    "value",
    [
        "2026-01-02T03:04:05Z",
        "2026-01-02T03:04:05+00:00",
        1767323045,
        1767323045000,
        {"seconds": 1767323045, "nanos": 0},
        datetime(2026, 1, 2, 3, 4, 5),
    ],
)
def test_parse_timestamp_accepts_store_formats(value: object) -> None:
    assert parse_timestamp(value) == datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)


def test_parse_timestamp_empty_values() -> None:
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None


def test_parse_timestamp_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_timestamp("not a date")


def test_customer_reads_camel_case_document() -> None:
    customer = Customer.model_validate(
        {
            "id": "c1",
            "name": "Acme",
            "totalOwed": 100,
            "overdueAmount": 40,
            "status": "OVERDUE",
            "remindersEnabled": False,
            "createdAt": "2026-01-01T00:00:00Z",
            "notes": "kept",
        }
    )

    assert customer.total_owed == 100
    assert customer.status == CustomerStatus.OVERDUE
    assert customer.is_overdue
    assert customer.is_consistent()
    assert customer.reminders_enabled is False
    assert customer.to_document()["notes"] == "kept"
    assert "id" not in customer.to_document()
    assert customer.to_document(include_server_fields=True)["id"] == "c1"


def test_unexpected_status_maps_to_unknown() -> None:
    payment = Payment.model_validate({"id": "p1", "status": "refunded"})
    assert payment.status == PaymentStatus.UNKNOWN
    assert not payment.is_settled


def test_inconsistent_overdue_customer_is_detected() -> None:
    customer = Customer(id="c1", status=CustomerStatus.OVERDUE, overdue_amount=0)
    assert not customer.is_consistent()


def test_with_patch_accepts_either_naming_style() -> None:
    customer = Customer(id="c1", name="Acme")

    patched = customer.with_patch({"total_owed": 10}).with_patch({"remindersEnabled": False})

    assert patched.id == "c1"
    assert patched.total_owed == 10
    assert patched.reminders_enabled is False
    assert customer.total_owed == 0


def test_template_validation_errors() -> None:
    email = Template(id="t1", type=TemplateType.EMAIL, name="Reminder")
    sms = Template(id="t2", type=TemplateType.SMS, name="Nudge", content="x" * 161)
    ok = Template(id="t3", type=TemplateType.SMS, name="Nudge", content="x" * 160)

    assert email.validation_errors() == ["subject is required for email templates"]
    assert len(sms.validation_errors()) == 1
    assert ok.validation_errors() == []


def test_sort_newest_first_puts_undated_last() -> None:
    items = [
        Customer(id="undated"),
        Customer.model_validate({"id": "old", "createdAt": "2026-01-01T00:00:00Z"}),
        Customer.model_validate({"id": "new", "createdAt": "2026-02-01T00:00:00Z"}),
    ]
    assert [c.id for c in sort_newest_first(items)] == ["new", "old", "undated"]


def test_settings_sections_are_independent_copies() -> None:
    settings = Settings.defaults()

    section = settings.section("company")
    section["name"] = "mutated"
    updated = settings.with_section("notifications", {"daysBefore": 5})

    assert settings.company["name"] == "PayPing Solutions"
    assert updated.notifications["daysBefore"] == 5
    assert updated.notifications["emailReminders"] is True
    assert settings.notifications["daysBefore"] == 3
    with pytest.raises(KeyError):
        settings.section("billing")
