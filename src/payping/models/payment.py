"""Payment record model."""

from __future__ import annotations

from datetime import date

from pydantic import Field

from payping.models._base import Entity, PaypingEnum


class PaymentStatus(PaypingEnum):
    UNKNOWN = "unknown"
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class Payment(Entity):
    """A payment record in the ``payments`` collection.

    ``customer_id`` is a plain reference: deleting the customer leaves it
    dangling, and nothing in this library cascades or repairs it.
    """

    customer_id: str = ""
    amount: float = Field(default=0.0, ge=0)
    status: PaymentStatus = PaymentStatus.PENDING
    due_date: date | None = None
    paid_date: date | None = None
    description: str = ""

    @property
    def is_settled(self) -> bool:
        return self.status == PaymentStatus.PAID
