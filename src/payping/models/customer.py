"""Customer model."""

from __future__ import annotations

from pydantic import Field

from payping.models._base import Entity, PaypingEnum


class CustomerStatus(PaypingEnum):
    """Account standing of a customer."""

    UNKNOWN = "unknown"
    CURRENT = "current"
    OVERDUE = "overdue"
    PAID = "paid"


class Customer(Entity):
    """A customer record in the ``customers`` collection."""

    name: str = ""
    email: str = ""
    phone: str = ""
    company: str = ""
    address: str = ""
    total_owed: float = Field(default=0.0, ge=0)
    """Outstanding balance across all payments."""
    overdue_amount: float = Field(default=0.0, ge=0)
    """Portion of ``total_owed`` that is past due."""
    status: CustomerStatus = CustomerStatus.CURRENT
    reminders_enabled: bool = True

    @property
    def is_overdue(self) -> bool:
        return self.status == CustomerStatus.OVERDUE

    def is_consistent(self) -> bool:
        """Whether an ``overdue`` status is backed by a positive overdue amount."""
        return not self.is_overdue or self.overdue_amount > 0
