"""Internal constants shared across the library."""

from __future__ import annotations

import copy
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

BASE_URL = "https://api.payping.app"
USER_AGENT = "payping-python/0.3"


class Collection(StrEnum):
    """The three synchronized entity collections."""

    CUSTOMERS = "customers"
    TEMPLATES = "templates"
    PAYMENTS = "payments"


CUSTOMERS = Collection.CUSTOMERS
TEMPLATES = Collection.TEMPLATES
PAYMENTS = Collection.PAYMENTS
SETTINGS = "settings"

SETTINGS_DOCUMENT_ID = "userSettings"
SETTINGS_SECTIONS: tuple[str, ...] = ("company", "notifications", "payment", "branding", "subscription")

#: Schema tag written into every export snapshot.
EXPORT_VERSION = "1.0"

COPY_SUFFIX = " (Copy)"
SMS_MAX_LENGTH = 160
PROVISIONAL_ID_PREFIX = "pending-"
ONBOARDING_FLAG_KEY = "payping_onboarding_complete"

_DEFAULT_SETTINGS: dict[str, dict[str, Any]] = {
    "company": {
        "name": "PayPing Solutions",
        "email": "admin@payping.com",
        "phone": "+1 (555) 123-4567",
        "address": "123 Business St, Suite 100",
        "city": "San Francisco",
        "state": "CA",
        "zipCode": "94102",
        "website": "https://payping.com",
    },
    "notifications": {
        "emailReminders": True,
        "smsReminders": False,
        "daysBefore": 3,
        "escalationDays": 7,
        "sendReceipts": True,
        "weeklyReports": True,
    },
    "payment": {
        "currency": "USD",
        "lateFeePercent": 5,
        "gracePeriodDays": 5,
        "autoReminders": True,
        "paymentMethods": ["credit_card", "bank_transfer", "paypal"],
    },
    "branding": {
        "primaryColor": "#3B82F6",
        "secondaryColor": "#10B981",
        "emailTemplate": "modern",
        "invoiceTemplate": "professional",
    },
}


def default_subscription(now: datetime | None = None) -> dict[str, Any]:
    """Free plan returned when no subscription has been stored yet."""
    started = now or datetime.now(UTC)
    return {
        "plan": "free",
        "status": "active",
        "startDate": started.isoformat(),
        "features": {
            "maxCustomers": 10,
            "maxReminders": 25,
            "templates": 3,
            "users": 1,
        },
    }


def default_settings(now: datetime | None = None) -> dict[str, dict[str, Any]]:
    """Return a fresh copy of the built-in settings sections."""
    sections = copy.deepcopy(_DEFAULT_SETTINGS)
    sections["subscription"] = default_subscription(now)
    return sections


def user_collection_path(principal_id: str, collection: str) -> str:
    """Remote path of one of a principal's collections."""
    return f"users/{principal_id}/{collection}"
