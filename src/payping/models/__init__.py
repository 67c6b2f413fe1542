"""Data models for payping documents."""

from payping._constants import Collection
from payping.models._base import (
    Entity,
    PaypingEnum,
    PaypingModel,
    ServerTimestamp,
    decode_documents,
    parse_timestamp,
    sort_newest_first,
)
from payping.models.customer import Customer, CustomerStatus
from payping.models.export import BulkImportResult, ExportSnapshot
from payping.models.payment import Payment, PaymentStatus
from payping.models.settings import Settings
from payping.models.template import Template, TemplateType

#: Document model of each synchronized collection.
ENTITY_MODELS: dict[Collection, type[Entity]] = {
    Collection.CUSTOMERS: Customer,
    Collection.TEMPLATES: Template,
    Collection.PAYMENTS: Payment,
}

__all__ = [
    "ENTITY_MODELS",
    "BulkImportResult",
    "Customer",
    "CustomerStatus",
    "Entity",
    "ExportSnapshot",
    "Payment",
    "PaymentStatus",
    "PaypingEnum",
    "PaypingModel",
    "ServerTimestamp",
    "Settings",
    "Template",
    "TemplateType",
    "decode_documents",
    "parse_timestamp",
    "sort_newest_first",
]
