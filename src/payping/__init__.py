"""payping - async data synchronization core for the PayPing dashboard."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("payping")
except PackageNotFoundError:
    __version__ = "0+local"
from payping._constants import Collection
from payping.backup import write_backup
from payping.client import PaypingClient
from payping.config import PaypingConfig
from payping.exceptions import (
    PaypingApiError,
    PaypingBatchError,
    PaypingConfigError,
    PaypingError,
    PaypingNotFoundError,
    PaypingTransportError,
    PaypingUnauthenticatedError,
)
from payping.gateway import RemoteDataGateway
from payping.identity import IdentityGate, Principal
from payping.memory import InMemoryDocumentStore
from payping.models import (
    BulkImportResult,
    Customer,
    CustomerStatus,
    ExportSnapshot,
    Payment,
    PaymentStatus,
    Settings,
    Template,
    TemplateType,
)
from payping.onboarding import OnboardingFlag
from payping.state import ErrorScope, LocalStore, StoreState
from payping.subscriptions import SubscriptionManager

__all__ = [
    "BulkImportResult",
    "Collection",
    "Customer",
    "CustomerStatus",
    "ErrorScope",
    "ExportSnapshot",
    "IdentityGate",
    "InMemoryDocumentStore",
    "LocalStore",
    "OnboardingFlag",
    "Payment",
    "PaymentStatus",
    "PaypingApiError",
    "PaypingBatchError",
    "PaypingClient",
    "PaypingConfig",
    "PaypingConfigError",
    "PaypingError",
    "PaypingNotFoundError",
    "PaypingTransportError",
    "PaypingUnauthenticatedError",
    "Principal",
    "RemoteDataGateway",
    "Settings",
    "StoreState",
    "SubscriptionManager",
    "Template",
    "TemplateType",
    "__version__",
    "write_backup",
]
