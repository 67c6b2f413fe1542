"""Custom exception hierarchy for payping."""

from __future__ import annotations


class PaypingError(Exception):
    """Base exception for all payping errors."""


class PaypingConfigError(PaypingError):
    """Invalid or missing configuration."""


class PaypingUnauthenticatedError(PaypingError):
    """No signed-in principal when a remote call was attempted.

    Raised before any request is made; the gateway never falls back to
    another principal's scope.
    """

    def __init__(self, message: str = "You are not signed in. Please sign in to access this feature.") -> None:
        super().__init__(message)


class PaypingTransportError(PaypingError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        path: str = "",
    ) -> None:
        self.status_code = status_code
        self.path = path
        super().__init__(message)


class PaypingApiError(PaypingError):
    """The document store rejected a request (application-level error)."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        path: str = "",
    ) -> None:
        self.code = code
        self.path = path
        super().__init__(message)


class PaypingNotFoundError(PaypingApiError):
    """The addressed document does not exist."""


class PaypingBatchError(PaypingApiError):
    """A batch write was rejected as a whole.

    Batches are atomic: when this is raised none of the writes in the
    batch were applied.
    """
