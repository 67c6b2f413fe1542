"""Authenticated principal and change notification."""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field, field_validator

_logger = logging.getLogger(__name__)

PrincipalListener = Callable[["Principal | None"], None]


class Principal(BaseModel):
    """The signed-in user.

    Parameters
    ----------
    user_id : str
        Stable user id; every remote path is scoped under it.
    id_token : str
        Bearer token presented to the document store.
    email : str
        Account email, informational only.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    user_id: str
    id_token: str = Field(default="", repr=False)
    email: str = ""
    display_name: str = ""

    @field_validator("user_id")
    @classmethod
    def _require_user_id(cls, value: str) -> str:
        if not value:
            raise ValueError("user_id must be non-empty")
        return value


class IdentityGate:
    """Holds the current principal and notifies listeners when it changes.

    Sign-in itself happens elsewhere; whatever performs it calls
    :meth:`set_principal`.  Listeners are called synchronously, in
    registration order, only when the principal id actually changes.
    """

    def __init__(self, principal: Principal | None = None) -> None:
        self._principal = principal
        self._listeners: list[PrincipalListener] = []

    @property
    def principal(self) -> Principal | None:
        return self._principal

    def current_principal_id(self) -> str | None:
        return self._principal.user_id if self._principal is not None else None

    def set_principal(self, principal: Principal | None) -> None:
        previous = self.current_principal_id()
        self._principal = principal
        current = self.current_principal_id()
        if previous == current:
            return
        _logger.debug("Principal changed from=%s to=%s", previous, current)
        for listener in list(self._listeners):
            try:
                listener(principal)
            except Exception:
                _logger.exception("Principal listener failed")

    def sign_out(self) -> None:
        self.set_principal(None)

    def on_change(self, callback: PrincipalListener) -> Callable[[], None]:
        """Register *callback*; returns a function that unregisters it."""
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe
