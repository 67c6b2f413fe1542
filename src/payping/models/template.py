"""Message template model."""

from __future__ import annotations

from pydantic import Field

from payping._constants import SMS_MAX_LENGTH
from payping.models._base import Entity, PaypingEnum, ServerTimestamp


class TemplateType(PaypingEnum):
    UNKNOWN = "unknown"
    EMAIL = "email"
    SMS = "sms"


class Template(Entity):
    """A reminder template in the ``templates`` collection.

    Shape rules (``subject`` required for email, ``content`` capped at
    160 characters for SMS) are enforced by the form layer before a write
    is issued.  Documents read from the store are accepted as-is; use
    :meth:`validation_errors` to inspect them.
    """

    type: TemplateType = TemplateType.EMAIL
    name: str = ""
    subject: str | None = None
    content: str = ""
    usage: int = Field(default=0, ge=0)
    """Number of reminders sent with this template."""
    last_used: ServerTimestamp = None

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if not self.name.strip():
            errors.append("name is required")
        if self.type == TemplateType.EMAIL and not (self.subject or "").strip():
            errors.append("subject is required for email templates")
        if self.type == TemplateType.SMS and len(self.content) > SMS_MAX_LENGTH:
            errors.append(f"sms content must be at most {SMS_MAX_LENGTH} characters, got {len(self.content)}")
        return errors
