from __future__ import annotations

from payping._redact import mask_contact, redact_for_log


def test_redact_for_log_redacts_secrets_and_masks_contacts() -> None:
    payload = {
        "Authorization": "Bearer abc",
        "fields": {
            "name": "Acme",
            "email": "billing@acme.com",
            "phone": "+1 555 0100",
            "idToken": "tok",
        },
        "writes": [{"password": "pw"}],
        "count": 3,
    }

    redacted = redact_for_log(payload)

    assert redacted["Authorization"] == "<redacted>"
    assert redacted["fields"]["name"] == "Acme"
    assert redacted["fields"]["email"] == "b***@acme.com"
    assert redacted["fields"]["phone"] == "***00"
    assert redacted["fields"]["idToken"] == "<redacted>"
    assert redacted["writes"][0]["password"] == "<redacted>"
    assert redacted["count"] == 3
    assert payload["fields"]["email"] == "billing@acme.com"


def test_redact_for_log_truncates_long_strings() -> None:
    redacted = redact_for_log({"content": "x" * 600}, max_string=10)
    assert redacted["content"].startswith("x" * 10)
    assert "<truncated>" in redacted["content"]


def test_mask_contact_short_values() -> None:
    assert mask_contact("") == ""
    assert mask_contact("ab") == "***"
