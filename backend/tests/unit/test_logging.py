"""Tests for log redaction."""

from app.core.logging import REDACTED, add_app_context, redact_sensitive


def test_redacts_contact_details_and_credentials():
    event = redact_sensitive(
        None,
        "info",
        {
            "event": "patient_created",
            "email": "jane@x.com",
            "password": "dentist123",
            "patient_id": 7,
        },
    )

    assert event["email"] == REDACTED
    assert event["password"] == REDACTED
    assert event["patient_id"] == 7
    assert event["event"] == "patient_created"


def test_redacts_nested_details():
    event = redact_sensitive(
        None, "info", {"event": "x", "details": {"phone": "555-0100", "fields": ["phone"]}}
    )

    assert event["details"] == {"phone": REDACTED, "fields": ["phone"]}


def test_none_values_are_kept():
    assert redact_sensitive(None, "info", {"event": "x", "email": None})["email"] is None


def test_app_context():
    assert add_app_context(None, "info", {"event": "x"})["app"] == "dentaldesk"
