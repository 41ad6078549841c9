from __future__ import annotations

from salescache._redact import redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "identity": "owner@example.com",
        "password": "pw",
        "record": {"id": "u1", "token": "JWT"},
        "nested": {"Authorization": "Bearer x"},
    }

    redacted = redact_for_log(payload)
    assert redacted["identity"] == "<redacted>"
    assert redacted["password"] == "<redacted>"
    assert redacted["record"]["token"] == "<redacted>"
    assert redacted["record"]["id"] == "u1"
    assert redacted["nested"]["Authorization"] == "<redacted>"


def test_redact_for_log_truncates_long_strings_and_summarizes_lists() -> None:
    redacted = redact_for_log({"value": "x" * 600, "salesData": list(range(50))}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]
    assert redacted["salesData"] == "<list:50 items>"
