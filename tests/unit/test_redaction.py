"""Tests for payload redaction helpers and the structlog redaction processor."""

from __future__ import annotations

from dataprotect.redaction import redact, redact_headers, redact_sensitive_fields
from tests.helpers import TEST_PAN


class TestRedact:
    def test_shows_length_only(self) -> None:
        assert redact(TEST_PAN) == "[REDACTED len=16]"

    def test_empty_string(self) -> None:
        assert redact("") == "[REDACTED len=0]"

    def test_none(self) -> None:
        assert redact(None) == "[REDACTED]"


class TestRedactHeaders:
    def test_authorization_masked_case_insensitively(self) -> None:
        headers = redact_headers(
            [("Authorization", "Bearer sk-live-123"), ("X-Request-ID", "01ABC")]
        )
        assert "sk-live-123" not in headers["Authorization"]
        assert headers["X-Request-ID"] == "01ABC"

    def test_lowercase_proxy_authorization(self) -> None:
        headers = redact_headers([("proxy-authorization", "Basic dXNlcjpwYXNz")])
        assert headers["proxy-authorization"].startswith("[REDACTED")


class TestRedactSensitiveFieldsProcessor:
    def test_sensitive_keys_replaced(self) -> None:
        event = {"event": "oops", "data": TEST_PAN, "plaintext": TEST_PAN, "policy": "p"}
        result = redact_sensitive_fields(None, "info", event)
        assert TEST_PAN not in str(result)
        assert result["policy"] == "p"
        assert result["data"] == "[REDACTED len=16]"

    def test_non_string_values_fully_redacted(self) -> None:
        result = redact_sensitive_fields(None, "info", {"payload": 4111111111111111})
        assert result["payload"] == "[REDACTED]"

    def test_lengths_untouched(self) -> None:
        event = {"payload_length": 16, "value_length": 10}
        assert redact_sensitive_fields(None, "info", dict(event)) == event
