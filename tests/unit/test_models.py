"""Unit tests for ProtectionRequest / ProtectionResult / ProtectionError.

The central invariant: the payload (or revealed plaintext) never appears in a
repr(), an exception message, or a ProtectionFailed raised by unwrap().
"""

from __future__ import annotations

import dataclasses

import pytest

from dataprotect.models import (
    ErrorKind,
    Operation,
    ProtectionError,
    ProtectionFailed,
    ProtectionRequest,
    ProtectionResult,
)
from tests.helpers import TEST_PAN


class TestProtectionRequest:
    def test_body_uses_wire_field_names(self) -> None:
        request = ProtectionRequest(Operation.PROTECT, "protect-credit-card", TEST_PAN)
        assert request.to_body("data", "protection_policy_name") == {
            "protection_policy_name": "protect-credit-card",
            "data": TEST_PAN,
        }

    def test_repr_redacts_payload(self) -> None:
        request = ProtectionRequest(Operation.PROTECT, "protect-credit-card", TEST_PAN)
        text = repr(request)
        assert TEST_PAN not in text
        assert "len=16" in text
        assert "protect-credit-card" in text

    def test_empty_payload_allowed(self) -> None:
        assert ProtectionRequest(Operation.REVEAL, "p", "").payload == ""

    def test_empty_policy_rejected(self) -> None:
        with pytest.raises(ValueError):
            ProtectionRequest(Operation.PROTECT, "", TEST_PAN)

    def test_non_string_policy_rejected(self) -> None:
        with pytest.raises(TypeError):
            ProtectionRequest(Operation.PROTECT, None, TEST_PAN)  # type: ignore[arg-type]

    def test_frozen(self) -> None:
        request = ProtectionRequest(Operation.PROTECT, "p", TEST_PAN)
        with pytest.raises(dataclasses.FrozenInstanceError):
            request.payload = "other"  # type: ignore[misc]


class TestProtectionResult:
    def test_ok_and_unwrap(self) -> None:
        result = ProtectionResult(value="tkn_abc123")
        assert result.ok is True
        assert result.unwrap() == "tkn_abc123"

    def test_repr_redacts_value(self) -> None:
        # A reveal result holds plaintext.
        assert TEST_PAN not in repr(ProtectionResult(value=TEST_PAN))

    def test_equality_by_value(self) -> None:
        assert ProtectionResult(value="a") == ProtectionResult(value="a")
        assert ProtectionResult(value="a") != ProtectionResult(value="b")


class TestProtectionError:
    def test_only_unavailable_is_retryable(self) -> None:
        retryable = {kind: ProtectionError(kind=kind).retryable for kind in ErrorKind}
        assert retryable == {
            ErrorKind.UNAVAILABLE: True,
            ErrorKind.API_ERROR: False,
            ErrorKind.MALFORMED_RESPONSE: False,
            ErrorKind.CANCELLED: False,
        }

    def test_kinds_are_distinct(self) -> None:
        assert len({kind.value for kind in ErrorKind}) == 4

    def test_repr_shows_body_length_not_body(self) -> None:
        error = ProtectionError(
            kind=ErrorKind.API_ERROR,
            status_code=400,
            body=f'{{"error":"bad card {TEST_PAN}"}}',
        )
        text = repr(error)
        assert TEST_PAN not in text
        assert "status_code=400" in text
        assert "body_length=" in text

    def test_unwrap_raises_protection_failed(self) -> None:
        error = ProtectionError(
            kind=ErrorKind.API_ERROR, status_code=400, body=f"echo {TEST_PAN}"
        )
        assert error.ok is False
        with pytest.raises(ProtectionFailed) as excinfo:
            error.unwrap()
        assert excinfo.value.error is error
        assert TEST_PAN not in str(excinfo.value)
        assert "api_error" in str(excinfo.value)
        assert "status=400" in str(excinfo.value)
