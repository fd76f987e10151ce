"""Request and outcome contracts for protect/reveal calls.

A call produces exactly one of two outcomes, both returned (never raised):

  - ProtectionResult — the service transformed the value.
  - ProtectionError  — the call failed; ``kind`` says how.

ErrorKind values are never merged into one generic failure, so callers can tell
"try again" (UNAVAILABLE) from "fix the request" (API_ERROR) from "the service
contract changed" (MALFORMED_RESPONSE) from "I gave up" (CANCELLED).

IMPORTANT: payloads and revealed values are excluded from every ``repr()`` and
exception message in this module. Only lengths appear.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from dataprotect.redaction import redact


class Operation(str, Enum):
    """Which endpoint a request targets."""

    PROTECT = "protect"
    REVEAL = "reveal"


class ErrorKind(str, Enum):
    """Failure taxonomy. Only UNAVAILABLE is retryable."""

    UNAVAILABLE = "unavailable"
    API_ERROR = "api_error"
    MALFORMED_RESPONSE = "malformed_response"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ProtectionRequest:
    """One protect or reveal call.

    Raises:
        ValueError: If ``policy_name`` is empty.
        TypeError:  If ``policy_name`` or ``payload`` is not a ``str``.
    """

    operation: Operation
    policy_name: str
    payload: str = field(repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.policy_name, str):
            raise TypeError("policy_name must be a str")
        if not self.policy_name:
            raise ValueError("policy_name must be a non-empty string")
        if not isinstance(self.payload, str):
            # The type name is safe to show; the value is not.
            raise TypeError(f"payload must be a str, got {type(self.payload).__name__}")

    def __repr__(self) -> str:
        return (
            f"ProtectionRequest(operation={self.operation.value!r}, "
            f"policy_name={self.policy_name!r}, payload={redact(self.payload)!r})"
        )

    def to_body(self, data_field: str, policy_field: str) -> dict[str, str]:
        """Build the JSON request body."""
        return {policy_field: self.policy_name, data_field: self.payload}


@dataclass(frozen=True)
class ProtectionResult:
    """Successful outcome: the protected token/ciphertext, or the revealed plaintext."""

    value: str

    ok = True

    def __repr__(self) -> str:
        return f"ProtectionResult(value={redact(self.value)!r})"

    def unwrap(self) -> str:
        return self.value


@dataclass(frozen=True)
class ProtectionError:
    """Failed outcome.

    status_code and body are set for API_ERROR (and for MALFORMED_RESPONSE, where
    the service answered 2xx with an unusable body). body is the raw response text,
    surfaced verbatim; it is not shown by ``repr()`` because a misbehaving service
    could echo the submitted payload.
    """

    kind: ErrorKind
    reason: str = ""
    status_code: Optional[int] = None
    body: Optional[str] = field(default=None, repr=False)
    attempts: int = 0

    ok = False

    @property
    def retryable(self) -> bool:
        return self.kind is ErrorKind.UNAVAILABLE

    def __repr__(self) -> str:
        body_len = None if self.body is None else len(self.body)
        return (
            f"ProtectionError(kind={self.kind.value!r}, reason={self.reason!r}, "
            f"status_code={self.status_code!r}, body_length={body_len!r}, "
            f"attempts={self.attempts!r})"
        )

    def unwrap(self) -> str:
        raise ProtectionFailed(self)


class ProtectionFailed(Exception):
    """Raised only by ``ProtectionError.unwrap()``.

    The message carries kind, status and body length. It never carries the
    payload or the body text.
    """

    def __init__(self, error: ProtectionError) -> None:
        self.error = error
        parts = [f"{error.kind.value}"]
        if error.status_code is not None:
            parts.append(f"status={error.status_code}")
        if error.body is not None:
            parts.append(f"body_length={len(error.body)}")
        if error.reason:
            parts.append(error.reason)
        super().__init__("protection call failed: " + ", ".join(parts))


ProtectionOutcome = Union[ProtectionResult, ProtectionError]
