"""Payload redaction helpers for dataprotect diagnostics.

INVARIANT: nothing produced by this module ever contains the value it was given.
Request payloads, revealed plaintext, tokens and API keys are reduced to a
``[REDACTED len=N]`` placeholder before they reach a log line, an exception
message or a ``repr()``.

``redact_sensitive_fields`` is installed as a structlog processor by
``dataprotect.utils.logger.configure_logging`` so that a sensitive value passed to
a logger by mistake is still replaced before rendering.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from dataprotect.constants import SENSITIVE_HEADERS, SENSITIVE_LOG_KEYS


def redact(value: Optional[str]) -> str:
    """Return a placeholder that reveals only the length of ``value``.

    Args:
        value: Sensitive string (payload, plaintext, token, key). ``None`` is allowed.

    Returns:
        ``"[REDACTED len=N]"``, or ``"[REDACTED]"`` when ``value`` is ``None``.

    Example::

        redact("4111111111111111")
        # "[REDACTED len=16]"
    """
    if value is None:
        return "[REDACTED]"
    return f"[REDACTED len={len(value)}]"


def redact_headers(headers: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Copy ``headers`` with credential-bearing values replaced.

    Header names are compared case-insensitively against SENSITIVE_HEADERS.
    """
    safe: dict[str, str] = {}
    for name, value in headers:
        if name.lower() in SENSITIVE_HEADERS:
            safe[name] = redact(value)
        else:
            safe[name] = value
    return safe


def redact_sensitive_fields(logger: Any, method_name: str, event_dict: dict) -> dict:
    """structlog processor: replace values stored under sensitive keys.

    Lengths and counts are left alone; only string values under a key in
    SENSITIVE_LOG_KEYS are rewritten. Non-string values under those keys are
    dropped to a bare ``[REDACTED]``.
    """
    for key in SENSITIVE_LOG_KEYS.intersection(event_dict):
        raw = event_dict[key]
        event_dict[key] = redact(raw) if isinstance(raw, str) else redact(None)
    return event_dict
