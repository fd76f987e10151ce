"""Outbound header construction for protect/reveal requests.

Every request carries:
  - Content-Type / Accept: application/json
  - User-Agent: dataprotect/<version>
  - X-Request-ID: the call's ULID, shared by all retry attempts of one call
  - Authorization: Bearer <api_key>, only when an API key is configured

Header values that carry credentials are passed through ``redact_headers()``
before they are ever logged.
"""

from __future__ import annotations

from ulid import ULID

from dataprotect import __version__
from dataprotect.config import ClientConfig

REQUEST_ID_HEADER: str = "X-Request-ID"
USER_AGENT: str = f"dataprotect/{__version__}"


def generate_call_id() -> str:
    """Return a new 26-character ULID identifying one protect/reveal call.

    Uses the ``python-ulid`` library. ULIDs sort by creation time, which keeps
    service-side request logs in call order.
    """
    return str(ULID())


def build_request_headers(config: ClientConfig, call_id: str) -> dict[str, str]:
    """Build the headers for every attempt of one call.

    Args:
        config:  Client configuration (API key is read from here).
        call_id: ULID from ``generate_call_id()``.

    Returns:
        ``dict[str, str]`` of request headers.
    """
    headers: dict[str, str] = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
        REQUEST_ID_HEADER: call_id,
    }
    if config.api_key:
        headers["Authorization"] = f"Bearer {config.api_key}"
    return headers
