"""Root test configuration for dataprotect.

Clears DATAPROTECT_* environment variables so a developer's shell cannot leak
into config tests, and offers ``no_backoff_sleep`` so retry tests run instantly
while still recording every backoff delay the client asked for.

Shared test doubles live in tests/helpers.py.
"""

from __future__ import annotations

from typing import Any

import pytest


@pytest.fixture(autouse=True)
def clear_dataprotect_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "DATAPROTECT_CONFIG",
        "DATAPROTECT_BASE_URL",
        "DATAPROTECT_API_KEY",
        "DATAPROTECT_RETRY_COUNT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def no_backoff_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Replace backoff waits (sync and async) with recorders; returns the delays."""
    delays: list[float] = []

    def fake_sleep(delay: float, token: Any) -> bool:
        delays.append(delay)
        return token.cancelled

    async def fake_async_sleep(delay: float, token: Any) -> bool:
        delays.append(delay)
        return token.cancelled

    monkeypatch.setattr("dataprotect.client._interruptible_sleep", fake_sleep)
    monkeypatch.setattr("dataprotect.client._async_interruptible_sleep", fake_async_sleep)
    return delays
