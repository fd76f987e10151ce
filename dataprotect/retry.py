"""Retry policy for transient transport failures.

Only ErrorKind.UNAVAILABLE outcomes are retried. The delay before retry ``n``
(1-based) is ``min(base * multiplier ** (n - 1), cap)``, so the sequence is
non-decreasing and bounded by ``cap``. No jitter is applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from dataprotect.config import ClientConfig
from dataprotect.models import ErrorKind, ProtectionOutcome


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff bounds.

    retries:    Retries after the first attempt.
    base:       Delay before the first retry (seconds).
    cap:        Upper bound for any single delay (seconds).
    multiplier: Growth factor between consecutive delays.
    """

    retries: int
    base: float
    cap: float
    multiplier: float = 2.0

    @classmethod
    def from_config(cls, config: ClientConfig) -> "BackoffPolicy":
        return cls(
            retries=config.retry_count,
            base=config.backoff_base,
            cap=config.backoff_cap,
            multiplier=config.backoff_multiplier,
        )

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def delay(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (1-based)."""
        if retry_number < 1:
            raise ValueError("retry_number starts at 1")
        return min(self.base * (self.multiplier ** (retry_number - 1)), self.cap)

    def delays(self) -> Iterator[float]:
        """Yield every delay this policy allows, in order."""
        for retry_number in range(1, self.retries + 1):
            yield self.delay(retry_number)

    def should_retry(self, outcome: ProtectionOutcome, attempt: int) -> bool:
        """True if ``outcome`` of attempt number ``attempt`` (1-based) warrants another try."""
        if outcome.ok:
            return False
        return outcome.kind is ErrorKind.UNAVAILABLE and attempt < self.max_attempts
