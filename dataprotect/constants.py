"""Shared constants for dataprotect.

Wire-protocol names, default timeouts, retry bounds and pool sizes live here.
No magic numbers in other modules — import from here.
"""

# ─── Wire protocol ────────────────────────────────────────────────────────────

# Endpoint paths relative to the configured base URL.
DEFAULT_PROTECT_PATH: str = "/v1/protect"
DEFAULT_REVEAL_PATH: str = "/v1/reveal"

# Request body field names (fixed by the remote service).
POLICY_FIELD: str = "protection_policy_name"
DATA_FIELD: str = "data"

# Response field names. The reveal field is not consistently documented by the
# vendor, so both are overridable in ClientConfig.
DEFAULT_PROTECTED_FIELD: str = "protected_data"
DEFAULT_REVEALED_FIELD: str = "data"

# ─── Timeouts (seconds) ───────────────────────────────────────────────────────

DEFAULT_CONNECT_TIMEOUT: float = 5.0
DEFAULT_REQUEST_TIMEOUT: float = 30.0

# ─── Retry / backoff ──────────────────────────────────────────────────────────

# Retries after the first attempt. One call makes at most 1 + retry_count requests.
DEFAULT_RETRY_COUNT: int = 3
DEFAULT_BACKOFF_BASE: float = 0.1
DEFAULT_BACKOFF_CAP: float = 5.0
DEFAULT_BACKOFF_MULTIPLIER: float = 2.0

# ─── Connection pool ──────────────────────────────────────────────────────────

POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 20
POOL_KEEPALIVE_EXPIRY: float = 30.0

# ─── Diagnostics ──────────────────────────────────────────────────────────────

# Structured-log keys whose values are always replaced with a placeholder.
SENSITIVE_LOG_KEYS: frozenset[str] = frozenset(
    {
        "data",
        "payload",
        "plaintext",
        "protected_data",
        "value",
        "api_key",
        "authorization",
    }
)

# Headers whose values never appear in diagnostics.
SENSITIVE_HEADERS: frozenset[str] = frozenset({"authorization", "proxy-authorization"})
