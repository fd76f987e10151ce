"""dataprotect — client for an external data-protection (tokenization) service.

Sends a value plus a named server-side policy to ``/v1/protect`` and gets back a
token or ciphertext; ``/v1/reveal`` inverts it. Cryptography, key management and
policy evaluation all happen in the service.

  - client.py       — ProtectionClient (sync) and AsyncProtectionClient
  - models.py       — ProtectionRequest, ProtectionResult, ProtectionError, ErrorKind
  - config.py       — ClientConfig and YAML/env loading
  - retry.py        — BackoffPolicy (UNAVAILABLE-only exponential backoff)
  - cancellation.py — CancellationToken (explicit cancel and/or deadline)
  - redaction.py    — payload placeholders for every diagnostic surface
"""

__version__ = "0.1.0"

from dataprotect.cancellation import CancellationToken  # noqa: E402
from dataprotect.client import (  # noqa: E402
    AsyncProtectionClient,
    ProtectionClient,
    create_async_http_client,
    create_http_client,
)
from dataprotect.config import ClientConfig, ConfigError, load_config  # noqa: E402
from dataprotect.models import (  # noqa: E402
    ErrorKind,
    Operation,
    ProtectionError,
    ProtectionFailed,
    ProtectionOutcome,
    ProtectionRequest,
    ProtectionResult,
)
from dataprotect.retry import BackoffPolicy  # noqa: E402

__all__ = [
    "AsyncProtectionClient",
    "BackoffPolicy",
    "CancellationToken",
    "ClientConfig",
    "ConfigError",
    "ErrorKind",
    "Operation",
    "ProtectionClient",
    "ProtectionError",
    "ProtectionFailed",
    "ProtectionOutcome",
    "ProtectionRequest",
    "ProtectionResult",
    "create_async_http_client",
    "create_http_client",
    "load_config",
]
