"""Config loading for dataprotect.

``ClientConfig`` is the immutable set of connection parameters a client is built
with. It can be constructed directly or loaded from YAML with ``load_config()``.

Config search order:
  1. ``config_path`` argument (if provided — for testing or explicit override)
  2. DATAPROTECT_CONFIG environment variable (if set)
  3. ``.dataprotect/config.yaml`` (working directory — for development)
  4. ``~/.dataprotect/config.yaml`` (home directory — for deployments)

Environment variable overrides (applied after the file, or onto defaults):
  DATAPROTECT_BASE_URL     — overrides service.base_url
  DATAPROTECT_API_KEY      — overrides service.api_key
  DATAPROTECT_RETRY_COUNT  — overrides retry.count

Unlike a service entrypoint, a library must not exit the process on a bad
config: every validation failure raises ``ConfigError``.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlsplit

import yaml

from dataprotect.constants import (
    DEFAULT_BACKOFF_BASE,
    DEFAULT_BACKOFF_CAP,
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_PROTECT_PATH,
    DEFAULT_PROTECTED_FIELD,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_COUNT,
    DEFAULT_REVEAL_PATH,
    DEFAULT_REVEALED_FIELD,
    POOL_MAX_CONNECTIONS,
    POOL_MAX_KEEPALIVE,
)
from dataprotect.redaction import redact
from dataprotect.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

VALID_URL_SCHEMES: frozenset[str] = frozenset({"http", "https"})

DEFAULT_BASE_URL = "http://localhost:8080"

DEFAULT_CONFIG_PATHS = [
    ".dataprotect/config.yaml",
    os.path.expanduser("~/.dataprotect/config.yaml"),
]


class ConfigError(ValueError):
    """Raised when a ClientConfig value or config file is invalid."""


# ─── Dataclass ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ClientConfig:
    """Connection parameters for a protection client.

    Set once at client construction and never mutated. Use
    ``dataclasses.replace()`` to derive a variant.

    base_url:          Service address, e.g. "https://protect.example.com".
    protect_path:      Path of the protect endpoint, joined onto base_url.
    reveal_path:       Path of the reveal endpoint, joined onto base_url.
    protected_field:   Response field holding the protected value.
    revealed_field:    Response field holding the revealed plaintext.
    api_key:           Optional bearer credential. Never rendered by repr().
    connect_timeout:   Max seconds to establish a connection.
    request_timeout:   Max seconds per attempt for a response.
    retry_count:       Retries after the first attempt (transient failures only).
    backoff_base:      Delay before the first retry, in seconds.
    backoff_cap:       Upper bound for any single backoff delay.
    backoff_multiplier: Growth factor between consecutive delays.
    max_connections:   Pool size for an owned httpx client.
    max_keepalive:     Idle keep-alive connections kept in the pool.
    """

    base_url: str = DEFAULT_BASE_URL
    protect_path: str = DEFAULT_PROTECT_PATH
    reveal_path: str = DEFAULT_REVEAL_PATH
    protected_field: str = DEFAULT_PROTECTED_FIELD
    revealed_field: str = DEFAULT_REVEALED_FIELD
    api_key: Optional[str] = field(default=None, repr=False)
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    retry_count: int = DEFAULT_RETRY_COUNT
    backoff_base: float = DEFAULT_BACKOFF_BASE
    backoff_cap: float = DEFAULT_BACKOFF_CAP
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    max_connections: int = POOL_MAX_CONNECTIONS
    max_keepalive: int = POOL_MAX_KEEPALIVE

    def __post_init__(self) -> None:
        parts = urlsplit(self.base_url)
        if parts.scheme not in VALID_URL_SCHEMES or not parts.netloc:
            raise ConfigError(
                f"Invalid base_url: '{self.base_url}'. "
                f"Expected an absolute URL with scheme in {sorted(VALID_URL_SCHEMES)}."
            )
        for name in ("protect_path", "reveal_path"):
            if not getattr(self, name).startswith("/"):
                raise ConfigError(f"{name} must start with '/'")
        for name in ("protected_field", "revealed_field"):
            if not getattr(self, name):
                raise ConfigError(f"{name} must be a non-empty string")
        for name in ("connect_timeout", "request_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be > 0")
        if self.retry_count < 0:
            raise ConfigError("retry_count must be >= 0")
        if self.backoff_base < 0:
            raise ConfigError("backoff_base must be >= 0")
        if self.backoff_cap < self.backoff_base:
            raise ConfigError("backoff_cap must be >= backoff_base")
        if self.backoff_multiplier < 1:
            raise ConfigError("backoff_multiplier must be >= 1")
        if self.max_connections < 1 or self.max_keepalive < 0:
            raise ConfigError("pool limits must be positive")

    @property
    def protect_url(self) -> str:
        return self.base_url.rstrip("/") + self.protect_path

    @property
    def reveal_url(self) -> str:
        return self.base_url.rstrip("/") + self.reveal_path

    @classmethod
    def defaults(cls) -> "ClientConfig":
        """Return a fully-default ClientConfig (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict) -> "ClientConfig":
        """Construct ClientConfig from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            ConfigError: On any invalid value.
        """
        service_raw = _section(raw, "service")
        timeouts_raw = _section(raw, "timeouts")
        retry_raw = _section(raw, "retry")
        pool_raw = _section(raw, "pool")

        try:
            return cls(
                base_url=service_raw.get("base_url", DEFAULT_BASE_URL),
                protect_path=service_raw.get("protect_path", DEFAULT_PROTECT_PATH),
                reveal_path=service_raw.get("reveal_path", DEFAULT_REVEAL_PATH),
                protected_field=service_raw.get("protected_field", DEFAULT_PROTECTED_FIELD),
                revealed_field=service_raw.get("revealed_field", DEFAULT_REVEALED_FIELD),
                api_key=service_raw.get("api_key"),
                connect_timeout=float(timeouts_raw.get("connect", DEFAULT_CONNECT_TIMEOUT)),
                request_timeout=float(timeouts_raw.get("request", DEFAULT_REQUEST_TIMEOUT)),
                retry_count=int(retry_raw.get("count", DEFAULT_RETRY_COUNT)),
                backoff_base=float(retry_raw.get("backoff_base", DEFAULT_BACKOFF_BASE)),
                backoff_cap=float(retry_raw.get("backoff_cap", DEFAULT_BACKOFF_CAP)),
                backoff_multiplier=float(
                    retry_raw.get("backoff_multiplier", DEFAULT_BACKOFF_MULTIPLIER)
                ),
                max_connections=int(pool_raw.get("max_connections", POOL_MAX_CONNECTIONS)),
                max_keepalive=int(pool_raw.get("max_keepalive", POOL_MAX_KEEPALIVE)),
            )
        except ConfigError:
            raise
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid config value: {exc}") from exc


def _section(raw: dict, name: str) -> dict:
    """Return the ``name`` section of a parsed config; absent or empty means {}."""
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping, got {type(section).__name__}")
    return section


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> ClientConfig:
    """Load and validate a ClientConfig.

    If no file is found at any search path, returns defaults (not an error).
    Environment overrides are applied in both cases.

    Raises:
        ConfigError: On YAML parse error, unreadable file, non-mapping document,
                     missing or unsupported ``version``, or any invalid value.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("DATAPROTECT_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.info("config_file_not_found", searched=search_paths)
        return _apply_env_overrides(ClientConfig.defaults())

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.info("config_loading", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {found_path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Could not read {found_path}: {exc}") from exc

    if not isinstance(raw, dict):
        if raw is None:
            raise ConfigError(
                f"{found_path} is missing the required 'version' field. "
                "Add 'version: 1' to the top of your config file."
            )
        raise ConfigError(
            f"{found_path} is not a valid YAML mapping. "
            "The config file must be a YAML dictionary at the top level."
        )

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        raise ConfigError(
            f"{found_path} is missing the required 'version' field. "
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        raise ConfigError(
            f"Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = _apply_env_overrides(ClientConfig.from_dict(raw))

    if config.base_url.startswith("http://") and config.api_key:
        logger.warning(
            "SECURITY WARNING: an API key is configured for a plain-http base_url. "
            "Credentials and payloads will cross the network unencrypted."
        )

    logger.info(
        "config_loaded",
        path=found_path,
        base_url=config.base_url,
        retry_count=config.retry_count,
        api_key=redact(config.api_key) if config.api_key else None,
    )
    return config


def _apply_env_overrides(config: ClientConfig) -> ClientConfig:
    """Return ``config`` with environment variable overrides applied.

    ClientConfig is frozen, so overrides produce a new instance.

    Raises:
        ConfigError: If DATAPROTECT_RETRY_COUNT is set but not a valid integer,
                     or an override produces an invalid config.
    """
    overrides: dict = {}

    env_base_url = os.environ.get("DATAPROTECT_BASE_URL")
    if env_base_url:
        overrides["base_url"] = env_base_url

    env_api_key = os.environ.get("DATAPROTECT_API_KEY")
    if env_api_key:
        overrides["api_key"] = env_api_key

    env_retry = os.environ.get("DATAPROTECT_RETRY_COUNT")
    if env_retry is not None:
        try:
            overrides["retry_count"] = int(env_retry)
        except ValueError as exc:
            raise ConfigError(
                "DATAPROTECT_RETRY_COUNT environment variable is not a valid "
                f"integer: '{env_retry}'"
            ) from exc

    if not overrides:
        return config
    return dataclasses.replace(config, **overrides)
