"""HTTP clients for the data-protection service — protect / reveal.

Two clients share one contract:

  - ProtectionClient       — blocking, on a pooled ``httpx.Client``.
  - AsyncProtectionClient  — asyncio, on a pooled ``httpx.AsyncClient``.

Call flow (both clients):
  1. Validate inputs into a frozen ProtectionRequest (ValueError/TypeError on misuse).
  2. Generate a call ULID; bind it into the log context and the X-Request-ID header.
  3. POST ``{"protection_policy_name": ..., "data": ...}`` to the endpoint.
  4. Map the response:
       2xx with the configured field (a string)  → ProtectionResult
       2xx without it / not JSON / not a string  → ProtectionError(MALFORMED_RESPONSE)
       any other status (3xx included)           → ProtectionError(API_ERROR, status, raw body)
       httpx.TransportError                      → ProtectionError(UNAVAILABLE)
       httpx.DecodingError (corrupt body)        → ProtectionError(MALFORMED_RESPONSE)
  5. Retry UNAVAILABLE only, with exponential backoff (see retry.py).
  6. A tripped CancellationToken stops everything → ProtectionError(CANCELLED).
     The sync client runs each attempt on a worker thread so a cancel from
     another thread abandons the attempt without waiting for the socket.

Outcomes are returned, never raised. Payloads and revealed values are never logged:
only lengths, policy names, status codes and attempt numbers are.

Failure mode separation:
  - API_ERROR and MALFORMED_RESPONSE are never retried.
  - UNAVAILABLE is never reported while a response was actually received.
  - CANCELLED wins over any other outcome once the token has tripped.

Neither client keeps process-wide state. A client either owns its httpx client
(built from ClientConfig, closed by ``close()`` / ``aclose()``) or borrows one the
caller passes in and never closes it.
"""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Awaitable, Optional, TypeVar

import httpx

from dataprotect.cancellation import CancellationToken
from dataprotect.config import ClientConfig
from dataprotect.constants import DATA_FIELD, POLICY_FIELD, POOL_KEEPALIVE_EXPIRY
from dataprotect.headers import build_request_headers, generate_call_id
from dataprotect.models import (
    ErrorKind,
    Operation,
    ProtectionError,
    ProtectionOutcome,
    ProtectionRequest,
    ProtectionResult,
)
from dataprotect.redaction import redact_headers
from dataprotect.retry import BackoffPolicy
from dataprotect.utils.logger import CallTimer, get_logger, reset_call_id, set_call_id

logger = get_logger(__name__)

T = TypeVar("T")


# ─── httpx client factories ───────────────────────────────────────────────────


def _timeout(config: ClientConfig) -> httpx.Timeout:
    return httpx.Timeout(config.request_timeout, connect=config.connect_timeout)


def _limits(config: ClientConfig) -> httpx.Limits:
    return httpx.Limits(
        max_connections=config.max_connections,
        max_keepalive_connections=config.max_keepalive,
        keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
    )


def create_http_client(config: ClientConfig) -> httpx.Client:
    """Create a pooled ``httpx.Client`` for ProtectionClient.

    Redirects are not followed: a 3xx from the service is reported as API_ERROR
    rather than silently re-posting the payload elsewhere.
    """
    return httpx.Client(
        limits=_limits(config),
        timeout=_timeout(config),
        follow_redirects=False,
    )


def create_async_http_client(config: ClientConfig) -> httpx.AsyncClient:
    """Create a pooled ``httpx.AsyncClient`` for AsyncProtectionClient."""
    return httpx.AsyncClient(
        limits=_limits(config),
        timeout=_timeout(config),
        follow_redirects=False,
    )


# ─── Shared request/response handling ─────────────────────────────────────────


class _ProtectionClientBase:
    """Everything both clients do identically: validation, mapping, logging."""

    def __init__(self, config: Optional[ClientConfig] = None) -> None:
        self.config = config or ClientConfig.defaults()
        self.backoff = BackoffPolicy.from_config(self.config)

    def _build_request(
        self, operation: Operation, policy_name: str, payload: str
    ) -> ProtectionRequest:
        return ProtectionRequest(operation=operation, policy_name=policy_name, payload=payload)

    def _url(self, operation: Operation) -> str:
        if operation is Operation.PROTECT:
            return self.config.protect_url
        return self.config.reveal_url

    def _response_field(self, operation: Operation) -> str:
        if operation is Operation.PROTECT:
            return self.config.protected_field
        return self.config.revealed_field

    def _attempt_timeout(self, token: CancellationToken) -> httpx.Timeout:
        """Per-attempt timeout, shortened so no attempt outlives the token's deadline."""
        remaining = token.remaining()
        if remaining is None:
            return _timeout(self.config)
        read = min(self.config.request_timeout, remaining)
        return httpx.Timeout(read, connect=min(self.config.connect_timeout, read))

    def _interpret_response(
        self, operation: Operation, response: httpx.Response, attempt: int
    ) -> ProtectionOutcome:
        status = response.status_code
        if not 200 <= status < 300:
            return ProtectionError(
                kind=ErrorKind.API_ERROR,
                reason=f"service returned HTTP {status}",
                status_code=status,
                body=response.text,
                attempts=attempt,
            )

        field_name = self._response_field(operation)
        try:
            parsed = response.json()
        except ValueError:
            return self._malformed(response, "response body is not valid JSON", attempt)
        if not isinstance(parsed, dict):
            return self._malformed(response, "response body is not a JSON object", attempt)
        if field_name not in parsed:
            return self._malformed(response, f"response is missing '{field_name}'", attempt)
        value = parsed[field_name]
        if not isinstance(value, str):
            return self._malformed(response, f"'{field_name}' is not a string", attempt)
        return ProtectionResult(value=value)

    @staticmethod
    def _malformed(response: httpx.Response, reason: str, attempt: int) -> ProtectionError:
        return ProtectionError(
            kind=ErrorKind.MALFORMED_RESPONSE,
            reason=reason,
            status_code=response.status_code,
            body=response.text,
            attempts=attempt,
        )

    @staticmethod
    def _unavailable(exc: httpx.TransportError, attempt: int) -> ProtectionError:
        # ConnectError      : connection refused, host unreachable, DNS failure
        # TimeoutException  : connect/read/write/pool timeout
        # NetworkError      : connection dropped mid-exchange
        # RemoteProtocolError: service sent invalid HTTP
        return ProtectionError(
            kind=ErrorKind.UNAVAILABLE,
            reason=type(exc).__name__,
            attempts=attempt,
        )

    @staticmethod
    def _undecodable(exc: httpx.DecodingError, attempt: int) -> ProtectionError:
        # A response arrived but its Content-Encoding could not be undone.
        return ProtectionError(
            kind=ErrorKind.MALFORMED_RESPONSE,
            reason=type(exc).__name__,
            attempts=attempt,
        )

    @staticmethod
    def _cancelled(attempts: int) -> ProtectionError:
        return ProtectionError(
            kind=ErrorKind.CANCELLED,
            reason="cancelled by caller",
            attempts=attempts,
        )

    def _log_call_started(self, request: ProtectionRequest, headers: dict[str, str]) -> None:
        logger.debug(
            "protection_call_started",
            operation=request.operation.value,
            policy=request.policy_name,
            payload_length=len(request.payload),
            max_attempts=self.backoff.max_attempts,
            headers=redact_headers(headers.items()),
        )

    def _log_attempt_failed(self, outcome: ProtectionError, attempt: int) -> None:
        logger.warning(
            "protection_attempt_failed",
            attempt=attempt,
            max_attempts=self.backoff.max_attempts,
            error_type=outcome.reason,
        )

    def _log_retry(self, attempt: int, delay: float) -> None:
        logger.info(
            "protection_retry_scheduled",
            next_attempt=attempt + 1,
            retry_delay_seconds=delay,
        )

    def _log_outcome(
        self,
        request: ProtectionRequest,
        outcome: ProtectionOutcome,
        attempts: int,
        duration_ms: float,
    ) -> None:
        if isinstance(outcome, ProtectionResult):
            logger.info(
                "protection_call_succeeded",
                operation=request.operation.value,
                policy=request.policy_name,
                payload_length=len(request.payload),
                value_length=len(outcome.value),
                attempts=attempts,
                duration_ms=duration_ms,
            )
        elif outcome.kind is ErrorKind.CANCELLED:
            logger.info(
                "protection_call_cancelled",
                operation=request.operation.value,
                policy=request.policy_name,
                attempts=attempts,
                duration_ms=duration_ms,
            )
        else:
            logger.warning(
                "protection_call_failed",
                operation=request.operation.value,
                policy=request.policy_name,
                payload_length=len(request.payload),
                kind=outcome.kind.value,
                status_code=outcome.status_code,
                body_length=None if outcome.body is None else len(outcome.body),
                reason=outcome.reason,
                attempts=attempts,
                duration_ms=duration_ms,
            )


# ─── Sync client ──────────────────────────────────────────────────────────────


def _interruptible_sleep(delay: float, token: CancellationToken) -> bool:
    """Sleep ``delay`` seconds unless the token trips first. True if cancelled."""
    return token.wait(delay)


def _wait_unless_cancelled(future: Future, token: CancellationToken) -> bool:
    """Block until ``future`` finishes or ``token`` trips. True if the token won."""
    woken = threading.Event()
    future.add_done_callback(lambda _: woken.set())
    remove_callback = token.add_callback(woken.set)
    try:
        woken.wait(token.remaining())
    finally:
        remove_callback()
    return not future.done()


def _close_abandoned_response(future: Future) -> None:
    """Done-callback for an abandoned attempt: release its connection."""
    if not future.cancelled() and future.exception() is None:
        future.result().close()


class ProtectionClient(_ProtectionClientBase):
    """Blocking protect/reveal client.

    Safe for concurrent use from multiple threads: the only shared state is the
    frozen config and the httpx connection pool.

    Example::

        with ProtectionClient(ClientConfig(base_url="https://protect.example.com")) as client:
            outcome = client.protect("protect-credit-card", pan)
            if outcome.ok:
                store(outcome.value)
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(config)
        self._owns_http_client = http_client is None
        self._http = http_client if http_client is not None else create_http_client(self.config)
        # One worker per pooled connection; attempts block here, not in the caller.
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_connections,
            thread_name_prefix="dataprotect",
        )

    def __enter__(self) -> "ProtectionClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Stop the attempt workers and close the httpx client if this instance created it.

        Attempts abandoned by cancellation are not waited for.
        """
        self._executor.shutdown(wait=False, cancel_futures=True)
        if self._owns_http_client:
            self._http.close()

    def protect(
        self,
        policy_name: str,
        data: str,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> ProtectionOutcome:
        """Protect ``data`` under ``policy_name``.

        Returns:
            ProtectionResult with the token/ciphertext, or ProtectionError.

        Raises:
            ValueError: ``policy_name`` is empty.
            TypeError:  ``policy_name`` or ``data`` is not a str.
        """
        return self._call(Operation.PROTECT, policy_name, data, cancel)

    def reveal(
        self,
        policy_name: str,
        protected_data: str,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> ProtectionOutcome:
        """Reveal ``protected_data`` under ``policy_name``. Same contract as ``protect``."""
        return self._call(Operation.REVEAL, policy_name, protected_data, cancel)

    def _call(
        self,
        operation: Operation,
        policy_name: str,
        payload: str,
        cancel: Optional[CancellationToken],
    ) -> ProtectionOutcome:
        request = self._build_request(operation, policy_name, payload)
        token = cancel if cancel is not None else CancellationToken()
        call_id = generate_call_id()
        context_token = set_call_id(call_id)
        try:
            with CallTimer() as timer:
                outcome, attempts = self._run_attempts(request, call_id, token)
            self._log_outcome(request, outcome, attempts, timer.duration_ms)
            return outcome
        finally:
            reset_call_id(context_token)

    def _run_attempts(
        self,
        request: ProtectionRequest,
        call_id: str,
        token: CancellationToken,
    ) -> tuple[ProtectionOutcome, int]:
        url = self._url(request.operation)
        headers = build_request_headers(self.config, call_id)
        self._log_call_started(request, headers)

        retry_delays = self.backoff.delays()
        attempt = 0
        while True:
            if token.cancelled:
                return self._cancelled(attempt), attempt
            attempt += 1

            future = self._executor.submit(
                self._http.post,
                url,
                json=request.to_body(DATA_FIELD, POLICY_FIELD),
                headers=headers,
                timeout=self._attempt_timeout(token),
            )
            if _wait_unless_cancelled(future, token):
                # Tripped mid-flight; the worker finishes on its own.
                future.add_done_callback(_close_abandoned_response)
                return self._cancelled(attempt), attempt

            try:
                response = future.result()
            except httpx.TransportError as exc:
                if token.cancelled:
                    return self._cancelled(attempt), attempt
                outcome: ProtectionOutcome = self._unavailable(exc, attempt)
                self._log_attempt_failed(outcome, attempt)
            except httpx.DecodingError as exc:
                if token.cancelled:
                    return self._cancelled(attempt), attempt
                outcome = self._undecodable(exc, attempt)
            else:
                if token.cancelled:
                    response.close()
                    return self._cancelled(attempt), attempt
                outcome = self._interpret_response(request.operation, response, attempt)

            if not self.backoff.should_retry(outcome, attempt):
                return outcome, attempt

            delay = next(retry_delays)
            self._log_retry(attempt, delay)
            if _interruptible_sleep(delay, token):
                return self._cancelled(attempt), attempt


# ─── Async client ─────────────────────────────────────────────────────────────


class _TokenTripped(Exception):
    """Internal: the CancellationToken tripped while awaiting."""


async def _await_unless_cancelled(aw: Awaitable[T], token: CancellationToken) -> T:
    """Await ``aw`` unless ``token`` trips first, in which case abandon it.

    Raises:
        _TokenTripped: The token was cancelled or its deadline passed first.
    """
    loop = asyncio.get_running_loop()
    task = asyncio.ensure_future(aw)
    tripped = asyncio.Event()
    remove_callback = token.add_callback(lambda: loop.call_soon_threadsafe(tripped.set))
    waiter = asyncio.ensure_future(tripped.wait())
    try:
        done, _ = await asyncio.wait(
            {task, waiter},
            timeout=token.remaining(),
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        # Caller task cancelled: never leave the request running.
        task.cancel()
        raise
    finally:
        remove_callback()
        if not waiter.done():
            waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    await asyncio.wait({task})
    raise _TokenTripped()


async def _async_interruptible_sleep(delay: float, token: CancellationToken) -> bool:
    """Async sleep ``delay`` seconds unless the token trips first. True if cancelled."""
    try:
        await _await_unless_cancelled(asyncio.sleep(delay), token)
    except _TokenTripped:
        return True
    return token.cancelled


class AsyncProtectionClient(_ProtectionClientBase):
    """asyncio protect/reveal client on a shared ``httpx.AsyncClient``.

    Cancelling the caller's own asyncio task propagates ``CancelledError`` as usual;
    the CANCELLED outcome is reserved for the CancellationToken.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(config)
        self._owns_http_client = http_client is None
        self._http = (
            http_client if http_client is not None else create_async_http_client(self.config)
        )

    async def __aenter__(self) -> "AsyncProtectionClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the httpx client if this instance created it."""
        if self._owns_http_client:
            await self._http.aclose()

    async def protect(
        self,
        policy_name: str,
        data: str,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> ProtectionOutcome:
        """Protect ``data`` under ``policy_name``. See ProtectionClient.protect."""
        return await self._call(Operation.PROTECT, policy_name, data, cancel)

    async def reveal(
        self,
        policy_name: str,
        protected_data: str,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> ProtectionOutcome:
        """Reveal ``protected_data`` under ``policy_name``. See ProtectionClient.reveal."""
        return await self._call(Operation.REVEAL, policy_name, protected_data, cancel)

    async def _call(
        self,
        operation: Operation,
        policy_name: str,
        payload: str,
        cancel: Optional[CancellationToken],
    ) -> ProtectionOutcome:
        request = self._build_request(operation, policy_name, payload)
        token = cancel if cancel is not None else CancellationToken()
        call_id = generate_call_id()
        context_token = set_call_id(call_id)
        try:
            with CallTimer() as timer:
                outcome, attempts = await self._run_attempts(request, call_id, token)
            self._log_outcome(request, outcome, attempts, timer.duration_ms)
            return outcome
        finally:
            reset_call_id(context_token)

    async def _run_attempts(
        self,
        request: ProtectionRequest,
        call_id: str,
        token: CancellationToken,
    ) -> tuple[ProtectionOutcome, int]:
        url = self._url(request.operation)
        headers = build_request_headers(self.config, call_id)
        self._log_call_started(request, headers)

        retry_delays = self.backoff.delays()
        attempt = 0
        while True:
            if token.cancelled:
                return self._cancelled(attempt), attempt
            attempt += 1

            try:
                response = await _await_unless_cancelled(
                    self._http.post(
                        url,
                        json=request.to_body(DATA_FIELD, POLICY_FIELD),
                        headers=headers,
                        timeout=self._attempt_timeout(token),
                    ),
                    token,
                )
            except _TokenTripped:
                return self._cancelled(attempt), attempt
            except httpx.TransportError as exc:
                if token.cancelled:
                    return self._cancelled(attempt), attempt
                outcome: ProtectionOutcome = self._unavailable(exc, attempt)
                self._log_attempt_failed(outcome, attempt)
            except httpx.DecodingError as exc:
                if token.cancelled:
                    return self._cancelled(attempt), attempt
                outcome = self._undecodable(exc, attempt)
            else:
                if token.cancelled:
                    await response.aclose()
                    return self._cancelled(attempt), attempt
                outcome = self._interpret_response(request.operation, response, attempt)

            if not self.backoff.should_retry(outcome, attempt):
                return outcome, attempt

            delay = next(retry_delays)
            self._log_retry(attempt, delay)
            if await _async_interruptible_sleep(delay, token):
                return self._cancelled(attempt), attempt
