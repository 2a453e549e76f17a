"""httpx async transport that retries transient settings-store failures."""

from __future__ import annotations

import asyncio
import logging
import random
import time

import httpx

_LOG = logging.getLogger(__name__)

# Replaying these cannot apply a change twice.
_IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})

# The request may already have reached the database behind the gateway.
_GATEWAY_STATUS_CODES = frozenset({502, 503, 504})

# Raised before any byte of the request left this process.
_UNSENT_ERRORS: tuple[type[httpx.TransportError], ...] = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.PoolTimeout,
)

_BACKOFF_CAP_SECONDS = 4.0


class _Throttle:
    """Shared gate that holds every request while the store is rate limiting."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._open = asyncio.Event()
        self._open.set()
        self._until = 0.0

    async def wait(self) -> None:
        await self._open.wait()

    async def pause(self, seconds: float) -> None:
        async with self._lock:
            until = time.monotonic() + max(0.0, seconds)
            if until <= self._until:
                return
            self._until = until
            self._open.clear()

        await asyncio.sleep(max(0.0, self._until - time.monotonic()))

        async with self._lock:
            if time.monotonic() >= self._until:
                self._open.set()


class RetryingTransport(httpx.AsyncBaseTransport):
    """Retries a store request when the failure is known to be transient.

    Every request is retried on 429 (after honouring ``Retry-After`` for all
    concurrent requests) and on connection errors raised before it was sent.
    Gateway errors (502/503/504) and mid-flight transport errors are retried
    only for idempotent methods: a ``POST`` insert or a revision-checked
    ``PATCH`` may already have been applied, and replaying it would surface
    as a duplicate or a spurious conflict.

    The sync engine itself never retries a failed store operation.
    """

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        max_retries: int = 3,
    ) -> None:
        self._transport = transport or httpx.AsyncHTTPTransport()
        self._max_retries = max_retries
        self._throttle = _Throttle()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        idempotent = request.method.upper() in _IDEMPOTENT_METHODS
        attempt = 0
        while True:
            await self._throttle.wait()
            exhausted = attempt >= self._max_retries

            try:
                response = await self._transport.handle_async_request(request)
            except httpx.TransportError as exc:
                if exhausted or not (idempotent or isinstance(exc, _UNSENT_ERRORS)):
                    raise
                await self._backoff(request, attempt, type(exc).__name__)
                attempt += 1
                continue

            delay = None if exhausted else self._retry_delay(response, idempotent=idempotent)
            if delay is None:
                return response

            await response.aclose()
            if response.status_code == 429:
                await self._throttle.pause(delay)
            elif delay > 0:
                await asyncio.sleep(delay)
            await self._backoff(request, attempt, f"HTTP {response.status_code}")
            attempt += 1

    async def aclose(self) -> None:
        await self._transport.aclose()

    @staticmethod
    def _retry_delay(response: httpx.Response, *, idempotent: bool) -> float | None:
        """Seconds to wait before replaying, or ``None`` to hand the response back."""
        if response.status_code == 429:
            return _parse_retry_after(response, default=1.0)
        if idempotent and response.status_code in _GATEWAY_STATUS_CODES:
            return _parse_retry_after(response, default=0.0)
        return None

    async def _backoff(self, request: httpx.Request, attempt: int, reason: str) -> None:
        _LOG.warning(
            "Retrying settings store %s %s after %s (attempt %d of %d)",
            request.method,
            request.url.path,
            reason,
            attempt + 1,
            self._max_retries,
        )
        await asyncio.sleep(_backoff_seconds(attempt))


def _backoff_seconds(attempt: int) -> float:
    return min(_BACKOFF_CAP_SECONDS, float(2**attempt)) + random.uniform(0.0, 0.25)


def _parse_retry_after(response: httpx.Response, *, default: float) -> float:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return default
    try:
        return max(0.0, float(raw))
    except ValueError:
        return default
