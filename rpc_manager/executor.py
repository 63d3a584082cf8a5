"""Retrying executor: bounded retry with per-attempt endpoint selection.

Each attempt selects a fresh endpoint, runs the caller's operation against
its client and races it against the attempt timeout. A timed-out operation is
not cancelled: it keeps running in the background and its outcome is
discarded. Attempts are bounded by ``max_retries`` exactly.

An operation that never settles stays referenced for the life of the
executor; ``HttpRpcClient``'s transport timeout bounds its own calls.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from rpc_manager.client import RpcClient
from rpc_manager.errors import (
    NoEndpointsAvailableError,
    RetriesExhaustedError,
    RpcTimeoutError,
)
from rpc_manager.selector import ConnectionSelector

logger = logging.getLogger(__name__)

T = TypeVar("T")

RpcOperation = Callable[[RpcClient], Awaitable[T]]

ABANDONED_WARNING_THRESHOLD = 100


@dataclass
class RetryContext:
    """State of one ``execute_with_retry`` invocation."""

    network: str
    max_retries: int
    timeout_ms: int
    attempt: int = 0
    last_error: Exception | None = None


class RetryingExecutor:
    """Runs RPC operations with failover across a network's endpoints.

    Args:
        selector: Source of an endpoint for every attempt.
        refresh: Coroutine function running one full health cycle, used
            when a call asks for ``force_health_check``.
        default_network: Network used when a call names none.
        default_max_retries: Attempt budget used when a call names none.
        default_timeout_ms: Per-attempt timeout used when a call names none.
    """

    def __init__(
        self,
        selector: ConnectionSelector,
        *,
        refresh: Callable[[], Awaitable[Any]],
        default_network: str,
        default_max_retries: int = 5,
        default_timeout_ms: int = 30_000,
    ) -> None:
        self._selector = selector
        self._refresh = refresh
        self._default_network = default_network
        self._default_max_retries = default_max_retries
        self._default_timeout_ms = default_timeout_ms
        self._abandoned: set[asyncio.Future[Any]] = set()

    @property
    def abandoned_count(self) -> int:
        """Timed-out operations that are still running in the background."""
        return len(self._abandoned)

    async def execute_with_retry(
        self,
        operation: RpcOperation[T],
        *,
        network: str | None = None,
        max_retries: int | None = None,
        timeout_ms: int | None = None,
        force_health_check: bool = False,
    ) -> T:
        """Execute ``operation`` with failover, timeout and bounded retries.

        Raises
        ------
        ValueError
            If ``max_retries`` is below 1 or ``timeout_ms`` is not positive.
        NoEndpointsAvailableError
            If an attempt could not select any endpoint.
        RetriesExhaustedError
            If every attempt failed; chained to the last failure.
        """
        ctx = RetryContext(
            network=network or self._default_network,
            max_retries=self._default_max_retries if max_retries is None else max_retries,
            timeout_ms=self._default_timeout_ms if timeout_ms is None else timeout_ms,
        )
        if ctx.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {ctx.max_retries}")
        if ctx.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {ctx.timeout_ms}")

        if force_health_check:
            await self._refresh()

        while ctx.attempt < ctx.max_retries:
            endpoint = self._selector.select(ctx.network)
            if endpoint is None:
                raise NoEndpointsAvailableError(
                    f"No available RPC connections for network: {ctx.network}",
                    network=ctx.network,
                )

            ctx.attempt += 1
            try:
                return await self._run_attempt(operation, endpoint.client, ctx.timeout_ms)
            except Exception as exc:
                ctx.last_error = exc
                logger.warning(
                    "RPC call failed (attempt %d/%d): %s: %s",
                    ctx.attempt,
                    ctx.max_retries,
                    endpoint.url,
                    exc,
                    extra={
                        "network": ctx.network,
                        "endpoint": endpoint.url,
                        "attempt": ctx.attempt,
                        "max_retries": ctx.max_retries,
                        "error_reason": str(exc),
                    },
                )

        logger.error(
            "All RPC retries failed",
            extra={"network": ctx.network, "max_retries": ctx.max_retries},
        )
        if ctx.last_error is None:
            raise RetriesExhaustedError(
                f"No available RPC connections for network: {ctx.network}",
                attempts=ctx.attempt,
                network=ctx.network,
            )
        raise RetriesExhaustedError(
            f"RPC call failed after {ctx.attempt} attempts: {ctx.last_error}",
            last_error=ctx.last_error,
            attempts=ctx.attempt,
            network=ctx.network,
        ) from ctx.last_error

    async def _run_attempt(
        self, operation: RpcOperation[T], client: RpcClient, timeout_ms: int
    ) -> T:
        """Race one operation against its timeout."""
        future = asyncio.ensure_future(operation(client))
        try:
            done, _ = await asyncio.wait({future}, timeout=timeout_ms / 1000.0)
        except asyncio.CancelledError:
            future.cancel()
            raise

        if future in done:
            return future.result()

        self._abandon(future)
        raise RpcTimeoutError(f"RPC call timed out after {timeout_ms}ms", timeout_ms=timeout_ms)

    def _abandon(self, future: asyncio.Future[Any]) -> None:
        """Keep a timed-out operation referenced until it settles on its own.

        Nothing bounds an operation that never settles, so such operations
        accumulate here; a warning is logged every
        ``ABANDONED_WARNING_THRESHOLD`` of them still outstanding.
        """
        self._abandoned.add(future)
        future.add_done_callback(self._settle_abandoned)
        if len(self._abandoned) % ABANDONED_WARNING_THRESHOLD == 0:
            logger.warning(
                "%d timed-out RPC operations are still running", len(self._abandoned)
            )

    def _settle_abandoned(self, future: asyncio.Future[Any]) -> None:
        self._abandoned.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.debug("Abandoned RPC operation failed after its timeout: %s", exc)
        else:
            logger.debug("Abandoned RPC operation completed after its timeout")
