"""Unit tests for the retrying executor."""

from __future__ import annotations

import asyncio
import logging
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import NETWORK, OFFICIAL, FakeClientFactory
from rpc_manager import executor as executor_module
from rpc_manager.client import RpcClient
from rpc_manager.errors import (
    NoEndpointsAvailableError,
    RetriesExhaustedError,
    RpcError,
    RpcTimeoutError,
)
from rpc_manager.executor import RetryingExecutor
from rpc_manager.pool.endpoint_pool import EndpointPool
from rpc_manager.selector import ConnectionSelector

A = "https://rpc-a.example.com"
B = "https://rpc-b.example.com"


@pytest.fixture
def refresh() -> AsyncMock:
    return AsyncMock(return_value=None)


@pytest.fixture
def executor(selector: ConnectionSelector, refresh: AsyncMock) -> RetryingExecutor:
    return RetryingExecutor(
        selector,
        refresh=refresh,
        default_network=NETWORK,
        default_max_retries=3,
        default_timeout_ms=500,
    )


@pytest.fixture(autouse=True)
def _healthy_pool(pool: EndpointPool, make_endpoints) -> None:
    endpoints = make_endpoints(A, B)
    pool.set_all(NETWORK, endpoints)
    pool.replace_healthy(NETWORK, endpoints)


class TestSuccess:
    @pytest.mark.asyncio
    async def test_returns_result(self, executor: RetryingExecutor) -> None:
        async def get_balance(client: RpcClient) -> int:
            return 42

        assert await executor.execute_with_retry(get_balance) == 42

    @pytest.mark.asyncio
    async def test_passes_selected_client(self, executor: RetryingExecutor) -> None:
        seen: list[str] = []

        async def op(client: RpcClient) -> str:
            seen.append(client.url)
            return client.url

        result = await executor.execute_with_retry(op)

        assert result in {A, B}
        assert seen == [result]

    @pytest.mark.asyncio
    async def test_success_on_second_attempt_stops(self, executor: RetryingExecutor) -> None:
        attempts = 0

        async def op(client: RpcClient) -> str:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise RpcError("first attempt fails")
            return "ok"

        assert await executor.execute_with_retry(op, max_retries=3) == "ok"
        assert attempts == 2


class TestExhaustion:
    @pytest.mark.asyncio
    async def test_exactly_max_retries_attempts(self, executor: RetryingExecutor) -> None:
        attempts = 0

        async def op(client: RpcClient) -> None:
            nonlocal attempts
            attempts += 1
            raise RpcError(f"failure {attempts}")

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await executor.execute_with_retry(op, max_retries=3)

        assert attempts == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, RpcError)
        assert exc_info.value.last_error.message == "failure 3"
        assert exc_info.value.__cause__ is exc_info.value.last_error

    @pytest.mark.asyncio
    async def test_uses_default_max_retries(self, executor: RetryingExecutor) -> None:
        op = AsyncMock(side_effect=RpcError("nope"))

        with pytest.raises(RetriesExhaustedError):
            await executor.execute_with_retry(op)

        assert op.await_count == 3

    @pytest.mark.asyncio
    async def test_single_attempt(self, executor: RetryingExecutor) -> None:
        op = AsyncMock(side_effect=ValueError("bad"))

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await executor.execute_with_retry(op, max_retries=1)

        assert op.await_count == 1
        assert isinstance(exc_info.value.last_error, ValueError)

    @pytest.mark.asyncio
    async def test_synchronous_raise_counts_as_attempt(self, executor: RetryingExecutor) -> None:
        def op(client: RpcClient):
            raise RuntimeError("not even a coroutine")

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await executor.execute_with_retry(op, max_retries=2)

        assert exc_info.value.attempts == 2

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, executor: RetryingExecutor) -> None:
        op = AsyncMock(return_value=1)
        with pytest.raises(ValueError):
            await executor.execute_with_retry(op, max_retries=0)
        with pytest.raises(ValueError):
            await executor.execute_with_retry(op, timeout_ms=0)
        op.assert_not_awaited()


class TestTimeout:
    @pytest.mark.asyncio
    async def test_times_out_after_about_timeout_ms(self, executor: RetryingExecutor) -> None:
        async def never(client: RpcClient) -> None:
            await asyncio.Event().wait()

        started = time.monotonic()
        with pytest.raises(RetriesExhaustedError) as exc_info:
            await executor.execute_with_retry(never, max_retries=1, timeout_ms=50)
        elapsed = time.monotonic() - started

        assert isinstance(exc_info.value.last_error, RpcTimeoutError)
        assert 0.045 <= elapsed < 0.5

    @pytest.mark.asyncio
    async def test_timeout_consumes_one_attempt(self, executor: RetryingExecutor) -> None:
        attempts = 0

        async def op(client: RpcClient) -> str:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                await asyncio.sleep(1)
            return "second"

        assert await executor.execute_with_retry(op, timeout_ms=50) == "second"
        assert attempts == 2

    @pytest.mark.asyncio
    async def test_timed_out_operation_is_not_cancelled(self, executor: RetryingExecutor) -> None:
        finished = asyncio.Event()

        async def slow(client: RpcClient) -> str:
            await asyncio.sleep(0.1)
            finished.set()
            return "late"

        with pytest.raises(RetriesExhaustedError):
            await executor.execute_with_retry(slow, max_retries=1, timeout_ms=20)

        assert executor.abandoned_count == 1
        await asyncio.wait_for(finished.wait(), timeout=1)
        await asyncio.sleep(0.01)
        assert executor.abandoned_count == 0

    @pytest.mark.asyncio
    async def test_late_failure_of_abandoned_operation_is_absorbed(
        self, executor: RetryingExecutor
    ) -> None:
        async def slow_fail(client: RpcClient) -> None:
            await asyncio.sleep(0.05)
            raise RpcError("late failure")

        with pytest.raises(RetriesExhaustedError):
            await executor.execute_with_retry(slow_fail, max_retries=1, timeout_ms=10)

        await asyncio.sleep(0.1)
        assert executor.abandoned_count == 0


class TestForceHealthCheck:
    @pytest.mark.asyncio
    async def test_refreshes_before_first_attempt(
        self, executor: RetryingExecutor, refresh: AsyncMock
    ) -> None:
        order: list[str] = []
        refresh.side_effect = lambda: order.append("refresh")

        async def op(client: RpcClient) -> str:
            order.append("call")
            return "ok"

        await executor.execute_with_retry(op, force_health_check=True)

        assert order == ["refresh", "call"]
        refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_refresh_by_default(
        self, executor: RetryingExecutor, refresh: AsyncMock
    ) -> None:
        await executor.execute_with_retry(AsyncMock(return_value=1))
        refresh.assert_not_awaited()


class TestSelection:
    @pytest.mark.asyncio
    async def test_selects_fresh_endpoint_each_attempt(self, refresh: AsyncMock) -> None:
        selector = MagicMock(spec=ConnectionSelector)
        clients = [MagicMock(url=A), MagicMock(url=B), MagicMock(url=A)]
        selector.select.side_effect = [MagicMock(url=c.url, client=c) for c in clients]
        executor = RetryingExecutor(selector, refresh=refresh, default_network=NETWORK)
        used: list[object] = []

        async def op(client: RpcClient) -> None:
            used.append(client)
            raise RpcError("fail")

        with pytest.raises(RetriesExhaustedError):
            await executor.execute_with_retry(op, network="devnet", max_retries=3)

        assert used == clients
        assert [call.args for call in selector.select.call_args_list] == [("devnet",)] * 3

    @pytest.mark.asyncio
    async def test_no_endpoint_fails_immediately(self, refresh: AsyncMock) -> None:
        selector = MagicMock(spec=ConnectionSelector)
        selector.select.return_value = None
        executor = RetryingExecutor(selector, refresh=refresh, default_network=NETWORK)
        op = AsyncMock()

        with pytest.raises(NoEndpointsAvailableError):
            await executor.execute_with_retry(op, max_retries=5)

        assert selector.select.call_count == 1
        op.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unconfigured_network_uses_reference(
        self, executor: RetryingExecutor, client_factory: FakeClientFactory
    ) -> None:
        async def op(client: RpcClient) -> str:
            return client.url

        assert await executor.execute_with_retry(op, network="devnet") == OFFICIAL


class TestAbandonedOperations:
    @pytest.mark.asyncio
    async def test_warns_when_abandoned_operations_pile_up(
        self,
        executor: RetryingExecutor,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        monkeypatch.setattr(executor_module, "ABANDONED_WARNING_THRESHOLD", 2)
        release = asyncio.Event()

        async def hangs(client: RpcClient) -> None:
            await release.wait()

        with caplog.at_level(logging.WARNING, logger="rpc_manager.executor"):
            with pytest.raises(RetriesExhaustedError):
                await executor.execute_with_retry(hangs, max_retries=2, timeout_ms=10)

        assert executor.abandoned_count == 2
        assert "2 timed-out RPC operations are still running" in caplog.text

        release.set()
        await asyncio.sleep(0.01)
        assert executor.abandoned_count == 0
