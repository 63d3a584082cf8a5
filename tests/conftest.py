"""Shared test fixtures for the RPC manager test suite."""

from __future__ import annotations

import os
import random

import pytest

from fakes import NETWORK, OFFICIAL, FakeClientFactory
from rpc_manager.config.settings import RpcManagerSettings
from rpc_manager.health.prober import HealthProber
from rpc_manager.pool.endpoint_pool import EndpointPool
from rpc_manager.pool.types import Endpoint
from rpc_manager.selector import ConnectionSelector


# ---------------------------------------------------------------------------
# Keep RPC_MANAGER_* variables from the host out of the tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clear_manager_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("RPC_MANAGER_"):
            monkeypatch.delenv(key)


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> RpcManagerSettings:
    """Test settings with fast timings and two custom endpoints."""
    return RpcManagerSettings(
        default_network=NETWORK,
        official_rpc_endpoint=OFFICIAL,
        custom_rpc_endpoints=["https://rpc-a.example.com", "https://rpc-b.example.com"],
        health_check_interval_ms=50,
        probe_timeout_ms=200,
        default_timeout_ms=200,
        default_max_retries=3,
        log_level=4,
    )


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def client_factory() -> FakeClientFactory:
    return FakeClientFactory()


@pytest.fixture
def pool() -> EndpointPool:
    pool = EndpointPool()
    pool.ensure(NETWORK)
    return pool


@pytest.fixture
def make_endpoints(client_factory: FakeClientFactory):
    """Build endpoints for the given urls through the fake client factory."""

    def _make(*urls: str) -> list[Endpoint]:
        return [Endpoint(url=url, client=client_factory(url)) for url in urls]

    return _make


@pytest.fixture
def prober(pool: EndpointPool, client_factory: FakeClientFactory) -> HealthProber:
    return HealthProber(
        pool,
        reference_url=OFFICIAL,
        client_factory=client_factory,
        max_block_delay=30,
        probe_timeout_seconds=0.2,
    )


@pytest.fixture
def selector(pool: EndpointPool, client_factory: FakeClientFactory) -> ConnectionSelector:
    return ConnectionSelector(
        pool,
        reference_url=OFFICIAL,
        client_factory=client_factory,
        rng=random.Random(1234),
    )
