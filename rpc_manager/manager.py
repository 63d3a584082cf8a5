"""Solana RPC connection manager.

Owns the endpoint pool and wires the health prober, refresh scheduler,
connection selector and retrying executor around it:

- ``initialize()`` loads endpoints from every configured source, runs a first
  health cycle and starts the periodic refresh.
- ``get_connection()`` / ``execute_with_retry()`` route calls to healthy
  endpoints with failover.
- ``dispose()`` stops every health refresh; ``aclose()`` also closes every
  client's HTTP transport.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from typing import Any, TypeVar

from rpc_manager.client import RpcClient, default_client_factory
from rpc_manager.config.endpoints import load_rpc_endpoints
from rpc_manager.config.settings import RpcManagerSettings
from rpc_manager.errors import ConfigurationError
from rpc_manager.executor import RetryingExecutor, RpcOperation
from rpc_manager.health.prober import HealthProber
from rpc_manager.health.scheduler import HealthRefreshScheduler
from rpc_manager.logging_config import apply_log_level
from rpc_manager.pool.endpoint_pool import EndpointPool
from rpc_manager.pool.types import Endpoint, HealthSnapshot
from rpc_manager.selector import ConnectionSelector

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RpcManager:
    """Manages and load-balances RPC connections for one process.

    Dependencies are injectable so the manager is testable without network
    access: ``client_factory`` builds the ``RpcClient`` for an endpoint url
    and ``rng`` drives endpoint selection.

    ``settings.log_level`` is applied to the shared ``rpc_manager`` logger,
    so with several managers in one process the most recently constructed
    one sets the verbosity for all of them.
    """

    def __init__(
        self,
        settings: RpcManagerSettings | None = None,
        *,
        client_factory: Callable[[str], RpcClient] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings or RpcManagerSettings()
        if not self._settings.official_rpc_endpoint:
            raise ConfigurationError("An official RPC endpoint address is required")

        apply_log_level(self._settings.log_level)

        self._client_factory = client_factory or default_client_factory(
            commitment=self._settings.commitment,
            timeout_seconds=self._settings.default_timeout_ms / 1000.0,
        )

        self._pool = EndpointPool()
        self._pool.ensure(self._settings.default_network)

        self._prober = HealthProber(
            self._pool,
            reference_url=self._settings.official_rpc_endpoint,
            client_factory=self._client_factory,
            max_block_delay=self._settings.max_block_delay,
            probe_timeout_seconds=self._settings.probe_timeout_ms / 1000.0,
        )
        self._scheduler = HealthRefreshScheduler(
            self._prober,
            interval_seconds=self._settings.health_check_interval_ms / 1000.0,
        )
        self._selector = ConnectionSelector(
            self._pool,
            reference_url=self._settings.official_rpc_endpoint,
            client_factory=self._client_factory,
            rng=rng,
        )
        self._executor = RetryingExecutor(
            self._selector,
            refresh=self._prober.refresh,
            default_network=self._settings.default_network,
            default_max_retries=self._settings.default_max_retries,
            default_timeout_ms=self._settings.default_timeout_ms,
        )

        self._initialized = False
        self._disposed = False

        logger.info(
            "RpcManager initialized with config: %s", self._settings.model_dump_json()
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def settings(self) -> RpcManagerSettings:
        return self._settings

    @property
    def pool(self) -> EndpointPool:
        return self._pool

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_health_check_running(self) -> bool:
        return self._scheduler.is_running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load endpoints, run a first health cycle and start periodic refresh."""
        if self._disposed:
            logger.warning("Cannot initialize a disposed RpcManager")
            return
        if self._initialized:
            logger.warning("RpcManager is already initialized")
            return

        network = self._settings.default_network
        logger.info("Initializing RPC connections...")

        urls = load_rpc_endpoints(self._settings)
        self._pool.set_all(
            network, [Endpoint(url=url, client=self._client_factory(url)) for url in urls]
        )
        logger.info(
            "Initialized %d connections for %s", len(urls), network, extra={"network": network}
        )

        await self._prober.refresh()
        self._initialized = True

        if not self._disposed:
            self._scheduler.start()

    def start_health_check(self) -> None:
        """(Re)start the periodic health refresh."""
        if self._disposed:
            logger.warning("Cannot start health checks on a disposed RpcManager")
            return
        self._scheduler.start()

    def stop_health_check(self) -> None:
        """Stop the periodic health refresh. Idempotent."""
        self._scheduler.stop()

    def dispose(self) -> None:
        """Stop all health refreshes. In-flight calls are left to finish.

        The healthy subsets are frozen from here on: manual and forced
        refreshes return None without changing them.
        """
        self._scheduler.stop()
        self._prober.close()
        if not self._disposed:
            self._disposed = True
            logger.info("RPC Manager disposed")

    async def aclose(self) -> None:
        """Dispose the manager and close every client's transport.

        A client that fails to close is logged and does not keep the others
        open.
        """
        self.dispose()
        closers = [endpoint.client.aclose() for endpoint in self._pool.endpoints()]
        closers += [self._prober.aclose(), self._selector.aclose()]
        results = await asyncio.gather(*closers, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.warning("Failed to close RPC client: %s", result)

    async def __aenter__(self) -> RpcManager:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def update_healthy_connections(self) -> dict[str, HealthSnapshot] | None:
        """Run one health cycle now.

        Returns None if the reference was unreachable or the manager is
        disposed.
        """
        return await self._scheduler.trigger()

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def get_connection(self, network: str | None = None) -> Endpoint | None:
        """Pick an endpoint for ``network`` (default network if omitted)."""
        return self._selector.select(network or self._settings.default_network)

    async def execute_with_retry(
        self,
        operation: RpcOperation[T],
        *,
        network: str | None = None,
        max_retries: int | None = None,
        timeout_ms: int | None = None,
        force_health_check: bool = False,
    ) -> T:
        """Run ``operation(client)`` with failover, timeout and bounded retries."""
        return await self._executor.execute_with_retry(
            operation,
            network=network,
            max_retries=max_retries,
            timeout_ms=timeout_ms,
            force_health_check=force_health_check,
        )

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self) -> dict[str, dict[str, Any]]:
        """Per-network endpoint counts and healthy endpoint urls."""
        stats: dict[str, dict[str, Any]] = {
            "total_connections": {},
            "healthy_connections": {},
            "healthy_endpoints": {},
        }

        for network in self._pool.networks():
            all_endpoints, healthy = self._pool.snapshot(network)
            stats["total_connections"][network] = len(all_endpoints)
            stats["healthy_connections"][network] = len(healthy)
            stats["healthy_endpoints"][network] = [endpoint.url for endpoint in healthy]

        return stats


async def create_rpc_manager(
    settings: RpcManagerSettings | None = None, **kwargs: Any
) -> RpcManager:
    """Create and initialize an ``RpcManager`` in one step."""
    manager = RpcManager(settings, **kwargs)
    await manager.initialize()
    return manager
