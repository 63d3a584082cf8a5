"""Per-network endpoint pool with copy-on-write healthy subsets.

Each network maps to an immutable ``NetworkPool``. Replacing the healthy
subset builds a new ``NetworkPool`` and swaps the dict entry in one
assignment, so concurrent readers see either the old or the new subset in
full and never take a lock.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace

from rpc_manager.pool.types import Endpoint, NetworkPool

logger = logging.getLogger(__name__)


class EndpointPool:
    """Holds the configured and healthy endpoints of every network."""

    def __init__(self) -> None:
        self._pools: dict[str, NetworkPool] = {}

    def ensure(self, network: str) -> None:
        """Create an empty pool for ``network`` if it does not exist yet."""
        if network not in self._pools:
            self._pools[network] = NetworkPool(network=network)

    def set_all(self, network: str, endpoints: Iterable[Endpoint]) -> None:
        """Set the configured endpoints of a network.

        Duplicate urls are dropped (first occurrence wins). The healthy
        subset starts empty until the first refresh.
        """
        unique: dict[str, Endpoint] = {}
        for endpoint in endpoints:
            unique.setdefault(endpoint.url, endpoint)

        if network in self._pools and self._pools[network].all_endpoints:
            logger.warning("Endpoints for %s were already set, replacing them", network)

        self._pools[network] = NetworkPool(
            network=network, all_endpoints=tuple(unique.values())
        )

    def replace_healthy(self, network: str, endpoints: Iterable[Endpoint]) -> None:
        """Atomically publish a new healthy subset for a network.

        Raises ``ValueError`` if any endpoint is not configured for the
        network.
        """
        current = self._pools.get(network)
        if current is None:
            logger.warning("Ignoring healthy subset for unknown network %s", network)
            return

        healthy = tuple(endpoints)
        known = {endpoint.url for endpoint in current.all_endpoints}
        strangers = [endpoint.url for endpoint in healthy if endpoint.url not in known]
        if strangers:
            raise ValueError(
                f"Endpoints not configured for {network}: {', '.join(strangers)}"
            )

        self._pools[network] = replace(current, healthy_endpoints=healthy)

    def snapshot(self, network: str) -> tuple[tuple[Endpoint, ...], tuple[Endpoint, ...]]:
        """Return ``(all_endpoints, healthy_endpoints)``; empty for unknown networks."""
        pool = self._pools.get(network)
        if pool is None:
            return (), ()
        return pool.all_endpoints, pool.healthy_endpoints

    def get(self, network: str) -> NetworkPool | None:
        return self._pools.get(network)

    def networks(self) -> list[str]:
        return list(self._pools)

    def endpoints(self) -> list[Endpoint]:
        """Every configured endpoint across all networks."""
        return [endpoint for pool in self._pools.values() for endpoint in pool.all_endpoints]
