"""Connection selection with graceful degradation.

Selection order for a network:

1. A uniformly random member of the healthy subset.
2. If nothing is healthy, a uniformly random member of all configured
   endpoints (best effort, logged as a warning).
3. If nothing is configured, a connection to the reference endpoint built
   outside the pool. It is created on first use and reused afterwards.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable

from rpc_manager.client import RpcClient
from rpc_manager.pool.endpoint_pool import EndpointPool
from rpc_manager.pool.types import Endpoint

logger = logging.getLogger(__name__)


class ConnectionSelector:
    """Hands out endpoints from an ``EndpointPool``.

    Args:
        pool: Pool to select from.
        reference_url: Address used for the last-resort connection.
        client_factory: Builds the client for the last-resort connection.
        rng: Random source, injectable for deterministic tests.
    """

    def __init__(
        self,
        pool: EndpointPool,
        *,
        reference_url: str,
        client_factory: Callable[[str], RpcClient],
        rng: random.Random | None = None,
    ) -> None:
        self._pool = pool
        self._reference_url = reference_url
        self._client_factory = client_factory
        self._rng = rng or random.Random()
        self._fallback: Endpoint | None = None

    def select(self, network: str) -> Endpoint | None:
        """Pick an endpoint for one call attempt on ``network``."""
        all_endpoints, healthy = self._pool.snapshot(network)

        if healthy:
            endpoint = self._rng.choice(healthy)
            logger.debug(
                "Selected connection: %s",
                endpoint.url,
                extra={"network": network, "endpoint": endpoint.url},
            )
            return endpoint

        logger.warning(
            "No healthy connections available for %s", network, extra={"network": network}
        )

        if all_endpoints:
            endpoint = self._rng.choice(all_endpoints)
            logger.warning(
                "Falling back to potentially unhealthy connection: %s",
                endpoint.url,
                extra={"network": network, "endpoint": endpoint.url},
            )
            return endpoint

        if not self._reference_url:
            return None

        logger.warning(
            "Falling back to official endpoint: %s",
            self._reference_url,
            extra={"network": network, "endpoint": self._reference_url},
        )
        if self._fallback is None:
            self._fallback = Endpoint(
                url=self._reference_url,
                client=self._client_factory(self._reference_url),
            )
        return self._fallback

    async def aclose(self) -> None:
        """Close the last-resort connection, if one was created."""
        if self._fallback is not None:
            await self._fallback.client.aclose()
            self._fallback = None
