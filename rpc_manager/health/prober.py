"""Slot-lag health prober.

Classifies every configured endpoint as healthy or unhealthy by comparing its
current slot against the reference ("official") endpoint:

- The reference slot is fetched first. If it cannot be fetched the whole
  cycle is aborted and every healthy subset is left as it was.
- Every endpoint of every network (the reference included) is then queried
  concurrently. An endpoint is healthy iff its query succeeded and
  ``official_slot - slot <= max_block_delay``; being ahead is healthy.
- A failed query only marks that endpoint unhealthy for this cycle.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from rpc_manager.client import RpcClient
from rpc_manager.pool.endpoint_pool import EndpointPool
from rpc_manager.pool.types import HealthSnapshot

logger = logging.getLogger(__name__)


def is_within_delay(official_slot: int, slot: int | None, max_block_delay: int) -> bool:
    """Return True if ``slot`` is reachable and at most ``max_block_delay`` behind."""
    if slot is None:
        return False
    return official_slot - slot <= max_block_delay


class HealthProber:
    """Runs probe cycles against an ``EndpointPool``.

    Args:
        pool: The pool whose healthy subsets are refreshed.
        reference_url: Address of the reference endpoint.
        client_factory: Builds a client for the reference endpoint when it is
            not part of the pool.
        max_block_delay: Largest accepted slot lag behind the reference.
        probe_timeout_seconds: Upper bound for each single slot query.
    """

    def __init__(
        self,
        pool: EndpointPool,
        *,
        reference_url: str,
        client_factory: Callable[[str], RpcClient],
        max_block_delay: int = 30,
        probe_timeout_seconds: float = 10.0,
    ) -> None:
        self._pool = pool
        self._reference_url = reference_url
        self._client_factory = client_factory
        self._max_block_delay = max_block_delay
        self._probe_timeout_seconds = probe_timeout_seconds
        self._reference_client: RpcClient | None = None
        self._lock = asyncio.Lock()
        self.cycles_completed = 0
        self.cycles_aborted = 0
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop publishing. Later cycles return None and change nothing."""
        self._closed = True

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    async def refresh(self) -> dict[str, HealthSnapshot] | None:
        """Run one full cycle over every network and publish the results.

        Returns the per-network snapshots, or None when the reference
        endpoint was unreachable or the prober is closed, and nothing was
        changed. Cycles never overlap: a cycle requested while another runs
        waits for it.
        """
        async with self._lock:
            if self._closed:
                logger.warning("Health prober is closed, skipping health check")
                return None

            started = time.monotonic()
            logger.info("Updating healthy connections...")

            official_slot = await self._query_slot(self._get_reference_client())
            if official_slot is None:
                self.cycles_aborted += 1
                logger.warning(
                    "Failed to fetch slot from official endpoint, skipping health check",
                    extra={"endpoint": self._reference_url},
                )
                return None

            logger.debug(
                "Official slot: %d", official_slot, extra={"official_slot": official_slot}
            )

            snapshots: dict[str, HealthSnapshot] = {}
            for network in self._pool.networks():
                snapshot = await self.probe(network, official_slot)
                # Closed while probing
                if self._closed:
                    return None
                self._pool.replace_healthy(network, snapshot.healthy)
                snapshots[network] = snapshot
                logger.info(
                    "Updated healthy connections for %s: %d/%d",
                    network,
                    len(snapshot.healthy),
                    len(snapshot.slots),
                    extra={"network": network, "official_slot": official_slot},
                )

            self.cycles_completed += 1
            logger.debug(
                "Health cycle finished",
                extra={"duration_ms": round((time.monotonic() - started) * 1000, 1)},
            )
            return snapshots

    async def probe(self, network: str, official_slot: int) -> HealthSnapshot:
        """Classify one network's endpoints against ``official_slot``.

        Does not publish anything; ``refresh`` does that.
        """
        all_endpoints, _ = self._pool.snapshot(network)
        slots = await asyncio.gather(
            *(self._query_slot(endpoint.client) for endpoint in all_endpoints)
        )

        healthy = []
        for endpoint, slot in zip(all_endpoints, slots):
            if is_within_delay(official_slot, slot, self._max_block_delay):
                healthy.append(endpoint)
                logger.debug(
                    "Healthy endpoint: %s, slot: %s",
                    endpoint.url,
                    slot,
                    extra={"network": network, "endpoint": endpoint.url, "slot": slot},
                )
            else:
                logger.warning(
                    "Unhealthy endpoint: %s, slot: %s",
                    endpoint.url,
                    slot,
                    extra={"network": network, "endpoint": endpoint.url, "slot": slot},
                )

        return HealthSnapshot(
            network=network,
            official_slot=official_slot,
            slots={endpoint.url: slot for endpoint, slot in zip(all_endpoints, slots)},
            healthy=tuple(healthy),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _query_slot(self, client: RpcClient) -> int | None:
        """Fetch a client's slot, returning None on any failure."""
        try:
            slot = await asyncio.wait_for(
                client.get_slot(), timeout=self._probe_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Slot query timed out for %s after %.1fs",
                client.url,
                self._probe_timeout_seconds,
                extra={"endpoint": client.url},
            )
            return None
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Failed to fetch slot for %s: %s",
                client.url,
                exc,
                extra={"endpoint": client.url, "error_reason": str(exc)},
            )
            return None

        if isinstance(slot, bool) or not isinstance(slot, int):
            logger.warning(
                "Malformed slot from %s: %r", client.url, slot, extra={"endpoint": client.url}
            )
            return None
        return slot

    def _get_reference_client(self) -> RpcClient:
        """Use the pooled client for the reference url, else a dedicated one."""
        for endpoint in self._pool.endpoints():
            if endpoint.url == self._reference_url:
                return endpoint.client

        if self._reference_client is None:
            self._reference_client = self._client_factory(self._reference_url)
        return self._reference_client

    async def aclose(self) -> None:
        """Close the dedicated reference client, if one was created."""
        if self._reference_client is not None:
            await self._reference_client.aclose()
            self._reference_client = None
