"""Health, readiness, stats and refresh endpoints.

- GET  /health: service status + pool stats
- GET  /readiness: 200 only when the default network has a healthy endpoint
- GET  /stats: per-network endpoint statistics
- POST /refresh: run one health cycle now
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Response

from rpc_manager.logging_config import redact
from rpc_manager.service.models import ApiResponse

if TYPE_CHECKING:
    from rpc_manager.manager import RpcManager


def _public_stats(stats: dict) -> dict:
    """Copy of ``get_stats()`` with credentials stripped from endpoint urls."""
    return {
        **stats,
        "healthy_endpoints": {
            network: [redact(url) for url in urls]
            for network, urls in stats.get("healthy_endpoints", {}).items()
        },
    }


def create_health_router(*, manager: RpcManager | Any = None) -> APIRouter:
    """Factory that creates the health router with an injected manager."""

    health_router = APIRouter(tags=["health"])

    @health_router.get("/health")
    async def health() -> dict:
        """Service health check with pool statistics."""
        stats = _public_stats(manager.get_stats()) if manager else {}

        return ApiResponse(
            success=True,
            data={"status": "healthy", "rpc_pool": stats},
        ).model_dump()

    @health_router.get("/readiness")
    async def readiness(response: Response) -> dict:
        """Readiness probe, 200 iff the default network has a healthy endpoint."""
        network = manager.settings.default_network if manager else None
        stats = manager.get_stats() if manager else {"healthy_connections": {}}

        healthy = stats["healthy_connections"].get(network, 0)
        is_ready = healthy > 0

        if not is_ready:
            response.status_code = 503

        return ApiResponse(
            success=is_ready,
            data={"ready": is_ready, "network": network, "healthy": healthy},
            error=None if is_ready else "No healthy RPC endpoints",
        ).model_dump()

    @health_router.get("/stats")
    async def stats() -> dict:
        """Per-network endpoint statistics."""
        return ApiResponse(
            success=True,
            data=_public_stats(manager.get_stats()) if manager else {},
        ).model_dump()

    @health_router.post("/refresh")
    async def refresh(response: Response) -> dict:
        """Run one health cycle and return the resulting stats."""
        snapshots = await manager.update_healthy_connections()

        if snapshots is None:
            response.status_code = 503
            return ApiResponse(
                success=False,
                data=_public_stats(manager.get_stats()),
                error="Official endpoint unreachable, healthy endpoints unchanged",
            ).model_dump()

        return ApiResponse(
            success=True,
            data={
                "official_slot": {
                    network: snapshot.official_slot for network, snapshot in snapshots.items()
                },
                "slots": {
                    network: {redact(url): slot for url, slot in snapshot.slots.items()}
                    for network, snapshot in snapshots.items()
                },
                "stats": _public_stats(manager.get_stats()),
            },
        ).model_dump()

    return health_router
