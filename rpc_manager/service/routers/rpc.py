"""JSON-RPC relay endpoints.

- POST /rpc: relay a call on the default network
- POST /rpc/{network}: relay a call on a named network

Each call goes through ``execute_with_retry`` so it benefits from healthy
endpoint selection, per-attempt timeouts and failover.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter

from rpc_manager.service.models import ApiResponse, RelayRequest

if TYPE_CHECKING:
    from rpc_manager.manager import RpcManager

logger = logging.getLogger(__name__)


def create_rpc_router(*, manager: RpcManager | Any) -> APIRouter:
    """Factory that creates the relay router with an injected manager."""

    rpc_router = APIRouter(prefix="/rpc", tags=["rpc"])

    async def _relay(body: RelayRequest, network: str | None) -> dict:
        result = await manager.execute_with_retry(
            lambda client: client.call(body.method, body.params),
            network=network,
            max_retries=body.max_retries,
            timeout_ms=body.timeout_ms,
            force_health_check=body.force_health_check,
        )
        logger.debug("Relayed %s", body.method, extra={"network": network})
        return ApiResponse(success=True, data={"result": result}).model_dump()

    @rpc_router.post("")
    async def relay_default(body: RelayRequest) -> dict:
        """Relay a JSON-RPC call on the default network."""
        return await _relay(body, None)

    @rpc_router.post("/{network}")
    async def relay(network: str, body: RelayRequest) -> dict:
        """Relay a JSON-RPC call on ``network``."""
        return await _relay(body, network)

    return rpc_router
