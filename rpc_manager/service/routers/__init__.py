"""HTTP routers for the RPC manager service."""

from rpc_manager.service.routers.health import create_health_router
from rpc_manager.service.routers.rpc import create_rpc_router

__all__ = ["create_health_router", "create_rpc_router"]
