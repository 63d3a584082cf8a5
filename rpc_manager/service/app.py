"""FastAPI application entry point with lifespan management.

Startup: load settings, configure logging, create and initialize the RPC
manager (endpoint loading, first health cycle, periodic refresh), mount the
routers.
Shutdown: stop the periodic refresh and close every RPC client.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI

from rpc_manager.client import RpcClient
from rpc_manager.config.settings import RpcManagerSettings
from rpc_manager.logging_config import configure_logging
from rpc_manager.manager import RpcManager
from rpc_manager.service.error_handler import register_error_handlers
from rpc_manager.service.routers.health import create_health_router
from rpc_manager.service.routers.rpc import create_rpc_router

logger = logging.getLogger(__name__)


def create_app(
    settings: RpcManagerSettings | None = None,
    *,
    client_factory: Callable[[str], RpcClient] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Settings are loaded eagerly so that invalid ``RPC_MANAGER_*`` environment
    variables fail at startup rather than on the first request.
    """
    settings = settings or RpcManagerSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: startup and shutdown logic."""
        configure_logging(settings.log_level)
        logger.info("Starting RPC manager service for %s", settings.default_network)

        manager = RpcManager(settings, client_factory=client_factory)
        await manager.initialize()

        app.include_router(create_health_router(manager=manager))
        app.include_router(create_rpc_router(manager=manager))
        app.state.rpc_manager = manager

        logger.info("RPC manager service started successfully")

        yield

        # --- Shutdown ---
        logger.info("Shutting down RPC manager service")
        await manager.aclose()
        logger.info("RPC manager service shut down")

    app = FastAPI(
        title="Solana RPC Manager",
        version="1.0.0",
        lifespan=lifespan,
    )
    register_error_handlers(app)

    return app
