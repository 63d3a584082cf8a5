"""Solana RPC connection manager: health-aware endpoint pooling with failover."""

from rpc_manager.client import HttpRpcClient, RpcClient
from rpc_manager.config.settings import RpcManagerSettings
from rpc_manager.errors import (
    ConfigurationError,
    NoEndpointsAvailableError,
    RetriesExhaustedError,
    RpcError,
    RpcManagerError,
    RpcTimeoutError,
)
from rpc_manager.manager import RpcManager, create_rpc_manager
from rpc_manager.pool.types import Endpoint

__all__ = [
    "ConfigurationError",
    "Endpoint",
    "HttpRpcClient",
    "NoEndpointsAvailableError",
    "RetriesExhaustedError",
    "RpcClient",
    "RpcError",
    "RpcManager",
    "RpcManagerError",
    "RpcManagerSettings",
    "RpcTimeoutError",
    "create_rpc_manager",
]
