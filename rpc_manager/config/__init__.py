"""Configuration module: settings and endpoint sources."""

from rpc_manager.config.endpoints import load_hosts_file, load_rpc_endpoints, normalize_endpoint
from rpc_manager.config.settings import RpcManagerSettings

__all__ = [
    "RpcManagerSettings",
    "load_hosts_file",
    "load_rpc_endpoints",
    "normalize_endpoint",
]
