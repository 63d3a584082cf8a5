"""Endpoint pool package: per-network endpoints and healthy subsets."""

from rpc_manager.pool.endpoint_pool import EndpointPool
from rpc_manager.pool.types import Endpoint, HealthSnapshot, NetworkPool

__all__ = ["Endpoint", "EndpointPool", "HealthSnapshot", "NetworkPool"]
