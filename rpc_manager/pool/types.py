"""Endpoint pool data models."""

from __future__ import annotations

from dataclasses import dataclass, field

from rpc_manager.client import RpcClient


@dataclass(frozen=True)
class Endpoint:
    """A single RPC server address plus its call capability.

    Identity is the url: two endpoints with the same url compare equal.
    """

    url: str
    client: RpcClient = field(compare=False, hash=False, repr=False)


@dataclass(frozen=True)
class NetworkPool:
    """Immutable view of one network's endpoints.

    A refresh never mutates this object; it publishes a new one.
    """

    network: str
    all_endpoints: tuple[Endpoint, ...] = ()
    healthy_endpoints: tuple[Endpoint, ...] = ()


@dataclass(frozen=True)
class HealthSnapshot:
    """Result of one probe cycle for a network."""

    network: str
    official_slot: int
    slots: dict[str, int | None]  # url -> slot, None when unreachable
    healthy: tuple[Endpoint, ...]
