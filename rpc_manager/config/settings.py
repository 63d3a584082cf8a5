"""Pydantic Settings for the RPC connection manager.

All environment variables use the RPC_MANAGER_ prefix.
Example: RPC_MANAGER_DEFAULT_NETWORK=devnet, RPC_MANAGER_LOG_LEVEL=3
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class RpcManagerSettings(BaseSettings):
    """Connection manager configuration validated from environment variables."""

    # Network
    default_network: str = Field(default="mainnet-beta", min_length=1)
    official_rpc_endpoint: str = Field(
        default="https://api.mainnet-beta.solana.com", min_length=1
    )  # Reference endpoint, always part of the pool
    commitment: str = "confirmed"

    # Health checks
    max_block_delay: int = Field(default=30, ge=0)  # Slots behind the reference
    health_check_interval_ms: int = Field(default=5 * 60 * 1000, gt=0)
    probe_timeout_ms: int = Field(default=10_000, gt=0)

    # Call execution
    default_timeout_ms: int = Field(default=30_000, gt=0)
    default_max_retries: int = Field(default=5, gt=0)

    # Endpoint sources
    rpc_hosts_file_path: str | None = None  # JSON array of hosts
    custom_rpc_endpoints: list[str] = []

    # 0: none, 1: errors, 2: warnings, 3: info, 4: debug
    log_level: int = Field(default=2, ge=0, le=4)

    model_config = {"env_prefix": "RPC_MANAGER_"}
