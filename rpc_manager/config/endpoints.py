"""Endpoint source loading.

Merges the configured custom endpoints, an optional JSON hosts file and the
reference endpoint into one de-duplicated, ordered list of RPC urls.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from rpc_manager.config.settings import RpcManagerSettings

logger = logging.getLogger(__name__)

_RECOGNIZED_SCHEMES = ("http://", "https://")
_DEFAULT_SCHEME = "http://"

_HOSTS_ADAPTER = TypeAdapter(list[str])


def normalize_endpoint(host: str) -> str:
    """Prefix a bare host with the default unencrypted scheme."""
    host = host.strip()
    if host.lower().startswith(_RECOGNIZED_SCHEMES):
        return host
    return f"{_DEFAULT_SCHEME}{host}"


def load_hosts_file(path: str) -> list[str]:
    """Parse a JSON array of hosts into normalized endpoint urls.

    A missing or malformed file is logged and yields no endpoints.
    """
    hosts_path = Path(path)

    if not hosts_path.exists():
        logger.warning("RPC hosts file not found at %s", path)
        return []

    try:
        hosts = _HOSTS_ADAPTER.validate_json(hosts_path.read_bytes())
    except (OSError, ValidationError) as exc:
        logger.error("Failed to load endpoints from file %s: %s", path, exc)
        return []

    endpoints = [normalize_endpoint(host) for host in hosts if host.strip()]
    logger.info("Loaded %d endpoints from file", len(endpoints))
    return endpoints


def load_rpc_endpoints(settings: RpcManagerSettings) -> list[str]:
    """Collect endpoints from every configured source.

    Order: custom endpoints, hosts file, reference endpoint. Duplicates are
    dropped by exact string match, keeping the first occurrence.
    """
    candidates: list[str] = []

    if settings.custom_rpc_endpoints:
        candidates.extend(settings.custom_rpc_endpoints)
        logger.info("Added %d custom endpoints", len(settings.custom_rpc_endpoints))

    if settings.rpc_hosts_file_path:
        candidates.extend(load_hosts_file(settings.rpc_hosts_file_path))

    # Always include the official endpoint
    candidates.append(settings.official_rpc_endpoint)

    return list(dict.fromkeys(candidates))
