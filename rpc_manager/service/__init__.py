"""HTTP service exposing pool stats, manual refresh and a JSON-RPC relay."""

from rpc_manager.service.app import create_app

__all__ = ["create_app"]
