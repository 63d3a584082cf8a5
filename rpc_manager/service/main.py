"""ASGI entry point: ``uvicorn rpc_manager.service.main:app``."""

from rpc_manager.service.app import create_app

app = create_app()
