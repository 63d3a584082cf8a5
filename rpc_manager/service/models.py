"""Pydantic request and response models for the service endpoints.

All API responses are wrapped in an envelope for consistency:
{ success: bool, data: T | None, error: str | None, meta: dict | None }
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """JSON envelope for all API responses."""

    success: bool
    data: T | None = None
    error: str | None = None
    meta: dict | None = None


class RelayRequest(BaseModel):
    """A JSON-RPC call relayed through the retrying executor."""

    method: str = Field(..., min_length=1)
    params: list[Any] = []
    max_retries: int | None = Field(default=None, ge=1, le=20)
    timeout_ms: int | None = Field(default=None, ge=1, le=120_000)
    force_health_check: bool = False
