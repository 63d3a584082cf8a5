"""JSON-RPC client capability used by every pooled endpoint.

``RpcClient`` is the protocol the manager depends on; ``HttpRpcClient`` is the
default implementation speaking Solana JSON-RPC over HTTP with httpx.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

import httpx

from rpc_manager.errors import RpcError

logger = logging.getLogger(__name__)


@runtime_checkable
class RpcClient(Protocol):
    """Capability exposed by a single RPC endpoint."""

    url: str

    async def get_slot(self) -> int: ...

    async def call(self, method: str, params: list[Any] | None = None) -> Any: ...

    async def aclose(self) -> None: ...


class HttpRpcClient:
    """Solana JSON-RPC client over a persistent ``httpx.AsyncClient``.

    Parameters
    ----------
    url:
        Endpoint url, e.g. "https://api.mainnet-beta.solana.com".
    commitment:
        Commitment level sent with slot queries (default "confirmed").
    timeout_seconds:
        Transport-level timeout for each HTTP request.
    """

    def __init__(
        self,
        url: str,
        commitment: str = "confirmed",
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self._commitment = commitment
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def get_slot(self) -> int:
        """Return the endpoint's current slot at the configured commitment."""
        result = await self.call("getSlot", [{"commitment": self._commitment}])
        if isinstance(result, bool) or not isinstance(result, int):
            raise RpcError(
                f"Malformed getSlot result from {self.url}: {result!r}",
                endpoint=self.url,
            )
        return result

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        """Execute one JSON-RPC method and return its ``result`` member.

        Raises
        ------
        RpcError
            On transport failure, non-2xx status, undecodable body or a
            JSON-RPC ``error`` member.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC %s -> %s", method, self.url)

        try:
            response = await self._client.post(self.url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise RpcError(
                f"{method} on {self.url} returned status {exc.response.status_code}",
                endpoint=self.url,
                method=method,
            ) from exc
        except httpx.HTTPError as exc:
            raise RpcError(
                f"{method} on {self.url} failed: {exc.__class__.__name__}",
                endpoint=self.url,
                method=method,
            ) from exc
        except ValueError as exc:
            raise RpcError(
                f"{method} on {self.url} returned an undecodable body",
                endpoint=self.url,
                method=method,
            ) from exc

        if not isinstance(body, dict):
            raise RpcError(
                f"{method} on {self.url} returned a non-object body",
                endpoint=self.url,
                method=method,
            )

        if body.get("error") is not None:
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise RpcError(
                f"{method} on {self.url} returned error: {message}",
                endpoint=self.url,
                method=method,
                rpc_error=error,
            )

        if "result" not in body:
            raise RpcError(
                f"{method} on {self.url} returned no result",
                endpoint=self.url,
                method=method,
            )

        return body["result"]

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    def __repr__(self) -> str:
        return f"HttpRpcClient(url={self.url!r})"


def default_client_factory(
    commitment: str = "confirmed", timeout_seconds: float = 30.0
) -> Callable[[str], HttpRpcClient]:
    """Build a ``url -> HttpRpcClient`` factory with fixed client options."""

    def factory(url: str) -> HttpRpcClient:
        return HttpRpcClient(url, commitment=commitment, timeout_seconds=timeout_seconds)

    return factory
