"""Error hierarchy for the RPC connection manager.

All manager-specific errors extend RpcManagerError. Each carries a message,
optional structured details and the HTTP status code the service layer maps
it to (see ``rpc_manager.service.error_handler``).
"""

from __future__ import annotations


class RpcManagerError(Exception):
    """Base error for all manager-specific errors."""

    status_code: int = 500
    message: str = "RPC manager error"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(RpcManagerError):
    """Hard misconfiguration, e.g. no reference endpoint address."""

    status_code = 500
    message = "Invalid RPC manager configuration"


class RpcError(RpcManagerError):
    """An RPC call failed (transport error, HTTP error or JSON-RPC error)."""

    status_code = 502
    message = "RPC call failed"


class RpcTimeoutError(RpcManagerError):
    """An RPC attempt did not settle within its timeout."""

    status_code = 504
    message = "RPC call timed out"


class NoEndpointsAvailableError(RpcManagerError):
    """No endpoint could be selected for the network."""

    status_code = 503
    message = "No available RPC connections"


class RetriesExhaustedError(RpcManagerError):
    """Every attempt of a retried call failed.

    ``last_error`` is the failure of the final attempt (also chained as
    ``__cause__``), or None when no attempt ever recorded a failure.
    """

    status_code = 503
    message = "RPC call failed after multiple retries"

    def __init__(
        self,
        message: str | None = None,
        *,
        last_error: BaseException | None = None,
        attempts: int = 0,
        **kwargs: object,
    ) -> None:
        super().__init__(message, attempts=attempts, **kwargs)
        self.last_error = last_error
        self.attempts = attempts
