"""Error types raised by the ArikeDB client."""

from __future__ import annotations

import grpc


class ArikedbError(Exception):
    """Base class for all ArikeDB client errors."""


class ArikedbConnectionError(ArikedbError):
    """Raised when no channel to the service could be established."""


class ArikedbRpcError(ArikedbError):
    """Raised when an RPC fails while in flight.

    Wraps whatever the transport reported. The original `grpc.RpcError` is
    kept as `__cause__`.
    """

    method: str
    code: grpc.StatusCode | None
    details: str | None

    def __init__(
        self,
        method: str,
        code: grpc.StatusCode | None,
        details: str | None,
    ) -> None:
        self.method = method
        self.code = code
        self.details = details
        code_name = code.name if code is not None else "UNKNOWN"
        super().__init__(f"{method} failed with {code_name}: {details}")


class AuthenticationError(ArikedbError):
    """Raised when the service rejects an authentication attempt."""


class UnauthorizedError(AuthenticationError):
    """Raised when the service reports the credentials as unauthorized."""
