"""Provides utility functions for classifying gRPC errors and status codes."""

from __future__ import annotations

import grpc
from google.rpc.status_pb2 import Status


def get_grpc_status_code(error: Exception) -> grpc.StatusCode | None:
    """Extracts the gRPC status code from a gRPC exception.

    Args:
        error: The exception, potentially a gRPC error.

    Returns:
        The `grpc.StatusCode` if the error is a gRPC error and a status code
        can be extracted, otherwise `None`.
    """
    from grpc_status import rpc_status

    if isinstance(error, grpc.aio.AioRpcError):
        return error.code()

    if not issubclass(type(error), grpc.RpcError):
        return None

    status: Status | None = rpc_status.from_call(error)
    if status is None:
        return None

    return _status_code_from_int(status.code)


def get_grpc_details(error: Exception) -> str | None:
    """Extracts the status details string from a gRPC exception, if any."""
    if isinstance(error, grpc.aio.AioRpcError):
        return error.details()

    details = getattr(error, "details", None)
    if callable(details):
        result = details()
        return result if isinstance(result, str) else None

    return str(error) or None


def is_server_unavailable_error(error: Exception) -> bool:
    """Checks if an exception indicates a gRPC server unavailable error.

    This includes `UNAVAILABLE` and `DEADLINE_EXCEEDED` status codes,
    and `StopAsyncIteration` which can occur during stream termination.

    Args:
        error: The exception to check.

    Returns:
        True if the error indicates server unavailability, False otherwise.
    """
    if issubclass(type(error), StopAsyncIteration):
        return True

    status_code = get_grpc_status_code(error)
    return status_code in (
        grpc.StatusCode.UNAVAILABLE,
        grpc.StatusCode.DEADLINE_EXCEEDED,
    )


def _status_code_from_int(
    code: grpc.StatusCode | int,
) -> grpc.StatusCode | None:
    # google.rpc.Status carries the numeric code, grpc.StatusCode wraps
    # (number, name) tuples.
    if isinstance(code, grpc.StatusCode):
        return code
    for status_code in grpc.StatusCode:
        if status_code.value[0] == code:
            return status_code
    return None
