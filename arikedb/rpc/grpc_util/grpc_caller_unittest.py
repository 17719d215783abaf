"""Unit tests for arikedb.rpc.grpc_util.grpc_caller."""

from unittest.mock import MagicMock, patch

import grpc
from google.rpc.status_pb2 import Status

from arikedb.rpc.grpc_util.grpc_caller import (
    get_grpc_details,
    get_grpc_status_code,
    is_server_unavailable_error,
)


# --- Tests for get_grpc_status_code ---


def test_get_grpc_status_code_aio_rpc_error():
    mock_error = MagicMock(spec=grpc.aio.AioRpcError)
    mock_error.code.return_value = grpc.StatusCode.UNAVAILABLE
    assert get_grpc_status_code(mock_error) == grpc.StatusCode.UNAVAILABLE


class CustomRpcError(grpc.RpcError):
    """Subclasses grpc.RpcError but not grpc.aio.AioRpcError."""


def _patched_rpc_status(status):
    mock_rpc_status_obj = MagicMock()
    mock_rpc_status_obj.from_call.return_value = status
    mock_grpc_status_mod = MagicMock()
    mock_grpc_status_mod.rpc_status = mock_rpc_status_obj
    return mock_rpc_status_obj, patch.dict(
        "sys.modules", {"grpc_status": mock_grpc_status_mod}
    )


def test_get_grpc_status_code_rpc_error_with_numeric_status():
    """google.rpc.Status carries the numeric code."""
    error = CustomRpcError()
    status = Status(code=grpc.StatusCode.PERMISSION_DENIED.value[0])
    rpc_status, patcher = _patched_rpc_status(status)

    with patcher:
        assert (
            get_grpc_status_code(error) == grpc.StatusCode.PERMISSION_DENIED
        )
        rpc_status.from_call.assert_called_once_with(error)


def test_get_grpc_status_code_rpc_error_no_status():
    error = CustomRpcError()
    rpc_status, patcher = _patched_rpc_status(None)

    with patcher:
        assert get_grpc_status_code(error) is None
        rpc_status.from_call.assert_called_once_with(error)


def test_get_grpc_status_code_unknown_numeric_code():
    error = CustomRpcError()
    _, patcher = _patched_rpc_status(Status(code=999))

    with patcher:
        assert get_grpc_status_code(error) is None


def test_get_grpc_status_code_non_grpc_error():
    assert get_grpc_status_code(ValueError("Test error")) is None


# --- Tests for get_grpc_details ---


def test_get_grpc_details_aio_rpc_error():
    mock_error = MagicMock(spec=grpc.aio.AioRpcError)
    mock_error.details.return_value = "collection not found"
    assert get_grpc_details(mock_error) == "collection not found"


def test_get_grpc_details_plain_exception():
    assert get_grpc_details(RuntimeError("boom")) == "boom"
    assert get_grpc_details(RuntimeError()) is None


# --- Tests for is_server_unavailable_error ---


def test_is_server_unavailable_error_stop_async_iteration():
    assert is_server_unavailable_error(StopAsyncIteration()) is True


@patch("arikedb.rpc.grpc_util.grpc_caller.get_grpc_status_code")
def test_is_server_unavailable_error_unavailable(mock_get_status):
    mock_get_status.return_value = grpc.StatusCode.UNAVAILABLE
    assert is_server_unavailable_error(Exception()) is True


@patch("arikedb.rpc.grpc_util.grpc_caller.get_grpc_status_code")
def test_is_server_unavailable_error_deadline_exceeded(mock_get_status):
    mock_get_status.return_value = grpc.StatusCode.DEADLINE_EXCEEDED
    assert is_server_unavailable_error(Exception()) is True


@patch("arikedb.rpc.grpc_util.grpc_caller.get_grpc_status_code")
def test_is_server_unavailable_error_other_status(mock_get_status):
    mock_get_status.return_value = grpc.StatusCode.INTERNAL
    assert is_server_unavailable_error(Exception()) is False


@patch("arikedb.rpc.grpc_util.grpc_caller.get_grpc_status_code")
def test_is_server_unavailable_error_no_status(mock_get_status):
    mock_get_status.return_value = None
    assert is_server_unavailable_error(Exception()) is False

