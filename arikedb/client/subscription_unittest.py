import asyncio
from typing import Any, Optional

import grpc
import pytest

from arikedb.client.subscription import Subscription, SubscriptionState
from arikedb.common.data_point import DataPoint
from arikedb.proto import VarDataPoint
from arikedb.rpc.session_state import REFRESH_TOKEN_KEY, SessionState


def _rpc_error(
    code: grpc.StatusCode, details: str = ""
) -> grpc.aio.AioRpcError:
    return grpc.aio.AioRpcError(
        code, grpc.aio.Metadata(), grpc.aio.Metadata(), details=details
    )


def _point(name: str, value: str, timestamp: int = 1) -> VarDataPoint:
    return VarDataPoint(
        name=name, vtype=2, timestamp=str(timestamp), epoch=3, value=value
    )


class FakeStreamCall:
    """Stands in for a grpc.aio.UnaryStreamCall.

    Items put on `feed` are returned by read(); exceptions are raised.
    """

    def __init__(
        self,
        initial_metadata: Any = (),
        handshake_error: Optional[BaseException] = None,
        trailers_only_code: Optional[grpc.StatusCode] = None,
    ) -> None:
        self.feed: asyncio.Queue[Any] = asyncio.Queue()
        self.cancelled = False
        self.read_count = 0
        self.__initial_metadata = initial_metadata
        self.__handshake_error = handshake_error
        self.__trailers_only_code = trailers_only_code

    async def wait_for_connection(self) -> None:
        if self.__handshake_error is not None:
            raise self.__handshake_error

    async def initial_metadata(self) -> Any:
        return self.__initial_metadata

    def done(self) -> bool:
        return self.__trailers_only_code is not None or self.cancelled

    async def code(self) -> grpc.StatusCode:
        if self.__trailers_only_code is not None:
            return self.__trailers_only_code
        return grpc.StatusCode.OK

    async def details(self) -> str:
        return "rejected" if self.__trailers_only_code is not None else ""

    async def trailing_metadata(self) -> Any:
        return grpc.aio.Metadata()

    async def read(self) -> Any:
        item = await self.feed.get()
        self.read_count += 1
        if isinstance(item, BaseException):
            raise item
        return item

    def cancel(self) -> bool:
        self.cancelled = True
        return True


async def _started(
    call: FakeStreamCall, handler, session=None
) -> Subscription:
    subscription = Subscription(call, handler, description="c[v]")
    await subscription._establish(session or SessionState())
    return subscription


@pytest.mark.asyncio
async def test_delivers_points_in_order_until_eof() -> None:
    received: list[DataPoint] = []
    call = FakeStreamCall()
    subscription = await _started(call, received.append)
    assert subscription.state == SubscriptionState.STREAMING

    for i in range(3):
        call.feed.put_nowait(_point("v", str(i), timestamp=i))
    call.feed.put_nowait(grpc.aio.EOF)

    assert await subscription == SubscriptionState.CLOSED
    assert [p.value for p in received] == ["0", "1", "2"]
    assert [p.timestamp for p in received] == ["0", "1", "2"]
    assert subscription.error is None
    assert subscription.done()


@pytest.mark.asyncio
async def test_coroutine_handler_is_awaited_one_at_a_time() -> None:
    active = 0
    max_active = 0
    received: list[str] = []

    async def handler(point: DataPoint) -> None:
        nonlocal active, max_active
        active += 1
        max_active = max(max_active, active)
        await asyncio.sleep(0)
        received.append(point.value)
        active -= 1

    call = FakeStreamCall()
    subscription = await _started(call, handler)
    call.feed.put_nowait(_point("v", "a"))
    call.feed.put_nowait(_point("v", "b"))
    call.feed.put_nowait(grpc.aio.EOF)

    await subscription.wait()
    assert received == ["a", "b"]
    assert max_active == 1


@pytest.mark.asyncio
async def test_handler_error_ends_stream_quietly() -> None:
    def handler(point: DataPoint) -> None:
        raise RuntimeError("handler failed")

    call = FakeStreamCall()
    subscription = await _started(call, handler)
    call.feed.put_nowait(_point("v", "1"))
    call.feed.put_nowait(_point("v", "2"))

    assert await subscription.wait() == SubscriptionState.ERRORED
    assert isinstance(subscription.error, RuntimeError)
    assert call.cancelled
    assert call.read_count == 1


@pytest.mark.asyncio
async def test_read_error_ends_stream_quietly() -> None:
    call = FakeStreamCall()
    subscription = await _started(call, lambda p: None)
    call.feed.put_nowait(_rpc_error(grpc.StatusCode.UNAVAILABLE, "gone"))

    assert await subscription.wait() == SubscriptionState.ERRORED
    assert isinstance(subscription.error, grpc.aio.AioRpcError)


@pytest.mark.asyncio
async def test_cancel_stops_handler_calls() -> None:
    received: list[str] = []
    call = FakeStreamCall()
    subscription = await _started(call, lambda p: received.append(p.value))

    call.feed.put_nowait(_point("v", "before"))
    while not received:
        await asyncio.sleep(0)

    assert subscription.cancel()
    await subscription.wait()
    call.feed.put_nowait(_point("v", "after"))
    await asyncio.sleep(0)

    assert subscription.state == SubscriptionState.CANCELLED
    assert received == ["before"]
    assert call.cancelled
    assert subscription.error is None


@pytest.mark.asyncio
async def test_cancel_before_first_step() -> None:
    call = FakeStreamCall()
    subscription = await _started(call, lambda p: None)

    subscription.cancel()
    await subscription.wait()

    assert subscription.state == SubscriptionState.CANCELLED
    assert call.cancelled


@pytest.mark.asyncio
async def test_stop_and_cancel_after_done() -> None:
    call = FakeStreamCall()
    subscription = await _started(call, lambda p: None)
    await subscription.stop()

    assert subscription.state == SubscriptionState.CANCELLED
    assert subscription.cancel() is False


@pytest.mark.asyncio
async def test_cancel_before_established() -> None:
    call = FakeStreamCall()
    subscription = Subscription(call, lambda p: None)

    assert subscription.cancel() is True
    assert subscription.state == SubscriptionState.CANCELLED
    assert subscription.task is None
    assert call.cancelled
    assert await subscription.wait() == SubscriptionState.CANCELLED


@pytest.mark.asyncio
async def test_handshake_error_is_raised() -> None:
    call = FakeStreamCall(
        handshake_error=_rpc_error(grpc.StatusCode.NOT_FOUND, "no collection")
    )
    subscription = Subscription(call, lambda p: None)

    with pytest.raises(grpc.aio.AioRpcError):
        await subscription._establish(SessionState())

    assert subscription.state == SubscriptionState.ERRORED
    assert subscription.task is None
    assert call.cancelled


@pytest.mark.asyncio
async def test_trailers_only_rejection_is_raised() -> None:
    call = FakeStreamCall(trailers_only_code=grpc.StatusCode.UNAUTHENTICATED)
    subscription = Subscription(call, lambda p: None)

    with pytest.raises(grpc.aio.AioRpcError) as exc_info:
        await subscription._establish(SessionState())

    assert exc_info.value.code() == grpc.StatusCode.UNAUTHENTICATED
    assert exc_info.value.details() == "rejected"
    assert subscription.state == SubscriptionState.ERRORED
    assert subscription.error is exc_info.value
    assert call.cancelled


@pytest.mark.asyncio
async def test_handshake_absorbs_refresh_token() -> None:
    session = SessionState("old")
    call = FakeStreamCall(initial_metadata=((REFRESH_TOKEN_KEY, "new"),))
    subscription = await _started(call, lambda p: None, session)

    assert session.token == "new"
    await subscription.stop()
