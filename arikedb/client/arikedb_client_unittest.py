import asyncio
from typing import Any, Optional

import grpc
import pytest

from arikedb.client.arikedb_client import ArikedbClient, connect
from arikedb.client.subscription import SubscriptionState
from arikedb.common.collection import Collection
from arikedb.common.epoch import Epoch
from arikedb.common.event_kind import EventKind
from arikedb.common.var_event import VarEvent
from arikedb.common.variable import Variable
from arikedb.common.variable_type import VariableType
from arikedb.config.client_config import ArikedbClientConfig
from arikedb.errors import (
    ArikedbConnectionError,
    ArikedbRpcError,
    AuthenticationError,
    UnauthorizedError,
)
from arikedb.proto import (
    AuthenticateResponse,
    CollectionMeta,
    CreateCollectionsResponse,
    GetVariablesResponse,
    ListCollectionsResponse,
    ListVariablesResponse,
    SetVariablesResponse,
    StatusCode,
    VarDataPoint,
    VariableMeta,
)
from arikedb.rpc.grpc_util.channel_auth_config import InsecureChannelConfig
from arikedb.rpc.session_state import AUTHORIZATION_KEY, REFRESH_TOKEN_KEY

MODULE = "arikedb.client.arikedb_client"


def _rpc_error(code: grpc.StatusCode, details: str) -> grpc.aio.AioRpcError:
    return grpc.aio.AioRpcError(
        code, grpc.aio.Metadata(), grpc.aio.Metadata(), details=details
    )


class FakeUnaryCall:
    """Awaitable stand-in for a grpc.aio.UnaryUnaryCall."""

    def __init__(
        self,
        response: Any = None,
        error: Optional[BaseException] = None,
        initial_metadata: Any = (),
        trailing_metadata: Any = (),
    ) -> None:
        self.__response = response
        self.__error = error
        self.__initial_metadata = initial_metadata
        self.__trailing_metadata = trailing_metadata

    async def __result(self) -> Any:
        if self.__error is not None:
            raise self.__error
        return self.__response

    def __await__(self):
        return self.__result().__await__()

    async def initial_metadata(self) -> Any:
        return self.__initial_metadata

    async def trailing_metadata(self) -> Any:
        return self.__trailing_metadata


class IdleStreamCall:
    """A SubscribeVariables call that never sends anything."""

    def __init__(self) -> None:
        self.cancelled = False
        self.__never = asyncio.Event()

    async def wait_for_connection(self) -> None:
        pass

    async def initial_metadata(self) -> Any:
        return ()

    def done(self) -> bool:
        return self.cancelled

    async def code(self) -> grpc.StatusCode:
        return grpc.StatusCode.OK

    async def read(self) -> Any:
        await self.__never.wait()

    def cancel(self) -> bool:
        self.cancelled = True
        return True


@pytest.fixture
def channel(mocker):
    fake_channel = mocker.MagicMock()
    fake_channel.close = mocker.AsyncMock()
    return fake_channel


@pytest.fixture
def stub(mocker):
    fake_stub = mocker.MagicMock()
    mocker.patch(f"{MODULE}.ArikedbRPCStub", return_value=fake_stub)
    return fake_stub


@pytest.fixture
def client(channel, stub):
    return ArikedbClient(channel)


def _sent_metadata(rpc) -> Any:
    return rpc.call_args.kwargs["metadata"]


@pytest.mark.asyncio
async def test_unauthenticated_call_sends_no_metadata(client, stub):
    stub.ListCollections.return_value = FakeUnaryCall(
        ListCollectionsResponse(
            collections=[CollectionMeta(name="a"), CollectionMeta(name="b")]
        )
    )

    collections = await client.list_collections()

    assert collections == [Collection("a"), Collection("b")]
    assert _sent_metadata(stub.ListCollections) is None


@pytest.mark.asyncio
async def test_authenticate_stores_token_and_stamps(client, stub):
    stub.Authenticate.return_value = FakeUnaryCall(
        AuthenticateResponse(status=StatusCode.Value("OK"), token="t0")
    )
    stub.ListVariables.return_value = FakeUnaryCall(
        ListVariablesResponse(
            variables=[VariableMeta(name="v", vtype=12, buffer_size=3)]
        )
    )

    await client.authenticate("admin", "admin")
    variables = await client.list_variables("c")

    assert client.is_authenticated
    request = stub.Authenticate.call_args.args[0]
    assert (request.username, request.password) == ("admin", "admin")
    assert "metadata" not in stub.Authenticate.call_args.kwargs
    assert _sent_metadata(stub.ListVariables) == [(AUTHORIZATION_KEY, "t0")]
    assert variables == [Variable("v", VariableType.STR, 3)]


@pytest.mark.asyncio
async def test_refresh_token_is_absorbed(client, stub):
    client.session.set_token("t0")
    stub.CreateCollections.side_effect = [
        FakeUnaryCall(
            CreateCollectionsResponse(),
            initial_metadata=((REFRESH_TOKEN_KEY, "t1"),),
        ),
        FakeUnaryCall(
            CreateCollectionsResponse(),
            trailing_metadata=((REFRESH_TOKEN_KEY, "t2"),),
        ),
        FakeUnaryCall(CreateCollectionsResponse()),
    ]

    await client.create_collections(["a"])
    await client.create_collections("b")
    await client.create_collections(["c"])

    calls = stub.CreateCollections.call_args_list
    sent = [c.kwargs["metadata"] for c in calls]
    assert sent == [
        [(AUTHORIZATION_KEY, "t0")],
        [(AUTHORIZATION_KEY, "t1")],
        [(AUTHORIZATION_KEY, "t2")],
    ]
    assert client.session.token == "t2"
    names = [
        [m.name for m in c.args[0].collections]
        for c in stub.CreateCollections.call_args_list
    ]
    assert names == [["a"], ["b"], ["c"]]


@pytest.mark.asyncio
async def test_authenticate_unauthorized(client, stub):
    stub.Authenticate.return_value = FakeUnaryCall(
        AuthenticateResponse(status=StatusCode.Value("UNAUTHORIZED"))
    )

    with pytest.raises(UnauthorizedError):
        await client.authenticate("admin", "wrong")
    assert not client.is_authenticated


@pytest.mark.asyncio
async def test_authenticate_other_status(client, stub):
    stub.Authenticate.return_value = FakeUnaryCall(
        AuthenticateResponse(status=StatusCode.Value("INTERNAL_ERROR"))
    )

    with pytest.raises(AuthenticationError) as exc_info:
        await client.authenticate("admin", "admin")
    assert not isinstance(exc_info.value, UnauthorizedError)


@pytest.mark.asyncio
async def test_authenticate_transport_failure(client, stub):
    stub.Authenticate.return_value = FakeUnaryCall(
        error=_rpc_error(grpc.StatusCode.UNAVAILABLE, "down")
    )

    with pytest.raises(ArikedbRpcError) as exc_info:
        await client.authenticate("admin", "admin")
    assert exc_info.value.code == grpc.StatusCode.UNAVAILABLE


@pytest.mark.asyncio
async def test_rpc_failure_is_wrapped(client, stub):
    error = _rpc_error(grpc.StatusCode.NOT_FOUND, "no such collection")
    stub.DeleteVariables.return_value = FakeUnaryCall(error=error)

    with pytest.raises(ArikedbRpcError) as exc_info:
        await client.delete_variables("missing", ["v"])

    assert exc_info.value.method == "DeleteVariables"
    assert exc_info.value.code == grpc.StatusCode.NOT_FOUND
    assert exc_info.value.details == "no such collection"
    assert exc_info.value.__cause__ is error


class SyncRpcError(grpc.RpcError):
    """A non-aio gRPC error without a status in its trailers."""

    def code(self) -> grpc.StatusCode:
        return grpc.StatusCode.INTERNAL

    def details(self) -> str:
        return "interceptor failed"

    def trailing_metadata(self) -> Any:
        return ()


@pytest.mark.asyncio
async def test_non_aio_rpc_failure_is_wrapped(client, stub):
    error = SyncRpcError()
    stub.ListCollections.return_value = FakeUnaryCall(error=error)

    with pytest.raises(ArikedbRpcError) as exc_info:
        await client.list_collections()

    assert exc_info.value.method == "ListCollections"
    assert exc_info.value.code is None
    assert exc_info.value.details == "interceptor failed"
    assert exc_info.value.__cause__ is error


@pytest.mark.asyncio
async def test_set_variables_rejects_single_string(client, stub):
    with pytest.raises(TypeError):
        await client.set_variables("c", ["v"], 1, "56")

    stub.SetVariables.assert_not_called()


@pytest.mark.asyncio
async def test_set_variables_request(client, stub):
    stub.SetVariables.return_value = FakeUnaryCall(SetVariablesResponse())

    await client.set_variables(
        "c", ["v1", "v2"], 2**100, ["1", "2"], Epoch.MILLISECOND
    )

    request = stub.SetVariables.call_args.args[0]
    assert request.collection == "c"
    assert list(request.names) == ["v1", "v2"]
    assert list(request.values) == ["1", "2"]
    assert request.timestamp == str(2**100)
    assert request.epoch == int(Epoch.MILLISECOND)


@pytest.mark.asyncio
async def test_set_variables_defaults_to_now(client, stub, mocker):
    mocker.patch(
        "arikedb.common.epoch.time.time_ns", return_value=7_000_000_123
    )
    stub.SetVariables.return_value = FakeUnaryCall(SetVariablesResponse())

    await client.set_variables("c", ["v"], None, ["1"], Epoch.SECOND)

    assert stub.SetVariables.call_args.args[0].timestamp == "7"


@pytest.mark.asyncio
async def test_set_variables_does_not_check_lengths(client, stub):
    stub.SetVariables.return_value = FakeUnaryCall(
        error=_rpc_error(grpc.StatusCode.INVALID_ARGUMENT, "length mismatch")
    )

    with pytest.raises(ArikedbRpcError):
        await client.set_variables("c", ["v1", "v2"], 1, ["1"])
    stub.SetVariables.assert_called_once()


@pytest.mark.asyncio
async def test_get_variables(client, stub):
    stub.GetVariables.return_value = FakeUnaryCall(
        GetVariablesResponse(
            points=[
                VarDataPoint(
                    name="v", vtype=2, timestamp="10", epoch=0, value="56"
                )
            ]
        )
    )

    points = await client.get_variables("c", ["v"], 1, Epoch.SECOND)

    request = stub.GetVariables.call_args.args[0]
    assert request.derived_order == 1
    assert request.epoch == int(Epoch.SECOND)
    assert [(p.name, p.value, p.epoch) for p in points] == [
        ("v", "56", Epoch.SECOND)
    ]


@pytest.mark.asyncio
async def test_get_variables_rejects_negative_order(client, stub):
    with pytest.raises(ValueError):
        await client.get_variables("c", ["v"], -1)
    stub.GetVariables.assert_not_called()


@pytest.mark.asyncio
async def test_subscribe_tracks_and_close_stops(client, stub, channel):
    call = IdleStreamCall()
    stub.SubscribeVariables.return_value = call
    client.session.set_token("t0")

    subscription = await client.subscribe_variables(
        "c",
        ["v"],
        [VarEvent(event=EventKind.ON_VALUE_EQ_VAL, value="56")],
        lambda point: None,
    )

    request = stub.SubscribeVariables.call_args.args[0]
    assert request.events[0].event == int(EventKind.ON_VALUE_EQ_VAL)
    assert request.events[0].value == "56"
    assert _sent_metadata(stub.SubscribeVariables) == [
        (AUTHORIZATION_KEY, "t0")
    ]
    assert subscription in client.subscriptions

    await client.close()

    assert subscription.state == SubscriptionState.CANCELLED
    assert call.cancelled
    assert not client.subscriptions
    channel.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_subscribe_rejected(client, stub, mocker):
    call = mocker.MagicMock()
    call.wait_for_connection = mocker.AsyncMock(
        side_effect=_rpc_error(grpc.StatusCode.UNAUTHENTICATED, "no token")
    )
    stub.SubscribeVariables.return_value = call

    with pytest.raises(ArikedbRpcError) as exc_info:
        await client.subscribe_variables("c", ["v"], [], lambda p: None)

    assert exc_info.value.code == grpc.StatusCode.UNAUTHENTICATED
    assert not client.subscriptions
    call.cancel.assert_called_once()


@pytest.mark.asyncio
async def test_logout_and_context_manager(channel, stub):
    async with ArikedbClient(channel) as client:
        client.session.set_token("t0")
        client.logout()
        assert not client.is_authenticated
    channel.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_connect_invalid_port():
    with pytest.raises(ArikedbConnectionError):
        await connect("127.0.0.1", 0)


@pytest.mark.asyncio
async def test_connect_conflicting_config():
    with pytest.raises(ArikedbConnectionError):
        await connect(
            "127.0.0.1", 6923, True, auth_config=InsecureChannelConfig()
        )


@pytest.mark.asyncio
async def test_from_config_no_channel(mocker):
    factory = mocker.MagicMock()
    factory.find_async_channel = mocker.AsyncMock(return_value=None)
    mocker.patch(
        f"{MODULE}.ChannelFactorySelector.for_config",
        return_value=factory,
    )

    with pytest.raises(ArikedbConnectionError):
        await ArikedbClient.from_config(ArikedbClientConfig(port=1))
    factory.find_async_channel.assert_awaited_once_with("127.0.0.1", 1)


@pytest.mark.asyncio
async def test_from_config_connected(mocker, channel, stub):
    factory = mocker.MagicMock()
    factory.find_async_channel = mocker.AsyncMock(return_value=channel)
    mocker.patch(
        f"{MODULE}.ChannelFactorySelector.for_config",
        return_value=factory,
    )

    client = await ArikedbClient.from_config(
        ArikedbClientConfig(host="db", port=7000)
    )

    assert client.endpoint.url == "http://db:7000"
    assert not client.is_authenticated
