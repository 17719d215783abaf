import asyncio

import pytest

from arikedb.rpc.grpc_util.transport.insecure_grpc_channel_factory import (
    InsecureGrpcChannelFactory,
)

MODULE = "arikedb.rpc.grpc_util.transport.insecure_grpc_channel_factory"


def _channel(mocker, ready_side_effect=None):
    channel = mocker.MagicMock()
    channel.channel_ready = mocker.AsyncMock(side_effect=ready_side_effect)
    channel.close = mocker.AsyncMock()
    return channel


@pytest.mark.asyncio
async def test_returns_first_ready_channel(mocker):
    good = _channel(mocker)
    mock_insecure = mocker.patch(
        f"{MODULE}.grpc.aio.insecure_channel", return_value=good
    )

    factory = InsecureGrpcChannelFactory(timeout=1.0)
    channel = await factory.find_async_channel("localhost", 6923)

    assert channel is good
    mock_insecure.assert_called_once_with("localhost:6923")
    good.close.assert_not_called()


@pytest.mark.asyncio
async def test_falls_through_to_next_address(mocker):
    bad = _channel(mocker, ready_side_effect=asyncio.TimeoutError())
    good = _channel(mocker)
    mock_insecure = mocker.patch(
        f"{MODULE}.grpc.aio.insecure_channel", side_effect=[bad, good]
    )

    factory = InsecureGrpcChannelFactory(timeout=1.0)
    channel = await factory.find_async_channel(
        ["10.0.0.1", "10.0.0.2"], 6923
    )

    assert channel is good
    assert mock_insecure.call_count == 2
    bad.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_returns_none_when_nothing_answers(mocker):
    bad = _channel(mocker, ready_side_effect=asyncio.TimeoutError())
    mocker.patch(f"{MODULE}.grpc.aio.insecure_channel", return_value=bad)

    factory = InsecureGrpcChannelFactory(timeout=0.1)
    assert await factory.find_async_channel(["127.0.0.1"], 1) is None
    bad.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_assertion_errors_propagate(mocker):
    bad = _channel(mocker, ready_side_effect=AssertionError("bug"))
    mocker.patch(f"{MODULE}.grpc.aio.insecure_channel", return_value=bad)

    factory = InsecureGrpcChannelFactory()
    with pytest.raises(AssertionError):
        await factory.find_async_channel("127.0.0.1", 6923)
