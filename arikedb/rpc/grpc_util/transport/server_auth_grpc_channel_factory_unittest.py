import pytest

from arikedb.rpc.grpc_util.transport.server_auth_grpc_channel_factory import (
    ServerAuthGrpcChannelFactory,
)

MODULE = "arikedb.rpc.grpc_util.transport.server_auth_grpc_channel_factory"


@pytest.fixture
def ready_channel(mocker):
    channel = mocker.MagicMock()
    channel.channel_ready = mocker.AsyncMock()
    channel.close = mocker.AsyncMock()
    return channel


def test_string_certificate_is_encoded(mocker):
    mock_creds = mocker.patch(f"{MODULE}.grpc.ssl_channel_credentials")

    factory = ServerAuthGrpcChannelFactory(root_ca_cert_pem="PEM")

    assert factory.root_ca_cert_pem == b"PEM"
    mock_creds.assert_called_once_with(root_certificates=b"PEM")


@pytest.mark.asyncio
async def test_uses_root_certificate_and_override(mocker, ready_channel):
    mock_creds = mocker.patch(f"{MODULE}.grpc.ssl_channel_credentials")
    mock_secure = mocker.patch(
        f"{MODULE}.grpc.aio.secure_channel", return_value=ready_channel
    )

    factory = ServerAuthGrpcChannelFactory(
        root_ca_cert_pem=b"ca", server_hostname_override="db.internal"
    )
    channel = await factory.find_async_channel("127.0.0.1", 6923)

    assert channel is ready_channel
    mock_creds.assert_called_once_with(root_certificates=b"ca")
    mock_secure.assert_called_once_with(
        "127.0.0.1:6923",
        mock_creds.return_value,
        options=[("grpc.ssl_target_name_override", "db.internal")],
    )


@pytest.mark.asyncio
async def test_system_roots_without_override(mocker, ready_channel):
    mock_creds = mocker.patch(f"{MODULE}.grpc.ssl_channel_credentials")
    mock_secure = mocker.patch(
        f"{MODULE}.grpc.aio.secure_channel", return_value=ready_channel
    )

    factory = ServerAuthGrpcChannelFactory()
    await factory.find_async_channel("db.example.com", 443)

    mock_creds.assert_called_once_with(root_certificates=None)
    mock_secure.assert_called_once_with(
        "db.example.com:443", mock_creds.return_value, options=None
    )


@pytest.mark.asyncio
async def test_timeout_closes_channel_and_returns_none(mocker):
    channel = mocker.MagicMock()
    channel.channel_ready = mocker.AsyncMock(side_effect=TimeoutError())
    channel.close = mocker.AsyncMock()
    mocker.patch(f"{MODULE}.grpc.ssl_channel_credentials")
    mocker.patch(f"{MODULE}.grpc.aio.secure_channel", return_value=channel)

    factory = ServerAuthGrpcChannelFactory(timeout=0.1)
    assert await factory.find_async_channel("127.0.0.1", 6923) is None
    channel.close.assert_awaited_once()
