import dataclasses

import pytest

from arikedb.config.client_config import ArikedbClientConfig
from arikedb.rpc.channel_factory_selector import ChannelFactorySelector
from arikedb.rpc.grpc_util.channel_auth_config import (
    BaseChannelAuthConfig,
    InsecureChannelConfig,
    ServerCAChannelConfig,
)
from arikedb.rpc.grpc_util.transport.insecure_grpc_channel_factory import (
    InsecureGrpcChannelFactory,
)
from arikedb.rpc.grpc_util.transport.server_auth_grpc_channel_factory import (
    ServerAuthGrpcChannelFactory,
)

SERVER_AUTH = (
    "arikedb.rpc.grpc_util.transport.server_auth_grpc_channel_factory"
)


@pytest.fixture
def selector():
    return ChannelFactorySelector()


@pytest.fixture
def ssl_credentials(mocker):
    return mocker.patch(f"{SERVER_AUTH}.grpc.ssl_channel_credentials")


class TestReadCertificate:
    def test_read_success(self, selector, mocker):
        mocker.patch(
            "builtins.open", mocker.mock_open(read_data=b"test_content")
        )
        assert selector._read_certificate("ca.pem") == b"test_content"

    def test_read_error_propagates(self, selector, mocker):
        mocker.patch("builtins.open", side_effect=OSError("File not found"))
        with pytest.raises(OSError, match="File not found"):
            selector._read_certificate("ca.pem")


class TestCreateFactory:
    def test_no_auth_config(self, selector):
        factory = selector.create_factory(None)
        assert isinstance(factory, InsecureGrpcChannelFactory)
        assert not factory.is_secure

    def test_insecure_config(self, selector):
        factory = selector.create_factory(InsecureChannelConfig(), timeout=1.5)
        assert isinstance(factory, InsecureGrpcChannelFactory)
        assert factory.timeout == 1.5

    def test_server_ca_from_file(self, selector, mocker, ssl_credentials):
        mock_read = mocker.patch.object(
            selector, "_read_certificate", return_value=b"ca_cert_content"
        )

        factory = selector.create_factory(
            ServerCAChannelConfig(
                server_ca_cert_path="fake_ca.pem",
                server_hostname_override="host.example.com",
            ),
            timeout=2.0,
        )

        assert isinstance(factory, ServerAuthGrpcChannelFactory)
        assert factory.is_secure
        assert factory.root_ca_cert_pem == b"ca_cert_content"
        assert factory.server_hostname_override == "host.example.com"
        assert factory.timeout == 2.0
        mock_read.assert_called_once_with("fake_ca.pem")

    def test_server_ca_default_roots(self, selector, mocker, ssl_credentials):
        mock_read = mocker.patch.object(selector, "_read_certificate")

        factory = selector.create_factory(ServerCAChannelConfig())

        assert isinstance(factory, ServerAuthGrpcChannelFactory)
        assert factory.root_ca_cert_pem is None
        mock_read.assert_not_called()

    def test_server_ca_empty_file(self, selector, mocker):
        mocker.patch.object(selector, "_read_certificate", return_value=b"")
        with pytest.raises(ValueError, match="fake_ca.pem is empty"):
            selector.create_factory(
                ServerCAChannelConfig(server_ca_cert_path="fake_ca.pem")
            )

    def test_unknown_config(self, selector):
        @dataclasses.dataclass(frozen=True)
        class MutualTlsConfig(BaseChannelAuthConfig):
            pass

        with pytest.raises(ValueError, match="MutualTlsConfig"):
            selector.create_factory(MutualTlsConfig())


class TestForConfig:
    def test_plaintext_config(self, selector):
        factory = selector.for_config(ArikedbClientConfig(connect_timeout=3))
        assert isinstance(factory, InsecureGrpcChannelFactory)
        assert factory.timeout == 3

    def test_use_ssl_config(self, selector, ssl_credentials):
        factory = selector.for_config(ArikedbClientConfig(use_ssl=True))
        assert isinstance(factory, ServerAuthGrpcChannelFactory)
        assert factory.root_ca_cert_pem is None
