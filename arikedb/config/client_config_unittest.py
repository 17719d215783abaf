import pytest

from arikedb.config.client_config import ArikedbClientConfig
from arikedb.errors import ArikedbConnectionError
from arikedb.rpc.grpc_util.channel_auth_config import (
    InsecureChannelConfig,
    ServerCAChannelConfig,
)


def test_defaults() -> None:
    config = ArikedbClientConfig()
    assert config.endpoint.url == "http://127.0.0.1:6923"
    assert config.effective_auth_config == InsecureChannelConfig()


def test_use_ssl_implies_system_trust_store() -> None:
    config = ArikedbClientConfig(host="db.example.com", use_ssl=True)
    assert config.endpoint.url == "https://db.example.com:6923"
    assert config.effective_auth_config == ServerCAChannelConfig()


def test_explicit_auth_config_wins() -> None:
    auth = ServerCAChannelConfig(server_ca_cert_path="/tmp/ca.pem")
    config = ArikedbClientConfig(use_ssl=True, auth_config=auth)
    assert config.effective_auth_config is auth


@pytest.mark.parametrize("timeout", [0, -1.0])
def test_connect_timeout_must_be_positive(timeout: float) -> None:
    with pytest.raises(ValueError):
        ArikedbClientConfig(connect_timeout=timeout)


def test_ssl_conflicts_with_insecure_config() -> None:
    with pytest.raises(ValueError):
        ArikedbClientConfig(use_ssl=True, auth_config=InsecureChannelConfig())


def test_plaintext_conflicts_with_tls_config() -> None:
    with pytest.raises(ValueError):
        ArikedbClientConfig(auth_config=ServerCAChannelConfig())


def test_invalid_port_surfaces_through_endpoint() -> None:
    config = ArikedbClientConfig(port=0)
    with pytest.raises(ArikedbConnectionError):
        config.endpoint
