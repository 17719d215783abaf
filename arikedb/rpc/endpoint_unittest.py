import pytest

from arikedb.errors import ArikedbConnectionError
from arikedb.rpc.endpoint import Endpoint


def test_insecure_url() -> None:
    endpoint = Endpoint("127.0.0.1", 6923, False)
    assert endpoint.url == "http://127.0.0.1:6923"
    assert endpoint.target == "127.0.0.1:6923"


def test_secure_url() -> None:
    endpoint = Endpoint("db.example.com", 443, True)
    assert endpoint.scheme == "https"
    assert endpoint.url == "https://db.example.com:443"


@pytest.mark.parametrize("host", ["", "   ", "http://x", "a b"])
def test_invalid_host(host: str) -> None:
    with pytest.raises(ArikedbConnectionError):
        Endpoint(host, 6923)


@pytest.mark.parametrize("port", [0, -1, 65536, True])
def test_invalid_port(port: int) -> None:
    with pytest.raises(ArikedbConnectionError):
        Endpoint("localhost", port)


def test_max_port_is_valid() -> None:
    assert Endpoint("localhost", 65535).port == 65535
