"""End-to-end tests of ArikedbClient against an in-process gRPC service."""

import asyncio
import datetime
import logging
import socket
from collections.abc import AsyncIterator, Awaitable, Callable
from ipaddress import ip_address
from typing import Any, Optional

import grpc
import pytest
import pytest_asyncio
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from arikedb import (
    ArikedbClient,
    ArikedbConnectionError,
    ArikedbRpcError,
    Collection,
    DataPoint,
    Epoch,
    EventKind,
    ServerCAChannelConfig,
    SubscriptionState,
    UnauthorizedError,
    VarEvent,
    Variable,
    VariableType,
)
from arikedb.test.fake_arikedb_servicer import (
    FakeArikedbServicer,
    start_fake_server,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

HOST = "127.0.0.1"
DELIVERY_TIMEOUT = 5.0

ServiceFactory = Callable[..., Awaitable[tuple[FakeArikedbServicer, int]]]


@pytest_asyncio.fixture
async def fake_service_factory() -> AsyncIterator[ServiceFactory]:
    """Starts fake services on demand and stops them all afterwards."""
    started: list[tuple[FakeArikedbServicer, grpc.aio.Server]] = []

    async def _factory(
        server_credentials: Optional[grpc.ServerCredentials] = None,
        **servicer_options: Any,
    ) -> tuple[FakeArikedbServicer, int]:
        servicer = FakeArikedbServicer(**servicer_options)
        server, port = await start_fake_server(
            servicer, HOST, server_credentials
        )
        started.append((servicer, server))
        return servicer, port

    try:
        yield _factory
    finally:
        for servicer, server in started:
            servicer.close_subscriptions()
            await server.stop(None)


@pytest_asyncio.fixture
async def service(
    fake_service_factory: ServiceFactory,
) -> tuple[FakeArikedbServicer, int]:
    return await fake_service_factory()


@pytest_asyncio.fixture
async def client(
    service: tuple[FakeArikedbServicer, int],
) -> AsyncIterator[ArikedbClient]:
    _, port = service
    arikedb_client = await ArikedbClient.connect(HOST, port)
    try:
        yield arikedb_client
    finally:
        await arikedb_client.close()


async def _with_variables(
    client: ArikedbClient, collection: str, *names: str
) -> None:
    await client.create_collections([collection])
    await client.create_variables(
        collection,
        [Variable(name, VariableType.I32, 10) for name in names],
    )


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((HOST, 0))
        return sock.getsockname()[1]


@pytest.mark.asyncio
async def test_collections_and_variables_crud(client: ArikedbClient) -> None:
    assert await client.list_collections() == []

    await client.create_collections(["plant", "lab"])
    assert sorted(c.name for c in await client.list_collections()) == [
        "lab",
        "plant",
    ]

    await client.create_variables(
        "plant",
        [
            Variable("temperature", VariableType.F64, 100),
            Variable("running", VariableType.BOOL, 1),
        ],
    )
    assert await client.list_variables("plant") == [
        Variable("temperature", VariableType.F64, 100),
        Variable("running", VariableType.BOOL, 1),
    ]

    await client.delete_variables("plant", ["running"])
    assert [v.name for v in await client.list_variables("plant")] == [
        "temperature"
    ]

    await client.delete_collections("lab")
    assert await client.list_collections() == [Collection("plant")]


@pytest.mark.asyncio
async def test_set_then_get(client: ArikedbClient) -> None:
    await _with_variables(client, "c", "v1", "v2")

    await client.set_variables(
        "c", ["v1", "v2"], 5, ["12", "-3"], Epoch.SECOND
    )

    points = await client.get_variables(
        "c", ["v1", "v2"], epoch=Epoch.MILLISECOND
    )
    assert points == [
        DataPoint("v1", VariableType.I32, "5000", Epoch.MILLISECOND, "12"),
        DataPoint("v2", VariableType.I32, "5000", Epoch.MILLISECOND, "-3"),
    ]


@pytest.mark.asyncio
async def test_get_first_derivative(client: ArikedbClient) -> None:
    await _with_variables(client, "c", "v")
    await client.set_variables("c", ["v"], 1, ["0"], Epoch.SECOND)
    await client.set_variables("c", ["v"], 3, ["10"], Epoch.SECOND)

    (point,) = await client.get_variables(
        "c", ["v"], derived_order=1, epoch=Epoch.SECOND
    )
    assert float(point.value) == 5.0
    assert point.timestamp == "3"


@pytest.mark.asyncio
async def test_length_mismatch_is_rejected_by_service(
    client: ArikedbClient,
) -> None:
    await _with_variables(client, "c", "v1", "v2")

    with pytest.raises(ArikedbRpcError) as exc_info:
        await client.set_variables("c", ["v1", "v2"], 1, ["1"])
    assert exc_info.value.code == grpc.StatusCode.INVALID_ARGUMENT


@pytest.mark.asyncio
async def test_missing_collection_is_an_rpc_error(
    client: ArikedbClient,
) -> None:
    with pytest.raises(ArikedbRpcError) as exc_info:
        await client.list_variables("nope")
    assert exc_info.value.code == grpc.StatusCode.NOT_FOUND


@pytest.mark.asyncio
async def test_authentication_gates_calls(
    fake_service_factory: ServiceFactory,
) -> None:
    servicer, port = await fake_service_factory(require_auth=True)
    async with await ArikedbClient.connect(HOST, port) as client:
        with pytest.raises(ArikedbRpcError) as exc_info:
            await client.list_collections()
        assert exc_info.value.code == grpc.StatusCode.UNAUTHENTICATED

        with pytest.raises(UnauthorizedError):
            await client.authenticate("admin", "wrong")
        assert not client.is_authenticated

        await client.authenticate("admin", "admin")
        assert client.is_authenticated
        assert await client.list_collections() == []

    assert servicer.seen_authorization == [
        ("ListCollections", None),
        ("ListCollections", servicer.issued_tokens[0]),
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("refresh_in_trailers", [False, True])
async def test_rotated_tokens_are_used_on_next_call(
    fake_service_factory: ServiceFactory, refresh_in_trailers: bool
) -> None:
    servicer, port = await fake_service_factory(
        require_auth=True,
        rotate_tokens=True,
        refresh_in_trailers=refresh_in_trailers,
    )
    async with await ArikedbClient.connect(HOST, port) as client:
        await client.authenticate("admin", "admin")
        await client.create_collections(["c"])
        await client.list_collections()
        await client.list_collections()

        issued = servicer.issued_tokens
        seen = [token for _, token in servicer.seen_authorization]
        assert seen == issued[:3]
        assert client.session.token == issued[-1]


@pytest.mark.asyncio
async def test_subscription_delivers_matching_points_once(
    service: tuple[FakeArikedbServicer, int], client: ArikedbClient
) -> None:
    servicer, _ = service
    await _with_variables(client, "c", "v")
    received: asyncio.Queue[DataPoint] = asyncio.Queue()

    subscription = await client.subscribe_variables(
        "c",
        ["v"],
        [VarEvent(event=EventKind.ON_VALUE_EQ_VAL, value="56")],
        received.put_nowait,
    )
    assert subscription.state == SubscriptionState.STREAMING

    for timestamp, value in enumerate(["10", "56", "57"], start=1):
        await client.set_variables("c", ["v"], timestamp, [value])

    point = await asyncio.wait_for(received.get(), DELIVERY_TIMEOUT)
    assert (point.name, point.value, point.timestamp) == ("v", "56", "2")

    servicer.close_subscriptions()
    assert (
        await asyncio.wait_for(subscription.wait(), DELIVERY_TIMEOUT)
        == SubscriptionState.CLOSED
    )
    assert received.empty()


@pytest.mark.asyncio
async def test_subscription_filters_each_variable(
    service: tuple[FakeArikedbServicer, int], client: ArikedbClient
) -> None:
    servicer, _ = service
    await _with_variables(client, "c", "v1", "v2")
    received: asyncio.Queue[DataPoint] = asyncio.Queue()

    subscription = await client.subscribe_variables(
        "c",
        ["v1", "v2"],
        [VarEvent(event=EventKind.ON_VALUE_EQ_VAL, value="56")],
        received.put_nowait,
    )

    await client.set_variables("c", ["v1", "v2"], 1, ["56", "3"])
    await client.set_variables("c", ["v1", "v2"], 2, ["4", "3"])

    point = await asyncio.wait_for(received.get(), DELIVERY_TIMEOUT)
    assert (point.name, point.value) == ("v1", "56")

    servicer.close_subscriptions()
    assert (
        await asyncio.wait_for(subscription.wait(), DELIVERY_TIMEOUT)
        == SubscriptionState.CLOSED
    )
    assert received.empty()


@pytest.mark.asyncio
async def test_subscription_order_matches_writes(
    client: ArikedbClient,
) -> None:
    await _with_variables(client, "c", "v")
    received: list[str] = []
    all_seen = asyncio.Event()

    async def handler(point: DataPoint) -> None:
        received.append(point.value)
        if len(received) == 20:
            all_seen.set()

    await client.subscribe_variables(
        "c", ["v"], [VarEvent(event=EventKind.ON_SET)], handler
    )
    for i in range(20):
        await client.set_variables("c", ["v"], i + 1, [str(i)])

    await asyncio.wait_for(all_seen.wait(), DELIVERY_TIMEOUT)
    assert received == [str(i) for i in range(20)]


@pytest.mark.asyncio
async def test_cancelled_subscription_stops_calling_handler(
    client: ArikedbClient,
) -> None:
    await _with_variables(client, "c", "v")
    received: asyncio.Queue[DataPoint] = asyncio.Queue()

    subscription = await client.subscribe_variables(
        "c", ["v"], [VarEvent(event=EventKind.ON_SET)], received.put_nowait
    )
    await client.set_variables("c", ["v"], 1, ["1"])
    await asyncio.wait_for(received.get(), DELIVERY_TIMEOUT)

    await subscription.stop()
    assert subscription.state == SubscriptionState.CANCELLED
    assert subscription not in client.subscriptions

    await client.set_variables("c", ["v"], 2, ["2"])
    await asyncio.sleep(0.2)
    assert received.empty()


@pytest.mark.asyncio
async def test_rejected_subscription_raises(
    fake_service_factory: ServiceFactory,
) -> None:
    _, port = await fake_service_factory(require_auth=True)
    async with await ArikedbClient.connect(HOST, port) as client:
        # The rejection races the response headers, so it is reported by
        # the handshake or by the first read of the stream.
        try:
            subscription = await client.subscribe_variables(
                "c", ["v"], [VarEvent()], lambda point: None
            )
        except ArikedbRpcError as e:
            code = e.code
        else:
            state = await asyncio.wait_for(
                subscription.wait(), DELIVERY_TIMEOUT
            )
            assert state == SubscriptionState.ERRORED
            assert isinstance(subscription.error, grpc.aio.AioRpcError)
            code = subscription.error.code()
        assert code == grpc.StatusCode.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_connect_without_service_fails() -> None:
    with pytest.raises(ArikedbConnectionError):
        await ArikedbClient.connect(HOST, _unused_port(), connect_timeout=0.5)


# --- TLS ---


def _private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def _validity(builder: x509.CertificateBuilder) -> x509.CertificateBuilder:
    now = datetime.datetime.now(datetime.timezone.utc)
    return builder.not_valid_before(now).not_valid_after(
        now + datetime.timedelta(days=1)
    )


def generate_ca_and_server_certificate() -> tuple[bytes, bytes, bytes]:
    """
    Generates a CA and a server certificate for localhost signed by it.

    Returns:
        A tuple of (ca_cert_pem, server_cert_pem, server_key_pem).
    """
    ca_key = _private_key()
    ca_cert = _validity(
        x509.CertificateBuilder()
        .subject_name(_name("ArikeDB Test CA"))
        .issuer_name(_name("ArikeDB Test CA"))
        .public_key(ca_key.public_key())
        .serial_number(x509.random_serial_number())
        .add_extension(
            x509.BasicConstraints(ca=True, path_length=None), critical=True
        )
    ).sign(ca_key, hashes.SHA256())

    server_key = _private_key()
    server_cert = _validity(
        x509.CertificateBuilder()
        .subject_name(_name("localhost"))
        .issuer_name(ca_cert.subject)
        .public_key(server_key.public_key())
        .serial_number(x509.random_serial_number())
        .add_extension(
            x509.BasicConstraints(ca=False, path_length=None), critical=True
        )
        .add_extension(
            x509.ExtendedKeyUsage([x509.oid.ExtendedKeyUsageOID.SERVER_AUTH]),
            critical=False,
        )
        .add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName("localhost"),
                    x509.IPAddress(ip_address(HOST)),
                ]
            ),
            critical=False,
        )
    ).sign(ca_key, hashes.SHA256())

    return (
        ca_cert.public_bytes(serialization.Encoding.PEM),
        server_cert.public_bytes(serialization.Encoding.PEM),
        server_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ),
    )


@pytest.mark.asyncio
async def test_tls_connection_with_custom_ca(
    fake_service_factory: ServiceFactory, tmp_path
) -> None:
    ca_pem, cert_pem, key_pem = generate_ca_and_server_certificate()
    ca_path = tmp_path / "ca.pem"
    ca_path.write_bytes(ca_pem)

    _, port = await fake_service_factory(
        server_credentials=grpc.ssl_server_credentials([(key_pem, cert_pem)])
    )

    async with await ArikedbClient.connect(
        HOST,
        port,
        use_ssl=True,
        auth_config=ServerCAChannelConfig(
            server_ca_cert_path=str(ca_path),
            server_hostname_override="localhost",
        ),
    ) as client:
        assert client.endpoint.url == f"https://{HOST}:{port}"
        await client.create_collections(["secure"])
        assert await client.list_collections() == [Collection("secure")]


@pytest.mark.asyncio
async def test_tls_connection_with_untrusted_ca_fails(
    fake_service_factory: ServiceFactory, tmp_path
) -> None:
    _, cert_pem, key_pem = generate_ca_and_server_certificate()
    other_ca_pem, _, _ = generate_ca_and_server_certificate()
    ca_path = tmp_path / "other-ca.pem"
    ca_path.write_bytes(other_ca_pem)

    _, port = await fake_service_factory(
        server_credentials=grpc.ssl_server_credentials([(key_pem, cert_pem)])
    )

    with pytest.raises(ArikedbConnectionError):
        await ArikedbClient.connect(
            HOST,
            port,
            use_ssl=True,
            connect_timeout=1.0,
            auth_config=ServerCAChannelConfig(
                server_ca_cert_path=str(ca_path),
                server_hostname_override="localhost",
            ),
        )
