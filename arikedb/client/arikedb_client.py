"""Provides ArikedbClient, the asyncio client of the ArikeDB service."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from types import TracebackType
from typing import Any, Optional, Type

import grpc

from arikedb.common.collection import Collection
from arikedb.common.data_point import DataPoint
from arikedb.common.epoch import Epoch
from arikedb.common.var_event import VarEvent
from arikedb.common.variable import Variable
from arikedb.client.subscription import DataPointHandler, Subscription
from arikedb.config.client_config import ArikedbClientConfig
from arikedb.errors import (
    ArikedbConnectionError,
    ArikedbRpcError,
    AuthenticationError,
    UnauthorizedError,
)
from arikedb.proto import (
    ArikedbRPCStub,
    AuthenticateRequest,
    CreateCollectionsRequest,
    CreateVariablesRequest,
    DeleteCollectionsRequest,
    DeleteVariablesRequest,
    GetVariablesRequest,
    ListCollectionsRequest,
    ListVariablesRequest,
    SetVariablesRequest,
    StatusCode,
    SubscribeVariablesRequest,
)
from arikedb.rpc import wire_adapter
from arikedb.rpc.channel_factory_selector import ChannelFactorySelector
from arikedb.rpc.endpoint import Endpoint
from arikedb.rpc.grpc_util.channel_auth_config import BaseChannelAuthConfig
from arikedb.rpc.grpc_util.grpc_caller import (
    get_grpc_details,
    get_grpc_status_code,
)
from arikedb.rpc.grpc_util.grpc_channel_factory import (
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
)
from arikedb.rpc.session_state import SessionState

logger = logging.getLogger(__name__)

_STATUS_OK = StatusCode.Value("OK")
_STATUS_UNAUTHORIZED = StatusCode.Value("UNAUTHORIZED")


def _status_name(code: int) -> str:
    try:
        return StatusCode.Name(code)
    except ValueError:
        return f"UNKNOWN({code})"


def _as_name_list(names: Iterable[str] | str) -> list[str]:
    if isinstance(names, str):
        return [names]
    return list(names)


def _rpc_error(method: str, error: grpc.RpcError) -> ArikedbRpcError:
    return ArikedbRpcError(
        method, get_grpc_status_code(error), get_grpc_details(error)
    )


class ArikedbClient:
    """
    Asyncio client for one ArikeDB service.

    Owns one gRPC channel and the session token used on it. Every call other
    than `authenticate()` attaches the token currently held (if any) as
    `authorization` metadata and, once the response arrives, adopts the token
    the service may send back as `refresh_token` metadata.

    Calls are not retried. Any failure while a call is in flight is raised as
    `ArikedbRpcError`.
    """

    def __init__(
        self,
        channel: grpc.aio.Channel,
        endpoint: Optional[Endpoint] = None,
        session: Optional[SessionState] = None,
    ) -> None:
        """
        Args:
            channel: A `grpc.aio` channel to the service. The client takes
                ownership and closes it in `close()`.
            endpoint: Where `channel` points to, used for logging.
            session: Session holder; a fresh unauthenticated one by default.
        """
        self.__channel = channel
        self.__stub = ArikedbRPCStub(channel)
        self.__endpoint = endpoint
        self.__session = session if session is not None else SessionState()
        self.__subscriptions: set[Subscription] = set()

    @classmethod
    async def connect(
        cls,
        host: str,
        port: int,
        use_ssl: bool = False,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        auth_config: Optional[BaseChannelAuthConfig] = None,
    ) -> "ArikedbClient":
        """Connects to the service at |host|:|port|.

        Args:
            host: Hostname or IP address of the service.
            port: TCP port of the service.
            use_ssl: Whether to use TLS.
            connect_timeout: Seconds to wait for the channel to be ready.
            auth_config: Optional TLS refinements, see `ArikedbClientConfig`.

        Returns:
            A connected, unauthenticated client.

        Raises:
            ArikedbConnectionError: If the endpoint is malformed or the
                channel did not become ready in time.
        """
        try:
            config = ArikedbClientConfig(
                host=host,
                port=port,
                use_ssl=use_ssl,
                connect_timeout=connect_timeout,
                auth_config=auth_config,
            )
        except ValueError as e:
            raise ArikedbConnectionError(str(e)) from e
        return await cls.from_config(config)

    @classmethod
    async def from_config(cls, config: ArikedbClientConfig) -> "ArikedbClient":
        """Connects using an `ArikedbClientConfig`. See `connect()`."""
        endpoint = config.endpoint
        try:
            factory = ChannelFactorySelector().for_config(config)
        except (OSError, ValueError) as e:
            raise ArikedbConnectionError(
                f"Invalid channel configuration for {endpoint.url}: {e}"
            ) from e

        channel = await factory.find_async_channel(
            endpoint.host, endpoint.port
        )
        if channel is None:
            raise ArikedbConnectionError(
                f"Could not connect to ArikeDB at {endpoint.url}"
            )

        logger.info("Connected to ArikeDB at %s", endpoint.url)
        return cls(channel, endpoint)

    @property
    def endpoint(self) -> Optional[Endpoint]:
        return self.__endpoint

    @property
    def session(self) -> SessionState:
        return self.__session

    @property
    def is_authenticated(self) -> bool:
        return self.__session.is_authenticated

    @property
    def subscriptions(self) -> frozenset[Subscription]:
        """Subscriptions started by this client that are still running."""
        return frozenset(self.__subscriptions)

    async def __unary(self, method: str, request: Any) -> Any:
        """Runs one stamped unary call: stamp, dispatch, absorb.

        Args:
            method: Name of the RPC on the stub, e.g. "ListCollections".
            request: The request message.

        Returns:
            The response message.

        Raises:
            ArikedbRpcError: If the call failed.
        """
        rpc = getattr(self.__stub, method)
        metadata = self.__session.stamp()
        logger.debug("Calling %s (stamped=%s)", method, bool(metadata))
        try:
            call = rpc(request, metadata=metadata or None)
            response = await call
            self.__session.absorb(
                await call.initial_metadata(), await call.trailing_metadata()
            )
        except grpc.RpcError as e:
            raise _rpc_error(method, e) from e
        return response

    def __check_status(self, method: str, status: int) -> None:
        # Body status of mutating calls is informational only; transport
        # status is what decides success.
        if status != _STATUS_OK:
            logger.warning(
                "%s returned status %s", method, _status_name(status)
            )

    async def list_collections(self) -> list[Collection]:
        """Returns all collections known to the service."""
        response = await self.__unary(
            "ListCollections", ListCollectionsRequest()
        )
        return wire_adapter.from_collection_metas(response.collections)

    async def create_collections(self, names: Iterable[str] | str) -> None:
        """Creates one collection per name."""
        request = CreateCollectionsRequest(
            collections=wire_adapter.to_collection_metas(_as_name_list(names))
        )
        response = await self.__unary("CreateCollections", request)
        self.__check_status("CreateCollections", response.status)

    async def delete_collections(self, names: Iterable[str] | str) -> None:
        """Deletes the named collections."""
        request = DeleteCollectionsRequest(names=_as_name_list(names))
        response = await self.__unary("DeleteCollections", request)
        self.__check_status("DeleteCollections", response.status)

    async def list_variables(self, collection: str) -> list[Variable]:
        """Returns all variables of |collection|."""
        response = await self.__unary(
            "ListVariables", ListVariablesRequest(collection=collection)
        )
        return wire_adapter.from_variable_metas(response.variables)

    async def create_variables(
        self, collection: str, variables: Iterable[Variable]
    ) -> None:
        """Creates |variables| inside |collection|."""
        request = CreateVariablesRequest(
            collection=collection,
            variables=wire_adapter.to_variable_metas(variables),
        )
        response = await self.__unary("CreateVariables", request)
        self.__check_status("CreateVariables", response.status)

    async def delete_variables(
        self, collection: str, names: Iterable[str] | str
    ) -> None:
        """Deletes the named variables from |collection|."""
        request = DeleteVariablesRequest(
            collection=collection, names=_as_name_list(names)
        )
        response = await self.__unary("DeleteVariables", request)
        self.__check_status("DeleteVariables", response.status)

    async def set_variables(
        self,
        collection: str,
        names: Sequence[str],
        timestamp: Optional[int],
        values: Sequence[str],
        epoch: Epoch = Epoch.NANOSECOND,
    ) -> None:
        """Writes one value per variable, all at the same timestamp.

        |names| and |values| are paired by position. Their lengths are not
        checked here: the service rejects mismatched requests and the call
        then fails with `ArikedbRpcError`.

        Args:
            collection: Collection holding the variables.
            names: Variables to write.
            timestamp: Time of the sample, in |epoch| units. None means now.
            values: Values, as text, one per name.
            epoch: Resolution of |timestamp|.

        Raises:
            TypeError: If |values| is a single string rather than a
                sequence of them.
        """
        if isinstance(values, str):
            raise TypeError("values must be a sequence of str, not a str.")
        if timestamp is None:
            timestamp = epoch.now()
        request = SetVariablesRequest(
            collection=collection,
            names=_as_name_list(names),
            timestamp=wire_adapter.timestamp_to_wire(timestamp),
            values=list(values),
            epoch=wire_adapter.epoch_to_wire(epoch),
        )
        response = await self.__unary("SetVariables", request)
        self.__check_status("SetVariables", response.status)

    async def get_variables(
        self,
        collection: str,
        names: Sequence[str],
        derived_order: int = 0,
        epoch: Epoch = Epoch.NANOSECOND,
    ) -> list[DataPoint]:
        """Reads the latest value (or a derivative of it) of each variable.

        Args:
            collection: Collection holding the variables.
            names: Variables to read.
            derived_order: 0 for the raw value, N for the N-th derivative.
                Computed by the service.
            epoch: Resolution in which timestamps are returned.

        Returns:
            One `DataPoint` per variable the service reported.
        """
        if derived_order < 0:
            raise ValueError(
                f"derived_order must not be negative, got {derived_order}."
            )
        request = GetVariablesRequest(
            collection=collection,
            names=_as_name_list(names),
            derived_order=derived_order,
            epoch=wire_adapter.epoch_to_wire(epoch),
        )
        response = await self.__unary("GetVariables", request)
        return wire_adapter.from_data_points(response.points)

    async def subscribe_variables(
        self,
        collection: str,
        names: Sequence[str],
        events: Iterable[VarEvent],
        handler: DataPointHandler,
    ) -> Subscription:
        """Subscribes to events on variables of |collection|.

        Returns once the service accepted the subscription. From then on a
        background task calls |handler| with every `DataPoint` the service
        sends, one at a time, until the stream ends or the returned handle is
        cancelled.

        Args:
            collection: Collection holding the variables.
            names: Variables to watch.
            events: Conditions the service evaluates for each variable.
            handler: Called once per data point; may be a coroutine function.

        Returns:
            The `Subscription` handle.

        Raises:
            ArikedbRpcError: If the service rejected the subscription.
        """
        name_list = _as_name_list(names)
        request = SubscribeVariablesRequest(
            collection=collection,
            names=name_list,
            events=wire_adapter.to_variable_events(events),
        )
        metadata = self.__session.stamp()
        call = self.__stub.SubscribeVariables(
            request, metadata=metadata or None
        )
        subscription = Subscription(
            call, handler, description=f"{collection}[{','.join(name_list)}]"
        )
        try:
            await subscription._establish(self.__session)
        except grpc.RpcError as e:
            raise _rpc_error("SubscribeVariables", e) from e

        self.__subscriptions.add(subscription)
        assert subscription.task is not None
        subscription.task.add_done_callback(
            lambda _: self.__subscriptions.discard(subscription)
        )
        return subscription

    async def authenticate(self, username: str, password: str) -> None:
        """Logs in and keeps the returned session token.

        This call carries no token and ignores response metadata.

        Raises:
            UnauthorizedError: If the credentials were rejected.
            AuthenticationError: If the service reported any other status.
            ArikedbRpcError: If the call itself failed.
        """
        request = AuthenticateRequest(username=username, password=password)
        try:
            response = await self.__stub.Authenticate(request)
        except grpc.RpcError as e:
            raise _rpc_error("Authenticate", e) from e

        if response.status == _STATUS_OK:
            self.__session.set_token(response.token)
            logger.info("Authenticated as %s", username)
            return

        if response.status == _STATUS_UNAUTHORIZED:
            raise UnauthorizedError(f"Unauthorized user {username!r}")

        raise AuthenticationError(
            "Authentication failed with status "
            f"{_status_name(response.status)}"
        )

    def logout(self) -> None:
        """Forgets the session token locally; nothing is sent."""
        self.__session.clear()

    async def close(self) -> None:
        """Stops all subscriptions and closes the channel."""
        for subscription in list(self.__subscriptions):
            await subscription.stop()
        self.__subscriptions.clear()
        await self.__channel.close()
        logger.info("Closed connection to %s", self.__endpoint)

    async def __aenter__(self) -> "ArikedbClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        await self.close()


async def connect(
    host: str,
    port: int,
    use_ssl: bool = False,
    *,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
    auth_config: Optional[BaseChannelAuthConfig] = None,
) -> ArikedbClient:
    """Connects to an ArikeDB service. See `ArikedbClient.connect()`."""
    return await ArikedbClient.connect(
        host,
        port,
        use_ssl,
        connect_timeout=connect_timeout,
        auth_config=auth_config,
    )
