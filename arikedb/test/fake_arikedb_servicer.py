"""In-process stand-in for the ArikeDB service, used by end-to-end tests."""

import asyncio
import collections
import itertools
import logging
from typing import AsyncIterator, Deque, Optional

import grpc

from arikedb.common.epoch import Epoch
from arikedb.common.event_kind import EventKind
from arikedb.common.var_event import VarEvent
from arikedb.proto import (
    ArikedbRPCServicer,
    AuthenticateRequest,
    AuthenticateResponse,
    CollectionMeta,
    CreateCollectionsRequest,
    CreateCollectionsResponse,
    CreateVariablesRequest,
    CreateVariablesResponse,
    DeleteCollectionsRequest,
    DeleteCollectionsResponse,
    DeleteVariablesRequest,
    DeleteVariablesResponse,
    GetVariablesRequest,
    GetVariablesResponse,
    ListCollectionsRequest,
    ListCollectionsResponse,
    ListVariablesRequest,
    ListVariablesResponse,
    SetVariablesRequest,
    SetVariablesResponse,
    StatusCode,
    SubscribeVariablesRequest,
    VarDataPoint,
    VariableMeta,
    add_ArikedbRPCServicer_to_server,
)
from arikedb.rpc import wire_adapter
from arikedb.rpc.session_state import AUTHORIZATION_KEY, REFRESH_TOKEN_KEY

logger = logging.getLogger(__name__)

_OK = StatusCode.Value("OK")
_UNAUTHORIZED = StatusCode.Value("UNAUTHORIZED")

Sample = tuple[int, str]  # (timestamp in nanoseconds, value)


class _StoredVariable:
    def __init__(self, meta: VariableMeta) -> None:
        self.meta = meta
        self.samples: Deque[Sample] = collections.deque(
            maxlen=max(int(meta.buffer_size), 1)
        )


class _Watcher:
    def __init__(
        self, collection: str, names: list[str], events: list[VarEvent]
    ) -> None:
        self.collection = collection
        self.names = set(names)
        self.events = events
        self.queue: "asyncio.Queue[VarDataPoint]" = asyncio.Queue()


def _as_number(value: str) -> Optional[float]:
    try:
        return float(value)
    except ValueError:
        return None


def _equal(lhs: str, rhs: str) -> bool:
    lhs_number, rhs_number = _as_number(lhs), _as_number(rhs)
    if lhs_number is not None and rhs_number is not None:
        return lhs_number == rhs_number
    return lhs == rhs


def _event_matches(
    var_event: VarEvent, previous: Optional[str], current: str
) -> bool:
    kind = var_event.event
    if kind == EventKind.ON_SET:
        return True
    if kind == EventKind.ON_CHANGE:
        return previous is None or not _equal(previous, current)
    if kind == EventKind.ON_VALUE_EQ_VAL:
        return _equal(current, var_event.value)
    if kind == EventKind.ON_VALUE_DIFF_VAL:
        return not _equal(current, var_event.value)
    if kind == EventKind.ON_VALUE_REACH_VAL:
        return _equal(current, var_event.value) and (
            previous is None or not _equal(previous, var_event.value)
        )
    if kind == EventKind.ON_VALUE_LEAVE_VAL:
        return (
            previous is not None
            and _equal(previous, var_event.value)
            and not _equal(current, var_event.value)
        )

    cur = _as_number(current)
    prev = _as_number(previous) if previous is not None else None
    if cur is None:
        return False
    if kind == EventKind.ON_RISE:
        return prev is not None and cur > prev
    if kind == EventKind.ON_FALL:
        return prev is not None and cur < prev

    low = _as_number(var_event.low_limit)
    high = _as_number(var_event.high_limit)
    if kind == EventKind.ON_OVER_HIGH_LIMIT:
        return high is not None and cur > high
    if kind == EventKind.ON_UNDER_LOW_LIMIT:
        return low is not None and cur < low
    if kind == EventKind.ON_CROSS_HIGH_LIMIT:
        return (
            high is not None
            and prev is not None
            and (prev > high) != (cur > high)
        )
    if kind == EventKind.ON_CROSS_LOW_LIMIT:
        return (
            low is not None
            and prev is not None
            and (prev < low) != (cur < low)
        )

    if low is None or high is None:
        return False
    inside = low <= cur <= high
    was_inside = prev is not None and low <= prev <= high
    if kind == EventKind.ON_VALUE_IN_RANGE:
        return inside
    if kind == EventKind.ON_VALUE_OUT_RANGE:
        return not inside
    if kind == EventKind.ON_VALUE_REACH_RANGE:
        return inside and not was_inside
    if kind == EventKind.ON_VALUE_LEAVE_RANGE:
        return was_inside and not inside
    return False


def _derive(samples: list[Sample], order: int) -> Optional[Sample]:
    """N-th finite difference of the samples, per second."""
    series: list[tuple[int, float]] = []
    for timestamp, value in samples:
        number = _as_number(value)
        if number is None:
            return None
        series.append((timestamp, number))

    for _ in range(order):
        if len(series) < 2:
            return None
        series = [
            (t1, (v1 - v0) / ((t1 - t0) / 1e9 or 1.0))
            for (t0, v0), (t1, v1) in zip(series, series[1:])
        ]
    if not series:
        return None
    timestamp, value = series[-1]
    return timestamp, repr(value)


class FakeArikedbServicer(ArikedbRPCServicer):
    """
    Keeps collections, variables and samples in memory and evaluates
    subscription events on every write.

    Args:
        users: Accepted username/password pairs.
        require_auth: Reject stamped-less or unknown tokens with
            UNAUTHENTICATED when True.
        rotate_tokens: Issue a new token as `refresh_token` metadata on
            every authorized call when True.
        refresh_in_trailers: Send rotated tokens as trailing instead of
            initial metadata (unary calls only).
    """

    def __init__(
        self,
        users: Optional[dict[str, str]] = None,
        require_auth: bool = False,
        rotate_tokens: bool = False,
        refresh_in_trailers: bool = False,
    ) -> None:
        self.users = users if users is not None else {"admin": "admin"}
        self.require_auth = require_auth
        self.rotate_tokens = rotate_tokens
        self.refresh_in_trailers = refresh_in_trailers

        self.collections: dict[str, dict[str, _StoredVariable]] = {}
        self.valid_tokens: set[str] = set()
        self.issued_tokens: list[str] = []
        # (method, authorization header or None) per received call.
        self.seen_authorization: list[tuple[str, Optional[str]]] = []

        self.__token_ids = itertools.count(1)
        self.__watchers: list[_Watcher] = []

    @property
    def watcher_count(self) -> int:
        return len(self.__watchers)

    def __new_token(self) -> str:
        token = f"token-{next(self.__token_ids)}"
        self.valid_tokens.add(token)
        self.issued_tokens.append(token)
        return token

    async def __authorize(
        self,
        method: str,
        context: grpc.aio.ServicerContext,
        streaming: bool = False,
    ) -> Optional[tuple[tuple[str, str], ...]]:
        """Checks the token and rotates it.

        Streaming calls get the rotated token back instead, to send once the
        request is validated.
        """
        token: Optional[str] = None
        for key, value in context.invocation_metadata() or ():
            if key == AUTHORIZATION_KEY:
                token = value
        self.seen_authorization.append((method, token))

        if self.require_auth and token not in self.valid_tokens:
            await context.abort(
                grpc.StatusCode.UNAUTHENTICATED, "Missing or invalid token"
            )

        refresh: Optional[tuple[tuple[str, str], ...]] = None
        if self.rotate_tokens and token is not None:
            refresh = ((REFRESH_TOKEN_KEY, self.__new_token()),)

        if streaming:
            return refresh
        if refresh is not None and self.refresh_in_trailers:
            context.set_trailing_metadata(refresh)
        else:
            await context.send_initial_metadata(refresh or ())
        return None

    async def __collection(
        self, name: str, context: grpc.aio.ServicerContext
    ) -> dict[str, _StoredVariable]:
        if name not in self.collections:
            await context.abort(
                grpc.StatusCode.NOT_FOUND, f"Collection {name} not found"
            )
        return self.collections[name]

    async def Authenticate(
        self,
        request: AuthenticateRequest,
        context: grpc.aio.ServicerContext,
    ) -> AuthenticateResponse:
        if self.users.get(request.username) != request.password:
            return AuthenticateResponse(status=_UNAUTHORIZED)
        return AuthenticateResponse(status=_OK, token=self.__new_token())

    async def ListCollections(
        self,
        request: ListCollectionsRequest,
        context: grpc.aio.ServicerContext,
    ) -> ListCollectionsResponse:
        await self.__authorize("ListCollections", context)
        return ListCollectionsResponse(
            status=_OK,
            collections=[CollectionMeta(name=n) for n in self.collections],
        )

    async def CreateCollections(
        self,
        request: CreateCollectionsRequest,
        context: grpc.aio.ServicerContext,
    ) -> CreateCollectionsResponse:
        await self.__authorize("CreateCollections", context)
        for meta in request.collections:
            self.collections.setdefault(meta.name, {})
        return CreateCollectionsResponse(status=_OK)

    async def DeleteCollections(
        self,
        request: DeleteCollectionsRequest,
        context: grpc.aio.ServicerContext,
    ) -> DeleteCollectionsResponse:
        await self.__authorize("DeleteCollections", context)
        for name in request.names:
            self.collections.pop(name, None)
        return DeleteCollectionsResponse(status=_OK)

    async def ListVariables(
        self,
        request: ListVariablesRequest,
        context: grpc.aio.ServicerContext,
    ) -> ListVariablesResponse:
        await self.__authorize("ListVariables", context)
        variables = await self.__collection(request.collection, context)
        return ListVariablesResponse(
            status=_OK,
            variables=[stored.meta for stored in variables.values()],
        )

    async def CreateVariables(
        self,
        request: CreateVariablesRequest,
        context: grpc.aio.ServicerContext,
    ) -> CreateVariablesResponse:
        await self.__authorize("CreateVariables", context)
        variables = await self.__collection(request.collection, context)
        for meta in request.variables:
            if meta.name not in variables:
                stored_meta = VariableMeta()
                stored_meta.CopyFrom(meta)
                variables[meta.name] = _StoredVariable(stored_meta)
        return CreateVariablesResponse(status=_OK)

    async def DeleteVariables(
        self,
        request: DeleteVariablesRequest,
        context: grpc.aio.ServicerContext,
    ) -> DeleteVariablesResponse:
        await self.__authorize("DeleteVariables", context)
        variables = await self.__collection(request.collection, context)
        for name in request.names:
            variables.pop(name, None)
        return DeleteVariablesResponse(status=_OK)

    async def SetVariables(
        self,
        request: SetVariablesRequest,
        context: grpc.aio.ServicerContext,
    ) -> SetVariablesResponse:
        await self.__authorize("SetVariables", context)
        if len(request.names) != len(request.values):
            await context.abort(
                grpc.StatusCode.INVALID_ARGUMENT,
                f"names and values length mismatch "
                f"({len(request.names)} != {len(request.values)})",
            )
        variables = await self.__collection(request.collection, context)
        for name in request.names:
            if name not in variables:
                await context.abort(
                    grpc.StatusCode.NOT_FOUND, f"Variable {name} not found"
                )

        epoch = Epoch.from_wire(request.epoch)
        timestamp_ns = int(request.timestamp) * epoch.nanoseconds_per_tick
        for name, value in zip(request.names, request.values):
            stored = variables[name]
            previous = stored.samples[-1][1] if stored.samples else None
            stored.samples.append((timestamp_ns, value))
            point = VarDataPoint(
                name=name,
                vtype=stored.meta.vtype,
                timestamp=request.timestamp,
                epoch=request.epoch,
                value=value,
            )
            self.__notify(request.collection, point, previous)
        return SetVariablesResponse(status=_OK)

    def __notify(
        self, collection: str, point: VarDataPoint, previous: Optional[str]
    ) -> None:
        for watcher in self.__watchers:
            if watcher.collection != collection:
                continue
            if point.name not in watcher.names:
                continue
            if any(
                _event_matches(var_event, previous, point.value)
                for var_event in watcher.events
            ):
                watcher.queue.put_nowait(point)

    async def GetVariables(
        self,
        request: GetVariablesRequest,
        context: grpc.aio.ServicerContext,
    ) -> GetVariablesResponse:
        await self.__authorize("GetVariables", context)
        variables = await self.__collection(request.collection, context)
        epoch = Epoch.from_wire(request.epoch)
        points = []
        for name in request.names:
            stored = variables.get(name)
            if stored is None or not stored.samples:
                continue
            sample: Optional[Sample] = stored.samples[-1]
            if request.derived_order > 0:
                sample = _derive(list(stored.samples), request.derived_order)
            if sample is None:
                continue
            timestamp_ns, value = sample
            points.append(
                VarDataPoint(
                    name=name,
                    vtype=stored.meta.vtype,
                    timestamp=str(timestamp_ns // epoch.nanoseconds_per_tick),
                    epoch=request.epoch,
                    value=value,
                )
            )
        return GetVariablesResponse(status=_OK, points=points)

    async def SubscribeVariables(
        self,
        request: SubscribeVariablesRequest,
        context: grpc.aio.ServicerContext,
    ) -> AsyncIterator[VarDataPoint]:
        refresh = await self.__authorize(
            "SubscribeVariables", context, streaming=True
        )
        await self.__collection(request.collection, context)
        watcher = _Watcher(
            request.collection,
            list(request.names),
            [wire_adapter.from_variable_event(e) for e in request.events],
        )
        # Registered before the headers go out, so writes that follow the
        # client's handshake are seen.
        self.__watchers.append(watcher)
        try:
            await context.send_initial_metadata(refresh or ())
            while True:
                point = await watcher.queue.get()
                if point is _END_OF_STREAM:
                    return
                yield point
        finally:
            self.__watchers.remove(watcher)
            logger.info("Subscription on %s ended.", request.collection)

    def close_subscriptions(self) -> None:
        """Wakes every open stream with a poison pill that ends it."""
        for watcher in list(self.__watchers):
            watcher.queue.put_nowait(_END_OF_STREAM)


_END_OF_STREAM = VarDataPoint()


async def start_fake_server(
    servicer: FakeArikedbServicer,
    address: str = "127.0.0.1",
    server_credentials: Optional[grpc.ServerCredentials] = None,
) -> tuple[grpc.aio.Server, int]:
    """Starts a `grpc.aio` server hosting |servicer| on an ephemeral port.

    Returns:
        The running server and the port it is bound to.
    """
    server = grpc.aio.server()
    add_ArikedbRPCServicer_to_server(servicer, server)
    if server_credentials is None:
        port = server.add_insecure_port(f"{address}:0")
    else:
        port = server.add_secure_port(f"{address}:0", server_credentials)
    await server.start()
    logger.info("Fake ArikeDB server running on %s:%d", address, port)
    return server, port
