"""Asyncio client for the ArikeDB time-series service.

Manage collections and typed variables, write and read their values, and
subscribe to value-change events over gRPC::

    client = await arikedb.connect("127.0.0.1", 6923)
    await client.authenticate("admin", "admin")
    await client.create_collections(["plant"])
"""

from arikedb.client.arikedb_client import ArikedbClient, connect
from arikedb.client.subscription import Subscription, SubscriptionState
from arikedb.common import (
    Collection,
    DataPoint,
    Epoch,
    EventKind,
    VarEvent,
    Variable,
    VariableType,
)
from arikedb.config.client_config import ArikedbClientConfig
from arikedb.errors import (
    ArikedbConnectionError,
    ArikedbError,
    ArikedbRpcError,
    AuthenticationError,
    UnauthorizedError,
)
from arikedb.rpc.grpc_util.channel_auth_config import (
    InsecureChannelConfig,
    ServerCAChannelConfig,
)

__all__ = [
    "ArikedbClient",
    "ArikedbClientConfig",
    "connect",
    "Subscription",
    "SubscriptionState",
    "Collection",
    "DataPoint",
    "Epoch",
    "EventKind",
    "VarEvent",
    "Variable",
    "VariableType",
    "ArikedbError",
    "ArikedbConnectionError",
    "ArikedbRpcError",
    "AuthenticationError",
    "UnauthorizedError",
    "InsecureChannelConfig",
    "ServerCAChannelConfig",
]
