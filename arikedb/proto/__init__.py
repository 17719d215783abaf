"""Message and service definitions for the ArikeDB RPC interface.

``arikedb.proto`` in this directory is the interface definition shared with the
service. It is compiled on first import with the runtime protoc shipped in
``grpcio-tools``, which registers ``arikedb.proto.arikedb_pb2`` and
``arikedb.proto.arikedb_pb2_grpc`` as regular modules.
"""

import grpc

arikedb_pb2, arikedb_pb2_grpc = grpc.protos_and_services(
    "arikedb/proto/arikedb.proto"
)

# pylint: disable=wrong-import-position,no-name-in-module
from arikedb.proto.arikedb_pb2 import (  # noqa: E402
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
    VariableEvent,
    VariableMeta,
)
from arikedb.proto.arikedb_pb2_grpc import (  # noqa: E402
    ArikedbRPCServicer,
    ArikedbRPCStub,
    add_ArikedbRPCServicer_to_server,
)

__all__ = [
    "arikedb_pb2",
    "arikedb_pb2_grpc",
    "AuthenticateRequest",
    "AuthenticateResponse",
    "CollectionMeta",
    "CreateCollectionsRequest",
    "CreateCollectionsResponse",
    "CreateVariablesRequest",
    "CreateVariablesResponse",
    "DeleteCollectionsRequest",
    "DeleteCollectionsResponse",
    "DeleteVariablesRequest",
    "DeleteVariablesResponse",
    "GetVariablesRequest",
    "GetVariablesResponse",
    "ListCollectionsRequest",
    "ListCollectionsResponse",
    "ListVariablesRequest",
    "ListVariablesResponse",
    "SetVariablesRequest",
    "SetVariablesResponse",
    "StatusCode",
    "SubscribeVariablesRequest",
    "VarDataPoint",
    "VariableEvent",
    "VariableMeta",
    "ArikedbRPCServicer",
    "ArikedbRPCStub",
    "add_ArikedbRPCServicer_to_server",
]
