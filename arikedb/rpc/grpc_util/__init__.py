"""Utilities and helpers for working with gRPC in the ArikeDB client.

This package provides tools for:
- Channel authentication configuration.
- gRPC channel creation (plaintext or TLS).
- Classifying gRPC errors and extracting status codes.
"""

from arikedb.rpc.grpc_util.channel_auth_config import (
    BaseChannelAuthConfig,
    InsecureChannelConfig,
    ServerCAChannelConfig,
)
from arikedb.rpc.grpc_util.grpc_caller import (
    get_grpc_details,
    get_grpc_status_code,
    is_server_unavailable_error,
)
from arikedb.rpc.grpc_util.grpc_channel_factory import GrpcChannelFactory

__all__ = [
    "BaseChannelAuthConfig",
    "InsecureChannelConfig",
    "ServerCAChannelConfig",
    "GrpcChannelFactory",
    "get_grpc_details",
    "get_grpc_status_code",
    "is_server_unavailable_error",
]
