"""Provides InsecureGrpcChannelFactory for plaintext gRPC channels."""

import grpc

from arikedb.rpc.grpc_util.grpc_channel_factory import GrpcChannelFactory


class InsecureGrpcChannelFactory(GrpcChannelFactory):
    """Opens plaintext channels, without any transport security."""

    @property
    def is_secure(self) -> bool:
        return False

    def _create_channel(self, target: str) -> grpc.aio.Channel:
        return grpc.aio.insecure_channel(target)
