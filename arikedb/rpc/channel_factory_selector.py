"""Selects the gRPC channel factory matching a client configuration."""

import logging
from typing import Optional

from arikedb.config.client_config import ArikedbClientConfig
from arikedb.rpc.grpc_util.channel_auth_config import (
    BaseChannelAuthConfig,
    InsecureChannelConfig,
    ServerCAChannelConfig,
)
from arikedb.rpc.grpc_util.grpc_channel_factory import (
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
    GrpcChannelFactory,
)
from arikedb.rpc.grpc_util.transport.insecure_grpc_channel_factory import (
    InsecureGrpcChannelFactory,
)
from arikedb.rpc.grpc_util.transport.server_auth_grpc_channel_factory import (
    ServerAuthGrpcChannelFactory,
)

logger = logging.getLogger(__name__)


# pylint: disable=too-few-public-methods
class ChannelFactorySelector:
    """Maps channel auth configs onto GrpcChannelFactory instances."""

    def for_config(self, config: ArikedbClientConfig) -> GrpcChannelFactory:
        """Returns the factory for |config|'s transport and timeout."""
        return self.create_factory(
            config.effective_auth_config, timeout=config.connect_timeout
        )

    def create_factory(
        self,
        auth_config: Optional[BaseChannelAuthConfig],
        timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
    ) -> GrpcChannelFactory:
        """
        Args:
            auth_config: How to secure the channel. None means plaintext.
            timeout: Seconds the factory waits for a channel to be ready.

        Raises:
            ValueError: If the config type is not supported, or a configured
                certificate file is empty.
            OSError: If a configured certificate file cannot be read.
        """
        if auth_config is None or isinstance(
            auth_config, InsecureChannelConfig
        ):
            logger.info("Using plaintext channels.")
            return InsecureGrpcChannelFactory(timeout=timeout)

        if isinstance(auth_config, ServerCAChannelConfig):
            return self.__server_auth_factory(auth_config, timeout)

        raise ValueError(
            f"Unsupported channel auth config: {type(auth_config).__name__}"
        )

    def __server_auth_factory(
        self, auth_config: ServerCAChannelConfig, timeout: float
    ) -> GrpcChannelFactory:
        ca_path = auth_config.server_ca_cert_path
        root_ca_pem: Optional[bytes] = None
        if ca_path is not None:
            root_ca_pem = self._read_certificate(ca_path)
            if not root_ca_pem:
                raise ValueError(f"Certificate file {ca_path} is empty.")

        logger.info(
            "Using TLS channels trusting %s.", ca_path or "the default roots"
        )
        return ServerAuthGrpcChannelFactory(
            root_ca_cert_pem=root_ca_pem,
            server_hostname_override=auth_config.server_hostname_override,
            timeout=timeout,
        )

    def _read_certificate(self, path: str) -> bytes:
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            logger.error("Cannot read certificate file %s: %s", path, e)
            raise
