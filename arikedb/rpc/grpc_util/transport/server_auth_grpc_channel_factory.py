"""Provides ServerAuthGrpcChannelFactory for TLS gRPC channels."""

from __future__ import annotations

from typing import Any

import grpc

from arikedb.rpc.grpc_util.grpc_channel_factory import (
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
    GrpcChannelFactory,
)

_TARGET_NAME_OVERRIDE = "grpc.ssl_target_name_override"


class ServerAuthGrpcChannelFactory(GrpcChannelFactory):
    """
    Opens TLS channels on which the client verifies the server certificate,
    either against a given root CA or against the roots bundled with gRPC.
    """

    def __init__(
        self,
        root_ca_cert_pem: bytes | str | None = None,
        server_hostname_override: str | None = None,
        timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
    ):
        """
        Args:
            root_ca_cert_pem: PEM root certificate(s) to trust. None selects
                the default roots.
            server_hostname_override: Name expected in the server
                certificate, when it differs from the host being dialed.
            timeout: Seconds to wait for each channel to become ready.
        """
        super().__init__(timeout)
        if isinstance(root_ca_cert_pem, str):
            root_ca_cert_pem = root_ca_cert_pem.encode("utf-8")
        self.root_ca_cert_pem: bytes | None = root_ca_cert_pem
        self.server_hostname_override = server_hostname_override

        self.__credentials = grpc.ssl_channel_credentials(
            root_certificates=self.root_ca_cert_pem
        )
        self.__options: list[tuple[str, Any]] = []
        if server_hostname_override:
            self.__options.append(
                (_TARGET_NAME_OVERRIDE, server_hostname_override)
            )

    @property
    def is_secure(self) -> bool:
        return True

    def _create_channel(self, target: str) -> grpc.aio.Channel:
        return grpc.aio.secure_channel(
            target, self.__credentials, options=self.__options or None
        )
