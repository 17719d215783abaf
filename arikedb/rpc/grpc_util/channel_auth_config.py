"""Defines dataclasses for gRPC channel authentication configurations."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BaseChannelAuthConfig:
    """Base class for gRPC channel authentication configurations."""


@dataclass(frozen=True)
class InsecureChannelConfig(BaseChannelAuthConfig):
    """Plaintext channel, no transport security."""


@dataclass(frozen=True)
class ServerCAChannelConfig(BaseChannelAuthConfig):
    """TLS channel; the client authenticates the server.

    When `server_ca_cert_path` is None the system trust store is used.
    """

    server_ca_cert_path: str | None = field(default=None)
    server_hostname_override: str | None = field(default=None)
