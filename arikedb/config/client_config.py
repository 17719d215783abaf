"""Configuration for connecting an ArikedbClient."""

from dataclasses import dataclass
from typing import Optional

from arikedb.rpc.endpoint import Endpoint
from arikedb.rpc.grpc_util.channel_auth_config import (
    BaseChannelAuthConfig,
    InsecureChannelConfig,
    ServerCAChannelConfig,
)
from arikedb.rpc.grpc_util.grpc_channel_factory import (
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6923


@dataclass(frozen=True)
class ArikedbClientConfig:
    """Where and how to connect to an ArikeDB service.

    `use_ssl` alone selects plaintext or TLS with the system trust store.
    `auth_config` refines the TLS setup (custom CA, hostname override) and,
    when given, must agree with `use_ssl`.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    use_ssl: bool = False

    # Seconds to wait for the channel to become ready in connect().
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS

    auth_config: Optional[BaseChannelAuthConfig] = None

    def __post_init__(self) -> None:
        if self.connect_timeout <= 0:
            raise ValueError(
                "connect_timeout must be positive, "
                f"got {self.connect_timeout}."
            )
        if self.auth_config is None:
            return
        if self.use_ssl and isinstance(
            self.auth_config, InsecureChannelConfig
        ):
            raise ValueError(
                "use_ssl=True conflicts with InsecureChannelConfig."
            )
        if not self.use_ssl and not isinstance(
            self.auth_config, InsecureChannelConfig
        ):
            raise ValueError(
                "use_ssl=False conflicts with "
                f"{type(self.auth_config).__name__}."
            )

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint(self.host, self.port, self.use_ssl)

    @property
    def effective_auth_config(self) -> BaseChannelAuthConfig:
        """The channel auth config implied by `use_ssl` and `auth_config`."""
        if self.auth_config is not None:
            return self.auth_config
        if self.use_ssl:
            return ServerCAChannelConfig()
        return InsecureChannelConfig()
