"""Provides Endpoint, the address of an ArikeDB service."""

import dataclasses

from arikedb.errors import ArikedbConnectionError

_MAX_PORT = 65535


@dataclasses.dataclass(frozen=True)
class Endpoint:
    """Host, port and transport security of a service endpoint."""

    host: str
    port: int
    use_ssl: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.host, str) or not self.host.strip():
            raise ArikedbConnectionError(
                f"Invalid endpoint host: {self.host!r}"
            )
        if any(c in self.host for c in "/ \t\n"):
            raise ArikedbConnectionError(
                f"Invalid endpoint host: {self.host!r}"
            )
        if (
            isinstance(self.port, bool)
            or not isinstance(self.port, int)
            or not 0 < self.port <= _MAX_PORT
        ):
            raise ArikedbConnectionError(
                f"Invalid endpoint port: {self.port!r}"
            )

    @property
    def scheme(self) -> str:
        return "https" if self.use_ssl else "http"

    @property
    def url(self) -> str:
        """`scheme://host:port`, the scheme following `use_ssl` only."""
        return f"{self.scheme}://{self.host}:{self.port}"

    @property
    def target(self) -> str:
        """The `host:port` target string gRPC dials."""
        return f"{self.host}:{self.port}"
