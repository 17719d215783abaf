"""Abstract base class for the factories that open gRPC channels."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

import grpc

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT_SECONDS = 5.0


class GrpcChannelFactory(ABC):
    """
    Opens a `grpc.aio` channel to the first of several addresses that answers.

    Subclasses decide the transport credentials by implementing
    `_create_channel`; readiness waiting and fallback across addresses live
    here.
    """

    def __init__(
        self, timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS
    ) -> None:
        """
        Args:
            timeout: Seconds to wait for each channel to become ready.
        """
        self.timeout = timeout

    @property
    @abstractmethod
    def is_secure(self) -> bool:
        """Whether channels created by this factory use TLS."""

    @abstractmethod
    def _create_channel(self, target: str) -> grpc.aio.Channel:
        """Creates a not yet connected channel to |target| (`host:port`)."""

    async def find_async_channel(
        self,
        addresses: list[str] | str,
        port: int,
    ) -> grpc.aio.Channel | None:
        """Connects to |port| on each address in turn.

        Args:
            addresses: A single host or a list of hosts to try, in order.
            port: The port number to connect to.

        Returns:
            The first channel that became ready within `timeout`, or None if
            none did. Channels that did not become ready are closed.
        """
        address_list = self._as_address_list(addresses)
        transport = "TLS" if self.is_secure else "plaintext"
        logger.info(
            "Connecting over %s to %s on port %d",
            transport,
            address_list,
            port,
        )

        for address in address_list:
            target = f"{address}:{port}"
            channel: grpc.aio.Channel | None = None
            try:
                channel = self._create_channel(target)
                await asyncio.wait_for(
                    channel.channel_ready(), timeout=self.timeout
                )
                logger.info("Connected to %s", target)
                return channel

            except Exception as e:
                logger.warning("Could not connect to %s: %r", target, e)
                if channel is not None:
                    await channel.close()
                if isinstance(e, AssertionError):
                    raise

        logger.warning(
            "No %s channel to %s on port %d became ready",
            transport,
            address_list,
            port,
        )
        return None

    @staticmethod
    def _as_address_list(addresses: list[str] | str) -> list[str]:
        if isinstance(addresses, str):
            return [addresses]
        return list(addresses)
