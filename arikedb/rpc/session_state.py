"""Provides SessionState, the holder of a client's authentication token."""

import logging
import threading
from collections.abc import Iterable
from typing import Optional

logger = logging.getLogger(__name__)

AUTHORIZATION_KEY = "authorization"
REFRESH_TOKEN_KEY = "refresh_token"

MetadataPairs = list[tuple[str, str]]


class SessionState:
    """
    Holds the session token of one client and moves it on and off the wire.

    `stamp()` attaches the token held at call time to outgoing metadata and
    `absorb()` picks up a rotated token from response metadata. Access to the
    token goes through a lock, so each read or write is atomic; calls racing
    each other still resolve as last-writer-wins.
    """

    def __init__(self, token: Optional[str] = None) -> None:
        self.__token: Optional[str] = token
        self.__lock = threading.Lock()

    @property
    def token(self) -> Optional[str]:
        """The token currently held, or None before authentication."""
        with self.__lock:
            return self.__token

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def set_token(self, token: str) -> None:
        """Replaces the held token with |token|."""
        with self.__lock:
            self.__token = token
        logger.debug("Session token set.")

    def clear(self) -> None:
        """Forgets the held token, returning to the unauthenticated state."""
        with self.__lock:
            self.__token = None

    def stamp(self, metadata: Optional[MetadataPairs] = None) -> MetadataPairs:
        """Returns |metadata| with the token appended, if one is held.

        Any existing `authorization` entry is replaced. Without a token the
        metadata is returned unchanged.

        Args:
            metadata: Outgoing metadata pairs, or None for none.

        Returns:
            A new list of metadata pairs.
        """
        stamped: MetadataPairs = [
            (key, value)
            for key, value in (metadata or [])
            if key != AUTHORIZATION_KEY
        ]
        token = self.token
        if token is not None:
            stamped.append((AUTHORIZATION_KEY, token))
        return stamped

    def absorb(
        self,
        *metadata_sources: Optional[Iterable[tuple[str, object]]],
    ) -> bool:
        """Takes a rotated token from response metadata.

        Sources are scanned in order (initial metadata, then trailing
        metadata) and the last `refresh_token` value found wins. When none
        carries one, the held token is left unchanged.

        Args:
            *metadata_sources: Response metadata, each either a
                `grpc.aio.Metadata`, a sequence of pairs, or None.

        Returns:
            True if the held token was replaced.
        """
        refreshed: Optional[str] = None
        for source in metadata_sources:
            if source is None:
                continue
            for key, value in source:
                if key != REFRESH_TOKEN_KEY:
                    continue
                if isinstance(value, bytes):
                    value = value.decode("ascii")
                refreshed = str(value)

        if refreshed is None:
            return False

        with self.__lock:
            self.__token = refreshed
        logger.debug("Session token rotated by the service.")
        return True
