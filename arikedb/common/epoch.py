"""Defines Epoch, the resolution of a timestamp."""

import time
from enum import IntEnum


class Epoch(IntEnum):
    """Resolution tag of a timestamp sent to or read from the service."""

    SECOND = 0
    MILLISECOND = 1
    MICROSECOND = 2
    NANOSECOND = 3

    @property
    def nanoseconds_per_tick(self) -> int:
        """Number of nanoseconds in one unit of this resolution."""
        return _NANOSECONDS_PER_TICK[self]

    def now(self) -> int:
        """Returns the current wall-clock time expressed in this resolution."""
        return time.time_ns() // self.nanoseconds_per_tick

    @classmethod
    def from_wire(cls, code: int) -> "Epoch":
        """Decodes a wire code, falling back to `SECOND` for unknown codes."""
        try:
            return cls(code)
        except ValueError:
            return cls.SECOND


_NANOSECONDS_PER_TICK = {
    Epoch.SECOND: 1_000_000_000,
    Epoch.MILLISECOND: 1_000_000,
    Epoch.MICROSECOND: 1_000,
    Epoch.NANOSECOND: 1,
}
