"""Defines VarEvent, one trigger condition of a subscription."""

import dataclasses

from arikedb.common.event_kind import EventKind


@dataclasses.dataclass(frozen=True)
class VarEvent:
    """A trigger condition and its operands.

    All operands are text. Each `EventKind` only reads the operands it needs,
    the rest may be left empty.
    """

    event: EventKind = EventKind.ON_SET
    value: str = ""
    low_limit: str = ""
    high_limit: str = ""
