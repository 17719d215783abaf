"""Defines EventKind, the trigger conditions a subscription can watch."""

from enum import IntEnum


class EventKind(IntEnum):
    """Condition evaluated by the service for each subscribed variable.

    Value based kinds compare against `VarEvent.value`. Limit and range based
    kinds compare against `VarEvent.low_limit` and `VarEvent.high_limit`.
    """

    ON_SET = 0
    ON_CHANGE = 1
    ON_RISE = 2
    ON_FALL = 3
    ON_VALUE_REACH_VAL = 4
    ON_VALUE_EQ_VAL = 5
    ON_VALUE_LEAVE_VAL = 6
    ON_VALUE_DIFF_VAL = 7
    ON_CROSS_HIGH_LIMIT = 8
    ON_CROSS_LOW_LIMIT = 9
    ON_OVER_HIGH_LIMIT = 10
    ON_UNDER_LOW_LIMIT = 11
    ON_VALUE_REACH_RANGE = 12
    ON_VALUE_IN_RANGE = 13
    ON_VALUE_LEAVE_RANGE = 14
    ON_VALUE_OUT_RANGE = 15

    @classmethod
    def from_wire(cls, code: int) -> "EventKind":
        """Decodes a wire code, falling back to `ON_SET` for unknown codes."""
        try:
            return cls(code)
        except ValueError:
            return cls.ON_SET
