from typing import Optional

import pytest

from arikedb.common.event_kind import EventKind
from arikedb.common.var_event import VarEvent
from arikedb.test.fake_arikedb_servicer import _derive, _event_matches


@pytest.mark.parametrize(
    "var_event,previous,current,expected",
    [
        (VarEvent(EventKind.ON_SET), "1", "1", True),
        (VarEvent(EventKind.ON_CHANGE), "1", "1.0", False),
        (VarEvent(EventKind.ON_CHANGE), None, "1", True),
        (VarEvent(EventKind.ON_RISE), "1", "2", True),
        (VarEvent(EventKind.ON_RISE), None, "2", False),
        (VarEvent(EventKind.ON_FALL), "2", "1", True),
        (VarEvent(EventKind.ON_VALUE_EQ_VAL, value="56"), "1", "56", True),
        (VarEvent(EventKind.ON_VALUE_EQ_VAL, value="on"), "x", "off", False),
        (VarEvent(EventKind.ON_VALUE_DIFF_VAL, value="56"), "1", "57", True),
        (VarEvent(EventKind.ON_VALUE_REACH_VAL, value="5"), "5", "5", False),
        (VarEvent(EventKind.ON_VALUE_REACH_VAL, value="5"), "4", "5", True),
        (VarEvent(EventKind.ON_VALUE_LEAVE_VAL, value="5"), "5", "6", True),
        (
            VarEvent(EventKind.ON_OVER_HIGH_LIMIT, high_limit="10"),
            "0",
            "11",
            True,
        ),
        (
            VarEvent(EventKind.ON_UNDER_LOW_LIMIT, low_limit="0"),
            "0",
            "-1",
            True,
        ),
        (
            VarEvent(EventKind.ON_CROSS_HIGH_LIMIT, high_limit="10"),
            "11",
            "9",
            True,
        ),
        (
            VarEvent(EventKind.ON_CROSS_LOW_LIMIT, low_limit="0"),
            "1",
            "2",
            False,
        ),
        (
            VarEvent(
                EventKind.ON_VALUE_IN_RANGE, low_limit="0", high_limit="9"
            ),
            None,
            "9",
            True,
        ),
        (
            VarEvent(
                EventKind.ON_VALUE_OUT_RANGE, low_limit="0", high_limit="9"
            ),
            None,
            "10",
            True,
        ),
        (
            VarEvent(
                EventKind.ON_VALUE_REACH_RANGE, low_limit="0", high_limit="9"
            ),
            "10",
            "5",
            True,
        ),
        (
            VarEvent(
                EventKind.ON_VALUE_LEAVE_RANGE, low_limit="0", high_limit="9"
            ),
            "5",
            "6",
            False,
        ),
    ],
)
def test_event_matches(
    var_event: VarEvent,
    previous: Optional[str],
    current: str,
    expected: bool,
) -> None:
    assert _event_matches(var_event, previous, current) is expected


def test_derive_second_order() -> None:
    samples = [(0, "0"), (1_000_000_000, "1"), (2_000_000_000, "4")]
    assert _derive(samples, 1) == (2_000_000_000, repr(3.0))
    assert _derive(samples, 2) == (2_000_000_000, repr(2.0))
    assert _derive(samples, 3) is None


def test_derive_non_numeric() -> None:
    assert _derive([(0, "a"), (1, "b")], 1) is None
