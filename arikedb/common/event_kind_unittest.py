import pytest

from arikedb.common.event_kind import EventKind
from arikedb.common.var_event import VarEvent


@pytest.mark.parametrize("kind", list(EventKind))
def test_from_wire_round_trip(kind: EventKind) -> None:
    assert EventKind.from_wire(int(kind)) is kind


def test_sixteen_kinds_with_contiguous_codes() -> None:
    assert [int(kind) for kind in EventKind] == list(range(16))
    assert EventKind.ON_VALUE_EQ_VAL == 5
    assert EventKind.ON_VALUE_OUT_RANGE == 15


@pytest.mark.parametrize("code", [16, 1000, -1])
def test_from_wire_unknown_code_defaults_to_on_set(code: int) -> None:
    assert EventKind.from_wire(code) is EventKind.ON_SET


def test_var_event_defaults() -> None:
    event = VarEvent()
    assert event.event is EventKind.ON_SET
    assert event.value == ""
    assert event.low_limit == ""
    assert event.high_limit == ""
