import pytest

from arikedb.common.epoch import Epoch


@pytest.mark.parametrize("epoch", list(Epoch))
def test_from_wire_round_trip(epoch: Epoch) -> None:
    assert Epoch.from_wire(int(epoch)) is epoch


@pytest.mark.parametrize("code", [4, 10, -3])
def test_from_wire_unknown_code_defaults_to_second(code: int) -> None:
    assert Epoch.from_wire(code) is Epoch.SECOND


def test_nanoseconds_per_tick() -> None:
    assert Epoch.SECOND.nanoseconds_per_tick == 1_000_000_000
    assert Epoch.MILLISECOND.nanoseconds_per_tick == 1_000_000
    assert Epoch.MICROSECOND.nanoseconds_per_tick == 1_000
    assert Epoch.NANOSECOND.nanoseconds_per_tick == 1


def test_now_uses_resolution(mocker) -> None:
    mocker.patch(
        "arikedb.common.epoch.time.time_ns",
        return_value=1_700_000_123_456_789_012,
    )
    assert Epoch.SECOND.now() == 1_700_000_123
    assert Epoch.MILLISECOND.now() == 1_700_000_123_456
    assert Epoch.MICROSECOND.now() == 1_700_000_123_456_789
    assert Epoch.NANOSECOND.now() == 1_700_000_123_456_789_012
