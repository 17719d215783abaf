import pytest

from arikedb.common.variable_type import VariableType


@pytest.mark.parametrize("vtype", list(VariableType))
def test_from_wire_round_trip(vtype: VariableType) -> None:
    assert VariableType.from_wire(int(vtype)) is vtype


def test_wire_codes_are_fixed() -> None:
    assert VariableType.I8 == 0
    assert VariableType.I128 == 4
    assert VariableType.U8 == 5
    assert VariableType.F64 == 11
    assert VariableType.BOOL == 13
    assert len(VariableType) == 14


@pytest.mark.parametrize("code", [14, 99, -1, 2**31 - 1])
def test_from_wire_unknown_code_defaults_to_i8(code: int) -> None:
    assert VariableType.from_wire(code) is VariableType.I8
