import pytest

from arikedb.common.collection import Collection
from arikedb.common.data_point import DataPoint
from arikedb.common.epoch import Epoch
from arikedb.common.event_kind import EventKind
from arikedb.common.var_event import VarEvent
from arikedb.common.variable import Variable
from arikedb.common.variable_type import VariableType
from arikedb.proto import (
    CollectionMeta,
    VarDataPoint,
    VariableEvent,
    VariableMeta,
)
from arikedb.rpc import wire_adapter


def test_to_collection_metas() -> None:
    metas = wire_adapter.to_collection_metas(["a", "b"])
    assert [m.name for m in metas] == ["a", "b"]
    assert all(isinstance(m, CollectionMeta) for m in metas)


def test_from_collection_metas() -> None:
    metas = [CollectionMeta(name="a"), CollectionMeta(name="b")]
    assert wire_adapter.from_collection_metas(metas) == [
        Collection("a"),
        Collection("b"),
    ]


def test_variable_to_and_from_wire() -> None:
    variable = Variable(name="var1", vtype=VariableType.U128, buffer_size=10)
    meta = wire_adapter.to_variable_meta(variable)
    assert meta.name == "var1"
    assert meta.vtype == 9
    assert meta.buffer_size == 10
    assert wire_adapter.from_variable_meta(meta) == variable


def test_from_variable_metas_keeps_order() -> None:
    metas = [
        VariableMeta(name="b", vtype=2, buffer_size=5),
        VariableMeta(name="a", vtype=13, buffer_size=1),
    ]
    assert wire_adapter.from_variable_metas(metas) == [
        Variable("b", VariableType.I32, 5),
        Variable("a", VariableType.BOOL, 1),
    ]


def test_from_data_point() -> None:
    point = VarDataPoint(
        name="var1",
        vtype=4,
        timestamp="170141183460469231731687303715884105727",
        epoch=3,
        value="-170141183460469231731687303715884105728",
    )
    assert wire_adapter.from_data_point(point) == DataPoint(
        name="var1",
        vtype=VariableType.I128,
        timestamp="170141183460469231731687303715884105727",
        epoch=Epoch.NANOSECOND,
        value="-170141183460469231731687303715884105728",
    )


def test_from_data_point_is_deterministic() -> None:
    point = VarDataPoint(
        name="v", vtype=11, timestamp="1", epoch=1, value="2.5"
    )
    assert wire_adapter.from_data_point(point) == wire_adapter.from_data_point(
        point
    )


def test_var_event_to_and_from_wire() -> None:
    var_event = VarEvent(
        event=EventKind.ON_VALUE_IN_RANGE, low_limit="1", high_limit="9"
    )
    wire = wire_adapter.to_variable_event(var_event)
    assert isinstance(wire, VariableEvent)
    assert wire.event == 13
    assert wire.value == ""
    assert (wire.low_limit, wire.high_limit) == ("1", "9")
    assert wire_adapter.from_variable_event(wire) == var_event


def test_to_variable_events() -> None:
    events = wire_adapter.to_variable_events(
        [
            VarEvent(event=EventKind.ON_RISE),
            VarEvent(event=EventKind.ON_VALUE_EQ_VAL, value="56"),
        ]
    )
    assert [(e.event, e.value) for e in events] == [(2, ""), (5, "56")]


def test_enum_encoders() -> None:
    assert wire_adapter.variable_type_to_wire(VariableType.STR) == 12
    assert wire_adapter.epoch_to_wire(Epoch.MICROSECOND) == 2
    assert wire_adapter.event_kind_to_wire(EventKind.ON_FALL) == 3


def test_timestamp_to_wire_keeps_full_width() -> None:
    assert wire_adapter.timestamp_to_wire(2**127) == str(2**127)
    assert wire_adapter.timestamp_to_wire(0) == "0"


def test_timestamp_to_wire_rejects_negative() -> None:
    with pytest.raises(ValueError):
        wire_adapter.timestamp_to_wire(-1)
