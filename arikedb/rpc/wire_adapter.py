"""Converts between ArikeDB value objects and their protobuf messages.

Every function here is pure: no I/O, no state. Integer codes received from the
service go through the `from_wire` decoders of the enums, so codes unknown to
this client map to a default member instead of failing the call.
"""

from collections.abc import Iterable

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


def variable_type_to_wire(vtype: VariableType) -> int:
    return int(vtype)


def epoch_to_wire(epoch: Epoch) -> int:
    return int(epoch)


def event_kind_to_wire(event: EventKind) -> int:
    return int(event)


def to_collection_metas(names: Iterable[str]) -> list[CollectionMeta]:
    """Builds one `CollectionMeta` per collection name."""
    return [CollectionMeta(name=name) for name in names]


def from_collection_metas(metas: Iterable[CollectionMeta]) -> list[Collection]:
    return [Collection(name=meta.name) for meta in metas]


def to_variable_meta(variable: Variable) -> VariableMeta:
    return VariableMeta(
        name=variable.name,
        vtype=variable_type_to_wire(variable.vtype),
        buffer_size=variable.buffer_size,
    )


def to_variable_metas(variables: Iterable[Variable]) -> list[VariableMeta]:
    return [to_variable_meta(variable) for variable in variables]


def from_variable_meta(meta: VariableMeta) -> Variable:
    return Variable(
        name=meta.name,
        vtype=VariableType.from_wire(meta.vtype),
        buffer_size=meta.buffer_size,
    )


def from_variable_metas(metas: Iterable[VariableMeta]) -> list[Variable]:
    return [from_variable_meta(meta) for meta in metas]


def from_data_point(point: VarDataPoint) -> DataPoint:
    """Converts one `VarDataPoint` message into a `DataPoint`.

    Args:
        point: The message received from the service.

    Returns:
        The equivalent `DataPoint`. `vtype` and `epoch` fall back to their
        defaults when the service sends a code this client does not know.
    """
    return DataPoint(
        name=point.name,
        vtype=VariableType.from_wire(point.vtype),
        timestamp=point.timestamp,
        epoch=Epoch.from_wire(point.epoch),
        value=point.value,
    )


def from_data_points(points: Iterable[VarDataPoint]) -> list[DataPoint]:
    return [from_data_point(point) for point in points]


def to_variable_event(var_event: VarEvent) -> VariableEvent:
    return VariableEvent(
        event=event_kind_to_wire(var_event.event),
        value=var_event.value,
        low_limit=var_event.low_limit,
        high_limit=var_event.high_limit,
    )


def to_variable_events(var_events: Iterable[VarEvent]) -> list[VariableEvent]:
    return [to_variable_event(var_event) for var_event in var_events]


def from_variable_event(event: VariableEvent) -> VarEvent:
    """Converts a `VariableEvent` message back into a `VarEvent`."""
    return VarEvent(
        event=EventKind.from_wire(event.event),
        value=event.value,
        low_limit=event.low_limit,
        high_limit=event.high_limit,
    )


def timestamp_to_wire(timestamp: int) -> str:
    """Renders a timestamp as the decimal text the service expects.

    Raises:
        ValueError: If |timestamp| is negative.
    """
    value = int(timestamp)
    if value < 0:
        raise ValueError(f"Timestamp must not be negative, got {timestamp}.")
    return str(value)
