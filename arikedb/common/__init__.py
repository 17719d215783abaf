"""Value objects and enumerations exchanged with the ArikeDB service."""

from arikedb.common.collection import Collection
from arikedb.common.data_point import DataPoint
from arikedb.common.epoch import Epoch
from arikedb.common.event_kind import EventKind
from arikedb.common.var_event import VarEvent
from arikedb.common.variable import Variable
from arikedb.common.variable_type import VariableType

__all__ = [
    "Collection",
    "DataPoint",
    "Epoch",
    "EventKind",
    "VarEvent",
    "Variable",
    "VariableType",
]
