"""Defines the DataPoint value object."""

import dataclasses

from arikedb.common.epoch import Epoch
from arikedb.common.variable_type import VariableType


@dataclasses.dataclass(frozen=True)
class DataPoint:
    """One observed (or derived) sample of a variable.

    `timestamp` and `value` stay text, as received, so that 128 bit integers
    survive the trip without losing precision. Callers convert them according
    to `vtype` and `epoch`.
    """

    name: str
    vtype: VariableType
    timestamp: str
    epoch: Epoch
    value: str
