"""Defines the Variable value object."""

import dataclasses

from arikedb.common.variable_type import VariableType


@dataclasses.dataclass(frozen=True)
class Variable:
    """A typed variable inside a collection.

    Attributes:
        name: Name of the variable, unique within its collection.
        vtype: Scalar kind of the stored values.
        buffer_size: How many past samples the service keeps. Transmitted
            as-is; the client does not enforce it.
    """

    name: str
    vtype: VariableType
    buffer_size: int
