"""Defines VariableType, the scalar kinds a variable can hold."""

from enum import IntEnum


class VariableType(IntEnum):
    """Scalar kind of an ArikeDB variable.

    Each member's value is the integer code used on the wire.
    """

    I8 = 0
    I16 = 1
    I32 = 2
    I64 = 3
    I128 = 4
    U8 = 5
    U16 = 6
    U32 = 7
    U64 = 8
    U128 = 9
    F32 = 10
    F64 = 11
    STR = 12
    BOOL = 13

    @classmethod
    def from_wire(cls, code: int) -> "VariableType":
        """Decodes a wire code into a VariableType.

        Codes this client does not know about decode to `I8` instead of
        raising, so that a newer service cannot break an older client. The
        returned value is then only a placeholder and carries no meaning.

        Args:
            code: The integer code received from the service.

        Returns:
            The matching member, or `VariableType.I8` for unknown codes.
        """
        try:
            return cls(code)
        except ValueError:
            return cls.I8
