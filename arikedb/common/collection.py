"""Defines the Collection value object."""

import dataclasses


@dataclasses.dataclass(frozen=True)
class Collection:
    """A named namespace of variables on the service."""

    name: str
