"""
Resolved platform entities.

The resolver turns a free-form token into a :class:`ResolvedEntity`; the
underlying platform object is kept alongside so callers can act on it without a
second lookup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EntityKind(Enum):
    """Kinds of entity a token can refer to."""

    ROLE = "role"
    CHANNEL = "channel"
    USER = "user"
    GUILD = "guild"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ResolvedEntity:
    """A role, channel, user or guild identified by a token.

    Attributes:
        kind: What was resolved.
        id: Platform snowflake of the entity.
        name: Display name at resolution time.
        obj: The platform object itself (member, role, channel, guild or user).
    """

    kind: EntityKind
    id: int
    name: str
    obj: Any = field(default=None, compare=False, repr=False)
