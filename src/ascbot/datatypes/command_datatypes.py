"""
Command invocation data.

A :class:`CommandInvocation` is the parsed, immutable form of one command
message: who sent it, where, the raw text and the positional tokens and typed
flags extracted from it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple, Union

FlagValue = Union[int, float, bool, str]


class FlagType(Enum):
    """Declared type a flag value is coerced to."""

    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class FlagSpec:
    """A flag a command accepts, e.g. ``--days=7``.

    ``minimum``/``maximum`` bound NUMBER flags inclusively; they are checked by
    the command, which names the valid range in its error.
    """

    name: str
    type: FlagType = FlagType.STRING
    minimum: Optional[float] = None
    maximum: Optional[float] = None


@dataclass(frozen=True, slots=True)
class CommandAlias:
    """Alternate name(s) for a command.

    ``append`` tokens are added to the argument list whenever one of ``names``
    is used, which lets ``softban`` mean ``ban --soft=true``.
    """

    names: Tuple[str, ...]
    append: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CommandInvocation:
    """Parsed command message.

    Attributes:
        actor_id: User who sent the command.
        channel_id: Channel the command was sent in.
        guild_id: Guild the command was sent in, if any.
        command_name: The name or alias that was typed.
        raw_text: Argument text after the command name (alias appends included).
        tokens: Whitespace-split positional arguments with flags removed.
        flags: Coerced flag values keyed by flag name.
        edited: Whether the invoking message had been edited.
    """

    actor_id: int
    channel_id: int
    guild_id: Optional[int]
    command_name: str
    raw_text: str
    tokens: Tuple[str, ...] = ()
    flags: Mapping[str, FlagValue] = field(default_factory=lambda: MappingProxyType({}))
    edited: bool = False

    @property
    def text_without_flags(self) -> str:
        """The argument text with every ``--name=value`` flag stripped."""
        return " ".join(self.tokens)
