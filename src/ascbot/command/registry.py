"""
Command declarations and lookup.

A command subclasses :class:`Command`, declaring its name, aliases, permission
predicate and flags, and implements :meth:`Command.run`. The
:class:`CommandRegistry` maps every name and alias (case-insensitively) to the
command plus any tokens the alias appends to the arguments.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple

from ascbot.command.permissions import EVERYONE, ActorContext, PermissionPredicate
from ascbot.datatypes.command_datatypes import CommandAlias, CommandInvocation, FlagSpec
from ascbot.util.logger import get_logger

if TYPE_CHECKING:
    from ascbot.bot.services import BotServices

logger = get_logger("command_registry")


@dataclass
class CommandContext:
    """What a running command can see: the parsed invocation, the message and the services."""

    invocation: CommandInvocation
    message: Any
    services: "BotServices"
    actor: ActorContext

    @property
    def guild(self) -> Any:
        return self.message.guild

    @property
    def channel(self) -> Any:
        return self.message.channel

    @property
    def author(self) -> Any:
        return self.message.author

    @property
    def config(self):
        return self.actor.config

    async def send(self, content: Optional[str] = None, **kwargs) -> Any:
        return await self.channel.send(content, **kwargs)


class Command:
    """Base class for prefix commands."""

    name: str = ""
    aliases: Tuple[CommandAlias, ...] = ()
    permission: PermissionPredicate = EVERYONE
    flags: Tuple[FlagSpec, ...] = ()
    closed_flags: bool = False
    guild_only: bool = True
    #: Delete the invoking message (best-effort) before running.
    delete_invocation: bool = False

    async def run(self, ctx: CommandContext) -> Optional[str]:
        """Execute the command. A returned string is sent to the invoking channel."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"


class CommandRegistry:
    """Name and alias lookup for every registered command."""

    def __init__(self, commands: Iterable[Command] = ()) -> None:
        self._entries: Dict[str, Tuple[Command, Tuple[str, ...]]] = {}
        self._commands: List[Command] = []
        for command in commands:
            self.register(command)

    def register(self, command: Command) -> None:
        names = [(command.name, ())]
        for alias in command.aliases:
            names.extend((name, alias.append) for name in alias.names)

        for name, append in names:
            key = name.lower()
            if key in self._entries:
                raise ValueError(f"Command name {name!r} is already registered")
            self._entries[key] = (command, tuple(append))

        self._commands.append(command)
        logger.debug("[COMMANDS] Registered %s with %d name(s)", command.name, len(names))

    def lookup(self, name: str) -> Optional[Tuple[Command, Tuple[str, ...]]]:
        """The command called ``name`` and the tokens its alias appends, or ``None``."""
        return self._entries.get(name.lower())

    @property
    def commands(self) -> List[Command]:
        return list(self._commands)
