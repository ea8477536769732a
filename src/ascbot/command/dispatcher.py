"""
Command dispatch boundary.

Every guild message passes through :meth:`CommandDispatcher.dispatch`. A message
that starts with the configured prefix and names a registered command is
parsed into a :class:`CommandInvocation`, permission-checked and run. Failures
never escape: a :class:`CommandError` is rendered to the invoking channel, and
anything else is logged with its traceback and reported as a short generic
failure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Tuple

import discord

from ascbot.command.permissions import ActorContext
from ascbot.command.registry import Command, CommandContext
from ascbot.command.tokenizer import tokenize
from ascbot.datatypes.command_datatypes import CommandInvocation
from ascbot.errors import CommandError, PermissionDeniedError
from ascbot.util.discord_utils import safe_delete_message
from ascbot.util.logger import get_logger
from ascbot.util.responses import unexpected_error

if TYPE_CHECKING:
    from ascbot.bot.services import BotServices

logger = get_logger("command_dispatcher")


class CommandDispatcher:
    """Routes prefixed messages to registered commands."""

    def __init__(self, services: "BotServices") -> None:
        self.services = services

    def match(self, message: Any) -> Optional[Tuple[Command, str, str]]:
        """``(command, typed_name, argument_text)`` for a command message, else ``None``.

        Alias appends are already added to ``argument_text``.
        """
        prefix = self.services.app_config.prefix
        content = message.content or ""
        if not content.startswith(prefix):
            return None

        parts = content[len(prefix):].strip().split(maxsplit=1)
        if not parts:
            return None

        entry = self.services.registry.lookup(parts[0])
        if entry is None:
            return None

        command, append = entry
        arguments = parts[1] if len(parts) > 1 else ""
        if append:
            arguments = f"{arguments} {' '.join(append)}".strip()
        return command, parts[0], arguments

    async def dispatch(self, message: Any, *, edited: bool = False) -> bool:
        """Run the command in ``message`` if there is one. Returns whether a command matched."""
        if getattr(message.author, "bot", False):
            return False

        matched = self.match(message)
        if matched is None:
            return False

        command, typed_name, arguments = matched
        if command.guild_only and message.guild is None:
            return False

        try:
            await self._invoke(command, typed_name, arguments, message, edited)
        except CommandError as error:
            logger.info("[DISPATCH] %s by %s rejected: %s", command.name, message.author.id, error.code)
            await self._reply(message, error.message)
        except Exception as error:
            logger.exception("[DISPATCH] Unexpected error while running %s", command.name)
            await self._reply(message, unexpected_error(error))
        return True

    async def _invoke(self, command: Command, typed_name: str, arguments: str, message: Any, edited: bool) -> None:
        tokens, flags = tokenize(arguments, command.flags, closed=command.closed_flags)
        guild = message.guild
        invocation = CommandInvocation(
            actor_id=int(message.author.id),
            channel_id=int(message.channel.id),
            guild_id=int(guild.id) if guild is not None else None,
            command_name=typed_name,
            raw_text=arguments,
            tokens=tokens,
            flags=flags,
            edited=edited,
        )

        config = self.services.guild_configs.get(guild.id) if guild is not None else None
        actor = ActorContext(member=message.author, guild=guild, config=config)
        if not self.services.permissions.evaluate(command.permission, actor):
            raise PermissionDeniedError("INSUFFICIENT_PERMISSIONS")

        if command.delete_invocation:
            await safe_delete_message(message)

        logger.debug("[DISPATCH] Running %s for %s in %s", command.name, message.author.id, invocation.channel_id)
        response = await command.run(CommandContext(invocation, message, self.services, actor))
        if response:
            await message.channel.send(response)

    async def _reply(self, message: Any, content: str) -> None:
        try:
            await message.channel.send(content)
        except discord.HTTPException as exc:
            logger.error("[DISPATCH] Could not report failure in channel %s: %s", message.channel.id, exc)
