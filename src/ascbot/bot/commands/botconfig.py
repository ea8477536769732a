"""
``botconfig`` - bot owner configuration command.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from ascbot.command.permissions import user_ids
from ascbot.command.registry import Command, CommandContext
from ascbot.errors import ValidationError

MODES = ("setup",)


class BotConfigCommand(Command):
    name = "botconfig"

    def __init__(self, owner_ids: Callable[[], Iterable[int]]) -> None:
        self.permission = user_ids(owner_ids)

    async def run(self, ctx: CommandContext) -> Optional[str]:
        mode = ctx.invocation.tokens[0].lower() if ctx.invocation.tokens else ""
        if mode != "setup":
            raise ValidationError("INVALID_MODE", MODES)

        if ctx.invocation.edited:
            raise ValidationError("EDITED_INVOCATION")

        return await ctx.services.wizard.run(ctx.guild, ctx.channel, ctx.author)
