"""
``giveaway start|end`` command.
"""

from __future__ import annotations

from typing import Optional

from ascbot.command.permissions import StaticMask
from ascbot.command.registry import Command, CommandContext
from ascbot.command.tokenizer import check_range
from ascbot.datatypes.command_datatypes import CommandAlias, FlagSpec, FlagType
from ascbot.engagement.giveaway_engine import parse_duration
from ascbot.errors import NotFoundError, ValidationError

MODES = ("start", "end")


class GiveawayCommand(Command):
    name = "giveaway"
    aliases = (
        CommandAlias(("gstart",), append=("--mode=start",)),
        CommandAlias(("gend",), append=("--mode=end",)),
    )
    permission = StaticMask.of(manage_guild=True)
    MESSAGES = FlagSpec("messages", FlagType.NUMBER, minimum=1)
    flags = (
        MESSAGES,
        FlagSpec("requirement", FlagType.STRING),
        FlagSpec("mode", FlagType.STRING),
    )

    async def run(self, ctx: CommandContext) -> Optional[str]:
        tokens = list(ctx.invocation.tokens)
        mode = ctx.invocation.flags.get("mode")
        if mode is None:
            mode = tokens.pop(0).lower() if tokens else ""
        if mode not in MODES:
            raise ValidationError("INVALID_MODE", MODES)

        engine = ctx.services.giveaways
        if mode == "end":
            if not tokens or not tokens[0].isdigit():
                raise NotFoundError("UNKNOWN_GIVEAWAY", tokens[0] if tokens else "")
            await engine.end_by_id(int(tokens[0]), ctx.guild.id)
            return None

        if not tokens:
            raise ValidationError("INVALID_DURATION")
        duration = parse_duration(tokens[0])
        prize = " ".join(tokens[1:]).strip()
        if not prize:
            raise ValidationError("PROVIDE_PRIZE")

        flags = ctx.invocation.flags
        check_range(self.MESSAGES, flags.get("messages"), "a whole number of at least 1")
        messages = flags.get("messages")
        await engine.start(
            ctx.channel,
            ctx.author,
            prize,
            duration,
            message_requirement=int(messages) if messages is not None else None,
            requirement=flags.get("requirement") or None,
        )
        return None
