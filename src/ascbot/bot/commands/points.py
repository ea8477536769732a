"""
Points and level commands: ``transfer``, ``level`` and ``top``.
"""

from __future__ import annotations

from typing import Optional

from ascbot.command.registry import Command, CommandContext
from ascbot.datatypes.command_datatypes import CommandAlias
from ascbot.datatypes.entity_datatypes import EntityKind
from ascbot.engagement.points import level_threshold
from ascbot.errors import ConflictError, NotFoundError, ValidationError
from ascbot.util.discord_utils import user_tag
from ascbot.util.responses import level_lines, top_embed, transfer_success


class TransferCommand(Command):
    name = "transfer"

    async def run(self, ctx: CommandContext) -> Optional[str]:
        tokens = ctx.invocation.tokens
        if not tokens:
            raise ValidationError("MENTION_USER")

        services = ctx.services
        if services.points.is_locked(ctx.author.id):
            raise ConflictError("LOCKED_POINTS", True)

        target = await services.resolver.resolve(tokens[0], EntityKind.USER, ctx.guild)
        if target is None:
            raise ValidationError("MENTION_USER")

        amount = tokens[1] if len(tokens) > 1 else ""
        await services.points.transfer(ctx.author.id, target.id, amount)
        return transfer_success(getattr(target.obj, "mention", target.name), int(amount))


class LevelCommand(Command):
    name = "level"
    aliases = (CommandAlias(("rank",)),)

    async def run(self, ctx: CommandContext) -> Optional[str]:
        user = ctx.author
        if ctx.invocation.tokens:
            token = ctx.invocation.tokens[0]
            entity = await ctx.services.resolver.resolve(token, EntityKind.USER, ctx.guild)
            if entity is None:
                raise NotFoundError("RESOLVE_ID", token)
            user = entity.obj

        row = await ctx.services.levels.get(user.id)
        return level_lines(user_tag(user), row.level, row.xp, level_threshold(row.level))


class TopCommand(Command):
    name = "top"

    async def run(self, ctx: CommandContext) -> Optional[str]:
        rows = await ctx.services.levels.top(10)
        entries = []
        for row in rows:
            member = ctx.guild.get_member(row.user_id) if ctx.guild is not None else None
            user = member or ctx.services.bot.get_user(row.user_id)
            entries.append((user_tag(user) if user is not None else str(row.user_id), row.level))
        await ctx.send(embed=top_embed(entries, ctx.guild.name))
        return None
