"""
``partnerships [user]`` command.
"""

from __future__ import annotations

from typing import Optional

from ascbot.command.registry import Command, CommandContext
from ascbot.datatypes.entity_datatypes import EntityKind
from ascbot.errors import NotFoundError
from ascbot.util.discord_utils import user_tag
from ascbot.util.responses import partnership_counts


class PartnershipsCommand(Command):
    name = "partnerships"

    async def run(self, ctx: CommandContext) -> Optional[str]:
        user = ctx.author
        if ctx.invocation.tokens:
            token = ctx.invocation.tokens[0]
            entity = await ctx.services.resolver.resolve(token, EntityKind.USER, ctx.guild)
            if entity is None:
                raise NotFoundError("RESOLVE_ID", token)
            user = entity.obj

        counts = await ctx.services.partnerships.counts(ctx.guild.id, user.id)
        if not counts.week:
            raise NotFoundError("NO_PARTNERS", int(user.id) == int(ctx.author.id))
        return partnership_counts(user_tag(user), counts.week, counts.month, counts.total)
