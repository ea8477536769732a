"""
Moderation commands: ``ban``, ``kick`` and ``history``.

``ban`` and ``kick`` hand their arguments to the shared
:class:`ModerationPipeline` with the matching action; staff with any access
level role from Admin down (or administrators) may use them once the guild is
configured.
"""

from __future__ import annotations

from typing import Optional

from ascbot.command.permissions import access_level
from ascbot.command.registry import Command, CommandContext
from ascbot.datatypes.command_datatypes import CommandAlias
from ascbot.datatypes.entity_datatypes import EntityKind
from ascbot.errors import NotFoundError, ValidationError
from ascbot.moderation.actions import BanAction, KickAction, ModerationAction
from ascbot.moderation.moderation_pipeline import ModerationRequest
from ascbot.util.discord_utils import user_tag
from ascbot.util.responses import history_lines


class _PipelineCommand(Command):
    action: ModerationAction
    permission = access_level(1)
    delete_invocation = True

    async def run(self, ctx: CommandContext) -> Optional[str]:
        request = ModerationRequest(
            guild=ctx.guild,
            moderator=ctx.author,
            channel=ctx.channel,
            tokens=ctx.invocation.tokens,
            flags=ctx.invocation.flags,
        )
        outcome = await ctx.services.pipeline.run(self.action, request)
        outcome.raise_if_aborted()
        # The pipeline already posted the summary
        return None


class BanCommand(_PipelineCommand):
    name = "ban"
    aliases = (
        CommandAlias(("🔨", "🍌")),
        CommandAlias(("softban", "soft-ban"), append=("--soft=true",)),
        CommandAlias(("ban7", "ban-7"), append=("--days=7",)),
    )
    action = BanAction()
    flags = BanAction.flags


class KickCommand(_PipelineCommand):
    name = "kick"
    aliases = (CommandAlias(("boot",)),)
    action = KickAction()
    flags = KickAction.flags


class HistoryCommand(Command):
    name = "history"
    aliases = (CommandAlias(("cases",)),)
    permission = access_level(0)

    async def run(self, ctx: CommandContext) -> Optional[str]:
        if not ctx.invocation.tokens:
            raise ValidationError("MENTION_USER")
        token = ctx.invocation.tokens[0]
        entity = await ctx.services.resolver.resolve(token, EntityKind.USER, ctx.guild)
        if entity is None:
            raise NotFoundError("RESOLVE_ID", token)

        cases = await ctx.services.case_log.history(ctx.guild.id, entity.id)
        if not cases:
            return f"{user_tag(entity.obj)} has no cases."

        moderators = {}
        for case in cases:
            if case.moderator_id not in moderators:
                member = ctx.guild.get_member(case.moderator_id)
                moderators[case.moderator_id] = user_tag(member) if member is not None else str(case.moderator_id)

        lines = [f"Cases for {user_tag(entity.obj)}:"] + history_lines(cases, moderators)
        return "\n".join(lines)[:2000]
