"""
Platform-level moderation actions driven by :class:`ModerationPipeline`.

Each action knows its flags, which targets are already in the desired state,
how to apply itself to one user and which case kind it records.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Tuple

import discord

from ascbot.datatypes.case_datatypes import CaseAction
from ascbot.datatypes.command_datatypes import FlagSpec, FlagType, FlagValue
from ascbot.command.tokenizer import check_range
from ascbot.util.logger import get_logger

logger = get_logger("moderation_actions")

SILENT_FLAG = FlagSpec("silent", FlagType.BOOLEAN)

SECONDS_PER_DAY = 86400


class ModerationAction:
    """Base class; subclasses implement one destructive action."""

    #: Name used in ``CANNOT_ACTION_USER`` errors.
    name: str = ""
    #: Whether the texts talk about kicking (``True``) or banning.
    kick: bool = True
    flags: Tuple[FlagSpec, ...] = (SILENT_FLAG,)

    def case_action(self, flags: Mapping[str, FlagValue]) -> CaseAction:
        raise NotImplementedError

    def validate_flags(self, flags: Mapping[str, FlagValue]) -> None:
        """Raise a ``ValidationError`` for out-of-range flag values."""

    def extras(self, flags: Mapping[str, FlagValue]) -> Dict[str, str]:
        return {}

    async def already_applied(self, guild: Any, user: Any) -> bool:
        raise NotImplementedError

    async def apply(self, guild: Any, user: Any, *, reason: str, flags: Mapping[str, FlagValue]) -> None:
        raise NotImplementedError


class BanAction(ModerationAction):
    """``guild.ban``; ``--soft`` unbans straight away to purge messages."""

    name = "BAN"
    kick = False
    DAYS = FlagSpec("days", FlagType.NUMBER, minimum=1, maximum=7)
    SOFT = FlagSpec("soft", FlagType.BOOLEAN)
    flags = (DAYS, SILENT_FLAG, SOFT)

    def case_action(self, flags):
        return CaseAction.SOFT_BAN if flags.get("soft") else CaseAction.BAN

    def validate_flags(self, flags):
        check_range(self.DAYS, flags.get("days"), "an integer bigger than 0 and lower than 8")

    def delete_days(self, flags: Mapping[str, FlagValue]) -> int:
        if flags.get("days") is not None:
            return int(flags["days"])
        return 7 if flags.get("soft") else 0

    def extras(self, flags):
        if flags.get("days") is not None:
            return {"Days of Messages Deleted": str(int(flags["days"]))}
        return {}

    async def already_applied(self, guild, user):
        try:
            await guild.fetch_ban(user)
        except discord.NotFound:
            return False
        return True

    async def apply(self, guild, user, *, reason, flags):
        await guild.ban(user, reason=reason, delete_message_seconds=self.delete_days(flags) * SECONDS_PER_DAY)
        if flags.get("soft"):
            # The ban already landed; a failed unban leaves the user banned but is not a failed ban
            try:
                await guild.unban(user, reason=reason)
            except discord.HTTPException as exc:
                logger.error("[SOFT BAN] Banned %s in %s but could not unban: %s", user.id, guild.id, exc)


class KickAction(ModerationAction):
    """``guild.kick``; users who are no longer members count as already removed."""

    name = "KICK"
    kick = True

    def case_action(self, flags):
        return CaseAction.KICK

    async def already_applied(self, guild, user):
        return guild.get_member(int(user.id)) is None

    async def apply(self, guild, user, *, reason, flags):
        await guild.kick(user, reason=reason)
