"""
Partnership tracking.

A message carrying a Discord invite in one of the guild's partnership channels
counts as one partnership for its author. Channels configured with a points
value credit that many points to the author's vault and announce the reward in
the guild's partner rewards channel.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from ascbot.configuration.guild_config import GuildConfigRegistry
from ascbot.database.db_connection import ConnectionManager
from ascbot.repositories.partnership_repo import Partnership, PartnershipRepository
from ascbot.repositories.points_repo import PointsRepository
from ascbot.util.discord_utils import try_send
from ascbot.util.format_utils import start_of_month, start_of_week
from ascbot.util.logger import get_logger
from ascbot.util.responses import partner_reward

logger = get_logger("partnerships")

INVITE_PATTERN = re.compile(
    r"(?:https?://)?(?:www\.)?(?:discord\.gg|discord(?:app)?\.com/invite)/([\w-]+)",
    re.IGNORECASE,
)


def find_invite(content: str) -> Optional[str]:
    """Return the first invite code in ``content``, if any."""
    match = INVITE_PATTERN.search(content or "")
    return match.group(1) if match else None


@dataclass(frozen=True)
class PartnershipCounts:
    week: int
    month: int
    total: int


class PartnershipService:
    """Records partnership adverts and reports per-user counts."""

    def __init__(
        self,
        bot: Any,
        connections: ConnectionManager,
        guild_configs: GuildConfigRegistry,
        *,
        repository: Optional[PartnershipRepository] = None,
        points: Optional[PointsRepository] = None,
    ) -> None:
        self.bot = bot
        self.connections = connections
        self.guild_configs = guild_configs
        self.repository = repository or PartnershipRepository()
        self.points = points or PointsRepository()

    async def record(self, message: Any) -> bool:
        """Record ``message`` as a partnership when it qualifies.

        Args:
            message: A guild message. It qualifies when it was posted in a
                partnership channel and contains an invite link.

        Returns:
            True when a new partnership was stored. Re-delivered messages are
            stored and rewarded once.
        """
        config = self.guild_configs.get(message.guild.id)
        if config is None:
            return False
        reward = config.partnership_channels.get(int(message.channel.id))
        if reward is None:
            return False
        invite = find_invite(message.content)
        if invite is None:
            logger.debug("[PARTNERSHIPS] Message %s in %s has no invite", message.id, message.channel.id)
            return False

        partnership = Partnership(
            message_id=int(message.id),
            guild_id=int(message.guild.id),
            channel_id=int(message.channel.id),
            user_id=int(message.author.id),
            invite=invite,
            points=reward,
            timestamp=message.created_at or datetime.now(timezone.utc),
        )
        async with self.connections.transaction() as conn:
            inserted = await self.repository.insert(conn, partnership)
            if inserted and reward > 0:
                await self.points.adjust_vault(conn, partnership.user_id, reward)
        if not inserted:
            return False

        logger.info("[PARTNERSHIPS] %s made a partnership in guild %s (invite %s, %d points)",
                    partnership.user_id, partnership.guild_id, invite, reward)
        if reward > 0 and config.partner_rewards_channel_id is not None:
            channel = self.bot.get_channel(config.partner_rewards_channel_id)
            if channel is not None:
                await try_send(channel, partner_reward(message.author.mention, reward, message.channel.mention))
        return True

    async def counts(self, guild_id: int, user_id: int, now: Optional[datetime] = None) -> PartnershipCounts:
        """Partnerships made by ``user_id`` this week, this month and all time.

        Weeks start on Monday and months on the 1st, both at midnight UTC.
        """
        now = now or datetime.now(timezone.utc)
        async with self.connections.read() as conn:
            week = await self.repository.count(conn, guild_id, user_id, start_of_week(now))
            month = await self.repository.count(conn, guild_id, user_id, start_of_month(now))
            total = await self.repository.count(conn, guild_id, user_id)
        return PartnershipCounts(week=week, month=month, total=total)
