"""
Reaction giveaways.

A giveaway is a message members enter by reacting with 🎁. When it ends the
engine collects the reaction users, drops the bot itself, applies the optional
message-count requirement and draws one winner uniformly at random. The
outcome is persisted before it is announced, so a decided giveaway is never
drawn again after a restart.

End timers are tracked per giveaway message id by :class:`GiveawayTimers`; an
early manual end cancels the scheduled one.
"""

from __future__ import annotations

import asyncio
import random
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import discord

from ascbot.configuration.guild_config import GuildConfigRegistry
from ascbot.database.db_connection import ConnectionManager
from ascbot.datatypes.engagement_datatypes import Giveaway
from ascbot.errors import ConflictError, NotFoundError, TransportError, ValidationError
from ascbot.repositories.engagement_repo import GiveawayRepository, MessageRepository
from ascbot.util.logger import get_logger
from ascbot.util.responses import giveaway_embed, giveaway_end_embed, no_giveaway_winners, won_giveaway

logger = get_logger("giveaway_engine")

GIVEAWAY_REACTION = "🎁"

_DURATION_REGEX = re.compile(r"(\d+)\s*([smhdw])", re.IGNORECASE)
_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


def parse_duration(text: str) -> timedelta:
    """Parse ``1d12h``/``30m``/``2w`` style durations.

    Raises:
        ValidationError: ``INVALID_DURATION`` when nothing parses or the total is zero.
    """
    cleaned = text.strip().lower()
    matches = list(_DURATION_REGEX.finditer(cleaned))
    if not matches or _DURATION_REGEX.sub("", cleaned).strip():
        raise ValidationError("INVALID_DURATION")
    seconds = sum(int(m.group(1)) * _DURATION_UNITS[m.group(2).lower()] for m in matches)
    if seconds <= 0:
        raise ValidationError("INVALID_DURATION")
    return timedelta(seconds=seconds)


class GiveawayTimers:
    """One cancellable end timer per giveaway message id."""

    def __init__(self) -> None:
        self._tasks: Dict[int, asyncio.Task] = {}

    def __contains__(self, message_id: int) -> bool:
        return int(message_id) in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def schedule(self, message_id: int, delay: float, callback: Callable[[], Awaitable[Any]]) -> None:
        """Run ``callback`` after ``delay`` seconds, replacing any timer for the same giveaway."""
        self.cancel(message_id)
        message_id = int(message_id)

        async def runner() -> None:
            await asyncio.sleep(max(0.0, delay))
            # Deregister first so the callback's own cancel() cannot cancel this task
            self._tasks.pop(message_id, None)
            try:
                await callback()
            except Exception:
                logger.exception("[GIVEAWAY] Scheduled end of giveaway %s failed", message_id)

        self._tasks[message_id] = asyncio.create_task(runner(), name=f"ascbot-giveaway-{message_id}")

    def cancel(self, message_id: int) -> bool:
        task = self._tasks.pop(int(message_id), None)
        if task is None:
            return False
        task.cancel()
        return True

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


class GiveawayEngine:
    """Starts, ends and restores giveaways."""

    def __init__(
        self,
        bot: Any,
        connections: ConnectionManager,
        guild_configs: GuildConfigRegistry,
        *,
        timers: Optional[GiveawayTimers] = None,
        rng: Optional[random.Random] = None,
        giveaways: Optional[GiveawayRepository] = None,
        messages: Optional[MessageRepository] = None,
    ) -> None:
        self.bot = bot
        self.connections = connections
        self.guild_configs = guild_configs
        self.timers = timers or GiveawayTimers()
        self.rng = rng or random.Random()
        self.giveaways = giveaways or GiveawayRepository()
        self.messages = messages or MessageRepository()

    # --------------------------
    # Lifecycle
    # --------------------------
    async def start(
        self,
        channel: Any,
        creator: Any,
        prize: str,
        duration: timedelta,
        *,
        message_requirement: Optional[int] = None,
        requirement: Optional[str] = None,
    ) -> Giveaway:
        """Post a giveaway in ``channel`` and arm its end timer.

        Args:
            channel: Channel the giveaway message is sent to.
            creator: Member who started it.
            prize: Prize text shown on the embed.
            duration: Time until the draw.
            message_requirement: Messages an entrant must have sent since the
                start, counted in the general channel or guild-wide.
            requirement: Free-text requirement shown on the embed only.

        Returns:
            The stored giveaway.
        """
        start = datetime.now(timezone.utc)
        end = start + duration
        message = await channel.send(embed=giveaway_embed(
            prize, end, message_requirement=message_requirement, requirement=requirement,
        ))
        await message.add_reaction(GIVEAWAY_REACTION)

        giveaway = Giveaway(
            message_id=int(message.id),
            channel_id=int(channel.id),
            guild_id=int(channel.guild.id),
            created_by=int(creator.id),
            prize=prize,
            start=start,
            end=end,
            message_requirement=message_requirement,
            requirement=requirement,
        )
        async with self.connections.transaction() as conn:
            await self.giveaways.insert(conn, giveaway)

        self._schedule(giveaway)
        logger.info("[GIVEAWAY] Started giveaway %s for %r ending %s", giveaway.message_id, prize, end.isoformat())
        return giveaway

    async def restore(self) -> int:
        """Re-arm timers for every undecided giveaway; overdue ones end right away."""
        async with self.connections.read() as conn:
            pending = await self.giveaways.get_undecided(conn)
        for giveaway in pending:
            self._schedule(giveaway)
        logger.info("[GIVEAWAY] Restored %d pending giveaway(s)", len(pending))
        return len(pending)

    async def shutdown(self) -> None:
        await self.timers.shutdown()

    async def end_by_id(self, message_id: int, guild_id: int) -> Optional[int]:
        """Manually end a running giveaway.

        Args:
            message_id: Id of the giveaway message.
            guild_id: Guild the command was run in. Giveaways belonging to
                another guild are treated as unknown.

        Returns:
            The winner id, or ``None`` when nobody was eligible.

        Raises:
            NotFoundError: No giveaway in ``guild_id`` uses that message id.
            ConflictError: The giveaway already has its outcome.
        """
        async with self.connections.read() as conn:
            giveaway = await self.giveaways.get(conn, message_id)
        if giveaway is None or giveaway.guild_id != int(guild_id):
            raise NotFoundError("UNKNOWN_GIVEAWAY", message_id)
        if giveaway.decided:
            raise ConflictError("GIVEAWAY_ENDED")
        return await self.end(giveaway)

    async def end(self, giveaway: Giveaway) -> Optional[int]:
        """Draw and announce the outcome. Returns the winner id, or ``None`` without a winner.

        Does not check whether ``giveaway`` was already decided.
        """
        self.timers.cancel(giveaway.message_id)
        message = await self._fetch_message(giveaway)
        if message is None:
            await self._record(giveaway, [])
            return None

        entrants = await self.entrants(message)
        eligible = await self.eligible(giveaway, entrants)

        if not eligible:
            await self._record(giveaway, [])
            await message.edit(embed=giveaway_end_embed(giveaway.prize, giveaway.end))
            await message.channel.send(no_giveaway_winners(giveaway.prize, bool(giveaway.message_requirement)))
            logger.info("[GIVEAWAY] Giveaway %s ended without a winner", giveaway.message_id)
            return None

        winner = self.rng.choice(eligible)
        await self._record(giveaway, [int(winner.id)])
        await message.edit(embed=giveaway_end_embed(giveaway.prize, giveaway.end, [winner.mention]))
        await message.channel.send(won_giveaway(winner.mention, giveaway.prize, message.jump_url))
        logger.info("[GIVEAWAY] Giveaway %s won by %s (%d eligible)", giveaway.message_id, winner.id, len(eligible))
        return int(winner.id)

    # --------------------------
    # Entry handling
    # --------------------------
    async def entrants(self, message: Any) -> List[Any]:
        """Users who reacted with the giveaway emoji, minus the bot."""
        reaction = next((r for r in message.reactions if str(r.emoji) == GIVEAWAY_REACTION), None)
        if reaction is None:
            return []
        bot_id = int(self.bot.user.id)
        return [user async for user in reaction.users() if int(user.id) != bot_id]

    async def eligible(self, giveaway: Giveaway, entrants: List[Any]) -> List[Any]:
        """Entrants meeting the message requirement, counted in the guild's general channel since the start."""
        if not giveaway.message_requirement:
            return list(entrants)

        config = self.guild_configs.get(giveaway.guild_id)
        channel_id = config.general_channel_id if config is not None else None
        eligible = []
        async with self.connections.read() as conn:
            for user in entrants:
                count = await self.messages.count_since(
                    conn, user.id, giveaway.start, channel_id=channel_id, guild_id=giveaway.guild_id,
                )
                if count >= giveaway.message_requirement:
                    eligible.append(user)
        return eligible

    # --------------------------
    # Helpers
    # --------------------------
    def _schedule(self, giveaway: Giveaway) -> None:
        self.timers.schedule(giveaway.message_id, giveaway.seconds_remaining(), lambda: self.end(giveaway))

    async def _record(self, giveaway: Giveaway, winner_ids: List[int]) -> None:
        async with self.connections.transaction() as conn:
            await self.giveaways.set_winners(conn, giveaway.message_id, winner_ids)
        giveaway.winner_ids = list(winner_ids)

    async def _fetch_message(self, giveaway: Giveaway) -> Any:
        try:
            channel = self.bot.get_channel(giveaway.channel_id) or await self.bot.fetch_channel(giveaway.channel_id)
            return await channel.fetch_message(giveaway.message_id)
        except discord.NotFound:
            logger.warning("[GIVEAWAY] Message for giveaway %s no longer exists, closing it", giveaway.message_id)
            return None
        except discord.HTTPException as exc:
            logger.error("[GIVEAWAY] Could not fetch giveaway %s: %s", giveaway.message_id, exc)
            raise TransportError("TRANSPORT_FAILURE", "fetch the giveaway message") from exc
