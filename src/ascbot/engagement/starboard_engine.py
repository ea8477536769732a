"""
Starboard reconciliation.

A :class:`StarEntry` mirrors one starred message on the guild's starboard
channel and tracks the distinct users who starred it. ``add_star`` and
``remove_star`` are incremental and do nothing when the user is already
present/absent; ``refresh_stars`` replaces the starrer set with the current ⭐
reaction snapshot. Every change re-renders the starboard post.

Reaction events for one message are serialized by a per-message lock held from
the read of the stored entry until the starboard post is re-rendered, so two
overlapping stars both land and a message is posted to the starboard once.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

import discord

from ascbot.configuration.guild_config import GuildConfig, GuildConfigRegistry
from ascbot.database.db_connection import ConnectionManager
from ascbot.datatypes.engagement_datatypes import StarEntry
from ascbot.repositories.engagement_repo import StarRepository
from ascbot.util.logger import get_logger
from ascbot.util.responses import starboard_content, starboard_embed

logger = get_logger("starboard_engine")

STAR_REACTION = "⭐"


def _distinct(user_ids: Iterable[int]) -> List[int]:
    seen = set()
    ordered = []
    for user_id in user_ids:
        if int(user_id) not in seen:
            seen.add(int(user_id))
            ordered.append(int(user_id))
    return ordered


class StarboardEngine:
    """Keeps starboard posts in step with ⭐ reactions."""

    def __init__(
        self,
        bot: Any,
        connections: ConnectionManager,
        guild_configs: GuildConfigRegistry,
        *,
        repository: Optional[StarRepository] = None,
    ) -> None:
        self.bot = bot
        self.connections = connections
        self.guild_configs = guild_configs
        self.repository = repository or StarRepository()
        self._locks: Dict[int, asyncio.Lock] = {}
        self._lock_holders: Dict[int, int] = {}

    async def get(self, message_id: int) -> Optional[StarEntry]:
        """Return the stored entry for ``message_id``, or ``None`` if it never reached the starboard."""
        async with self.connections.read() as conn:
            return await self.repository.get(conn, message_id)

    @asynccontextmanager
    async def locked(self, message_id: int) -> AsyncIterator[None]:
        """Hold the lock for one starred message; the lock is dropped once nobody waits on it."""
        message_id = int(message_id)
        lock = self._locks.setdefault(message_id, asyncio.Lock())
        self._lock_holders[message_id] = self._lock_holders.get(message_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[message_id] -= 1
            if not self._lock_holders[message_id]:
                del self._lock_holders[message_id]
                del self._locks[message_id]

    # --------------------------
    # Reconciliation
    # --------------------------
    async def add_star(self, entry: StarEntry, user_id: int) -> StarEntry:
        """Add ``user_id`` to the starrers and re-render.

        Args:
            entry: Tracked entry; its ``user_ids`` are refreshed from storage first.
            user_id: The user who starred the message.

        Returns:
            ``entry``, unchanged when the user had already starred it.
        """
        async with self.locked(entry.message_id):
            return await self._add(entry, user_id)

    async def remove_star(self, entry: StarEntry, user_id: int) -> StarEntry:
        """Drop ``user_id`` from the starrers and re-render; a no-op for users who never starred."""
        async with self.locked(entry.message_id):
            return await self._remove(entry, user_id)

    async def refresh_stars(self, entry: StarEntry, message: Any = None) -> StarEntry:
        """Replace the starrers with everyone currently reacting ⭐ on the source message.

        Args:
            entry: Tracked entry to reconcile.
            message: The source message when the caller already has it; fetched otherwise.

        Returns:
            ``entry`` holding the reaction snapshot.
        """
        async with self.locked(entry.message_id):
            message = message or await self._fetch_source(entry.channel_id, entry.message_id)
            await self._store(entry, await self.starrers(message))
            await self.render(entry, message)
            return entry

    async def render(self, entry: StarEntry, message: Any = None) -> None:
        """Edit the starboard post to show the current count and the source message."""
        config = self.guild_configs.get(entry.guild_id)
        if config is None or config.starboard_channel_id is None:
            logger.debug("[STARBOARD] Guild %s has no starboard channel, not rendering", entry.guild_id)
            return
        message = message or await self._fetch_source(entry.channel_id, entry.message_id)
        starboard = await self._channel(config.starboard_channel_id)
        post = await starboard.fetch_message(entry.starboard_id)
        await post.edit(
            content=starboard_content(entry.star_count, message.channel.mention),
            embed=starboard_embed(message),
        )

    async def starrers(self, message: Any) -> List[int]:
        """Distinct ids of the users reacting ⭐ on ``message``."""
        reaction = next((r for r in message.reactions if str(r.emoji) == STAR_REACTION), None)
        if reaction is None:
            return []
        return _distinct([int(user.id) async for user in reaction.users()])

    # --------------------------
    # Reaction events
    # --------------------------
    async def handle_reaction(self, payload: Any, *, added: bool) -> Optional[StarEntry]:
        """Route a raw ⭐ reaction add/remove event.

        Args:
            payload: Raw reaction event carrying emoji, guild, channel, message and user ids.
            added: True for a reaction add, False for a removal.

        Returns:
            The affected entry, or ``None`` when the event was ignored or the
            message is still below the guild's minimum.
        """
        if str(payload.emoji) != STAR_REACTION or payload.guild_id is None:
            return None

        config = self.guild_configs.get(payload.guild_id)
        if not self._enabled(config) or int(payload.channel_id) == config.starboard_channel_id:
            return None

        async with self.locked(payload.message_id):
            entry = await self.get(payload.message_id)
            if entry is not None:
                if added:
                    return await self._add(entry, payload.user_id)
                return await self._remove(entry, payload.user_id)

            if not added:
                return None
            message = await self._fetch_source(payload.channel_id, payload.message_id)
            starrers = await self.starrers(message)
            if len(starrers) < config.starboard_minimum:
                return None
            return await self._create(message, starrers, config)

    async def create(self, message: Any, starrers: List[int], config: GuildConfig) -> StarEntry:
        """Post ``message`` to the starboard and start tracking it.

        Returns:
            The new entry, or the stored one when the message is already on the starboard.
        """
        async with self.locked(message.id):
            existing = await self.get(message.id)
            if existing is not None:
                return existing
            return await self._create(message, starrers, config)

    # --------------------------
    # Helpers
    # --------------------------
    @staticmethod
    def _enabled(config: Optional[GuildConfig]) -> bool:
        return config is not None and config.starboard_enabled and config.starboard_channel_id is not None

    async def _add(self, entry: StarEntry, user_id: int) -> StarEntry:
        await self._reload(entry)
        if int(user_id) in entry.user_ids:
            return entry
        await self._store(entry, entry.user_ids + [int(user_id)])
        await self.render(entry)
        return entry

    async def _remove(self, entry: StarEntry, user_id: int) -> StarEntry:
        await self._reload(entry)
        if int(user_id) not in entry.user_ids:
            return entry
        await self._store(entry, [uid for uid in entry.user_ids if uid != int(user_id)])
        await self.render(entry)
        return entry

    async def _create(self, message: Any, starrers: List[int], config: GuildConfig) -> StarEntry:
        starboard = await self._channel(config.starboard_channel_id)
        post = await starboard.send(
            content=starboard_content(len(starrers), message.channel.mention),
            embed=starboard_embed(message),
        )
        entry = StarEntry(
            message_id=int(message.id),
            guild_id=int(config.id),
            channel_id=int(message.channel.id),
            author_id=int(message.author.id),
            starboard_id=int(post.id),
            user_ids=_distinct(starrers),
            timestamp=datetime.now(timezone.utc),
        )
        async with self.connections.transaction() as conn:
            inserted = await self.repository.insert(conn, entry)

        if not inserted:
            # Tracked by someone else in the meantime; keep their post
            logger.warning("[STARBOARD] Message %s was already on the starboard, removing duplicate post %s",
                           entry.message_id, post.id)
            try:
                await post.delete()
            except discord.HTTPException as exc:
                logger.warning("[STARBOARD] Could not delete duplicate post %s: %s", post.id, exc)
            return await self.get(entry.message_id)

        logger.info("[STARBOARD] Message %s reached the starboard in guild %s with %d stars",
                    entry.message_id, entry.guild_id, entry.star_count)
        return entry

    async def _reload(self, entry: StarEntry) -> None:
        stored = await self.get(entry.message_id)
        if stored is not None:
            entry.user_ids = stored.user_ids

    async def _store(self, entry: StarEntry, user_ids: List[int]) -> None:
        user_ids = _distinct(user_ids)
        async with self.connections.transaction() as conn:
            await self.repository.set_users(conn, entry.message_id, user_ids)
        entry.user_ids = user_ids
        logger.debug("[STARBOARD] Message %s now has %d star(s)", entry.message_id, entry.star_count)

    async def _channel(self, channel_id: int) -> Any:
        return self.bot.get_channel(channel_id) or await self.bot.fetch_channel(channel_id)

    async def _fetch_source(self, channel_id: int, message_id: int) -> Any:
        channel = await self._channel(int(channel_id))
        return await channel.fetch_message(int(message_id))
