"""
Repository for the partnerships table.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import aiosqlite

from ascbot.util.format_utils import db_timestamp


@dataclass(frozen=True)
class Partnership:
    message_id: int
    guild_id: int
    channel_id: int
    user_id: int
    invite: str
    points: int
    timestamp: datetime


class PartnershipRepository:
    """Partnership adverts, keyed by the message that posted them."""

    async def insert(self, conn: aiosqlite.Connection, partnership: Partnership) -> bool:
        """Store ``partnership``.

        Returns:
            False when the message was already recorded.
        """
        async with conn.execute(
            """
            INSERT INTO partnerships (message_id, guild_id, channel_id, user_id, invite, points, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(message_id) DO NOTHING
            """,
            (
                int(partnership.message_id),
                int(partnership.guild_id),
                int(partnership.channel_id),
                int(partnership.user_id),
                partnership.invite,
                int(partnership.points),
                db_timestamp(partnership.timestamp),
            ),
        ) as cursor:
            return cursor.rowcount > 0

    async def count(
        self,
        conn: aiosqlite.Connection,
        guild_id: int,
        user_id: int,
        since: Optional[datetime] = None,
    ) -> int:
        """Count the partnerships ``user_id`` made in ``guild_id``.

        Args:
            conn: Open connection.
            guild_id: Guild the adverts were posted in.
            user_id: Poster.
            since: Inclusive lower bound; all-time when omitted.

        Returns:
            The number of recorded partnerships.
        """
        sql = "SELECT COUNT(*) FROM partnerships WHERE guild_id = ? AND user_id = ?"
        params = [int(guild_id), int(user_id)]
        if since is not None:
            sql += " AND timestamp >= ?"
            params.append(db_timestamp(since))
        async with conn.execute(sql, params) as cursor:
            row = await cursor.fetchone()
        return int(row[0])
