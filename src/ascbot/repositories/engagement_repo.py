"""
Repositories for giveaways, starboard entries and the message log.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

import aiosqlite

from ascbot.datatypes.engagement_datatypes import Giveaway, StarEntry
from ascbot.util.format_utils import db_timestamp, parse_db_timestamp
from ascbot.util.logger import get_logger

logger = get_logger("engagement_repo")

_GIVEAWAY_COLUMNS = """
    message_id, channel_id, guild_id, created_by, prize, start_at, end_at,
    message_requirement, requirement, winners
"""


def _row_to_giveaway(row) -> Giveaway:
    winners = row[9]
    return Giveaway(
        message_id=int(row[0]),
        channel_id=int(row[1]),
        guild_id=int(row[2]),
        created_by=int(row[3]),
        prize=row[4],
        start=parse_db_timestamp(row[5]),
        end=parse_db_timestamp(row[6]),
        message_requirement=int(row[7]) if row[7] is not None else None,
        requirement=row[8],
        winner_ids=[int(uid) for uid in json.loads(winners)] if winners is not None else None,
    )


class GiveawayRepository:
    """CRUD for the giveaways table."""

    async def insert(self, conn: aiosqlite.Connection, giveaway: Giveaway) -> None:
        """Store a new giveaway. ``winners`` stays NULL until it is decided."""
        await conn.execute(
            f"INSERT INTO giveaways ({_GIVEAWAY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                int(giveaway.message_id),
                int(giveaway.channel_id),
                int(giveaway.guild_id),
                int(giveaway.created_by),
                giveaway.prize,
                db_timestamp(giveaway.start),
                db_timestamp(giveaway.end),
                giveaway.message_requirement,
                giveaway.requirement,
                None if giveaway.winner_ids is None else json.dumps([str(u) for u in giveaway.winner_ids]),
            ),
        )

    async def get(self, conn: aiosqlite.Connection, message_id: int) -> Optional[Giveaway]:
        async with conn.execute(
            f"SELECT {_GIVEAWAY_COLUMNS} FROM giveaways WHERE message_id = ?",
            (int(message_id),),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_giveaway(row) if row is not None else None

    async def get_undecided(self, conn: aiosqlite.Connection) -> List[Giveaway]:
        """Giveaways whose winners have not been drawn yet, soonest ending first."""
        async with conn.execute(
            f"SELECT {_GIVEAWAY_COLUMNS} FROM giveaways WHERE winners IS NULL ORDER BY end_at ASC"
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_giveaway(row) for row in rows]

    async def set_winners(self, conn: aiosqlite.Connection, message_id: int, winner_ids: Sequence[int]) -> None:
        """Record the outcome. An empty ``winner_ids`` marks the giveaway decided without a winner."""
        await conn.execute(
            "UPDATE giveaways SET winners = ? WHERE message_id = ?",
            (json.dumps([str(u) for u in winner_ids]), int(message_id)),
        )


class StarRepository:
    """CRUD for the stars table."""

    async def get(self, conn: aiosqlite.Connection, message_id: int) -> Optional[StarEntry]:
        """Fetch the entry tracking the starred ``message_id``, if it reached the starboard."""
        async with conn.execute(
            """
            SELECT message_id, guild_id, channel_id, author_id, starboard_id, users, timestamp
            FROM stars WHERE message_id = ?
            """,
            (int(message_id),),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return StarEntry(
            message_id=int(row[0]),
            guild_id=int(row[1]),
            channel_id=int(row[2]),
            author_id=int(row[3]),
            starboard_id=int(row[4]),
            user_ids=[int(uid) for uid in json.loads(row[5] or "[]")],
            timestamp=parse_db_timestamp(row[6]),
        )

    async def insert(self, conn: aiosqlite.Connection, entry: StarEntry) -> bool:
        """Start tracking ``entry``.

        Returns:
            False when the message is already tracked; the stored row is left untouched.
        """
        async with conn.execute(
            """
            INSERT INTO stars (message_id, guild_id, channel_id, author_id, starboard_id, users, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(message_id) DO NOTHING
            """,
            (
                int(entry.message_id),
                int(entry.guild_id),
                int(entry.channel_id),
                int(entry.author_id),
                int(entry.starboard_id),
                json.dumps([str(uid) for uid in entry.user_ids]),
                db_timestamp(entry.timestamp),
            ),
        ) as cursor:
            return cursor.rowcount > 0

    async def set_users(self, conn: aiosqlite.Connection, message_id: int, user_ids: Iterable[int]) -> None:
        """Replace the stored starrer set."""
        await conn.execute(
            "UPDATE stars SET users = ? WHERE message_id = ?",
            (json.dumps([str(uid) for uid in user_ids]), int(message_id)),
        )


class MessageRepository:
    """Append-only log of guild messages used for giveaway requirements."""

    async def record(
        self,
        conn: aiosqlite.Connection,
        message_id: int,
        guild_id: int,
        channel_id: int,
        user_id: int,
        sent_at: datetime,
    ) -> None:
        """Log one message; recording the same id twice is ignored."""
        await conn.execute(
            """
            INSERT OR IGNORE INTO messages (id, guild_id, channel_id, user_id, sent_timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (int(message_id), int(guild_id), int(channel_id), int(user_id), db_timestamp(sent_at)),
        )

    async def count_since(
        self,
        conn: aiosqlite.Connection,
        user_id: int,
        since: datetime,
        *,
        channel_id: Optional[int] = None,
        guild_id: Optional[int] = None,
    ) -> int:
        """Count messages ``user_id`` sent strictly after ``since``.

        Args:
            conn: Open connection.
            user_id: Author to count.
            since: Lower bound, exclusive.
            channel_id: Only count this channel when given.
            guild_id: Otherwise count the whole guild.

        Returns:
            Number of logged messages.
        """
        if channel_id is not None:
            sql = "SELECT COUNT(*) FROM messages WHERE user_id = ? AND channel_id = ? AND sent_timestamp > ?"
            params = (int(user_id), int(channel_id), db_timestamp(since))
        else:
            sql = "SELECT COUNT(*) FROM messages WHERE user_id = ? AND guild_id = ? AND sent_timestamp > ?"
            params = (int(user_id), int(guild_id or 0), db_timestamp(since))
        async with conn.execute(sql, params) as cursor:
            row = await cursor.fetchone()
        return int(row[0])

    async def authors(self, conn: aiosqlite.Connection, message_ids: Iterable[int]) -> Dict[int, int]:
        """Map each logged message id to its author id; unknown ids are left out."""
        ids = [int(mid) for mid in message_ids]
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        async with conn.execute(
            f"SELECT id, user_id FROM messages WHERE id IN ({placeholders})",
            ids,
        ) as cursor:
            rows = await cursor.fetchall()
        return {int(row[0]): int(row[1]) for row in rows}

    async def delete_many(self, conn: aiosqlite.Connection, message_ids: Iterable[int]) -> int:
        """Forget deleted messages. Returns how many ids were passed in."""
        ids = [(int(mid),) for mid in message_ids]
        if not ids:
            return 0
        await conn.executemany("DELETE FROM messages WHERE id = ?", ids)
        return len(ids)
