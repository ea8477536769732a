"""
Repositories for the points and levels tables.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

import aiosqlite


@dataclass
class PointsRow:
    user_id: int
    amount: int = 0
    vault: int = 0


@dataclass
class LevelRow:
    user_id: int
    xp: int = 0
    level: int = 0


class PointsRepository:
    """Balances. ``vault`` is the spendable/transferable part."""

    async def get(self, conn: aiosqlite.Connection, user_id: int) -> PointsRow:
        """Fetch a user's balances; users without a row have zero of everything."""
        async with conn.execute(
            "SELECT user_id, amount, vault FROM points WHERE user_id = ?",
            (int(user_id),),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return PointsRow(user_id=int(user_id))
        return PointsRow(user_id=int(row[0]), amount=int(row[1]), vault=int(row[2]))

    async def adjust_vault(self, conn: aiosqlite.Connection, user_id: int, delta: int) -> None:
        """Add ``delta`` (possibly negative) to the vault, creating the row on first use.

        Args:
            conn: Connection inside the caller's write transaction.
            user_id: Account to change.
            delta: Points to add.
        """
        await conn.execute(
            """
            INSERT INTO points (user_id, amount, vault) VALUES (?, 0, ?)
            ON CONFLICT(user_id) DO UPDATE SET vault = vault + excluded.vault
            """,
            (int(user_id), int(delta)),
        )

    async def adjust_amount(self, conn: aiosqlite.Connection, user_id: int, delta: int) -> None:
        await conn.execute(
            """
            INSERT INTO points (user_id, amount, vault) VALUES (?, ?, 0)
            ON CONFLICT(user_id) DO UPDATE SET amount = amount + excluded.amount
            """,
            (int(user_id), int(delta)),
        )


class LevelsRepository:
    """XP and level per user."""

    async def get(self, conn: aiosqlite.Connection, user_id: int) -> LevelRow:
        async with conn.execute(
            "SELECT user_id, xp, level FROM levels WHERE user_id = ?",
            (int(user_id),),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return LevelRow(user_id=int(user_id))
        return LevelRow(user_id=int(row[0]), xp=int(row[1]), level=int(row[2]))

    async def upsert(self, conn: aiosqlite.Connection, row: LevelRow) -> None:
        await conn.execute(
            """
            INSERT INTO levels (user_id, xp, level) VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                xp    = excluded.xp,
                level = excluded.level
            """,
            (int(row.user_id), int(row.xp), int(row.level)),
        )

    async def top(self, conn: aiosqlite.Connection, limit: int = 10) -> List[LevelRow]:
        """Leaderboard rows, highest level then XP first."""
        async with conn.execute(
            "SELECT user_id, xp, level FROM levels ORDER BY level DESC, xp DESC LIMIT ?",
            (int(limit),),
        ) as cursor:
            rows = await cursor.fetchall()
        return [LevelRow(user_id=int(r[0]), xp=int(r[1]), level=int(r[2])) for r in rows]
