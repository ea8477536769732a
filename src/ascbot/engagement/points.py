"""
Points transfers and message levels.
"""

from __future__ import annotations

import random
import time
from typing import Callable, Dict, List, Optional, Set, Tuple

from ascbot.database.db_connection import ConnectionManager
from ascbot.errors import ConflictError, ValidationError
from ascbot.repositories.points_repo import LevelRow, LevelsRepository, PointsRepository, PointsRow
from ascbot.util.logger import get_logger

logger = get_logger("points")


def level_threshold(level: int) -> int:
    """XP needed to go from ``level`` to ``level + 1``."""
    return 5 * level ** 2 + 50 * level + 100


class PointsService:
    """Vault transfers between users.

    Both sides of a transfer are written in one transaction, and a user who is
    party to a running transfer is locked out of starting or receiving another.
    """

    def __init__(self, connections: ConnectionManager, repository: Optional[PointsRepository] = None) -> None:
        self.connections = connections
        self.repository = repository or PointsRepository()
        self._locked: Set[int] = set()

    def is_locked(self, user_id: int) -> bool:
        return int(user_id) in self._locked

    async def balance(self, user_id: int) -> PointsRow:
        """Current balances of ``user_id``."""
        async with self.connections.read() as conn:
            return await self.repository.get(conn, user_id)

    async def transfer(self, sender_id: int, recipient_id: int, amount) -> Tuple[PointsRow, PointsRow]:
        """Move ``amount`` from the sender's vault to the recipient's.

        Raises:
            ConflictError: ``LOCKED_POINTS`` when either user is already in a transfer.
            ValidationError: ``INVALID_NUMBER`` for a non-integer or amount below 1,
                ``NOT_ENOUGH_POINTS`` when the sender's vault cannot cover it.
        """
        sender_id, recipient_id = int(sender_id), int(recipient_id)
        if self.is_locked(sender_id):
            raise ConflictError("LOCKED_POINTS", True)
        if self.is_locked(recipient_id):
            raise ConflictError("LOCKED_POINTS", False)

        try:
            amount = int(str(amount).strip())
        except ValueError:
            raise ValidationError("INVALID_NUMBER", 1) from None
        if amount < 1:
            raise ValidationError("INVALID_NUMBER", 1)

        parties = {sender_id, recipient_id}
        self._locked.update(parties)
        try:
            async with self.connections.transaction() as conn:
                sender = await self.repository.get(conn, sender_id)
                if sender.vault < amount:
                    raise ValidationError("NOT_ENOUGH_POINTS", amount)
                await self.repository.adjust_vault(conn, sender_id, -amount)
                await self.repository.adjust_vault(conn, recipient_id, amount)
                sender = await self.repository.get(conn, sender_id)
                recipient = await self.repository.get(conn, recipient_id)
        finally:
            self._locked.difference_update(parties)

        logger.info("[POINTS] %s transferred %d to %s", sender_id, amount, recipient_id)
        return sender, recipient


class LevelService:
    """Message XP with a per-user cooldown."""

    def __init__(
        self,
        connections: ConnectionManager,
        *,
        xp_range: Tuple[int, int] = (15, 25),
        cooldown_seconds: float = 60.0,
        repository: Optional[LevelsRepository] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.connections = connections
        self.xp_range = xp_range
        self.cooldown_seconds = cooldown_seconds
        self.repository = repository or LevelsRepository()
        self.rng = rng or random.Random()
        self.clock = clock
        self._last_award: Dict[int, float] = {}

    async def get(self, user_id: int) -> LevelRow:
        """Level row for ``user_id``; users who never chatted are level 0."""
        async with self.connections.read() as conn:
            return await self.repository.get(conn, user_id)

    async def top(self, limit: int = 10) -> List[LevelRow]:
        """Best ``limit`` rows by level, then XP."""
        async with self.connections.read() as conn:
            return await self.repository.top(conn, limit)

    async def award(self, user_id: int) -> Optional[int]:
        """Grant message XP. Returns the new level when the user levelled up, else ``None``."""
        user_id = int(user_id)
        now = self.clock()
        last = self._last_award.get(user_id)
        if last is not None and now - last < self.cooldown_seconds:
            return None
        self._last_award[user_id] = now

        gained = self.rng.randint(*self.xp_range)
        async with self.connections.transaction() as conn:
            row = await self.repository.get(conn, user_id)
            start_level = row.level
            row.xp += gained
            while row.xp >= level_threshold(row.level):
                row.xp -= level_threshold(row.level)
                row.level += 1
            await self.repository.upsert(conn, row)

        if row.level > start_level:
            logger.info("[LEVELS] %s reached level %d", user_id, row.level)
            return row.level
        return None
