"""
Repository for the cases and case_counters tables.

Case ids are allocated with a single upsert against ``case_counters`` so two
concurrent moderation commands can never read the same "last id". Callers run
:meth:`CaseRepository.allocate_case_id` and :meth:`CaseRepository.insert` in the
same ``transaction()`` block.
"""

from __future__ import annotations

import json
from typing import List, Optional

import aiosqlite

from ascbot.datatypes.case_datatypes import Case, CaseAction
from ascbot.util.format_utils import db_timestamp, parse_db_timestamp
from ascbot.util.logger import get_logger

logger = get_logger("case_repo")

_CASE_COLUMNS = """
    guild_id, case_id, action, moderator_id, user_ids, reason,
    extras, context_message_id, audit_line, timestamp
"""


def _row_to_case(row) -> Case:
    return Case(
        guild_id=int(row[0]),
        case_id=int(row[1]),
        action=CaseAction(row[2]),
        moderator_id=int(row[3]),
        user_ids=tuple(int(uid) for uid in json.loads(row[4] or "[]")),
        reason=row[5],
        extras=dict(json.loads(row[6] or "{}")),
        context_message_id=int(row[7]) if row[7] is not None else None,
        audit_line=row[8],
        timestamp=parse_db_timestamp(row[9]),
    )


class CaseRepository:
    """CRUD for moderation cases."""

    async def allocate_case_id(self, conn: aiosqlite.Connection, guild_id: int) -> int:
        """Atomically bump and return the guild's case counter.

        Args:
            conn: Connection inside the caller's write transaction.
            guild_id: Guild whose counter is incremented; the first call creates it at 1.

        Returns:
            The newly allocated case id.
        """
        async with conn.execute(
            """
            INSERT INTO case_counters (guild_id, last_case_id) VALUES (?, 1)
            ON CONFLICT(guild_id) DO UPDATE SET last_case_id = last_case_id + 1
            RETURNING last_case_id
            """,
            (int(guild_id),),
        ) as cursor:
            row = await cursor.fetchone()
        return int(row[0])

    async def insert(self, conn: aiosqlite.Connection, case: Case) -> None:
        """Store ``case``. User ids are kept as JSON strings so ``json_each`` can match them."""
        await conn.execute(
            f"INSERT INTO cases ({_CASE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                int(case.guild_id),
                int(case.case_id),
                case.action.value,
                int(case.moderator_id),
                json.dumps([str(uid) for uid in case.user_ids]),
                case.reason,
                json.dumps(case.extras),
                case.context_message_id,
                case.audit_line,
                db_timestamp(case.timestamp),
            ),
        )

    async def get(self, conn: aiosqlite.Connection, guild_id: int, case_id: int) -> Optional[Case]:
        """Fetch one case, or ``None`` when the guild has no case with that id."""
        async with conn.execute(
            f"SELECT {_CASE_COLUMNS} FROM cases WHERE guild_id = ? AND case_id = ?",
            (int(guild_id), int(case_id)),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_case(row) if row is not None else None

    async def history(self, conn: aiosqlite.Connection, guild_id: int, user_id: int) -> List[Case]:
        """Every case in ``guild_id`` naming ``user_id``, oldest first."""
        async with conn.execute(
            f"""
            SELECT {_CASE_COLUMNS} FROM cases
            WHERE guild_id = ?
              AND EXISTS (SELECT 1 FROM json_each(cases.user_ids) WHERE json_each.value = ?)
            ORDER BY case_id ASC
            """,
            (int(guild_id), str(user_id)),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_case(row) for row in rows]
