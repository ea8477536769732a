import aiosqlite
import pytest

from ascbot.database.database import Database
from ascbot.database.db_connection import ConnectionManager
from ascbot.database.db_schema import SCHEMA_VERSION

EXPECTED_TABLES = {
    "case_counters", "cases", "points", "levels", "giveaways", "stars", "messages", "partnerships", "schema_version",
}


@pytest.mark.asyncio
async def test_initialize_creates_schema_and_shutdown_closes(tmp_path):
    connections = ConnectionManager()
    database = Database(tmp_path / "nested" / "bot.db", connections)

    assert await database.initialize() is True
    # A second call is a no-op
    assert await database.initialize() is True

    rows = await connections.query("SELECT name FROM sqlite_master WHERE type = 'table'")
    assert EXPECTED_TABLES <= {row["name"] for row in rows}
    version = await connections.query("SELECT version FROM schema_version")
    assert [row["version"] for row in version] == [SCHEMA_VERSION]

    await database.shutdown()
    assert connections.is_open is False


@pytest.mark.asyncio
async def test_initialize_failure_returns_false(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("file", encoding="utf-8")
    database = Database(blocker / "bot.db", ConnectionManager())

    assert await database.initialize() is False
    # Nothing to close
    await database.shutdown()


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(connections):
    with pytest.raises(RuntimeError):
        async with connections.transaction() as conn:
            await conn.execute("INSERT INTO points (user_id, amount, vault) VALUES (1, 0, 10)")
            raise RuntimeError("abort")

    assert await connections.query("SELECT * FROM points") == []


@pytest.mark.asyncio
async def test_connection_requires_open():
    with pytest.raises(RuntimeError):
        ConnectionManager().connection


@pytest.mark.asyncio
async def test_schema_rejects_duplicate_case_ids(connections):
    with pytest.raises(aiosqlite.IntegrityError):
        async with connections.transaction() as conn:
            for _ in range(2):
                await conn.execute(
                    "INSERT INTO cases (guild_id, case_id, action, moderator_id, user_ids, reason, extras, timestamp)"
                    " VALUES (1, 1, 'BAN', 2, '[]', 'r', '{}', '2024-01-01T00:00:00+00:00')"
                )
