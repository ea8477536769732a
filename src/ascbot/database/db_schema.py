"""
Database schema initialization.

Creates the tables, indexes and schema version row ascbot needs. Every
statement is idempotent so :meth:`SchemaManager.initialize_schema` runs on
each startup.
"""

import aiosqlite
from ascbot.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 2


class SchemaManager:
    """Creates and versions the ascbot schema."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """Create all tables and indexes, then record the schema version."""
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        # Per-guild case id counter, bumped atomically on every new case
        await db.execute("""
            CREATE TABLE IF NOT EXISTS case_counters (
                guild_id INTEGER PRIMARY KEY,
                last_case_id INTEGER NOT NULL DEFAULT 0
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS cases (
                guild_id INTEGER NOT NULL,
                case_id INTEGER NOT NULL,
                action TEXT NOT NULL,
                moderator_id INTEGER NOT NULL,
                user_ids TEXT NOT NULL DEFAULT '[]',
                reason TEXT NOT NULL,
                extras TEXT NOT NULL DEFAULT '{}',
                screenshots TEXT NOT NULL DEFAULT '[]',
                context_message_id INTEGER,
                audit_line TEXT,
                timestamp TEXT NOT NULL,
                PRIMARY KEY (guild_id, case_id)
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS points (
                user_id INTEGER PRIMARY KEY,
                amount INTEGER NOT NULL DEFAULT 0,
                vault INTEGER NOT NULL DEFAULT 0
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS levels (
                user_id INTEGER PRIMARY KEY,
                xp INTEGER NOT NULL DEFAULT 0,
                level INTEGER NOT NULL DEFAULT 0
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS giveaways (
                message_id INTEGER PRIMARY KEY,
                channel_id INTEGER NOT NULL,
                guild_id INTEGER NOT NULL,
                created_by INTEGER NOT NULL,
                prize TEXT NOT NULL,
                start_at TEXT NOT NULL,
                end_at TEXT NOT NULL,
                winners TEXT,
                message_requirement INTEGER,
                requirement TEXT
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS stars (
                message_id INTEGER PRIMARY KEY,
                guild_id INTEGER NOT NULL,
                channel_id INTEGER NOT NULL,
                author_id INTEGER NOT NULL,
                starboard_id INTEGER NOT NULL,
                users TEXT NOT NULL DEFAULT '[]',
                timestamp TEXT NOT NULL
            )
        """)

        # Message log backing giveaway message-count requirements
        await db.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                id INTEGER PRIMARY KEY,
                guild_id INTEGER NOT NULL,
                channel_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                sent_timestamp TEXT NOT NULL
            )
        """)

        # One row per partnership advert posted in a partnership channel
        await db.execute("""
            CREATE TABLE IF NOT EXISTS partnerships (
                message_id INTEGER PRIMARY KEY,
                guild_id INTEGER NOT NULL,
                channel_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                invite TEXT NOT NULL,
                points INTEGER NOT NULL DEFAULT 0,
                timestamp TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_cases_moderator ON cases(guild_id, moderator_id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_levels_rank ON levels(level DESC, xp DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_giveaways_open ON giveaways(winners, end_at)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_stars_starboard ON stars(starboard_id)")
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_messages_requirement ON messages(user_id, channel_id, sent_timestamp)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_messages_guild ON messages(guild_id, user_id, sent_timestamp)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_partnerships_user ON partnerships(guild_id, user_id, timestamp)"
        )

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
