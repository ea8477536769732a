"""
Database lifecycle coordinator.

Opens the shared connection, creates the schema and closes everything down
again. Repositories under :mod:`ascbot.repositories` do the table-level work
through the same :class:`ConnectionManager`.
"""

from __future__ import annotations

from pathlib import Path

from ascbot.database.db_connection import ConnectionManager, db_connection
from ascbot.database.db_schema import SchemaManager
from ascbot.util.logger import get_logger

logger = get_logger("database")

DB_PATH = Path("./data/ascbot.db").resolve()


class Database:
    """
    Startup/shutdown wrapper around the connection manager.

    Lifecycle:
        1. ``await initialize()`` at program startup
        2. repositories and services use ``connections``
        3. ``await shutdown()`` at program end
    """

    def __init__(self, db_path: Path = DB_PATH, connections: ConnectionManager = db_connection):
        self.db_path = db_path
        self.connections = connections
        self._initialized = False

    async def initialize(self) -> bool:
        """Open the connection and create the schema. Returns False on failure."""
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return True

        try:
            await self.connections.open(self.db_path)
            await SchemaManager.initialize_schema(self.connections.connection)
        except Exception as e:
            logger.error("[DATABASE] Database initialization failed: %s", e)
            return False

        self._initialized = True
        logger.info("[DATABASE] Database initialized at %s", self.db_path)
        return True

    async def shutdown(self) -> None:
        if not self._initialized:
            return

        await self.connections.close()
        self._initialized = False
        logger.info("[DATABASE] Database shutdown complete")
