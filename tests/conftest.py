"""
Pytest configuration and fixtures for ascbot tests.
"""

import json
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from ascbot.configuration.guild_config import GuildConfigRegistry  # noqa: E402
from ascbot.database.db_connection import ConnectionManager  # noqa: E402
from ascbot.database.db_schema import SchemaManager  # noqa: E402


@pytest_asyncio.fixture
async def connections(tmp_path):
    """A fresh database with the full schema, closed after the test."""
    manager = ConnectionManager()
    await manager.open(tmp_path / "ascbot-test.db")
    await SchemaManager.initialize_schema(manager.connection)
    yield manager
    await manager.close()


@pytest.fixture
def guild_config_file(tmp_path):
    path = tmp_path / "guilds.json"
    path.write_text(json.dumps({"guilds": [], "allowed_level_channels": []}), encoding="utf-8")
    return path


@pytest.fixture
def guild_configs(guild_config_file):
    registry = GuildConfigRegistry(guild_config_file)
    registry.load()
    return registry
