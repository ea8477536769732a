"""Tests for the guild configuration registry."""

import json

import pytest

from ascbot.configuration.guild_config import (
    GuildConfig,
    GuildConfigRegistry,
    get_path,
    has_path,
    new_guild_template,
    set_path,
)


def test_set_path_creates_nested_objects():
    data = {}
    set_path(data, "starboard.channel_id", "5")
    assert data == {"starboard": {"channel_id": "5"}}


def test_get_and_has_path():
    data = {"a": {"b": 0}}
    assert get_path(data, "a.b") == 0
    assert get_path(data, "a.c", "x") == "x"
    assert has_path(data, "a.b")
    assert not has_path(data, "a.b.c")


def test_template_is_fresh_each_time():
    first = new_guild_template()
    first["webhooks"].append({"name": "x"})
    assert new_guild_template()["webhooks"] == []


def test_load_parses_ids_and_level_channels(tmp_path):
    path = tmp_path / "guilds.json"
    path.write_text(json.dumps({
        "guilds": [
            {"id": "123", "access_level_roles": ["1", "2", "3", "4"], "starboard": {"enabled": True}},
            {"name": "missing id"},
        ],
        "allowed_level_channels": ["9"],
    }), encoding="utf-8")

    registry = GuildConfigRegistry(path)

    assert registry.load() == 1
    config = registry.get(123)
    assert config.access_level_roles == [1, 2, 3, 4]
    assert config.starboard_enabled is True
    assert config.starboard_minimum == 3
    assert registry.allowed_level_channels == [9]


def test_partnership_channels_accept_ids_and_objects():
    config = GuildConfig({
        "id": "1",
        "partnership_channels": ["10", {"id": "11", "points": 25}],
        "partner_rewards_channel": "12",
    })
    assert config.partnership_channels == {10: 0, 11: 25}
    assert config.partner_rewards_channel_id == 12
    assert GuildConfig({"id": "1"}).partnership_channels == {}


def test_missing_file_starts_empty(tmp_path):
    registry = GuildConfigRegistry(tmp_path / "absent.json")
    assert registry.load() == 0
    assert registry.guild_ids() == []


@pytest.mark.asyncio
async def test_add_persists_and_survives_reload(guild_configs, guild_config_file):
    raw = new_guild_template()
    raw.update({"id": "55", "general_channel": "77"})

    config = await guild_configs.add(raw, level_channels=[77])
    raw["general_channel"] = "changed"

    assert config.general_channel_id == 77
    assert guild_configs.has(55)

    reloaded = GuildConfigRegistry(guild_config_file)
    reloaded.load()
    assert reloaded.get(55).general_channel_id == 77
    assert reloaded.allowed_level_channels == [77]


@pytest.mark.asyncio
async def test_add_does_not_duplicate_level_channels(guild_configs):
    await guild_configs.add({"id": "1"}, level_channels=[5])
    await guild_configs.add({"id": "2"}, level_channels=[5, 6])
    assert guild_configs.allowed_level_channels == [5, 6]
    assert sorted(guild_configs.guild_ids()) == [1, 2]
