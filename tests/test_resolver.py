"""Tests for EntityResolver lookup order."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from ascbot.command.resolver import DISCORD_SYNTAX, EntityResolver
from ascbot.datatypes.entity_datatypes import EntityKind

ROLE_ID = 111111111111111111
OTHER_ROLE_ID = 222222222222222222
USER_ID = 333333333333333333


class FakeGuild:
    def __init__(self, roles=(), channels=(), members=()):
        self.id = 999999999999999999
        self.roles = list(roles)
        self.channels = list(channels)
        self.members = list(members)

    def get_role(self, role_id):
        return next((r for r in self.roles if r.id == role_id), None)

    def get_channel(self, channel_id):
        return next((c for c in self.channels if c.id == channel_id), None)

    def get_member(self, user_id):
        return next((m for m in self.members if m.id == user_id), None)


def _client(**overrides):
    client = SimpleNamespace(
        guilds=[],
        get_guild=MagicMock(return_value=None),
        get_user=MagicMock(return_value=None),
        fetch_user=AsyncMock(side_effect=discord.NotFound(MagicMock(status=404), "unknown")),
    )
    for key, value in overrides.items():
        setattr(client, key, value)
    return client


@pytest.fixture
def guild():
    moderators = SimpleNamespace(id=ROLE_ID, name="Moderators")
    # A role whose name looks like the other role's id
    tricky = SimpleNamespace(id=OTHER_ROLE_ID, name=str(ROLE_ID))
    member = SimpleNamespace(id=USER_ID, name="alice", display_name="Alice A", global_name=None)
    return FakeGuild(roles=[moderators, tricky], members=[member])


class TestSyntax:
    def test_user_mentions_with_and_without_bang(self):
        assert DISCORD_SYNTAX.mention_id(f"<@{USER_ID}>", EntityKind.USER) == USER_ID
        assert DISCORD_SYNTAX.mention_id(f"<@!{USER_ID}>", EntityKind.USER) == USER_ID

    def test_role_mention_is_not_a_user_mention(self):
        assert DISCORD_SYNTAX.mention_id(f"<@&{ROLE_ID}>", EntityKind.USER) is None
        assert DISCORD_SYNTAX.mention_id(f"<@&{ROLE_ID}>", EntityKind.ROLE) == ROLE_ID

    def test_short_numbers_are_not_snowflakes(self):
        assert DISCORD_SYNTAX.snowflake_id("12345") is None
        assert DISCORD_SYNTAX.snowflake_id(str(ROLE_ID)) == ROLE_ID


@pytest.mark.asyncio
class TestResolve:
    async def test_role_by_mention(self, guild):
        resolver = EntityResolver(_client())
        entity = await resolver.resolve(f"<@&{ROLE_ID}>", EntityKind.ROLE, guild)
        assert entity.id == ROLE_ID
        assert entity.kind is EntityKind.ROLE

    async def test_id_wins_over_name(self, guild):
        resolver = EntityResolver(_client())
        entity = await resolver.resolve(str(ROLE_ID), EntityKind.ROLE, guild)
        assert entity.id == ROLE_ID

    async def test_unknown_id_does_not_fall_back_to_name(self):
        tricky = SimpleNamespace(id=OTHER_ROLE_ID, name="444444444444444444")
        resolver = EntityResolver(_client())
        entity = await resolver.resolve("444444444444444444", EntityKind.ROLE, FakeGuild(roles=[tricky]))
        assert entity is None

    async def test_name_match_is_case_insensitive(self, guild):
        resolver = EntityResolver(_client())
        entity = await resolver.resolve("moderators", EntityKind.ROLE, guild)
        assert entity.id == ROLE_ID
        assert entity.name == "Moderators"

    async def test_member_by_display_name(self, guild):
        resolver = EntityResolver(_client())
        entity = await resolver.resolve("alice a", EntityKind.USER, guild)
        assert entity.id == USER_ID

    async def test_user_outside_guild_is_fetched(self):
        outsider = SimpleNamespace(id=USER_ID, name="bob")
        client = _client(fetch_user=AsyncMock(return_value=outsider))
        resolver = EntityResolver(client)
        entity = await resolver.resolve(f"<@{USER_ID}>", EntityKind.USER, FakeGuild())
        assert entity.obj is outsider
        client.fetch_user.assert_awaited_once_with(USER_ID)

    async def test_unknown_user_returns_none(self):
        resolver = EntityResolver(_client())
        assert await resolver.resolve(f"<@{USER_ID}>", EntityKind.USER, FakeGuild()) is None

    async def test_guild_by_id(self):
        staff = SimpleNamespace(id=ROLE_ID, name="Staff")
        client = _client(get_guild=MagicMock(return_value=staff))
        resolver = EntityResolver(client)
        entity = await resolver.resolve(str(ROLE_ID), EntityKind.GUILD)
        assert entity.obj is staff

    async def test_empty_token(self, guild):
        resolver = EntityResolver(_client())
        assert await resolver.resolve("   ", EntityKind.ROLE, guild) is None

    async def test_resolve_many_keeps_positions(self, guild):
        resolver = EntityResolver(_client())
        results = await resolver.resolve_many(["moderators", "nope"], EntityKind.ROLE, guild)
        assert results[0].id == ROLE_ID
        assert results[1] is None
