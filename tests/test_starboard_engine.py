"""Tests for starboard reconciliation."""

import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from ascbot.engagement.starboard_engine import STAR_REACTION, StarboardEngine

GUILD_ID = 1
SOURCE_CHANNEL_ID = 10
STARBOARD_ID = 50
MESSAGE_ID = 777


class FakeReaction:
    def __init__(self, emoji, user_ids):
        self.emoji = emoji
        self.user_ids = user_ids

    async def users(self):
        for user_id in self.user_ids:
            yield SimpleNamespace(id=user_id)


class FakeChannel:
    def __init__(self, channel_id, messages=None):
        self.id = channel_id
        self.mention = f"<#{channel_id}>"
        self.messages = messages or {}
        self.posted = []

    async def fetch_message(self, message_id):
        return self.messages[message_id]

    async def send(self, content=None, *, embed=None):
        post = SimpleNamespace(id=9000 + len(self.posted), content=content, embed=embed, edit=AsyncMock())
        self.posted.append(post)
        self.messages[post.id] = post
        return post


def _source_message(channel, starrers):
    message = SimpleNamespace(
        id=MESSAGE_ID,
        channel=channel,
        content="look at this",
        created_at=datetime.now(timezone.utc),
        author=SimpleNamespace(id=3, display_avatar=SimpleNamespace(url="https://cdn.example/a.png")),
        attachments=[],
        jump_url="https://discord.com/channels/1/10/777",
        reactions=[FakeReaction(STAR_REACTION, starrers)] if starrers is not None else [],
    )
    channel.messages[MESSAGE_ID] = message
    return message


@pytest.fixture
def channels():
    return {SOURCE_CHANNEL_ID: FakeChannel(SOURCE_CHANNEL_ID), STARBOARD_ID: FakeChannel(STARBOARD_ID)}


@pytest_asyncio.fixture
async def engine(connections, guild_configs, channels):
    await guild_configs.add({
        "id": str(GUILD_ID),
        "starboard": {"enabled": True, "minimum": 2, "channel_id": str(STARBOARD_ID)},
    })
    bot = SimpleNamespace(get_channel=lambda channel_id: channels.get(channel_id))
    return StarboardEngine(bot, connections, guild_configs)


def _payload(user_id, channel_id=SOURCE_CHANNEL_ID, emoji=STAR_REACTION):
    return SimpleNamespace(
        emoji=emoji, guild_id=GUILD_ID, channel_id=channel_id, message_id=MESSAGE_ID, user_id=user_id,
    )


@pytest.mark.asyncio
class TestReactions:
    async def test_below_minimum_posts_nothing(self, engine, channels):
        _source_message(channels[SOURCE_CHANNEL_ID], [1])
        assert await engine.handle_reaction(_payload(1), added=True) is None
        assert channels[STARBOARD_ID].posted == []

    async def test_reaching_minimum_posts_and_stores(self, engine, channels):
        _source_message(channels[SOURCE_CHANNEL_ID], [1, 2])

        entry = await engine.handle_reaction(_payload(2), added=True)

        assert entry.user_ids == [1, 2]
        assert channels[STARBOARD_ID].posted[0].content == "⭐ 2 | <#10>"
        stored = await engine.get(MESSAGE_ID)
        assert stored.starboard_id == channels[STARBOARD_ID].posted[0].id

    async def test_other_emoji_is_ignored(self, engine, channels):
        _source_message(channels[SOURCE_CHANNEL_ID], [1, 2])
        assert await engine.handle_reaction(_payload(1, emoji="👍"), added=True) is None

    async def test_reactions_in_starboard_channel_are_ignored(self, engine, channels):
        _source_message(channels[SOURCE_CHANNEL_ID], [1, 2])
        assert await engine.handle_reaction(_payload(1, channel_id=STARBOARD_ID), added=True) is None

    async def test_removal_updates_tracked_entry(self, engine, channels):
        _source_message(channels[SOURCE_CHANNEL_ID], [1, 2])
        await engine.handle_reaction(_payload(2), added=True)

        entry = await engine.handle_reaction(_payload(1), added=False)

        assert entry.user_ids == [2]
        assert (await engine.get(MESSAGE_ID)).user_ids == [2]
        post = channels[STARBOARD_ID].posted[0]
        assert post.edit.await_args.kwargs["content"] == "⭐ 1 | <#10>"


@pytest.mark.asyncio
class TestIncrementalUpdates:
    async def test_adding_same_user_twice_counts_once(self, engine, channels):
        message = _source_message(channels[SOURCE_CHANNEL_ID], [1, 2])
        entry = await engine.create(message, [1, 2], engine.guild_configs.get(GUILD_ID))

        await engine.add_star(entry, 5)
        await engine.add_star(entry, 5)

        assert entry.user_ids == [1, 2, 5]
        assert (await engine.get(MESSAGE_ID)).star_count == 3

    async def test_removing_absent_user_is_a_no_op(self, engine, channels):
        message = _source_message(channels[SOURCE_CHANNEL_ID], [1, 2])
        entry = await engine.create(message, [1, 2], engine.guild_configs.get(GUILD_ID))

        await engine.remove_star(entry, 99)

        assert entry.user_ids == [1, 2]
        channels[STARBOARD_ID].posted[0].edit.assert_not_awaited()

    async def test_refresh_without_star_reaction_empties_set(self, engine, channels):
        message = _source_message(channels[SOURCE_CHANNEL_ID], [1, 2])
        entry = await engine.create(message, [1, 2], engine.guild_configs.get(GUILD_ID))
        message.reactions = []

        await engine.refresh_stars(entry)

        assert entry.user_ids == []
        assert (await engine.get(MESSAGE_ID)).user_ids == []

    async def test_refresh_replaces_with_snapshot(self, engine, channels):
        message = _source_message(channels[SOURCE_CHANNEL_ID], [1, 2])
        entry = await engine.create(message, [1, 2], engine.guild_configs.get(GUILD_ID))
        message.reactions = [FakeReaction(STAR_REACTION, [2, 3, 3])]

        await engine.refresh_stars(entry, message)

        assert entry.user_ids == [2, 3]


@pytest.mark.asyncio
class TestConcurrentReactions:
    async def test_overlapping_stars_are_both_kept(self, engine, channels):
        message = _source_message(channels[SOURCE_CHANNEL_ID], [1, 2])
        await engine.create(message, [1, 2], engine.guild_configs.get(GUILD_ID))

        await asyncio.gather(
            engine.handle_reaction(_payload(3), added=True),
            engine.handle_reaction(_payload(4), added=True),
        )

        stored = await engine.get(MESSAGE_ID)
        assert sorted(stored.user_ids) == [1, 2, 3, 4]
        post = channels[STARBOARD_ID].posted[0]
        assert post.edit.await_args.kwargs["content"] == "⭐ 4 | <#10>"

    async def test_first_stars_together_post_once(self, engine, channels):
        _source_message(channels[SOURCE_CHANNEL_ID], [1, 2])

        first, second = await asyncio.gather(
            engine.handle_reaction(_payload(1), added=True),
            engine.handle_reaction(_payload(2), added=True),
        )

        assert len(channels[STARBOARD_ID].posted) == 1
        assert first.starboard_id == second.starboard_id
        assert (await engine.get(MESSAGE_ID)).user_ids == [1, 2]

    async def test_stale_entry_does_not_drop_stored_starrers(self, engine, channels):
        message = _source_message(channels[SOURCE_CHANNEL_ID], [1, 2])
        entry = await engine.create(message, [1, 2], engine.guild_configs.get(GUILD_ID))
        stale = await engine.get(MESSAGE_ID)

        await engine.add_star(entry, 3)
        await engine.add_star(stale, 4)

        assert (await engine.get(MESSAGE_ID)).user_ids == [1, 2, 3, 4]

    async def test_locks_are_released(self, engine, channels):
        _source_message(channels[SOURCE_CHANNEL_ID], [1, 2])
        await engine.handle_reaction(_payload(1), added=True)

        assert engine._locks == {}

    async def test_create_returns_existing_entry(self, engine, channels):
        message = _source_message(channels[SOURCE_CHANNEL_ID], [1, 2])
        config = engine.guild_configs.get(GUILD_ID)
        first = await engine.create(message, [1, 2], config)

        again = await engine.create(message, [1, 2, 3], config)

        assert again.starboard_id == first.starboard_id
        assert len(channels[STARBOARD_ID].posted) == 1
