"""Tests for partnership recording, rewards, counts and the partnerships command."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from ascbot.bot.commands.partnerships import PartnershipsCommand
from ascbot.command.permissions import ActorContext
from ascbot.command.registry import CommandContext
from ascbot.datatypes.command_datatypes import CommandInvocation
from ascbot.datatypes.entity_datatypes import EntityKind, ResolvedEntity
from ascbot.engagement.partnerships import PartnershipService, find_invite
from ascbot.errors import NotFoundError
from ascbot.repositories.points_repo import PointsRepository

GUILD_ID = 5
PARTNER_CHANNEL = 20
REWARD_CHANNEL = 30

# A Wednesday
NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


def _bot(reward_channel=None):
    return SimpleNamespace(get_channel=lambda channel_id: reward_channel if channel_id == REWARD_CHANNEL else None)


def _message(message_id, *, user_id=7, channel_id=PARTNER_CHANNEL, content="join discord.gg/abc123",
             created_at=NOW):
    return SimpleNamespace(
        id=message_id,
        content=content,
        created_at=created_at,
        guild=SimpleNamespace(id=GUILD_ID),
        channel=SimpleNamespace(id=channel_id, mention=f"<#{channel_id}>"),
        author=SimpleNamespace(id=user_id, name=f"user{user_id}", discriminator="0", mention=f"<@{user_id}>"),
    )


async def _configure(guild_configs, points=0):
    channels = [{"id": str(PARTNER_CHANNEL), "points": points}] if points else [str(PARTNER_CHANNEL)]
    await guild_configs.add({
        "id": str(GUILD_ID),
        "partnership_channels": channels,
        "partner_rewards_channel": str(REWARD_CHANNEL),
    })


async def _vault(connections, user_id):
    async with connections.read() as conn:
        return (await PointsRepository().get(conn, user_id)).vault


class TestFindInvite:
    @pytest.mark.parametrize("content,code", [
        ("discord.gg/abc123", "abc123"),
        ("come say hi https://discord.com/invite/Some-Server", "Some-Server"),
        ("https://discordapp.com/invite/xyz", "xyz"),
        ("no links here", None),
        ("", None),
    ])
    def test_invite_codes(self, content, code):
        assert find_invite(content) == code


@pytest.mark.asyncio
class TestRecord:
    async def test_invite_in_partnership_channel_is_recorded(self, connections, guild_configs):
        await _configure(guild_configs)
        service = PartnershipService(_bot(), connections, guild_configs)

        assert await service.record(_message(1)) is True

        counts = await service.counts(GUILD_ID, 7, now=NOW)
        assert (counts.week, counts.month, counts.total) == (1, 1, 1)

    async def test_other_channels_and_plain_text_are_ignored(self, connections, guild_configs):
        await _configure(guild_configs)
        service = PartnershipService(_bot(), connections, guild_configs)

        assert await service.record(_message(1, channel_id=99)) is False
        assert await service.record(_message(2, content="we should partner")) is False
        assert (await service.counts(GUILD_ID, 7, now=NOW)).total == 0

    async def test_unconfigured_guild_is_ignored(self, connections, guild_configs):
        service = PartnershipService(_bot(), connections, guild_configs)

        assert await service.record(_message(1)) is False

    async def test_reward_is_credited_and_announced_once(self, connections, guild_configs):
        await _configure(guild_configs, points=25)
        reward_channel = SimpleNamespace(id=REWARD_CHANNEL, send=AsyncMock())
        service = PartnershipService(_bot(reward_channel), connections, guild_configs)
        message = _message(1)

        assert await service.record(message) is True
        assert await service.record(message) is False

        assert await _vault(connections, 7) == 25
        reward_channel.send.assert_awaited_once_with(
            "<@7> Was rewarded **25** points for a partnership in <#20>."
        )

    async def test_counts_split_by_week_and_month(self, connections, guild_configs):
        await _configure(guild_configs)
        service = PartnershipService(_bot(), connections, guild_configs)
        # Monday of this week, the 1st of this month, and last month
        for message_id, created_at in (
            (1, datetime(2024, 5, 13, 0, 0, tzinfo=timezone.utc)),
            (2, datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)),
            (3, datetime(2024, 4, 30, 23, 59, tzinfo=timezone.utc)),
            (4, NOW - timedelta(minutes=5)),
        ):
            await service.record(_message(message_id, created_at=created_at))
        await service.record(_message(5, user_id=8))

        counts = await service.counts(GUILD_ID, 7, now=NOW)

        assert (counts.week, counts.month, counts.total) == (2, 3, 4)


def _ctx(services, tokens=(), author_id=7):
    author = SimpleNamespace(id=author_id, name=f"user{author_id}", discriminator="0")
    message = SimpleNamespace(guild=SimpleNamespace(id=GUILD_ID), author=author, channel=SimpleNamespace(id=1))
    invocation = CommandInvocation(
        actor_id=author_id, channel_id=1, guild_id=GUILD_ID, command_name="partnerships",
        raw_text=" ".join(tokens), tokens=tuple(tokens),
    )
    return CommandContext(invocation=invocation, message=message, services=services, actor=ActorContext(author))


@pytest.mark.asyncio
class TestPartnershipsCommand:
    async def test_own_counts(self, connections, guild_configs):
        await _configure(guild_configs)
        service = PartnershipService(_bot(), connections, guild_configs)
        await service.record(_message(1, created_at=datetime.now(timezone.utc)))
        services = SimpleNamespace(partnerships=service)

        text = await PartnershipsCommand().run(_ctx(services))

        assert text.splitlines() == [
            "**user7**",
            "Partnerships this week: **1**",
            "Partnerships this month: **1**",
            "Partnerships all time: **1**",
        ]

    async def test_no_partnerships_this_week(self, connections, guild_configs):
        await _configure(guild_configs)
        services = SimpleNamespace(partnerships=PartnershipService(_bot(), connections, guild_configs))

        with pytest.raises(NotFoundError) as excinfo:
            await PartnershipsCommand().run(_ctx(services))

        assert excinfo.value.code == "NO_PARTNERS"
        assert excinfo.value.message == "You haven't made any partnerships this week."

    async def test_other_user_without_partnerships(self, connections, guild_configs):
        await _configure(guild_configs)
        other = SimpleNamespace(id=8, name="user8", discriminator="0")
        resolver = SimpleNamespace(resolve=AsyncMock(return_value=ResolvedEntity(EntityKind.USER, 8, "user8", other)))
        services = SimpleNamespace(
            partnerships=PartnershipService(_bot(), connections, guild_configs),
            resolver=resolver,
        )

        with pytest.raises(NotFoundError) as excinfo:
            await PartnershipsCommand().run(_ctx(services, tokens=("<@8>",)))

        assert excinfo.value.message == "That user hasn't made any partnerships this week."

    async def test_unresolvable_user(self, connections, guild_configs):
        services = SimpleNamespace(
            partnerships=PartnershipService(_bot(), connections, guild_configs),
            resolver=SimpleNamespace(resolve=AsyncMock(return_value=None)),
        )

        with pytest.raises(NotFoundError) as excinfo:
            await PartnershipsCommand().run(_ctx(services, tokens=("123",)))

        assert excinfo.value.code == "RESOLVE_ID"
