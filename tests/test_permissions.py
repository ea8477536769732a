"""Tests for permission predicates and the role hierarchy check."""

from types import SimpleNamespace

import discord
import pytest

from ascbot.command.permissions import (
    ADMINISTRATOR,
    EVERYONE,
    ActorContext,
    DynamicPredicate,
    PermissionEvaluator,
    StaticMask,
    access_level,
    is_manageable,
    user_ids,
)
from ascbot.configuration.guild_config import GuildConfig

OWNER, ADMIN, MOD, TRAINEE = 10, 20, 30, 40


def _member(member_id=1, *, roles=(), top=1, **permissions):
    return SimpleNamespace(
        id=member_id,
        roles=[SimpleNamespace(id=role_id) for role_id in roles],
        top_role=SimpleNamespace(position=top),
        guild_permissions=discord.Permissions(**permissions),
    )


@pytest.fixture
def config():
    return GuildConfig({"id": "5", "access_level_roles": [str(OWNER), str(ADMIN), str(MOD), str(TRAINEE)]})


@pytest.fixture
def evaluator():
    return PermissionEvaluator()


class TestStaticMask:
    def test_everyone(self, evaluator):
        assert evaluator.evaluate(EVERYONE, ActorContext(_member()))

    def test_requires_every_bit(self, evaluator):
        mask = StaticMask.of(manage_guild=True, ban_members=True)
        assert not evaluator.evaluate(mask, ActorContext(_member(manage_guild=True)))
        assert evaluator.evaluate(mask, ActorContext(_member(manage_guild=True, ban_members=True)))

    def test_administrator_passes_any_mask(self, evaluator):
        mask = StaticMask.of(manage_guild=True)
        assert evaluator.evaluate(mask, ActorContext(_member(administrator=True)))


class TestDynamicPredicates:
    def test_access_level_role_allows(self, evaluator, config):
        actor = ActorContext(_member(roles=[TRAINEE]), config=config)
        assert evaluator.evaluate(access_level(1), actor)

    def test_access_level_excludes_earlier_entries(self, evaluator, config):
        # The owner entry is index 0, so from_index=1 does not count it
        actor = ActorContext(_member(roles=[OWNER]), config=config)
        assert not evaluator.evaluate(access_level(1), actor)

    def test_no_role_falls_back_to_administrator(self, evaluator, config):
        assert evaluator.evaluate(access_level(1), ActorContext(_member(administrator=True), config=config))
        assert not evaluator.evaluate(access_level(1), ActorContext(_member(), config=config))

    def test_missing_config_denies(self, evaluator):
        actor = ActorContext(_member(roles=[MOD], administrator=True), config=None)
        assert not evaluator.evaluate(access_level(1), actor)

    def test_user_ids(self, evaluator):
        predicate = user_ids(lambda: [7])
        assert evaluator.evaluate(predicate, ActorContext(_member(7)))
        assert not evaluator.evaluate(predicate, ActorContext(_member(8, administrator=True)))

    def test_none_verdict_uses_fallback(self, evaluator):
        predicate = DynamicPredicate(fn=lambda actor, target: None, fallback=ADMINISTRATOR)
        assert evaluator.evaluate(predicate, ActorContext(_member(administrator=True)))
        assert not evaluator.evaluate(predicate, ActorContext(_member()))


class TestIsManageable:
    def _guild(self, *, owner_id=100, bot_top=50):
        return SimpleNamespace(owner_id=owner_id, me=SimpleNamespace(id=999, top_role=SimpleNamespace(position=bot_top)))

    def test_higher_actor_may_act(self):
        assert is_manageable(self._guild(), _member(1, top=20), _member(2, top=10))

    def test_equal_rank_may_not(self):
        assert not is_manageable(self._guild(), _member(1, top=10), _member(2, top=10))

    def test_bot_must_outrank_target(self):
        guild = self._guild(bot_top=10)
        assert not is_manageable(guild, _member(1, top=40), _member(2, top=10))

    def test_owner_cannot_be_targeted(self):
        guild = self._guild(owner_id=2)
        assert not is_manageable(guild, _member(1, top=40), _member(2, top=1))

    def test_owner_actor_bypasses_rank(self):
        guild = self._guild(owner_id=1)
        assert is_manageable(guild, _member(1, top=1), _member(2, top=5))
