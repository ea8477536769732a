"""
Permission predicates and the role-hierarchy checks destructive commands rely on.

A command declares one predicate:

* :class:`StaticMask` - allow when the actor is an administrator or holds every
  permission in the mask.
* :class:`DynamicPredicate` - a function of the actor (and optional target)
  context returning ``True``, ``False`` or ``None``. ``None`` means "no opinion"
  and falls back to the predicate's mask. Predicates that read guild
  configuration set ``requires_config`` and deny outright when the guild has
  none.

:func:`is_manageable` is the per-target hierarchy check every ban/kick/mute
runs before touching a member.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

import discord

from ascbot.configuration.guild_config import GuildConfig
from ascbot.util.logger import get_logger

logger = get_logger("permissions")


@dataclass(frozen=True)
class ActorContext:
    """Who is running a command and where."""

    member: Any
    guild: Any = None
    config: Optional[GuildConfig] = None


@dataclass(frozen=True)
class TargetContext:
    """The user a command acts on; ``member`` is ``None`` when they are not in the guild."""

    user: Any
    member: Any = None


@dataclass(frozen=True)
class StaticMask:
    """A set of platform permissions, stored as the raw bit value."""

    value: int = 0

    @classmethod
    def of(cls, **permissions: bool) -> "StaticMask":
        return cls(discord.Permissions(**permissions).value)

    def allows(self, member: Any) -> bool:
        granted = getattr(member, "guild_permissions", None)
        if granted is None:
            return self.value == 0
        if granted.administrator:
            return True
        return (granted.value & self.value) == self.value


EVERYONE = StaticMask()
ADMINISTRATOR = StaticMask.of(administrator=True)

PredicateFn = Callable[[ActorContext, Optional[TargetContext]], Optional[bool]]


@dataclass(frozen=True)
class DynamicPredicate:
    fn: PredicateFn
    fallback: StaticMask = field(default=ADMINISTRATOR)
    requires_config: bool = False


PermissionPredicate = Union[StaticMask, DynamicPredicate]


class PermissionEvaluator:
    """Evaluates any :data:`PermissionPredicate` against an actor."""

    def evaluate(
        self,
        predicate: PermissionPredicate,
        actor: ActorContext,
        target: Optional[TargetContext] = None,
    ) -> bool:
        """Decide whether ``actor`` may run a command gated by ``predicate``.

        Args:
            predicate: A static permission mask or a dynamic check.
            actor: Who runs the command, where, and the guild configuration.
            target: The user acted on, for predicates that compare roles.

        Returns:
            True when allowed. Dynamic checks that need a configuration deny
            without one; checks that abstain defer to their fallback mask.
        """
        if isinstance(predicate, StaticMask):
            return predicate.allows(actor.member)

        if predicate.requires_config and actor.config is None:
            logger.debug("[PERMISSIONS] Denied %s: guild has no configuration", getattr(actor.member, "id", None))
            return False

        verdict = predicate.fn(actor, target)
        if verdict is None:
            return predicate.fallback.allows(actor.member)
        return bool(verdict)


def access_level(from_index: int = 0) -> DynamicPredicate:
    """Allow members holding any configured access-level role from ``from_index`` on.

    Access-level roles are stored Owner, Admin, Moderator, Trainee; ``from_index=1``
    therefore admits everyone but the Owner entry, matching how moderation commands
    are gated. Members without such a role fall back to the administrator check.
    """

    def check(actor: ActorContext, _target: Optional[TargetContext]) -> Optional[bool]:
        allowed = set(actor.config.access_level_roles[from_index:])
        if any(role.id in allowed for role in getattr(actor.member, "roles", [])):
            return True
        return None

    return DynamicPredicate(fn=check, fallback=ADMINISTRATOR, requires_config=True)


def user_ids(ids_source: Callable[[], Any]) -> DynamicPredicate:
    """Allow only the users ``ids_source()`` returns (e.g. bot owners from the app config)."""

    def check(actor: ActorContext, _target: Optional[TargetContext]) -> Optional[bool]:
        return int(actor.member.id) in {int(uid) for uid in ids_source()}

    return DynamicPredicate(fn=check)


# ==========================================
# Hierarchy
# ==========================================

def top_role_position(member: Any) -> int:
    """Position of the member's highest role, ``-1`` for users outside the guild."""
    top_role = getattr(member, "top_role", None)
    return top_role.position if top_role is not None else -1


def is_owner(guild: Any, user: Any) -> bool:
    return guild is not None and int(getattr(guild, "owner_id", 0) or 0) == int(user.id)


def is_manageable(guild: Any, actor: Any, target: Any) -> bool:
    """Whether ``actor`` may run a destructive action against ``target``.

    The bot's highest role must outrank the target's, the target must not own
    the guild, and the actor must either own the guild or have a higher top
    role than the target.
    """
    if is_owner(guild, target):
        return False

    target_rank = top_role_position(target)
    if top_role_position(guild.me) <= target_rank:
        return False

    return is_owner(guild, actor) or top_role_position(actor) > target_rank
