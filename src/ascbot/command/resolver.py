"""
Entity resolution for free-form command arguments.

A token is resolved to a role, channel, user or guild by trying, in order:

1. the platform's mention syntax (``<@id>``, ``<@!id>``, ``<@&id>``, ``<#id>``),
2. a bare snowflake id,
3. a case-insensitive exact name match.

The first step that yields an id decides the lookup; a mention or id that does
not exist in scope is *not* retried as a name. Resolution never mutates
platform state and returns ``None`` for "not found" so callers choose whether
to re-ask or raise.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Pattern

import discord

from ascbot.datatypes.entity_datatypes import EntityKind, ResolvedEntity
from ascbot.util.logger import get_logger

logger = get_logger("entity_resolver")


@dataclass(frozen=True)
class ReferenceSyntax:
    """How a platform writes references to users, roles and channels in text.

    Each pattern must capture the numeric id in group 1 and match the whole
    token.
    """

    user: Pattern[str]
    role: Pattern[str]
    channel: Pattern[str]
    snowflake: Pattern[str]

    def pattern_for(self, kind: EntityKind) -> Optional[Pattern[str]]:
        return {
            EntityKind.USER: self.user,
            EntityKind.ROLE: self.role,
            EntityKind.CHANNEL: self.channel,
        }.get(kind)

    def mention_id(self, token: str, kind: EntityKind) -> Optional[int]:
        pattern = self.pattern_for(kind)
        if pattern is None:
            return None
        match = pattern.fullmatch(token.strip())
        return int(match.group(1)) if match else None

    def snowflake_id(self, token: str) -> Optional[int]:
        match = self.snowflake.fullmatch(token.strip())
        return int(match.group(0)) if match else None


DISCORD_SYNTAX = ReferenceSyntax(
    user=re.compile(r"<@!?(\d{17,20})>"),
    role=re.compile(r"<@&(\d{17,20})>"),
    channel=re.compile(r"<#(\d{17,20})>"),
    snowflake=re.compile(r"\d{17,20}"),
)


def _display_name(obj: Any) -> str:
    return str(getattr(obj, "name", None) or getattr(obj, "display_name", None) or obj)


def _name_matches(obj: Any, wanted: str) -> bool:
    for attr in ("name", "display_name", "global_name"):
        value = getattr(obj, attr, None)
        if isinstance(value, str) and value.lower() == wanted:
            return True
    return False


class EntityResolver:
    """Resolves tokens to platform entities within a scope.

    ``scope`` is the guild for roles, channels and users; for guilds it is
    ignored and the bot's own guild list is searched.
    """

    def __init__(self, client: Any, syntax: ReferenceSyntax = DISCORD_SYNTAX) -> None:
        self.client = client
        self.syntax = syntax

    def reference_id(self, token: str, kind: EntityKind) -> Optional[int]:
        """The id a mention or bare id token points at, without looking it up."""
        mentioned = self.syntax.mention_id(token, kind)
        if mentioned is not None:
            return mentioned
        return self.syntax.snowflake_id(token)

    def is_reference(self, token: str, kind: EntityKind) -> bool:
        return self.reference_id(token, kind) is not None

    async def resolve(self, token: str, kind: EntityKind, scope: Any = None) -> Optional[ResolvedEntity]:
        """Resolve a mention, raw id or name to an entity of ``kind``.

        Args:
            token: User input. Mentions and snowflakes are looked up by id;
                anything else matches names case-insensitively.
            kind: Entity kind to look for.
            scope: Guild to search for roles, channels and members. Users fall
                back to a global fetch when they are not members.

        Returns:
            The entity, or ``None`` when nothing matches.
        """
        token = token.strip()
        if not token:
            return None

        entity_id = self.reference_id(token, kind)
        if entity_id is not None:
            obj = await self._by_id(entity_id, kind, scope)
        else:
            obj = self._by_name(token.lower(), kind, scope)

        if obj is None:
            logger.debug("[RESOLVER] No %s found for %r", kind, token)
            return None
        return ResolvedEntity(kind=kind, id=int(obj.id), name=_display_name(obj), obj=obj)

    async def resolve_many(self, tokens: Iterable[str], kind: EntityKind, scope: Any = None) -> list:
        """Resolve each token in order; unresolved tokens yield ``None`` at their position."""
        return [await self.resolve(token, kind, scope) for token in tokens]

    # --------------------------
    # Lookups
    # --------------------------
    async def _by_id(self, entity_id: int, kind: EntityKind, scope: Any) -> Any:
        if kind is EntityKind.GUILD:
            return self.client.get_guild(entity_id)
        if kind is EntityKind.ROLE:
            return scope.get_role(entity_id) if scope is not None else None
        if kind is EntityKind.CHANNEL:
            return scope.get_channel(entity_id) if scope is not None else None

        member = scope.get_member(entity_id) if scope is not None else None
        if member is not None:
            return member
        user = self.client.get_user(entity_id)
        if user is not None:
            return user
        try:
            return await self.client.fetch_user(entity_id)
        except discord.NotFound:
            return None

    def _by_name(self, wanted: str, kind: EntityKind, scope: Any) -> Any:
        if kind is EntityKind.GUILD:
            candidates = self.client.guilds
        elif scope is None:
            return None
        elif kind is EntityKind.ROLE:
            candidates = scope.roles
        elif kind is EntityKind.CHANNEL:
            candidates = scope.channels
        else:
            candidates = scope.members
        return next((obj for obj in candidates if _name_matches(obj, wanted)), None)
