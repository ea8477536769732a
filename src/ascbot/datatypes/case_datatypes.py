"""
Case records produced by the moderation pipeline.

A :class:`Case` is created exactly once per moderation command and is never
edited afterwards, apart from attaching the rendered audit line.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Tuple

import discord


class CaseAction(Enum):
    """Moderation actions that produce a case."""

    BAN = "BAN"
    SOFT_BAN = "SOFT_BAN"
    KICK = "KICK"
    MUTE = "MUTE"
    WARN = "WARN"

    def __str__(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        """Title-cased name used in logs, e.g. ``Soft ban``."""
        return self.value.replace("_", " ").capitalize()

    @property
    def past_tense(self) -> str:
        """Verb used in audit lines and notifications."""
        return {
            CaseAction.BAN: "Banned",
            CaseAction.SOFT_BAN: "Banned",
            CaseAction.KICK: "Kicked",
            CaseAction.MUTE: "Muted",
            CaseAction.WARN: "Warned",
        }[self]

    @property
    def color(self) -> discord.Color:
        return {
            CaseAction.BAN: discord.Color.red(),
            CaseAction.SOFT_BAN: discord.Color.red(),
            CaseAction.KICK: discord.Color.orange(),
            CaseAction.MUTE: discord.Color.light_grey(),
            CaseAction.WARN: discord.Color.gold(),
        }[self]


@dataclass(frozen=True, slots=True)
class Case:
    """Immutable audit record of one moderation action.

    Attributes:
        guild_id: Guild the case belongs to.
        case_id: Sequential id, unique per guild.
        action: The moderation action performed.
        moderator_id: User who ran the command.
        user_ids: Affected users, in the order they were given.
        reason: Free-text reason supplied by the moderator.
        extras: Ordered extra fields (``"Days of Messages Deleted"``, ``"Note"``, ...).
        timestamp: When the case was created (UTC).
        context_message_id: Optional id of the message that announced the action.
        audit_line: ``"<Kind> by <moderator>: Case <id>"`` once rendered.
    """

    guild_id: int
    case_id: int
    action: CaseAction
    moderator_id: int
    user_ids: Tuple[int, ...]
    reason: str
    extras: Dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    context_message_id: Optional[int] = None
    audit_line: Optional[str] = None

    def with_audit_line(self, audit_line: str) -> "Case":
        """Return a copy of this case carrying the rendered audit line."""
        return replace(self, audit_line=audit_line)
