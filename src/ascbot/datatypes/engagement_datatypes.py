"""
Giveaway and starboard records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


@dataclass(slots=True)
class Giveaway:
    """A reaction giveaway.

    ``winner_ids`` is ``None`` until the giveaway is decided; an empty list
    means it was decided without a winner. Once decided the giveaway is
    terminal.
    """

    message_id: int
    channel_id: int
    guild_id: int
    created_by: int
    prize: str
    start: datetime
    end: datetime
    message_requirement: Optional[int] = None
    requirement: Optional[str] = None
    winner_ids: Optional[List[int]] = None

    @property
    def decided(self) -> bool:
        return self.winner_ids is not None

    def seconds_remaining(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        return (self.end - now).total_seconds()


@dataclass(slots=True)
class StarEntry:
    """A message mirrored to the starboard.

    ``user_ids`` holds every distinct user who starred the message, in the
    order they starred it; the star count is its length.
    """

    message_id: int
    guild_id: int
    channel_id: int
    author_id: int
    starboard_id: int
    user_ids: List[int] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def star_count(self) -> int:
        return len(self.user_ids)
