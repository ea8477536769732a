"""
Best-effort notifications.

Direct messages to punished users and similar courtesy sends must never block
or fail a moderation action. :meth:`Notifier.notify` therefore never raises on
a delivery failure; it returns a :class:`NotificationResult` the caller may
inspect or ignore.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp
import discord

from ascbot.util.logger import get_logger

logger = get_logger("notifier")


@dataclass(frozen=True)
class NotificationResult:
    delivered: bool
    message: Any = None
    error: Optional[BaseException] = None

    def __bool__(self) -> bool:
        return self.delivered


class Notifier:
    """Fire-and-forget sender."""

    async def notify(self, destination: Any, content: Optional[str] = None, **kwargs) -> NotificationResult:
        """Send to ``destination`` without raising.

        Returns:
            A result whose ``delivered`` flag records whether Discord accepted the message.
        """
        try:
            message = await destination.send(content, **kwargs)
        except (discord.HTTPException, aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.debug(
                "[NOTIFIER] Could not notify %s: %s",
                getattr(destination, "id", destination),
                exc,
            )
            return NotificationResult(delivered=False, error=exc)
        return NotificationResult(delivered=True, message=message)
