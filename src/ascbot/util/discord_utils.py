"""
Small Discord helpers shared by commands, the wizard and the listeners.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Sequence

import discord

from ascbot.util.logger import get_logger

logger = get_logger("discord_utils")

# Discord refuses bulk deletes of more than 100 messages per call
BULK_DELETE_LIMIT = 100


def user_tag(user: Any) -> str:
    """``name#1234`` for legacy accounts, plain username otherwise."""
    discriminator = getattr(user, "discriminator", None)
    if discriminator and discriminator != "0":
        return f"{user.name}#{discriminator}"
    return str(getattr(user, "name", user))


async def safe_delete_message(message: Any) -> bool:
    """
    Attempt to delete a Discord message, suppressing recoverable errors.

    Returns:
        bool: True if deletion succeeded, False otherwise.
    """
    try:
        await message.delete()
        return True
    except discord.NotFound:
        return False
    except discord.Forbidden:
        logger.warning("[DISCORD UTILS] No permission to delete message %s", message.id)
    except discord.HTTPException as exc:
        logger.error("[DISCORD UTILS] Error deleting message %s: %s", message.id, exc)
    return False


def chunked(items: Sequence[Any], size: int = BULK_DELETE_LIMIT) -> List[List[Any]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def bulk_delete(channel: Any, messages: Iterable[Any]) -> int:
    """Delete ``messages`` from ``channel`` in sequential batches of at most 100.

    Batches run one after another so the request rate stays within Discord's
    limits. Returns how many messages were submitted for deletion.
    """
    pending = [message for message in messages if message is not None]
    deleted = 0
    for batch in chunked(pending):
        if len(batch) == 1:
            if await safe_delete_message(batch[0]):
                deleted += 1
            continue
        try:
            await channel.delete_messages(batch)
            deleted += len(batch)
        except discord.HTTPException as exc:
            logger.warning("[DISCORD UTILS] Bulk delete of %d messages failed: %s", len(batch), exc)
    return deleted


async def try_send(destination: Any, *args, **kwargs) -> Any:
    """Send to ``destination`` and return the message, or ``None`` when Discord refuses."""
    try:
        return await destination.send(*args, **kwargs)
    except discord.HTTPException as exc:
        logger.debug("[DISCORD UTILS] Send to %s failed: %s", getattr(destination, "id", destination), exc)
        return None
