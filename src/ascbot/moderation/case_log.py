"""
Case log: allocation, persistence and audit relay of moderation cases.

Every moderation command produces exactly one :class:`Case`. The id comes from
an atomic increment of the guild's counter row, run in the same write
transaction as the case insert, so concurrent commands in one guild can never
share or skip an id. Once stored, the case embed is relayed to the guild's
``audit-logs`` webhook; a relay failure is logged and the case stands. Bulk
message deletions are relayed through the same webhook with a JSON transcript.
"""

from __future__ import annotations

import io
import json
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import aiohttp
import discord

from ascbot.configuration.guild_config import GuildConfigRegistry
from ascbot.database.db_connection import ConnectionManager
from ascbot.datatypes.case_datatypes import Case, CaseAction
from ascbot.repositories.case_repo import CaseRepository
from ascbot.util.discord_utils import user_tag
from ascbot.util.logger import get_logger
from ascbot.util.responses import audit_log_line, bulk_delete_summary, moderation_log_embed

logger = get_logger("case_log")

AUDIT_WEBHOOK_NAME = "audit-logs"
BULK_DELETE_FILENAME = "deleted-messages.json"

WebhookFactory = Callable[[Mapping[str, str]], Any]


class CaseLog:
    """Owns case-id allocation and the audit trail for every guild."""

    def __init__(
        self,
        connections: ConnectionManager,
        guild_configs: GuildConfigRegistry,
        *,
        repository: Optional[CaseRepository] = None,
        webhook_factory: Optional[WebhookFactory] = None,
    ) -> None:
        self.connections = connections
        self.guild_configs = guild_configs
        self.repository = repository or CaseRepository()
        self._webhook_factory = webhook_factory
        self._session: Optional[aiohttp.ClientSession] = None

    async def create(
        self,
        guild_id: int,
        moderator: Any,
        action: CaseAction,
        users: Sequence[Any],
        reason: str,
        extras: Optional[Dict[str, str]] = None,
        *,
        context_message_id: Optional[int] = None,
    ) -> Case:
        """Allocate the next id, store the case and relay it to the audit webhook."""
        moderator_tag = user_tag(moderator)

        async with self.connections.transaction() as conn:
            case_id = await self.repository.allocate_case_id(conn, guild_id)
            case = Case(
                guild_id=int(guild_id),
                case_id=case_id,
                action=action,
                moderator_id=int(moderator.id),
                user_ids=tuple(int(user.id) for user in users),
                reason=reason,
                extras=dict(extras or {}),
                context_message_id=context_message_id,
            ).with_audit_line(audit_log_line(action, moderator_tag, case_id))
            await self.repository.insert(conn, case)

        logger.info(
            "[CASE LOG] Case %d (%s) created in guild %s by %s for %d user(s)",
            case.case_id, case.action, guild_id, moderator.id, len(case.user_ids),
        )
        await self.relay(case, moderator_tag, [user_tag(user) for user in users])
        return case

    async def relay(self, case: Case, moderator_tag: str, user_tags: Iterable[str]) -> bool:
        """Post the case embed to the guild's audit webhook.

        Args:
            case: The stored case.
            moderator_tag: Display tag of the moderator, shown on the embed.
            user_tags: Display tags of the punished users.

        Returns:
            Whether the embed was delivered. A missing webhook or a failed
            delivery is logged and never raised.
        """
        embed = moderation_log_embed(case, moderator_tag, list(user_tags))
        return await self._send_audit(case.guild_id, f"case {case.case_id}", embed=embed)

    async def relay_bulk_delete(self, guild_id: int, channel_mention: str, entries: Sequence[Dict[str, Any]]) -> bool:
        """Post a bulk deletion to the audit webhook with a JSON transcript attached.

        Args:
            guild_id: Guild the messages were deleted in.
            channel_mention: Mention of the channel they were deleted from.
            entries: One transcript object per deleted message, oldest first.

        Returns:
            Whether the transcript was delivered.
        """
        transcript = json.dumps(list(entries), indent=2, ensure_ascii=False).encode("utf-8")
        return await self._send_audit(
            guild_id,
            f"bulk deletion of {len(entries)} message(s)",
            content=bulk_delete_summary(len(entries), channel_mention),
            file=discord.File(io.BytesIO(transcript), filename=BULK_DELETE_FILENAME),
        )

    async def _send_audit(self, guild_id: int, what: str, **kwargs: Any) -> bool:
        config = self.guild_configs.get(guild_id)
        record = config.webhook(AUDIT_WEBHOOK_NAME) if config is not None else None
        if record is None:
            logger.debug("[CASE LOG] Guild %s has no %s webhook, not relaying %s",
                         guild_id, AUDIT_WEBHOOK_NAME, what)
            return False

        try:
            webhook = self._make_webhook(record)
            await webhook.send(**kwargs)
        except (discord.HTTPException, aiohttp.ClientError) as exc:
            logger.warning("[CASE LOG] Failed to relay %s for guild %s: %s", what, guild_id, exc)
            return False
        return True

    async def history(self, guild_id: int, user_id: int) -> List[Case]:
        """Every case naming ``user_id`` in ``guild_id``, oldest first."""
        async with self.connections.read() as conn:
            return await self.repository.history(conn, guild_id, user_id)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _make_webhook(self, record: Mapping[str, str]) -> Any:
        if self._webhook_factory is not None:
            return self._webhook_factory(record)
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return discord.Webhook.partial(int(record["id"]), record["token"], session=self._session)
