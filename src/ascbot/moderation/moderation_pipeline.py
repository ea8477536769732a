"""
The moderation pipeline: one ban/kick style command from arguments to summary.

Stages run strictly in order::

    COLLECTING_ARGS -> VALIDATING -> CHECKING_PRIOR_STATE -> LOGGING
        -> APPLYING -> NOTIFYING -> DONE

Any stage up to and including CHECKING_PRIOR_STATE may abort (``ABORTED``); an
abort there leaves no case and sends nothing. From LOGGING on the case stands
as the record of intent: a target the platform refuses during APPLYING is
reported in the outcome without undoing the targets already actioned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import discord

from ascbot.command.permissions import is_manageable
from ascbot.command.resolver import EntityResolver
from ascbot.command.tokenizer import split_overload
from ascbot.datatypes.case_datatypes import Case
from ascbot.datatypes.command_datatypes import FlagValue
from ascbot.datatypes.entity_datatypes import EntityKind
from ascbot.errors import (
    CommandError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    TransportError,
    ValidationError,
)
from ascbot.moderation.actions import ModerationAction
from ascbot.moderation.case_log import CaseLog
from ascbot.moderation.notifier import Notifier
from ascbot.util.discord_utils import user_tag
from ascbot.util.logger import get_logger
from ascbot.util.responses import dm_punishment, excluded_note, member_remove_successful

logger = get_logger("moderation_pipeline")


class ModerationStage(Enum):
    COLLECTING_ARGS = "collecting_args"
    VALIDATING = "validating"
    CHECKING_PRIOR_STATE = "checking_prior_state"
    LOGGING = "logging"
    APPLYING = "applying"
    NOTIFYING = "notifying"
    DONE = "done"
    ABORTED = "aborted"

    def __str__(self) -> str:
        return self.value


@dataclass
class ModerationRequest:
    """Everything a moderation command hands to the pipeline."""

    guild: Any
    moderator: Any
    channel: Any
    tokens: Sequence[str]
    flags: Mapping[str, FlagValue] = field(default_factory=dict)


@dataclass
class ModerationOutcome:
    """Result of one pipeline run.

    Attributes:
        stage: ``DONE`` or ``ABORTED``.
        aborted_during: The stage that raised, when aborted.
        error: The abort reason, when aborted.
        case: The created case, once LOGGING has run.
        actioned: Users the action was applied to.
        excluded: Users skipped because they were already in the target state.
        failures: Users the platform refused during APPLYING, keyed by id.
        summary: The summary text posted to the channel (``None`` when silent).
    """

    stage: ModerationStage = ModerationStage.COLLECTING_ARGS
    aborted_during: Optional[ModerationStage] = None
    error: Optional[CommandError] = None
    case: Optional[Case] = None
    actioned: List[Any] = field(default_factory=list)
    excluded: List[Any] = field(default_factory=list)
    failures: Dict[int, BaseException] = field(default_factory=dict)
    summary: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self.stage is ModerationStage.ABORTED

    def raise_if_aborted(self) -> None:
        if self.error is not None:
            raise self.error


class ModerationPipeline:
    """Runs a :class:`ModerationAction` through every moderation stage."""

    def __init__(self, resolver: EntityResolver, case_log: CaseLog, notifier: Optional[Notifier] = None) -> None:
        self.resolver = resolver
        self.case_log = case_log
        self.notifier = notifier or Notifier()

    async def run(self, action: ModerationAction, request: ModerationRequest) -> ModerationOutcome:
        """Drive one moderation command from argument parsing to the summary.

        Args:
            action: The platform action to apply to each target.
            request: The invocation, its flags and the acting moderator.

        Returns:
            The outcome. When a stage fails validation the outcome is aborted,
            carries the error and no case is created; callers use
            :meth:`ModerationOutcome.raise_if_aborted` to surface it.
        """
        outcome = ModerationOutcome()

        try:
            targets, reason = await self._collect_args(request)

            outcome.stage = ModerationStage.VALIDATING
            self._validate(action, request, targets, reason)

            outcome.stage = ModerationStage.CHECKING_PRIOR_STATE
            actionable, excluded = await self._check_prior_state(action, request, targets)
        except CommandError as error:
            outcome.aborted_during = outcome.stage
            outcome.stage = ModerationStage.ABORTED
            outcome.error = error
            logger.info("[PIPELINE] %s by %s aborted during %s: %s",
                        action.name, request.moderator.id, outcome.aborted_during, error.code)
            return outcome

        outcome.excluded = excluded

        outcome.stage = ModerationStage.LOGGING
        extras = action.extras(request.flags)
        if excluded:
            extras["Note"] = excluded_note(len(excluded), kick=action.kick)
        outcome.case = await self.case_log.create(
            request.guild.id,
            request.moderator,
            action.case_action(request.flags),
            actionable,
            reason,
            extras,
        )

        outcome.stage = ModerationStage.APPLYING
        await self._apply(action, request, outcome, actionable, reason)

        outcome.stage = ModerationStage.NOTIFYING
        if not request.flags.get("silent"):
            outcome.summary = member_remove_successful(
                [user_tag(user) for user in outcome.actioned],
                len(excluded),
                kick=action.kick,
                failed=len(outcome.failures),
            )
            await self.notifier.notify(request.channel, outcome.summary)

        outcome.stage = ModerationStage.DONE
        logger.info("[PIPELINE] Case %d: %s applied to %d user(s), %d excluded, %d failed",
                    outcome.case.case_id, outcome.case.action, len(outcome.actioned),
                    len(excluded), len(outcome.failures))
        return outcome

    # --------------------------
    # Stages
    # --------------------------
    async def _collect_args(self, request: ModerationRequest) -> Tuple[List[Any], str]:
        """Resolve the leading user references and join the rest into the reason."""
        targets: List[Any] = []
        seen = set()
        leading = 0
        for token in request.tokens:
            if not self.resolver.is_reference(token, EntityKind.USER):
                break
            leading += 1
            entity = await self.resolver.resolve(token, EntityKind.USER, request.guild)
            if entity is None:
                raise NotFoundError("RESOLVE_ID", token)
            if entity.id not in seen:
                seen.add(entity.id)
                targets.append(entity.obj)

        _, reason = split_overload(request.tokens, leading)
        return targets, reason

    def _validate(self, action: ModerationAction, request: ModerationRequest, targets: List[Any], reason: str) -> None:
        if not reason:
            raise ValidationError("PROVIDE_REASON")
        if not targets:
            raise ValidationError("MENTION_USERS", not action.kick)
        action.validate_flags(request.flags)

    async def _check_prior_state(
        self,
        action: ModerationAction,
        request: ModerationRequest,
        targets: List[Any],
    ) -> Tuple[List[Any], List[Any]]:
        guild = request.guild

        for user in targets:
            member = guild.get_member(int(user.id))
            if member is not None and not is_manageable(guild, request.moderator, member):
                raise PermissionDeniedError("CANNOT_ACTION_USER", action.name, len(targets) > 1)

        actionable: List[Any] = []
        excluded: List[Any] = []
        for user in targets:
            try:
                done = await action.already_applied(guild, user)
            except discord.HTTPException as exc:
                logger.warning("[PIPELINE] Prior state lookup for %s failed: %s", user.id, exc)
                raise TransportError("TRANSPORT_FAILURE", "check who is already removed") from exc
            (excluded if done else actionable).append(user)

        if not actionable:
            raise ConflictError("ALREADY_REMOVED_USERS", len(targets) > 1, action.kick)
        return actionable, excluded

    async def _apply(
        self,
        action: ModerationAction,
        request: ModerationRequest,
        outcome: ModerationOutcome,
        actionable: List[Any],
        reason: str,
    ) -> None:
        guild = request.guild
        dm_text = dm_punishment(guild.name, outcome.case.action, reason)

        for user in actionable:
            await self.notifier.notify(user, dm_text)
            try:
                await action.apply(guild, user, reason=outcome.case.audit_line, flags=request.flags)
            except discord.HTTPException as exc:
                logger.warning("[PIPELINE] %s of %s failed for case %d: %s",
                               action.name, user.id, outcome.case.case_id, exc)
                outcome.failures[int(user.id)] = exc
                continue
            outcome.actioned.append(user)
