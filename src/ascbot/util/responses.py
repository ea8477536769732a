"""
User-facing text for ascbot.

Error texts live in :data:`COMMAND_ERRORS`, keyed by the code carried on a
:class:`ascbot.errors.CommandError`. Entries are either plain strings or
callables receiving the error's interpolation arguments. The remaining helpers
render success messages and embeds for moderation, giveaways, the starboard and
points/levels.
"""

from __future__ import annotations

import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

import discord

from ascbot.datatypes.case_datatypes import Case, CaseAction
from ascbot.util.discord_utils import user_tag
from ascbot.util.format_utils import humanize_timestamp


def _plural(count: int, singular: str, plural: Optional[str] = None) -> str:
    return singular if count == 1 else (plural or f"{singular}s")


COMMAND_ERRORS: Dict[str, Union[str, Callable[..., str]]] = {
    "PROVIDE_REASON": "Please supply a reason for this action.",
    "MENTION_USERS": lambda users=True: f"Please mention at least 1 {'user' if users else 'member'}.",
    "MENTION_USER": "Please mention a user.",
    "INVALID_FLAG_TYPE": lambda flag, expected: f"Flag {flag} must be {expected}",
    "INVALID_FLAG": lambda provided, valid: (
        f"Provided flag '{provided}' is not valid, valid flags for this command are: {', '.join(valid)}"
    ),
    "CANNOT_ACTION_USER": lambda action, multiple=False: (
        f"You cannot perform a {str(action).lower().replace('_', ' ')} on "
        f"{'one of the users you mentioned' if multiple else 'this user'}"
    ),
    "INSUFFICIENT_PERMISSIONS": "You have insufficient permissions to perform this action.",
    "ALREADY_REMOVED_USERS": lambda multiple, kick=True: (
        f"{'All of the members' if multiple else 'The member'} you mentioned "
        f"{'have' if multiple else 'has'} already "
        f"{'left or been kicked' if kick else 'been banned'}."
    ),
    "RESOLVE_ID": lambda raw_id: (
        "An ID or user mention was provided, but the user couldn't be resolved, "
        f"are you sure its valid? ({raw_id})"
    ),
    "CONFIG_EXISTS": "Configuration is already setup for this guild",
    "SETUP_IN_PROGRESS": "A setup is already running for this guild.",
    "EDITED_INVOCATION": "This command does not support being edited.",
    "WIZARD_TIMEOUT": lambda minutes=3: f"{minutes} Minute response timeout, cancelling command",
    "INVALID_MODE": lambda valid: f"Invalid mode, valid modes are: {', '.join(valid)}",
    "LOCKED_POINTS": lambda own=True: (
        "Your points are currently locked, try again shortly."
        if own else
        "That user's points are currently locked, try again shortly."
    ),
    "INVALID_NUMBER": lambda minimum=1: f"Please provide a whole number that is at least {minimum}.",
    "NOT_ENOUGH_POINTS": lambda amount: f"You don't have enough points in your vault to transfer {amount}.",
    "UNKNOWN_GIVEAWAY": lambda raw_id: f"There is no running giveaway with the message ID '{raw_id}'.",
    "GIVEAWAY_ENDED": "That giveaway has already ended.",
    "INVALID_DURATION": "Please provide a duration such as `30m`, `2h` or `1d`.",
    "PROVIDE_PRIZE": "Please provide a prize after the duration.",
    "NO_PARTNERS": lambda own=True: (
        "You haven't made any partnerships this week."
        if own else
        "That user hasn't made any partnerships this week."
    ),
    "TRANSPORT_FAILURE": lambda action="complete that action": (
        f"Discord refused the request, I couldn't {action}."
    ),
}


def render_command_error(code: str, *params) -> str:
    """Render the text for an error code, interpolating ``params`` when callable."""
    template = COMMAND_ERRORS.get(code)
    if template is None:
        return code
    if callable(template):
        return template(*params)
    return template


INSUFFICIENT_PERMISSIONS = COMMAND_ERRORS["INSUFFICIENT_PERMISSIONS"]


def unexpected_error(error: BaseException) -> str:
    """Short generic failure shown when a command crashes."""
    return f"An unexpected error has occurred: `{type(error).__name__}`"


# ==========================================
# Moderation
# ==========================================

def audit_log_line(action: CaseAction, moderator_tag: str, case_id: int) -> str:
    """``"Banned by mod#0001: Case 12"``, used as the platform audit-log reason."""
    return f"{action.past_tense} by {moderator_tag}: Case {case_id}"


def dm_punishment(guild_name: str, action: CaseAction, reason: str) -> str:
    return f"You have been {action.past_tense.lower()} from {guild_name} for: {reason}"


def member_remove_successful(
    actioned_tags: Sequence[str],
    excluded: int = 0,
    *,
    kick: bool = True,
    failed: int = 0,
) -> str:
    """Summarise a kick/ban run.

    ``excluded`` targets were skipped because they were already removed;
    ``failed`` targets were attempted but the platform refused.
    """
    verb = "Kicked" if kick else "Banned"
    if len(actioned_tags) == 1:
        content = [f"{verb} {actioned_tags[0]}."]
    else:
        content = [f"{verb} {len(actioned_tags)} members."]

    if excluded:
        content.append(
            f"Couldn't {'kick' if kick else 'ban'} {excluded} other {_plural(excluded, 'user')}, "
            f"as they had already {'left/been kicked' if kick else 'been banned'}."
        )
    if failed:
        content.append(f"Failed to {'kick' if kick else 'ban'} {failed} {_plural(failed, 'user')}.")
    return "\n".join(content)


def excluded_note(excluded: int, *, kick: bool = True) -> str:
    """Case extra recorded when part of the targets were already removed."""
    return (
        f"{excluded} Other {_plural(excluded, 'user was', 'users were')} attempted to be "
        f"{'kicked' if kick else 'banned'}, however they were already "
        f"{'removed' if kick else 'banned'}."
    )


def moderation_log_embed(case: Case, moderator_tag: str, user_tags: Sequence[str]) -> discord.Embed:
    """Embed relayed to the guild's audit webhook for a new case."""
    description = [f"ASC Logs: {case.action.label}"]
    description.extend(f"{key}: {value}" for key, value in case.extras.items())
    description.append(f"Reason: {case.reason}")

    embed = discord.Embed(
        title=f"Case {case.case_id}",
        description="\n".join(description),
        color=case.action.color,
        timestamp=case.timestamp,
    )
    embed.add_field(name="Moderator", value=moderator_tag, inline=True)
    embed.add_field(
        name=f"User{'s' if len(user_tags) > 1 else ''} punished",
        value="\n".join(user_tags) or "None",
        inline=True,
    )
    return embed


def history_lines(cases: Iterable[Case], moderator_tags: Dict[int, str]) -> List[str]:
    lines: List[str] = []
    for case in cases:
        moderator = moderator_tags.get(case.moderator_id, str(case.moderator_id))
        stamp = case.timestamp.strftime("%d/%m/%Y %I:%M %p")
        lines.append(f"{case.case_id}: {case.action.label} {moderator} ({stamp}): {case.reason}")
        lines.extend(f"{name}: {value}" for name, value in case.extras.items())
    return lines


# ==========================================
# Giveaways
# ==========================================

def giveaway_embed(prize: str, end_at: datetime.datetime, *, message_requirement: Optional[int] = None,
                   requirement: Optional[str] = None) -> discord.Embed:
    embed = discord.Embed(
        title=prize,
        description=f"React with 🎁 to enter!\nEnds <t:{int(end_at.timestamp())}:R>",
        color=discord.Color.blurple(),
        timestamp=end_at,
    )
    if message_requirement:
        embed.add_field(name="Message Requirement", value=f"{message_requirement} messages", inline=False)
    if requirement:
        embed.add_field(name="Requirement", value=requirement, inline=False)
    embed.set_footer(text="Ends at")
    return embed


def giveaway_end_embed(prize: str, end_at: datetime.datetime,
                       winner_mentions: Sequence[str] = ()) -> discord.Embed:
    embed = discord.Embed(
        title=prize,
        description=f"Winner: {', '.join(winner_mentions)}" if winner_mentions else "No winner.",
        color=discord.Color.dark_grey(),
        timestamp=end_at,
    )
    embed.set_footer(text="Ended at")
    return embed


def won_giveaway(winner_mention: str, prize: str, jump_url: str) -> str:
    return f"Congratulations {winner_mention}! You won **{prize}**\n<{jump_url}>"


def no_giveaway_winners(prize: str, message_requirement: bool = False) -> str:
    text = f"No valid entrants for **{prize}**, so there is no winner."
    if message_requirement:
        text += " Nobody who entered met the message requirement."
    return text


# ==========================================
# Starboard
# ==========================================

def starboard_content(star_count: int, channel_mention: str) -> str:
    return f"⭐ {star_count} | {channel_mention}"


def starboard_embed(message) -> discord.Embed:
    embed = discord.Embed(
        description=message.content or "",
        color=discord.Color.gold(),
        timestamp=message.created_at,
    )
    embed.set_author(name=str(message.author), icon_url=message.author.display_avatar.url)
    embed.add_field(name="Source", value=f"[Jump!]({message.jump_url})", inline=False)
    image = next((a for a in message.attachments if (a.content_type or "").startswith("image/")), None)
    if image is not None:
        embed.set_image(url=image.url)
    embed.set_footer(text=str(message.id))
    return embed


# ==========================================
# Points & levels
# ==========================================

def transfer_success(user_mention: str, amount: int) -> str:
    return f"Successfully transferred **{amount}** {_plural(amount, 'point')} to {user_mention}."


def level_lines(tag: str, level: int, xp: int, threshold: int) -> str:
    return "\n".join([
        f"**{tag}**",
        f"Level **{level}**",
        f"XP: **{xp}**/**{threshold}**",
    ])


def level_up(user_mention: str, new_level: int) -> str:
    return f"Congrats {user_mention}, you're now level {new_level}."


def top_embed(rows: Sequence[tuple], guild_name: str) -> discord.Embed:
    """``rows`` are ``(user_tag, level)`` pairs already sorted best first."""
    return discord.Embed(
        title=f"{guild_name} Leaderboards",
        description="\n".join(
            f"**#{index + 1}** - {tag} Level {level}" for index, (tag, level) in enumerate(rows)
        ) or "Nobody has any levels yet.",
        color=discord.Color.from_rgb(255, 255, 255),
    )


# ==========================================
# Audit transcripts
# ==========================================

UNKNOWN_AUTHOR = "Unknown User#0000"


def deleted_message_json(message_id: int, message=None, author_id: Optional[int] = None) -> Dict[str, object]:
    """One entry of a bulk-deletion transcript.

    Args:
        message_id: Id of the deleted message.
        message: The cached message, or ``None`` when Discord had not cached it.
        author_id: Author recorded in the message log, used when ``message`` is missing.

    Returns:
        A JSON-serialisable dict with the author, content lines, first embed,
        mentions and the send time as ``DD/MM/YYYY HH:MM AM``.
    """
    if message is not None:
        author: object = {"id": str(message.author.id), "tag": user_tag(message.author)}
        content = message.content.split("\n") if message.content else ["No content."]
        embed = message.embeds[0].to_dict() if message.embeds else None
        mentions = {
            "channels": [str(channel.id) for channel in message.channel_mentions],
            "roles": [str(role.id) for role in message.role_mentions],
            "users": [str(user.id) for user in message.mentions],
        }
        sent_at = message.created_at
    else:
        author = {"id": str(author_id), "tag": None} if author_id is not None else UNKNOWN_AUTHOR
        content = ["Message content was not cached."]
        embed = None
        mentions = {"channels": [], "roles": [], "users": []}
        sent_at = discord.utils.snowflake_time(int(message_id))

    return {
        "author": author,
        "content": content,
        "embed": embed,
        "id": str(message_id),
        "mentions": mentions,
        "sentAt": humanize_timestamp(sent_at),
    }


def bulk_delete_summary(amount: int, channel_mention: str) -> str:
    return f"**{amount}** {_plural(amount, 'message')} bulk deleted in {channel_mention}, transcript attached."


# ==========================================
# Partnerships
# ==========================================

def partnership_counts(tag: str, week: int, month: int, total: int) -> str:
    return "\n".join([
        f"**{tag}**",
        f"Partnerships this week: **{week}**",
        f"Partnerships this month: **{month}**",
        f"Partnerships all time: **{total}**",
    ])


def partner_reward(user_mention: str, points: int, channel_mention: str) -> str:
    return (
        f"{user_mention} Was rewarded **{points}** {_plural(points, 'point')} "
        f"for a partnership in {channel_mention}."
    )
