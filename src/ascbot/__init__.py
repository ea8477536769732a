"""ascbot: a prefix-command moderation bot for Discord guilds."""

__version__ = "1.0.0"
