"""
Utility helpers for ascbot.

- **logger.py**: Centralized logging with colored console output routed through
  prompt_toolkit and a per-session log file. Silences chatty library loggers.

- **responses.py**: User-facing text tables (command errors and responses) and
  the embed builders shared by the moderation, giveaway and starboard code.

- **discord_utils.py**: Stateless platform helpers (role ranks, manageability,
  chunked bulk deletion, best-effort message deletion).
"""
