"""
Configuration for ascbot.

- **app_configuration.py**: bot-wide YAML settings (prefix, owners, paths,
  timeouts, starboard and leveling defaults).
- **guild_config.py**: the JSON-backed per-guild configuration registry that
  the setup wizard writes to.
"""
