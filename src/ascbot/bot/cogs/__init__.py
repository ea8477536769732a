"""
Event cogs.

- **message_listener.py**: message logging, level XP and command dispatch.
- **events_listener.py**: ready, starboard reactions, role creation and bulk deletes.
"""
