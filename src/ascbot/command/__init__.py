"""
Command parsing and dispatch.

- **tokenizer.py**: positional tokens and typed ``--name=value`` flags.
- **resolver.py**: mention / id / name resolution of roles, channels, users and guilds.
- **permissions.py**: static and dynamic permission predicates plus hierarchy checks.
- **registry.py**: the :class:`Command` base class and name/alias lookup.
- **dispatcher.py**: turns a message into an invocation, checks permissions,
  runs the command and renders failures.
"""
