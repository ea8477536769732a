"""
Discord-facing layer: prefix commands, event cogs and the service container.
"""
