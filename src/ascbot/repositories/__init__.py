"""
Table repositories.

Each repository handles one table and takes an open ``aiosqlite.Connection``
per call, so callers decide whether work happens inside a write transaction.
"""
