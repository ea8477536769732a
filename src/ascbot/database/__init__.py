"""
Database package for ascbot.

- **db_connection.py**: the single shared aiosqlite connection, serialised
  write transactions and the ``query`` primitive.
- **db_schema.py**: table and index creation.
- **database.py**: startup/shutdown coordinator.
"""
