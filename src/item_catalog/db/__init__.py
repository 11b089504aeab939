"""
item_catalog.db

Persistence (SQLAlchemy async).

Responsibilities:
- Declare the `items` schema.
- Build engines and per-request sessions.
- Keep SQL inside `repositories`.
"""


# --- Module Notes -----------------------------------------------------------
# MySQL in production (aiomysql), aiosqlite locally and in tests; nothing above the
# repository layer depends on which one is configured.
