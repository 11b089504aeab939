"""
item_catalog.db.models

Persistence schema.

Responsibilities:
- Own the declarative `Base` whose metadata Alembic and `init_db` read.
- Define the `Item` catalog entry. Prices are stored as integer cents.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    # Naive UTC timestamps, matching MySQL `timestamp` columns.
    return datetime.now(UTC).replace(tzinfo=None)


class Item(Base):
    __tablename__ = "items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


# --- Module Notes -----------------------------------------------------------
# Keep in sync with alembic/versions; the API converts decimal prices to cents before
# anything reaches this model.
