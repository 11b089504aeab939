"""
item_catalog.db.repositories.items

Repository for `Item` entities.

Responsibilities:
- List, fetch, create, update and delete catalog items.
- Route every statement through the database operation logger.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from item_catalog.db.models import Item, utcnow
from item_catalog.observability.database import (
    DEFAULT_SLOW_QUERY_MS,
    log_delete,
    log_insert,
    log_select,
    log_update,
)

TABLE = Item.__tablename__


class ItemRepo:
    def __init__(
        self,
        session: AsyncSession,
        *,
        request_id: str | None = None,
        slow_query_ms: int = DEFAULT_SLOW_QUERY_MS,
    ) -> None:
        self._session = session
        self._context: dict[str, Any] = {"slow_query_ms": slow_query_ms}
        if request_id is not None:
            self._context["request_id"] = request_id

    async def _select(self, stmt: Any) -> list[Item]:
        async def run() -> list[Item]:
            return list((await self._session.execute(stmt)).scalars().all())

        return await log_select(TABLE, run, query=str(stmt), **self._context)

    async def list_all(self) -> list[Item]:
        return await self._select(select(Item).order_by(Item.created_at, Item.id))

    async def get(self, item_id: int) -> Item | None:
        rows = await self._select(select(Item).where(Item.id == item_id))
        return rows[0] if rows else None

    async def create(
        self,
        *,
        name: str,
        category: str,
        price: int,
        description: str | None = None,
    ) -> Item:
        now = utcnow()
        item = Item(
            name=name,
            description=description,
            category=category,
            price=price,
            created_at=now,
            updated_at=now,
        )

        async def run() -> Item:
            self._session.add(item)
            await self._session.flush()
            await self._session.commit()
            return item

        return await log_insert(TABLE, run, **self._context)

    async def update(
        self,
        item_id: int,
        *,
        name: str,
        category: str,
        price: int,
        description: str | None = None,
    ) -> Item | None:
        """
        Update, then re-select. Returns None when no row has `item_id`.
        """

        stmt = (
            update(Item)
            .where(Item.id == item_id)
            .values(
                name=name,
                description=description,
                category=category,
                price=price,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )

        async def run() -> Any:
            result = await self._session.execute(stmt)
            await self._session.commit()
            return result

        await log_update(TABLE, run, query=str(stmt), **self._context)
        # Refresh identity-map state; the bulk UPDATE bypassed it.
        self._session.expire_all()
        return await self.get(item_id)

    async def delete(self, item_id: int) -> Item | None:
        """
        Select then delete, so the removed row can be returned.
        """

        item = await self.get(item_id)
        if item is None:
            return None

        stmt = delete(Item).where(Item.id == item_id)

        async def run() -> Any:
            result = await self._session.execute(stmt)
            await self._session.commit()
            return result

        await log_delete(TABLE, run, query=str(stmt), **self._context)
        return item


# --- Module Notes -----------------------------------------------------------
# Each mutating call commits its own unit of work; there are no multi-step
# transactions in this service.
