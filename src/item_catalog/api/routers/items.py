"""
item_catalog.api.routers.items

CRUD endpoints for catalog items.

Responsibilities:
- Validate request bodies and convert decimal prices to integer cents.
- Delegate persistence to `ItemRepo`.
- Raise classified errors (validation / not found); rendering happens in the app's
  exception handlers.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from starlette.status import HTTP_201_CREATED

from item_catalog.api.deps import item_repo
from item_catalog.db.repositories.items import ItemRepo
from item_catalog.observability import not_found_error, validation_error, validation_fields

router = APIRouter(prefix="/api/items", tags=["items"])

M = TypeVar("M", bound=BaseModel)


class ItemCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    category: str = Field(min_length=1, max_length=100)
    price: float = Field(allow_inf_nan=False)


class ItemUpdateRequest(ItemCreateRequest):
    id: int = Field(gt=0)


class ItemDeleteRequest(BaseModel):
    id: int = Field(gt=0)


class ItemResponse(BaseModel):
    # camelCase on the wire (createdAt/updatedAt), snake_case in Python.
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: int
    name: str
    description: str | None
    category: str
    price: int
    created_at: datetime
    updated_at: datetime


def to_cents(price: float) -> int:
    # Decimal via str() so 19.99 becomes 1999, not 1998 from binary float error.
    return int((Decimal(str(price)) * 100).to_integral_value(rounding=ROUND_HALF_UP))


async def _parse_body(request: Request, model: type[M], message: str) -> M:
    try:
        payload: Any = await request.json()
    except ValueError as e:
        raise validation_error(message, {"body": ["Invalid JSON body"]}) from e
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise validation_error(message, validation_fields(e.errors())) from e


@router.get("", response_model=list[ItemResponse])
async def list_items(repo: ItemRepo = Depends(item_repo)) -> list[ItemResponse]:
    items = await repo.list_all()
    return [ItemResponse.model_validate(i) for i in items]


@router.post("", response_model=ItemResponse, status_code=HTTP_201_CREATED)
async def create_item(
    request: Request,
    repo: ItemRepo = Depends(item_repo),
) -> ItemResponse:
    body = await _parse_body(request, ItemCreateRequest, "Name, category, and price are required")
    item = await repo.create(
        name=body.name,
        description=body.description or None,
        category=body.category,
        price=to_cents(body.price),
    )
    return ItemResponse.model_validate(item)


@router.put("", response_model=ItemResponse)
async def update_item(
    request: Request,
    repo: ItemRepo = Depends(item_repo),
) -> ItemResponse:
    body = await _parse_body(
        request, ItemUpdateRequest, "ID, name, category, and price are required"
    )
    item = await repo.update(
        body.id,
        name=body.name,
        description=body.description or None,
        category=body.category,
        price=to_cents(body.price),
    )
    if item is None:
        raise not_found_error("Item", body.id, message="Item not found")
    return ItemResponse.model_validate(item)


@router.delete("", response_model=ItemResponse)
async def delete_item(
    request: Request,
    repo: ItemRepo = Depends(item_repo),
) -> ItemResponse:
    body = await _parse_body(request, ItemDeleteRequest, "ID is required")
    item = await repo.delete(body.id)
    if item is None:
        raise not_found_error("Item", body.id, message="Item not found")
    return ItemResponse.model_validate(item)


# --- Module Notes -----------------------------------------------------------
# Bodies are parsed by hand rather than as FastAPI body parameters so that bad input
# is a classified 400 (not FastAPI's default 422) and never reaches the repository.
