"""Storefront product lifecycle endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from merchforge.api.dependencies import get_current_user_id, render_result, unauthorized_response
from merchforge.database import get_db
from merchforge.enums import ProductAction
from merchforge.services.product_service import transition_product

router = APIRouter(prefix="/api/v1/products", tags=["products"])


@router.post("/{product_id}/publish")
async def publish(
    product_id: UUID,
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    if user_id is None:
        return unauthorized_response()
    return render_result(await transition_product(db, user_id, product_id, ProductAction.PUBLISH))


@router.post("/{product_id}/archive")
async def archive(
    product_id: UUID,
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    if user_id is None:
        return unauthorized_response()
    return render_result(await transition_product(db, user_id, product_id, ProductAction.ARCHIVE))
