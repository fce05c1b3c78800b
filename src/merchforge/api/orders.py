"""Seller order management endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from merchforge.api.dependencies import get_current_user_id, render_result, unauthorized_response
from merchforge.database import get_db
from merchforge.services.order_service import (
    OrdersOverview,
    OrderTransitionRequest,
    get_orders_overview,
    transition_order,
)

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


@router.get("", response_model=OrdersOverview, response_model_by_alias=True)
async def list_orders(
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """The caller's latest orders as a seller, with revenue and status counts."""
    if user_id is None:
        return unauthorized_response()
    return await get_orders_overview(db, user_id)


@router.post("/{order_id}/transition")
async def transition(
    order_id: str,
    body: OrderTransitionRequest,
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Ship, deliver, or cancel one of the caller's orders."""
    result = await transition_order(db, user_id, order_id, body.action)
    return render_result(result)
