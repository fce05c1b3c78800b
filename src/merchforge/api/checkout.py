"""Public checkout endpoint -- guests may buy, signed-in buyers are linked."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from merchforge.api.dependencies import get_current_user_id, render_result
from merchforge.database import get_db
from merchforge.services.checkout_service import CheckoutRequest, create_checkout_order

router = APIRouter(prefix="/api/v1/checkout", tags=["checkout"])


@router.post("/{product_id}")
async def checkout(
    product_id: str,
    body: CheckoutRequest,
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    result = await create_checkout_order(db, product_id, body, buyer_id=user_id)
    return render_result(result)
