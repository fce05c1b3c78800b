"""Credit balance and usage history endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from merchforge.api.dependencies import get_current_user_id, unauthorized_response
from merchforge.database import get_db
from merchforge.services.credit_service import (
    CreditBalanceResponse,
    CreditUsageEntry,
    get_balance,
    list_usage,
)

router = APIRouter(prefix="/api/v1/credits", tags=["credits"])


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/balance", response_model=CreditBalanceResponse, response_model_by_alias=True)
async def read_balance(
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Return the caller's remaining credits and plan."""
    if user_id is None:
        return unauthorized_response()
    return await get_balance(db, user_id)


@router.get("/usage", response_model=list[CreditUsageEntry], response_model_by_alias=True)
async def read_usage(
    limit: int = Query(20, ge=1, le=100),
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Most recent ledger entries first."""
    if user_id is None:
        return unauthorized_response()
    return await list_usage(db, user_id, limit)
