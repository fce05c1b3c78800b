"""Design library endpoint."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from merchforge.api.dependencies import get_current_user_id, unauthorized_response
from merchforge.database import get_db
from merchforge.services.generation_service import DesignsOverview, get_designs_overview

router = APIRouter(prefix="/api/v1/designs", tags=["designs"])


@router.get("", response_model=DesignsOverview, response_model_by_alias=True)
async def list_designs(
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    if user_id is None:
        return unauthorized_response()
    return await get_designs_overview(db, user_id)
