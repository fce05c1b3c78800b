"""Generator workspace API endpoints.

Generation and the per-variation actions both spend credits, so both go
through the rate limiter as well as the ledger.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from merchforge.api.dependencies import get_current_user_id, render_result, unauthorized_response
from merchforge.database import get_db
from merchforge.integrations.image_provider import ImageProvider, get_image_provider
from merchforge.services.generation_service import (
    GenerateDesignRequest,
    GeneratorOverview,
    generate_design,
    get_generator_overview,
)
from merchforge.services.variation_service import VariationActionRequest, run_variation_action

router = APIRouter(prefix="/api/v1/generator", tags=["generator"])


@router.post("/generate")
async def generate(
    body: GenerateDesignRequest,
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    provider: ImageProvider = Depends(get_image_provider),
):
    """Generate variations for a prompt, one credit each."""
    result = await generate_design(db, provider, user_id, body)
    return render_result(result)


@router.post("/action")
async def variation_action(
    body: VariationActionRequest,
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    provider: ImageProvider = Depends(get_image_provider),
):
    result = await run_variation_action(db, provider, user_id, body)
    return render_result(result)


@router.get("/overview", response_model=GeneratorOverview, response_model_by_alias=True)
async def overview(
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Balance and recent prompts for the generator page."""
    if user_id is None:
        return unauthorized_response()
    return await get_generator_overview(db, user_id)
