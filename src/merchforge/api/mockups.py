"""Mockup editor endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from merchforge.api.dependencies import get_current_user_id, render_result, unauthorized_response
from merchforge.database import get_db
from merchforge.enums import ExportFormat
from merchforge.services.mockup_service import (
    MockupsOverview,
    SaveMockupRequest,
    create_blank_mockup,
    delete_mockup,
    export_mockup,
    get_mockup_editor_data,
    get_mockups_overview,
    save_mockup_state,
)
from merchforge.services.results import CamelModel

router = APIRouter(prefix="/api/v1/mockups", tags=["mockups"])


class ExportRequest(CamelModel):
    format: ExportFormat = Field(default=ExportFormat.PNG)


@router.get("", response_model=MockupsOverview, response_model_by_alias=True)
async def list_mockups(
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    if user_id is None:
        return unauthorized_response()
    return await get_mockups_overview(db, user_id)


@router.post("")
async def create_mockup(
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    if user_id is None:
        return unauthorized_response()
    return render_result(await create_blank_mockup(db, user_id))


@router.get("/{mockup_id}")
async def read_mockup(
    mockup_id: UUID,
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    if user_id is None:
        return unauthorized_response()
    return render_result(await get_mockup_editor_data(db, user_id, mockup_id))


@router.put("/{mockup_id}")
async def save_mockup(
    mockup_id: UUID,
    body: SaveMockupRequest,
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Persist the editor's current composition."""
    if user_id is None:
        return unauthorized_response()
    return render_result(await save_mockup_state(db, user_id, mockup_id, body))


@router.delete("/{mockup_id}")
async def remove_mockup(
    mockup_id: UUID,
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    if user_id is None:
        return unauthorized_response()
    return render_result(await delete_mockup(db, user_id, mockup_id))


@router.post("/{mockup_id}/export")
async def export(
    mockup_id: UUID,
    body: ExportRequest,
    user_id: UUID | None = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    if user_id is None:
        return unauthorized_response()
    return render_result(await export_mockup(db, user_id, mockup_id, body.format))
