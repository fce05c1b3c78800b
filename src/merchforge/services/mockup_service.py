"""Mockup persistence: the editor document lifecycle and the user's mockup list."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Literal, Optional, Union

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from merchforge.database import transaction
from merchforge.enums import ExportFormat, GarmentType, MockupStatus
from merchforge.exceptions import NotFoundError, ServiceError, ValidationFailedError
from merchforge.integrations.image_provider import version_token, with_query_params
from merchforge.services import jsonb
from merchforge.services.canvas_state import (
    DEFAULT_DESIGN_IMAGE,
    CanvasState,
    coerce_hex_color,
    default_canvas_state,
    derive_preview_url,
    dump_canvas_state,
    parse_canvas_state,
)
from merchforge.services.results import CamelModel, ServiceFailure, server_failure

log = structlog.get_logger()

BLANK_MOCKUP_NAME = "Untitled Mockup"
MIN_NAME_LENGTH = 2

MOCKUP_NOT_FOUND = "Mockup was not found."
MOCKUP_SERVER_ERROR = "Unable to update this mockup right now."
MOCKUPS_OVERVIEW_LIMIT = 20

EXPORT_DPI = {ExportFormat.PNG: 150, ExportFormat.PRINT_READY: 300}
_EXPORT_PARAM = {ExportFormat.PNG: "png", ExportFormat.PRINT_READY: "print"}
_EXPORT_MESSAGES = {
    ExportFormat.PNG: "PNG export ready.",
    ExportFormat.PRINT_READY: "300 DPI export ready.",
}

STATUS_LABELS = {
    MockupStatus.DRAFT: "Draft",
    MockupStatus.READY: "Ready",
    MockupStatus.EXPORTED: "Exported",
}


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class MockupEditorData(CamelModel):
    ok: Literal[True] = True
    mockup_id: uuid.UUID
    name: str
    garment_type: GarmentType
    garment_label: str
    garment_color: str
    status: MockupStatus
    status_label: str
    preview_url: Optional[str] = None
    print_ready_url: Optional[str] = None
    dpi: Optional[int] = None
    updated_at: Optional[datetime] = None
    state: CanvasState


class SaveMockupRequest(CamelModel):
    name: str = ""
    garment_type: Optional[GarmentType] = None
    garment_color: Optional[str] = None
    state: Any = None


class MockupCreated(CamelModel):
    ok: Literal[True] = True
    mockup_id: uuid.UUID
    redirect_path: str


class MockupExported(CamelModel):
    ok: Literal[True] = True
    mockup_id: uuid.UUID
    download_url: str
    dpi: int
    message: str


class MockupDeleted(CamelModel):
    ok: Literal[True] = True
    mockup_id: uuid.UUID
    message: str = "Mockup deleted."


class MockupCard(CamelModel):
    mockup_id: uuid.UUID
    name: str
    garment_type: GarmentType
    garment_label: str
    garment_color: str
    status: MockupStatus
    status_label: str
    preview_url: str
    updated_at: datetime


class MockupsOverview(CamelModel):
    items: list[MockupCard]


MockupEditorResult = Union[MockupEditorData, ServiceFailure]
MockupExportResult = Union[MockupExported, ServiceFailure]


def status_label(status: MockupStatus | str) -> str:
    return STATUS_LABELS.get(MockupStatus(status), "Draft")


_GARMENT_LABEL_OVERRIDES = {GarmentType.T_SHIRT: "T-Shirt"}


def garment_label(garment_type: GarmentType) -> str:
    return _GARMENT_LABEL_OVERRIDES.get(
        garment_type, garment_type.value.replace("_", " ").title(),
    )


# ---------------------------------------------------------------------------
# DB helpers
# ---------------------------------------------------------------------------

_OWNED_MOCKUP_QUERY = (
    "SELECT m.mockup_id, m.name, m.garment_type, m.garment_color, m.canvas_state, "
    "m.preview_url, m.print_ready_url, m.dpi, m.status, m.updated_at, "
    "d.primary_image_url, d.thumbnail_url "
    "FROM mockups m LEFT JOIN designs d ON d.design_id = m.design_id "
    "WHERE m.mockup_id = :mockup_id AND m.user_id = :user_id"
)


async def _load_owned_mockup(
    db: AsyncSession,
    user_id: uuid.UUID,
    mockup_id: uuid.UUID,
    lock: bool = False,
):
    """Fetch the mockup row joined with its design image, or raise NotFoundError."""
    query = _OWNED_MOCKUP_QUERY + (" FOR UPDATE OF m" if lock else "")
    result = await db.execute(
        text(query), {"mockup_id": mockup_id, "user_id": user_id},
    )
    row = result.fetchone()
    if row is None:
        raise NotFoundError(MOCKUP_NOT_FOUND)
    return row


def _fallback_image(row) -> str | None:
    """Design's primary image, then its thumbnail, then the mockup's stored preview."""
    return row[10] or row[11] or row[5]


def _row_to_editor_data(row, state: CanvasState) -> MockupEditorData:
    garment = state.garment_type
    return MockupEditorData(
        mockup_id=row[0],
        name=row[1],
        garment_type=garment,
        garment_label=garment_label(garment),
        garment_color=row[3] or state.garment_color,
        status=row[8],
        status_label=status_label(row[8]),
        preview_url=row[5],
        print_ready_url=row[6],
        dpi=row[7],
        updated_at=row[9],
        state=state,
    )


async def insert_mockup(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    name: str,
    state: CanvasState,
    status: MockupStatus,
    design_id: uuid.UUID | None = None,
    metadata: dict[str, Any] | None = None,
) -> uuid.UUID:
    """Insert a mockup row whose preview and print URLs follow the canvas."""
    mockup_id = uuid.uuid4()
    preview = derive_preview_url(state)
    now = datetime.now(timezone.utc)
    await db.execute(
        text(
            "INSERT INTO mockups "
            "(mockup_id, user_id, design_id, name, garment_type, garment_color, "
            "canvas_state, preview_url, print_ready_url, status, metadata, "
            "created_at, updated_at) "
            "VALUES (:mockup_id, :user_id, :design_id, :name, :garment_type, "
            ":garment_color, :canvas_state, :preview_url, :preview_url, :status, "
            ":metadata, :now, :now)"
        ),
        {
            "mockup_id": mockup_id,
            "user_id": user_id,
            "design_id": design_id,
            "name": name,
            "garment_type": state.garment_type.value,
            "garment_color": state.garment_color,
            "canvas_state": jsonb.dump(dump_canvas_state(state)),
            "preview_url": preview,
            "status": status.value,
            "metadata": jsonb.dump(metadata or {}),
            "now": now,
        },
    )
    return mockup_id


async def create_mockup_from_image(
    db: AsyncSession,
    user_id: uuid.UUID,
    design_id: uuid.UUID,
    title: str,
    image_url: str,
    metadata: dict[str, Any] | None = None,
) -> uuid.UUID:
    """READY T-shirt mockup whose design layer is *image_url*. Runs in the caller's transaction."""
    return await insert_mockup(
        db,
        user_id,
        name=f"{title} Mockup",
        state=default_canvas_state(image_url, GarmentType.T_SHIRT),
        status=MockupStatus.READY,
        design_id=design_id,
        metadata=metadata,
    )


async def get_mockups_overview(db: AsyncSession, user_id: uuid.UUID) -> MockupsOverview:
    """Recently edited mockups that have a preview to show."""
    result = await db.execute(
        text(
            "SELECT mockup_id, name, garment_type, garment_color, status, "
            "preview_url, updated_at "
            "FROM mockups WHERE user_id = :user_id AND COALESCE(preview_url, '') <> '' "
            "ORDER BY updated_at DESC LIMIT :limit"
        ),
        {"user_id": user_id, "limit": MOCKUPS_OVERVIEW_LIMIT},
    )
    items = []
    for row in result.fetchall():
        garment = GarmentType(row[2])
        items.append(
            MockupCard(
                mockup_id=row[0],
                name=row[1],
                garment_type=garment,
                garment_label=garment_label(garment),
                garment_color=row[3],
                status=row[4],
                status_label=status_label(row[4]),
                preview_url=row[5],
                updated_at=row[6],
            )
        )
    return MockupsOverview(items=items)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

async def _guarded(coro_factory, operation: str, user_id: uuid.UUID, db: AsyncSession):
    try:
        async with transaction(db):
            return await coro_factory()
    except ServiceError as exc:
        return ServiceFailure.from_error(exc)
    except Exception:
        log.exception("mockup_operation_failed", operation=operation, user_id=str(user_id))
        return server_failure(MOCKUP_SERVER_ERROR)


async def create_blank_mockup(
    db: AsyncSession, user_id: uuid.UUID,
) -> Union[MockupCreated, ServiceFailure]:
    """New DRAFT mockup on a T-shirt with the placeholder design."""

    async def _create() -> MockupCreated:
        mockup_id = await insert_mockup(
            db,
            user_id,
            name=BLANK_MOCKUP_NAME,
            state=default_canvas_state(DEFAULT_DESIGN_IMAGE),
            status=MockupStatus.DRAFT,
            metadata={"source": "mockup_editor_new"},
        )
        return MockupCreated(
            mockup_id=mockup_id, redirect_path=f"/dashboard/mockups/{mockup_id}",
        )

    return await _guarded(_create, "create_blank", user_id, db)


async def get_mockup_editor_data(
    db: AsyncSession, user_id: uuid.UUID, mockup_id: uuid.UUID,
) -> MockupEditorResult:
    """Load a mockup for the editor, repairing whatever canvas document is stored."""

    async def _load() -> MockupEditorData:
        row = await _load_owned_mockup(db, user_id, mockup_id)
        state = parse_canvas_state(row[4], _fallback_image(row), row[2])
        return _row_to_editor_data(row, state)

    return await _guarded(_load, "get", user_id, db)


async def save_mockup_state(
    db: AsyncSession,
    user_id: uuid.UUID,
    mockup_id: uuid.UUID,
    request: SaveMockupRequest,
) -> MockupEditorResult:
    """Persist an edited composition and mark the mockup READY."""

    async def _save() -> MockupEditorData:
        name = (request.name or "").strip()
        if len(name) < MIN_NAME_LENGTH:
            raise ValidationFailedError("Mockup name must be at least 2 characters.")

        row = await _load_owned_mockup(db, user_id, mockup_id, lock=True)
        state = parse_canvas_state(
            request.state, _fallback_image(row), request.garment_type or row[2],
        )
        if request.garment_type is not None:
            state.garment_type = request.garment_type
        if request.garment_color is not None:
            # an invalid color leaves the composition's color alone
            state.garment_color = coerce_hex_color(request.garment_color, state.garment_color)
        preview = derive_preview_url(state, row[5])

        result = await db.execute(
            text(
                "UPDATE mockups SET name = :name, garment_type = :garment_type, "
                "garment_color = :garment_color, canvas_state = :canvas_state, "
                "preview_url = :preview_url, status = :status, updated_at = :now "
                "WHERE mockup_id = :mockup_id "
                "RETURNING print_ready_url, dpi, updated_at"
            ),
            {
                "mockup_id": mockup_id,
                "name": name,
                "garment_type": state.garment_type.value,
                "garment_color": state.garment_color,
                "canvas_state": jsonb.dump(dump_canvas_state(state)),
                "preview_url": preview,
                "status": MockupStatus.READY.value,
                "now": datetime.now(timezone.utc),
            },
        )
        updated = result.fetchone()
        return MockupEditorData(
            mockup_id=mockup_id,
            name=name,
            garment_type=state.garment_type,
            garment_label=garment_label(state.garment_type),
            garment_color=state.garment_color,
            status=MockupStatus.READY,
            status_label=status_label(MockupStatus.READY),
            preview_url=preview,
            print_ready_url=updated[0],
            dpi=updated[1],
            updated_at=updated[2],
            state=state,
        )

    return await _guarded(_save, "save", user_id, db)


async def export_mockup(
    db: AsyncSession,
    user_id: uuid.UUID,
    mockup_id: uuid.UUID,
    export_format: ExportFormat,
) -> MockupExportResult:
    """Stamp a download URL for the preview image and mark the mockup EXPORTED."""

    async def _export() -> MockupExported:
        row = await _load_owned_mockup(db, user_id, mockup_id, lock=True)
        state = parse_canvas_state(row[4], row[5], row[2])
        base_url = derive_preview_url(state, row[5])
        download_url = with_query_params(
            base_url,
            {"mf_export": _EXPORT_PARAM[export_format], "mf_v": version_token()},
        )
        dpi = EXPORT_DPI[export_format]
        now = datetime.now(timezone.utc)
        await db.execute(
            text(
                "UPDATE mockups SET print_ready_url = :url, dpi = :dpi, "
                "status = :status, metadata = :metadata, updated_at = :now "
                "WHERE mockup_id = :mockup_id"
            ),
            {
                "mockup_id": mockup_id,
                "url": download_url,
                "dpi": dpi,
                "status": MockupStatus.EXPORTED.value,
                "metadata": jsonb.dump(
                    {
                        "source": "mockup_export_action",
                        "format": export_format.value,
                        "exportedAtIso": now.isoformat(),
                    }
                ),
                "now": now,
            },
        )
        return MockupExported(
            mockup_id=mockup_id,
            download_url=download_url,
            dpi=dpi,
            message=_EXPORT_MESSAGES[export_format],
        )

    return await _guarded(_export, "export", user_id, db)


async def delete_mockup(
    db: AsyncSession, user_id: uuid.UUID, mockup_id: uuid.UUID,
) -> Union[MockupDeleted, ServiceFailure]:
    """Delete an owned mockup. Deleting one that is already gone succeeds."""

    async def _delete() -> MockupDeleted:
        await db.execute(
            text("DELETE FROM mockups WHERE mockup_id = :mockup_id AND user_id = :user_id"),
            {"mockup_id": mockup_id, "user_id": user_id},
        )
        return MockupDeleted(mockup_id=mockup_id)

    return await _guarded(_delete, "delete", user_id, db)
