"""Tests for mockup persistence and the mockup list."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from merchforge.enums import ErrorCode, ExportFormat, GarmentType, MockupStatus
from merchforge.services.mockup_service import (
    SaveMockupRequest,
    create_blank_mockup,
    delete_mockup,
    export_mockup,
    get_mockup_editor_data,
    get_mockups_overview,
    save_mockup_state,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

FAKE_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
MOCKUP_ID = uuid.UUID("00000000-0000-0000-0000-0000000000c1")
DESIGN_IMAGE = "https://cdn.merchforge.app/designs/tiger-v3.png"
UPDATED_AT = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _make_mock_db():
    return AsyncMock()


def _row(*values):
    return values


def _result(row=None):
    result = MagicMock()
    result.fetchone.return_value = row
    return result


def _mockup_row(canvas_state, status="READY", preview="https://img/preview.png",
                primary=DESIGN_IMAGE, thumbnail=None):
    return _result(_row(
        MOCKUP_ID,
        "Tiger Tee",
        "T_SHIRT",
        "#000000",
        canvas_state,
        preview,
        None,
        None,
        status,
        UPDATED_AT,
        primary,
        thumbnail,
    ))


# ---------------------------------------------------------------------------
# test_create_blank_mockup
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_blank_mockup():
    mock_db = _make_mock_db()

    result = await create_blank_mockup(mock_db, FAKE_USER_ID)

    assert result.ok is True
    assert result.redirect_path == f"/dashboard/mockups/{result.mockup_id}"
    params = mock_db.execute.call_args_list[0][0][1]
    assert params["name"] == "Untitled Mockup"
    assert params["status"] == "DRAFT"
    assert params["design_id"] is None
    assert json.loads(params["metadata"]) == {"source": "mockup_editor_new"}
    mock_db.commit.assert_awaited_once()


# ---------------------------------------------------------------------------
# test_get_mockup_editor_data
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_mockup_heals_corrupt_canvas_with_design_image():
    """A stored canvas with no usable layers comes back with the design's current image."""
    mock_db = _make_mock_db()
    corrupt = json.dumps({"layers": [{"type": "text", "text": ""}], "activeLayerId": 7})
    mock_db.execute.side_effect = [_mockup_row(corrupt)]

    result = await get_mockup_editor_data(mock_db, FAKE_USER_ID, MOCKUP_ID)

    assert result.ok is True
    assert result.status_label == "Ready"
    assert result.garment_label == "T-Shirt"
    assert len(result.state.layers) == 1
    assert result.state.layers[0].image_url == DESIGN_IMAGE
    assert result.state.active_layer_id == result.state.layers[0].id


@pytest.mark.asyncio
async def test_get_mockup_fallback_prefers_thumbnail_then_preview():
    mock_db = _make_mock_db()
    mock_db.execute.side_effect = [
        _mockup_row(None, primary=None, thumbnail=None, preview="https://img/stored.png"),
    ]

    result = await get_mockup_editor_data(mock_db, FAKE_USER_ID, MOCKUP_ID)

    assert result.state.layers[0].image_url == "https://img/stored.png"


@pytest.mark.asyncio
async def test_get_mockup_not_owned():
    mock_db = _make_mock_db()
    mock_db.execute.side_effect = [_result(None)]

    result = await get_mockup_editor_data(mock_db, FAKE_USER_ID, MOCKUP_ID)

    assert result.code == ErrorCode.NOT_FOUND
    assert result.error == "Mockup was not found."
    assert mock_db.execute.call_args_list[0][0][1]["user_id"] == FAKE_USER_ID


# ---------------------------------------------------------------------------
# test_save_mockup_state
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_save_mockup_state_marks_ready():
    mock_db = _make_mock_db()
    mock_db.execute.side_effect = [
        _mockup_row("{}", status="DRAFT"),
        _result(_row(None, None, UPDATED_AT)),
    ]
    request = SaveMockupRequest.model_validate({
        "name": "  Tiger Hoodie  ",
        "garmentType": "HOODIE",
        "garmentColor": "#1d4ed8",
        "state": {
            "layers": [
                {"id": "d1", "type": "design", "imageUrl": "https://img/new.png", "x": 500},
            ],
        },
    })

    result = await save_mockup_state(mock_db, FAKE_USER_ID, MOCKUP_ID, request)

    assert result.ok is True
    assert result.status == MockupStatus.READY
    assert result.name == "Tiger Hoodie"
    assert result.garment_type == GarmentType.HOODIE
    assert result.preview_url == "https://img/new.png"
    assert result.state.layers[0].x == 100

    lock_sql = str(mock_db.execute.call_args_list[0][0][0])
    assert "FOR UPDATE OF m" in lock_sql
    params = mock_db.execute.call_args_list[1][0][1]
    assert params["status"] == "READY"
    assert params["garment_type"] == "HOODIE"
    assert params["garment_color"] == "#1d4ed8"
    assert json.loads(params["canvas_state"])["garmentColor"] == "#1d4ed8"
    mock_db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_save_mockup_rejects_short_name():
    mock_db = _make_mock_db()

    result = await save_mockup_state(
        mock_db, FAKE_USER_ID, MOCKUP_ID, SaveMockupRequest(name=" x "),
    )

    assert result.code == ErrorCode.VALIDATION
    assert result.error == "Mockup name must be at least 2 characters."
    mock_db.execute.assert_not_called()


@pytest.mark.asyncio
async def test_save_mockup_database_failure():
    mock_db = _make_mock_db()
    mock_db.execute.side_effect = [_mockup_row("{}"), RuntimeError("disk full")]

    result = await save_mockup_state(
        mock_db, FAKE_USER_ID, MOCKUP_ID, SaveMockupRequest(name="Tiger Tee"),
    )

    assert result.code == ErrorCode.SERVER_ERROR
    mock_db.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_save_mockup_invalid_color_keeps_document_color():
    mock_db = _make_mock_db()
    mock_db.execute.side_effect = [_mockup_row("{}"), _result(_row(None, None, UPDATED_AT))]
    request = SaveMockupRequest.model_validate({
        "name": "Tiger Tee",
        "garmentColor": "navy blue",
        "state": {"garmentColor": "#be123c", "layers": [{"id": "d1", "type": "design", "imageUrl": "https://img/a.png"}]},
    })

    result = await save_mockup_state(mock_db, FAKE_USER_ID, MOCKUP_ID, request)

    assert result.garment_color == "#be123c"
    assert mock_db.execute.call_args_list[1][0][1]["garment_color"] == "#be123c"


@pytest.mark.asyncio
async def test_save_mockup_clamps_oversized_numbers():
    mock_db = _make_mock_db()
    mock_db.execute.side_effect = [_mockup_row("{}"), _result(_row(None, None, UPDATED_AT))]
    request = SaveMockupRequest.model_validate({
        "name": "Tiger Tee",
        "state": {"layers": [{
            "id": "d1", "type": "design", "imageUrl": "https://img/a.png",
            "rotation": -(10**400),
        }]},
    })

    result = await save_mockup_state(mock_db, FAKE_USER_ID, MOCKUP_ID, request)

    assert result.ok is True
    assert result.state.layers[0].rotation == -180
    mock_db.commit.assert_awaited_once()


# ---------------------------------------------------------------------------
# test_get_mockups_overview
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_mockups_overview_lists_owned_mockups():
    mock_db = _make_mock_db()
    listing = MagicMock()
    listing.fetchall.return_value = [
        _row(MOCKUP_ID, "Tiger Tee", "T_SHIRT", "#000000", "EXPORTED", "https://img/p.png", UPDATED_AT),
        _row(uuid.uuid4(), "Market Tote", "TOTE_BAG", "#ffffff", "DRAFT", "https://img/q.png", UPDATED_AT),
    ]
    mock_db.execute.return_value = listing

    overview = await get_mockups_overview(mock_db, FAKE_USER_ID)

    first, second = overview.items
    assert first.mockup_id == MOCKUP_ID
    assert first.garment_label == "T-Shirt"
    assert first.status_label == "Exported"
    assert second.garment_label == "Tote Bag"
    assert second.status == MockupStatus.DRAFT
    assert overview.to_json()["items"][0]["previewUrl"] == "https://img/p.png"

    sql = str(mock_db.execute.call_args[0][0])
    assert "user_id = :user_id" in sql
    assert mock_db.execute.call_args[0][1] == {"user_id": FAKE_USER_ID, "limit": 20}


# ---------------------------------------------------------------------------
# test_export_mockup
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "export_format,dpi,marker,message",
    [
        (ExportFormat.PNG, 150, "mf_export=png", "PNG export ready."),
        (ExportFormat.PRINT_READY, 300, "mf_export=print", "300 DPI export ready."),
    ],
)
async def test_export_mockup(export_format, dpi, marker, message):
    mock_db = _make_mock_db()
    canvas = json.dumps({"layers": [{"id": "d1", "type": "design", "imageUrl": DESIGN_IMAGE}]})
    mock_db.execute.side_effect = [_mockup_row(canvas), _result()]

    result = await export_mockup(mock_db, FAKE_USER_ID, MOCKUP_ID, export_format)

    assert result.dpi == dpi
    assert result.message == message
    assert result.download_url.startswith(DESIGN_IMAGE)
    assert marker in result.download_url
    assert "mf_v=" in result.download_url

    params = mock_db.execute.call_args_list[1][0][1]
    assert params["status"] == "EXPORTED"
    assert params["dpi"] == dpi
    metadata = json.loads(params["metadata"])
    assert metadata["source"] == "mockup_export_action"
    assert metadata["format"] == export_format.value


# ---------------------------------------------------------------------------
# test_delete_mockup
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_mockup_is_idempotent():
    mock_db = _make_mock_db()

    first = await delete_mockup(mock_db, FAKE_USER_ID, MOCKUP_ID)
    second = await delete_mockup(mock_db, FAKE_USER_ID, MOCKUP_ID)

    assert first.ok is True
    assert second.ok is True
    assert mock_db.execute.call_count == 2
    params = mock_db.execute.call_args_list[0][0][1]
    assert params == {"mockup_id": MOCKUP_ID, "user_id": FAKE_USER_ID}
