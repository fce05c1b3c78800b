"""HTTP surface tests: status mapping, camelCase bodies and session handling."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from merchforge.api.dependencies import decode_user_id, get_current_user_id
from merchforge.database import get_db
from merchforge.main import app


FAKE_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
SUBSCRIPTION_ID = uuid.UUID("00000000-0000-0000-0000-0000000000aa")
ORDER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000d1")

GENERATE_BODY = {
    "prompt": "a neon tiger head logo",
    "stylePreset": "Cyberpunk",
    "colors": ["#ff00ff"],
    "variationCount": 2,
}


def _row(*values):
    return values


def _result(row=None):
    result = MagicMock()
    result.fetchone.return_value = row
    return result


@pytest.fixture
def anonymous(mock_session):
    """Requests with a scripted session but no signed-in user."""

    async def _override_get_db():
        yield mock_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_current_user_id] = lambda: None
    try:
        yield mock_session
    finally:
        app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

def test_decode_user_id_rejects_garbage():
    assert decode_user_id("not-a-jwt") is None


@pytest.mark.asyncio
async def test_generate_without_session_is_401(client, anonymous):
    response = await client.post("/api/v1/generator/generate", json=GENERATE_BODY)

    assert response.status_code == 401
    body = response.json()
    assert body["ok"] is False
    assert body["code"] == "UNAUTHORIZED"
    anonymous.execute.assert_not_called()


@pytest.mark.asyncio
async def test_mockup_routes_require_session(client, anonymous):
    response = await client.post("/api/v1/mockups")
    assert response.status_code == 401


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_generate_success(client, signed_in):
    signed_in.execute.side_effect = [
        _result(_row(1)),
        _result(_row(SUBSCRIPTION_ID, "FREE", 50, 10)),
        _result(_row(8)),
        _result(),
        _result(),
        _result(),
    ]

    response = await client.post("/api/v1/generator/generate", json=GENERATE_BODY)

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["creditsRemaining"] == 8
    assert len(body["results"]) == 2
    assert "imageUrl" in body["results"][0]
    assert response.headers["Cache-Control"] == "no-store"


@pytest.mark.asyncio
async def test_generate_insufficient_credits_is_402(client, signed_in):
    signed_in.execute.side_effect = [
        _result(_row(1)),
        _result(_row(SUBSCRIPTION_ID, "FREE", 50, 1)),
    ]

    response = await client.post("/api/v1/generator/generate", json=GENERATE_BODY)

    assert response.status_code == 402
    assert response.json()["code"] == "INSUFFICIENT_CREDITS"


@pytest.mark.asyncio
async def test_generate_validation_is_400(client, signed_in):
    response = await client.post(
        "/api/v1/generator/generate", json={**GENERATE_BODY, "prompt": "tiny"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION"


@pytest.mark.asyncio
async def test_action_missing_fields_is_400(client, signed_in):
    response = await client.post("/api/v1/generator/action", json={"action": "SAVE"})

    assert response.status_code == 400
    signed_in.execute.assert_not_called()


# ---------------------------------------------------------------------------
# Orders and checkout
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_order_transition_conflict_is_409(client, signed_in):
    signed_in.execute.side_effect = [_result(_row("DELIVERED", "PAID"))]

    response = await client.post(
        f"/api/v1/orders/{ORDER_ID}/transition", json={"action": "CANCEL_ORDER"},
    )

    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_order_transition_success(client, signed_in):
    signed_in.execute.side_effect = [_result(_row("PAID", "PAID")), _result()]

    response = await client.post(
        f"/api/v1/orders/{ORDER_ID}/transition", json={"action": "MARK_SHIPPED"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["orderStatus"] == "SHIPPED"
    assert body["statusLabel"] == "Shipped"
    assert body["statusTone"] == "processing"


@pytest.mark.asyncio
async def test_guest_checkout(client, anonymous):
    product_id = uuid.uuid4()
    anonymous.execute.side_effect = [
        _result(_row(product_id, FAKE_USER_ID, 3900, "USD")),
        _result(None),
        _result(),
    ]

    response = await client.post(
        f"/api/v1/checkout/{product_id}",
        json={
            "buyerName": "Ada Lovelace",
            "buyerEmail": "ada@example.com",
            "quantity": 2,
            "shippingAddressLine1": "12 Analytical St",
            "shippingCity": "London",
            "shippingState": "LDN",
            "shippingPostalCode": "N1 9GU",
            "shippingCountry": "GB",
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["amountTotalCents"] == 7800
    assert body["redirectPath"].startswith("/checkout/success?order=")


# ---------------------------------------------------------------------------
# Malformed payloads
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unknown_action_is_validation_failure(client, signed_in):
    response = await client.post(
        "/api/v1/generator/action",
        json={"action": "SHARPEN", "designId": str(uuid.uuid4()), "variationId": "v1"},
    )

    assert response.status_code == 400
    assert response.json() == {
        "ok": False, "code": "VALIDATION", "error": "Invalid request payload.",
    }
    signed_in.execute.assert_not_called()


@pytest.mark.asyncio
async def test_null_prompt_is_validation_failure(client, signed_in):
    response = await client.post(
        "/api/v1/generator/generate", json={**GENERATE_BODY, "prompt": None},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION"
    assert "detail" not in body


@pytest.mark.asyncio
async def test_unparseable_body_is_validation_failure(client, signed_in):
    response = await client.post(
        f"/api/v1/orders/{ORDER_ID}/transition",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request payload."


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/api/v1/orders", "/api/v1/designs", "/api/v1/mockups"])
async def test_listings_require_session(client, anonymous, path):
    response = await client.get(path)

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"
    anonymous.execute.assert_not_called()


@pytest.mark.asyncio
async def test_orders_listing(client, signed_in):
    listing = MagicMock()
    listing.fetchall.return_value = [
        _row(ORDER_ID, "SHIPPED", "PAID", 7800, datetime(2026, 2, 1, tzinfo=timezone.utc),
             "Neon Tiger Tee", "Ada Lovelace", "ada@example.com"),
    ]
    signed_in.execute.side_effect = [listing, _result(_row(7800))]

    response = await client.get("/api/v1/orders")

    assert response.status_code == 200
    body = response.json()
    assert body["totals"]["revenueCents"] == 7800
    assert body["rows"][0]["orderId"] == str(ORDER_ID)
    assert body["rows"][0]["statusLabel"] == "Shipped"
    assert body["rows"][0]["customerName"] == "Ada Lovelace"


@pytest.mark.asyncio
async def test_designs_listing(client, signed_in):
    listing = MagicMock()
    listing.fetchall.return_value = [
        _row(uuid.uuid4(), "Neon Tiger", "a neon tiger", "PUBLISHED", None,
             "https://img/full.png", datetime(2026, 1, 5, tzinfo=timezone.utc)),
    ]
    signed_in.execute.side_effect = [listing]

    response = await client.get("/api/v1/designs")

    assert response.status_code == 200
    card = response.json()["designs"][0]
    assert card["imageUrl"] == "https://img/full.png"
    assert card["status"] == "Live"
