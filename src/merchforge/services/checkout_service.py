"""Storefront checkout -- turns a buyer form into a PAID order for the seller."""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from typing import Any, Literal, Optional, Union

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from merchforge.database import transaction
from merchforge.enums import OrderStatus, PaymentStatus, ProductStatus
from merchforge.exceptions import NotFoundError, ServiceError, ValidationFailedError
from merchforge.services import jsonb
from merchforge.services.audit_logger import audit
from merchforge.services.results import CamelModel, ServiceFailure, parse_uuid, server_failure

log = structlog.get_logger()

MIN_QUANTITY = 1
MAX_QUANTITY = 10

PRODUCT_UNAVAILABLE = "Product is no longer available."
CHECKOUT_SERVER_ERROR = "Unable to place order right now."


class CheckoutRequest(CamelModel):
    buyer_name: str = ""
    buyer_email: str = ""
    quantity: Any = 1
    shipping_address_line1: str = ""
    shipping_address_line2: Optional[str] = None
    shipping_city: str = ""
    shipping_state: str = ""
    shipping_postal_code: str = ""
    shipping_country: str = ""


class CheckoutSuccess(CamelModel):
    ok: Literal[True] = True
    message: str = "Order placed successfully."
    order_id: uuid.UUID
    amount_total_cents: int
    currency: str
    redirect_path: str


CheckoutResult = Union[CheckoutSuccess, ServiceFailure]


def clamp_quantity(value: Any) -> int:
    if isinstance(value, bool):
        return MIN_QUANTITY
    try:
        number = float(value)
    except (TypeError, ValueError):
        return MIN_QUANTITY
    if not math.isfinite(number) or number == 0:
        return MIN_QUANTITY
    return max(MIN_QUANTITY, min(MAX_QUANTITY, math.floor(number)))


def build_shipping_address(request: CheckoutRequest) -> dict[str, Any]:
    """Trim the form and validate it. Raises ValidationFailedError."""
    name = request.buyer_name.strip()
    email = request.buyer_email.strip().lower()
    address = {
        "fullName": name,
        "email": email,
        "line1": request.shipping_address_line1.strip(),
        "line2": (request.shipping_address_line2 or "").strip() or None,
        "city": request.shipping_city.strip(),
        "state": request.shipping_state.strip(),
        "postalCode": request.shipping_postal_code.strip(),
        "country": request.shipping_country.strip(),
    }

    if len(name) < 2:
        raise ValidationFailedError("Name must be at least 2 characters.")
    if "@" not in email:
        raise ValidationFailedError("Please enter a valid email address.")
    required = ("line1", "city", "state", "postalCode", "country")
    if not all(address[key] for key in required):
        raise ValidationFailedError("Please complete your shipping details.")
    return address


async def _resolve_buyer(
    db: AsyncSession, buyer_id: uuid.UUID | None, email: str,
) -> uuid.UUID | None:
    """Signed-in buyers by id, everyone else by email; None means guest checkout."""
    if buyer_id is not None:
        query, params = "SELECT user_id FROM users WHERE user_id = :key", {"key": buyer_id}
    else:
        query, params = "SELECT user_id FROM users WHERE lower(email) = :key", {"key": email}
    result = await db.execute(text(query), params)
    row = result.fetchone()
    return row[0] if row is not None else None


async def _checkout(
    db: AsyncSession,
    product_id: uuid.UUID | None,
    request: CheckoutRequest,
    buyer_id: uuid.UUID | None,
) -> CheckoutSuccess:
    shipping = build_shipping_address(request)
    quantity = clamp_quantity(request.quantity)
    if product_id is None:
        raise NotFoundError(PRODUCT_UNAVAILABLE)

    result = await db.execute(
        text(
            "SELECT product_id, owner_id, price_cents, currency FROM store_products "
            "WHERE product_id = :product_id AND status = :status"
        ),
        {"product_id": product_id, "status": ProductStatus.ACTIVE.value},
    )
    product = result.fetchone()
    if product is None:
        raise NotFoundError(PRODUCT_UNAVAILABLE)

    subtotal = product[2] * quantity
    known_buyer = await _resolve_buyer(db, buyer_id, shipping["email"])

    order_id = uuid.uuid4()
    now = datetime.now(timezone.utc)
    await db.execute(
        text(
            "INSERT INTO orders "
            "(order_id, buyer_id, seller_id, store_product_id, status, payment_status, "
            "amount_subtotal_cents, amount_total_cents, currency, shipping_address, "
            "metadata, created_at, updated_at) "
            "VALUES (:order_id, :buyer_id, :seller_id, :product_id, :status, "
            ":payment_status, :subtotal, :total, :currency, :shipping, :metadata, "
            ":now, :now)"
        ),
        {
            "order_id": order_id,
            "buyer_id": known_buyer,
            "seller_id": product[1],
            "product_id": product[0],
            "status": OrderStatus.PAID.value,
            "payment_status": PaymentStatus.PAID.value,
            "subtotal": subtotal,
            "total": subtotal,
            "currency": product[3],
            "shipping": jsonb.dump(shipping),
            "metadata": jsonb.dump({"source": "checkout_web", "quantity": quantity}),
            "now": now,
        },
    )
    audit.log_order_placed(order_id, product[0], product[1], known_buyer, subtotal)

    return CheckoutSuccess(
        order_id=order_id,
        amount_total_cents=subtotal,
        currency=product[3],
        redirect_path=f"/checkout/success?order={order_id}",
    )


async def create_checkout_order(
    db: AsyncSession,
    product_id: str,
    request: CheckoutRequest,
    buyer_id: uuid.UUID | None = None,
) -> CheckoutResult:
    """Place an order for an ACTIVE product. No payment gateway is involved."""
    try:
        async with transaction(db):
            return await _checkout(db, parse_uuid(product_id), request, buyer_id)
    except ServiceError as exc:
        return ServiceFailure.from_error(exc)
    except Exception:
        log.exception(
            "checkout_failed",
            product_id=product_id,
            user_id=str(buyer_id) if buyer_id else None,
        )
        return server_failure(CHECKOUT_SERVER_ERROR)
