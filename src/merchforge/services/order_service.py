"""Order status state machine for sellers.

Three seller actions move an order forward.  The legal source states for
each live in ``ORDER_TRANSITIONS``; the guard and the write share one
transaction and the row is locked while the guard runs.  The seller's
order list reads through ``get_orders_overview``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal, Union

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from merchforge.database import transaction
from merchforge.enums import OrderAction, OrderStatus, PaymentStatus
from merchforge.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    ServiceError,
    UnauthorizedError,
    ValidationFailedError,
)
from merchforge.services.audit_logger import audit
from merchforge.services.results import CamelModel, ServiceFailure, parse_uuid, server_failure

log = structlog.get_logger()

ORDER_NOT_FOUND = "Order not found."
ORDER_SERVER_ERROR = "Unable to update order status right now."
INVALID_ORDER_TRANSITION = "This status change is not allowed for the current order state."

# Absorbing states: nothing leaves them.
TERMINAL_STATUSES = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELED, OrderStatus.REFUNDED}
)

ORDER_TRANSITIONS: dict[OrderAction, tuple[frozenset[OrderStatus], OrderStatus]] = {
    OrderAction.MARK_SHIPPED: (
        frozenset(
            {
                OrderStatus.PENDING,
                OrderStatus.PAID,
                OrderStatus.FULFILLMENT,
                OrderStatus.IN_PRODUCTION,
            }
        ),
        OrderStatus.SHIPPED,
    ),
    OrderAction.MARK_DELIVERED: (frozenset({OrderStatus.SHIPPED}), OrderStatus.DELIVERED),
    OrderAction.CANCEL_ORDER: (
        frozenset(OrderStatus) - TERMINAL_STATUSES,
        OrderStatus.CANCELED,
    ),
}

_ORDER_MESSAGES = {
    OrderAction.MARK_SHIPPED: "Order marked as shipped.",
    OrderAction.MARK_DELIVERED: "Order marked as delivered.",
    OrderAction.CANCEL_ORDER: "Order canceled successfully.",
}

StatusTone = Literal["success", "processing", "warning", "neutral"]


@dataclass(frozen=True)
class NextOrderState:
    order_status: OrderStatus
    payment_status: PaymentStatus
    message: str


class OrderTransitionRequest(CamelModel):
    action: OrderAction


class OrderTransitionSuccess(CamelModel):
    ok: Literal[True] = True
    order_id: uuid.UUID
    order_status: OrderStatus
    payment_status: PaymentStatus
    status_label: str
    status_tone: StatusTone
    message: str


OrderTransitionResult = Union[OrderTransitionSuccess, ServiceFailure]


class OrderRow(CamelModel):
    order_id: uuid.UUID
    product_title: str
    customer_name: str
    status_label: str
    status_tone: StatusTone
    order_status: OrderStatus
    payment_status: PaymentStatus
    amount_cents: int
    created_at: datetime


class OrderTotals(CamelModel):
    orders: int
    revenue_cents: int
    delivered: int
    pending: int


class OrdersOverview(CamelModel):
    totals: OrderTotals
    rows: list[OrderRow]


ORDERS_OVERVIEW_LIMIT = 20
GUEST_CUSTOMER = "Guest checkout"
CUSTOM_PRODUCT = "Custom product"

# Orders not yet shipped that still need seller attention.
_PENDING_STATUSES = frozenset(
    {OrderStatus.PENDING, OrderStatus.FULFILLMENT, OrderStatus.IN_PRODUCTION}
)


def describe_order_status(
    order_status: OrderStatus, payment_status: PaymentStatus,
) -> tuple[str, StatusTone]:
    """Dashboard label and tone for an order/payment status pair."""
    if order_status == OrderStatus.DELIVERED:
        return "Delivered", "success"
    if order_status in (OrderStatus.SHIPPED, OrderStatus.IN_PRODUCTION):
        return "Shipped", "processing"
    if order_status == OrderStatus.PENDING or payment_status == PaymentStatus.PENDING:
        return "Processing", "warning"
    if order_status == OrderStatus.CANCELED or payment_status == PaymentStatus.REFUNDED:
        return "Canceled", "neutral"
    return "Paid", "processing"


def resolve_transition(
    current_status: OrderStatus,
    current_payment: PaymentStatus,
    action: OrderAction,
) -> NextOrderState:
    """Apply the transition table. Raises InvalidTransitionError on an illegal move."""
    allowed, target = ORDER_TRANSITIONS[action]
    if current_status not in allowed:
        raise InvalidTransitionError(INVALID_ORDER_TRANSITION)

    payment = current_payment
    if action == OrderAction.CANCEL_ORDER and current_payment == PaymentStatus.PAID:
        payment = PaymentStatus.REFUNDED

    return NextOrderState(order_status=target, payment_status=payment, message=_ORDER_MESSAGES[action])


def resolve_customer_name(full_name: str | None, email: str | None) -> str:
    if full_name and full_name.strip():
        return full_name.strip()
    return email or GUEST_CUSTOMER


async def get_orders_overview(db: AsyncSession, seller_id: uuid.UUID) -> OrdersOverview:
    """The seller's latest orders with dashboard labels, plus revenue and counts.

    Revenue sums every PAID order the seller has, not only the listed ones.
    """
    result = await db.execute(
        text(
            "SELECT o.order_id, o.status, o.payment_status, o.amount_total_cents, "
            "o.created_at, p.title, u.full_name, u.email "
            "FROM orders o "
            "LEFT JOIN store_products p ON p.product_id = o.store_product_id "
            "LEFT JOIN users u ON u.user_id = o.buyer_id "
            "WHERE o.seller_id = :seller_id "
            "ORDER BY o.created_at DESC LIMIT :limit"
        ),
        {"seller_id": seller_id, "limit": ORDERS_OVERVIEW_LIMIT},
    )
    rows = []
    for row in result.fetchall():
        order_status = OrderStatus(row[1])
        payment_status = PaymentStatus(row[2])
        label, tone = describe_order_status(order_status, payment_status)
        rows.append(
            OrderRow(
                order_id=row[0],
                product_title=row[5] or CUSTOM_PRODUCT,
                customer_name=resolve_customer_name(row[6], row[7]),
                status_label=label,
                status_tone=tone,
                order_status=order_status,
                payment_status=payment_status,
                amount_cents=row[3],
                created_at=row[4],
            )
        )

    revenue = await db.execute(
        text(
            "SELECT COALESCE(SUM(amount_total_cents), 0) FROM orders "
            "WHERE seller_id = :seller_id AND payment_status = :paid"
        ),
        {"seller_id": seller_id, "paid": PaymentStatus.PAID.value},
    )

    return OrdersOverview(
        totals=OrderTotals(
            orders=len(rows),
            revenue_cents=revenue.fetchone()[0] or 0,
            delivered=sum(1 for row in rows if row.order_status == OrderStatus.DELIVERED),
            pending=sum(1 for row in rows if row.order_status in _PENDING_STATUSES),
        ),
        rows=rows,
    )


async def _transition(
    db: AsyncSession,
    seller_id: uuid.UUID,
    raw_order_id: str,
    action: OrderAction,
) -> OrderTransitionSuccess:
    if not raw_order_id.strip():
        raise ValidationFailedError("Order identifier is required.")
    order_id = parse_uuid(raw_order_id)
    if order_id is None:
        raise NotFoundError(ORDER_NOT_FOUND)

    result = await db.execute(
        text(
            "SELECT status, payment_status FROM orders "
            "WHERE order_id = :order_id AND seller_id = :seller_id FOR UPDATE"
        ),
        {"order_id": order_id, "seller_id": seller_id},
    )
    row = result.fetchone()
    if row is None:
        raise NotFoundError(ORDER_NOT_FOUND)

    current_status = OrderStatus(row[0])
    current_payment = PaymentStatus(row[1])
    nxt = resolve_transition(current_status, current_payment, action)

    await db.execute(
        text(
            "UPDATE orders SET status = :status, payment_status = :payment_status, "
            "updated_at = :now WHERE order_id = :order_id"
        ),
        {
            "order_id": order_id,
            "status": nxt.order_status.value,
            "payment_status": nxt.payment_status.value,
            "now": datetime.now(timezone.utc),
        },
    )
    audit.log_order_transition(
        order_id,
        seller_id,
        action.value,
        current_status.value,
        nxt.order_status.value,
        nxt.payment_status.value,
    )

    label, tone = describe_order_status(nxt.order_status, nxt.payment_status)
    return OrderTransitionSuccess(
        order_id=order_id,
        order_status=nxt.order_status,
        payment_status=nxt.payment_status,
        status_label=label,
        status_tone=tone,
        message=nxt.message,
    )


async def transition_order(
    db: AsyncSession,
    seller_id: uuid.UUID | None,
    order_id: str,
    action: OrderAction,
) -> OrderTransitionResult:
    """Move one of the seller's orders through the state machine."""
    if seller_id is None:
        return ServiceFailure.from_error(UnauthorizedError())
    try:
        async with transaction(db):
            return await _transition(db, seller_id, order_id, action)
    except ServiceError as exc:
        return ServiceFailure.from_error(exc)
    except Exception:
        log.exception(
            "order_transition_failed",
            user_id=str(seller_id),
            order_id=order_id,
            action=action.value,
        )
        return server_failure(ORDER_SERVER_ERROR)
