"""Credit ledger -- lazy subscriptions, atomic debits, usage entries, and top-ups."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from merchforge.config import settings
from merchforge.enums import CreditUsageType, PlanTier, SubscriptionStatus
from merchforge.exceptions import InsufficientCreditsError, ValidationFailedError
from merchforge.services import jsonb
from merchforge.services.audit_logger import audit
from merchforge.services.results import CamelModel

PLAN_LABELS = {
    PlanTier.FREE: "Free",
    PlanTier.PRO: "Pro",
    PlanTier.BUSINESS: "Business",
}

MAX_USAGE_PAGE = 100


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class SubscriptionSnapshot(BaseModel):
    subscription_id: uuid.UUID
    plan: PlanTier
    monthly_credits: int
    remaining_credits: int


class LedgerDebit(BaseModel):
    """Outcome of a debit: the subscription touched and the balance it was left with."""

    subscription_id: uuid.UUID
    plan: PlanTier
    monthly_credits: int
    balance_after: int


class CreditBalanceResponse(CamelModel):
    remaining_credits: int
    monthly_credits: int
    plan: PlanTier
    plan_label: str


class CreditUsageEntry(CamelModel):
    usage_id: uuid.UUID
    usage_type: CreditUsageType
    delta: int
    balance_after: int
    description: str
    generation_id: Optional[uuid.UUID] = None
    created_at: datetime


def plan_label(plan: PlanTier | str) -> str:
    return PLAN_LABELS.get(PlanTier(plan), "Free")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

_SUBSCRIPTION_COLUMNS = "subscription_id, plan, monthly_credits, remaining_credits"


def _row_to_subscription(row) -> SubscriptionSnapshot:
    return SubscriptionSnapshot(
        subscription_id=row[0],
        plan=row[1],
        monthly_credits=row[2],
        remaining_credits=row[3],
    )


async def _read_remaining(db: AsyncSession, subscription_id: uuid.UUID) -> int:
    result = await db.execute(
        text("SELECT remaining_credits FROM subscriptions WHERE subscription_id = :sid"),
        {"sid": subscription_id},
    )
    row = result.fetchone()
    return row[0] if row is not None else 0


# ---------------------------------------------------------------------------
# Service functions
# ---------------------------------------------------------------------------

async def get_or_create_subscription(
    db: AsyncSession,
    user_id: uuid.UUID,
) -> SubscriptionSnapshot:
    """Return the user's subscription, creating a FREE one on first use.

    Two concurrent first-time callers both land on the same row: the loser
    of the INSERT race hits the unique user_id and gets the winner's row back.
    """
    result = await db.execute(
        text(
            f"SELECT {_SUBSCRIPTION_COLUMNS} "
            "FROM subscriptions WHERE user_id = :user_id"
        ),
        {"user_id": user_id},
    )
    row = result.fetchone()
    if row is not None:
        return _row_to_subscription(row)

    now = datetime.now(timezone.utc)
    result = await db.execute(
        text(
            "INSERT INTO subscriptions "
            "(subscription_id, user_id, plan, status, monthly_credits, "
            "remaining_credits, created_at, updated_at) "
            "VALUES (:subscription_id, :user_id, :plan, :status, :credits, "
            ":credits, :now, :now) "
            "ON CONFLICT (user_id) DO UPDATE SET user_id = EXCLUDED.user_id "
            f"RETURNING {_SUBSCRIPTION_COLUMNS}"
        ),
        {
            "subscription_id": uuid.uuid4(),
            "user_id": user_id,
            "plan": PlanTier.FREE.value,
            "status": SubscriptionStatus.ACTIVE.value,
            "credits": settings.FREE_MONTHLY_CREDITS,
            "now": now,
        },
    )
    return _row_to_subscription(result.fetchone())


async def consume_credits(
    db: AsyncSession,
    user_id: uuid.UUID,
    cost: int,
) -> LedgerDebit:
    """Debit *cost* credits inside the caller's transaction.

    The conditional UPDATE is the serialization point for concurrent
    debits: it only matches while the balance still covers the cost, so
    the balance can never go negative.

    Raises InsufficientCreditsError without writing anything when the
    balance is too low.
    """
    subscription = await get_or_create_subscription(db, user_id)

    if cost <= 0:
        return LedgerDebit(
            subscription_id=subscription.subscription_id,
            plan=subscription.plan,
            monthly_credits=subscription.monthly_credits,
            balance_after=subscription.remaining_credits,
        )

    if subscription.remaining_credits < cost:
        raise InsufficientCreditsError(cost, subscription.remaining_credits)

    result = await db.execute(
        text(
            "UPDATE subscriptions "
            "SET remaining_credits = remaining_credits - :cost, updated_at = :now "
            "WHERE subscription_id = :sid AND remaining_credits >= :cost "
            "RETURNING remaining_credits"
        ),
        {
            "sid": subscription.subscription_id,
            "cost": cost,
            "now": datetime.now(timezone.utc),
        },
    )
    row = result.fetchone()
    if row is None:
        # A concurrent debit drained the balance between the read and the update.
        available = await _read_remaining(db, subscription.subscription_id)
        raise InsufficientCreditsError(cost, available)

    return LedgerDebit(
        subscription_id=subscription.subscription_id,
        plan=subscription.plan,
        monthly_credits=subscription.monthly_credits,
        balance_after=row[0],
    )


async def record_usage(
    db: AsyncSession,
    user_id: uuid.UUID,
    usage_type: CreditUsageType,
    cost: int,
    balance_after: int,
    description: str,
    generation_id: uuid.UUID | None = None,
    metadata: dict[str, Any] | None = None,
) -> uuid.UUID | None:
    """Append a debit entry to the usage log. Zero-cost actions leave no trace.

    Returns the new usage_id, or None when nothing was written.
    """
    if cost <= 0:
        return None

    usage_id = uuid.uuid4()
    await db.execute(
        text(
            "INSERT INTO credit_usages "
            "(usage_id, user_id, generation_id, usage_type, delta, "
            "balance_after, description, metadata, created_at) "
            "VALUES (:usage_id, :user_id, :generation_id, :usage_type, :delta, "
            ":balance_after, :description, :metadata, :created_at)"
        ),
        {
            "usage_id": usage_id,
            "user_id": user_id,
            "generation_id": generation_id,
            "usage_type": usage_type.value,
            "delta": -cost,
            "balance_after": balance_after,
            "description": description,
            "metadata": jsonb.dump(metadata or {}),
            "created_at": datetime.now(timezone.utc),
        },
    )
    audit.log_credit_event(
        user_id, -cost, balance_after, usage_type.value, generation_id=generation_id,
    )
    return usage_id


async def grant_credits(
    db: AsyncSession,
    user_id: uuid.UUID,
    amount: int,
    description: str = "Credit top-up",
) -> int:
    """Add credits to the user's balance and log a TOP_UP entry.

    Returns the new balance.
    """
    if amount <= 0:
        raise ValidationFailedError("Top-up amount must be a positive number of credits.")

    subscription = await get_or_create_subscription(db, user_id)
    now = datetime.now(timezone.utc)
    result = await db.execute(
        text(
            "UPDATE subscriptions "
            "SET remaining_credits = remaining_credits + :amount, updated_at = :now "
            "WHERE subscription_id = :sid "
            "RETURNING remaining_credits"
        ),
        {"sid": subscription.subscription_id, "amount": amount, "now": now},
    )
    new_balance: int = result.fetchone()[0]

    await db.execute(
        text(
            "INSERT INTO credit_usages "
            "(usage_id, user_id, generation_id, usage_type, delta, "
            "balance_after, description, metadata, created_at) "
            "VALUES (:usage_id, :user_id, NULL, :usage_type, :delta, "
            ":balance_after, :description, :metadata, :created_at)"
        ),
        {
            "usage_id": uuid.uuid4(),
            "user_id": user_id,
            "usage_type": CreditUsageType.TOP_UP.value,
            "delta": amount,
            "balance_after": new_balance,
            "description": description,
            "metadata": jsonb.dump({}),
            "created_at": now,
        },
    )
    audit.log_credit_event(user_id, amount, new_balance, CreditUsageType.TOP_UP.value)
    return new_balance


async def get_balance(db: AsyncSession, user_id: uuid.UUID) -> CreditBalanceResponse:
    """Return the current balance without creating a subscription.

    Users who never spent a credit see the FREE allowance they will get.
    """
    result = await db.execute(
        text(
            f"SELECT {_SUBSCRIPTION_COLUMNS} "
            "FROM subscriptions WHERE user_id = :user_id"
        ),
        {"user_id": user_id},
    )
    row = result.fetchone()
    if row is None:
        return CreditBalanceResponse(
            remaining_credits=settings.FREE_MONTHLY_CREDITS,
            monthly_credits=settings.FREE_MONTHLY_CREDITS,
            plan=PlanTier.FREE,
            plan_label=plan_label(PlanTier.FREE),
        )
    subscription = _row_to_subscription(row)
    return CreditBalanceResponse(
        remaining_credits=subscription.remaining_credits,
        monthly_credits=subscription.monthly_credits,
        plan=subscription.plan,
        plan_label=plan_label(subscription.plan),
    )


async def list_usage(
    db: AsyncSession,
    user_id: uuid.UUID,
    limit: int = 20,
) -> list[CreditUsageEntry]:
    """Most recent usage entries first (max 100)."""
    limit = min(max(limit, 1), MAX_USAGE_PAGE)
    result = await db.execute(
        text(
            "SELECT usage_id, usage_type, delta, balance_after, description, "
            "generation_id, created_at "
            "FROM credit_usages WHERE user_id = :user_id "
            "ORDER BY created_at DESC LIMIT :limit"
        ),
        {"user_id": user_id, "limit": limit},
    )
    return [
        CreditUsageEntry(
            usage_id=row[0],
            usage_type=row[1],
            delta=row[2],
            balance_after=row[3],
            description=row[4],
            generation_id=row[5],
            created_at=row[6],
        )
        for row in result.fetchall()
    ]
