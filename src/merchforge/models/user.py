"""User, subscription, and credit ledger models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from merchforge.models.base import Base, utcnow

if TYPE_CHECKING:
    from merchforge.models.design import Design


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    username: Mapped[Optional[str]] = mapped_column(
        String(40), unique=True, nullable=True
    )
    full_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    subscription: Mapped[Optional[Subscription]] = relationship(
        back_populates="user", uselist=False, lazy="selectin"
    )
    credit_usages: Mapped[list[CreditUsage]] = relationship(
        back_populates="user", lazy="selectin"
    )
    designs: Mapped[list[Design]] = relationship(
        back_populates="user", lazy="selectin"
    )


class Subscription(Base):
    """One row per user, created lazily as a FREE plan on first metered action."""

    __tablename__ = "subscriptions"

    subscription_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.user_id"), unique=True, nullable=False
    )
    plan: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    monthly_credits: Mapped[int] = mapped_column(Integer, nullable=False)
    remaining_credits: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("remaining_credits >= 0", name="ck_subscription_credits_non_negative"),
        CheckConstraint(
            "plan IN ('FREE', 'PRO', 'BUSINESS')", name="ck_subscription_plan"
        ),
    )

    user: Mapped[User] = relationship(back_populates="subscription")


class CreditUsage(Base):
    """Append-only ledger entry. Rows are protected by an immutability trigger."""

    __tablename__ = "credit_usages"

    usage_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.user_id"), nullable=False
    )
    generation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("generations.generation_id"), nullable=True
    )
    usage_type: Mapped[str] = mapped_column(String(30), nullable=False)
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata", JSONB, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "usage_type IN ('GENERATION', 'UPSCALE', 'REMOVE_BACKGROUND', 'TOP_UP')",
            name="ck_credit_usage_type",
        ),
        CheckConstraint("balance_after >= 0", name="ck_credit_usage_balance"),
    )

    user: Mapped[User] = relationship(back_populates="credit_usages")
