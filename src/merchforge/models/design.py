"""Design and generation models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from merchforge.models.base import Base, utcnow

if TYPE_CHECKING:
    from merchforge.models.user import User


class Design(Base):
    __tablename__ = "designs"

    design_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.user_id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    style_preset: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    color_palette: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    reference_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    primary_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    metadata_: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata", JSONB, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("version >= 1", name="ck_design_version_positive"),
        CheckConstraint(
            "status IN ('DRAFT', 'GENERATED', 'PUBLISHED', 'ARCHIVED', 'FAILED')",
            name="ck_design_status",
        ),
    )

    user: Mapped[User] = relationship(back_populates="designs")
    generations: Mapped[list[Generation]] = relationship(
        back_populates="design", lazy="selectin"
    )


class Generation(Base):
    """One synthesis or transformation run, costed in credits."""

    __tablename__ = "generations"

    generation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.user_id"), nullable=False
    )
    design_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("designs.design_id"), nullable=False
    )
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    model: Mapped[str] = mapped_column(String(80), nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    reference_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color_palette: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    variation_count: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    output_urls: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    cost_credits: Mapped[int] = mapped_column(Integer, nullable=False)
    metadata_: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata", JSONB, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint("cost_credits >= 0", name="ck_generation_cost_non_negative"),
    )

    design: Mapped[Design] = relationship(back_populates="generations")
