"""Storefront products -- per-owner unique slugs, draft creation, publish/archive."""

from __future__ import annotations

import re
import time
import uuid
from datetime import datetime, timezone
from typing import Literal, Union

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from merchforge.config import settings
from merchforge.database import transaction
from merchforge.enums import PodProvider, ProductAction, ProductStatus
from merchforge.exceptions import InvalidTransitionError, NotFoundError, ServiceError
from merchforge.services import jsonb
from merchforge.services.results import CamelModel, ServiceFailure, server_failure

log = structlog.get_logger()

SLUG_MAX_LENGTH = 46
SLUG_FALLBACK = "ai-design"
MAX_SLUG_ATTEMPTS = 20
DESCRIPTION_EXCERPT_LENGTH = 120

PRODUCT_NOT_FOUND = "Product not found."
PRODUCT_SERVER_ERROR = "Unable to update this product right now."

# action -> (allowed source statuses, target status)
PRODUCT_TRANSITIONS: dict[ProductAction, tuple[frozenset[ProductStatus], ProductStatus]] = {
    ProductAction.PUBLISH: (frozenset({ProductStatus.DRAFT}), ProductStatus.ACTIVE),
    ProductAction.ARCHIVE: (
        frozenset({ProductStatus.DRAFT, ProductStatus.ACTIVE}),
        ProductStatus.ARCHIVED,
    ),
}

_PRODUCT_MESSAGES = {
    ProductAction.PUBLISH: "Product is now live in your storefront.",
    ProductAction.ARCHIVE: "Product archived.",
}

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_REPEATED_HYPHENS = re.compile(r"-+")


class ProductTransitionSuccess(CamelModel):
    ok: Literal[True] = True
    product_id: uuid.UUID
    status: ProductStatus
    message: str


ProductTransitionResult = Union[ProductTransitionSuccess, ServiceFailure]


# ---------------------------------------------------------------------------
# Slugs
# ---------------------------------------------------------------------------

def slugify(value: str) -> str:
    """Lowercase URL-safe form of *value*, at most 46 characters."""
    slug = _NON_SLUG_CHARS.sub("", value.lower()).strip()
    slug = _WHITESPACE.sub("-", slug)
    slug = _REPEATED_HYPHENS.sub("-", slug)[:SLUG_MAX_LENGTH]
    return slug or SLUG_FALLBACK


def allocate_unique_slug(base: str, taken: set[str], now_ms: int | None = None) -> str:
    """Pick ``base``, then ``base-2`` .. ``base-20``; past that, a time suffix."""
    for attempt in range(1, MAX_SLUG_ATTEMPTS + 1):
        candidate = base if attempt == 1 else f"{base}-{attempt}"
        if candidate not in taken:
            return candidate
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{base}-{str(now_ms)[-5:]}"


async def fetch_taken_slugs(db: AsyncSession, owner_id: uuid.UUID, base: str) -> set[str]:
    """All of the owner's slugs that could collide with *base* or its numbered forms."""
    result = await db.execute(
        text(
            "SELECT slug FROM store_products "
            "WHERE owner_id = :owner_id AND (slug = :base OR slug LIKE :pattern)"
        ),
        {"owner_id": owner_id, "base": base, "pattern": f"{base}-%"},
    )
    return {row[0] for row in result.fetchall()}


def build_product_description(style: str | None, prompt: str) -> str:
    aesthetic = f"{style.strip()} aesthetic" if style and style.strip() else "AI-crafted aesthetic"
    compact = " ".join(prompt.split())
    excerpt = compact[:DESCRIPTION_EXCERPT_LENGTH]
    suffix = "" if len(excerpt) == len(compact) else "..."
    return f"Limited drop from MerchForge AI. {aesthetic}. {excerpt}{suffix}"


# ---------------------------------------------------------------------------
# Draft creation
# ---------------------------------------------------------------------------

async def create_draft_product(
    db: AsyncSession,
    owner_id: uuid.UUID,
    design_id: uuid.UUID | None,
    title: str,
    description: str,
    image_url: str,
    metadata: dict | None = None,
) -> tuple[uuid.UUID, str]:
    """Insert a DRAFT product with a slug unique for this owner.

    Returns (product_id, slug).
    """
    base = slugify(title)
    slug = allocate_unique_slug(base, await fetch_taken_slugs(db, owner_id, base))
    product_id = uuid.uuid4()
    now = datetime.now(timezone.utc)
    await db.execute(
        text(
            "INSERT INTO store_products "
            "(product_id, owner_id, design_id, slug, title, description, "
            "price_cents, currency, status, pod_provider, images, metadata, "
            "created_at, updated_at) "
            "VALUES (:product_id, :owner_id, :design_id, :slug, :title, "
            ":description, :price_cents, 'USD', :status, :pod_provider, "
            ":images, :metadata, :now, :now)"
        ),
        {
            "product_id": product_id,
            "owner_id": owner_id,
            "design_id": design_id,
            "slug": slug,
            "title": title,
            "description": description,
            "price_cents": settings.DEFAULT_PRODUCT_PRICE_CENTS,
            "status": ProductStatus.DRAFT.value,
            "pod_provider": PodProvider.NONE.value,
            "images": jsonb.dump([image_url]),
            "metadata": jsonb.dump(metadata or {}),
            "now": now,
        },
    )
    return product_id, slug


# ---------------------------------------------------------------------------
# Publish / archive
# ---------------------------------------------------------------------------

def resolve_product_transition(current: ProductStatus, action: ProductAction) -> ProductStatus:
    allowed, target = PRODUCT_TRANSITIONS[action]
    if current not in allowed:
        raise InvalidTransitionError(
            "This status change is not allowed for the current product state."
        )
    return target


async def _transition(
    db: AsyncSession,
    owner_id: uuid.UUID,
    product_id: uuid.UUID,
    action: ProductAction,
) -> ProductTransitionSuccess:
    result = await db.execute(
        text(
            "SELECT status FROM store_products "
            "WHERE product_id = :product_id AND owner_id = :owner_id FOR UPDATE"
        ),
        {"product_id": product_id, "owner_id": owner_id},
    )
    row = result.fetchone()
    if row is None:
        raise NotFoundError(PRODUCT_NOT_FOUND)

    target = resolve_product_transition(ProductStatus(row[0]), action)
    await db.execute(
        text(
            "UPDATE store_products SET status = :status, updated_at = :now "
            "WHERE product_id = :product_id"
        ),
        {
            "product_id": product_id,
            "status": target.value,
            "now": datetime.now(timezone.utc),
        },
    )
    return ProductTransitionSuccess(
        product_id=product_id, status=target, message=_PRODUCT_MESSAGES[action],
    )


async def transition_product(
    db: AsyncSession,
    owner_id: uuid.UUID,
    product_id: uuid.UUID,
    action: ProductAction,
) -> ProductTransitionResult:
    """Publish or archive one of the owner's products under a row lock."""
    try:
        async with transaction(db):
            return await _transition(db, owner_id, product_id, action)
    except ServiceError as exc:
        return ServiceFailure.from_error(exc)
    except Exception:
        log.exception(
            "product_transition_failed",
            user_id=str(owner_id),
            product_id=str(product_id),
            action=action.value,
        )
        return server_failure(PRODUCT_SERVER_ERROR)
