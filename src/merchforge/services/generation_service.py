"""Generation orchestrator -- validated prompt in, credited design out.

Flow for one request:
1. Validate and normalize the input (no side effects on failure)
2. Confirm the caller still exists
3. Ask the image provider for the variations
4. In one transaction: debit credits, insert the Design, insert the
   Generation, append the usage entry
5. Return the variations with the remaining balance

Any failure after step 3 rolls back the whole transaction, so a charge
never exists without its design and vice versa.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal, Optional, Union

import structlog
from pydantic import Field
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from merchforge.database import transaction
from merchforge.enums import (
    CreditUsageType,
    DesignStatus,
    GenerationProvider,
    GenerationStatus,
    PlanTier,
    StylePreset,
)
from merchforge.exceptions import ServiceError, UnauthorizedError, ValidationFailedError
from merchforge.integrations.image_provider import ImageProvider, SynthesizedImage
from merchforge.services import jsonb
from merchforge.services.credit_service import consume_credits, get_balance, record_usage
from merchforge.services.results import CamelModel, ServiceFailure, server_failure

log = structlog.get_logger()

MIN_PROMPT_LENGTH = 8
MAX_COLORS = 6
MIN_VARIATIONS = 1
MAX_VARIATIONS = 8
DEFAULT_VARIATIONS = 4
TITLE_MAX_LENGTH = 44
PROMPT_HISTORY_LIMIT = 8
DESIGN_LIBRARY_LIMIT = 24

SYNTHESIS_MODEL = "mock-model-v1"
GENERATE_SERVER_ERROR = "Unable to generate right now. Please try again."


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class GenerateDesignRequest(CamelModel):
    prompt: str = ""
    style_preset: Optional[str] = None
    colors: list[str] = Field(default_factory=list)
    reference_image_url: Optional[str] = None
    variation_count: Any = DEFAULT_VARIATIONS


class VariationResult(CamelModel):
    id: str
    image_url: str
    status: str


class GenerateDesignSuccess(CamelModel):
    ok: Literal[True] = True
    design_id: uuid.UUID
    generation_id: uuid.UUID
    results: list[VariationResult]
    credits_remaining: int


GenerateDesignResult = Union[GenerateDesignSuccess, ServiceFailure]


class PromptHistoryItem(CamelModel):
    design_id: uuid.UUID
    prompt: str
    style_preset: Optional[str] = None
    colors: list[str] = Field(default_factory=list)
    created_at: datetime


class GeneratorOverview(CamelModel):
    credits_remaining: int
    monthly_credits: int
    plan: PlanTier
    plan_label: str
    prompt_history: list[PromptHistoryItem]


GalleryStatus = Literal["Live", "Draft", "Archived"]


class DesignCard(CamelModel):
    design_id: uuid.UUID
    title: str
    prompt: str
    image_url: str
    status: GalleryStatus
    created_at: datetime


class DesignsOverview(CamelModel):
    designs: list[DesignCard]


@dataclass(frozen=True)
class NormalizedGeneration:
    """Request fields after trimming, clamping, and preset matching."""

    prompt: str
    style: str
    colors: list[str]
    reference_url: str | None
    count: int


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def normalize_style_preset(value: str | None) -> str:
    """Case-insensitive match against the preset list; unknown values become Cyberpunk."""
    wanted = (value or "").strip().lower()
    for preset in StylePreset:
        if preset.value.lower() == wanted:
            return preset.value
    return StylePreset.CYBERPUNK.value


def clamp_variation_count(value: Any) -> int:
    """Coerce *value* to an integer in 1..8. Garbage counts as the minimum."""
    if isinstance(value, bool):
        return MIN_VARIATIONS
    try:
        number = float(value)
    except (TypeError, ValueError):
        return MIN_VARIATIONS
    if math.isnan(number):
        return MIN_VARIATIONS
    if math.isinf(number):
        return MAX_VARIATIONS if number > 0 else MIN_VARIATIONS
    return max(MIN_VARIATIONS, min(MAX_VARIATIONS, int(number)))


def normalize_colors(colors: list[str]) -> list[str]:
    """Trim, drop blanks, de-duplicate in order, keep at most six."""
    unique: list[str] = []
    for color in colors:
        trimmed = color.strip() if isinstance(color, str) else ""
        if trimmed and trimmed not in unique:
            unique.append(trimmed)
    return unique[:MAX_COLORS]


def build_design_title(prompt: str) -> str:
    compact = " ".join(prompt.split())
    excerpt = compact[:TITLE_MAX_LENGTH]
    return excerpt if len(excerpt) == len(compact) else f"{excerpt}..."


def normalize_generation_input(request: GenerateDesignRequest) -> NormalizedGeneration:
    """Validate then normalize a generation request.

    Raises ValidationFailedError before anything is written.
    """
    prompt = (request.prompt or "").strip()
    if len(prompt) < MIN_PROMPT_LENGTH:
        raise ValidationFailedError("Prompt must be at least 8 characters.")

    colors = normalize_colors(request.colors)
    if not colors:
        raise ValidationFailedError("Pick at least one color for better results.")

    reference_url = (request.reference_image_url or "").strip() or None

    return NormalizedGeneration(
        prompt=prompt,
        style=normalize_style_preset(request.style_preset),
        colors=colors,
        reference_url=reference_url,
        count=clamp_variation_count(request.variation_count),
    )


# ---------------------------------------------------------------------------
# DB helpers
# ---------------------------------------------------------------------------

async def ensure_user_exists(db: AsyncSession, user_id: uuid.UUID) -> None:
    """Raise UnauthorizedError when the session points at a deleted user."""
    result = await db.execute(
        text("SELECT 1 FROM users WHERE user_id = :user_id"),
        {"user_id": user_id},
    )
    if result.fetchone() is None:
        raise UnauthorizedError()


async def _insert_design(
    db: AsyncSession,
    user_id: uuid.UUID,
    normalized: NormalizedGeneration,
    images: list[SynthesizedImage],
) -> uuid.UUID:
    design_id = uuid.uuid4()
    now = datetime.now(timezone.utc)
    first_url = images[0].image_url if images else None
    await db.execute(
        text(
            "INSERT INTO designs "
            "(design_id, user_id, title, prompt, style_preset, color_palette, "
            "reference_image_url, primary_image_url, thumbnail_url, status, "
            "version, metadata, created_at, updated_at) "
            "VALUES (:design_id, :user_id, :title, :prompt, :style, :colors, "
            ":reference_url, :image_url, :image_url, :status, 1, :metadata, "
            ":now, :now)"
        ),
        {
            "design_id": design_id,
            "user_id": user_id,
            "title": build_design_title(normalized.prompt),
            "prompt": normalized.prompt,
            "style": normalized.style,
            "colors": jsonb.dump(normalized.colors),
            "reference_url": normalized.reference_url,
            "image_url": first_url,
            "status": DesignStatus.GENERATED.value,
            "metadata": jsonb.dump(
                {"source": "generator_service", "variationCount": normalized.count}
            ),
            "now": now,
        },
    )
    return design_id


async def insert_generation(
    db: AsyncSession,
    user_id: uuid.UUID,
    design_id: uuid.UUID,
    *,
    model: str,
    prompt: str,
    colors: list[str],
    reference_url: str | None,
    variation_count: int,
    output_urls: list[str],
    cost: int,
    metadata: dict[str, Any],
) -> uuid.UUID:
    """Insert a completed Generation row and return its id."""
    generation_id = uuid.uuid4()
    now = datetime.now(timezone.utc)
    await db.execute(
        text(
            "INSERT INTO generations "
            "(generation_id, user_id, design_id, provider, model, prompt, "
            "reference_image_url, color_palette, variation_count, status, "
            "progress, output_urls, cost_credits, metadata, created_at, completed_at) "
            "VALUES (:generation_id, :user_id, :design_id, :provider, :model, "
            ":prompt, :reference_url, :colors, :variation_count, :status, 100, "
            ":output_urls, :cost, :metadata, :now, :now)"
        ),
        {
            "generation_id": generation_id,
            "user_id": user_id,
            "design_id": design_id,
            "provider": GenerationProvider.OPENAI.value,
            "model": model,
            "prompt": prompt,
            "reference_url": reference_url,
            "colors": jsonb.dump(colors),
            "variation_count": variation_count,
            "status": GenerationStatus.COMPLETED.value,
            "output_urls": jsonb.dump(output_urls),
            "cost": cost,
            "metadata": jsonb.dump(metadata),
            "now": now,
        },
    )
    return generation_id


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------

async def _generate(
    db: AsyncSession,
    provider: ImageProvider,
    user_id: uuid.UUID,
    request: GenerateDesignRequest,
) -> GenerateDesignSuccess:
    normalized = normalize_generation_input(request)
    await ensure_user_exists(db, user_id)

    images = await provider.synthesize(
        normalized.prompt,
        normalized.style,
        normalized.colors,
        normalized.reference_url,
        normalized.count,
    )

    debit = await consume_credits(db, user_id, normalized.count)
    design_id = await _insert_design(db, user_id, normalized, images)
    generation_id = await insert_generation(
        db,
        user_id,
        design_id,
        model=SYNTHESIS_MODEL,
        prompt=normalized.prompt,
        colors=normalized.colors,
        reference_url=normalized.reference_url,
        variation_count=normalized.count,
        output_urls=[image.image_url for image in images],
        cost=normalized.count,
        metadata={"stylePreset": normalized.style, "variationIds": [image.id for image in images]},
    )
    plural = "" if normalized.count == 1 else "s"
    await record_usage(
        db,
        user_id,
        CreditUsageType.GENERATION,
        normalized.count,
        debit.balance_after,
        f"Generated {normalized.count} variation{plural}",
        generation_id=generation_id,
        metadata={"designId": str(design_id)},
    )

    log.info(
        "design_generated",
        user_id=str(user_id),
        design_id=str(design_id),
        variations=normalized.count,
        credits_remaining=debit.balance_after,
    )
    return GenerateDesignSuccess(
        design_id=design_id,
        generation_id=generation_id,
        results=[
            VariationResult(id=image.id, image_url=image.image_url, status=image.status)
            for image in images
        ],
        credits_remaining=debit.balance_after,
    )


async def generate_design(
    db: AsyncSession,
    provider: ImageProvider,
    user_id: uuid.UUID | None,
    request: GenerateDesignRequest,
) -> GenerateDesignResult:
    """Produce variations for a prompt and charge one credit per variation."""
    if user_id is None:
        return ServiceFailure.from_error(UnauthorizedError())
    try:
        async with transaction(db):
            return await _generate(db, provider, user_id, request)
    except ServiceError as exc:
        return ServiceFailure.from_error(exc)
    except Exception:
        log.exception("generate_design_failed", user_id=str(user_id))
        return server_failure(GENERATE_SERVER_ERROR)


async def get_generator_overview(db: AsyncSession, user_id: uuid.UUID) -> GeneratorOverview:
    """Balance, plan, and the most recent prompts for the generator workspace."""
    balance = await get_balance(db, user_id)
    result = await db.execute(
        text(
            "SELECT design_id, prompt, style_preset, color_palette, created_at "
            "FROM designs WHERE user_id = :user_id "
            "ORDER BY created_at DESC LIMIT :limit"
        ),
        {"user_id": user_id, "limit": PROMPT_HISTORY_LIMIT},
    )
    history = [
        PromptHistoryItem(
            design_id=row[0],
            prompt=row[1],
            style_preset=row[2],
            colors=[str(color) for color in jsonb.load_list(row[3])],
            created_at=row[4],
        )
        for row in result.fetchall()
    ]
    return GeneratorOverview(
        credits_remaining=balance.remaining_credits,
        monthly_credits=balance.monthly_credits,
        plan=balance.plan,
        plan_label=balance.plan_label,
        prompt_history=history,
    )


def gallery_status(status: DesignStatus | str) -> GalleryStatus:
    """Library badge for a design status."""
    status = DesignStatus(status)
    if status == DesignStatus.PUBLISHED:
        return "Live"
    if status in (DesignStatus.ARCHIVED, DesignStatus.FAILED):
        return "Archived"
    return "Draft"


async def get_designs_overview(db: AsyncSession, user_id: uuid.UUID) -> DesignsOverview:
    """The user's design library, newest first. Designs without an image are skipped."""
    result = await db.execute(
        text(
            "SELECT design_id, title, prompt, status, thumbnail_url, "
            "primary_image_url, created_at "
            "FROM designs WHERE user_id = :user_id "
            "ORDER BY created_at DESC LIMIT :limit"
        ),
        {"user_id": user_id, "limit": DESIGN_LIBRARY_LIMIT},
    )
    designs = []
    for row in result.fetchall():
        image_url = row[4] or row[5]
        if not image_url:
            continue
        designs.append(
            DesignCard(
                design_id=row[0],
                title=row[1],
                prompt=row[2],
                image_url=image_url,
                status=gallery_status(row[3]),
                created_at=row[6],
            )
        )
    return DesignsOverview(designs=designs)
