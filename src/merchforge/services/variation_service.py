"""Variation actions -- what a creator can do with one generated image.

Every action first resolves the design and generation under the caller's
ownership.  Free actions (save, mockup, product) only create records; the
costed transforms debit the ledger, write a new Generation and bump the
design version in one transaction.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Literal, Optional, Union

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from merchforge.database import transaction
from merchforge.enums import CreditUsageType, DesignStatus, ImageTransform, VariationAction
from merchforge.exceptions import (
    NotFoundError,
    ServiceError,
    UnauthorizedError,
    ValidationFailedError,
)
from merchforge.integrations.image_provider import ImageProvider
from merchforge.services import jsonb
from merchforge.services.credit_service import consume_credits, record_usage
from merchforge.services.generation_service import insert_generation
from merchforge.services.mockup_service import create_mockup_from_image
from merchforge.services.product_service import build_product_description, create_draft_product
from merchforge.services.results import CamelModel, ServiceFailure, parse_uuid, server_failure

log = structlog.get_logger()

TRANSFORM_HISTORY_LIMIT = 20
ACTION_SERVER_ERROR = "Unable to complete this action right now."
GENERATION_GONE = "The selected generation could not be found anymore."


@dataclass(frozen=True)
class TransformSpec:
    transform: ImageTransform
    cost: int
    model: str
    usage_type: CreditUsageType
    description: str
    message: str


TRANSFORMS: dict[VariationAction, TransformSpec] = {
    VariationAction.UPSCALE: TransformSpec(
        transform=ImageTransform.UPSCALE,
        cost=2,
        model="mock-upscale-v1",
        usage_type=CreditUsageType.UPSCALE,
        description="Upscaled design variation",
        message="Upscale complete. Design version updated.",
    ),
    VariationAction.REMOVE_BACKGROUND: TransformSpec(
        transform=ImageTransform.REMOVE_BACKGROUND,
        cost=1,
        model="mock-remove-bg-v1",
        usage_type=CreditUsageType.REMOVE_BACKGROUND,
        description="Removed background from design variation",
        message="Background removed and version updated.",
    ),
}


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class VariationActionRequest(CamelModel):
    action: VariationAction
    design_id: str = ""
    generation_id: str = ""
    variation_id: str = ""
    image_url: str = ""


class VariationActionSuccess(CamelModel):
    ok: Literal[True] = True
    action: VariationAction
    message: str
    image_url: Optional[str] = None
    design_id: Optional[uuid.UUID] = None
    mockup_id: Optional[uuid.UUID] = None
    product_id: Optional[uuid.UUID] = None
    redirect_path: Optional[str] = None
    credits_remaining: Optional[int] = None


VariationActionResult = Union[VariationActionSuccess, ServiceFailure]


@dataclass(frozen=True)
class SourceDesign:
    design_id: uuid.UUID
    title: str
    prompt: str
    style_preset: str | None
    color_palette: list[Any]
    reference_image_url: str | None
    metadata: dict[str, Any]


@dataclass(frozen=True)
class ActionContext:
    """Everything a handler needs once ownership has been confirmed."""

    user_id: uuid.UUID
    design: SourceDesign
    generation_id: uuid.UUID
    variation_id: str
    image_url: str

    def provenance(self) -> dict[str, Any]:
        return {
            "sourceDesignId": str(self.design.design_id),
            "sourceGenerationId": str(self.generation_id),
            "sourceVariationId": self.variation_id,
        }


# ---------------------------------------------------------------------------
# Validation and lookups
# ---------------------------------------------------------------------------

def validate_action_input(request: VariationActionRequest) -> None:
    if not request.design_id.strip():
        raise ValidationFailedError("Missing design reference for this action.")
    if not request.generation_id.strip():
        raise ValidationFailedError("Missing generation reference for this action.")
    if not request.variation_id.strip():
        raise ValidationFailedError("Missing variation reference for this action.")
    if not request.image_url.strip():
        raise ValidationFailedError("Missing image URL for this action.")


async def _load_owned_design(
    db: AsyncSession, user_id: uuid.UUID, design_id: uuid.UUID | None,
) -> SourceDesign | None:
    if design_id is None:
        return None
    result = await db.execute(
        text(
            "SELECT design_id, title, prompt, style_preset, color_palette, "
            "reference_image_url, metadata "
            "FROM designs WHERE design_id = :design_id AND user_id = :user_id"
        ),
        {"design_id": design_id, "user_id": user_id},
    )
    row = result.fetchone()
    if row is None:
        return None
    return SourceDesign(
        design_id=row[0],
        title=row[1],
        prompt=row[2],
        style_preset=row[3],
        color_palette=jsonb.load_list(row[4]),
        reference_image_url=row[5],
        metadata=jsonb.load_object(row[6]),
    )


async def _owns_generation(
    db: AsyncSession, user_id: uuid.UUID, generation_id: uuid.UUID | None,
) -> bool:
    if generation_id is None:
        return False
    result = await db.execute(
        text(
            "SELECT generation_id FROM generations "
            "WHERE generation_id = :generation_id AND user_id = :user_id"
        ),
        {"generation_id": generation_id, "user_id": user_id},
    )
    return result.fetchone() is not None


async def resolve_action_context(
    db: AsyncSession, user_id: uuid.UUID, request: VariationActionRequest,
) -> ActionContext:
    """Validate the request and confirm the caller owns both referenced rows.

    Ids that are not UUIDs and rows owned by someone else look the same as
    rows that do not exist.
    """
    validate_action_input(request)
    design_id = parse_uuid(request.design_id)
    generation_id = parse_uuid(request.generation_id)

    design = await _load_owned_design(db, user_id, design_id)
    owns_generation = await _owns_generation(db, user_id, generation_id)
    if design is None or not owns_generation:
        raise NotFoundError(GENERATION_GONE)

    return ActionContext(
        user_id=user_id,
        design=design,
        generation_id=generation_id,
        variation_id=request.variation_id.strip(),
        image_url=request.image_url.strip(),
    )


def build_next_design_metadata(
    current: dict[str, Any],
    action: VariationAction,
    ctx: ActionContext,
    output_image_url: str,
) -> dict[str, Any]:
    """Append a transform history entry, keeping only the most recent 20."""
    history = current.get("transformHistory")
    if not isinstance(history, list):
        history = []
    entry = {
        "action": action.value,
        "sourceGenerationId": str(ctx.generation_id),
        "sourceVariationId": ctx.variation_id,
        "sourceImageUrl": ctx.image_url,
        "outputImageUrl": output_image_url,
        "createdAtIso": datetime.now(timezone.utc).isoformat(),
    }
    return {
        **current,
        "lastAction": action.value,
        "lastOutputImageUrl": output_image_url,
        "transformHistory": [*history, entry][-TRANSFORM_HISTORY_LIMIT:],
    }


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def _save(
    db: AsyncSession, provider: ImageProvider, ctx: ActionContext,
) -> VariationActionSuccess:
    design_id = uuid.uuid4()
    now = datetime.now(timezone.utc)
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
            "user_id": ctx.user_id,
            "title": f"{ctx.design.title} (Saved)",
            "prompt": ctx.design.prompt,
            "style": ctx.design.style_preset,
            "colors": jsonb.dump(ctx.design.color_palette),
            "reference_url": ctx.design.reference_image_url,
            "image_url": ctx.image_url,
            "status": DesignStatus.DRAFT.value,
            "metadata": jsonb.dump({"source": "generator_save_action", **ctx.provenance()}),
            "now": now,
        },
    )
    return VariationActionSuccess(
        action=VariationAction.SAVE,
        message="Design saved to your library.",
        design_id=design_id,
        redirect_path="/dashboard/designs",
    )


async def _create_mockup(
    db: AsyncSession, provider: ImageProvider, ctx: ActionContext,
) -> VariationActionSuccess:
    mockup_id = await create_mockup_from_image(
        db,
        ctx.user_id,
        ctx.design.design_id,
        ctx.design.title,
        ctx.image_url,
        metadata=ctx.provenance(),
    )
    return VariationActionSuccess(
        action=VariationAction.CREATE_MOCKUP,
        message="Mockup created successfully.",
        mockup_id=mockup_id,
        redirect_path=f"/dashboard/mockups/{mockup_id}",
    )


async def _create_product(
    db: AsyncSession, provider: ImageProvider, ctx: ActionContext,
) -> VariationActionSuccess:
    product_id, _slug = await create_draft_product(
        db,
        ctx.user_id,
        ctx.design.design_id,
        ctx.design.title,
        build_product_description(ctx.design.style_preset, ctx.design.prompt),
        ctx.image_url,
        metadata=ctx.provenance(),
    )
    return VariationActionSuccess(
        action=VariationAction.CREATE_PRODUCT,
        message="Draft product created in your storefront.",
        product_id=product_id,
        redirect_path="/dashboard/storefront",
    )


def _transform_handler(action: VariationAction):
    spec = TRANSFORMS[action]

    async def _run(
        db: AsyncSession, provider: ImageProvider, ctx: ActionContext,
    ) -> VariationActionSuccess:
        output_url = await provider.transform(ctx.image_url, spec.transform)

        debit = await consume_credits(db, ctx.user_id, spec.cost)
        generation_id = await insert_generation(
            db,
            ctx.user_id,
            ctx.design.design_id,
            model=spec.model,
            prompt=ctx.design.prompt,
            colors=ctx.design.color_palette,
            reference_url=ctx.image_url,
            variation_count=1,
            output_urls=[output_url],
            cost=spec.cost,
            metadata={
                "sourceGenerationId": str(ctx.generation_id),
                "sourceVariationId": ctx.variation_id,
                "action": action.value,
            },
        )
        await db.execute(
            text(
                "UPDATE designs SET primary_image_url = :image_url, "
                "thumbnail_url = :image_url, version = version + 1, "
                "status = :status, metadata = :metadata, updated_at = :now "
                "WHERE design_id = :design_id"
            ),
            {
                "design_id": ctx.design.design_id,
                "image_url": output_url,
                "status": DesignStatus.GENERATED.value,
                "metadata": jsonb.dump(
                    build_next_design_metadata(ctx.design.metadata, action, ctx, output_url)
                ),
                "now": datetime.now(timezone.utc),
            },
        )
        await record_usage(
            db,
            ctx.user_id,
            spec.usage_type,
            spec.cost,
            debit.balance_after,
            spec.description,
            generation_id=generation_id,
            metadata={
                "sourceGenerationId": str(ctx.generation_id),
                "sourceVariationId": ctx.variation_id,
                "sourceImageUrl": ctx.image_url,
            },
        )
        return VariationActionSuccess(
            action=action,
            message=spec.message,
            image_url=output_url,
            design_id=ctx.design.design_id,
            credits_remaining=debit.balance_after,
        )

    return _run


ActionHandler = Callable[[AsyncSession, ImageProvider, ActionContext], Awaitable[VariationActionSuccess]]

ACTION_HANDLERS: dict[VariationAction, ActionHandler] = {
    VariationAction.SAVE: _save,
    VariationAction.CREATE_MOCKUP: _create_mockup,
    VariationAction.CREATE_PRODUCT: _create_product,
    VariationAction.UPSCALE: _transform_handler(VariationAction.UPSCALE),
    VariationAction.REMOVE_BACKGROUND: _transform_handler(VariationAction.REMOVE_BACKGROUND),
}


# ---------------------------------------------------------------------------
# Public operation
# ---------------------------------------------------------------------------

async def run_variation_action(
    db: AsyncSession,
    provider: ImageProvider,
    user_id: uuid.UUID | None,
    request: VariationActionRequest,
) -> VariationActionResult:
    """Dispatch one variation action for the caller.

    Repeated calls are not de-duplicated: retrying a transform charges again.
    """
    if user_id is None:
        return ServiceFailure.from_error(UnauthorizedError())
    try:
        async with transaction(db):
            ctx = await resolve_action_context(db, user_id, request)
            result = await ACTION_HANDLERS[request.action](db, provider, ctx)
    except ServiceError as exc:
        return ServiceFailure.from_error(exc)
    except Exception:
        log.exception(
            "variation_action_failed",
            user_id=str(user_id),
            action=request.action.value,
        )
        return server_failure(ACTION_SERVER_ERROR)

    log.info(
        "variation_action_completed",
        user_id=str(user_id),
        action=request.action.value,
        credits_remaining=result.credits_remaining,
    )
    return result
