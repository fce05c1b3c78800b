"""Mockup canvas documents: closed layer types and a parser that never raises.

Canvas state is stored as a loosely-typed JSONB document and re-read by the
editor, so every read goes through ``parse_canvas_state``.  Malformed layers
are dropped, numbers are clamped, and a design layer is synthesized when none
survives, so the editor always gets a usable composition.
"""

from __future__ import annotations

import math
import re
import uuid
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import Field

from merchforge.enums import GarmentType
from merchforge.services import jsonb
from merchforge.services.results import CamelModel

DEFAULT_DESIGN_IMAGE = "https://cdn.merchforge.app/mock/default-design.png"
DEFAULT_MOCKUP_PREVIEW = "https://cdn.merchforge.app/mock/default-mockup-preview.png"
DEFAULT_GARMENT_COLOR = "#111827"
DEFAULT_TEXT_COLOR = "#ffffff"
DEFAULT_TEXT = "Limited Drop"

DESIGN_LAYER_ID = "layer-design"
TEXT_LAYER_ID = "layer-text"

MAX_LAYERS = 8

X_RANGE = (0.0, 100.0)
Y_RANGE = (0.0, 100.0)
SCALE_RANGE = (0.2, 2.5)
ROTATION_RANGE = (-180.0, 180.0)
FONT_SIZE_RANGE = (12.0, 96.0)
ANGLE_RANGE = (0.0, 360.0)
DEFAULT_FONT_SIZE = 36

_HEX_COLOR = re.compile(r"^#([0-9A-Fa-f]{3}|[0-9A-Fa-f]{6})$")

# Documents written before the layer model settled used these names.
_LEGACY_DESIGN_TYPES = {"image"}


# ---------------------------------------------------------------------------
# Layer and state models
# ---------------------------------------------------------------------------

class _LayerBase(CamelModel):
    id: str
    name: str
    visible: bool = True
    x: float = 50
    y: float = 50
    scale: float = 1
    rotation: float = 0


class DesignLayer(_LayerBase):
    type: Literal["design"] = "design"
    image_url: str


class TextLayer(_LayerBase):
    type: Literal["text"] = "text"
    text: str
    color: str = DEFAULT_TEXT_COLOR
    font_size: float = DEFAULT_FONT_SIZE


CanvasLayer = Annotated[Union[DesignLayer, TextLayer], Field(discriminator="type")]


class CanvasState(CamelModel):
    version: int = 1
    garment_type: GarmentType = GarmentType.T_SHIRT
    garment_color: str = DEFAULT_GARMENT_COLOR
    product_angle: float = 0
    active_layer_id: str
    layers: list[CanvasLayer]


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------

def _number(value: Any, default: float) -> float:
    # bool is an int subclass but never a coordinate
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, int):
        # JSON integers can exceed float range; saturate so clamping still applies
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    if not math.isfinite(value):
        return default
    return value


def _clamp(value: Any, bounds: tuple[float, float], default: float) -> float:
    low, high = bounds
    return max(low, min(high, _number(value, default)))


def _text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def coerce_hex_color(value: Any, default: str) -> str:
    if isinstance(value, str) and _HEX_COLOR.match(value.strip()):
        return value.strip()
    return default


def _garment_type(value: Any, forced: GarmentType | None) -> GarmentType:
    try:
        return GarmentType(value)
    except (TypeError, ValueError):
        return forced or GarmentType.T_SHIRT


def _new_layer_id() -> str:
    return f"layer-{uuid.uuid4().hex[:8]}"


def _design_layer(image_url: str | None, layer_id: str = DESIGN_LAYER_ID) -> DesignLayer:
    return DesignLayer(
        id=layer_id,
        name="Design",
        x=50,
        y=46,
        image_url=image_url or DEFAULT_DESIGN_IMAGE,
    )


def _parse_layer(raw: Any) -> DesignLayer | TextLayer | None:
    """Rebuild one layer, or return None when it cannot be salvaged."""
    if not isinstance(raw, dict):
        return None

    kind = raw.get("type")
    if not isinstance(kind, str):
        return None
    if kind in _LEGACY_DESIGN_TYPES:
        kind = "design"

    common = {
        "id": _text(raw.get("id")) or "",
        "visible": raw.get("visible") is not False,
        "x": _clamp(raw.get("x"), X_RANGE, 50),
        "y": _clamp(raw.get("y"), Y_RANGE, 50),
        "scale": _clamp(raw.get("scale"), SCALE_RANGE, 1),
        "rotation": _clamp(raw.get("rotation"), ROTATION_RANGE, 0),
    }

    if kind == "design":
        image_url = _text(raw.get("imageUrl")) or _text(raw.get("src"))
        if image_url is None:
            return None
        return DesignLayer(
            name=_text(raw.get("name")) or "Design",
            image_url=image_url,
            **common,
        )

    if kind == "text":
        text = _text(raw.get("text"))
        if text is None:
            return None
        return TextLayer(
            name=_text(raw.get("name")) or "Text",
            text=text,
            color=coerce_hex_color(raw.get("color"), DEFAULT_TEXT_COLOR),
            font_size=_clamp(raw.get("fontSize"), FONT_SIZE_RANGE, DEFAULT_FONT_SIZE),
            **common,
        )

    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def default_canvas_state(
    image_url: str | None = None,
    garment_type: GarmentType | None = None,
) -> CanvasState:
    """A fresh composition: centred design plus a hidden caption layer."""
    return CanvasState(
        garment_type=garment_type or GarmentType.T_SHIRT,
        active_layer_id=DESIGN_LAYER_ID,
        layers=[
            _design_layer(image_url),
            TextLayer(
                id=TEXT_LAYER_ID,
                name="Text",
                visible=False,
                x=50,
                y=78,
                text=DEFAULT_TEXT,
                color=DEFAULT_TEXT_COLOR,
                font_size=38,
            ),
        ],
    )


def parse_canvas_state(
    raw: Any,
    fallback_image_url: str | None = None,
    garment_type: GarmentType | str | None = None,
) -> CanvasState:
    """Rebuild a valid CanvasState from whatever was stored. Never raises.

    *fallback_image_url* is used for the design layer synthesized when none
    survives; callers pass the owning design's current image.  *garment_type*
    wins over an unknown garment type in the document.
    """
    forced = _garment_type(garment_type, None) if garment_type else None
    document = jsonb.load(raw)
    if not isinstance(document, dict) or not isinstance(document.get("layers"), list):
        return default_canvas_state(fallback_image_url, forced)

    layers: list[DesignLayer | TextLayer] = []
    seen_ids: set[str] = set()
    for raw_layer in document["layers"]:
        layer = _parse_layer(raw_layer)
        if layer is None:
            continue
        if not layer.id or layer.id in seen_ids:
            layer.id = _new_layer_id()
        seen_ids.add(layer.id)
        layers.append(layer)
        if len(layers) == MAX_LAYERS:
            break

    if not any(isinstance(layer, DesignLayer) for layer in layers):
        layer_id = DESIGN_LAYER_ID if DESIGN_LAYER_ID not in seen_ids else _new_layer_id()
        layers.insert(0, _design_layer(fallback_image_url, layer_id))
        layers = layers[:MAX_LAYERS]

    active = document.get("activeLayerId")
    if not isinstance(active, str) or active not in {layer.id for layer in layers}:
        active = layers[0].id

    return CanvasState(
        garment_type=_garment_type(document.get("garmentType"), forced),
        garment_color=coerce_hex_color(document.get("garmentColor"), DEFAULT_GARMENT_COLOR),
        product_angle=_clamp(document.get("productAngle"), ANGLE_RANGE, 0),
        active_layer_id=active,
        layers=layers,
    )


def derive_preview_url(state: CanvasState, fallback: Optional[str] = None) -> str:
    """First visible design layer's image, else *fallback*, else the placeholder."""
    for layer in state.layers:
        if isinstance(layer, DesignLayer) and layer.visible:
            return layer.image_url
    return fallback or DEFAULT_MOCKUP_PREVIEW


def dump_canvas_state(state: CanvasState) -> dict[str, Any]:
    """camelCase document for storage; design layers also carry the legacy ``src`` key."""
    document = state.to_json()
    for layer in document["layers"]:
        if layer["type"] == "design":
            layer["src"] = layer["imageUrl"]
    return document
