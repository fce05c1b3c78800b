"""Closed sets of states and kinds persisted by the platform."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    VALIDATION = "VALIDATION"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    SERVER_ERROR = "SERVER_ERROR"


class PlanTier(str, Enum):
    FREE = "FREE"
    PRO = "PRO"
    BUSINESS = "BUSINESS"


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"


class CreditUsageType(str, Enum):
    GENERATION = "GENERATION"
    UPSCALE = "UPSCALE"
    REMOVE_BACKGROUND = "REMOVE_BACKGROUND"
    TOP_UP = "TOP_UP"


class DesignStatus(str, Enum):
    DRAFT = "DRAFT"
    GENERATED = "GENERATED"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"
    FAILED = "FAILED"


class GenerationStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class GenerationProvider(str, Enum):
    OPENAI = "OPENAI"
    STABILITY = "STABILITY"
    INTERNAL = "INTERNAL"


class MockupStatus(str, Enum):
    DRAFT = "DRAFT"
    READY = "READY"
    EXPORTED = "EXPORTED"


class ProductStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class PodProvider(str, Enum):
    NONE = "NONE"
    PRINTFUL = "PRINTFUL"
    PRINTIFY = "PRINTIFY"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FULFILLMENT = "FULFILLMENT"
    IN_PRODUCTION = "IN_PRODUCTION"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELED = "CANCELED"
    REFUNDED = "REFUNDED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class GarmentType(str, Enum):
    T_SHIRT = "T_SHIRT"
    HOODIE = "HOODIE"
    SWEATSHIRT = "SWEATSHIRT"
    SWEATER = "SWEATER"
    TANK_TOP = "TANK_TOP"
    HAT = "HAT"
    CAP = "CAP"
    MUG = "MUG"
    POSTER = "POSTER"
    CANVAS = "CANVAS"
    STICKER = "STICKER"
    TOTE_BAG = "TOTE_BAG"
    PHONE_CASE = "PHONE_CASE"
    NOTEBOOK = "NOTEBOOK"


class StylePreset(str, Enum):
    CYBERPUNK = "Cyberpunk"
    MINIMALIST = "Minimalist"
    VINTAGE = "Vintage"
    VAPORWAVE = "Vaporwave"
    VECTOR_ART = "Vector Art"
    STREETWEAR_90S = "90s Streetwear"


class VariationAction(str, Enum):
    SAVE = "SAVE"
    UPSCALE = "UPSCALE"
    REMOVE_BACKGROUND = "REMOVE_BACKGROUND"
    CREATE_MOCKUP = "CREATE_MOCKUP"
    CREATE_PRODUCT = "CREATE_PRODUCT"


class ImageTransform(str, Enum):
    UPSCALE = "upscale"
    REMOVE_BACKGROUND = "remove_bg"


class OrderAction(str, Enum):
    MARK_SHIPPED = "MARK_SHIPPED"
    MARK_DELIVERED = "MARK_DELIVERED"
    CANCEL_ORDER = "CANCEL_ORDER"


class ProductAction(str, Enum):
    PUBLISH = "PUBLISH"
    ARCHIVE = "ARCHIVE"


class ExportFormat(str, Enum):
    PNG = "PNG"
    PRINT_READY = "PRINT_READY"
