"""ORM models package -- re-exports all models and the Base class."""

from merchforge.models.base import Base
from merchforge.models.user import (
    User,
    Subscription,
    CreditUsage,
)
from merchforge.models.design import (
    Design,
    Generation,
)
from merchforge.models.store import (
    Mockup,
    StoreProduct,
    Order,
)

__all__ = [
    "Base",
    "User",
    "Subscription",
    "CreditUsage",
    "Design",
    "Generation",
    "Mockup",
    "StoreProduct",
    "Order",
]
