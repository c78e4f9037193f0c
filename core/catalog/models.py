"""
Frostline Catalog - Engine-Facing Data Model
============================================
Immutable snapshots of catalog and pricing state, as read from a
CatalogRepository. Engines never mutate these; every write goes
back through the repository.

Product  - catalog entry with its received batches
Batch    - a dated, quantity-tracked lot of a product
Promotion - a discount rule (bulk tiers, expiry tiers, or flat)

Applicability is a tagged variant resolved once at load time:
AllProducts | ByProductIds | ByCategories.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from core.config.rules import BulkTier, ExpiryTier
from core.time.temporal import TimeWindow, days_until, ensure_aware, is_past


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class BatchStatus(Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    DEPLETED = "depleted"


class PromotionType(Enum):
    BULK_DISCOUNT = "bulk_discount"
    EXPIRY_DISCOUNT = "expiry_discount"
    OTHER = "other"


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


CUSTOMER_TYPE_ALL = "all"


# ══════════════════════════════════════════════════════════════
# BATCH
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Batch:
    """
    A received lot of a product.

    remaining_quantity is None for legacy records that only ever
    tracked `quantity`; available_quantity hides that distinction.
    A batch with nothing left is logically depleted whatever its
    status field says.
    """

    batch_number: str
    quantity: int
    expiry_date: datetime
    remaining_quantity: Optional[int] = None
    received_date: Optional[datetime] = None
    status: BatchStatus = BatchStatus.ACTIVE

    def __post_init__(self):
        if not self.batch_number:
            raise ValueError("batch_number must be non-empty.")
        if not isinstance(self.quantity, int) or self.quantity < 0:
            raise ValueError("quantity must be a non-negative integer.")
        if self.remaining_quantity is not None:
            if self.remaining_quantity < 0:
                raise ValueError("remaining_quantity cannot be negative.")
            if self.remaining_quantity > self.quantity:
                raise ValueError("remaining_quantity cannot exceed quantity.")
        if not isinstance(self.status, BatchStatus):
            raise ValueError("status must be BatchStatus enum.")
        object.__setattr__(self, "expiry_date", ensure_aware(self.expiry_date))

    @property
    def available_quantity(self) -> int:
        if self.remaining_quantity is None:
            return self.quantity
        return self.remaining_quantity

    @property
    def is_depleted(self) -> bool:
        return self.available_quantity <= 0

    def is_live(self, now: datetime) -> bool:
        """Active, not depleted, not yet past its expiry date."""
        return (
            self.status is BatchStatus.ACTIVE
            and not self.is_depleted
            and not is_past(self.expiry_date, now)
        )

    def days_to_expiry(self, now: datetime) -> int:
        return days_until(self.expiry_date, now)

    def with_remaining(self, remaining: int) -> Batch:
        status = self.status
        if remaining == 0 and status is BatchStatus.ACTIVE:
            status = BatchStatus.DEPLETED
        return replace(self, remaining_quantity=remaining, status=status)

    def to_dict(self) -> dict:
        return {
            "batch_number": self.batch_number,
            "quantity": self.quantity,
            "remaining_quantity": self.available_quantity,
            "expiry_date": self.expiry_date.isoformat(),
            "received_date": (
                None if self.received_date is None else self.received_date.isoformat()
            ),
            "status": self.status.value,
        }


# ══════════════════════════════════════════════════════════════
# PRODUCT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Product:
    product_id: str
    name: str
    category: str
    price: float
    unit: str = "kg"
    stock: int = 0
    min_stock: int = 10
    batches: Tuple[Batch, ...] = ()
    is_active: bool = True

    def __post_init__(self):
        if not self.product_id:
            raise ValueError("product_id must be non-empty.")
        if self.price < 0:
            raise ValueError("price cannot be negative.")
        object.__setattr__(self, "batches", tuple(self.batches))

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock

    def find_batch(self, batch_number: str) -> Optional[Batch]:
        for batch in self.batches:
            if batch.batch_number == batch_number:
                return batch
        return None

    def to_dict(self, include_batches: bool = True) -> dict:
        data = {
            "product_id": self.product_id,
            "name": self.name,
            "category": self.category,
            "price": self.price,
            "unit": self.unit,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "is_active": self.is_active,
        }
        if include_batches:
            data["batches"] = [b.to_dict() for b in self.batches]
        return data


# ══════════════════════════════════════════════════════════════
# APPLICABILITY (tagged variant)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AllProducts:
    kind = "all"

    def to_dict(self) -> dict:
        return {"kind": self.kind}


@dataclass(frozen=True)
class ByProductIds:
    product_ids: frozenset
    kind = "products"

    def __post_init__(self):
        object.__setattr__(self, "product_ids", frozenset(str(p) for p in self.product_ids))
        if not self.product_ids:
            raise ValueError("ByProductIds requires at least one product id.")

    def to_dict(self) -> dict:
        return {"kind": self.kind, "product_ids": sorted(self.product_ids)}


@dataclass(frozen=True)
class ByCategories:
    categories: frozenset
    kind = "categories"

    def __post_init__(self):
        object.__setattr__(self, "categories", frozenset(self.categories))
        if not self.categories:
            raise ValueError("ByCategories requires at least one category.")

    def to_dict(self) -> dict:
        return {"kind": self.kind, "categories": sorted(self.categories)}


Applicability = Union[AllProducts, ByProductIds, ByCategories]


def applicability_from_conditions(
    product_ids: Optional[Iterable[Any]] = None,
    categories: Optional[Iterable[str]] = None,
) -> Applicability:
    """
    Resolve a stored condition set into its variant.

    An explicit product list takes precedence over categories when a
    legacy row carries both.
    """
    ids = [p for p in (product_ids or ()) if p]
    if ids:
        return ByProductIds(frozenset(ids))
    cats = [c for c in (categories or ()) if c]
    if cats:
        return ByCategories(frozenset(cats))
    return AllProducts()


def applicability_to_conditions(applicability: Applicability) -> dict:
    """Inverse of applicability_from_conditions (storage shape)."""
    if isinstance(applicability, ByProductIds):
        return {"product_ids": sorted(applicability.product_ids), "categories": []}
    if isinstance(applicability, ByCategories):
        return {"product_ids": [], "categories": sorted(applicability.categories)}
    return {"product_ids": [], "categories": []}


# ══════════════════════════════════════════════════════════════
# PROMOTION
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DiscountSpec:
    discount_type: DiscountType
    value: float

    def display(self) -> str:
        if self.discount_type is DiscountType.PERCENTAGE:
            return f"{self.value:g}% OFF"
        return f"{self.value:.2f} OFF"

    def to_dict(self) -> dict:
        return {"type": self.discount_type.value, "value": self.value}


@dataclass(frozen=True)
class Promotion:
    """
    A persisted discount rule.

    bulk_rules / expiry_rules of None mean "use the configured
    default table". Window and percentage consistency are checked by
    the Validator, not here, so a bad row can be loaded and reported.
    """

    promotion_id: str
    name: str
    promotion_type: PromotionType
    discount: DiscountSpec
    start_date: datetime
    end_date: datetime
    applicability: Applicability = field(default_factory=AllProducts)
    customer_types: Tuple[str, ...] = ()
    bulk_rules: Optional[Tuple[BulkTier, ...]] = None
    expiry_rules: Optional[Tuple[ExpiryTier, ...]] = None
    min_quantity: int = 1
    is_active: bool = True
    usage_count: int = 0
    usage_limit: Optional[int] = None
    description: str = ""
    auto_generated: bool = False
    auto_generated_for: Optional[str] = None
    days_before_expiry: Optional[int] = None
    created_by: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.promotion_type, PromotionType):
            raise ValueError("promotion_type must be PromotionType enum.")
        object.__setattr__(self, "start_date", ensure_aware(self.start_date))
        object.__setattr__(self, "end_date", ensure_aware(self.end_date))
        object.__setattr__(self, "customer_types", tuple(self.customer_types))
        if self.bulk_rules is not None:
            object.__setattr__(self, "bulk_rules", tuple(self.bulk_rules))
        if self.expiry_rules is not None:
            object.__setattr__(self, "expiry_rules", tuple(self.expiry_rules))

    @property
    def discount_display(self) -> str:
        return self.discount.display()

    @property
    def usage_exhausted(self) -> bool:
        return self.usage_limit is not None and self.usage_count >= self.usage_limit

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start_date, self.end_date)

    def in_window(self, now: datetime) -> bool:
        return self.window.contains(now)

    def is_live(self, now: datetime) -> bool:
        """Active, inside its validity window, under its usage limit."""
        return self.is_active and self.in_window(now) and not self.usage_exhausted

    def days_remaining(self, now: datetime) -> int:
        return self.window.days_left(now)

    def to_dict(self) -> dict:
        return {
            "promotion_id": self.promotion_id,
            "name": self.name,
            "type": self.promotion_type.value,
            "discount": self.discount.to_dict(),
            "applicability": self.applicability.to_dict(),
            "customer_types": list(self.customer_types),
            "bulk_rules": (
                None if self.bulk_rules is None else [t.to_dict() for t in self.bulk_rules]
            ),
            "expiry_rules": (
                None if self.expiry_rules is None else [t.to_dict() for t in self.expiry_rules]
            ),
            "min_quantity": self.min_quantity,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "is_active": self.is_active,
            "usage_count": self.usage_count,
            "usage_limit": self.usage_limit,
            "description": self.description,
            "auto_generated": self.auto_generated,
            "auto_generated_for": self.auto_generated_for,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Promotion:
        discount = data.get("discount") or {}
        bulk_rules = data.get("bulk_rules")
        expiry_rules = data.get("expiry_rules")
        return cls(
            promotion_id=str(data.get("promotion_id") or ""),
            name=data["name"],
            promotion_type=PromotionType(data["type"]),
            discount=DiscountSpec(
                discount_type=DiscountType(discount.get("type", "percentage")),
                value=float(discount.get("value", 0)),
            ),
            start_date=data["start_date"],
            end_date=data["end_date"],
            applicability=applicability_from_conditions(
                data.get("product_ids"), data.get("categories")
            ),
            customer_types=tuple(data.get("customer_types") or ()),
            bulk_rules=(
                None if bulk_rules is None
                else tuple(BulkTier.from_dict(r) for r in bulk_rules)
            ),
            expiry_rules=(
                None if expiry_rules is None
                else tuple(ExpiryTier.from_dict(r) for r in expiry_rules)
            ),
            min_quantity=int(data.get("min_quantity", 1)),
            is_active=bool(data.get("is_active", True)),
            usage_count=int(data.get("usage_count", 0)),
            usage_limit=data.get("usage_limit"),
            description=data.get("description", ""),
            created_by=data.get("created_by"),
        )
