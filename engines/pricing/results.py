"""
Frostline Pricing - Calculation Inputs and Results
==================================================
Non-persisted value objects flowing in and out of the Discount Engine.

Line arithmetic runs in Decimal, rounded half-up to the cent; results
carry float. Cart totals are sums of rounded line values so the
identity discounted_total == original_total - total_savings holds to
the cent.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

from core.catalog.models import DiscountType
from core.config.rules import BulkTier, ExpiryTier

AUTO_EXPIRY_PROMOTION_ID = "auto-expiry"
AUTO_EXPIRY_PROMOTION_NAME = "Near Expiry Discount"


CENT = Decimal("0.01")


def to_money(amount: Union[float, Decimal]) -> Decimal:
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


def round_money(amount: Union[float, Decimal]) -> float:
    return float(to_money(amount)) + 0.0


class DiscountKind(Enum):
    BULK = "bulk"
    EXPIRY = "expiry"
    OTHER = "other"


# ══════════════════════════════════════════════════════════════
# INPUT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CartItem:
    """A validated cart line. Build through validator.ensure_valid_cart."""

    product_id: str
    quantity: int

    def to_dict(self) -> dict:
        return {"product_id": self.product_id, "quantity": self.quantity}


# ══════════════════════════════════════════════════════════════
# APPLIED DISCOUNT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AppliedDiscount:
    promotion_id: str
    promotion_name: str
    kind: DiscountKind
    promotion_type: str
    discount_type: DiscountType
    discount_percentage: float
    description: str
    discount_amount: Optional[float] = None
    tier: Optional[Union[BulkTier, ExpiryTier]] = None
    quantity: Optional[int] = None
    days_to_expiry: Optional[int] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[datetime] = None

    @property
    def counts_usage(self) -> bool:
        return self.promotion_id != AUTO_EXPIRY_PROMOTION_ID

    def to_dict(self) -> dict:
        data = {
            "promotion_id": self.promotion_id,
            "promotion_name": self.promotion_name,
            "kind": self.kind.value,
            "type": self.promotion_type,
            "discount_type": self.discount_type.value,
            "discount_percentage": self.discount_percentage,
            "description": self.description,
        }
        if self.discount_amount is not None:
            data["discount_amount"] = self.discount_amount
        if self.tier is not None:
            data["tier"] = self.tier.to_dict()
        if self.quantity is not None:
            data["quantity"] = self.quantity
        if self.days_to_expiry is not None:
            data["days_to_expiry"] = self.days_to_expiry
            data["batch_number"] = self.batch_number
            data["expiry_date"] = (
                None if self.expiry_date is None else self.expiry_date.isoformat()
            )
        return data


# ══════════════════════════════════════════════════════════════
# LINE / CART RESULTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LineResult:
    """
    Priced cart line. original_price / discounted_price / savings are
    line totals (unit price x quantity); the unit_* properties give the
    per-unit view.
    """

    line_index: int
    product_id: str
    product_name: str
    category: str
    unit: str
    unit_price: float
    quantity: int
    original_price: float
    discounted_price: float
    savings: float
    applied_discounts: Tuple[AppliedDiscount, ...] = ()

    @property
    def unit_discounted_price(self) -> float:
        return round_money(self.discounted_price / self.quantity)

    @property
    def unit_savings(self) -> float:
        return round_money(self.savings / self.quantity)

    @property
    def effective_discount_percentage(self) -> float:
        if self.original_price <= 0:
            return 0.0
        return self.savings / self.original_price * 100

    def has_kind(self, kind: DiscountKind) -> bool:
        return any(d.kind is kind for d in self.applied_discounts)

    def to_dict(self) -> dict:
        return {
            "line_index": self.line_index,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "product": {
                "product_id": self.product_id,
                "name": self.product_name,
                "price": self.unit_price,
                "unit": self.unit,
                "category": self.category,
            },
            "original_price": self.original_price,
            "discounted_price": self.discounted_price,
            "savings": self.savings,
            "applied_discounts": [d.to_dict() for d in self.applied_discounts],
        }


@dataclass(frozen=True)
class BreakdownEntry:
    line_index: int
    product_id: str
    product_name: str
    discount: AppliedDiscount
    savings: float

    def to_dict(self) -> dict:
        data = {
            "line_index": self.line_index,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "savings": self.savings,
        }
        data.update(self.discount.to_dict())
        return data


@dataclass(frozen=True)
class DiscountBreakdown:
    bulk_discounts: Tuple[BreakdownEntry, ...] = ()
    expiry_discounts: Tuple[BreakdownEntry, ...] = ()
    other_discounts: Tuple[BreakdownEntry, ...] = ()

    def to_dict(self) -> dict:
        return {
            "bulk_discounts": [e.to_dict() for e in self.bulk_discounts],
            "expiry_discounts": [e.to_dict() for e in self.expiry_discounts],
            "other_discounts": [e.to_dict() for e in self.other_discounts],
        }


@dataclass(frozen=True)
class DiscountResult:
    original_total: float
    discounted_total: float
    total_savings: float
    applied_discounts: Tuple[AppliedDiscount, ...]
    updated_items: Tuple[LineResult, ...]
    breakdown: DiscountBreakdown
    skipped_product_ids: Tuple[str, ...] = ()

    @classmethod
    def from_lines(
        cls,
        lines: Sequence[LineResult],
        breakdown: DiscountBreakdown,
        skipped_product_ids: Sequence[str] = (),
    ) -> DiscountResult:
        original = round_money(sum(to_money(line.original_price) for line in lines))
        savings = round_money(sum(to_money(line.savings) for line in lines))
        return cls(
            original_total=original,
            discounted_total=round_money(sum(to_money(line.discounted_price) for line in lines)),
            total_savings=savings,
            applied_discounts=tuple(d for line in lines for d in line.applied_discounts),
            updated_items=tuple(lines),
            breakdown=breakdown,
            skipped_product_ids=tuple(skipped_product_ids),
        )

    def to_dict(self) -> dict:
        return {
            "original_total": self.original_total,
            "discounted_total": self.discounted_total,
            "total_savings": self.total_savings,
            "applied_discounts": [d.to_dict() for d in self.applied_discounts],
            "updated_items": [line.to_dict() for line in self.updated_items],
            "breakdown": self.breakdown.to_dict(),
            "skipped_product_ids": list(self.skipped_product_ids),
        }


# ══════════════════════════════════════════════════════════════
# CART PREVIEW
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DiscountPreview:
    kind: DiscountKind
    promotion_id: str
    discount_percentage: float
    potential_savings: float
    description: str

    def to_dict(self) -> dict:
        return {
            "type": self.kind.value,
            "promotion_id": self.promotion_id,
            "discount_percentage": self.discount_percentage,
            "potential_savings": self.potential_savings,
            "description": self.description,
        }


@dataclass(frozen=True)
class ProductDiscountPreview:
    product_id: str
    product_name: str
    current_price: float
    discounts: Tuple[DiscountPreview, ...] = ()

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "current_price": self.current_price,
            "discounts": [d.to_dict() for d in self.discounts],
        }
