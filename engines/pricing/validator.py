"""
Frostline Pricing - Validator
=============================
Stateless consistency checks, used both as input guards by the
engine and API callers and as oracles by tests.

*_issues() functions collect every problem and return them;
ensure_*() functions raise InputError when anything was found.

Checks:
1. Cart shape     - product_id present, 1 <= quantity <= max_line_quantity
2. Promotion shape - name / type / window present, start < end,
                    percentage in [0, 100], fixed amount >= 0,
                    tier tables internally consistent
3. Result         - totals non-negative and consistent, no bulk+expiry
                    on one line, no line above the discount ceiling
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from core.catalog.models import DiscountSpec, DiscountType, Promotion, PromotionType
from core.config.rules import BulkTier, ExpiryTier, PricingRules
from engines.pricing.errors import InputError, ValidationIssue
from engines.pricing.results import CartItem, DiscountKind, DiscountResult

CartInput = Union[CartItem, Mapping[str, Any]]


# ══════════════════════════════════════════════════════════════
# CART
# ══════════════════════════════════════════════════════════════

def _item_fields(item: CartInput) -> Tuple[Any, Any]:
    if isinstance(item, CartItem):
        return item.product_id, item.quantity
    if isinstance(item, Mapping):
        return item.get("product_id"), item.get("quantity")
    return None, None


def cart_item_issues(
    items: Any, rules: Optional[PricingRules] = None,
) -> List[ValidationIssue]:
    rules = rules or PricingRules()
    if not isinstance(items, (list, tuple)):
        return [ValidationIssue("INVALID_CART", "Cart items must be a list.", field="items")]
    if not items:
        return [ValidationIssue("EMPTY_CART", "Cart must contain at least one item.", field="items")]

    issues: List[ValidationIssue] = []
    for index, item in enumerate(items):
        product_id, quantity = _item_fields(item)
        if not product_id:
            issues.append(ValidationIssue(
                "PRODUCT_ID_REQUIRED",
                f"Item {index + 1}: product_id is required.",
                field="product_id", index=index,
            ))
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            issues.append(ValidationIssue(
                "QUANTITY_NOT_POSITIVE",
                f"Item {index + 1}: quantity must be a positive integer.",
                field="quantity", index=index,
            ))
        elif quantity > rules.max_line_quantity:
            issues.append(ValidationIssue(
                "QUANTITY_TOO_LARGE",
                f"Item {index + 1}: quantity cannot exceed "
                f"{rules.max_line_quantity:,} units.",
                field="quantity", index=index,
            ))
    return issues


def ensure_valid_cart(
    items: Any, rules: Optional[PricingRules] = None,
) -> Tuple[CartItem, ...]:
    """Reject the whole cart on any malformed line; return normalized items."""
    issues = cart_item_issues(items, rules)
    if issues:
        raise InputError(issues)
    normalized = []
    for item in items:
        product_id, quantity = _item_fields(item)
        normalized.append(CartItem(product_id=str(product_id), quantity=quantity))
    return tuple(normalized)


# ══════════════════════════════════════════════════════════════
# TIER TABLES
# ══════════════════════════════════════════════════════════════

def _percentage_in_range(value: float) -> bool:
    return 0 <= value <= 100


def discount_spec_issues(discount: DiscountSpec) -> List[ValidationIssue]:
    """Value bounds of a flat discount: percentage in [0, 100], amount >= 0."""
    if discount.discount_type is DiscountType.PERCENTAGE and not _percentage_in_range(discount.value):
        return [ValidationIssue(
            "PERCENTAGE_OUT_OF_RANGE",
            "Percentage discount must be between 0 and 100.",
            field="discount",
        )]
    if discount.discount_type is DiscountType.FIXED_AMOUNT and discount.value < 0:
        return [ValidationIssue(
            "FIXED_AMOUNT_NEGATIVE", "Fixed discount amount cannot be negative.", field="discount",
        )]
    return []


def bulk_tier_issues(tiers: Sequence[BulkTier]) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    for index, tier in enumerate(tiers):
        if tier.min_quantity < 1:
            issues.append(ValidationIssue(
                "BULK_MIN_QUANTITY",
                f"Bulk rule {index + 1}: minimum quantity must be at least 1.",
                field="bulk_rules", index=index,
            ))
        if tier.max_quantity is not None and tier.max_quantity < tier.min_quantity:
            issues.append(ValidationIssue(
                "BULK_MAX_BELOW_MIN",
                f"Bulk rule {index + 1}: maximum quantity cannot be less than minimum.",
                field="bulk_rules", index=index,
            ))
        if not _percentage_in_range(tier.discount_percentage):
            issues.append(ValidationIssue(
                "TIER_PERCENTAGE_OUT_OF_RANGE",
                f"Bulk rule {index + 1}: discount percentage must be between 0 and 100.",
                field="bulk_rules", index=index,
            ))

    ordered = sorted(tiers, key=lambda t: t.min_quantity)
    for current, following in zip(ordered, ordered[1:]):
        if current.max_quantity is None or following.min_quantity <= current.max_quantity:
            upper = "+" if current.max_quantity is None else f"-{current.max_quantity}"
            issues.append(ValidationIssue(
                "BULK_TIERS_OVERLAP",
                f"Bulk rules have overlapping quantity ranges: "
                f"{current.min_quantity}{upper} and {following.min_quantity}.",
                field="bulk_rules",
            ))
    return issues


def expiry_tier_issues(tiers: Sequence[ExpiryTier]) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    for index, tier in enumerate(tiers):
        if tier.min_days < 0 or tier.max_days < 0:
            issues.append(ValidationIssue(
                "EXPIRY_DAYS_NEGATIVE",
                f"Expiry rule {index + 1}: days cannot be negative.",
                field="expiry_rules", index=index,
            ))
        if tier.max_days < tier.min_days:
            issues.append(ValidationIssue(
                "EXPIRY_MAX_BELOW_MIN",
                f"Expiry rule {index + 1}: maximum days cannot be less than minimum days.",
                field="expiry_rules", index=index,
            ))
        if not _percentage_in_range(tier.discount_percentage):
            issues.append(ValidationIssue(
                "TIER_PERCENTAGE_OUT_OF_RANGE",
                f"Expiry rule {index + 1}: discount percentage must be between 0 and 100.",
                field="expiry_rules", index=index,
            ))
    return issues


# ══════════════════════════════════════════════════════════════
# PROMOTION
# ══════════════════════════════════════════════════════════════

def _payload_issues(data: Mapping[str, Any]) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    if not str(data.get("name") or "").strip():
        issues.append(ValidationIssue("NAME_REQUIRED", "Promotion name is required.", field="name"))
    promotion_type = data.get("type")
    if not promotion_type:
        issues.append(ValidationIssue("TYPE_REQUIRED", "Promotion type is required.", field="type"))
    elif promotion_type not in {t.value for t in PromotionType}:
        issues.append(ValidationIssue(
            "TYPE_INVALID", f"Unknown promotion type '{promotion_type}'.", field="type",
        ))
    for key in ("start_date", "end_date"):
        if not isinstance(data.get(key), datetime):
            issues.append(ValidationIssue(
                "WINDOW_REQUIRED", "Start date and end date are required.", field=key,
            ))
    discount = data.get("discount")
    if discount is not None:
        discount_type = discount.get("type") if isinstance(discount, Mapping) else None
        if discount_type not in {t.value for t in DiscountType}:
            issues.append(ValidationIssue(
                "DISCOUNT_TYPE_REQUIRED", "Discount type is required.", field="discount",
            ))
    return issues


def promotion_issues(promotion: Union[Promotion, Mapping[str, Any]]) -> List[ValidationIssue]:
    """Accepts a loaded Promotion or a raw admin payload."""
    if isinstance(promotion, Mapping):
        issues = _payload_issues(promotion)
        if issues:
            return issues
        try:
            promotion = Promotion.from_dict(promotion)
        except (KeyError, TypeError, ValueError) as exc:
            return [ValidationIssue("MALFORMED_PROMOTION", str(exc))]

    issues = []
    if not promotion.name.strip():
        issues.append(ValidationIssue("NAME_REQUIRED", "Promotion name is required.", field="name"))
    if not promotion.window.is_valid:
        issues.append(ValidationIssue(
            "WINDOW_INVALID", "End date must be after start date.", field="end_date",
        ))

    issues.extend(discount_spec_issues(promotion.discount))

    if promotion.promotion_type is PromotionType.BULK_DISCOUNT and promotion.bulk_rules:
        issues.extend(bulk_tier_issues(promotion.bulk_rules))
    if promotion.promotion_type is PromotionType.EXPIRY_DISCOUNT and promotion.expiry_rules:
        issues.extend(expiry_tier_issues(promotion.expiry_rules))
    return issues


def ensure_valid_promotion(promotion: Union[Promotion, Mapping[str, Any]]) -> None:
    issues = promotion_issues(promotion)
    if issues:
        raise InputError(issues)


# ══════════════════════════════════════════════════════════════
# RESULT CONSISTENCY
# ══════════════════════════════════════════════════════════════

def stacking_issues(result: DiscountResult) -> List[ValidationIssue]:
    issues = []
    for line in result.updated_items:
        if line.has_kind(DiscountKind.BULK) and line.has_kind(DiscountKind.EXPIRY):
            issues.append(ValidationIssue(
                "BULK_EXPIRY_STACKED",
                f"Product {line.product_name} carries both bulk and expiry discounts.",
                index=line.line_index,
            ))
    return issues


def discount_limit_issues(
    result: DiscountResult, rules: Optional[PricingRules] = None,
) -> List[ValidationIssue]:
    ceiling = (rules or PricingRules()).max_discount_percentage
    issues = []
    for line in result.updated_items:
        pct = line.effective_discount_percentage
        if pct > ceiling:
            issues.append(ValidationIssue(
                "DISCOUNT_CEILING_EXCEEDED",
                f"Product {line.product_name} has {pct:.1f}% discount, "
                f"which exceeds the maximum allowed {ceiling:g}%.",
                index=line.line_index,
            ))
    return issues


def result_issues(
    result: DiscountResult, rules: Optional[PricingRules] = None,
) -> List[ValidationIssue]:
    rules = rules or PricingRules()
    issues: List[ValidationIssue] = []
    if result.original_total < 0:
        issues.append(ValidationIssue("TOTAL_NEGATIVE", "Invalid original total.", field="original_total"))
    if result.discounted_total < 0:
        issues.append(ValidationIssue("TOTAL_NEGATIVE", "Invalid discounted total.", field="discounted_total"))
    if result.total_savings < 0:
        issues.append(ValidationIssue("TOTAL_NEGATIVE", "Invalid total savings.", field="total_savings"))
    if result.discounted_total > result.original_total:
        issues.append(ValidationIssue(
            "DISCOUNTED_EXCEEDS_ORIGINAL",
            "Discounted total cannot be greater than original total.",
            field="discounted_total",
        ))
    drift = abs((result.original_total - result.discounted_total) - result.total_savings)
    if drift > rules.savings_epsilon:
        issues.append(ValidationIssue(
            "SAVINGS_MISMATCH", "Savings calculation mismatch.", field="total_savings",
        ))
    issues.extend(stacking_issues(result))
    issues.extend(discount_limit_issues(result, rules))
    return issues
