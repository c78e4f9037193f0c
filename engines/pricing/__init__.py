"""
Frostline Pricing Engine - Public API
=====================================
Tier matching, eligibility, the Discount Engine and its Validator.
"""

from engines.pricing.eligibility import is_customer_eligible, is_product_eligible
from engines.pricing.engine import DiscountEngine
from engines.pricing.errors import (
    DataInconsistency,
    DuplicatePromotion,
    InputError,
    PricingError,
    RepositoryFailure,
    ValidationIssue,
)
from engines.pricing.policies import (
    fixed_amount_as_percentage,
    line_savings,
    live_promotions,
    select_pricing_discount,
)
from engines.pricing.results import (
    AUTO_EXPIRY_PROMOTION_ID,
    AppliedDiscount,
    BreakdownEntry,
    CartItem,
    DiscountBreakdown,
    DiscountKind,
    DiscountPreview,
    DiscountResult,
    LineResult,
    ProductDiscountPreview,
)
from engines.pricing.tiers import TierMatcher, match_bulk_tier, match_expiry_tier
from engines.pricing.validator import (
    bulk_tier_issues,
    cart_item_issues,
    discount_limit_issues,
    discount_spec_issues,
    ensure_valid_cart,
    ensure_valid_promotion,
    expiry_tier_issues,
    promotion_issues,
    result_issues,
    stacking_issues,
)

__all__ = [
    "DiscountEngine",
    "TierMatcher",
    "match_bulk_tier",
    "match_expiry_tier",
    "is_product_eligible",
    "is_customer_eligible",
    "select_pricing_discount",
    "live_promotions",
    "fixed_amount_as_percentage",
    "line_savings",
    "CartItem",
    "AppliedDiscount",
    "BreakdownEntry",
    "DiscountBreakdown",
    "DiscountKind",
    "DiscountResult",
    "LineResult",
    "DiscountPreview",
    "ProductDiscountPreview",
    "AUTO_EXPIRY_PROMOTION_ID",
    "PricingError",
    "InputError",
    "ValidationIssue",
    "DataInconsistency",
    "DuplicatePromotion",
    "RepositoryFailure",
    "cart_item_issues",
    "ensure_valid_cart",
    "promotion_issues",
    "ensure_valid_promotion",
    "discount_spec_issues",
    "bulk_tier_issues",
    "expiry_tier_issues",
    "result_issues",
    "stacking_issues",
    "discount_limit_issues",
]
