"""
Frostline Pricing — Tier Matcher, Eligibility Filter and Policy Tests
=====================================================================
Pure building blocks of the discount engine.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from core.catalog.models import (
    AllProducts,
    ByCategories,
    ByProductIds,
    DiscountSpec,
    DiscountType,
    Product,
    Promotion,
    PromotionType,
)
from core.config.rules import BulkTier, ExpiryTier, PricingRules
from engines.pricing.eligibility import is_customer_eligible, is_product_eligible
from engines.pricing.policies import (
    fixed_amount_as_percentage,
    line_savings,
    live_promotions,
    select_pricing_discount,
)
from engines.pricing.results import AppliedDiscount, DiscountKind, round_money, to_money
from engines.pricing.tiers import TierMatcher, match_bulk_tier, match_expiry_tier

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _promotion(**kwargs) -> Promotion:
    defaults = dict(
        promotion_id="promo-1",
        name="Promo",
        promotion_type=PromotionType.OTHER,
        discount=DiscountSpec(DiscountType.PERCENTAGE, 5.0),
        start_date=NOW - timedelta(days=1),
        end_date=NOW + timedelta(days=1),
    )
    defaults.update(kwargs)
    return Promotion(**defaults)


def _applied(kind: DiscountKind, pct: float) -> AppliedDiscount:
    return AppliedDiscount(
        promotion_id=kind.value,
        promotion_name=kind.value,
        kind=kind,
        promotion_type=kind.value,
        discount_type=DiscountType.PERCENTAGE,
        discount_percentage=pct,
        description="",
    )


SALMON = Product("p1", "Salmon", "fish", 100.0)


# ══════════════════════════════════════════════════════════════
# TIER MATCHER
# ══════════════════════════════════════════════════════════════

class TestBulkTierMatching:
    @pytest.mark.parametrize("quantity,expected", [
        (1, None), (9, None), (10, 5.0), (19, 5.0),
        (20, 10.0), (49, 10.0), (50, 15.0), (10_000, 15.0),
    ])
    def test_default_table(self, quantity, expected):
        tier = TierMatcher().bulk(quantity)
        assert (None if tier is None else tier.discount_percentage) == expected

    def test_highest_minimum_wins_over_list_order(self):
        overlapping = [
            BulkTier(10, None, 5.0),
            BulkTier(20, None, 10.0),
        ]
        assert match_bulk_tier(25, overlapping).discount_percentage == 10.0

    def test_empty_table_falls_back_to_defaults(self):
        assert TierMatcher().bulk(15, ()).discount_percentage == 5.0

    def test_configured_defaults_are_used(self):
        rules = PricingRules(bulk_tiers=(BulkTier(2, None, 3.0),))
        assert TierMatcher(rules).bulk(2).discount_percentage == 3.0


class TestExpiryTierMatching:
    @pytest.mark.parametrize("days,expected", [
        (0, 50.0), (14, 50.0), (15, 25.0), (29, 25.0),
        (30, 10.0), (60, 10.0), (61, None), (-1, None),
    ])
    def test_default_table(self, days, expected):
        tier = TierMatcher().expiry(days)
        assert (None if tier is None else tier.discount_percentage) == expected

    def test_first_row_in_table_order_wins(self):
        tiers = [ExpiryTier(0, 20, 40.0), ExpiryTier(10, 30, 20.0)]
        assert match_expiry_tier(15, tiers).discount_percentage == 40.0

    def test_expiry_percentage(self):
        assert TierMatcher().expiry_percentage(5) == 50.0
        assert TierMatcher().expiry_percentage(90) == 0.0


# ══════════════════════════════════════════════════════════════
# ELIGIBILITY
# ══════════════════════════════════════════════════════════════

class TestEligibility:
    def test_all_products(self):
        assert is_product_eligible(SALMON, _promotion(applicability=AllProducts()))

    def test_by_product_ids(self):
        assert is_product_eligible(
            SALMON, _promotion(applicability=ByProductIds(frozenset({"p1"}))),
        )
        assert not is_product_eligible(
            SALMON, _promotion(applicability=ByProductIds(frozenset({"p2"}))),
        )

    def test_by_categories(self):
        assert is_product_eligible(
            SALMON, _promotion(applicability=ByCategories(frozenset({"fish", "meat"}))),
        )
        assert not is_product_eligible(
            SALMON, _promotion(applicability=ByCategories(frozenset({"dairy"}))),
        )

    def test_customer_filter(self):
        assert is_customer_eligible("retail", _promotion())
        assert is_customer_eligible("retail", _promotion(customer_types=("all",)))
        assert is_customer_eligible("wholesale", _promotion(customer_types=("wholesale",)))
        assert not is_customer_eligible("retail", _promotion(customer_types=("wholesale",)))


# ══════════════════════════════════════════════════════════════
# POLICIES
# ══════════════════════════════════════════════════════════════

class TestSelectPricingDiscount:
    def test_bulk_wins(self):
        bulk = _applied(DiscountKind.BULK, 15.0)
        expiry = _applied(DiscountKind.EXPIRY, 50.0)
        assert select_pricing_discount(bulk, expiry) is bulk

    def test_expiry_without_bulk(self):
        expiry = _applied(DiscountKind.EXPIRY, 50.0)
        assert select_pricing_discount(None, expiry) is expiry

    def test_nothing(self):
        assert select_pricing_discount(None, None) is None


class TestPolicies:
    def test_live_promotions_filters_window_and_usage(self):
        promotions = [
            _promotion(promotion_id="live"),
            _promotion(promotion_id="future", start_date=NOW + timedelta(hours=1)),
            _promotion(promotion_id="used-up", usage_limit=3, usage_count=3),
            _promotion(promotion_id="off", is_active=False),
        ]
        assert [p.promotion_id for p in live_promotions(promotions, NOW)] == ["live"]

    def test_fixed_amount_as_percentage(self):
        assert fixed_amount_as_percentage(25.0, 200.0) == 12.5
        assert fixed_amount_as_percentage(25.0, 0.0) is None

    def test_line_savings_capped_at_line(self):
        assert line_savings(100.0, [60.0, 60.0]) == 100.0
        assert line_savings(100.0, [10.0, 5.0]) == Decimal("15")
        assert line_savings(0.3, [10.0]) == Decimal("0.03")
        assert line_savings(100.0, []) == 0.0

    def test_round_money(self):
        assert round_money(1424.999) == 1425.0
        assert round_money(12.3456) == 12.35

    def test_round_money_rounds_half_up_to_the_cent(self):
        assert round_money(2.675) == 2.68
        assert round_money(0.125) == 0.13
        assert to_money(1.005) == Decimal("1.01")
        assert round_money(Decimal("-0.001")) == 0.0
