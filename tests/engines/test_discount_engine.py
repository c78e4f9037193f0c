"""
Frostline Pricing — Discount Engine Tests
=========================================
Cart pricing end to end over the in-memory catalog store.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.catalog import (
    AllProducts,
    Batch,
    ByCategories,
    ByProductIds,
    DiscountSpec,
    DiscountType,
    InMemoryCatalogRepository,
    Product,
    Promotion,
    PromotionType,
)
from core.config.rules import BulkTier, ExpiryTier, PricingRules
from core.time.clock import FixedClock
from engines.pricing import (
    AUTO_EXPIRY_PROMOTION_ID,
    DiscountEngine,
    DiscountKind,
    InputError,
)
from engines.pricing.validator import result_issues

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _batch(number: str, days: float, quantity: int = 100) -> Batch:
    return Batch(
        batch_number=number,
        quantity=quantity,
        remaining_quantity=quantity,
        expiry_date=NOW + timedelta(days=days),
    )


def _product(pid="p1", price=100.0, batches=(), **kwargs) -> Product:
    defaults = dict(name=f"Product {pid}", category="fish", stock=100)
    defaults.update(kwargs)
    return Product(product_id=pid, price=price, batches=batches, **defaults)


def _promotion(pid: str, promotion_type: PromotionType, **kwargs) -> Promotion:
    defaults = dict(
        promotion_id=pid,
        name=pid.title(),
        promotion_type=promotion_type,
        discount=DiscountSpec(DiscountType.PERCENTAGE, 0.0),
        start_date=NOW - timedelta(days=1),
        end_date=NOW + timedelta(days=30),
        applicability=AllProducts(),
    )
    defaults.update(kwargs)
    return Promotion(**defaults)


def _bulk_promotion(**kwargs) -> Promotion:
    return _promotion("bulk-default", PromotionType.BULK_DISCOUNT, **kwargs)


def _engine(products, promotions=(), rules=None):
    repo = InMemoryCatalogRepository(products, promotions)
    return DiscountEngine(repo, rules=rules, clock=FixedClock(NOW)), repo


class SpyRepository:
    """Records every repository call made by the engine."""

    def __init__(self, inner):
        self._inner = inner
        self.calls = []

    def __getattr__(self, name):
        attr = getattr(self._inner, name)
        if not callable(attr):
            return attr

        def recorder(*args, **kwargs):
            self.calls.append(name)
            return attr(*args, **kwargs)

        return recorder


# ══════════════════════════════════════════════════════════════
# REFERENCE SCENARIOS
# ══════════════════════════════════════════════════════════════

class TestReferenceScenarios:
    def test_bulk_tier_without_expiry_risk(self):
        engine, _ = _engine(
            [_product(batches=(_batch("B1", days=200),))], [_bulk_promotion()],
        )
        result = engine.calculate_cart_discounts([{"product_id": "p1", "quantity": 15}])

        line = result.updated_items[0]
        assert line.original_price == 1500.0
        assert line.discounted_price == 1425.0
        assert line.unit_discounted_price == 95.0
        assert line.unit_savings == 5.0
        assert [d.kind for d in line.applied_discounts] == [DiscountKind.BULK]
        assert line.applied_discounts[0].discount_percentage == 5.0

    def test_expiry_tier_for_small_quantity(self):
        engine, _ = _engine(
            [_product(batches=(_batch("B1", days=10, quantity=20),))], [_bulk_promotion()],
        )
        result = engine.calculate_cart_discounts([{"product_id": "p1", "quantity": 5}])

        line = result.updated_items[0]
        assert line.unit_discounted_price == 50.0
        assert line.discounted_price == 250.0
        expiry = line.applied_discounts[0]
        assert expiry.kind is DiscountKind.EXPIRY
        assert expiry.days_to_expiry == 10
        assert expiry.batch_number == "B1"
        assert expiry.promotion_id == AUTO_EXPIRY_PROMOTION_ID

    def test_bulk_wins_over_expiry(self):
        engine, _ = _engine(
            [_product(batches=(_batch("B1", days=5, quantity=100),))], [_bulk_promotion()],
        )
        result = engine.calculate_cart_discounts([{"product_id": "p1", "quantity": 60}])

        line = result.updated_items[0]
        assert line.unit_discounted_price == 85.0
        assert line.has_kind(DiscountKind.BULK)
        assert not line.has_kind(DiscountKind.EXPIRY)
        assert result.breakdown.expiry_discounts == ()
        assert result_issues(result) == []

    def test_invalid_item_rejected_before_any_lookup(self):
        spy = SpyRepository(InMemoryCatalogRepository([_product()], [_bulk_promotion()]))
        engine = DiscountEngine(spy, clock=FixedClock(NOW))

        with pytest.raises(InputError) as excinfo:
            engine.calculate_cart_discounts([{"product_id": None, "quantity": 5}])

        assert excinfo.value.codes == ("PRODUCT_ID_REQUIRED",)
        assert spy.calls == []


# ══════════════════════════════════════════════════════════════
# CART BEHAVIOUR
# ══════════════════════════════════════════════════════════════

class TestCartCalculation:
    def test_no_discounts(self):
        engine, _ = _engine([_product(price=12.5)])
        result = engine.calculate_cart_discounts([{"product_id": "p1", "quantity": 3}])
        assert result.original_total == 37.5
        assert result.discounted_total == 37.5
        assert result.total_savings == 0.0
        assert result.applied_discounts == ()

    def test_missing_and_inactive_products_are_skipped(self):
        engine, _ = _engine([_product("p1"), _product("p2", is_active=False)])
        result = engine.calculate_cart_discounts([
            {"product_id": "p1", "quantity": 1},
            {"product_id": "p2", "quantity": 1},
            {"product_id": "ghost", "quantity": 1},
        ])
        assert [line.product_id for line in result.updated_items] == ["p1"]
        assert result.skipped_product_ids == ("p2", "ghost")
        assert result.original_total == 100.0

    def test_totals_are_sums_of_lines(self):
        engine, _ = _engine(
            [
                _product("p1", price=19.99, batches=(_batch("B1", days=200),)),
                _product("p2", price=3.33, batches=(_batch("B2", days=3),)),
            ],
            [_bulk_promotion()],
        )
        result = engine.calculate_cart_discounts([
            {"product_id": "p1", "quantity": 21},
            {"product_id": "p2", "quantity": 7},
        ])
        assert result.original_total == round(
            sum(line.original_price for line in result.updated_items), 2,
        )
        assert result.total_savings == pytest.approx(
            result.original_total - result.discounted_total, abs=0.01,
        )
        assert result_issues(result) == []

    def test_breakdown_buckets(self):
        engine, _ = _engine(
            [
                _product("p1", batches=(_batch("B1", days=200),)),
                _product("p2", batches=(_batch("B2", days=20),)),
            ],
            [
                _bulk_promotion(),
                _promotion(
                    "member", PromotionType.OTHER,
                    discount=DiscountSpec(DiscountType.PERCENTAGE, 2.0),
                ),
            ],
        )
        result = engine.calculate_cart_discounts([
            {"product_id": "p1", "quantity": 20},
            {"product_id": "p2", "quantity": 1},
        ])
        breakdown = result.breakdown
        assert [e.product_id for e in breakdown.bulk_discounts] == ["p1"]
        assert [e.product_id for e in breakdown.expiry_discounts] == ["p2"]
        assert [e.product_id for e in breakdown.other_discounts] == ["p1", "p2"]
        assert breakdown.bulk_discounts[0].savings == 200.0
        assert breakdown.expiry_discounts[0].savings == 25.0

    def test_bulk_requires_eligible_promotion(self):
        engine, _ = _engine(
            [_product(category="dairy")],
            [_bulk_promotion(applicability=ByCategories(frozenset({"fish"})))],
        )
        result = engine.calculate_cart_discounts([{"product_id": "p1", "quantity": 50}])
        assert result.total_savings == 0.0

    def test_promotion_tables_override_defaults(self):
        engine, _ = _engine(
            [_product()],
            [_bulk_promotion(bulk_rules=(BulkTier(2, None, 8.0),))],
        )
        result = engine.calculate_cart_discounts([{"product_id": "p1", "quantity": 2}])
        assert result.updated_items[0].applied_discounts[0].discount_percentage == 8.0

    def test_malformed_bulk_table_is_skipped(self):
        broken = _promotion(
            "broken", PromotionType.BULK_DISCOUNT,
            bulk_rules=(BulkTier(5, None, 40.0), BulkTier(10, 20, 50.0)),
        )
        engine, _ = _engine([_product()], [broken, _bulk_promotion()])
        result = engine.calculate_cart_discounts([{"product_id": "p1", "quantity": 10}])
        applied = result.updated_items[0].applied_discounts[0]
        assert applied.promotion_id == "bulk-default"
        assert applied.discount_percentage == 5.0

    def test_expiry_promotion_table_is_used(self):
        expiry = _promotion(
            "fresh", PromotionType.EXPIRY_DISCOUNT,
            applicability=ByProductIds(frozenset({"p1"})),
            expiry_rules=(ExpiryTier(0, 20, 30.0),),
        )
        engine, _ = _engine([_product(batches=(_batch("B1", days=12),))], [expiry])
        applied = engine.calculate_cart_discounts(
            [{"product_id": "p1", "quantity": 1}]
        ).updated_items[0].applied_discounts[0]
        assert applied.promotion_id == "fresh"
        assert applied.discount_percentage == 30.0

    def test_no_implicit_expiry_when_disabled(self):
        engine, _ = _engine(
            [_product(batches=(_batch("B1", days=3),))],
            rules=PricingRules(implicit_expiry_discount=False),
        )
        result = engine.calculate_cart_discounts([{"product_id": "p1", "quantity": 1}])
        assert result.total_savings == 0.0

    def test_expiry_needs_a_batch_covering_the_quantity(self):
        engine, _ = _engine(
            [_product(batches=(_batch("B1", days=3, quantity=4), _batch("B2", days=40)))],
        )
        line = engine.calculate_cart_discounts(
            [{"product_id": "p1", "quantity": 5}]
        ).updated_items[0]
        assert line.applied_discounts[0].batch_number == "B2"
        assert line.applied_discounts[0].discount_percentage == 10.0

    def test_expired_batches_never_discount(self):
        engine, _ = _engine([_product(batches=(_batch("B1", days=-1),))])
        result = engine.calculate_cart_discounts([{"product_id": "p1", "quantity": 1}])
        assert result.total_savings == 0.0


class TestOtherPromotions:
    def test_customer_type_and_min_quantity(self):
        wholesale = _promotion(
            "wholesale", PromotionType.OTHER,
            discount=DiscountSpec(DiscountType.PERCENTAGE, 10.0),
            customer_types=("wholesale",),
            min_quantity=3,
        )
        engine, _ = _engine([_product()], [wholesale])

        retail = engine.calculate_cart_discounts(
            [{"product_id": "p1", "quantity": 5}], customer_type="retail",
        )
        too_few = engine.calculate_cart_discounts(
            [{"product_id": "p1", "quantity": 2}], customer_type="wholesale",
        )
        eligible = engine.calculate_cart_discounts(
            [{"product_id": "p1", "quantity": 3}], customer_type="wholesale",
        )
        assert retail.total_savings == 0.0
        assert too_few.total_savings == 0.0
        assert eligible.total_savings == 30.0

    def test_fixed_amount_becomes_percentage(self):
        fixed = _promotion(
            "fixed", PromotionType.OTHER,
            discount=DiscountSpec(DiscountType.FIXED_AMOUNT, 20.0),
        )
        engine, _ = _engine([_product()], [fixed])
        result = engine.calculate_cart_discounts([{"product_id": "p1", "quantity": 2}])
        applied = result.applied_discounts[0]
        assert applied.discount_percentage == 20.0
        assert applied.discount_amount == 20.0
        assert result.total_savings == 40.0

    def test_fixed_amount_skipped_for_free_product(self):
        fixed = _promotion(
            "fixed", PromotionType.OTHER,
            discount=DiscountSpec(DiscountType.FIXED_AMOUNT, 20.0),
        )
        engine, _ = _engine([_product(price=0.0)], [fixed])
        result = engine.calculate_cart_discounts([{"product_id": "p1", "quantity": 2}])
        assert result.applied_discounts == ()

    @pytest.mark.parametrize("discount", [
        DiscountSpec(DiscountType.PERCENTAGE, 150.0),
        DiscountSpec(DiscountType.PERCENTAGE, -20.0),
        DiscountSpec(DiscountType.FIXED_AMOUNT, -5.0),
    ])
    def test_out_of_range_promotion_is_skipped(self, discount, caplog):
        bad = _promotion("bad", PromotionType.OTHER, discount=discount)
        engine, _ = _engine([_product()], [_bulk_promotion(), bad])

        with caplog.at_level("WARNING", logger="frostline.pricing"):
            result = engine.calculate_cart_discounts([{"product_id": "p1", "quantity": 15}])

        assert [(d.promotion_id, d.discount_percentage) for d in result.applied_discounts] == [
            ("bulk-default", 5.0)
        ]
        assert result.total_savings == 75.0
        assert result_issues(result) == []
        assert any("Skipping promotion bad" in m for m in caplog.messages)

    def test_half_cent_savings_round_up(self):
        half = _promotion(
            "half", PromotionType.OTHER,
            discount=DiscountSpec(DiscountType.PERCENTAGE, 50.0),
        )
        engine, _ = _engine([_product(price=10.05)], [half])
        result = engine.calculate_cart_discounts([{"product_id": "p1", "quantity": 1}])
        assert result.total_savings == 5.03
        assert result.discounted_total == 5.02
        assert result.original_total == 10.05

    def test_stacked_savings_never_exceed_the_line(self):
        promotions = [
            _promotion(
                f"other-{i}", PromotionType.OTHER,
                discount=DiscountSpec(DiscountType.PERCENTAGE, 60.0),
            )
            for i in range(2)
        ]
        engine, _ = _engine([_product()], promotions)
        line = engine.calculate_cart_discounts(
            [{"product_id": "p1", "quantity": 1}]
        ).updated_items[0]
        assert line.savings == 100.0
        assert line.discounted_price == 0.0


# ══════════════════════════════════════════════════════════════
# USAGE COUNTING
# ══════════════════════════════════════════════════════════════

class TestUsageCounting:
    def test_usage_counted_once_per_calculation(self):
        engine, repo = _engine(
            [_product("p1"), _product("p2")], [_bulk_promotion()],
        )
        engine.calculate_cart_discounts([
            {"product_id": "p1", "quantity": 10},
            {"product_id": "p2", "quantity": 10},
        ])
        assert repo.get_promotion("bulk-default").usage_count == 1

    def test_usage_not_recorded_on_request(self):
        engine, repo = _engine([_product()], [_bulk_promotion()])
        engine.calculate_cart_discounts(
            [{"product_id": "p1", "quantity": 10}], record_usage=False,
        )
        assert repo.get_promotion("bulk-default").usage_count == 0

    def test_exhausted_promotion_no_longer_applies(self):
        engine, _ = _engine(
            [_product()], [_bulk_promotion(usage_limit=1)],
        )
        first = engine.calculate_cart_discounts([{"product_id": "p1", "quantity": 10}])
        second = engine.calculate_cart_discounts([{"product_id": "p1", "quantity": 10}])
        assert first.total_savings == 50.0
        assert second.total_savings == 0.0


# ══════════════════════════════════════════════════════════════
# PREVIEW
# ══════════════════════════════════════════════════════════════

class TestAvailableDiscounts:
    def test_lists_bulk_and_expiry(self):
        engine, _ = _engine(
            [_product(batches=(_batch("B1", days=5),))], [_bulk_promotion()],
        )
        [preview] = engine.get_available_discounts(["p1"], quantity=20)
        kinds = {d.kind: d for d in preview.discounts}
        assert kinds[DiscountKind.BULK].discount_percentage == 10.0
        assert kinds[DiscountKind.BULK].potential_savings == 200.0
        assert kinds[DiscountKind.EXPIRY].discount_percentage == 50.0
        assert kinds[DiscountKind.EXPIRY].potential_savings == 1000.0

    def test_unknown_products_are_omitted(self):
        engine, _ = _engine([_product()])
        assert [p.product_id for p in engine.get_available_discounts(["p1", "nope"])] == ["p1"]

    @pytest.mark.parametrize("quantity", [0, -3, 10_001])
    def test_bad_quantity(self, quantity):
        engine, _ = _engine([_product()])
        with pytest.raises(InputError):
            engine.get_available_discounts(["p1"], quantity=quantity)
