"""
Tests for core.config — Admin-configurable pricing rules.
"""

import pytest

from core.config.rules import (
    DEFAULT_BULK_TIERS,
    DEFAULT_EXPIRY_TIERS,
    BulkTier,
    DjangoSettingsConfigStore,
    ExpiryTier,
    InMemoryConfigStore,
    PricingRules,
    load_pricing_rules,
)


# ── Tier rows ────────────────────────────────────────────────

class TestBulkTier:
    def test_bounded_range(self):
        tier = BulkTier(10, 19, 5.0)
        assert tier.contains(10)
        assert tier.contains(19)
        assert not tier.contains(9)
        assert not tier.contains(20)

    def test_unbounded_range(self):
        tier = BulkTier(50, None, 15.0)
        assert tier.contains(50)
        assert tier.contains(1_000_000)

    def test_from_dict_accepts_null_max(self):
        tier = BulkTier.from_dict(
            {"min_quantity": "50", "max_quantity": None, "discount_percentage": 15}
        )
        assert tier == BulkTier(50, None, 15.0)

    def test_frozen_immutability(self):
        tier = BulkTier(10, 19, 5.0)
        with pytest.raises(AttributeError):
            tier.discount_percentage = 99


class TestExpiryTier:
    def test_inclusive_bounds(self):
        tier = ExpiryTier(0, 14, 50.0)
        assert tier.contains(0)
        assert tier.contains(14)
        assert not tier.contains(15)

    def test_to_dict(self):
        assert ExpiryTier(15, 29, 25.0, "mid").to_dict() == {
            "min_days": 15,
            "max_days": 29,
            "discount_percentage": 25.0,
            "description": "mid",
        }


class TestDefaultTables:
    def test_bulk_defaults(self):
        assert [(t.min_quantity, t.max_quantity, t.discount_percentage)
                for t in DEFAULT_BULK_TIERS] == [
            (50, None, 15.0), (20, 49, 10.0), (10, 19, 5.0),
        ]

    def test_expiry_defaults(self):
        assert [(t.min_days, t.max_days, t.discount_percentage)
                for t in DEFAULT_EXPIRY_TIERS] == [
            (0, 14, 50.0), (15, 29, 25.0), (30, 60, 10.0),
        ]


# ── PricingRules ─────────────────────────────────────────────

class TestPricingRules:
    def test_defaults(self):
        rules = PricingRules()
        assert rules.max_line_quantity == 10_000
        assert rules.max_discount_percentage == 70.0
        assert rules.savings_epsilon == 0.01
        assert rules.bulk_tiers == DEFAULT_BULK_TIERS

    def test_rejects_zero_line_quantity(self):
        with pytest.raises(ValueError, match="max_line_quantity"):
            PricingRules(max_line_quantity=0)

    def test_rejects_ceiling_out_of_range(self):
        with pytest.raises(ValueError, match="between 0 and 100"):
            PricingRules(max_discount_percentage=120)

    def test_rejects_critical_after_warning(self):
        with pytest.raises(ValueError):
            PricingRules(critical_days=40, warning_days=30)


class TestLoadPricingRules:
    def test_no_overrides_returns_defaults(self):
        assert load_pricing_rules(None) == PricingRules()

    def test_tier_tables_from_dicts(self):
        rules = load_pricing_rules({
            "bulk_tiers": [
                {"min_quantity": 5, "max_quantity": None, "discount_percentage": 20},
            ],
            "max_line_quantity": 500,
        })
        assert rules.bulk_tiers == (BulkTier(5, None, 20.0),)
        assert rules.max_line_quantity == 500
        assert rules.expiry_tiers == DEFAULT_EXPIRY_TIERS

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="max_line_qty"):
            load_pricing_rules({"max_line_qty": 5})

    def test_base_is_respected(self):
        base = PricingRules(critical_days=3)
        rules = load_pricing_rules({"warning_days": 20}, base=base)
        assert rules.critical_days == 3
        assert rules.warning_days == 20


class TestConfigStores:
    def test_in_memory_store(self):
        store = InMemoryConfigStore()
        assert store.get_pricing_rules() == PricingRules()
        store.set_pricing_rules(PricingRules(max_line_quantity=50))
        assert store.get_pricing_rules().max_line_quantity == 50

    def test_django_settings_store(self, settings):
        settings.FROSTLINE_PRICING = {"max_discount_percentage": 60}
        rules = DjangoSettingsConfigStore().get_pricing_rules()
        assert rules.max_discount_percentage == 60
