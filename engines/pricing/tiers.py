"""
Frostline Pricing - Tier Matcher
================================
Maps a quantity or a days-to-expiry value onto at most one row of a
tier table. Pure, deterministic, O(tiers).

Bulk:   highest qualifying min_quantity wins, whatever the table order,
        so a mis-specified overlap still resolves to the larger tier.
Expiry: first row in table order whose [min_days, max_days] contains
        the value. Overlaps are a data defect reported by the validator.

Default tables are injected through PricingRules, never hardcoded here.
"""

from __future__ import annotations

from typing import Optional, Sequence

from core.config.rules import BulkTier, ExpiryTier, PricingRules


def match_bulk_tier(quantity: int, tiers: Sequence[BulkTier]) -> Optional[BulkTier]:
    for tier in sorted(tiers, key=lambda t: t.min_quantity, reverse=True):
        if tier.contains(quantity):
            return tier
    return None


def match_expiry_tier(days_to_expiry: int, tiers: Sequence[ExpiryTier]) -> Optional[ExpiryTier]:
    for tier in tiers:
        if tier.contains(days_to_expiry):
            return tier
    return None


class TierMatcher:
    """Tier lookup bound to the deployment's default tables."""

    def __init__(self, rules: Optional[PricingRules] = None):
        self._rules = rules or PricingRules()

    @property
    def default_bulk_tiers(self) -> Sequence[BulkTier]:
        return self._rules.bulk_tiers

    @property
    def default_expiry_tiers(self) -> Sequence[ExpiryTier]:
        return self._rules.expiry_tiers

    def bulk(
        self, quantity: int, tiers: Optional[Sequence[BulkTier]] = None,
    ) -> Optional[BulkTier]:
        """An empty or missing table means the configured defaults."""
        return match_bulk_tier(quantity, tiers or self._rules.bulk_tiers)

    def expiry(
        self, days_to_expiry: int, tiers: Optional[Sequence[ExpiryTier]] = None,
    ) -> Optional[ExpiryTier]:
        return match_expiry_tier(days_to_expiry, tiers or self._rules.expiry_tiers)

    def expiry_percentage(self, days_to_expiry: int) -> float:
        tier = self.expiry(days_to_expiry)
        return 0.0 if tier is None else tier.discount_percentage
