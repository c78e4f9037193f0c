"""
Frostline Pricing - Policies
============================
Named, unit-testable pricing decisions the engine composes.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Union

from core.catalog.models import Promotion
from engines.pricing.results import AppliedDiscount


def select_pricing_discount(
    bulk: Optional[AppliedDiscount],
    expiry: Optional[AppliedDiscount],
) -> Optional[AppliedDiscount]:
    """
    Bulk and expiry discounts are mutually exclusive on a line.
    A qualifying bulk tier wins; the expiry tier only applies without one.
    """
    return bulk if bulk is not None else expiry


def live_promotions(promotions: Iterable[Promotion], now: datetime) -> List[Promotion]:
    """Active, inside the validity window, usage limit not reached."""
    return [p for p in promotions if p.is_live(now)]


def fixed_amount_as_percentage(amount: float, unit_price: float) -> Optional[float]:
    """
    Express a fixed per-unit amount as a percentage of unit price.
    None when the price is not positive (no meaningful percentage).
    """
    if unit_price <= 0:
        return None
    return amount / unit_price * 100


def line_savings(
    line_original: Union[float, Decimal], percentages: Iterable[float],
) -> Decimal:
    """Stacked percentage savings on a line, never more than the line itself."""
    original = Decimal(str(line_original))
    savings = sum((original * Decimal(str(pct)) / 100 for pct in percentages), Decimal(0))
    return max(Decimal(0), min(original, savings))
