"""
Frostline Core Config - Admin-Configurable Pricing Rules
========================================================
Default tier tables, cart limits and lifecycle thresholds are data,
not code. Engines receive a PricingRules value; deployments override
it through Django settings (FROSTLINE_PRICING) or a ConfigStore.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping, Optional, Protocol, Tuple


# ══════════════════════════════════════════════════════════════
# TIER ROWS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BulkTier:
    """
    Quantity range -> discount percentage.

    max_quantity=None means unbounded above. Rows are not validated
    here: a malformed table must reach the Validator intact so it can
    be reported rather than crash the caller.
    """

    min_quantity: int
    max_quantity: Optional[int]
    discount_percentage: float
    description: str = ""

    def contains(self, quantity: int) -> bool:
        if quantity < self.min_quantity:
            return False
        return self.max_quantity is None or quantity <= self.max_quantity

    def to_dict(self) -> dict:
        return {
            "min_quantity": self.min_quantity,
            "max_quantity": self.max_quantity,
            "discount_percentage": self.discount_percentage,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BulkTier:
        max_quantity = data.get("max_quantity")
        return cls(
            min_quantity=int(data["min_quantity"]),
            max_quantity=None if max_quantity is None else int(max_quantity),
            discount_percentage=float(data["discount_percentage"]),
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class ExpiryTier:
    """Days-to-expiry range [min_days, max_days] (both inclusive) -> percentage."""

    min_days: int
    max_days: int
    discount_percentage: float
    description: str = ""

    def contains(self, days: int) -> bool:
        return self.min_days <= days <= self.max_days

    def to_dict(self) -> dict:
        return {
            "min_days": self.min_days,
            "max_days": self.max_days,
            "discount_percentage": self.discount_percentage,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExpiryTier:
        return cls(
            min_days=int(data["min_days"]),
            max_days=int(data["max_days"]),
            discount_percentage=float(data["discount_percentage"]),
            description=data.get("description", ""),
        )


DEFAULT_BULK_TIERS: Tuple[BulkTier, ...] = (
    BulkTier(50, None, 15.0, "50+ units"),
    BulkTier(20, 49, 10.0, "20-49 units"),
    BulkTier(10, 19, 5.0, "10-19 units"),
)

DEFAULT_EXPIRY_TIERS: Tuple[ExpiryTier, ...] = (
    ExpiryTier(0, 14, 50.0, "0-14 days to expiry"),
    ExpiryTier(15, 29, 25.0, "15-29 days to expiry"),
    ExpiryTier(30, 60, 10.0, "30-60 days to expiry"),
)


# ══════════════════════════════════════════════════════════════
# PRICING RULES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PricingRules:
    """Everything the pricing and freshness engines treat as policy."""

    bulk_tiers: Tuple[BulkTier, ...] = DEFAULT_BULK_TIERS
    expiry_tiers: Tuple[ExpiryTier, ...] = DEFAULT_EXPIRY_TIERS

    # cart guards
    max_line_quantity: int = 10_000
    max_discount_percentage: float = 70.0
    savings_epsilon: float = 0.01

    # expiry applies from the default table even with no expiry promotion on file
    implicit_expiry_discount: bool = True

    # lifecycle
    expiry_lookahead_days: int = 60
    critical_days: int = 7
    warning_days: int = 30
    auto_promotion_validity_days: int = 365
    expiry_job_interval_seconds: float = 24 * 60 * 60
    promotion_cleanup_interval_seconds: float = 7 * 24 * 60 * 60

    def __post_init__(self) -> None:
        if self.max_line_quantity < 1:
            raise ValueError("max_line_quantity must be at least 1.")
        if not 0 <= self.max_discount_percentage <= 100:
            raise ValueError(
                f"max_discount_percentage must be between 0 and 100, "
                f"got {self.max_discount_percentage}."
            )
        if self.critical_days > self.warning_days:
            raise ValueError("critical_days cannot exceed warning_days.")
        if self.expiry_lookahead_days < 0:
            raise ValueError("expiry_lookahead_days cannot be negative.")
        if self.expiry_job_interval_seconds <= 0 or self.promotion_cleanup_interval_seconds <= 0:
            raise ValueError("Job intervals must be positive.")


_TIER_KEYS = {"bulk_tiers": BulkTier, "expiry_tiers": ExpiryTier}


def load_pricing_rules(
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    base: Optional[PricingRules] = None,
) -> PricingRules:
    """
    Build PricingRules from a settings mapping.

    Tier tables may be given as lists of dicts. Unknown keys are
    rejected so a typo in deployment config cannot silently fall
    back to defaults.
    """
    rules = base or PricingRules()
    if not overrides:
        return rules

    known = {f.name for f in fields(PricingRules)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unknown pricing rule keys: {', '.join(unknown)}.")

    changes: dict[str, Any] = {}
    for key, value in overrides.items():
        tier_cls = _TIER_KEYS.get(key)
        if tier_cls is not None:
            changes[key] = tuple(
                row if isinstance(row, tier_cls) else tier_cls.from_dict(row)
                for row in value
            )
        else:
            changes[key] = value
    return replace(rules, **changes)


# ══════════════════════════════════════════════════════════════
# CONFIG STORE
# ══════════════════════════════════════════════════════════════

class ConfigStore(Protocol):
    """Where the engines read their current PricingRules from."""

    def get_pricing_rules(self) -> PricingRules:
        ...  # pragma: no cover


@dataclass
class InMemoryConfigStore:
    """Mutable holder for tests and bootstrap."""

    rules: PricingRules = field(default_factory=PricingRules)

    def get_pricing_rules(self) -> PricingRules:
        return self.rules

    def set_pricing_rules(self, rules: PricingRules) -> None:
        self.rules = rules


class DjangoSettingsConfigStore:
    """Reads FROSTLINE_PRICING from django.conf.settings on every call."""

    setting_name = "FROSTLINE_PRICING"

    def get_pricing_rules(self) -> PricingRules:
        from django.conf import settings

        return load_pricing_rules(getattr(settings, self.setting_name, None))


def pricing_rules_from_settings() -> PricingRules:
    return DjangoSettingsConfigStore().get_pricing_rules()
