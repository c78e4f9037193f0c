"""
Frostline Core Config - Public API
==================================
Admin-configurable pricing rules (tier tables, limits, thresholds).
"""

from core.config.rules import (
    DEFAULT_BULK_TIERS,
    DEFAULT_EXPIRY_TIERS,
    BulkTier,
    ConfigStore,
    DjangoSettingsConfigStore,
    ExpiryTier,
    InMemoryConfigStore,
    PricingRules,
    load_pricing_rules,
    pricing_rules_from_settings,
)

__all__ = [
    "BulkTier",
    "ExpiryTier",
    "DEFAULT_BULK_TIERS",
    "DEFAULT_EXPIRY_TIERS",
    "PricingRules",
    "load_pricing_rules",
    "pricing_rules_from_settings",
    "ConfigStore",
    "InMemoryConfigStore",
    "DjangoSettingsConfigStore",
]
