"""
Frostline Catalog - Public API
==============================
Engine-facing data model and the repository contract.
"""

from core.catalog.errors import (
    DataInconsistency,
    DuplicatePromotion,
    PricingError,
    RepositoryFailure,
)
from core.catalog.models import (
    CUSTOMER_TYPE_ALL,
    AllProducts,
    Applicability,
    Batch,
    BatchStatus,
    ByCategories,
    ByProductIds,
    DiscountSpec,
    DiscountType,
    Product,
    Promotion,
    PromotionType,
    applicability_from_conditions,
    applicability_to_conditions,
)
from core.catalog.repository import CatalogRepository, InMemoryCatalogRepository

__all__ = [
    "PricingError",
    "DataInconsistency",
    "DuplicatePromotion",
    "RepositoryFailure",
    "CUSTOMER_TYPE_ALL",
    "AllProducts",
    "ByProductIds",
    "ByCategories",
    "Applicability",
    "applicability_from_conditions",
    "applicability_to_conditions",
    "Batch",
    "BatchStatus",
    "Product",
    "Promotion",
    "PromotionType",
    "DiscountSpec",
    "DiscountType",
    "CatalogRepository",
    "InMemoryCatalogRepository",
]
