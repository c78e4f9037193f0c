"""
Frostline Pricing - Eligibility Filter
======================================
Does a promotion apply to this product / this customer type?
Pure; the applicability variant was resolved when the promotion loaded.
"""

from __future__ import annotations

from typing import Optional

from core.catalog.models import (
    CUSTOMER_TYPE_ALL,
    AllProducts,
    ByCategories,
    ByProductIds,
    Product,
    Promotion,
)


def is_product_eligible(product: Product, promotion: Promotion) -> bool:
    applicability = promotion.applicability
    if isinstance(applicability, ByProductIds):
        return str(product.product_id) in applicability.product_ids
    if isinstance(applicability, ByCategories):
        return product.category in applicability.categories
    if isinstance(applicability, AllProducts):
        return True
    raise TypeError(f"Unknown applicability variant: {type(applicability).__name__}")


def is_customer_eligible(customer_type: Optional[str], promotion: Promotion) -> bool:
    types = promotion.customer_types
    if not types or CUSTOMER_TYPE_ALL in types:
        return True
    return customer_type in types
