"""
Frostline Catalog - Error Taxonomy
==================================
Errors raised across the catalog / pricing boundary.

PricingError        base for everything below
DataInconsistency   malformed promotion, dangling reference
DuplicatePromotion  unique active-expiry-promotion guard fired
RepositoryFailure   storage read/write failed

InputError (malformed cart input) lives with the validator in
engines.pricing.errors.
"""

from __future__ import annotations


class PricingError(Exception):
    """Base error for the pricing and freshness subsystem."""
    pass


class DataInconsistency(PricingError):
    """Stored data the engine cannot trust; the offending item is skipped."""

    def __init__(self, subject: str, detail: str):
        self.subject = subject
        self.detail = detail
        super().__init__(f"Data inconsistency in {subject}: {detail}")


class DuplicatePromotion(DataInconsistency):
    """An active auto-generated expiry promotion already exists for the product."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(
            f"product {product_id}",
            "an active auto-generated expiry promotion already exists.",
        )


class RepositoryFailure(PricingError):
    """A catalog store operation failed."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Repository operation '{operation}' failed: {detail}")
