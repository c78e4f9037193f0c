"""
Frostline Promotion Engine - Lifecycle Manager
==============================================
Background maintenance of promotions and batches. Runs on a schedule
(see engines.promotion.jobs) and is the only writer of promotion /
batch state outside the order and catalog paths.

Operations:
- generate_expiry_promotions   one auto expiry promotion per at-risk product
- cleanup_expired_promotions   deactivate (never delete) ended promotions
- mark_expired_batches         flag past-expiry batches, keep them
- cleanup_expired_batches      remove past-expiry batches, reduce stock
- setup_automatic_discounts    default bulk / expiry promotions

RULES:
- Generation is idempotent under re-entry: a per-product lock plus the
  repository's unique active-auto-promotion guard. Running twice on
  unchanged data creates nothing the second time.
- An auto promotion ends one day before the batch it targets expires.
- One product's failure is logged and the scan continues. Nothing is
  retried here; the next scheduled tick is the retry.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from core.catalog.errors import DuplicatePromotion
from core.catalog.models import (
    CUSTOMER_TYPE_ALL,
    AllProducts,
    BatchStatus,
    ByProductIds,
    DiscountSpec,
    DiscountType,
    Product,
    Promotion,
    PromotionType,
)
from core.catalog.repository import CatalogRepository
from core.config.rules import PricingRules
from core.time.clock import Clock, get_default_clock
from core.time.temporal import add_days
from engines.inventory.expiry import products_expiring_within
from engines.pricing.tiers import TierMatcher

logger = logging.getLogger("frostline.promotions")

NEAR_EXPIRY_SUFFIX = " - Near Expiry Special"
DEFAULT_BULK_PROMOTION_NAME = "Bulk Order Discount"
DEFAULT_EXPIRY_PROMOTION_NAME = "Near Expiry Discount"


def expiry_promotion_name(product_name: str) -> str:
    return f"{product_name}{NEAR_EXPIRY_SUFFIX}"


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class GeneratedPromotion:
    product_id: str
    product_name: str
    promotion: Promotion
    days_to_expiry: int
    discount_percentage: float

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "promotion": self.promotion.to_dict(),
            "days_to_expiry": self.days_to_expiry,
            "discount_percentage": self.discount_percentage,
        }


@dataclass(frozen=True)
class PromotionCleanupResult:
    deactivated_count: int
    promotion_ids: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {"deactivated_count": self.deactivated_count}


@dataclass(frozen=True)
class BatchCleanupResult:
    batches_removed: int
    units_removed: int = 0
    failed_product_ids: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "batches_removed": self.batches_removed,
            "units_removed": self.units_removed,
            "failed_product_ids": list(self.failed_product_ids),
        }


@dataclass(frozen=True)
class ExpirySweepResult:
    expired_count: int
    expiring_count: int
    checked_at: datetime

    def to_dict(self) -> dict:
        return {
            "expired_count": self.expired_count,
            "expiring_count": self.expiring_count,
            "checked_at": self.checked_at.isoformat(),
        }


# ══════════════════════════════════════════════════════════════
# MANAGER
# ══════════════════════════════════════════════════════════════

class PromotionLifecycleManager:
    def __init__(
        self,
        repository: CatalogRepository,
        rules: Optional[PricingRules] = None,
        clock: Optional[Clock] = None,
    ):
        self._repository = repository
        self._rules = rules or PricingRules()
        self._clock = clock or get_default_clock()
        self._tiers = TierMatcher(self._rules)
        self._product_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def rules(self) -> PricingRules:
        return self._rules

    # ── expiry promotions ─────────────────────────────────────

    def generate_expiry_promotions(self) -> List[GeneratedPromotion]:
        now = self._clock.now_utc()
        at_risk = products_expiring_within(
            self._repository.find_active_products(), self._rules.expiry_lookahead_days, now,
        )

        generated: List[GeneratedPromotion] = []
        for entry in at_risk:
            product = entry.product
            try:
                with self._lock_for(product.product_id):
                    created = self._generate_for_product(
                        product, entry.nearest_expiry.expiry_date, entry.days_to_expiry, now,
                    )
            except DuplicatePromotion:
                logger.info(
                    "Skipping %s: expiry promotion created concurrently", product.product_id,
                )
                continue
            except Exception:
                logger.error(
                    "Failed to generate expiry promotion for product %s",
                    product.product_id, exc_info=True,
                )
                continue
            if created is not None:
                generated.append(created)

        logger.info("Generated %d automatic expiry promotions", len(generated))
        return generated

    def _generate_for_product(
        self,
        product: Product,
        batch_expiry: datetime,
        days_to_expiry: int,
        now: datetime,
    ) -> Optional[GeneratedPromotion]:
        if self._has_expiry_promotion(product, now):
            logger.debug("Skipping %s: already has an expiry promotion", product.product_id)
            return None

        tier = self._tiers.expiry(days_to_expiry)
        if tier is None:
            logger.info(
                "Skipping %s: no expiry tier for %d days", product.product_id, days_to_expiry,
            )
            return None

        end_date = add_days(batch_expiry, -1)
        if end_date <= now:
            logger.info(
                "Skipping %s: batch expires before a promotion could run", product.product_id,
            )
            return None

        # The unique guard counts ended-but-active rows until the weekly cleanup.
        for retired in self._repository.deactivate_promotions_ended_before(
            now, auto_generated_for=product.product_id,
        ):
            logger.info(
                "Deactivated ended expiry promotion %s for %s",
                retired.promotion_id, product.product_id,
            )

        promotion = self._repository.create_promotion(Promotion(
            promotion_id="",
            name=expiry_promotion_name(product.name),
            description=f"Special discount on {product.name} expiring in {days_to_expiry} days",
            promotion_type=PromotionType.EXPIRY_DISCOUNT,
            discount=DiscountSpec(DiscountType.PERCENTAGE, tier.discount_percentage),
            applicability=ByProductIds(frozenset([product.product_id])),
            customer_types=(CUSTOMER_TYPE_ALL,),
            min_quantity=1,
            start_date=now,
            end_date=end_date,
            auto_generated=True,
            auto_generated_for=product.product_id,
            days_before_expiry=days_to_expiry,
        ))
        logger.info(
            "Created %s%% expiry promotion %s for %s (expires in %d days)",
            tier.discount_percentage, promotion.promotion_id, product.product_id, days_to_expiry,
        )
        return GeneratedPromotion(
            product_id=product.product_id,
            product_name=product.name,
            promotion=promotion,
            days_to_expiry=days_to_expiry,
            discount_percentage=tier.discount_percentage,
        )

    def _has_expiry_promotion(self, product: Product, now: datetime) -> bool:
        pattern = expiry_promotion_name(product.name)
        for promotion in self._repository.list_promotions(
            PromotionType.EXPIRY_DISCOUNT, active_only=True,
        ):
            if promotion.window.has_ended(now):
                continue
            if promotion.name == pattern:
                return True
            applicability = promotion.applicability
            if (
                isinstance(applicability, ByProductIds)
                and product.product_id in applicability.product_ids
            ):
                return True
        return False

    def _lock_for(self, product_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._product_locks.get(product_id)
            if lock is None:
                lock = self._product_locks[product_id] = threading.Lock()
            return lock

    def cleanup_expired_promotions(self) -> PromotionCleanupResult:
        deactivated = self._repository.deactivate_promotions_ended_before(self._clock.now_utc())
        for promotion in deactivated:
            logger.info("Deactivated expired promotion %s (%s)", promotion.promotion_id, promotion.name)
        logger.info("Deactivated %d expired promotions", len(deactivated))
        return PromotionCleanupResult(
            deactivated_count=len(deactivated),
            promotion_ids=tuple(p.promotion_id for p in deactivated),
        )

    # ── batches ───────────────────────────────────────────────

    def mark_expired_batches(self) -> ExpirySweepResult:
        now = self._clock.now_utc()
        critical_cutoff = add_days(now, self._rules.critical_days)
        expired_count = 0
        expiring_count = 0

        for product in self._repository.find_active_products():
            for batch in product.batches:
                if batch.status is not BatchStatus.ACTIVE:
                    continue
                if batch.expiry_date < now:
                    try:
                        self._repository.set_batch_status(
                            product.product_id, batch.batch_number, BatchStatus.EXPIRED,
                        )
                    except Exception:
                        logger.error(
                            "Failed to mark batch %s of %s expired",
                            batch.batch_number, product.product_id, exc_info=True,
                        )
                        continue
                    expired_count += 1
                    logger.info("Expired: %s - %s", product.product_id, batch.batch_number)
                elif batch.expiry_date <= critical_cutoff:
                    expiring_count += 1

        logger.info(
            "Expiry check complete: %d batches marked expired, %d expiring within %d days",
            expired_count, expiring_count, self._rules.critical_days,
        )
        return ExpirySweepResult(
            expired_count=expired_count, expiring_count=expiring_count, checked_at=now,
        )

    def cleanup_expired_batches(self) -> BatchCleanupResult:
        """
        Remove every batch past its expiry date and take its remaining
        units out of stock. Destructive.
        """
        now = self._clock.now_utc()
        removed_count = 0
        units_removed = 0
        failed: List[str] = []

        for product in self._repository.list_products():
            expired = [b for b in product.batches if b.expiry_date < now]
            if not expired:
                continue
            try:
                product_units = 0
                product_batches = 0
                for batch in expired:
                    removed = self._repository.remove_batch(product.product_id, batch.batch_number)
                    if removed is None:
                        continue
                    if removed.available_quantity:
                        self._repository.increment_stock(
                            product.product_id, -removed.available_quantity,
                        )
                    product_units += removed.available_quantity
                    product_batches += 1
                    removed_count += 1
                units_removed += product_units
                logger.info(
                    "Removed %d expired batches from %s (%d units)",
                    product_batches, product.product_id, product_units,
                )
            except Exception:
                failed.append(product.product_id)
                logger.error(
                    "Failed to clean up expired batches for product %s",
                    product.product_id, exc_info=True,
                )

        logger.info("Cleaned up %d expired batches", removed_count)
        return BatchCleanupResult(
            batches_removed=removed_count,
            units_removed=units_removed,
            failed_product_ids=tuple(failed),
        )

    # ── defaults ──────────────────────────────────────────────

    def setup_automatic_discounts(
        self,
        create_bulk_discount: bool = True,
        create_expiry_discount: bool = True,
        user_id: Optional[str] = None,
    ) -> List[Promotion]:
        """
        Store-wide default bulk and expiry promotions, valid for
        auto_promotion_validity_days. Existing active ones are kept.
        """
        now = self._clock.now_utc()
        end_date = add_days(now, self._rules.auto_promotion_validity_days)
        created: List[Promotion] = []

        if create_bulk_discount and not self._has_active(
            PromotionType.BULK_DISCOUNT, DEFAULT_BULK_PROMOTION_NAME,
        ):
            created.append(self._repository.create_promotion(Promotion(
                promotion_id="",
                name=DEFAULT_BULK_PROMOTION_NAME,
                description="Tiered discount on large orders",
                promotion_type=PromotionType.BULK_DISCOUNT,
                discount=DiscountSpec(
                    DiscountType.PERCENTAGE,
                    max((t.discount_percentage for t in self._rules.bulk_tiers), default=0.0),
                ),
                applicability=AllProducts(),
                customer_types=(CUSTOMER_TYPE_ALL,),
                bulk_rules=self._rules.bulk_tiers,
                start_date=now,
                end_date=end_date,
                created_by=user_id,
            )))

        if create_expiry_discount and not self._has_active(
            PromotionType.EXPIRY_DISCOUNT, DEFAULT_EXPIRY_PROMOTION_NAME,
        ):
            created.append(self._repository.create_promotion(Promotion(
                promotion_id="",
                name=DEFAULT_EXPIRY_PROMOTION_NAME,
                description="Tiered discount on stock close to expiry",
                promotion_type=PromotionType.EXPIRY_DISCOUNT,
                discount=DiscountSpec(
                    DiscountType.PERCENTAGE,
                    max((t.discount_percentage for t in self._rules.expiry_tiers), default=0.0),
                ),
                applicability=AllProducts(),
                customer_types=(CUSTOMER_TYPE_ALL,),
                expiry_rules=self._rules.expiry_tiers,
                start_date=now,
                end_date=end_date,
                created_by=user_id,
            )))

        for promotion in created:
            logger.info("Created default promotion %s (%s)", promotion.promotion_id, promotion.name)
        return created

    def _has_active(self, promotion_type: PromotionType, name: str) -> bool:
        return any(
            p.name == name
            for p in self._repository.list_promotions(promotion_type, active_only=True)
        )
