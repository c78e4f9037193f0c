"""
Frostline Pricing - Discount Engine
===================================
Per-line discount computation for a cart.

For each line, independently:
1. Resolve the product; missing or inactive products are skipped.
2. Bulk discount: first eligible bulk promotion whose tier table
   matches the quantity.
3. Expiry discount: nearest-expiry allocatable batch, days to expiry
   matched against the first eligible expiry promotion's table (or
   the configured defaults).
4. select_pricing_discount keeps exactly one of (2) and (3).
5. Other promotions the product and customer qualify for stack on top.
6. Line savings = sum of line original x percentage, capped at the line.

The engine is synchronous and holds no mutable state; the only write
it issues is the best-effort usage counter after a discounted result.
Repository failures on the read path propagate to the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from core.catalog.errors import DataInconsistency, PricingError
from core.catalog.models import DiscountSpec, DiscountType, Product, Promotion, PromotionType
from core.catalog.repository import CatalogRepository
from core.config.rules import BulkTier, ExpiryTier, PricingRules
from core.time.clock import Clock, get_default_clock
from core.time.temporal import days_until
from engines.inventory.batches import find_allocatable_batch
from engines.pricing.eligibility import is_customer_eligible, is_product_eligible
from engines.pricing.errors import InputError, ValidationIssue
from engines.pricing.policies import (
    fixed_amount_as_percentage,
    line_savings,
    live_promotions,
    select_pricing_discount,
)
from engines.pricing.results import (
    AUTO_EXPIRY_PROMOTION_ID,
    AUTO_EXPIRY_PROMOTION_NAME,
    AppliedDiscount,
    BreakdownEntry,
    DiscountBreakdown,
    DiscountKind,
    DiscountPreview,
    DiscountResult,
    LineResult,
    ProductDiscountPreview,
    round_money,
    to_money,
)
from engines.pricing.tiers import TierMatcher
from engines.pricing.validator import (
    bulk_tier_issues,
    discount_spec_issues,
    ensure_valid_cart,
    expiry_tier_issues,
)

logger = logging.getLogger("frostline.pricing")


class DiscountEngine:
    """Bulk / expiry / stacked-promotion pricing over a CatalogRepository."""

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

    @property
    def rules(self) -> PricingRules:
        return self._rules

    @property
    def tier_matcher(self) -> TierMatcher:
        return self._tiers

    # ══════════════════════════════════════════════════════════
    # PUBLIC OPERATIONS
    # ══════════════════════════════════════════════════════════

    def active_promotions(self, now: Optional[datetime] = None) -> List[Promotion]:
        now = now or self._clock.now_utc()
        return live_promotions(self._repository.find_promotions_active_in_window(now), now)

    def calculate_cart_discounts(
        self,
        cart_items: Any,
        customer_type: str = "all",
        user_id: Optional[str] = None,
        *,
        record_usage: bool = True,
    ) -> DiscountResult:
        """
        Price a cart. Raises InputError before touching the repository
        when any line is malformed.
        """
        items = ensure_valid_cart(cart_items, self._rules)
        now = self._clock.now_utc()
        promotions = self.active_promotions(now)

        lines: List[LineResult] = []
        bulk_entries: List[BreakdownEntry] = []
        expiry_entries: List[BreakdownEntry] = []
        other_entries: List[BreakdownEntry] = []
        skipped: List[str] = []

        for index, item in enumerate(items):
            product = self._repository.get_product(item.product_id)
            if product is None or not product.is_active:
                logger.debug(
                    "Skipping cart line %d: product %s missing or inactive",
                    index, item.product_id,
                )
                skipped.append(item.product_id)
                continue

            line = self._price_line(index, product, item.quantity, customer_type, promotions, now)
            lines.append(line)
            for discount in line.applied_discounts:
                entry = BreakdownEntry(
                    line_index=index,
                    product_id=product.product_id,
                    product_name=product.name,
                    discount=discount,
                    savings=round_money(
                        line_savings(line.original_price, [discount.discount_percentage])
                    ),
                )
                if discount.kind is DiscountKind.BULK:
                    bulk_entries.append(entry)
                elif discount.kind is DiscountKind.EXPIRY:
                    expiry_entries.append(entry)
                else:
                    other_entries.append(entry)

        result = DiscountResult.from_lines(
            lines,
            DiscountBreakdown(
                bulk_discounts=tuple(bulk_entries),
                expiry_discounts=tuple(expiry_entries),
                other_discounts=tuple(other_entries),
            ),
            skipped,
        )
        logger.debug(
            "Priced cart for user=%s customer_type=%s: %d lines, savings %.2f",
            user_id, customer_type, len(lines), result.total_savings,
        )

        if record_usage and result.total_savings > 0:
            self._record_usage(result.applied_discounts)
        return result

    def get_available_discounts(
        self, product_ids: Sequence[str], quantity: int = 1,
    ) -> List[ProductDiscountPreview]:
        """
        Bulk and expiry discounts each product would get at `quantity`.
        Both are listed even though a real cart line would only take one.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or not (
            1 <= quantity <= self._rules.max_line_quantity
        ):
            raise InputError([ValidationIssue(
                "QUANTITY_NOT_POSITIVE",
                f"quantity must be an integer between 1 and {self._rules.max_line_quantity}.",
                field="quantity",
            )])

        now = self._clock.now_utc()
        promotions = self.active_promotions(now)
        previews = []
        for product in self._repository.find_products_by_ids(product_ids):
            if not product.is_active:
                continue
            line_original = to_money(Decimal(str(product.price)) * quantity)
            candidates = (
                self.bulk_discount(product, quantity, promotions),
                self.expiry_discount(product, quantity, promotions, now),
            )
            previews.append(ProductDiscountPreview(
                product_id=product.product_id,
                product_name=product.name,
                current_price=product.price,
                discounts=tuple(
                    DiscountPreview(
                        kind=d.kind,
                        promotion_id=d.promotion_id,
                        discount_percentage=d.discount_percentage,
                        potential_savings=round_money(
                            line_savings(line_original, [d.discount_percentage])
                        ),
                        description=d.description,
                    )
                    for d in candidates if d is not None
                ),
            ))
        return previews

    # ══════════════════════════════════════════════════════════
    # DISCOUNT KINDS
    # ══════════════════════════════════════════════════════════

    def bulk_discount(
        self, product: Product, quantity: int, promotions: Iterable[Promotion],
    ) -> Optional[AppliedDiscount]:
        for promotion in promotions:
            if promotion.promotion_type is not PromotionType.BULK_DISCOUNT:
                continue
            if not is_product_eligible(product, promotion):
                continue
            try:
                tiers = self._bulk_tiers_of(promotion)
            except DataInconsistency as exc:
                logger.warning("Skipping promotion %s: %s", promotion.promotion_id, exc.detail)
                continue
            tier = self._tiers.bulk(quantity, tiers)
            if tier is None:
                continue
            return AppliedDiscount(
                promotion_id=promotion.promotion_id,
                promotion_name=promotion.name,
                kind=DiscountKind.BULK,
                promotion_type=promotion.promotion_type.value,
                discount_type=DiscountType.PERCENTAGE,
                discount_percentage=tier.discount_percentage,
                description=(
                    f"Bulk discount: {tier.discount_percentage:g}% off "
                    f"for {tier.min_quantity}+ units"
                ),
                tier=tier,
                quantity=quantity,
            )
        return None

    def expiry_discount(
        self,
        product: Product,
        quantity: int,
        promotions: Iterable[Promotion],
        now: datetime,
    ) -> Optional[AppliedDiscount]:
        batch = find_allocatable_batch(product.batches, quantity, now)
        if batch is None:
            return None
        days = days_until(batch.expiry_date, now)

        source: Optional[Promotion] = None
        tiers: Optional[Tuple[ExpiryTier, ...]] = None
        for promotion in promotions:
            if promotion.promotion_type is not PromotionType.EXPIRY_DISCOUNT:
                continue
            if not is_product_eligible(product, promotion):
                continue
            try:
                tiers = self._expiry_tiers_of(promotion)
            except DataInconsistency as exc:
                logger.warning("Skipping promotion %s: %s", promotion.promotion_id, exc.detail)
                continue
            source = promotion
            break

        if source is None and not self._rules.implicit_expiry_discount:
            return None

        tier = self._tiers.expiry(days, tiers)
        if tier is None:
            return None
        return AppliedDiscount(
            promotion_id=AUTO_EXPIRY_PROMOTION_ID if source is None else source.promotion_id,
            promotion_name=AUTO_EXPIRY_PROMOTION_NAME if source is None else source.name,
            kind=DiscountKind.EXPIRY,
            promotion_type=PromotionType.EXPIRY_DISCOUNT.value,
            discount_type=DiscountType.PERCENTAGE,
            discount_percentage=tier.discount_percentage,
            description=(
                f"Near expiry discount: {tier.discount_percentage:g}% off "
                f"(expires in {days} days)"
            ),
            tier=tier,
            days_to_expiry=days,
            batch_number=batch.batch_number,
            expiry_date=batch.expiry_date,
        )

    def other_discounts(
        self,
        product: Product,
        quantity: int,
        customer_type: Optional[str],
        promotions: Iterable[Promotion],
    ) -> List[AppliedDiscount]:
        applied = []
        for promotion in promotions:
            if promotion.promotion_type is not PromotionType.OTHER:
                continue
            if not is_product_eligible(product, promotion):
                continue
            if not is_customer_eligible(customer_type, promotion):
                continue
            if quantity < max(promotion.min_quantity, 1):
                continue

            try:
                offer = self._offer_of(promotion)
            except DataInconsistency as exc:
                logger.warning("Skipping promotion %s: %s", promotion.promotion_id, exc.detail)
                continue

            amount = None
            if offer.discount_type is DiscountType.PERCENTAGE:
                percentage = offer.value
            else:
                percentage = fixed_amount_as_percentage(offer.value, product.price)
                if percentage is None:
                    logger.warning(
                        "Skipping fixed-amount promotion %s for product %s: "
                        "unit price is not positive",
                        promotion.promotion_id, product.product_id,
                    )
                    continue
                amount = offer.value

            applied.append(AppliedDiscount(
                promotion_id=promotion.promotion_id,
                promotion_name=promotion.name,
                kind=DiscountKind.OTHER,
                promotion_type=promotion.promotion_type.value,
                discount_type=offer.discount_type,
                discount_percentage=percentage,
                discount_amount=amount,
                description=promotion.description or f"{promotion.name} discount applied",
            ))
        return applied

    # ══════════════════════════════════════════════════════════
    # INTERNAL
    # ══════════════════════════════════════════════════════════

    def _price_line(
        self,
        index: int,
        product: Product,
        quantity: int,
        customer_type: Optional[str],
        promotions: Sequence[Promotion],
        now: datetime,
    ) -> LineResult:
        original = to_money(Decimal(str(product.price)) * quantity)

        pricing = select_pricing_discount(
            self.bulk_discount(product, quantity, promotions),
            self.expiry_discount(product, quantity, promotions, now),
        )
        discounts: List[AppliedDiscount] = [] if pricing is None else [pricing]
        discounts.extend(self.other_discounts(product, quantity, customer_type, promotions))

        savings = to_money(line_savings(original, [d.discount_percentage for d in discounts]))
        return LineResult(
            line_index=index,
            product_id=product.product_id,
            product_name=product.name,
            category=product.category,
            unit=product.unit,
            unit_price=product.price,
            quantity=quantity,
            original_price=round_money(original),
            discounted_price=round_money(original - savings),
            savings=round_money(savings),
            applied_discounts=tuple(discounts),
        )

    @staticmethod
    def _offer_of(promotion: Promotion) -> DiscountSpec:
        issues = discount_spec_issues(promotion.discount)
        if issues:
            raise DataInconsistency(
                f"promotion {promotion.promotion_id}",
                "; ".join(i.message for i in issues),
            )
        return promotion.discount

    @staticmethod
    def _bulk_tiers_of(promotion: Promotion) -> Optional[Tuple[BulkTier, ...]]:
        if not promotion.bulk_rules:
            return None
        issues = bulk_tier_issues(promotion.bulk_rules)
        if issues:
            raise DataInconsistency(
                f"promotion {promotion.promotion_id}",
                "; ".join(i.message for i in issues),
            )
        return promotion.bulk_rules

    @staticmethod
    def _expiry_tiers_of(promotion: Promotion) -> Optional[Tuple[ExpiryTier, ...]]:
        if not promotion.expiry_rules:
            return None
        issues = expiry_tier_issues(promotion.expiry_rules)
        if issues:
            raise DataInconsistency(
                f"promotion {promotion.promotion_id}",
                "; ".join(i.message for i in issues),
            )
        return promotion.expiry_rules

    def _record_usage(self, discounts: Iterable[AppliedDiscount]) -> None:
        promotion_ids: List[str] = []
        for discount in discounts:
            if discount.counts_usage and discount.promotion_id not in promotion_ids:
                promotion_ids.append(discount.promotion_id)
        for promotion_id in promotion_ids:
            try:
                self._repository.increment_promotion_usage(promotion_id)
            except PricingError:
                logger.warning(
                    "Failed to record usage for promotion %s", promotion_id, exc_info=True,
                )
