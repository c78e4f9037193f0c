"""
Frostline Catalog - Repository Contract
=======================================
The read/write surface the pricing and freshness engines need from
the catalog store. Engines never hold persistent state; they read
snapshots and issue targeted, atomic mutations through this protocol.

Implementations:
    InMemoryCatalogRepository  (this module) - tests, bootstrap
    DjangoCatalogRepository    (core.catalog_store) - production

Atomicity contract:
- increment_stock / draw_from_batch are single atomic operations,
  never read-modify-write in engine memory.
- create_promotion refuses a second active auto-generated expiry
  promotion for the same product (DuplicatePromotion).
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol

from core.catalog.errors import DuplicatePromotion, RepositoryFailure
from core.catalog.models import Batch, BatchStatus, Product, Promotion, PromotionType


# ══════════════════════════════════════════════════════════════
# PROTOCOL
# ══════════════════════════════════════════════════════════════

class CatalogRepository(Protocol):
    """Product / Batch / Promotion store as seen by the engines."""

    # products
    def get_product(self, product_id: str) -> Optional[Product]: ...
    def find_products_by_ids(self, product_ids: Iterable[str]) -> List[Product]: ...
    def find_products_by_category(self, category: str) -> List[Product]: ...
    def find_active_products(self) -> List[Product]: ...
    def list_products(self) -> List[Product]: ...
    def save_product(self, product: Product) -> Product: ...
    def increment_stock(self, product_id: str, delta: int) -> int: ...

    # batches
    def add_batch(self, product_id: str, batch: Batch) -> Batch: ...
    def replace_batch(self, product_id: str, batch: Batch) -> Batch: ...
    def remove_batch(self, product_id: str, batch_number: str) -> Optional[Batch]: ...
    def set_batch_status(
        self, product_id: str, batch_number: str, status: BatchStatus,
    ) -> None: ...
    def draw_from_batch(self, product_id: str, batch_number: str, quantity: int) -> int: ...

    # promotions
    def get_promotion(self, promotion_id: str) -> Optional[Promotion]: ...
    def list_promotions(
        self, promotion_type: Optional[PromotionType] = None, active_only: bool = False,
    ) -> List[Promotion]: ...
    def find_promotions_active_in_window(self, now: datetime) -> List[Promotion]: ...
    def create_promotion(self, promotion: Promotion) -> Promotion: ...
    def deactivate_promotions_ended_before(
        self, now: datetime, auto_generated_for: Optional[str] = None,
    ) -> List[Promotion]: ...
    def increment_promotion_usage(self, promotion_id: str) -> None: ...


# ══════════════════════════════════════════════════════════════
# IN-MEMORY IMPLEMENTATION
# ══════════════════════════════════════════════════════════════

class InMemoryCatalogRepository:
    """
    Thread-safe dict-backed repository.

    Every public method holds one re-entrant lock for its whole
    duration, which gives the same atomicity the Django store gets
    from F() expressions and constraints.
    """

    def __init__(
        self,
        products: Iterable[Product] = (),
        promotions: Iterable[Promotion] = (),
    ):
        self._lock = threading.RLock()
        self._products: Dict[str, Product] = {}
        self._promotions: Dict[str, Promotion] = {}
        for product in products:
            self.save_product(product)
        for promotion in promotions:
            self.create_promotion(promotion)

    # ── products ──────────────────────────────────────────────

    def get_product(self, product_id: str) -> Optional[Product]:
        with self._lock:
            return self._products.get(str(product_id))

    def find_products_by_ids(self, product_ids: Iterable[str]) -> List[Product]:
        with self._lock:
            return [
                self._products[pid] for pid in (str(p) for p in product_ids)
                if pid in self._products
            ]

    def find_products_by_category(self, category: str) -> List[Product]:
        with self._lock:
            return [p for p in self._products.values() if p.category == category]

    def find_active_products(self) -> List[Product]:
        with self._lock:
            return [p for p in self._products.values() if p.is_active]

    def list_products(self) -> List[Product]:
        with self._lock:
            return list(self._products.values())

    def save_product(self, product: Product) -> Product:
        with self._lock:
            self._products[product.product_id] = product
            return product

    def increment_stock(self, product_id: str, delta: int) -> int:
        with self._lock:
            product = self._require_product(product_id, "increment_stock")
            stock = max(0, product.stock + delta)
            self._products[product.product_id] = replace(product, stock=stock)
            return stock

    # ── batches ───────────────────────────────────────────────

    def add_batch(self, product_id: str, batch: Batch) -> Batch:
        with self._lock:
            product = self._require_product(product_id, "add_batch")
            if product.find_batch(batch.batch_number) is not None:
                raise RepositoryFailure(
                    "add_batch",
                    f"batch {batch.batch_number} already exists on product {product_id}.",
                )
            self._products[product.product_id] = replace(
                product, batches=product.batches + (batch,),
            )
            return batch

    def replace_batch(self, product_id: str, batch: Batch) -> Batch:
        with self._lock:
            product = self._require_product(product_id, "replace_batch")
            self._require_batch(product, batch.batch_number, "replace_batch")
            self._products[product.product_id] = replace(
                product,
                batches=tuple(
                    batch if b.batch_number == batch.batch_number else b
                    for b in product.batches
                ),
            )
            return batch

    def remove_batch(self, product_id: str, batch_number: str) -> Optional[Batch]:
        with self._lock:
            product = self._require_product(product_id, "remove_batch")
            removed = product.find_batch(batch_number)
            if removed is None:
                return None
            self._products[product.product_id] = replace(
                product,
                batches=tuple(b for b in product.batches if b.batch_number != batch_number),
            )
            return removed

    def set_batch_status(
        self, product_id: str, batch_number: str, status: BatchStatus,
    ) -> None:
        with self._lock:
            product = self._require_product(product_id, "set_batch_status")
            batch = self._require_batch(product, batch_number, "set_batch_status")
            self.replace_batch(product_id, replace(batch, status=status))

    def draw_from_batch(self, product_id: str, batch_number: str, quantity: int) -> int:
        """Take up to `quantity` from the batch; returns what was actually taken."""
        with self._lock:
            product = self._require_product(product_id, "draw_from_batch")
            batch = self._require_batch(product, batch_number, "draw_from_batch")
            taken = min(quantity, batch.available_quantity)
            if taken <= 0:
                return 0
            self.replace_batch(
                product_id, batch.with_remaining(batch.available_quantity - taken),
            )
            return taken

    # ── promotions ────────────────────────────────────────────

    def get_promotion(self, promotion_id: str) -> Optional[Promotion]:
        with self._lock:
            return self._promotions.get(promotion_id)

    def list_promotions(
        self, promotion_type: Optional[PromotionType] = None, active_only: bool = False,
    ) -> List[Promotion]:
        with self._lock:
            return [
                p for p in self._promotions.values()
                if (promotion_type is None or p.promotion_type is promotion_type)
                and (not active_only or p.is_active)
            ]

    def find_promotions_active_in_window(self, now: datetime) -> List[Promotion]:
        with self._lock:
            return [
                p for p in self._promotions.values()
                if p.is_active and p.in_window(now)
            ]

    def create_promotion(self, promotion: Promotion) -> Promotion:
        with self._lock:
            if self._is_guarded(promotion):
                for existing in self._promotions.values():
                    if (
                        self._is_guarded(existing)
                        and existing.auto_generated_for == promotion.auto_generated_for
                    ):
                        raise DuplicatePromotion(promotion.auto_generated_for)
            promotion_id = promotion.promotion_id or str(uuid.uuid4())
            if promotion_id in self._promotions:
                raise RepositoryFailure(
                    "create_promotion", f"promotion {promotion_id} already exists.",
                )
            stored = replace(promotion, promotion_id=promotion_id)
            self._promotions[promotion_id] = stored
            return stored

    def deactivate_promotions_ended_before(
        self, now: datetime, auto_generated_for: Optional[str] = None,
    ) -> List[Promotion]:
        with self._lock:
            deactivated = []
            for promotion in list(self._promotions.values()):
                if (
                    auto_generated_for is not None
                    and promotion.auto_generated_for != auto_generated_for
                ):
                    continue
                if promotion.is_active and promotion.window.has_ended(now):
                    updated = replace(promotion, is_active=False)
                    self._promotions[promotion.promotion_id] = updated
                    deactivated.append(updated)
            return deactivated

    def increment_promotion_usage(self, promotion_id: str) -> None:
        with self._lock:
            promotion = self._promotions.get(promotion_id)
            if promotion is None:
                raise RepositoryFailure(
                    "increment_promotion_usage", f"promotion {promotion_id} not found.",
                )
            self._promotions[promotion_id] = replace(
                promotion, usage_count=promotion.usage_count + 1,
            )

    # ── internal ──────────────────────────────────────────────

    @staticmethod
    def _is_guarded(promotion: Promotion) -> bool:
        return (
            promotion.is_active
            and promotion.auto_generated
            and promotion.promotion_type is PromotionType.EXPIRY_DISCOUNT
            and promotion.auto_generated_for is not None
        )

    def _require_product(self, product_id: str, operation: str) -> Product:
        product = self._products.get(str(product_id))
        if product is None:
            raise RepositoryFailure(operation, f"product {product_id} not found.")
        return product

    @staticmethod
    def _require_batch(product: Product, batch_number: str, operation: str) -> Batch:
        batch = product.find_batch(batch_number)
        if batch is None:
            raise RepositoryFailure(
                operation,
                f"batch {batch_number} not found on product {product.product_id}.",
            )
        return batch
