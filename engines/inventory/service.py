"""
Frostline Inventory - Batch Management Service
==============================================
Receive, edit, remove and consume product batches while keeping the
product's aggregate stock in step.

RULES:
- Stock moves only through repository.increment_stock (atomic).
- A batch's remaining quantity never exceeds its original quantity.
- consume() draws nearest-expiry first; emptied batches become depleted.
- Consuming more than is available is not an error: the shortfall is
  reported as quantity_unfulfilled.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional, Tuple

from core.catalog.errors import RepositoryFailure
from core.catalog.models import Batch, BatchStatus, Product
from core.catalog.repository import CatalogRepository
from core.time.clock import Clock, get_default_clock
from core.time.temporal import ensure_aware
from engines.inventory.batches import BatchDraw, next_batch_number, plan_fifo_consumption

logger = logging.getLogger("frostline.inventory")


@dataclass(frozen=True)
class ConsumptionResult:
    product_id: str
    draws: Tuple[BatchDraw, ...]
    quantity_requested: int
    quantity_consumed: int
    stock: int

    @property
    def quantity_unfulfilled(self) -> int:
        return self.quantity_requested - self.quantity_consumed

    @property
    def fully_fulfilled(self) -> bool:
        return self.quantity_unfulfilled == 0

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "draws": [
                {"batch_number": d.batch_number, "quantity": d.quantity} for d in self.draws
            ],
            "quantity_requested": self.quantity_requested,
            "quantity_consumed": self.quantity_consumed,
            "quantity_unfulfilled": self.quantity_unfulfilled,
            "stock": self.stock,
        }


class BatchService:
    def __init__(self, repository: CatalogRepository, clock: Optional[Clock] = None):
        self._repository = repository
        self._clock = clock or get_default_clock()
        # batch number issuance reads then writes
        self._numbering_lock = threading.Lock()

    def receive_batch(
        self,
        product_id: str,
        quantity: int,
        expiry_date: datetime,
        batch_number: Optional[str] = None,
        received_date: Optional[datetime] = None,
    ) -> Batch:
        if quantity <= 0:
            raise ValueError(f"Batch quantity must be positive, got {quantity}.")
        now = self._clock.now_utc()
        self._require_product(product_id, "receive_batch")

        with self._numbering_lock:
            number = batch_number or next_batch_number(self._issued_batch_numbers(), now)
            batch = Batch(
                batch_number=number,
                quantity=quantity,
                remaining_quantity=quantity,
                expiry_date=ensure_aware(expiry_date),
                received_date=received_date or now,
                status=BatchStatus.ACTIVE,
            )
            self._repository.add_batch(product_id, batch)

        stock = self._repository.increment_stock(product_id, quantity)
        logger.info(
            "Received batch %s for product %s: %d units, expires %s (stock %d)",
            number, product_id, quantity, batch.expiry_date.date(), stock,
        )
        return batch

    def update_batch(
        self,
        product_id: str,
        batch_number: str,
        quantity: Optional[int] = None,
        expiry_date: Optional[datetime] = None,
    ) -> Batch:
        """
        Edit original quantity and/or expiry. Units already consumed stay
        consumed; stock moves by the change in remaining quantity.
        """
        product = self._require_product(product_id, "update_batch")
        batch = self._require_batch(product, batch_number, "update_batch")

        new_quantity = batch.quantity if quantity is None else quantity
        if new_quantity < 0:
            raise ValueError(f"Batch quantity cannot be negative, got {new_quantity}.")
        consumed = batch.quantity - batch.available_quantity
        new_remaining = max(0, new_quantity - consumed)

        status = batch.status
        if new_remaining == 0 and status is BatchStatus.ACTIVE:
            status = BatchStatus.DEPLETED
        elif new_remaining > 0 and status is BatchStatus.DEPLETED:
            status = BatchStatus.ACTIVE

        updated = replace(
            batch,
            quantity=new_quantity,
            remaining_quantity=new_remaining,
            expiry_date=batch.expiry_date if expiry_date is None else ensure_aware(expiry_date),
            status=status,
        )
        self._repository.replace_batch(product_id, updated)

        delta = new_remaining - batch.available_quantity
        if delta:
            self._repository.increment_stock(product_id, delta)
        logger.info(
            "Updated batch %s for product %s: quantity %d -> %d, remaining %d",
            batch_number, product_id, batch.quantity, new_quantity, new_remaining,
        )
        return updated

    def remove_batch(self, product_id: str, batch_number: str) -> Batch:
        removed = self._repository.remove_batch(product_id, batch_number)
        if removed is None:
            raise RepositoryFailure(
                "remove_batch", f"batch {batch_number} not found on product {product_id}.",
            )
        stock = self._repository.increment_stock(product_id, -removed.available_quantity)
        logger.info(
            "Removed batch %s from product %s (%d units, stock %d)",
            batch_number, product_id, removed.available_quantity, stock,
        )
        return removed

    def consume(self, product_id: str, quantity: int) -> ConsumptionResult:
        """Draw `quantity` units nearest-expiry first (order fulfillment)."""
        if quantity <= 0:
            raise ValueError(f"Consume quantity must be positive, got {quantity}.")
        now = self._clock.now_utc()

        remaining = quantity
        draws: List[BatchDraw] = []
        while remaining > 0:
            product = self._require_product(product_id, "consume")
            plan = plan_fifo_consumption(product.batches, remaining, now)
            progressed = 0
            for draw in plan.draws:
                taken = self._repository.draw_from_batch(
                    product_id, draw.batch_number, draw.quantity,
                )
                if taken:
                    draws.append(BatchDraw(batch_number=draw.batch_number, quantity=taken))
                    progressed += taken
            if progressed == 0:
                break
            remaining -= progressed

        consumed = quantity - remaining
        if consumed:
            stock = self._repository.increment_stock(product_id, -consumed)
        else:
            stock = self._require_product(product_id, "consume").stock

        result = ConsumptionResult(
            product_id=product_id,
            draws=tuple(draws),
            quantity_requested=quantity,
            quantity_consumed=consumed,
            stock=stock,
        )
        if not result.fully_fulfilled:
            logger.warning(
                "Product %s short by %d units (requested %d)",
                product_id, result.quantity_unfulfilled, quantity,
            )
        return result

    # ── internal ──────────────────────────────────────────────

    def _issued_batch_numbers(self) -> List[str]:
        return [
            batch.batch_number
            for product in self._repository.list_products()
            for batch in product.batches
        ]

    def _require_product(self, product_id: str, operation: str) -> Product:
        product = self._repository.get_product(product_id)
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
