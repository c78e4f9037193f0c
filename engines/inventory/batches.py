"""
Frostline Inventory - Batch Allocator
=====================================
FIFO-by-expiry selection over a product's batches.

RULES:
- Only live batches participate: status active, something remaining,
  expiry date strictly in the future.
- Nearest expiry first; equal expiry dates keep receive (list) order.
- The allocator never mutates a batch. Consumption is planned here and
  applied through the repository, one atomic draw per batch.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from core.catalog.models import Batch, BatchStatus

BATCH_NUMBER_PREFIX = "BATCH"
_BATCH_NUMBER_RE = re.compile(r"^BATCH-(\d{8})-(\d+)$")


# ══════════════════════════════════════════════════════════════
# SELECTION
# ══════════════════════════════════════════════════════════════

def _is_allocatable(batch: Batch, required_quantity: int, now: datetime) -> bool:
    return (
        batch.status is BatchStatus.ACTIVE
        and batch.available_quantity >= required_quantity
        and batch.expiry_date > now
    )


def find_allocatable_batch(
    batches: Iterable[Batch], required_quantity: int, now: datetime,
) -> Optional[Batch]:
    """
    The batch that backs an expiry-discount calculation: nearest expiry
    among active, unexpired batches holding at least required_quantity.
    """
    candidates = [b for b in batches if _is_allocatable(b, required_quantity, now)]
    if not candidates:
        return None
    return min(candidates, key=lambda b: b.expiry_date)


def fifo_order(batches: Iterable[Batch], now: datetime) -> List[Batch]:
    """Live batches ranked nearest expiry first."""
    live = [b for b in batches if b.is_live(now)]
    return sorted(live, key=lambda b: b.expiry_date)


# ══════════════════════════════════════════════════════════════
# CONSUMPTION PLAN
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BatchDraw:
    batch_number: str
    quantity: int


@dataclass(frozen=True)
class FifoPlan:
    """Which batches to draw from, and how much could not be covered."""

    draws: Tuple[BatchDraw, ...]
    quantity_requested: int
    quantity_planned: int

    @property
    def quantity_unfulfilled(self) -> int:
        return self.quantity_requested - self.quantity_planned

    @property
    def fully_fulfilled(self) -> bool:
        return self.quantity_unfulfilled == 0


def plan_fifo_consumption(
    batches: Sequence[Batch], quantity: int, now: datetime,
) -> FifoPlan:
    if quantity <= 0:
        raise ValueError(f"Consume quantity must be positive, got {quantity}.")

    remaining = quantity
    draws: List[BatchDraw] = []
    for batch in fifo_order(batches, now):
        if remaining <= 0:
            break
        take = min(batch.available_quantity, remaining)
        draws.append(BatchDraw(batch_number=batch.batch_number, quantity=take))
        remaining -= take

    return FifoPlan(
        draws=tuple(draws),
        quantity_requested=quantity,
        quantity_planned=quantity - remaining,
    )


# ══════════════════════════════════════════════════════════════
# BATCH NUMBERS
# ══════════════════════════════════════════════════════════════

def next_batch_number(existing: Iterable[str], on: datetime) -> str:
    """
    BATCH-YYYYMMDD-NNNNN, one past the highest counter already issued
    for that date. Numbers from other dates or other formats are ignored.
    """
    day = on.strftime("%Y%m%d")
    highest = 0
    for number in existing:
        match = _BATCH_NUMBER_RE.match(number or "")
        if match and match.group(1) == day:
            highest = max(highest, int(match.group(2)))
    return f"{BATCH_NUMBER_PREFIX}-{day}-{highest + 1:05d}"
