"""
Frostline Inventory - Expiry Dashboard Queries
==============================================
Read-only views over batch freshness, for dashboards and reports.

Buckets (disjoint, by expiry date relative to now):
    expired   expiry_date <  now
    critical  now <= expiry_date <= now + critical_days
    warning   now + critical_days < expiry_date <= now + warning_days

At-risk (critical / warning) entries only consider live batches:
active, something remaining, not yet expired. Depleted batches never
show up anywhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from core.catalog.models import Batch, BatchStatus, Product
from core.catalog.repository import CatalogRepository
from core.config.rules import PricingRules
from core.time.clock import Clock, get_default_clock
from core.time.temporal import add_days, days_until
from engines.inventory.batches import fifo_order


# ══════════════════════════════════════════════════════════════
# VALUE OBJECTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AtRiskProduct:
    product: Product
    nearest_expiry: Batch
    days_to_expiry: int
    fifo_order: Tuple[Batch, ...]

    def to_dict(self) -> dict:
        data = self.product.to_dict(include_batches=False)
        data.update({
            "nearest_expiry": self.nearest_expiry.to_dict(),
            "days_to_expiry": self.days_to_expiry,
            "fifo_order": [b.to_dict() for b in self.fifo_order],
        })
        return data


@dataclass(frozen=True)
class ExpiryDashboard:
    critical_products: Tuple[AtRiskProduct, ...]
    warning_products: Tuple[AtRiskProduct, ...]
    expired_products: Tuple[AtRiskProduct, ...]

    @property
    def critical(self) -> int:
        return len(self.critical_products)

    @property
    def warning(self) -> int:
        return len(self.warning_products)

    @property
    def expired(self) -> int:
        return len(self.expired_products)

    def find(self, product_id: str) -> Optional[AtRiskProduct]:
        for entry in self.critical_products + self.warning_products + self.expired_products:
            if entry.product.product_id == product_id:
                return entry
        return None

    def to_dict(self) -> dict:
        return {
            "critical": self.critical,
            "warning": self.warning,
            "expired": self.expired,
            "critical_products": [p.to_dict() for p in self.critical_products],
            "warning_products": [p.to_dict() for p in self.warning_products],
            "expired_products": [p.to_dict() for p in self.expired_products],
        }


@dataclass(frozen=True)
class ExpiringBatchRow:
    product_id: str
    product_name: str
    category: str
    batch_number: str
    quantity: int
    unit: str
    unit_price: float
    expiry_date: datetime
    days_to_expiry: int
    status: BatchStatus
    received_date: Optional[datetime] = None

    @property
    def value(self) -> float:
        return self.quantity * self.unit_price

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "category": self.category,
            "batch_number": self.batch_number,
            "quantity": self.quantity,
            "unit": self.unit,
            "expiry_date": self.expiry_date.isoformat(),
            "days_to_expiry": self.days_to_expiry,
            "status": self.status.value,
            "received_date": (
                None if self.received_date is None else self.received_date.isoformat()
            ),
        }


@dataclass(frozen=True)
class ExpiringBatchesReport:
    expired: Tuple[ExpiringBatchRow, ...]
    critical: Tuple[ExpiringBatchRow, ...]
    warning: Tuple[ExpiringBatchRow, ...]

    @property
    def total_value(self) -> float:
        return round(sum(row.value for row in self.critical + self.warning), 2)

    def summary(self) -> dict:
        return {
            "total_expired": len(self.expired),
            "total_critical": len(self.critical),
            "total_warning": len(self.warning),
            "total_value": self.total_value,
        }

    def to_dict(self) -> dict:
        return {
            "expired": [r.to_dict() for r in self.expired],
            "critical": [r.to_dict() for r in self.critical],
            "warning": [r.to_dict() for r in self.warning],
            "summary": self.summary(),
        }


# ══════════════════════════════════════════════════════════════
# PURE QUERIES
# ══════════════════════════════════════════════════════════════

def _expired_with_stock(batches: Iterable[Batch], now: datetime) -> List[Batch]:
    expired = [
        b for b in batches
        if b.expiry_date < now
        and not b.is_depleted
        and b.status is not BatchStatus.DEPLETED
    ]
    return sorted(expired, key=lambda b: b.expiry_date)


def _at_risk_entry(product: Product, ranked: List[Batch], now: datetime) -> AtRiskProduct:
    nearest = ranked[0]
    return AtRiskProduct(
        product=product,
        nearest_expiry=nearest,
        days_to_expiry=days_until(nearest.expiry_date, now),
        fifo_order=tuple(ranked),
    )


def products_expiring_within(
    products: Iterable[Product], days: int, now: datetime,
) -> List[AtRiskProduct]:
    """Active products with a live batch expiring in [now, now + days], soonest first."""
    threshold = add_days(now, days)
    entries = []
    for product in products:
        if not product.is_active:
            continue
        ranked = [b for b in fifo_order(product.batches, now) if b.expiry_date <= threshold]
        if ranked:
            entries.append(_at_risk_entry(product, ranked, now))
    entries.sort(key=lambda e: e.nearest_expiry.expiry_date)
    return entries


def build_expiry_dashboard(
    products: Iterable[Product], now: datetime, rules: Optional[PricingRules] = None,
) -> ExpiryDashboard:
    rules = rules or PricingRules()
    products = [p for p in products if p.is_active]
    critical_cutoff = add_days(now, rules.critical_days)

    critical: List[AtRiskProduct] = []
    warning: List[AtRiskProduct] = []
    for entry in products_expiring_within(products, rules.warning_days, now):
        if entry.nearest_expiry.expiry_date <= critical_cutoff:
            critical.append(entry)
        else:
            warning.append(entry)

    expired = []
    for product in products:
        ranked = _expired_with_stock(product.batches, now)
        if ranked:
            expired.append(_at_risk_entry(product, ranked, now))
    expired.sort(key=lambda e: e.nearest_expiry.expiry_date)

    return ExpiryDashboard(
        critical_products=tuple(critical),
        warning_products=tuple(warning),
        expired_products=tuple(expired),
    )


def build_expiring_batches_report(
    products: Iterable[Product], now: datetime, rules: Optional[PricingRules] = None,
) -> ExpiringBatchesReport:
    rules = rules or PricingRules()
    critical_cutoff = add_days(now, rules.critical_days)
    warning_cutoff = add_days(now, rules.warning_days)

    expired: List[ExpiringBatchRow] = []
    critical: List[ExpiringBatchRow] = []
    warning: List[ExpiringBatchRow] = []
    for product in products:
        if not product.is_active:
            continue
        for batch in product.batches:
            if batch.is_depleted:
                continue
            row = ExpiringBatchRow(
                product_id=product.product_id,
                product_name=product.name,
                category=product.category,
                batch_number=batch.batch_number,
                quantity=batch.available_quantity,
                unit=product.unit,
                unit_price=product.price,
                expiry_date=batch.expiry_date,
                days_to_expiry=days_until(batch.expiry_date, now),
                status=batch.status,
                received_date=batch.received_date,
            )
            if batch.expiry_date < now:
                expired.append(row)
            elif batch.status is not BatchStatus.ACTIVE:
                continue
            elif batch.expiry_date <= critical_cutoff:
                critical.append(row)
            elif batch.expiry_date <= warning_cutoff:
                warning.append(row)

    def soonest(rows: List[ExpiringBatchRow]) -> Tuple[ExpiringBatchRow, ...]:
        return tuple(sorted(rows, key=lambda r: r.expiry_date))

    return ExpiringBatchesReport(
        expired=soonest(expired), critical=soonest(critical), warning=soonest(warning),
    )


# ══════════════════════════════════════════════════════════════
# REPOSITORY-BACKED MONITOR
# ══════════════════════════════════════════════════════════════

class ExpiryMonitor:
    """The queries above, reading fresh product state on every call."""

    def __init__(
        self,
        repository: CatalogRepository,
        rules: Optional[PricingRules] = None,
        clock: Optional[Clock] = None,
    ):
        self._repository = repository
        self._rules = rules or PricingRules()
        self._clock = clock or get_default_clock()

    def dashboard(self) -> ExpiryDashboard:
        return build_expiry_dashboard(
            self._repository.find_active_products(), self._clock.now_utc(), self._rules,
        )

    def products_expiring_within(self, days: int) -> List[AtRiskProduct]:
        if days < 0:
            raise ValueError(f"days cannot be negative, got {days}.")
        return products_expiring_within(
            self._repository.find_active_products(), days, self._clock.now_utc(),
        )

    def expiring_batches_report(self) -> ExpiringBatchesReport:
        return build_expiring_batches_report(
            self._repository.find_active_products(), self._clock.now_utc(), self._rules,
        )
