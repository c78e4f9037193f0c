"""
Frostline Inventory — Batch Allocator, Expiry Dashboard and Batch Service Tests
===============================================================================
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.catalog import (
    Batch,
    BatchStatus,
    InMemoryCatalogRepository,
    Product,
    RepositoryFailure,
)
from core.config.rules import PricingRules
from core.time.clock import FixedClock
from engines.inventory import (
    BatchService,
    ExpiryMonitor,
    build_expiring_batches_report,
    build_expiry_dashboard,
    fifo_order,
    find_allocatable_batch,
    next_batch_number,
    plan_fifo_consumption,
    products_expiring_within,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _batch(number, days, quantity=10, remaining=None, status=BatchStatus.ACTIVE):
    return Batch(
        batch_number=number,
        quantity=quantity,
        remaining_quantity=quantity if remaining is None else remaining,
        expiry_date=NOW + timedelta(days=days),
        status=status,
    )


def _product(pid="p1", batches=(), stock=None, **kwargs):
    if stock is None:
        stock = sum(b.available_quantity for b in batches)
    defaults = dict(name=f"Product {pid}", category="fish", price=10.0)
    defaults.update(kwargs)
    return Product(product_id=pid, batches=tuple(batches), stock=stock, **defaults)


# ══════════════════════════════════════════════════════════════
# UNIT: Batch Allocator
# ══════════════════════════════════════════════════════════════

class TestFindAllocatableBatch:
    def test_nearest_expiry_with_enough_stock(self):
        batches = [_batch("LATE", 30), _batch("SOON", 5), _batch("SOONER", 2, quantity=3)]
        assert find_allocatable_batch(batches, 5, NOW).batch_number == "SOON"

    def test_skips_expired_and_inactive(self):
        batches = [
            _batch("GONE", -1),
            _batch("FLAGGED", 1, status=BatchStatus.EXPIRED),
            _batch("OK", 9),
        ]
        assert find_allocatable_batch(batches, 1, NOW).batch_number == "OK"

    def test_expiring_exactly_now_is_not_allocatable(self):
        assert find_allocatable_batch([_batch("NOW", 0)], 1, NOW) is None

    def test_none_when_no_batch_covers_quantity(self):
        assert find_allocatable_batch([_batch("A", 5, quantity=4)], 5, NOW) is None

    def test_ties_keep_list_order(self):
        batches = [_batch("FIRST", 5), _batch("SECOND", 5)]
        assert find_allocatable_batch(batches, 1, NOW).batch_number == "FIRST"

    def test_legacy_batch_uses_quantity(self):
        legacy = Batch("OLD", 8, NOW + timedelta(days=3))
        assert find_allocatable_batch([legacy], 8, NOW) is legacy


class TestFifoPlan:
    def test_fifo_order_skips_dead_batches(self):
        batches = [
            _batch("C", 20),
            _batch("EMPTY", 1, remaining=0),
            _batch("A", 2),
            _batch("PAST", -2),
        ]
        assert [b.batch_number for b in fifo_order(batches, NOW)] == ["A", "C"]

    def test_spans_batches_nearest_first(self):
        plan = plan_fifo_consumption([_batch("B", 10), _batch("A", 3)], 15, NOW)
        assert [(d.batch_number, d.quantity) for d in plan.draws] == [("A", 10), ("B", 5)]
        assert plan.fully_fulfilled

    def test_shortfall_is_reported(self):
        plan = plan_fifo_consumption([_batch("A", 3, quantity=4)], 10, NOW)
        assert plan.quantity_planned == 4
        assert plan.quantity_unfulfilled == 6
        assert not plan.fully_fulfilled

    def test_rejects_non_positive_quantity(self):
        with pytest.raises(ValueError, match="positive"):
            plan_fifo_consumption([], 0, NOW)


class TestBatchNumbers:
    def test_first_of_the_day(self):
        assert next_batch_number([], NOW) == "BATCH-20260301-00001"

    def test_continues_from_highest(self):
        existing = ["BATCH-20260301-00002", "BATCH-20260301-00007", "BATCH-20260228-00099", "LOT-1"]
        assert next_batch_number(existing, NOW) == "BATCH-20260301-00008"


# ══════════════════════════════════════════════════════════════
# UNIT: Expiry dashboard
# ══════════════════════════════════════════════════════════════

class TestExpiryDashboard:
    def _products(self):
        return [
            _product("critical", [_batch("C1", 3), _batch("C2", 20)]),
            _product("warning", [_batch("W1", 15)]),
            _product("fresh", [_batch("F1", 90)]),
            _product("expired", [_batch("E1", -2), _batch("E2", 40)]),
            _product("depleted", [_batch("D1", -2, remaining=0, status=BatchStatus.DEPLETED)]),
            _product("inactive", [_batch("I1", 1)], is_active=False),
        ]

    def test_buckets(self):
        dashboard = build_expiry_dashboard(self._products(), NOW)
        assert [e.product.product_id for e in dashboard.critical_products] == ["critical"]
        assert [e.product.product_id for e in dashboard.warning_products] == ["warning"]
        assert [e.product.product_id for e in dashboard.expired_products] == ["expired"]
        assert (dashboard.critical, dashboard.warning, dashboard.expired) == (1, 1, 1)

    def test_entry_carries_fifo_order(self):
        entry = build_expiry_dashboard(self._products(), NOW).find("critical")
        assert entry.nearest_expiry.batch_number == "C1"
        assert entry.days_to_expiry == 3
        assert [b.batch_number for b in entry.fifo_order] == ["C1", "C2"]

    def test_custom_thresholds(self):
        rules = PricingRules(critical_days=1, warning_days=5)
        dashboard = build_expiry_dashboard(self._products(), NOW, rules)
        assert dashboard.critical == 0
        assert [e.product.product_id for e in dashboard.warning_products] == ["critical"]

    def test_products_expiring_within(self):
        entries = products_expiring_within(self._products(), 20, NOW)
        assert [e.product.product_id for e in entries] == ["critical", "warning"]


class TestExpiringBatchesReport:
    def test_rows_and_summary(self):
        products = [
            _product("a", [_batch("A1", 2, quantity=5), _batch("A2", 25, quantity=4)]),
            _product("b", [_batch("B1", -1, quantity=3), _batch("B2", 100)]),
            _product("c", [_batch("C1", -1, remaining=0)]),
        ]
        report = build_expiring_batches_report(products, NOW)
        assert [r.batch_number for r in report.expired] == ["B1"]
        assert [r.batch_number for r in report.critical] == ["A1"]
        assert [r.batch_number for r in report.warning] == ["A2"]
        assert report.summary() == {
            "total_expired": 1,
            "total_critical": 1,
            "total_warning": 1,
            "total_value": 90.0,
        }

    def test_flagged_batches_are_not_at_risk(self):
        products = [_product("a", [_batch("A1", 2, status=BatchStatus.EXPIRED)])]
        report = build_expiring_batches_report(products, NOW)
        assert report.critical == ()


class TestExpiryMonitor:
    def test_reads_fresh_state(self):
        repo = InMemoryCatalogRepository([_product("p1", [_batch("B1", 3)])])
        monitor = ExpiryMonitor(repo, clock=FixedClock(NOW))
        assert monitor.dashboard().critical == 1
        assert [e.product.product_id for e in monitor.products_expiring_within(7)] == ["p1"]
        assert monitor.expiring_batches_report().summary()["total_critical"] == 1

    def test_negative_days_rejected(self):
        monitor = ExpiryMonitor(InMemoryCatalogRepository(), clock=FixedClock(NOW))
        with pytest.raises(ValueError):
            monitor.products_expiring_within(-1)


# ══════════════════════════════════════════════════════════════
# SERVICE: Batch management
# ══════════════════════════════════════════════════════════════

class TestBatchService:
    def _service(self, *products):
        repo = InMemoryCatalogRepository(products)
        return BatchService(repo, clock=FixedClock(NOW)), repo

    def test_receive_batch_numbers_and_stock(self):
        service, repo = self._service(_product("p1", stock=0))
        first = service.receive_batch("p1", 12, NOW + timedelta(days=10))
        second = service.receive_batch("p1", 8, NOW + timedelta(days=20))

        assert first.batch_number == "BATCH-20260301-00001"
        assert second.batch_number == "BATCH-20260301-00002"
        assert first.remaining_quantity == 12
        assert first.received_date == NOW
        assert repo.get_product("p1").stock == 20

    def test_receive_rejects_bad_quantity(self):
        service, _ = self._service(_product("p1"))
        with pytest.raises(ValueError):
            service.receive_batch("p1", 0, NOW + timedelta(days=1))

    def test_receive_unknown_product(self):
        service, _ = self._service()
        with pytest.raises(RepositoryFailure):
            service.receive_batch("ghost", 5, NOW + timedelta(days=1))

    def test_update_keeps_consumed_units(self):
        service, repo = self._service(
            _product("p1", [_batch("B1", 10, quantity=10, remaining=6)], stock=6),
        )
        updated = service.update_batch("p1", "B1", quantity=15)
        assert updated.remaining_quantity == 11
        assert repo.get_product("p1").stock == 11

    def test_update_to_below_consumed_depletes(self):
        service, repo = self._service(
            _product("p1", [_batch("B1", 10, quantity=10, remaining=6)], stock=6),
        )
        updated = service.update_batch("p1", "B1", quantity=3)
        assert updated.remaining_quantity == 0
        assert updated.status is BatchStatus.DEPLETED
        assert repo.get_product("p1").stock == 0

    def test_remove_batch_reduces_stock_by_remaining(self):
        service, repo = self._service(
            _product("p1", [_batch("B1", 5, quantity=10, remaining=4), _batch("B2", 9)]),
        )
        service.remove_batch("p1", "B1")
        assert repo.get_product("p1").stock == 10
        with pytest.raises(RepositoryFailure):
            service.remove_batch("p1", "B1")

    def test_consume_draws_nearest_expiry_first(self):
        service, repo = self._service(
            _product("p1", [_batch("LATE", 20, quantity=10), _batch("SOON", 2, quantity=4)]),
        )
        result = service.consume("p1", 6)

        assert [(d.batch_number, d.quantity) for d in result.draws] == [("SOON", 4), ("LATE", 2)]
        assert result.fully_fulfilled
        assert result.stock == 8
        product = repo.get_product("p1")
        assert product.find_batch("SOON").status is BatchStatus.DEPLETED
        assert product.find_batch("LATE").remaining_quantity == 8

    def test_consume_reports_shortfall(self):
        service, _ = self._service(_product("p1", [_batch("A", 2, quantity=3)]))
        result = service.consume("p1", 5)
        assert result.quantity_consumed == 3
        assert result.quantity_unfulfilled == 2
        assert result.stock == 0
