"""
Frostline Inventory Engine - Public API
=======================================
FIFO batch allocation, batch management and expiry dashboards.
"""

from engines.inventory.batches import (
    BatchDraw,
    FifoPlan,
    fifo_order,
    find_allocatable_batch,
    next_batch_number,
    plan_fifo_consumption,
)
from engines.inventory.expiry import (
    AtRiskProduct,
    ExpiringBatchRow,
    ExpiringBatchesReport,
    ExpiryDashboard,
    ExpiryMonitor,
    build_expiring_batches_report,
    build_expiry_dashboard,
    products_expiring_within,
)
from engines.inventory.service import BatchService, ConsumptionResult

__all__ = [
    "BatchDraw",
    "FifoPlan",
    "fifo_order",
    "find_allocatable_batch",
    "next_batch_number",
    "plan_fifo_consumption",
    "AtRiskProduct",
    "ExpiryDashboard",
    "ExpiringBatchRow",
    "ExpiringBatchesReport",
    "ExpiryMonitor",
    "build_expiry_dashboard",
    "build_expiring_batches_report",
    "products_expiring_within",
    "BatchService",
    "ConsumptionResult",
]
