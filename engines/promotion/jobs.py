"""
Frostline Promotion Engine - Scheduled Jobs
===========================================
Wires PromotionLifecycleManager operations onto a Scheduler.

    expiry-promotions   daily   generate_expiry_promotions
    batch-expiry-sweep  daily   mark_expired_batches
    batch-cleanup       daily   cleanup_expired_batches
    promotion-cleanup   weekly  cleanup_expired_promotions

Cadences come from PricingRules. Every job can be run on demand with
scheduler.trigger(name).
"""

from __future__ import annotations

from typing import Optional

from core.config.rules import PricingRules
from core.scheduling.tasks import Scheduler
from core.time.clock import Clock
from engines.promotion.lifecycle import PromotionLifecycleManager

EXPIRY_PROMOTIONS_JOB = "expiry-promotions"
BATCH_EXPIRY_SWEEP_JOB = "batch-expiry-sweep"
BATCH_CLEANUP_JOB = "batch-cleanup"
PROMOTION_CLEANUP_JOB = "promotion-cleanup"


def build_lifecycle_scheduler(
    manager: PromotionLifecycleManager,
    rules: Optional[PricingRules] = None,
    clock: Optional[Clock] = None,
) -> Scheduler:
    rules = rules or manager.rules
    scheduler = Scheduler(clock=clock)
    daily = rules.expiry_job_interval_seconds

    scheduler.register(EXPIRY_PROMOTIONS_JOB, manager.generate_expiry_promotions, daily)
    scheduler.register(BATCH_EXPIRY_SWEEP_JOB, manager.mark_expired_batches, daily)
    scheduler.register(BATCH_CLEANUP_JOB, manager.cleanup_expired_batches, daily)
    scheduler.register(
        PROMOTION_CLEANUP_JOB,
        manager.cleanup_expired_promotions,
        rules.promotion_cleanup_interval_seconds,
    )
    return scheduler
