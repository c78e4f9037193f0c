"""
Frostline Promotion Engine - Public API
=======================================
Automatic promotion lifecycle and its scheduled jobs.
"""

from engines.promotion.jobs import (
    BATCH_CLEANUP_JOB,
    BATCH_EXPIRY_SWEEP_JOB,
    EXPIRY_PROMOTIONS_JOB,
    PROMOTION_CLEANUP_JOB,
    build_lifecycle_scheduler,
)
from engines.promotion.lifecycle import (
    BatchCleanupResult,
    ExpirySweepResult,
    GeneratedPromotion,
    PromotionCleanupResult,
    PromotionLifecycleManager,
    expiry_promotion_name,
)

__all__ = [
    "PromotionLifecycleManager",
    "GeneratedPromotion",
    "PromotionCleanupResult",
    "BatchCleanupResult",
    "ExpirySweepResult",
    "expiry_promotion_name",
    "build_lifecycle_scheduler",
    "EXPIRY_PROMOTIONS_JOB",
    "BATCH_EXPIRY_SWEEP_JOB",
    "BATCH_CLEANUP_JOB",
    "PROMOTION_CLEANUP_JOB",
]
