"""
Frostline Catalog Store - Django Repository
===========================================
CatalogRepository over the Django ORM.

Concurrency rules:
- Stock moves are single UPDATEs with F() expressions, floored at 0.
- Batch draws and removals lock the batch row (select_for_update)
  inside transaction.atomic().
- The one-active-auto-expiry-promotion-per-product rule is enforced
  twice: an application check inside the transaction and the
  uniq_active_auto_expiry_promotion constraint as the race fallback.

Every DatabaseError leaving this module is wrapped in RepositoryFailure.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, List, Optional

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F, IntegerField, Value
from django.db.models.functions import Greatest

from core.catalog.errors import DuplicatePromotion, RepositoryFailure
from core.catalog.models import (
    Batch,
    BatchStatus,
    DiscountSpec,
    DiscountType,
    Product,
    Promotion,
    PromotionType,
    applicability_from_conditions,
    applicability_to_conditions,
)
from core.config.rules import BulkTier, ExpiryTier

logger = logging.getLogger("frostline.catalog")

GUARD_CONSTRAINT = "uniq_active_auto_expiry_promotion"


def _parse_uuid(value) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


@contextmanager
def _storage(operation: str) -> Iterator[None]:
    try:
        yield
    except DatabaseError as exc:
        logger.error("Catalog store operation %s failed", operation, exc_info=True)
        raise RepositoryFailure(operation, str(exc)) from exc


# ══════════════════════════════════════════════════════════════
# RECORD <-> SNAPSHOT MAPPING
# ══════════════════════════════════════════════════════════════

def batch_from_record(record) -> Batch:
    return Batch(
        batch_number=record.batch_number,
        quantity=record.quantity,
        expiry_date=record.expiry_date,
        remaining_quantity=record.remaining_quantity,
        received_date=record.received_date,
        status=BatchStatus(record.status),
    )


def product_from_record(record) -> Product:
    return Product(
        product_id=str(record.id),
        name=record.name,
        category=record.category,
        price=float(record.price),
        unit=record.unit,
        stock=record.stock,
        min_stock=record.min_stock,
        batches=tuple(batch_from_record(b) for b in record.batches.all()),
        is_active=record.is_active,
    )


def promotion_from_record(record) -> Promotion:
    return Promotion(
        promotion_id=str(record.id),
        name=record.name,
        promotion_type=PromotionType(record.promotion_type),
        discount=DiscountSpec(
            discount_type=DiscountType(record.discount_type),
            value=float(record.discount_value),
        ),
        start_date=record.start_date,
        end_date=record.end_date,
        applicability=applicability_from_conditions(
            record.product_ids, record.categories,
        ),
        customer_types=tuple(record.customer_types or ()),
        bulk_rules=(
            None if record.bulk_rules is None
            else tuple(BulkTier.from_dict(r) for r in record.bulk_rules)
        ),
        expiry_rules=(
            None if record.expiry_rules is None
            else tuple(ExpiryTier.from_dict(r) for r in record.expiry_rules)
        ),
        min_quantity=record.min_quantity,
        is_active=record.is_active,
        usage_count=record.usage_count,
        usage_limit=record.usage_limit,
        description=record.description,
        auto_generated=record.auto_generated,
        auto_generated_for=record.auto_generated_for,
        days_before_expiry=record.days_before_expiry,
        created_by=record.created_by,
    )


def _promotion_fields(promotion: Promotion) -> dict:
    conditions = applicability_to_conditions(promotion.applicability)
    return {
        "name": promotion.name,
        "description": promotion.description,
        "promotion_type": promotion.promotion_type.value,
        "discount_type": promotion.discount.discount_type.value,
        "discount_value": promotion.discount.value,
        "product_ids": conditions["product_ids"],
        "categories": conditions["categories"],
        "customer_types": list(promotion.customer_types),
        "bulk_rules": (
            None if promotion.bulk_rules is None
            else [t.to_dict() for t in promotion.bulk_rules]
        ),
        "expiry_rules": (
            None if promotion.expiry_rules is None
            else [t.to_dict() for t in promotion.expiry_rules]
        ),
        "min_quantity": promotion.min_quantity,
        "start_date": promotion.start_date,
        "end_date": promotion.end_date,
        "is_active": promotion.is_active,
        "usage_count": promotion.usage_count,
        "usage_limit": promotion.usage_limit,
        "auto_generated": promotion.auto_generated,
        "auto_generated_for": promotion.auto_generated_for,
        "days_before_expiry": promotion.days_before_expiry,
        "created_by": promotion.created_by,
    }


def _batch_fields(batch: Batch) -> dict:
    return {
        "quantity": batch.quantity,
        "remaining_quantity": batch.remaining_quantity,
        "expiry_date": batch.expiry_date,
        "received_date": batch.received_date,
        "status": batch.status.value,
    }


def _is_guarded(promotion: Promotion) -> bool:
    return (
        promotion.is_active
        and promotion.auto_generated
        and promotion.promotion_type is PromotionType.EXPIRY_DISCOUNT
        and promotion.auto_generated_for is not None
    )


def _is_guard_conflict(exc: IntegrityError) -> bool:
    cause = getattr(exc, "__cause__", None)
    diag = getattr(cause, "diag", None)
    if getattr(diag, "constraint_name", None) == GUARD_CONSTRAINT:
        return True
    message = str(exc)
    return GUARD_CONSTRAINT in message or "auto_generated_for" in message


# ══════════════════════════════════════════════════════════════
# REPOSITORY
# ══════════════════════════════════════════════════════════════

class DjangoCatalogRepository:
    """CatalogRepository backed by the core_catalog_store tables."""

    # ── products ──────────────────────────────────────────────

    def get_product(self, product_id: str) -> Optional[Product]:
        from core.catalog_store.models import ProductRecord

        pk = _parse_uuid(product_id)
        if pk is None:
            return None
        with _storage("get_product"):
            record = (
                ProductRecord.objects.filter(pk=pk)
                .prefetch_related("batches")
                .first()
            )
            return None if record is None else product_from_record(record)

    def find_products_by_ids(self, product_ids: Iterable[str]) -> List[Product]:
        from core.catalog_store.models import ProductRecord

        wanted = [pk for pk in (_parse_uuid(p) for p in product_ids) if pk is not None]
        with _storage("find_products_by_ids"):
            found = {
                record.id: product_from_record(record)
                for record in ProductRecord.objects.filter(pk__in=wanted)
                .prefetch_related("batches")
            }
        return [found[pk] for pk in wanted if pk in found]

    def find_products_by_category(self, category: str) -> List[Product]:
        from core.catalog_store.models import ProductRecord

        with _storage("find_products_by_category"):
            return [
                product_from_record(record)
                for record in ProductRecord.objects.filter(category=category)
                .prefetch_related("batches")
            ]

    def find_active_products(self) -> List[Product]:
        from core.catalog_store.models import ProductRecord

        with _storage("find_active_products"):
            return [
                product_from_record(record)
                for record in ProductRecord.objects.filter(is_active=True)
                .prefetch_related("batches")
            ]

    def list_products(self) -> List[Product]:
        from core.catalog_store.models import ProductRecord

        with _storage("list_products"):
            return [
                product_from_record(record)
                for record in ProductRecord.objects.prefetch_related("batches")
            ]

    def save_product(self, product: Product) -> Product:
        """Upsert the product row and make its batch rows match the snapshot."""
        from core.catalog_store.models import BatchRecord, ProductRecord

        pk = _parse_uuid(product.product_id)
        if pk is None:
            raise RepositoryFailure(
                "save_product", f"product id {product.product_id!r} is not a UUID.",
            )
        with _storage("save_product"), transaction.atomic():
            record, _ = ProductRecord.objects.update_or_create(
                pk=pk,
                defaults={
                    "name": product.name,
                    "category": product.category,
                    "price": product.price,
                    "unit": product.unit,
                    "stock": product.stock,
                    "min_stock": product.min_stock,
                    "is_active": product.is_active,
                },
            )
            numbers = [b.batch_number for b in product.batches]
            BatchRecord.objects.filter(product=record).exclude(
                batch_number__in=numbers,
            ).delete()
            for batch in product.batches:
                BatchRecord.objects.update_or_create(
                    product=record,
                    batch_number=batch.batch_number,
                    defaults=_batch_fields(batch),
                )
        return self.get_product(str(pk))

    def increment_stock(self, product_id: str, delta: int) -> int:
        from core.catalog_store.models import ProductRecord

        pk = _parse_uuid(product_id)
        if pk is None:
            raise RepositoryFailure("increment_stock", f"product {product_id} not found.")
        with _storage("increment_stock"), transaction.atomic():
            updated = ProductRecord.objects.filter(pk=pk).update(
                stock=Greatest(F("stock") + delta, Value(0), output_field=IntegerField()),
            )
            if not updated:
                raise RepositoryFailure("increment_stock", f"product {product_id} not found.")
            return ProductRecord.objects.values_list("stock", flat=True).get(pk=pk)

    # ── batches ───────────────────────────────────────────────

    def add_batch(self, product_id: str, batch: Batch) -> Batch:
        from core.catalog_store.models import BatchRecord

        with _storage("add_batch"), transaction.atomic():
            record = self._require_product(product_id, "add_batch")
            if BatchRecord.objects.filter(
                product=record, batch_number=batch.batch_number,
            ).exists():
                raise RepositoryFailure(
                    "add_batch",
                    f"batch {batch.batch_number} already exists on product {product_id}.",
                )
            BatchRecord.objects.create(
                product=record, batch_number=batch.batch_number, **_batch_fields(batch),
            )
        return batch

    def replace_batch(self, product_id: str, batch: Batch) -> Batch:
        with _storage("replace_batch"), transaction.atomic():
            record = self._lock_batch(product_id, batch.batch_number, "replace_batch")
            for name, value in _batch_fields(batch).items():
                setattr(record, name, value)
            record.save()
        return batch

    def remove_batch(self, product_id: str, batch_number: str) -> Optional[Batch]:
        from core.catalog_store.models import BatchRecord

        with _storage("remove_batch"), transaction.atomic():
            product = self._require_product(product_id, "remove_batch")
            record = (
                BatchRecord.objects.select_for_update()
                .filter(product=product, batch_number=batch_number)
                .first()
            )
            if record is None:
                return None
            removed = batch_from_record(record)
            record.delete()
        return removed

    def set_batch_status(
        self, product_id: str, batch_number: str, status: BatchStatus,
    ) -> None:
        with _storage("set_batch_status"), transaction.atomic():
            record = self._lock_batch(product_id, batch_number, "set_batch_status")
            record.status = status.value
            record.save(update_fields=["status"])

    def draw_from_batch(self, product_id: str, batch_number: str, quantity: int) -> int:
        """Take up to `quantity` from the locked batch row; returns what was taken."""
        with _storage("draw_from_batch"), transaction.atomic():
            record = self._lock_batch(product_id, batch_number, "draw_from_batch")
            batch = batch_from_record(record)
            taken = min(quantity, batch.available_quantity)
            if taken <= 0:
                return 0
            drawn = batch.with_remaining(batch.available_quantity - taken)
            record.remaining_quantity = drawn.remaining_quantity
            record.status = drawn.status.value
            record.save(update_fields=["remaining_quantity", "status"])
            return taken

    # ── promotions ────────────────────────────────────────────

    def get_promotion(self, promotion_id: str) -> Optional[Promotion]:
        from core.catalog_store.models import PromotionRecord

        pk = _parse_uuid(promotion_id)
        if pk is None:
            return None
        with _storage("get_promotion"):
            record = PromotionRecord.objects.filter(pk=pk).first()
            return None if record is None else promotion_from_record(record)

    def list_promotions(
        self, promotion_type: Optional[PromotionType] = None, active_only: bool = False,
    ) -> List[Promotion]:
        from core.catalog_store.models import PromotionRecord

        query = PromotionRecord.objects.all()
        if promotion_type is not None:
            query = query.filter(promotion_type=promotion_type.value)
        if active_only:
            query = query.filter(is_active=True)
        with _storage("list_promotions"):
            return [promotion_from_record(record) for record in query]

    def find_promotions_active_in_window(self, now: datetime) -> List[Promotion]:
        from core.catalog_store.models import PromotionRecord

        with _storage("find_promotions_active_in_window"):
            return [
                promotion_from_record(record)
                for record in PromotionRecord.objects.filter(
                    is_active=True, start_date__lte=now, end_date__gte=now,
                )
            ]

    def create_promotion(self, promotion: Promotion) -> Promotion:
        from core.catalog_store.models import PromotionRecord

        if promotion.promotion_id:
            pk = _parse_uuid(promotion.promotion_id)
            if pk is None:
                raise RepositoryFailure(
                    "create_promotion",
                    f"promotion id {promotion.promotion_id!r} is not a UUID.",
                )
        else:
            pk = uuid.uuid4()

        try:
            with transaction.atomic():
                if _is_guarded(promotion) and PromotionRecord.objects.filter(
                    is_active=True,
                    auto_generated=True,
                    promotion_type=PromotionType.EXPIRY_DISCOUNT.value,
                    auto_generated_for=promotion.auto_generated_for,
                ).exists():
                    raise DuplicatePromotion(promotion.auto_generated_for)
                record = PromotionRecord.objects.create(id=pk, **_promotion_fields(promotion))
        except IntegrityError as exc:
            if _is_guarded(promotion) and _is_guard_conflict(exc):
                raise DuplicatePromotion(promotion.auto_generated_for) from exc
            logger.error("Promotion insert rejected", exc_info=True)
            raise RepositoryFailure("create_promotion", str(exc)) from exc
        except DatabaseError as exc:
            logger.error("Promotion insert failed", exc_info=True)
            raise RepositoryFailure("create_promotion", str(exc)) from exc
        return promotion_from_record(record)

    def deactivate_promotions_ended_before(
        self, now: datetime, auto_generated_for: Optional[str] = None,
    ) -> List[Promotion]:
        from core.catalog_store.models import PromotionRecord

        query = PromotionRecord.objects.select_for_update().filter(
            is_active=True, end_date__lt=now,
        )
        if auto_generated_for is not None:
            query = query.filter(auto_generated_for=auto_generated_for)
        with _storage("deactivate_promotions_ended_before"), transaction.atomic():
            records = list(query)
            PromotionRecord.objects.filter(
                pk__in=[r.pk for r in records],
            ).update(is_active=False)
            for record in records:
                record.is_active = False
            return [promotion_from_record(record) for record in records]

    def increment_promotion_usage(self, promotion_id: str) -> None:
        from core.catalog_store.models import PromotionRecord

        pk = _parse_uuid(promotion_id)
        updated = 0
        if pk is not None:
            with _storage("increment_promotion_usage"):
                updated = PromotionRecord.objects.filter(pk=pk).update(
                    usage_count=F("usage_count") + 1,
                )
        if not updated:
            raise RepositoryFailure(
                "increment_promotion_usage", f"promotion {promotion_id} not found.",
            )

    # ── internal ──────────────────────────────────────────────

    @staticmethod
    def _require_product(product_id: str, operation: str):
        from core.catalog_store.models import ProductRecord

        pk = _parse_uuid(product_id)
        record = None if pk is None else ProductRecord.objects.filter(pk=pk).first()
        if record is None:
            raise RepositoryFailure(operation, f"product {product_id} not found.")
        return record

    def _lock_batch(self, product_id: str, batch_number: str, operation: str):
        from core.catalog_store.models import BatchRecord

        product = self._require_product(product_id, operation)
        record = (
            BatchRecord.objects.select_for_update()
            .filter(product=product, batch_number=batch_number)
            .first()
        )
        if record is None:
            raise RepositoryFailure(
                operation, f"batch {batch_number} not found on product {product_id}.",
            )
        return record
