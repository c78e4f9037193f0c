"""
Frostline Catalog Store - Persistent Records
============================================
Rows behind DjangoCatalogRepository. Engines never see these classes;
the repository maps them to core.catalog.models snapshots.

Stock and usage counters only change through F() updates.
At most one active auto-generated expiry promotion exists per product
(uniq_active_auto_expiry_promotion).
"""

from __future__ import annotations

import uuid

from django.db import models


class BatchStatusChoice(models.TextChoices):
    ACTIVE = "active", "Active"
    EXPIRED = "expired", "Expired"
    DEPLETED = "depleted", "Depleted"


class PromotionTypeChoice(models.TextChoices):
    BULK_DISCOUNT = "bulk_discount", "Bulk discount"
    EXPIRY_DISCOUNT = "expiry_discount", "Expiry discount"
    OTHER = "other", "Other"


class DiscountTypeChoice(models.TextChoices):
    PERCENTAGE = "percentage", "Percentage"
    FIXED_AMOUNT = "fixed_amount", "Fixed amount"


class ProductRecord(models.Model):
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )
    name = models.CharField(max_length=255)
    category = models.CharField(max_length=100, db_index=True)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    unit = models.CharField(max_length=20, default="kg")
    stock = models.PositiveIntegerField(default=0)
    min_stock = models.PositiveIntegerField(default=10)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "frostline_products"
        ordering = ["name", "id"]
        indexes = [
            models.Index(fields=["is_active", "category"], name="idx_product_active_category"),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


class BatchRecord(models.Model):
    product = models.ForeignKey(
        ProductRecord,
        on_delete=models.CASCADE,
        related_name="batches",
    )
    batch_number = models.CharField(max_length=64)
    quantity = models.PositiveIntegerField()
    # NULL for legacy rows that only tracked quantity
    remaining_quantity = models.PositiveIntegerField(null=True, blank=True)
    expiry_date = models.DateTimeField()
    received_date = models.DateTimeField(null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=BatchStatusChoice.choices,
        default=BatchStatusChoice.ACTIVE,
    )

    class Meta:
        db_table = "frostline_batches"
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "batch_number"],
                name="uniq_batch_number_per_product",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "expiry_date"], name="idx_batch_status_expiry"),
        ]

    def __str__(self) -> str:
        return f"{self.batch_number} ({self.status})"


class PromotionRecord(models.Model):
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    promotion_type = models.CharField(
        max_length=32,
        choices=PromotionTypeChoice.choices,
    )
    discount_type = models.CharField(
        max_length=20,
        choices=DiscountTypeChoice.choices,
        default=DiscountTypeChoice.PERCENTAGE,
    )
    discount_value = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    product_ids = models.JSONField(default=list)
    categories = models.JSONField(default=list)
    customer_types = models.JSONField(default=list)
    bulk_rules = models.JSONField(null=True, blank=True)
    expiry_rules = models.JSONField(null=True, blank=True)
    min_quantity = models.PositiveIntegerField(default=1)
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    is_active = models.BooleanField(default=True)
    usage_count = models.PositiveIntegerField(default=0)
    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    auto_generated = models.BooleanField(default=False)
    auto_generated_for = models.CharField(max_length=64, null=True, blank=True)
    days_before_expiry = models.IntegerField(null=True, blank=True)
    created_by = models.CharField(max_length=255, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "frostline_promotions"
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["auto_generated_for"],
                condition=models.Q(
                    is_active=True,
                    auto_generated=True,
                    promotion_type="expiry_discount",
                ),
                name="uniq_active_auto_expiry_promotion",
            ),
        ]
        indexes = [
            models.Index(
                fields=["is_active", "start_date", "end_date"],
                name="idx_promotion_active_window",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.promotion_type})"
