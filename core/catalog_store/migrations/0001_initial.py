import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ProductRecord",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                ("category", models.CharField(db_index=True, max_length=100)),
                ("price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("unit", models.CharField(default="kg", max_length=20)),
                ("stock", models.PositiveIntegerField(default=0)),
                ("min_stock", models.PositiveIntegerField(default=10)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "frostline_products",
                "ordering": ["name", "id"],
                "indexes": [
                    models.Index(
                        fields=["is_active", "category"],
                        name="idx_product_active_category",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="BatchRecord",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("batch_number", models.CharField(max_length=64)),
                ("quantity", models.PositiveIntegerField()),
                ("remaining_quantity", models.PositiveIntegerField(blank=True, null=True)),
                ("expiry_date", models.DateTimeField()),
                ("received_date", models.DateTimeField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("expired", "Expired"),
                            ("depleted", "Depleted"),
                        ],
                        default="active",
                        max_length=20,
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="batches",
                        to="core_catalog_store.productrecord",
                    ),
                ),
            ],
            options={
                "db_table": "frostline_batches",
                "ordering": ["id"],
                "indexes": [
                    models.Index(
                        fields=["status", "expiry_date"],
                        name="idx_batch_status_expiry",
                    )
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("product", "batch_number"),
                        name="uniq_batch_number_per_product",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="PromotionRecord",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "promotion_type",
                    models.CharField(
                        choices=[
                            ("bulk_discount", "Bulk discount"),
                            ("expiry_discount", "Expiry discount"),
                            ("other", "Other"),
                        ],
                        max_length=32,
                    ),
                ),
                (
                    "discount_type",
                    models.CharField(
                        choices=[
                            ("percentage", "Percentage"),
                            ("fixed_amount", "Fixed amount"),
                        ],
                        default="percentage",
                        max_length=20,
                    ),
                ),
                (
                    "discount_value",
                    models.DecimalField(decimal_places=2, default=0, max_digits=12),
                ),
                ("product_ids", models.JSONField(default=list)),
                ("categories", models.JSONField(default=list)),
                ("customer_types", models.JSONField(default=list)),
                ("bulk_rules", models.JSONField(blank=True, null=True)),
                ("expiry_rules", models.JSONField(blank=True, null=True)),
                ("min_quantity", models.PositiveIntegerField(default=1)),
                ("start_date", models.DateTimeField()),
                ("end_date", models.DateTimeField()),
                ("is_active", models.BooleanField(default=True)),
                ("usage_count", models.PositiveIntegerField(default=0)),
                ("usage_limit", models.PositiveIntegerField(blank=True, null=True)),
                ("auto_generated", models.BooleanField(default=False)),
                (
                    "auto_generated_for",
                    models.CharField(blank=True, max_length=64, null=True),
                ),
                ("days_before_expiry", models.IntegerField(blank=True, null=True)),
                ("created_by", models.CharField(blank=True, max_length=255, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "frostline_promotions",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["is_active", "start_date", "end_date"],
                        name="idx_promotion_active_window",
                    )
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(
                            ("auto_generated", True),
                            ("is_active", True),
                            ("promotion_type", "expiry_discount"),
                        ),
                        fields=("auto_generated_for",),
                        name="uniq_active_auto_expiry_promotion",
                    )
                ],
            },
        ),
    ]
