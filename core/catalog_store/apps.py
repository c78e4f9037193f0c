"""
Frostline Catalog Store - App Configuration
===========================================
Persistent Product / Batch / Promotion storage behind CatalogRepository.
"""

from django.apps import AppConfig


class CatalogStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.catalog_store"
    label = "core_catalog_store"
    verbose_name = "Frostline Catalog Store"
