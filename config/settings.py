"""
Frostline – Django Settings (Infrastructure Only)
=================================================
Django hosts the catalog store and its migrations.
Pricing and freshness engines stay framework-free; they only see
CatalogRepository and PricingRules.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("FROSTLINE_SECRET_KEY", "frostline-dev-key")

DEBUG = os.environ.get("FROSTLINE_DEBUG", "1") == "1"

ALLOWED_HOSTS = []

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    # ── Frostline Modules ─────────────────────────────────
    "core.catalog_store",
]

MIDDLEWARE = []

# ── Database ──────────────────────────────────────────────────
# SQLite for development. Production DB configured separately.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("FROSTLINE_DB_PATH", BASE_DIR / "db.sqlite3"),
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Logging ───────────────────────────────────────────────────
# Engines log under "frostline.<area>" (pricing, inventory,
# promotions, scheduling, catalog).
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "loggers": {
        "frostline": {
            "handlers": ["console"],
            "level": os.environ.get("FROSTLINE_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}

# ── Pricing Rules ─────────────────────────────────────────────
# Overrides merged over core.config.rules defaults, e.g.
#   {"max_line_quantity": 5000, "bulk_tiers": [...]}
FROSTLINE_PRICING = {}
