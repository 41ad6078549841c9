"""Internal constants shared across the library."""

from __future__ import annotations

NAMESPACE = "shopee_"
BACKUP_SUFFIX = "_backup"
DEFAULT_SAVE_DELAY = 0.5
# Most browsers cap localStorage at 5-10MB; use the conservative end.
DEFAULT_SYNC_QUOTA_BYTES = 5 * 1024 * 1024
EXPORT_FORMAT_VERSION = 1
EXPORT_FILENAME_PREFIX = "sales_tracker_backup_"

# ------------------------------------------------------------------
# Known keys.  The recovery console only sees what is listed here, so
# every new collection must be added to this tuple.
# ------------------------------------------------------------------

STORAGE_KEYS: tuple[str, ...] = (
    "shopee_sales_data",
    "shopee_tasks_def",
    "shopee_task_completions",
    "shopee_work_logs",
    "shopee_hero_products",
    "shopee_pricing_data",
    "shopee_competitors",
    "shopee_video_logs",
    "shopee_goals",
)

# ------------------------------------------------------------------
# Record store layout: store name -> identity field.
# ``None`` marks stores whose records are positional (no identity).
# ------------------------------------------------------------------

RECORD_STORES: dict[str, str | None] = {
    "salesData": "id",
    "pricingItems": "id",
    "videoLogs": "id",
    "tasks": "id",
    "taskCompletions": None,
    "workLogs": None,
    "competitors": "id",
    "products": "id",
    "goals": "id",
    "settings": "key",
}

# legacy synchronous key -> record store
LEGACY_MIGRATIONS: tuple[tuple[str, str], ...] = (
    ("shopee_sales_data", "salesData"),
    ("shopee_pricing_data", "pricingItems"),
    ("shopee_video_logs", "videoLogs"),
    ("shopee_tasks_def", "tasks"),
    ("shopee_task_completions", "taskCompletions"),
    ("shopee_work_logs", "workLogs"),
    ("shopee_competitors", "competitors"),
    ("shopee_hero_products", "products"),
    ("shopee_goals", "goals"),
)


def backup_key(key: str) -> str:
    """Return the shadow slot name for *key*."""
    return f"{key}{BACKUP_SUFFIX}"
