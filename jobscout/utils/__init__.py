"""Utility functions and classes."""

from jobscout.utils.dedup import (
    Deduplicator,
    extract_city_name,
    extract_keywords,
    normalize_for_search,
    normalize_url,
)
from jobscout.utils.schedule import calculate_next_run_at, is_automation_due

__all__ = [
    "Deduplicator",
    "calculate_next_run_at",
    "extract_city_name",
    "extract_keywords",
    "is_automation_due",
    "normalize_for_search",
    "normalize_url",
]
