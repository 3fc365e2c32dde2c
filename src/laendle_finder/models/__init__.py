"""Data models package."""

from .property_models import (
    DATASET_COLUMNS,
    ListingStatus,
    PropertyRecord,
    PropertyType,
    classify_property_type,
)
from .scraper_models import JobStatus, RunSummary, ScrapeJobConfig

__all__ = [
    "DATASET_COLUMNS",
    "ListingStatus",
    "PropertyRecord",
    "PropertyType",
    "classify_property_type",
    "JobStatus",
    "RunSummary",
    "ScrapeJobConfig",
]
