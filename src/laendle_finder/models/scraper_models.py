"""Scraper-related data models."""

from datetime import datetime
from typing import Optional, List, Tuple, Dict, Any
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field

from .property_models import ListingStatus


class JobStatus(str, Enum):
    """Scrape job status enumeration."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ScrapeJobConfig(BaseModel):
    """Parameters of one named scrape job. Frozen for the job's duration."""

    model_config = ConfigDict(frozen=True)

    name: str
    scraper: str  # key into the scraper registry
    base_url: str
    listing_status: ListingStatus

    max_pages: int = Field(default=5, ge=1)
    max_items: Optional[int] = Field(default=None, ge=1)
    output_path: Optional[str] = None
    cookie: Optional[str] = None
    skip: bool = False

    # Stop after this many consecutive index pages without unseen links
    stop_after_known_pages: Optional[int] = Field(default=None, ge=1)


class RunSummary(BaseModel):
    """Counts reported for one job after it finishes."""

    job_name: str
    status: JobStatus = JobStatus.PENDING

    pages_visited: int = 0
    links_found: int = 0
    records_written: int = 0
    records_skipped: int = 0
    records_failed: int = 0
    low_confidence: int = 0

    failure: Optional[str] = None
    stop_reason: Optional[str] = None
    failed_urls: List[Tuple[str, str]] = Field(default_factory=list)

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.status == JobStatus.COMPLETED and self.failure is None

    @property
    def duration(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def record_failure(self, url: str, reason: str) -> None:
        """Count a per-listing failure and remember it for the failure report."""
        self.records_failed += 1
        self.failed_urls.append((url, reason))

    def as_log_fields(self) -> Dict[str, Any]:
        """Counts as flat keyword arguments for structured logging."""
        return {
            'status': self.status.value,
            'pages_visited': self.pages_visited,
            'links_found': self.links_found,
            'records_written': self.records_written,
            'records_skipped': self.records_skipped,
            'records_failed': self.records_failed,
            'low_confidence': self.low_confidence,
            'stop_reason': self.stop_reason,
            'failure': self.failure,
            'duration': self.duration,
        }

    def __str__(self) -> str:
        text = (
            f"[{self.job_name}] {self.status.value}: "
            f"{self.pages_visited} pages, {self.links_found} links, "
            f"{self.records_written} written, {self.records_skipped} skipped, "
            f"{self.records_failed} failed"
        )
        if self.failure:
            text += f" ({self.failure})"
        return text
