"""Logging configuration and setup."""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional
import structlog

from ..config import settings
from ..models.scraper_models import RunSummary, ScrapeJobConfig


def setup_logging(log_file: Optional[str] = None, log_level: Optional[str] = None) -> None:
    """Set up structured logging for the application.

    Args:
        log_file: Optional log file path, defaults to ``settings.log_file``
        log_level: Logging level, defaults to ``settings.log_level``
    """
    log_file = log_file if log_file is not None else settings.log_file
    log_level = (log_level or settings.log_level).upper()
    level = getattr(logging, log_level, logging.INFO)

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(ensure_ascii=False)
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(
            '{"timestamp": "%(asctime)s", "logger": "%(name)s", "level": "%(levelname)s", "message": "%(message)s"}'
        ))
        root_logger.addHandler(file_handler)

    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logging.info(f"Logging configured - Level: {log_level}, File: {log_file}")


class ScrapingLogger:
    """Structured events for one scrape job."""

    def __init__(self, job_name: str, scraper_name: Optional[str] = None):
        """Initialize scraping logger.

        Args:
            job_name: Name of the job, bound to every event
            scraper_name: Site adapter the job runs
        """
        self.job_name = job_name
        self.scraper_name = scraper_name
        self.logger = structlog.get_logger(f"scraper.{scraper_name or job_name}").bind(job=job_name)

    def log_job_start(self, job: ScrapeJobConfig):
        """Log start of a job with its effective configuration."""
        self.logger.info(
            "Job started",
            base_url=job.base_url,
            listing_status=job.listing_status.value,
            max_pages=job.max_pages,
            max_items=job.max_items,
            output_path=job.output_path,
            authenticated=job.cookie is not None,
        )

    def log_job_skipped(self):
        self.logger.info("Job skipped")

    def log_index_page(self, page_num: int, links_found: int, url: str):
        """Log an index page whose links were collected.

        Args:
            page_num: Page number within the walk
            links_found: Detail links found on the page
            url: URL of the index page
        """
        self.logger.info("Index page", page_num=page_num, links_found=links_found, url=url)

    def log_listing_written(self, url: str, low_confidence: bool):
        self.logger.debug("Listing written", url=url, low_confidence=low_confidence)

    def log_listing_skipped(self, url: str):
        self.logger.debug("Listing already known", url=url)

    def log_listing_failed(self, url: str, error: Exception):
        """Log a listing that could not be fetched or written.

        Args:
            url: Detail page URL
            error: Exception that occurred
        """
        self.logger.warning(
            "Listing failed",
            url=url,
            error=str(error),
            error_type=type(error).__name__,
        )

    def log_job_failed(self, error: Exception, unexpected: bool = False):
        """Log a failure that ended the job early.

        Args:
            error: Exception that ended the job
            unexpected: Include the traceback for errors outside the job error taxonomy
        """
        self.logger.error(
            "Job failed",
            error=str(error),
            error_type=type(error).__name__,
            exc_info=unexpected,
        )

    def log_job_complete(self, summary: RunSummary):
        """Log the run summary of a finished job."""
        self.logger.info("Job completed", **summary.as_log_fields())
