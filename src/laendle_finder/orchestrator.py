"""Runs configured scrape jobs end to end and reports a summary per job."""

import logging
from contextlib import closing
from datetime import datetime
from typing import Callable, List, Optional

from .config.settings import ScraperSettings, Settings, settings
from .etl.deduplication import DeduplicationEngine
from .etl.field_extractor import FieldExtractor
from .etl.load import DatasetWriter, WriteError
from .models.scraper_models import JobStatus, RunSummary, ScrapeJobConfig
from .monitoring.logger import ScrapingLogger
from .scrapers import get_scraper
from .scrapers.base_scraper import BaseScraper
from .scrapers.http_fetcher import FetchError, HttpFetcher
from .scrapers.pagination import JobError, PaginationWalker

logger = logging.getLogger(__name__)

ScraperFactory = Callable[[str, FieldExtractor], BaseScraper]
FetcherFactory = Callable[[ScrapeJobConfig, ScraperSettings], HttpFetcher]


def default_fetcher_factory(job: ScrapeJobConfig, scraper_settings: ScraperSettings) -> HttpFetcher:
    return HttpFetcher(scraper_settings, cookie=job.cookie)


class ScrapeOrchestrator:
    """Executes scrape jobs one after another.

    Each job gets its own fetcher (and therefore its own rate limiter), its
    own dedup index seeded from the dataset, and its own dataset writer.
    """

    def __init__(self,
                 app_settings: Optional[Settings] = None,
                 scraper_factory: Optional[ScraperFactory] = None,
                 fetcher_factory: Optional[FetcherFactory] = None):
        """Initialize the orchestrator.

        Args:
            app_settings: Application settings, defaults to the global instance
            scraper_factory: Builds a site adapter from its registry name
            fetcher_factory: Builds the per-job fetcher
        """
        self.settings = app_settings or settings
        self.scraper_factory = scraper_factory or get_scraper
        self.fetcher_factory = fetcher_factory or default_fetcher_factory

    def run(self, job_configs: Optional[List[ScrapeJobConfig]] = None) -> List[RunSummary]:
        """Run jobs sequentially in the order given.

        Args:
            job_configs: Jobs to run, defaults to the configured jobs

        Returns:
            List[RunSummary]: One summary per job, skipped jobs included
        """
        jobs = job_configs if job_configs is not None else self.settings.resolve_jobs()
        logger.info(f"Starting run with {len(jobs)} jobs")

        summaries = [self.run_job(job) for job in jobs]

        failed = [summary.job_name for summary in summaries if summary.status == JobStatus.FAILED]
        if failed:
            logger.warning(f"Run finished with failed jobs: {', '.join(failed)}")
        else:
            logger.info("Run finished")
        return summaries

    def run_job(self, job: ScrapeJobConfig) -> RunSummary:
        """Run one job. Never raises; failures end up in the summary."""
        summary = RunSummary(job_name=job.name)
        job_logger = ScrapingLogger(job.name, job.scraper)

        if job.skip:
            summary.status = JobStatus.SKIPPED
            job_logger.log_job_skipped()
            return summary

        summary.status = JobStatus.RUNNING
        summary.started_at = datetime.utcnow()
        job_logger.log_job_start(job)

        try:
            self._execute(job, summary, job_logger)
            summary.status = JobStatus.COMPLETED
        except JobError as e:
            summary.status = JobStatus.FAILED
            summary.failure = str(e)
            job_logger.log_job_failed(e)
        except Exception as e:
            summary.status = JobStatus.FAILED
            summary.failure = f"Unexpected {type(e).__name__}: {e}"
            job_logger.log_job_failed(e, unexpected=True)

        summary.completed_at = datetime.utcnow()
        job_logger.log_job_complete(summary)
        logger.info(str(summary))
        return summary

    def _execute(self, job: ScrapeJobConfig, summary: RunSummary, job_logger: ScrapingLogger) -> None:
        etl_settings = self.settings.etl
        output_path = job.output_path or etl_settings.output_path

        extractor = FieldExtractor(unknown_property_type=etl_settings.unknown_property_type)
        scraper = self.scraper_factory(job.scraper, extractor)

        dedup = DeduplicationEngine.from_dataset(output_path, etl_settings.csv_encoding)
        writer = DatasetWriter(output_path, etl_settings.csv_encoding)

        processed = 0

        with self.fetcher_factory(job, self.settings.scraper) as fetcher:
            walker = PaginationWalker(
                fetcher,
                scraper,
                max_pages=job.max_pages,
                stop_after_known_pages=job.stop_after_known_pages,
                is_new=dedup.is_new,
            )

            try:
                with closing(walker.walk(job.base_url)) as pages:
                    for page in pages:
                        summary.links_found += len(page.links.detail_urls)
                        job_logger.log_index_page(page.number, len(page.links.detail_urls), page.url)

                        for url in page.links.detail_urls:
                            if job.max_items is not None and processed >= job.max_items:
                                break

                            if not dedup.is_new(url):
                                summary.records_skipped += 1
                                job_logger.log_listing_skipped(url)
                                continue

                            processed += 1
                            self._process_listing(url, job, fetcher, scraper, dedup, writer, summary, job_logger)

                        if job.max_items is not None and processed >= job.max_items:
                            logger.info(f"Reached max_items={job.max_items} for job {job.name}")
                            summary.stop_reason = "max_items"
                            break
            finally:
                summary.pages_visited = walker.pages_visited
                if summary.stop_reason is None and walker.stop_reason is not None:
                    summary.stop_reason = walker.stop_reason.value

    def _process_listing(self,
                         url: str,
                         job: ScrapeJobConfig,
                         fetcher: HttpFetcher,
                         scraper: BaseScraper,
                         dedup: DeduplicationEngine,
                         writer: DatasetWriter,
                         summary: RunSummary,
                         job_logger: ScrapingLogger) -> None:
        """Fetch, extract and persist one detail page."""
        try:
            document = fetcher.fetch(url)
        except FetchError as e:
            summary.record_failure(url, str(e))
            job_logger.log_listing_failed(url, e)
            return

        record = scraper.extract(document, job.listing_status)

        try:
            writer.append(record)
        except WriteError as e:
            summary.record_failure(url, str(e))
            job_logger.log_listing_failed(url, e)
            return

        # Only a persisted record is considered seen
        dedup.mark_seen(url)
        summary.records_written += 1
        if record.low_confidence:
            summary.low_confidence += 1
        job_logger.log_listing_written(url, record.low_confidence)
