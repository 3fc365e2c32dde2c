"""Run every configured scrape job: ``python -m laendle_finder``."""

import sys

from .config import settings
from .models.scraper_models import JobStatus
from .monitoring.logger import setup_logging
from .orchestrator import ScrapeOrchestrator


def main() -> int:
    setup_logging(settings.log_file, settings.log_level)

    summaries = ScrapeOrchestrator(settings).run()

    for summary in summaries:
        print(summary)
        for url, reason in summary.failed_urls:
            print(f"    failed: {url} ({reason})")

    return 1 if any(summary.status == JobStatus.FAILED for summary in summaries) else 0


if __name__ == "__main__":
    sys.exit(main())
