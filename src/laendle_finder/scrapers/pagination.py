"""Index page traversal for one scrape job."""

import hashlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional, Set

from ..etl.deduplication import normalize_url
from .base_scraper import BaseScraper, LinkPage
from .http_fetcher import FetchError, HttpFetcher

logger = logging.getLogger(__name__)


class WalkState(str, Enum):
    """States of the pagination walk."""
    START = "start"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    CONTINUE = "continue"
    STOP = "stop"


class StopReason(str, Enum):
    """Why a walk reached the STOP state."""
    MAX_PAGES = "max_pages"
    NO_NEXT_PAGE = "no_next_page"
    CYCLE = "cycle"
    DUPLICATE_PAGE = "duplicate_page"
    EMPTY_PAGE = "empty_page"
    KNOWN_PAGES = "known_pages"
    FETCH_FAILED = "fetch_failed"
    ABANDONED = "abandoned"


class JobError(Exception):
    """Base exception for failures that end a whole job."""

    def __init__(self, message: str, job_name: Optional[str] = None):
        super().__init__(message)
        self.job_name = job_name


class JobUnreachableError(JobError):
    """The first index page of a job could not be fetched."""
    pass


@dataclass
class IndexPage:
    """One successfully fetched and parsed index page."""

    number: int
    url: str
    links: LinkPage


def page_signature(links: LinkPage) -> str:
    """Order-independent fingerprint of an index page's detail links."""
    keys = sorted(normalize_url(url) for url in links.detail_urls)
    return hashlib.md5("\n".join(keys).encode("utf-8")).hexdigest()


class PaginationWalker:
    """Walks index pages from a start URL until a stop condition holds.

    A walker is single use: ``walk`` may be iterated once, after which
    ``stop_reason`` tells why it ended.
    """

    def __init__(self,
                 fetcher: HttpFetcher,
                 scraper: BaseScraper,
                 max_pages: int,
                 stop_after_known_pages: Optional[int] = None,
                 is_new: Optional[Callable[[str], bool]] = None):
        """Initialize the walker.

        Args:
            fetcher: Fetcher shared with the rest of the job
            scraper: Site adapter used to collect links
            max_pages: Upper bound on index pages fetched
            stop_after_known_pages: Stop after this many consecutive pages
                without any unseen detail URL
            is_new: Dedup predicate, required for ``stop_after_known_pages``
        """
        if stop_after_known_pages is not None and is_new is None:
            raise ValueError("stop_after_known_pages needs an is_new predicate")

        self.fetcher = fetcher
        self.scraper = scraper
        self.max_pages = max_pages
        self.stop_after_known_pages = stop_after_known_pages
        self.is_new = is_new

        self.state = WalkState.START
        self.stop_reason: Optional[StopReason] = None
        self.pages_visited = 0
        self._started = False

    def _stop(self, reason: StopReason) -> None:
        self.state = WalkState.STOP
        self.stop_reason = reason
        logger.info(f"Pagination stopped after {self.pages_visited} pages: {reason.value}")

    def walk(self, start_url: str) -> Iterator[IndexPage]:
        """Yield index pages in traversal order.

        Args:
            start_url: First index page of the job

        Yields:
            IndexPage: Each page whose links were collected

        Raises:
            JobUnreachableError: If the first index page cannot be fetched
        """
        if self._started:
            raise RuntimeError("PaginationWalker.walk can only be run once")
        self._started = True

        visited: Set[str] = set()
        signatures: Set[str] = set()
        known_streak = 0
        url = start_url

        try:
            while True:
                self.state = WalkState.FETCHING
                visited.add(normalize_url(url))

                try:
                    document = self.fetcher.fetch(url)
                except FetchError as e:
                    self._stop(StopReason.FETCH_FAILED)
                    if self.pages_visited == 0:
                        raise JobUnreachableError(f"Index page {url} unreachable: {e}") from e
                    logger.warning(f"Index page {url} failed, remaining pages are unreachable: {e}")
                    return

                self.pages_visited += 1
                self.state = WalkState.EXTRACTING
                links = self.scraper.collect_links(document)

                if not links.detail_urls:
                    self._stop(StopReason.EMPTY_PAGE)
                    return

                signature = page_signature(links)
                if signature in signatures:
                    self._stop(StopReason.DUPLICATE_PAGE)
                    return
                signatures.add(signature)

                # Evaluated before yielding: the consumer marks links as seen
                has_new = self.is_new is None or any(self.is_new(link) for link in links.detail_urls)

                yield IndexPage(number=self.pages_visited, url=url, links=links)

                if self.stop_after_known_pages:
                    known_streak = 0 if has_new else known_streak + 1
                    if known_streak >= self.stop_after_known_pages:
                        self._stop(StopReason.KNOWN_PAGES)
                        return

                if self.pages_visited >= self.max_pages:
                    self._stop(StopReason.MAX_PAGES)
                    return

                next_url = links.next_page_url
                if not next_url:
                    self._stop(StopReason.NO_NEXT_PAGE)
                    return

                if normalize_url(next_url) in visited:
                    self._stop(StopReason.CYCLE)
                    return

                self.state = WalkState.CONTINUE
                url = next_url
        finally:
            if self.stop_reason is None:
                self._stop(StopReason.ABANDONED)
