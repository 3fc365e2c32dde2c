"""Site adapters, HTTP fetching and pagination."""

from typing import Dict, Optional, Type

from ..etl.field_extractor import FieldExtractor
from .base_scraper import BaseScraper, DetailContent, LinkPage
from .http_fetcher import (
    Document,
    FetchError,
    FetchTimeoutError,
    HttpFetcher,
    HttpStatusError,
    NetworkError,
    RateLimiter,
)
from .laendleimmo_scraper import LaendleimmoScraper
from .pagination import IndexPage, JobError, JobUnreachableError, PaginationWalker, StopReason
from .vol_scraper import VolScraper

SCRAPERS: Dict[str, Type[BaseScraper]] = {
    VolScraper.name: VolScraper,
    LaendleimmoScraper.name: LaendleimmoScraper,
}


def get_scraper(name: str, extractor: Optional[FieldExtractor] = None) -> BaseScraper:
    """Create the site adapter registered under ``name``.

    Raises:
        ValueError: If no adapter is registered under that name
    """
    try:
        scraper_class = SCRAPERS[name]
    except KeyError:
        raise ValueError(f"Unknown scraper '{name}', expected one of {sorted(SCRAPERS)}") from None
    return scraper_class(extractor=extractor)


__all__ = [
    "BaseScraper",
    "DetailContent",
    "LinkPage",
    "Document",
    "FetchError",
    "FetchTimeoutError",
    "HttpFetcher",
    "HttpStatusError",
    "NetworkError",
    "RateLimiter",
    "IndexPage",
    "JobError",
    "JobUnreachableError",
    "PaginationWalker",
    "StopReason",
    "LaendleimmoScraper",
    "VolScraper",
    "SCRAPERS",
    "get_scraper",
]
