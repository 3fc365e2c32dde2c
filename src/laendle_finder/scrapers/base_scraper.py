"""Base scraper class with link collection and detail extraction plumbing."""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import parse_qs, urlencode, urldefrag, urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from ..etl.deduplication import normalize_url
from ..etl.field_extractor import FieldExtractor, clean_text
from ..models.property_models import ListingStatus, PropertyRecord
from .http_fetcher import Document

# Pagination controls recognised on every site, most explicit first
NEXT_PAGE_SELECTORS = [
    'link[rel~="next"]',
    'a[rel~="next"]',
    '.pagination a.next',
    '.pagination .next a',
    'li.next a',
    'a[aria-label*="Nächste"]',
    'a[aria-label*="Weiter"]',
    'a[aria-label*="Next"]',
]


@dataclass
class LinkPage:
    """Links found on one index page."""

    detail_urls: List[str] = field(default_factory=list)
    next_page_url: Optional[str] = None


@dataclass
class DetailContent:
    """Extraction input pulled from a detail page."""

    headline: str = ""
    body: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


def dig(data: Any, *keys: str) -> Optional[Any]:
    """Follow nested dict keys, returning None where the path breaks."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def with_query_param(url: str, name: str, value: Any) -> str:
    """Return the URL with one query parameter set, others kept."""
    parts = urlsplit(url)
    query = parse_qs(parts.query, keep_blank_values=True)
    query[name] = [str(value)]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query, doseq=True), parts.fragment))


class BaseScraper(ABC):
    """Site adapter: knows where a site keeps its links, pages and prose."""

    name: str = "base"
    domain: str = ""

    def __init__(self, extractor: Optional[FieldExtractor] = None):
        """Initialize the scraper.

        Args:
            extractor: Field extractor applied to detail pages
        """
        self.logger = logging.getLogger(f"{__name__}.{self.name}")
        self.extractor = extractor or FieldExtractor()

    def safe_extract_text(self, element, selector: str, default: str = "") -> str:
        """Safely extract text from an element using a CSS selector.

        Args:
            element: BeautifulSoup element
            selector: CSS selector
            default: Default value if not found

        Returns:
            str: Extracted text or default value
        """
        found = element.select_one(selector) if element is not None else None
        return clean_text(found.get_text(" ", strip=True)) if found else default

    def safe_extract_attribute(self, element, selector: str, attribute: str, default: str = "") -> str:
        """Safely extract an attribute from an element."""
        found = element.select_one(selector) if element is not None else None
        if not found:
            return default
        value = found.get(attribute, default)
        return value if isinstance(value, str) else " ".join(value)

    def load_json_node(self, soup: BeautifulSoup, selector: str) -> Optional[Any]:
        """Parse the JSON content of a script node, or None if absent or malformed."""
        node = soup.select_one(selector)
        if node is None or not node.string:
            return None
        try:
            return json.loads(node.string)
        except (json.JSONDecodeError, TypeError) as e:
            self.logger.debug(f"Malformed JSON in {selector}: {e}")
            return None

    def is_own_url(self, url: str) -> bool:
        """Check that a URL belongs to this scraper's site."""
        host = urlsplit(url).netloc.lower().split(':')[0]
        return host == self.domain or host.endswith('.' + self.domain)

    def absolute_url(self, href: Optional[str], base_url: str) -> Optional[str]:
        """Resolve a link against the page URL. None for non-navigational links."""
        if not href:
            return None
        href = href.strip().replace('\\/', '/')
        if not href or href.startswith(('#', 'javascript:', 'mailto:', 'tel:')):
            return None
        url, _ = urldefrag(urljoin(base_url, href))
        return url if url.startswith(('http://', 'https://')) else None

    def collect_links(self, document: Document) -> LinkPage:
        """Extract detail-page URLs and the next index page from an index page.

        Detail URLs are deduplicated in first-seen order. The next page link is
        dropped when it points back to the current page.

        Args:
            document: Fetched index page

        Returns:
            LinkPage: Detail URLs and optional next page URL
        """
        base_url = document.final_url or document.url
        current_keys = {normalize_url(document.url), normalize_url(base_url)}

        detail_urls: Dict[str, str] = {}
        for href in self.find_detail_links(document):
            url = self.absolute_url(href, base_url)
            if not url or not self.is_own_url(url):
                continue
            key = normalize_url(url)
            if key in current_keys or key in detail_urls:
                continue
            detail_urls[key] = url

        next_page_url = self.absolute_url(self.find_next_page(document, bool(detail_urls)), base_url)
        if next_page_url and (normalize_url(next_page_url) in current_keys or not self.is_own_url(next_page_url)):
            self.logger.debug(f"Ignoring next page link {next_page_url} on {document.url}")
            next_page_url = None

        self.logger.debug(f"Found {len(detail_urls)} detail links on {document.url}")
        return LinkPage(detail_urls=list(detail_urls.values()), next_page_url=next_page_url)

    def find_next_page(self, document: Document, has_listings: bool) -> Optional[str]:
        """Locate the pagination control pointing to the next index page."""
        for selector in NEXT_PAGE_SELECTORS:
            href = self.safe_extract_attribute(document.soup, selector, 'href')
            if href:
                return href
        return None

    def extract(self, document: Document, listing_status: ListingStatus) -> PropertyRecord:
        """Build a PropertyRecord from a detail page. Never raises on page content.

        Args:
            document: Fetched detail page
            listing_status: Status tag of the job

        Returns:
            PropertyRecord: Extracted record, possibly with empty optional fields
        """
        try:
            content = self.parse_detail(document)
        except Exception as e:
            self.logger.warning(f"Could not parse detail page {document.url}: {e}")
            content = DetailContent()

        return self.extractor.build_record(
            source_url=document.url,
            listing_status=listing_status,
            headline=content.headline,
            body=content.body,
            metadata=content.metadata,
        )

    @abstractmethod
    def find_detail_links(self, document: Document) -> Iterable[str]:
        """Yield raw hrefs of detail pages in page order."""
        pass

    @abstractmethod
    def parse_detail(self, document: Document) -> DetailContent:
        """Pull headline, body text and structured metadata from a detail page."""
        pass
