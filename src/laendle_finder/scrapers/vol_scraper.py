"""vol.at scraper for the "Grund und Boden" property transaction column."""

import re
import json
from typing import Any, Dict, Iterable, Optional
from urllib.parse import parse_qs, urlsplit

from bs4 import BeautifulSoup

from .base_scraper import BaseScraper, DetailContent, dig, with_query_param
from .http_fetcher import Document

# Article URLs end in a numeric id: /<slug>/<id>
ARTICLE_PATH = re.compile(r"/[\w-]+/\d{4,}/?$")

HEADLINE_SELECTORS = [
    "h1.article-headline",
    "article h1",
    "header h1",
    ".article-headline",
    ".headline",
    "h1",
]

BODY_SELECTORS = [
    ".article-body p",
    "article .content p",
    "article p",
    "main p",
]

# "Hauptstraße 12, 6890 Lustenau" -> Lustenau
POSTAL_PLACE = re.compile(r"\b\d{4}\s+([A-ZÄÖÜ][\wäöüß.\- ]+?)\s*$")

TRANSACTION_BLOCK = "russmedia/grund-und-boden"


def location_from_address(address: Optional[str]) -> Optional[str]:
    """Take the municipality from an Austrian postal address."""
    if not address:
        return None
    match = POSTAL_PLACE.search(address.strip())
    return match.group(1).strip() if match else None


class VolScraper(BaseScraper):
    """Scraper for vol.at news articles about sold properties."""

    name = "vol"
    domain = "vol.at"

    def _topic_hits(self, document: Document) -> list:
        hits = dig(self.load_json_node(document.soup, "#topicDataNode"), "prefetchedRawData", "hits")
        if not isinstance(hits, list):
            return []
        return [hit for hit in hits if isinstance(hit, dict)]

    def find_detail_links(self, document: Document) -> Iterable[str]:
        """Links from the embedded topic JSON, then from article teaser cards."""
        for hit in self._topic_hits(document):
            if hit.get('link'):
                yield hit['link']

        for anchor in document.soup.select('article a[href], [class*="teaser"] a[href], [class*="article-card"] a[href]'):
            href = anchor.get('href', '')
            if ARTICLE_PATH.search(urlsplit(href).path):
                yield href

    def find_next_page(self, document: Document, has_listings: bool) -> Optional[str]:
        """Pagination controls, else the next ``page`` query value.

        The topic page renders its pagination client-side, so while a page
        still lists articles the next page number is derived from the URL.
        """
        href = super().find_next_page(document, has_listings)
        if href or not has_listings:
            return href

        url = document.final_url or document.url
        current = parse_qs(urlsplit(url).query).get('page', ['1'])[0]
        page = int(current) if current.isdigit() else 1
        return with_query_param(url, 'page', page + 1)

    def _transaction_data(self, post: Dict[str, Any]) -> Dict[str, Any]:
        """Structured sale data embedded as a JSON string in a post block."""
        for block in post.get('blocks') or []:
            if not isinstance(block, dict) or block.get('ot') != TRANSACTION_BLOCK:
                continue
            for attribute in block.get('a') or []:
                if isinstance(attribute, dict) and attribute.get('key') == 'data':
                    try:
                        data = json.loads(attribute.get('value') or '')
                    except (json.JSONDecodeError, TypeError) as e:
                        self.logger.debug(f"Malformed transaction data: {e}")
                        continue
                    if isinstance(data, dict):
                        return data
        return {}

    def _html_text(self, html: Optional[str]) -> str:
        if not html:
            return ""
        return BeautifulSoup(html, 'html.parser').get_text(" ", strip=True)

    def parse_detail(self, document: Document) -> DetailContent:
        """Read the embedded post JSON, falling back to the rendered article."""
        soup = document.soup
        metadata: Dict[str, Any] = {}

        published = (
            self.safe_extract_attribute(soup, 'meta[property="article:published_time"]', 'content')
            or self.safe_extract_attribute(soup, 'time[datetime]', 'datetime')
        )

        data = self.load_json_node(soup, '#externalPostDataNode')
        post = dig(data, "content", "data", "post")

        if isinstance(post, dict) and post.get('title'):
            headline = post['title']
            body = self._html_text(post.get('content'))

            transaction = self._transaction_data(post)
            metadata['published_date'] = transaction.get('transactionDate') or post.get('date') or published

            coords = transaction.get('coords')
            if isinstance(coords, dict) and coords.get('lat') is not None and coords.get('lng') is not None:
                metadata['coordinates'] = (coords['lat'], coords['lng'])

            if transaction.get('address'):
                metadata['address'] = transaction['address']
                metadata['location'] = location_from_address(transaction['address'])

            if transaction.get('price'):
                metadata['price'] = transaction['price']

            if transaction.get('sizeLiving'):
                metadata['size_living'] = transaction['sizeLiving']

            return DetailContent(headline=headline, body=body, metadata=metadata)

        self.logger.debug(f"No embedded post data on {document.url}, using rendered HTML")

        headline = ""
        for selector in HEADLINE_SELECTORS:
            headline = self.safe_extract_text(soup, selector)
            if headline:
                break

        body = ""
        for selector in BODY_SELECTORS:
            paragraphs = [p.get_text(" ", strip=True) for p in soup.select(selector)]
            if paragraphs:
                body = " ".join(paragraphs)
                break

        metadata['published_date'] = published
        return DetailContent(headline=headline, body=body, metadata=metadata)
