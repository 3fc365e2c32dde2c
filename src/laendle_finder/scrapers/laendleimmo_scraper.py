"""laendleimmo.at scraper for properties currently offered for sale."""

import re
import json
from typing import Any, Dict, Iterable, List, Optional

from ..models.property_models import classify_property_type
from .base_scraper import BaseScraper, DetailContent, dig
from .http_fetcher import Document

# /immobilien/{type}/{subtype}/vorarlberg/{district}/{id}
LISTING_PATH = re.compile(r"/immobilien/([^/]+)/([^/]+)/vorarlberg/([^/]+)/")

LISTING_TYPES = {
    'Product', 'Offer', 'RealEstateListing', 'Residence', 'House',
    'SingleFamilyResidence', 'Apartment', 'Accommodation', 'Place',
}

PRICE_SELECTORS = [
    '.kaufpreis',
    '.preis',
    '.property-price',
    '.price',
    '[class*="price"]',
]

DESCRIPTION_SELECTORS = [
    '#description',
    '.description',
    '.property-description',
    '[class*="description"]',
    '.object-text',
]

# Key facts blocks ("Wohnfläche 126,00 m²", "Grundstücksfläche 700 m²")
DETAIL_SELECTORS = [
    '#accordion-collapse',
    '.object-details',
    '.object-info',
    '.property-details',
    '#sticky-subheader',
    '.details',
]


class LaendleimmoScraper(BaseScraper):
    """Scraper for laendleimmo.at listing pages."""

    name = "laendleimmo"
    domain = "laendleimmo.at"

    def find_detail_links(self, document: Document) -> Iterable[str]:
        """Listing anchors follow the /immobilien/.../vorarlberg/... scheme."""
        for anchor in document.soup.select('a[href*="/immobilien/"]'):
            href = anchor.get('href', '')
            if LISTING_PATH.search(href):
                yield href

    def _json_ld_items(self, document: Document) -> List[Dict[str, Any]]:
        """Flatten every JSON-LD object on the page."""
        items = []
        for script in document.soup.select('script[type="application/ld+json"]'):
            try:
                data = json.loads(script.string or '')
            except (json.JSONDecodeError, TypeError) as e:
                self.logger.debug(f"Skipping malformed JSON-LD on {document.url}: {e}")
                continue

            stack = data if isinstance(data, list) else [data]
            for item in stack:
                if not isinstance(item, dict):
                    continue
                items.append(item)
                if isinstance(item.get('@graph'), list):
                    items.extend(entry for entry in item['@graph'] if isinstance(entry, dict))
        return items

    def _listing_item(self, document: Document) -> Optional[Dict[str, Any]]:
        for item in self._json_ld_items(document):
            item_type = item.get('@type')
            types = set(item_type) if isinstance(item_type, list) else {item_type}
            if types & LISTING_TYPES or 'offers' in item:
                return item
        return None

    def _metadata_from_json_ld(self, item: Dict[str, Any]) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {}

        offers = item.get('offers')
        if isinstance(offers, list):
            offers = offers[0] if offers else None
        price = dig(offers, 'price') or dig(offers, 'priceSpecification', 'price')
        if price:
            metadata['price'] = price

        address = item.get('address') or dig(item, 'itemOffered', 'address')
        if isinstance(address, dict):
            metadata['location'] = address.get('addressLocality')
            parts = [address.get('streetAddress'), ' '.join(
                part for part in (address.get('postalCode'), address.get('addressLocality')) if part
            )]
            metadata['address'] = ', '.join(part for part in parts if part) or None
        elif isinstance(address, str):
            metadata['address'] = address

        geo = item.get('geo') or dig(item, 'itemOffered', 'geo')
        if isinstance(geo, dict) and geo.get('latitude') is not None and geo.get('longitude') is not None:
            metadata['coordinates'] = (geo['latitude'], geo['longitude'])

        for field, key in (('size_living', 'floorSize'), ('size_ground', 'lotSize')):
            size = item.get(key) or dig(item, 'itemOffered', key)
            metadata[field] = size.get('value') if isinstance(size, dict) else size

        metadata['published_date'] = item.get('datePosted') or item.get('datePublished')
        return metadata

    def _metadata_from_url(self, url: str) -> Dict[str, Any]:
        """Property type and district encoded in the listing path."""
        match = LISTING_PATH.search(url)
        if not match:
            return {}

        main_type, sub_type, district = match.groups()

        # An unrecognised sub type falls back to the main category
        property_type = sub_type if classify_property_type(sub_type) else main_type
        return {
            'property_type': property_type,
            'location': district.replace('-', ' ').title(),
        }

    def parse_detail(self, document: Document) -> DetailContent:
        """Combine JSON-LD, rendered HTML and URL-path metadata."""
        soup = document.soup
        metadata = self._metadata_from_url(document.url)

        headline = ""
        body = ""

        item = self._listing_item(document)
        if item:
            headline = item.get('name') or dig(item, 'itemOffered', 'name') or ""
            body = item.get('description') or dig(item, 'itemOffered', 'description') or ""
            json_metadata = self._metadata_from_json_ld(item)
            metadata.update({key: value for key, value in json_metadata.items() if value})

        if not headline:
            headline = self.safe_extract_text(soup, 'h1') or self.safe_extract_text(soup, '.property-title')

        if not body:
            for selector in DESCRIPTION_SELECTORS:
                body = self.safe_extract_text(soup, selector)
                if body:
                    break

        if not metadata.get('price'):
            for selector in PRICE_SELECTORS:
                price_text = self.safe_extract_text(soup, selector)
                if '€' in price_text or 'EUR' in price_text:
                    metadata['price'] = price_text
                    break

        details = ' '.join(element.get_text(' ', strip=True) for element in soup.select(', '.join(DETAIL_SELECTORS)))
        for field in ('size_living', 'size_ground'):
            if details and not metadata.get(field):
                metadata[field] = details

        return DetailContent(headline=headline, body=body, metadata=metadata)
