"""Property data models for real estate transaction scraping."""

from datetime import date, datetime
from typing import Optional, Dict, Any, Tuple
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ListingStatus(str, Enum):
    """Listing status enumeration, set by the job that produced a record."""
    SOLD = "sold"
    AVAILABLE = "available"


class PropertyType(str, Enum):
    """Property categories recognised by the field extractor."""
    HOUSE = "house"
    APARTMENT = "apartment"
    LAND = "land"
    COMMERCIAL = "commercial"
    AGRICULTURAL = "agricultural"


# Closed vocabulary of German property nouns. Compound nouns are resolved by
# their head (the longest known suffix), e.g. "Dachterrassenwohnung".
PROPERTY_TYPE_VOCABULARY: Dict[str, PropertyType] = {
    'grundstück': PropertyType.LAND,
    'grundstueck': PropertyType.LAND,
    'grundstuck': PropertyType.LAND,
    'grundstücksteil': PropertyType.LAND,
    'baugrund': PropertyType.LAND,
    'bauplatz': PropertyType.LAND,
    'baufläche': PropertyType.LAND,
    'parzelle': PropertyType.LAND,
    'haus': PropertyType.HOUSE,
    'einfamilienhaus': PropertyType.HOUSE,
    'zweifamilienhaus': PropertyType.HOUSE,
    'mehrfamilienhaus': PropertyType.HOUSE,
    'reihenhaus': PropertyType.HOUSE,
    'haushälfte': PropertyType.HOUSE,
    'wohnhaus': PropertyType.HOUSE,
    'villa': PropertyType.HOUSE,
    'chalet': PropertyType.HOUSE,
    'wohnung': PropertyType.APARTMENT,
    'eigentumswohnung': PropertyType.APARTMENT,
    'garçonnière': PropertyType.APARTMENT,
    'garconniere': PropertyType.APARTMENT,
    'penthouse': PropertyType.APARTMENT,
    'maisonette': PropertyType.APARTMENT,
    'appartement': PropertyType.APARTMENT,
    'apartment': PropertyType.APARTMENT,
    'gewerbeobjekt': PropertyType.COMMERCIAL,
    'gewerbefläche': PropertyType.COMMERCIAL,
    'gewerbegrundstück': PropertyType.COMMERCIAL,
    'geschäftslokal': PropertyType.COMMERCIAL,
    'büro': PropertyType.COMMERCIAL,
    'halle': PropertyType.COMMERCIAL,
    'hotel': PropertyType.COMMERCIAL,
    'gasthaus': PropertyType.COMMERCIAL,
    'landwirtschaftsfläche': PropertyType.AGRICULTURAL,
    'wiese': PropertyType.AGRICULTURAL,
    'acker': PropertyType.AGRICULTURAL,
    'wald': PropertyType.AGRICULTURAL,
    'bauernhof': PropertyType.AGRICULTURAL,
}

# Column order of the persisted dataset.
DATASET_COLUMNS = [
    'source_url',
    'listing_status',
    'price',
    'location',
    'property_type',
    'published_date',
    'latitude',
    'longitude',
    'address',
    'size_living',
    'size_ground',
    'raw_headline',
    'raw_excerpt',
    'low_confidence',
    'scraped_at',
]


def classify_property_type(word: Optional[str]) -> Optional[PropertyType]:
    """Map a German property noun to a PropertyType.

    Args:
        word: Noun as it appears in the text

    Returns:
        Optional[PropertyType]: The category, or None if the word is not in
        the vocabulary
    """
    if not word:
        return None

    normalized = word.strip().lower()
    if normalized in PROPERTY_TYPE_VOCABULARY:
        return PROPERTY_TYPE_VOCABULARY[normalized]

    # German compounds carry their category in the last component
    best_match = None
    for known, property_type in PROPERTY_TYPE_VOCABULARY.items():
        if len(known) >= 4 and normalized.endswith(known):
            if best_match is None or len(known) > len(best_match[0]):
                best_match = (known, property_type)

    return best_match[1] if best_match else None


def _empty_to_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() == 'nan':
        return None
    return text


def _to_float(value: Optional[str]) -> Optional[float]:
    return float(value) if value is not None else None


def _whole_number(value: Optional[float]) -> Optional[float]:
    """Write 350000.0 as 350000 in the dataset."""
    if value is not None and float(value).is_integer():
        return int(value)
    return value


class PropertyRecord(BaseModel):
    """One real-estate transaction or listing, immutable once created."""

    model_config = ConfigDict(frozen=True)

    source_url: str
    listing_status: ListingStatus

    price: Optional[float] = None
    location: Optional[str] = None
    property_type: Optional[str] = None
    published_date: Optional[date] = None
    coordinates: Optional[Tuple[float, float]] = None
    address: Optional[str] = None

    # Square metres
    size_living: Optional[float] = None
    size_ground: Optional[float] = None

    # Extraction input, kept for auditing and re-extraction
    raw_headline: str = ""
    raw_excerpt: str = ""

    scraped_at: datetime = Field(default_factory=lambda: datetime.utcnow().replace(microsecond=0))

    @field_validator('source_url')
    @classmethod
    def validate_source_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("source_url must not be empty")
        return value

    @field_validator('location', 'property_type', 'address')
    @classmethod
    def blank_text_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            value = value.strip()
        return value or None

    @field_validator('price', 'size_living', 'size_ground')
    @classmethod
    def drop_non_positive(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            return None
        return value

    @property
    def low_confidence(self) -> bool:
        """True when extraction resolved none of the optional fields."""
        return all(
            value is None for value in (
                self.price,
                self.location,
                self.property_type,
                self.published_date,
                self.coordinates,
                self.size_living,
                self.size_ground,
            )
        )

    def to_row(self) -> Dict[str, Any]:
        """Convert the record to a dataset row keyed by DATASET_COLUMNS."""
        latitude, longitude = self.coordinates if self.coordinates else (None, None)

        return {
            'source_url': self.source_url,
            'listing_status': self.listing_status.value,
            'price': _whole_number(self.price),
            'location': self.location,
            'property_type': self.property_type,
            'published_date': self.published_date.isoformat() if self.published_date else None,
            'latitude': latitude,
            'longitude': longitude,
            'address': self.address,
            'size_living': _whole_number(self.size_living),
            'size_ground': _whole_number(self.size_ground),
            'raw_headline': self.raw_headline,
            'raw_excerpt': self.raw_excerpt,
            'low_confidence': self.low_confidence,
            'scraped_at': self.scraped_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "PropertyRecord":
        """Rebuild a record from a dataset row as read back from disk.

        Args:
            row: Mapping of column name to cell value (strings or NaN)

        Returns:
            PropertyRecord: The reconstructed record
        """
        values = {column: _empty_to_none(row.get(column)) for column in DATASET_COLUMNS}

        coordinates = None
        if values['latitude'] is not None and values['longitude'] is not None:
            coordinates = (float(values['latitude']), float(values['longitude']))

        data = {
            'source_url': values['source_url'],
            'listing_status': values['listing_status'],
            'price': _to_float(values['price']),
            'location': values['location'],
            'property_type': values['property_type'],
            'published_date': values['published_date'],
            'coordinates': coordinates,
            'address': values['address'],
            'size_living': _to_float(values['size_living']),
            'size_ground': _to_float(values['size_ground']),
            'raw_headline': values['raw_headline'] or "",
            'raw_excerpt': values['raw_excerpt'] or "",
        }
        if values['scraped_at'] is not None:
            data['scraped_at'] = values['scraped_at']

        return cls(**data)
