"""Heuristic field extraction from unstructured German listing prose.

Fields are resolved by an ordered decision list of independent rules. For each
field the rules are tried in list order, each against the headline and then the
body, and the first rule that yields a value wins. More specific rules must
therefore come before more general ones; new rules are appended with
``FieldExtractor.add_rule`` or by passing a custom list.
"""

import re
import logging
from dataclasses import dataclass
from datetime import date, datetime
from re import Match, Pattern
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..models.property_models import ListingStatus, PropertyRecord, classify_property_type

logger = logging.getLogger(__name__)

GERMAN_MONTHS = {
    'januar': 1, 'jänner': 1, 'februar': 2, 'feber': 2, 'märz': 3, 'april': 4,
    'mai': 5, 'juni': 6, 'juli': 7, 'august': 8, 'september': 9,
    'oktober': 10, 'november': 11, 'dezember': 12,
}

# Capitalised words that follow "in" but are not places
NOT_A_PLACE = {'vorarlberg', 'österreich', 'euro', 'summe', 'höhe', 'zukunft', 'richtung'}
NOT_A_PLACE_SUFFIXES = ('lage', 'nähe', 'zone', 'gebiet')

_PLACE = r"[A-ZÄÖÜ][A-Za-zÄÖÜäöüß]+(?:-[A-ZÄÖÜ][A-Za-zÄÖÜäöüß]+)*"
_CURRENCY = r"(?:Euro|EUR|€)"
_NOT_PER_AREA = r"(?!\s*(?:/|pro|je)\s*(?:m²|m2|qm|Quadratmeter))"

_AREA_NUMBER = r"(\d{1,3}(?:[.']\d{3})+(?:,\d{1,2})?|\d+(?:[.,]\d{1,2})?)"
_AREA_UNIT = r"\s*(?:m²|m2|qm|Quadratmetern?)(?![A-Za-zÄÖÜäöüß])"
_AREA_FILLER = r"[:\s]*(?:(?:von|rund|ca\.|circa|etwa|beträgt|knapp|über|insgesamt)\s+)*"
_FL = r"fl(?:ä|ae)che"

# An unlabelled area near one of these words is a plot size
PLOT_WORDS = ('grundstück', 'grundstueck', 'grundfläche', 'parzelle', 'bauland', 'baugrund', 'bauplatz')

# Area metadata that is just a number, e.g. "126" or "ca. 612,50 m²"
BARE_AREA = re.compile(r"(?:ca\.\s*)?(\d[\d.,']*)\s*(?:m²|m2|qm)?", re.IGNORECASE)


def normalize_number(raw: str) -> Optional[float]:
    """Parse a German or English formatted number.

    Thousands separators are removed; a comma or dot followed by anything but
    groups of three digits is read as the decimal mark.

    Args:
        raw: Numeric text such as "350.000", "1,2" or "350.000,-"

    Returns:
        Optional[float]: Parsed value or None if unparseable
    """
    if raw is None:
        return None

    cleaned = re.sub(r"[\s'\u00a0\u202f]", "", str(raw)).rstrip('.,-–')
    if not cleaned:
        return None

    if '.' in cleaned and ',' in cleaned:
        # The right-most separator is the decimal mark
        if cleaned.rfind(',') > cleaned.rfind('.'):
            cleaned = cleaned.replace('.', '').replace(',', '.')
        else:
            cleaned = cleaned.replace(',', '')
    else:
        for separator in ('.', ','):
            if separator in cleaned:
                groups = cleaned.split(separator)
                if all(len(group) == 3 for group in groups[1:]):
                    cleaned = cleaned.replace(separator, '')
                elif len(groups) == 2:
                    cleaned = cleaned.replace(separator, '.')
                else:
                    return None

    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_date(value: Any) -> Optional[date]:
    """Parse a date from metadata: ISO strings, datetimes or dd.mm.yyyy.

    Args:
        value: Raw metadata value

    Returns:
        Optional[date]: Parsed date, or None
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    iso_match = re.match(r"(\d{4})-(\d{2})-(\d{2})", text)
    if iso_match:
        return date(*(int(part) for part in iso_match.groups()))

    german_match = re.match(r"(\d{1,2})\.\s?(\d{1,2})\.\s?(\d{4})", text)
    if german_match:
        day, month, year = (int(part) for part in german_match.groups())
        return date(year, month, day)

    return None


@dataclass(frozen=True)
class ExtractionRule:
    """One entry of the decision list: a pattern and a converter for one field."""

    name: str
    field: str
    pattern: Pattern
    convert: Callable[[Match], Optional[Any]]

    def apply(self, text: Optional[str]) -> Optional[Any]:
        """Return the first converted match in the text, or None."""
        if not text:
            return None

        for match in self.pattern.finditer(text):
            value = self.convert(match)
            if value is not None:
                return value

        return None


def _rule(name: str, field: str, pattern: str, convert: Callable[[Match], Optional[Any]],
          flags: int = 0) -> ExtractionRule:
    return ExtractionRule(name=name, field=field, pattern=re.compile(pattern, flags), convert=convert)


def _millions(match: Match) -> Optional[float]:
    amount = normalize_number(match.group(1))
    return round(amount * 1_000_000, 2) if amount is not None else None


def _amount(match: Match) -> Optional[float]:
    return normalize_number(match.group(1))


def _place(match: Match) -> Optional[str]:
    place = match.group(1).strip()
    lowered = place.lower()
    if lowered in NOT_A_PLACE or lowered.endswith(NOT_A_PLACE_SUFFIXES):
        return None
    return place


def _known_type(match: Match) -> Optional[str]:
    property_type = classify_property_type(match.group(1))
    return property_type.value if property_type else None


def _raw_type(match: Match) -> Optional[str]:
    return match.group(1)


def _numeric_date(match: Match) -> Optional[date]:
    day, month, year = (int(part) for part in match.groups())
    return date(year, month, day)


def _named_month_date(match: Match) -> Optional[date]:
    month = GERMAN_MONTHS.get(match.group(2).lower())
    if month is None:
        return None
    return date(int(match.group(3)), month, int(match.group(1)))


def _area(match: Match) -> Optional[float]:
    area = normalize_number(match.group(1))
    return area if area else None


def _living_area(match: Match) -> Optional[float]:
    """An unlabelled area, unless the surrounding words describe a plot."""
    before = match.string[max(0, match.start() - 60):match.start()].lower()
    after = match.string[match.end():match.end() + 15].lower().lstrip()
    if any(word in before for word in PLOT_WORDS) or after.startswith('grund'):
        return None
    return _area(match)


def default_rules() -> List[ExtractionRule]:
    """The ordered rule list. Specific patterns precede general ones per field."""
    return [
        # Price
        _rule('price_millions', 'price',
              rf"(\d+(?:[.,]\d+)?)\s*(?:Mio\.?|Millionen)\s*{_CURRENCY}", _millions),
        _rule('price_amount_currency', 'price',
              rf"(\d{{1,3}}(?:[.,']\d{{3}})+(?:,\d{{1,2}})?|\d+(?:,\d{{1,2}})?)(?:,-)?\s*{_CURRENCY}{_NOT_PER_AREA}",
              _amount),

        # Location
        _rule('location_municipality', 'location',
              rf"\b[Ii]n\s+der\s+(?:Markt|Stadt)?[Gg]emeinde\s+({_PLACE})", _place),
        _rule('location_saint', 'location',
              r"\b(?:[Ii]n|[Ii]m)\s+(St\.\s*[A-ZÄÖÜ][A-Za-zÄÖÜäöüß-]+)", _place),
        _rule('location_in', 'location', rf"\b[Ii]n\s+({_PLACE})", _place),

        # Property type
        _rule('property_type_article', 'property_type',
              r"\b(?:[Ee]in|[Ee]ine|[Ee]inen|[Ee]inem|[Ee]iner|[Ee]ines)\s+"
              r"(?:[a-zäöüß-]+(?:e|es|er|en|em)\s+)?([A-ZÄÖÜ][A-Za-zÄÖÜäöüß-]+)",
              _known_type),
        _rule('property_type_leading_noun', 'property_type',
              r"^\s*([A-ZÄÖÜ][A-Za-zÄÖÜäöüß-]+)", _known_type),

        # Date
        _rule('date_numeric', 'published_date',
              r"\b(\d{1,2})\.\s?(\d{1,2})\.\s?(\d{4})\b", _numeric_date),
        _rule('date_named_month', 'published_date',
              r"\b(\d{1,2})\.\s*([A-Za-zäöüÄÖÜ]+)\s+(\d{4})\b", _named_month_date),

        # Plot size
        _rule('size_ground_labelled', 'size_ground',
              rf"\b(?:Grundst(?:ü|ue)cks(?:gr(?:ö|oe)(?:ß|ss)e|{_FL})|(?:Grund|Parzellen|Bauland){_FL}|Grundst(?:ü|ue)ck)"
              rf"{_AREA_FILLER}{_AREA_NUMBER}{_AREA_UNIT}",
              _area, re.IGNORECASE),
        _rule('size_ground_plot_with_area', 'size_ground',
              rf"\b(?:Grundst(?:ü|ue)ck|Baugrund|Bauplatz|Parzelle)\w*[^.;]{{0,60}}?\bmit\s+"
              rf"(?:(?:rund|ca\.|circa|etwa|knapp|über)\s+)?{_AREA_NUMBER}{_AREA_UNIT}(?!\s*(?:Wohn|Nutz))",
              _area, re.IGNORECASE),

        # Living area
        _rule('size_living_labelled', 'size_living',
              rf"\b(?:Wohnnutz|Wohn|Nutz){_FL}{_AREA_FILLER}{_AREA_NUMBER}{_AREA_UNIT}", _area, re.IGNORECASE),
        _rule('size_living_trailing_label', 'size_living',
              rf"{_AREA_NUMBER}{_AREA_UNIT}\s+(?:Wohn|Nutz)", _area, re.IGNORECASE),
        _rule('size_living_any_area', 'size_living', rf"{_AREA_NUMBER}{_AREA_UNIT}", _living_area),
    ]


# Appended when unknown property nouns should be kept verbatim
FREE_TEXT_PROPERTY_TYPE_RULE = _rule(
    'property_type_free_text', 'property_type',
    r"\b(?:[Ee]in|[Ee]ine|[Ee]inen|[Ee]inem|[Ee]iner|[Ee]ines)\s+"
    r"(?:[a-zäöüß-]+(?:e|es|er|en|em)\s+)?([A-ZÄÖÜ][A-Za-zÄÖÜäöüß-]+)",
    _raw_type,
)

TEXT_FIELDS = ('price', 'location', 'property_type', 'published_date', 'size_living', 'size_ground')

AREA_FIELDS = ('size_living', 'size_ground')

# Fields read from page metadata before the text rules are consulted
METADATA_FIRST_FIELDS = ('published_date',)


def clean_text(text: Optional[str]) -> str:
    """Collapse whitespace in extracted text."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", str(text)).strip()


class FieldExtractor:
    """Applies the rule list to a headline and body, with metadata fallback."""

    def __init__(self, rules: Optional[List[ExtractionRule]] = None, unknown_property_type: str = "empty"):
        """Initialize the extractor.

        Args:
            rules: Ordered rule list (default: ``default_rules()``)
            unknown_property_type: "empty" leaves unrecognised property nouns
                unset, "free_text" records them verbatim
        """
        self.rules = list(rules) if rules is not None else default_rules()
        self.unknown_property_type = unknown_property_type
        if unknown_property_type == "free_text":
            self.rules.append(FREE_TEXT_PROPERTY_TYPE_RULE)

    def add_rule(self, rule: ExtractionRule):
        """Append a rule. It only applies where all earlier rules found nothing."""
        self.rules.append(rule)

    def rules_for(self, field: str) -> List[ExtractionRule]:
        return [rule for rule in self.rules if rule.field == field]

    def extract_field(self, field: str, texts: Tuple[str, ...]) -> Tuple[Optional[Any], Optional[str]]:
        """Resolve one field from the texts.

        Returns:
            Tuple[Optional[Any], Optional[str]]: (value, name of the winning rule)
        """
        for rule in self.rules_for(field):
            for text in texts:
                try:
                    value = rule.apply(text)
                except (ValueError, TypeError, IndexError) as e:
                    logger.debug(f"Rule {rule.name} failed: {e}")
                    continue
                if value is not None:
                    return value, rule.name
        return None, None

    def _from_metadata(self, field: str, value: Any) -> Optional[Any]:
        if value is None or value == "":
            return None

        try:
            if field == 'price':
                if isinstance(value, (int, float)):
                    return float(value)
                return normalize_number(re.sub(r"[^\d.,]", "", str(value)))
            if field == 'published_date':
                return parse_date(value)
            if field == 'property_type':
                property_type = classify_property_type(str(value))
                if property_type:
                    return property_type.value
                return str(value) if self.unknown_property_type == "free_text" else None
            if field == 'coordinates':
                latitude, longitude = value
                latitude, longitude = float(latitude), float(longitude)
                if -90 <= latitude <= 90 and -180 <= longitude <= 180:
                    return latitude, longitude
                return None
            if field in AREA_FIELDS:
                if isinstance(value, (int, float)):
                    return float(value)
                # A plain number, or a details text searched with the area rules
                text = clean_text(value)
                bare = BARE_AREA.fullmatch(text)
                if bare:
                    return normalize_number(bare.group(1))
                area, _ = self.extract_field(field, (text,))
                return area
            return clean_text(value) or None
        except (ValueError, TypeError) as e:
            logger.debug(f"Ignoring metadata {field}={value!r}: {e}")
            return None

    def extract_fields(self,
                       headline: Optional[str],
                       body: Optional[str],
                       metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Extract all fields. Never raises; unresolved fields are None.

        Args:
            headline: Article or listing title
            body: Article or listing text
            metadata: Structured values found on the page (JSON, JSON-LD, URL)

        Returns:
            Dict[str, Any]: Field values keyed by PropertyRecord field name
        """
        metadata = metadata or {}
        texts = (clean_text(headline), clean_text(body))
        fields: Dict[str, Any] = {}

        for field in TEXT_FIELDS:
            value = None
            source = None

            if field in METADATA_FIRST_FIELDS:
                value = self._from_metadata(field, metadata.get(field))
                source = 'metadata' if value is not None else None

            if value is None:
                value, source = self.extract_field(field, texts)

            if value is None:
                value = self._from_metadata(field, metadata.get(field))
                source = 'metadata' if value is not None else None

            fields[field] = value
            if source:
                logger.debug(f"{field}={value!r} via {source}")

        fields['coordinates'] = self._from_metadata('coordinates', metadata.get('coordinates'))
        fields['address'] = self._from_metadata('address', metadata.get('address'))

        return fields

    def build_record(self,
                     source_url: str,
                     listing_status: ListingStatus,
                     headline: Optional[str],
                     body: Optional[str],
                     metadata: Optional[Dict[str, Any]] = None) -> PropertyRecord:
        """Create a PropertyRecord from extracted text. Never raises on content.

        Args:
            source_url: Detail page URL
            listing_status: Status of the job producing the record
            headline: Article or listing title
            body: Article or listing text
            metadata: Structured values found on the page

        Returns:
            PropertyRecord: The record, possibly with every optional field empty
        """
        headline = clean_text(headline)
        body = clean_text(body)
        fields = self.extract_fields(headline, body, metadata)

        try:
            return PropertyRecord(
                source_url=source_url,
                listing_status=listing_status,
                raw_headline=headline,
                raw_excerpt=body,
                **fields,
            )
        except ValidationError as e:
            logger.warning(f"Discarding extracted fields for {source_url}: {e}")
            return PropertyRecord(
                source_url=source_url,
                listing_status=listing_status,
                raw_headline=headline,
                raw_excerpt=body,
            )
