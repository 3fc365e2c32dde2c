"""ETL pipeline package."""

from .field_extractor import ExtractionRule, FieldExtractor, default_rules
from .deduplication import DeduplicationEngine, normalize_url
from .load import DatasetWriter, WriteError, load_records, read_dataset

__all__ = [
    "ExtractionRule",
    "FieldExtractor",
    "default_rules",
    "DeduplicationEngine",
    "normalize_url",
    "DatasetWriter",
    "WriteError",
    "load_records",
    "read_dataset",
]
