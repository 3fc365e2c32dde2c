"""Load module for persisting property records to the append-only CSV dataset."""

import io
import os
import re
import logging
from pathlib import Path
from typing import List, Optional
import pandas as pd

from ..models.property_models import DATASET_COLUMNS, PropertyRecord

logger = logging.getLogger(__name__)

_QUOTE_OR_NEWLINE = re.compile(rb'["\n]')


class WriteError(Exception):
    """Raised when a record could not be appended to the dataset."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


def complete_length(path: Path, chunk_size: int = 1 << 16) -> int:
    """Byte length of the file up to the end of its last complete CSV record.

    A record ends at a newline outside a quoted field. Doubled quotes inside a
    field toggle the quote state twice, so they need no special handling.

    Args:
        path: Dataset file path
        chunk_size: Bytes read at a time

    Returns:
        int: Offset just past the last record terminator (0 if there is none)
    """
    end = 0
    offset = 0
    quoted = False

    with path.open('rb') as handle:
        for chunk in iter(lambda: handle.read(chunk_size), b''):
            for match in _QUOTE_OR_NEWLINE.finditer(chunk):
                if match.group() == b'"':
                    quoted = not quoted
                elif not quoted:
                    end = offset + match.end()
            offset += len(chunk)

    return end


def read_dataset(path: str, encoding: str = 'utf-8') -> pd.DataFrame:
    """Read the dataset as strings, with empty cells kept as "".

    An incomplete trailing record left by an interrupted write is ignored.

    Args:
        path: Dataset file path

    Returns:
        pd.DataFrame: The rows in append order (empty frame if the file is missing)
    """
    filepath = Path(path)
    if not filepath.exists() or filepath.stat().st_size == 0:
        return pd.DataFrame(columns=DATASET_COLUMNS)

    size = filepath.stat().st_size
    end = complete_length(filepath)
    if end == 0:
        logger.warning(f"Dataset {filepath} holds no complete row, treating it as empty")
        return pd.DataFrame(columns=DATASET_COLUMNS)

    options = dict(dtype=str, keep_default_na=False, encoding=encoding, on_bad_lines='skip')
    if end == size:
        return pd.read_csv(filepath, **options)

    logger.warning(f"Dataset {filepath} ends with an incomplete row, ignoring its last {size - end} bytes")
    with filepath.open('rb') as handle:
        data = handle.read(end)
    return pd.read_csv(io.BytesIO(data), **options)


def read_source_urls(path: str, encoding: str = 'utf-8') -> List[str]:
    """Every source_url present in the dataset."""
    df = read_dataset(path, encoding=encoding)
    if 'source_url' not in df.columns:
        return []
    return [url for url in df['source_url'].tolist() if url]


def load_records(path: str, encoding: str = 'utf-8') -> List[PropertyRecord]:
    """Read the dataset back into PropertyRecord objects, skipping malformed rows."""
    records = []
    for row in read_dataset(path, encoding=encoding).to_dict('records'):
        try:
            records.append(PropertyRecord.from_row(row))
        except ValueError as e:
            logger.warning(f"Skipping malformed row for {row.get('source_url')}: {e}")
    return records


class DatasetWriter:
    """Appends one record per call to a CSV file, flushed to disk before returning."""

    def __init__(self, path: str, encoding: str = 'utf-8'):
        """Initialize the writer.

        Args:
            path: Dataset file path, created with a header row on first append
            encoding: File encoding
        """
        self.path = Path(path)
        self.encoding = encoding
        self.columns = list(DATASET_COLUMNS)
        self._verified = False
        self.records_written = 0

    def _needs_header(self) -> bool:
        return not self.path.exists() or self.path.stat().st_size == 0

    def _check_header(self):
        """Refuse to append to a file with a different column schema."""
        with self.path.open('r', encoding=self.encoding, newline='') as handle:
            header_line = handle.readline()

        existing = list(pd.read_csv(io.StringIO(header_line), nrows=0).columns)
        if existing != self.columns:
            raise WriteError(
                f"Dataset {self.path} has columns {existing}, expected {self.columns}",
                str(self.path),
            )

    def _drop_partial_row(self):
        """Cut the file back to its last complete record.

        An interrupted write can stop anywhere, including inside a quoted
        field; anything appended after an open quote would be swallowed by it.
        The dropped listing is not in the dataset, so the next run fetches it
        again.
        """
        size = self.path.stat().st_size
        end = complete_length(self.path)
        if end == size:
            return

        logger.warning(f"Dataset {self.path} ends with an incomplete row, dropping its last {size - end} bytes")
        with self.path.open('r+b') as handle:
            handle.truncate(end)
            handle.flush()
            os.fsync(handle.fileno())

    def _verify_existing(self):
        if self._verified:
            return
        self._check_header()
        self._drop_partial_row()
        self._verified = True

    def append(self, record: PropertyRecord):
        """Append a record durably.

        Args:
            record: The record to persist

        Raises:
            WriteError: If the file could not be written or has a foreign schema
        """
        frame = pd.DataFrame([record.to_row()], columns=self.columns)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)

            if not self._needs_header():
                self._verify_existing()
            write_header = self._needs_header()

            with self.path.open('a', encoding=self.encoding, newline='') as handle:
                frame.to_csv(handle, header=write_header, index=False, lineterminator='\n')
                handle.flush()
                os.fsync(handle.fileno())

        except (OSError, UnicodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            # A failed write may have left a partial row behind
            self._verified = False
            logger.error(f"Error appending {record.source_url} to {self.path}: {e}")
            raise WriteError(f"Could not write to {self.path}: {e}", str(self.path)) from e

        self._verified = True
        self.records_written += 1
        logger.debug(f"Appended {record.source_url} to {self.path}")
