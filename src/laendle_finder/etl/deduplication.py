"""URL-based deduplication of listings across and within runs."""

import threading
import logging
from typing import Iterable, Optional
from urllib.parse import urldefrag, urlsplit, urlunsplit

from .load import read_source_urls

logger = logging.getLogger(__name__)


def normalize_url(url: str) -> str:
    """Normalize a detail URL for use as a dedup key.

    Strips surrounding whitespace, the fragment and a trailing slash, and
    lower-cases the scheme and host.
    """
    url, _ = urldefrag(url.strip())
    parts = urlsplit(url)
    path = parts.path.rstrip('/') if parts.path not in ('', '/') else parts.path
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, ''))


class DeduplicationEngine:
    """Tracks which detail URLs have already been written.

    The persisted dataset is the source of truth; the in-memory set is an index
    rebuilt from it at job start.
    """

    def __init__(self, seen_urls: Optional[Iterable[str]] = None):
        """Initialize the deduplication engine.

        Args:
            seen_urls: URLs already present in the dataset
        """
        self._seen = {normalize_url(url) for url in (seen_urls or ()) if url}
        self._lock = threading.Lock()

    @classmethod
    def from_dataset(cls, path: str, encoding: str = 'utf-8') -> "DeduplicationEngine":
        """Seed the engine with every source_url in an existing dataset."""
        engine = cls(read_source_urls(path, encoding=encoding))
        logger.info(f"Loaded {len(engine)} known listing URLs from {path}")
        return engine

    def is_new(self, source_url: str) -> bool:
        """Check whether a URL has not been written yet."""
        with self._lock:
            return normalize_url(source_url) not in self._seen

    def mark_seen(self, source_url: str):
        """Record a URL as written. Call only after the write succeeded."""
        with self._lock:
            self._seen.add(normalize_url(source_url))

    def check_and_mark(self, source_url: str) -> bool:
        """Atomically check a URL and claim it.

        Returns:
            bool: True if the URL was new and is now marked
        """
        key = normalize_url(source_url)
        with self._lock:
            if key in self._seen:
                return False
            self._seen.add(key)
            return True

    def __contains__(self, source_url: str) -> bool:
        return not self.is_new(source_url)

    def __len__(self) -> int:
        return len(self._seen)
