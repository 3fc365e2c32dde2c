"""HTTP fetching with rate limiting, timeouts and retry on transient failures."""

import threading
import time
import logging
from dataclasses import dataclass
from functools import cached_property
from typing import Callable, Dict, Optional

import requests
from bs4 import BeautifulSoup
from fake_useragent import UserAgent

from ..config.settings import ScraperSettings

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class FetchError(Exception):
    """Base exception for failed page fetches."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class NetworkError(FetchError):
    """Connection-level failure (DNS, refused, reset). Transient."""
    pass


class FetchTimeoutError(FetchError):
    """The request did not complete within the timeout. Transient."""
    pass


class HttpStatusError(FetchError):
    """Non-2xx response."""

    def __init__(self, status_code: int, url: Optional[str] = None, retry_after: Optional[float] = None):
        super().__init__(f"HTTP {status_code} for {url}", url)
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def transient(self) -> bool:
        return self.status_code == 429 or self.status_code >= 500


@dataclass
class Document:
    """A fetched HTML page.

    ``url`` is the URL that was requested; ``final_url`` is where redirects
    ended and is the base for resolving relative links.
    """

    url: str
    text: str
    status_code: int = 200
    final_url: Optional[str] = None

    @cached_property
    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.text, 'html.parser')


class RateLimiter:
    """Enforces a minimum interval between consecutive request starts."""

    def __init__(self,
                 min_interval: float,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_start: Optional[float] = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """Block until a request may start and claim the slot.

        Returns:
            float: Seconds spent waiting
        """
        with self._lock:
            now = self._clock()
            waited = 0.0

            if self._last_start is not None:
                remaining = self.min_interval - (now - self._last_start)
                if remaining > 0:
                    self._sleep(remaining)
                    waited = remaining
                    now = self._clock()

            self._last_start = now
            return waited


class HttpFetcher:
    """Fetches pages for one job.

    The rate limiter is shared by every fetch issued through this instance, so
    one fetcher is created per job.
    """

    def __init__(self,
                 scraper_settings: Optional[ScraperSettings] = None,
                 cookie: Optional[str] = None,
                 session: Optional[requests.Session] = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize the fetcher.

        Args:
            scraper_settings: Timeout, retry and delay configuration
            cookie: Raw Cookie header value attached to every request
            session: Optional pre-built session (used by tests)
            clock: Monotonic clock used for rate limiting
            sleep: Sleep function used for rate limiting and backoff
        """
        self.settings = scraper_settings or ScraperSettings()
        self.cookie = cookie
        self._sleep = sleep
        self.rate_limiter = RateLimiter(self.settings.delay_between_requests, clock=clock, sleep=sleep)
        self.session = session or self._setup_session()
        self.request_count = 0

    def _get_user_agent(self) -> str:
        """Get a user agent string, random if rotation is enabled."""
        if self.settings.rotate_user_agents:
            return UserAgent(fallback=DEFAULT_USER_AGENT).random
        return DEFAULT_USER_AGENT

    def _setup_session(self) -> requests.Session:
        """Set up a requests session with browser-like headers."""
        session = requests.Session()
        session.headers.update({
            'User-Agent': self._get_user_agent(),
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'de-AT,de;q=0.9,en;q=0.5',
            'Connection': 'keep-alive',
        })
        return session

    def _backoff_delay(self, attempt: int, error: Optional[FetchError]) -> float:
        delay = self.settings.backoff_factor * (2 ** (attempt - 1))

        # Honour a numeric Retry-After on 429 responses
        if isinstance(error, HttpStatusError) and error.retry_after is not None:
            delay = max(delay, error.retry_after)

        return min(delay, self.settings.max_backoff)

    def fetch(self, url: str, cookie: Optional[str] = None) -> Document:
        """Fetch a page, retrying transient failures with exponential backoff.

        Args:
            url: The URL to request
            cookie: Cookie header value overriding the fetcher's default

        Returns:
            Document: The fetched page

        Raises:
            HttpStatusError: On a permanent non-2xx status, or a transient one
                that persisted through every retry
            NetworkError: If the connection kept failing
            FetchTimeoutError: If the request kept timing out
            FetchError: For requests that cannot succeed (e.g. invalid URL)
        """
        cookie = cookie if cookie is not None else self.cookie
        headers: Dict[str, str] = {'Cookie': cookie} if cookie else {}

        last_error: Optional[FetchError] = None

        for attempt in range(self.settings.max_retries + 1):
            if attempt > 0:
                delay = self._backoff_delay(attempt, last_error)
                logger.info(f"Retrying {url} in {delay:.1f}s (attempt {attempt + 1}/{self.settings.max_retries + 1})")
                self._sleep(delay)

            self.rate_limiter.wait()
            self.request_count += 1

            try:
                response = self.session.get(url, headers=headers, timeout=self.settings.request_timeout)
            except requests.exceptions.Timeout as e:
                logger.warning(f"Timeout fetching {url}: {e}")
                last_error = FetchTimeoutError(f"Timed out: {e}", url)
                continue
            except (requests.exceptions.ConnectionError, requests.exceptions.ChunkedEncodingError) as e:
                logger.warning(f"Network error fetching {url}: {e}")
                last_error = NetworkError(f"Request failed: {e}", url)
                continue
            except requests.exceptions.RequestException as e:
                logger.error(f"Request failed for {url}: {e}")
                raise FetchError(f"Request failed: {e}", url) from e

            if 200 <= response.status_code < 300:
                logger.debug(f"Fetched {url} ({len(response.text)} bytes)")
                return Document(url=url, text=response.text, status_code=response.status_code,
                                final_url=response.url or url)

            retry_after = response.headers.get('Retry-After', '') if response.headers else ''
            error = HttpStatusError(response.status_code, url,
                                    retry_after=float(retry_after) if retry_after.isdigit() else None)
            if not error.transient:
                logger.warning(f"Permanent HTTP {response.status_code} for {url}")
                raise error

            logger.warning(f"Transient HTTP {response.status_code} for {url}")
            last_error = error

        logger.error(f"Giving up on {url} after {self.settings.max_retries + 1} attempts: {last_error}")
        raise last_error

    def close(self):
        """Close the underlying session."""
        if self.session:
            try:
                self.session.close()
            except Exception as e:
                logger.error(f"Error closing session: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
