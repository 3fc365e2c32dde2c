"""Shared fixtures: a scripted HTTP session and a controllable clock."""

import pytest
import requests

from laendle_finder.config.settings import ScraperSettings
from laendle_finder.scrapers.http_fetcher import HttpFetcher


class FakeResponse:
    def __init__(self, status_code=200, text="", url=None, headers=None):
        self.status_code = status_code
        self.text = text
        self.url = url
        self.headers = headers or {}


class FakeSession:
    """Serves scripted responses per URL and records every request.

    A route maps a URL to a list of outcomes consumed in order; the last one
    repeats. An outcome is a FakeResponse, an HTML string (served as 200) or
    an exception instance (raised).
    """

    def __init__(self, routes=None, clock=None):
        self.routes = {url: list(outcomes) if isinstance(outcomes, list) else [outcomes]
                       for url, outcomes in (routes or {}).items()}
        self.clock = clock
        self.requests = []
        self.closed = False

    def add(self, url, *outcomes):
        self.routes[url] = list(outcomes)

    def get(self, url, headers=None, timeout=None):
        self.requests.append({
            'url': url,
            'headers': dict(headers or {}),
            'timeout': timeout,
            'time': self.clock() if self.clock else None,
        })

        outcomes = self.routes.get(url)
        if not outcomes:
            return FakeResponse(404, "not found", url)

        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, str):
            return FakeResponse(200, outcome, url)
        if outcome.url is None:
            outcome.url = url
        return outcome

    def urls(self):
        return [request['url'] for request in self.requests]

    def close(self):
        self.closed = True


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session(clock):
    return FakeSession(clock=clock)


@pytest.fixture
def scraper_settings():
    return ScraperSettings(
        delay_between_requests=0.5,
        request_timeout=5,
        max_retries=2,
        backoff_factor=1.0,
        max_backoff=4.0,
    )


@pytest.fixture
def make_fetcher(session, clock, scraper_settings):
    def factory(cookie=None, settings=None):
        return HttpFetcher(
            settings or scraper_settings,
            cookie=cookie,
            session=session,
            clock=clock,
            sleep=clock.sleep,
        )
    return factory


@pytest.fixture
def connection_error():
    return requests.exceptions.ConnectionError("connection refused")

