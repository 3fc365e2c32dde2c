import pytest

from laendle_finder.scrapers.pagination import (
    JobUnreachableError,
    PaginationWalker,
    StopReason,
    WalkState,
)
from laendle_finder.scrapers.laendleimmo_scraper import LaendleimmoScraper
from laendle_finder.scrapers.vol_scraper import VolScraper

from conftest import FakeResponse
from pages import LAENDLEIMMO_INDEX, LAENDLEIMMO_INDEX_URL, VOL_INDEX_URL, vol_index_page

P1 = VOL_INDEX_URL
P2 = VOL_INDEX_URL + "?page=2"
P3 = VOL_INDEX_URL + "?page=3"
P4 = VOL_INDEX_URL + "?page=4"


def make_walker(make_fetcher, max_pages=10, **kwargs):
    return PaginationWalker(make_fetcher(), VolScraper(), max_pages=max_pages, **kwargs)


def test_cycle_is_detected_before_revisiting_first_page(session, make_fetcher):
    session.add(P1, vol_index_page([8100001, 8100002], next_href=P2))
    session.add(P2, vol_index_page([8100003], next_href=P3))
    session.add(P3, vol_index_page([8100004], next_href=P1))
    walker = make_walker(make_fetcher, max_pages=50)

    pages = list(walker.walk(P1))

    assert [page.url for page in pages] == [P1, P2, P3]
    assert [page.number for page in pages] == [1, 2, 3]
    assert session.urls() == [P1, P2, P3]
    assert walker.stop_reason == StopReason.CYCLE
    assert walker.state == WalkState.STOP


def test_stops_at_max_pages(session, make_fetcher):
    session.add(P1, vol_index_page([8100001]))
    session.add(P2, vol_index_page([8100002]))
    session.add(P3, vol_index_page([8100003]))
    walker = make_walker(make_fetcher, max_pages=2)

    pages = list(walker.walk(P1))

    assert len(pages) == 2
    assert session.urls() == [P1, P2]
    assert walker.stop_reason == StopReason.MAX_PAGES


def test_stops_without_next_page(session, make_fetcher):
    html = LAENDLEIMMO_INDEX.replace('<a rel="next" href="/kaufobjekt?page=2">Nächste Seite</a>', "")
    session.add(LAENDLEIMMO_INDEX_URL, html)
    walker = PaginationWalker(make_fetcher(), LaendleimmoScraper(), max_pages=10)

    pages = list(walker.walk(LAENDLEIMMO_INDEX_URL))

    assert len(pages) == 1
    assert walker.stop_reason == StopReason.NO_NEXT_PAGE


def test_empty_page_ends_walk(session, make_fetcher):
    session.add(P1, vol_index_page([8100001]))
    session.add(P2, vol_index_page([]))
    walker = make_walker(make_fetcher)

    pages = list(walker.walk(P1))

    assert [page.url for page in pages] == [P1]
    assert walker.pages_visited == 2
    assert walker.stop_reason == StopReason.EMPTY_PAGE


def test_repeated_page_content_ends_walk(session, make_fetcher):
    session.add(P1, vol_index_page([8100001, 8100002]))
    session.add(P2, vol_index_page([8100002, 8100001]))
    walker = make_walker(make_fetcher)

    pages = list(walker.walk(P1))

    assert [page.url for page in pages] == [P1]
    assert walker.stop_reason == StopReason.DUPLICATE_PAGE


def test_unreachable_first_page_is_a_job_error(session, make_fetcher):
    session.add(P1, FakeResponse(404, "not found"))
    walker = make_walker(make_fetcher)

    with pytest.raises(JobUnreachableError):
        list(walker.walk(P1))

    assert walker.pages_visited == 0
    assert walker.stop_reason == StopReason.FETCH_FAILED


def test_later_index_failure_stops_walk(session, make_fetcher):
    session.add(P1, vol_index_page([8100001]))
    session.add(P2, FakeResponse(500, "error"))
    walker = make_walker(make_fetcher)

    pages = list(walker.walk(P1))

    assert [page.url for page in pages] == [P1]
    assert walker.stop_reason == StopReason.FETCH_FAILED
    # Initial attempt plus two retries, no further pages
    assert session.urls() == [P1, P2, P2, P2]


def test_known_pages_streak_stops_walk(session, make_fetcher):
    session.add(P1, vol_index_page([8100001]))
    session.add(P2, vol_index_page([8100002]))
    session.add(P3, vol_index_page([8100003]))
    session.add(P4, vol_index_page([8100004]))
    known = {
        "https://www.vol.at/grund-und-boden-artikel/8100002",
        "https://www.vol.at/grund-und-boden-artikel/8100003",
    }
    walker = make_walker(make_fetcher, stop_after_known_pages=2, is_new=lambda url: url not in known)

    pages = list(walker.walk(P1))

    assert [page.url for page in pages] == [P1, P2, P3]
    assert walker.stop_reason == StopReason.KNOWN_PAGES


def test_known_pages_requires_dedup_predicate(make_fetcher):
    with pytest.raises(ValueError):
        make_walker(make_fetcher, stop_after_known_pages=1)


def test_closing_early_marks_walk_abandoned(session, make_fetcher):
    session.add(P1, vol_index_page([8100001]))
    session.add(P2, vol_index_page([8100002]))
    walker = make_walker(make_fetcher)

    pages = walker.walk(P1)
    next(pages)
    pages.close()

    assert walker.stop_reason == StopReason.ABANDONED
    assert session.urls() == [P1]


def test_walk_is_single_use(session, make_fetcher):
    session.add(P1, vol_index_page([8100001]))
    walker = make_walker(make_fetcher, max_pages=1)
    list(walker.walk(P1))

    with pytest.raises(RuntimeError):
        list(walker.walk(P1))
