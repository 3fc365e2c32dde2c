import pytest

from laendle_finder.config.settings import ETLSettings, Settings
from laendle_finder.etl.load import read_dataset
from laendle_finder.models.property_models import ListingStatus
from laendle_finder.models.scraper_models import JobStatus, ScrapeJobConfig
from laendle_finder.orchestrator import ScrapeOrchestrator
from laendle_finder.scrapers.http_fetcher import HttpFetcher

from conftest import FakeResponse
from pages import (
    LAENDLEIMMO_DETAIL,
    LAENDLEIMMO_DETAIL_URL,
    LAENDLEIMMO_INDEX,
    LAENDLEIMMO_INDEX_URL,
    VOL_ARTICLE,
    VOL_ARTICLE_HTML_ONLY,
    VOL_INDEX_URL,
    vol_article_url,
    vol_index_page,
)

LAENDLEIMMO_SECOND_URL = "https://www.laendleimmo.at/immobilien/wohnung/dachgeschosswohnung/vorarlberg/bregenz/23456"


@pytest.fixture
def output_path(tmp_path):
    return str(tmp_path / "properties.csv")


@pytest.fixture
def app_settings(scraper_settings, output_path):
    return Settings(scraper=scraper_settings, etl=ETLSettings(output_path=output_path), jobs=[])


@pytest.fixture
def orchestrator(app_settings, session, clock):
    def fetcher_factory(job, scraper_settings):
        return HttpFetcher(scraper_settings, cookie=job.cookie, session=session, clock=clock, sleep=clock.sleep)

    return ScrapeOrchestrator(app_settings, fetcher_factory=fetcher_factory)


def vol_job(output_path, **kwargs):
    return ScrapeJobConfig(
        name="sold",
        scraper="vol",
        base_url=VOL_INDEX_URL,
        listing_status=ListingStatus.SOLD,
        output_path=output_path,
        **kwargs,
    )


def laendleimmo_job(output_path, **kwargs):
    return ScrapeJobConfig(
        name="available",
        scraper="laendleimmo",
        base_url=LAENDLEIMMO_INDEX_URL,
        listing_status=ListingStatus.AVAILABLE,
        output_path=output_path,
        **kwargs,
    )


@pytest.fixture
def vol_site(session):
    session.add(VOL_INDEX_URL, vol_index_page([8100001, 8100002]))
    session.add(VOL_INDEX_URL + "?page=2", vol_index_page([]))
    session.add(vol_article_url(8100001), VOL_ARTICLE)
    session.add(vol_article_url(8100002), VOL_ARTICLE_HTML_ONLY)
    return session


@pytest.fixture
def laendleimmo_site(session):
    session.add(LAENDLEIMMO_INDEX_URL,
                LAENDLEIMMO_INDEX.replace('<a rel="next" href="/kaufobjekt?page=2">Nächste Seite</a>', ""))
    session.add(LAENDLEIMMO_DETAIL_URL, LAENDLEIMMO_DETAIL)
    session.add(LAENDLEIMMO_SECOND_URL, "<html><h1>Wohnung in Bregenz um 390.000 Euro</h1></html>")
    return session


def test_job_writes_records_and_summary(orchestrator, vol_site, output_path):
    summary, = orchestrator.run([vol_job(output_path)])

    assert summary.status == JobStatus.COMPLETED
    assert summary.succeeded
    assert summary.pages_visited == 2
    assert summary.links_found == 2
    assert summary.records_written == 2
    assert summary.records_skipped == 0
    assert summary.records_failed == 0
    assert summary.stop_reason == "empty_page"

    frame = read_dataset(output_path)
    assert list(frame['source_url']) == [vol_article_url(8100001), vol_article_url(8100002)]
    assert set(frame['listing_status']) == {"sold"}


def test_unreachable_job_does_not_stop_the_next_one(orchestrator, session, laendleimmo_site, output_path):
    session.add(VOL_INDEX_URL, FakeResponse(404, "not found"))

    failed, succeeded = orchestrator.run([vol_job(output_path), laendleimmo_job(output_path)])

    assert failed.status == JobStatus.FAILED
    assert failed.records_written == 0
    assert "unreachable" in failed.failure
    assert not failed.succeeded

    assert succeeded.status == JobStatus.COMPLETED
    assert succeeded.records_written == 2
    assert list(read_dataset(output_path)['listing_status']) == ["available", "available"]


def test_rerun_writes_nothing_new(orchestrator, vol_site, output_path):
    orchestrator.run([vol_job(output_path)])
    fetched_before = len(vol_site.requests)

    summary, = orchestrator.run([vol_job(output_path)])

    assert summary.records_written == 0
    assert summary.records_skipped == 2
    assert len(read_dataset(output_path)) == 2
    # Only the two index pages were requested again
    assert vol_site.urls()[fetched_before:] == [VOL_INDEX_URL, VOL_INDEX_URL + "?page=2"]


def test_failed_listing_is_retried_on_next_run(orchestrator, vol_site, output_path):
    vol_site.add(vol_article_url(8100002), FakeResponse(410, "gone"), VOL_ARTICLE_HTML_ONLY)

    first, = orchestrator.run([vol_job(output_path)])
    second, = orchestrator.run([vol_job(output_path)])

    assert (first.records_written, first.records_failed) == (1, 1)
    assert first.failed_urls[0][0] == vol_article_url(8100002)
    assert first.status == JobStatus.COMPLETED
    assert (second.records_written, second.records_skipped) == (1, 1)
    assert len(read_dataset(output_path)) == 2


def test_write_failure_is_recorded_per_listing(orchestrator, vol_site, tmp_path):
    foreign = tmp_path / "foreign.csv"
    foreign.write_text("url,preis\n", encoding="utf-8")

    summary, = orchestrator.run([vol_job(str(foreign))])

    assert summary.status == JobStatus.COMPLETED
    assert summary.records_written == 0
    assert summary.records_failed == 2


def test_skipped_job_makes_no_requests(orchestrator, session, output_path):
    summary, = orchestrator.run([vol_job(output_path, skip=True)])

    assert summary.status == JobStatus.SKIPPED
    assert session.requests == []


def test_max_items_caps_detail_pages(orchestrator, vol_site, output_path):
    summary, = orchestrator.run([vol_job(output_path, max_items=1)])

    assert summary.records_written == 1
    assert summary.stop_reason == "max_items"
    assert vol_article_url(8100002) not in vol_site.urls()


def test_cookie_is_passed_to_every_request(orchestrator, vol_site, output_path):
    orchestrator.run([vol_job(output_path, cookie="sid=42")])

    assert {request['headers'].get('Cookie') for request in vol_site.requests} == {"sid=42"}


def test_unexpected_error_fails_only_that_job(orchestrator, laendleimmo_site, output_path):
    broken = ScrapeJobConfig(name="broken", scraper="unknown-site", base_url="https://example.com",
                             listing_status=ListingStatus.SOLD, output_path=output_path)

    first, second = orchestrator.run([broken, laendleimmo_job(output_path)])

    assert first.status == JobStatus.FAILED
    assert "ValueError" in first.failure
    assert second.status == JobStatus.COMPLETED


def test_configured_jobs_get_shared_output_and_cookie(session, clock, scraper_settings, vol_site, tmp_path):
    cookie_file = tmp_path / "cookie.txt"
    cookie_file.write_text("consent=1; sid=abc\n", encoding="utf-8")
    output_path = str(tmp_path / "shared.csv")
    app_settings = Settings(
        scraper=scraper_settings,
        etl=ETLSettings(output_path=output_path),
        cookie_file=str(cookie_file),
        jobs=[ScrapeJobConfig(name="sold", scraper="vol", base_url=VOL_INDEX_URL, listing_status=ListingStatus.SOLD)],
    )

    def fetcher_factory(job, settings):
        return HttpFetcher(settings, cookie=job.cookie, session=session, clock=clock, sleep=clock.sleep)

    summary, = ScrapeOrchestrator(app_settings, fetcher_factory=fetcher_factory).run()

    assert summary.records_written == 2
    assert len(read_dataset(output_path)) == 2
    assert session.requests[0]['headers']['Cookie'] == "consent=1; sid=abc"
