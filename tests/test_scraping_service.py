import asyncio

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from app.db.models.car import CarListing as CarListingModel
from app.exceptions.scraping import (
    LaunchError,
    NavigationTimeout,
    PersistenceError,
    RunDeadlineExceeded,
    ScrapeInProgressError,
)
from app.scrapers.browser import BrowserSession
from app.scrapers.extractor import SNAPSHOT_SCRIPT
from app.services.scraping import ScrapeState, ScrapingService

from conftest import FakeSession, make_element, make_launcher


def _timeouts(count):
    """goto replacement that times out ``count`` times, then loads."""
    remaining = [count]

    async def _goto(url, timeout_ms):
        if remaining[0] > 0:
            remaining[0] -= 1
            raise PlaywrightTimeoutError(f"Timeout {timeout_ms}ms exceeded")
        return None

    return _goto


def test_run_once_stores_listings(db, scraping_settings):
    session = FakeSession(elements=[make_element(1), make_element(2), make_element(2)])
    service = ScrapingService(settings=scraping_settings, launcher=make_launcher(session))

    result = asyncio.run(service.run_once(db))

    assert result.stored_count == 2
    assert [listing.listing_id for listing in result.listings] == ["1", "2"]
    assert db.query(CarListingModel).count() == 2
    assert session.visited == [scraping_settings.TARGET_URL]
    assert session.close_calls == 1
    assert service.state is ScrapeState.DONE


def test_run_once_empty_page_is_success(db, scraping_settings):
    session = FakeSession(elements=[])
    service = ScrapingService(settings=scraping_settings, launcher=make_launcher(session))

    result = asyncio.run(service.run_once(db))

    assert result.stored_count == 0
    assert result.listings == []
    assert session.closed
    assert service.state is ScrapeState.DONE


def test_run_once_keeps_listings_that_normalize(db, scraping_settings):
    session = FakeSession(elements=[make_element(1), make_element(2, title="Toyota " * 100)])
    service = ScrapingService(settings=scraping_settings, launcher=make_launcher(session))

    result = asyncio.run(service.run_once(db))

    assert result.stored_count == 1
    assert result.listings[0].listing_id == "1"


def test_run_once_twice_updates_in_place(db, scraping_settings):
    launcher = make_launcher(
        FakeSession(elements=[make_element(1)]),
        FakeSession(elements=[make_element(1, price="₱300,000")]),
    )
    service = ScrapingService(settings=scraping_settings, launcher=launcher)

    first = asyncio.run(service.run_once(db))
    second = asyncio.run(service.run_once(db))

    assert db.query(CarListingModel).count() == 1
    assert first.listings[0].id == second.listings[0].id
    assert str(second.listings[0].price) == "300000"


def test_navigation_retried_once(db, scraping_settings):
    session = FakeSession(elements=[make_element(1)], goto=_timeouts(1))
    service = ScrapingService(settings=scraping_settings, launcher=make_launcher(session))

    result = asyncio.run(service.run_once(db))

    assert result.stored_count == 1
    assert len(session.visited) == 2


def test_navigation_failure_releases_session_and_next_run_succeeds(db, scraping_settings):
    failing = FakeSession(elements=[make_element(1)], goto=_timeouts(2))
    working = FakeSession(elements=[make_element(1)])
    service = ScrapingService(settings=scraping_settings, launcher=make_launcher(failing, working))

    with pytest.raises(NavigationTimeout):
        asyncio.run(service.trigger_scrape(db))

    assert failing.close_calls == 1
    assert service.state is ScrapeState.FAILED
    assert db.query(CarListingModel).count() == 0

    result = asyncio.run(service.trigger_scrape(db))

    assert result.stored_count == 1
    assert working.close_calls == 1


def test_launch_failure_propagates(db, scraping_settings):
    async def _launcher(settings):
        raise LaunchError("Failed to initialize browser")

    service = ScrapingService(settings=scraping_settings, launcher=_launcher)

    with pytest.raises(LaunchError):
        asyncio.run(service.run_once(db))
    assert service.state is ScrapeState.FAILED


def test_persistence_failure_propagates(db, scraping_settings):
    class _BrokenStore:
        async def upsert_batch(self, db, listings):
            raise PersistenceError("Failed to store listings")

    session = FakeSession(elements=[make_element(1)])
    service = ScrapingService(
        settings=scraping_settings,
        launcher=make_launcher(session),
        car_service=_BrokenStore(),
    )

    with pytest.raises(PersistenceError):
        asyncio.run(service.run_once(db))
    assert session.closed
    assert service.state is ScrapeState.FAILED


def test_run_deadline_closes_session(db, scraping_settings):
    async def _hang(url, timeout_ms):
        await asyncio.sleep(10)

    session = FakeSession(goto=_hang)
    settings = scraping_settings.model_copy(update={"RUN_TIMEOUT": 0.05})
    service = ScrapingService(settings=settings, launcher=make_launcher(session))

    with pytest.raises(RunDeadlineExceeded):
        asyncio.run(service.run_once(db))

    assert session.close_calls == 1
    assert service.state is ScrapeState.FAILED


def test_trigger_scrape_rejects_concurrent_run(db, scraping_settings):
    release = None

    async def _wait_for_release(url, timeout_ms):
        await release.wait()

    session = FakeSession(elements=[make_element(1)], goto=_wait_for_release)
    service = ScrapingService(settings=scraping_settings, launcher=make_launcher(session))

    async def _scenario():
        nonlocal release
        release = asyncio.Event()
        first = asyncio.create_task(service.trigger_scrape(db))
        while not service.is_running:
            await asyncio.sleep(0)

        with pytest.raises(ScrapeInProgressError):
            await service.trigger_scrape(db)

        release.set()
        return await first

    result = asyncio.run(_scenario())

    assert result.stored_count == 1
    assert not service.is_running


class _Part:
    """Page, context, browser or driver stand-in that records its release."""

    def __init__(self, name, released, delay=0.0):
        self.name = name
        self.released = released
        self.delay = delay

    def is_closed(self):
        return False

    async def goto(self, url, wait_until=None, timeout=None):
        return None

    async def wait_for_selector(self, selector, timeout=None):
        return None

    async def evaluate(self, script, arg=None):
        return [] if script == SNAPSHOT_SCRIPT else 0

    async def close(self):
        await asyncio.sleep(self.delay)
        self.released.append(self.name)

    async def stop(self):
        self.released.append(self.name)


def test_run_deadline_during_teardown_still_releases_browser(db, scraping_settings):
    released = []
    session = BrowserSession(
        playwright=_Part("playwright", released),
        browser=_Part("browser", released),
        context=_Part("context", released),
        page=_Part("page", released, delay=0.5),
    )

    async def _launcher(settings):
        return session

    settings = scraping_settings.model_copy(update={"RUN_TIMEOUT": 0.1})
    service = ScrapingService(settings=settings, launcher=_launcher)

    with pytest.raises(RunDeadlineExceeded):
        asyncio.run(service.run_once(db))

    # the page close was cut short by the deadline; everything after it still ran
    assert released == ["context", "browser", "playwright"]
    assert session.closed is True
    assert session.browser is None
    assert service.state is ScrapeState.FAILED
