import asyncio
import logging
from enum import Enum, auto
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.orm import Session

from app.config.scraping import ScrapingSettings, settings as default_settings
from app.exceptions.scraping import (
    NavigationTimeout,
    RunDeadlineExceeded,
    ScrapeInProgressError,
    ScrapingError,
)
from app.schemas.car import NormalizedListing, ScrapeResult
from app.scrapers.browser import BrowserSession, launch_session, navigate, trigger_lazy_load
from app.scrapers.extractor import extract_listings
from app.services.car import CarService
from app.services.normalization import normalize_candidates
from app.utils.error_handling import ErrorHandler

logger = logging.getLogger(__name__)

Launcher = Callable[[ScrapingSettings], Awaitable[BrowserSession]]


class ScrapeState(Enum):
    """Where a scrape run currently is."""
    IDLE = auto()
    LAUNCHING = auto()
    NAVIGATING = auto()
    EXTRACTING = auto()
    NORMALIZING = auto()
    PERSISTING = auto()
    DONE = auto()
    FAILED = auto()


class ScrapingService:
    """
    Runs the scrape pipeline end to end: launch a browser, load the target
    page, extract and normalize listings, then store them in one batch.

    Only one run may be active at a time; ``trigger_scrape`` refuses to start
    a second one while the first holds the lock.
    """

    def __init__(
        self,
        settings: Optional[ScrapingSettings] = None,
        launcher: Optional[Launcher] = None,
        car_service: Optional[CarService] = None,
    ):
        self.settings = settings or default_settings
        self.launcher = launcher or launch_session
        self.car_service = car_service or CarService()
        self.state = ScrapeState.IDLE
        self._lock = asyncio.Lock()

    def _transition(self, state: ScrapeState) -> None:
        logger.debug(f"Scrape state {self.state.name} -> {state.name}")
        self.state = state

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def trigger_scrape(self, db: Session) -> ScrapeResult:
        """
        Run the pipeline once unless a run is already in progress.

        Raises:
            ScrapeInProgressError: if another run holds the lock
            ScrapingError: if the run failed
        """
        if self._lock.locked():
            raise ScrapeInProgressError("A scraping run is already in progress")

        async with self._lock:
            logger.info("=== Starting scraping process ===")
            result = await self.run_once(db)
            logger.info(f"=== Scraping completed: {result.stored_count} listings stored ===")
            return result

    async def run_once(self, db: Session) -> ScrapeResult:
        """
        Scrape the target page once and persist what was found.

        An empty page is a successful run with ``stored_count == 0``.

        Raises:
            LaunchError: the browser could not be started
            NavigationTimeout: the page did not settle, even after retrying
            PersistenceError: the batch could not be stored; nothing was written
            RunDeadlineExceeded: the run took longer than ``RUN_TIMEOUT``
        """
        self._transition(ScrapeState.IDLE)
        timeout = self.settings.RUN_TIMEOUT
        try:
            if timeout:
                return await asyncio.wait_for(self._run(db), timeout=timeout)
            return await self._run(db)
        except asyncio.TimeoutError as e:
            self._transition(ScrapeState.FAILED)
            logger.error(f"Scraping run exceeded its {timeout}s deadline")
            raise RunDeadlineExceeded(f"Scraping run exceeded {timeout}s", self.settings.TARGET_URL) from e

    def _fail(self, error: Exception) -> ScrapingError:
        """Move to FAILED and return the classified error for the caller to raise."""
        self._transition(ScrapeState.FAILED)
        logger.error(f"Scraping process failed: {str(error)}", exc_info=error)
        scraping_error = ErrorHandler.handle_scraping_error(error, self.settings.TARGET_URL)
        if scraping_error is not error:
            scraping_error.__cause__ = error
        return scraping_error

    async def _run(self, db: Session) -> ScrapeResult:
        try:
            self._transition(ScrapeState.LAUNCHING)
            session = await self.launcher(self.settings)
        except Exception as e:
            raise self._fail(e)

        # Released on every exit path, including cancellation by the run deadline
        async with session:
            try:
                listings = await self._scrape(session)
            except asyncio.CancelledError:
                self._transition(ScrapeState.FAILED)
                raise
            except Exception as e:
                raise self._fail(e)

        if not listings:
            logger.warning("No listings scraped")
            self._transition(ScrapeState.DONE)
            return ScrapeResult(stored_count=0, listings=[])

        self._transition(ScrapeState.PERSISTING)
        logger.info(f"Storing {len(listings)} listings in database...")
        try:
            stored = await self.car_service.upsert_batch(db, listings)
        except Exception as e:
            raise self._fail(e)

        self._transition(ScrapeState.DONE)
        return ScrapeResult(stored_count=len(stored), listings=stored)

    async def _scrape(self, session: BrowserSession) -> List[NormalizedListing]:
        """Navigate, lazy-load, extract and normalize. The caller owns ``session``."""
        self._transition(ScrapeState.NAVIGATING)
        await self._navigate_with_retry(session)
        await trigger_lazy_load(
            session,
            step=self.settings.SCROLL_STEP,
            interval=self.settings.SCROLL_INTERVAL,
            max_distance=self.settings.SCROLL_MAX_DISTANCE,
            settle=self.settings.SCROLL_SETTLE,
        )

        self._transition(ScrapeState.EXTRACTING)
        candidates = await extract_listings(session, self.settings)

        self._transition(ScrapeState.NORMALIZING)
        return normalize_candidates(
            candidates,
            default_currency=self.settings.DEFAULT_CURRENCY,
            default_location=self.settings.DEFAULT_LOCATION,
        )

    async def _navigate_with_retry(self, session: BrowserSession) -> None:
        url = self.settings.TARGET_URL
        retries = self.settings.NAVIGATION_RETRIES
        for attempt in range(retries + 1):
            try:
                await navigate(
                    session,
                    url,
                    timeout_ms=self.settings.NAVIGATION_TIMEOUT,
                    content_wait=self.settings.CONTENT_WAIT,
                )
                return
            except NavigationTimeout as e:
                if attempt >= retries or not ErrorHandler.should_retry(e):
                    logger.error(f"Failed to load {url} after {attempt + 1} attempts")
                    raise
                delay = ErrorHandler.get_retry_delay(e, attempt, base_delay=self.settings.RETRY_DELAY)
                logger.warning(
                    f"Timeout loading {url}, retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{retries + 1})"
                )
                await asyncio.sleep(delay)
