"""
Browser session management for the marketplace scraper.

A ``BrowserSession`` owns one isolated Playwright browser (driver, browser,
context and page). Pipeline stages receive the session explicitly and only
talk to it through ``goto``, ``wait_for_selector``, ``evaluate`` and
``close``, so tests can substitute a fake with the same methods.
"""
import asyncio
import logging
from typing import Any, Optional

from fake_useragent import UserAgent
from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
    Response as PlaywrightResponse,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)

from app.config.scraping import ScrapingSettings
from app.exceptions.scraping import LaunchError, NavigationTimeout, ScrapingError

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-accelerated-2d-canvas',
    '--disable-gpu',
    '--disable-blink-features=AutomationControlled',
]

ACCEPT_HEADER = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"

SCROLL_HEIGHT_SCRIPT = "() => document.body.scrollHeight"
SCROLL_BY_SCRIPT = "(distance) => window.scrollBy(0, distance)"

BODY_WAIT_TIMEOUT = 10000  # milliseconds


class BrowserSession:
    """One browser instance, scoped to a single scrape run."""

    def __init__(
        self,
        playwright: Optional[Playwright] = None,
        browser: Optional[Browser] = None,
        context: Optional[BrowserContext] = None,
        page: Optional[Page] = None,
    ):
        self.playwright = playwright
        self.browser = browser
        self.context = context
        self.page = page
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def goto(self, url: str, timeout_ms: int) -> Optional[PlaywrightResponse]:
        """Load ``url`` and wait until the network is idle."""
        return await self.page.goto(url, wait_until="networkidle", timeout=timeout_ms)

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> None:
        await self.page.wait_for_selector(selector, timeout=timeout_ms)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run ``script`` in the page and return its JSON-serializable result."""
        return await self.page.evaluate(script, arg)

    async def _release(self, name: str, release) -> Optional[BaseException]:
        """Run one teardown step; a cancellation is returned, not raised, so later steps still run."""
        try:
            await release()
        except asyncio.CancelledError as e:
            logger.warning(f"Closing {name} was interrupted, finishing teardown")
            return e
        except PlaywrightError as e:
            logger.warning(f"Error closing {name}: {str(e)}")
        return None

    async def close(self) -> None:
        """Release page, context, browser and driver. Safe to call twice.

        Every step runs even if the caller is cancelled mid-teardown; the
        cancellation is re-raised once everything has been released.
        """
        if self.closed:
            return

        interrupted = None

        if self.page is not None:
            try:
                page_open = not self.page.is_closed()
            except PlaywrightError:
                page_open = False
            if page_open:
                interrupted = await self._release("page", self.page.close) or interrupted
            self.page = None

        if self.context is not None:
            interrupted = await self._release("context", self.context.close) or interrupted
            self.context = None

        if self.browser is not None:
            interrupted = await self._release("browser", self.browser.close) or interrupted
            self.browser = None

        if self.playwright is not None:
            interrupted = await self._release("Playwright", self.playwright.stop) or interrupted
            self.playwright = None

        self.closed = True
        logger.info("Browser closed")

        if interrupted is not None:
            raise interrupted


def get_user_agent(settings: ScrapingSettings) -> str:
    return settings.USER_AGENT or UserAgent().chrome


async def launch_session(settings: ScrapingSettings) -> BrowserSession:
    """
    Start an isolated browser with a desktop viewport, a realistic user agent
    and locale headers.

    Raises:
        LaunchError: if any part of the browser could not be started. Whatever
            was already started is torn down before raising.
    """
    session = BrowserSession()
    try:
        logger.info("Initializing browser...")
        session.playwright = await async_playwright().start()
        session.browser = await session.playwright.chromium.launch(
            headless=settings.HEADLESS,
            args=LAUNCH_ARGS,
        )
        session.context = await session.browser.new_context(
            viewport={'width': settings.VIEWPORT_WIDTH, 'height': settings.VIEWPORT_HEIGHT},
            user_agent=get_user_agent(settings),
            locale="en-US",
            extra_http_headers={
                'Accept-Language': settings.ACCEPT_LANGUAGE,
                'Accept': ACCEPT_HEADER,
            },
        )
        session.page = await session.context.new_page()
        logger.info("Browser initialized successfully")
        return session
    except asyncio.CancelledError:
        await session.close()
        raise
    except Exception as e:
        logger.error(f"Failed to initialize browser: {str(e)}")
        await session.close()
        raise LaunchError(f"Failed to initialize browser: {e}") from e


async def navigate(session: BrowserSession, url: str, timeout_ms: int, content_wait: float = 0.0) -> None:
    """
    Load ``url`` and wait for the page to settle.

    Raises:
        NavigationTimeout: if the network never went idle within ``timeout_ms``.
        ScrapingError: for any other navigation failure.
    """
    logger.info(f"Navigating to: {url}")
    try:
        response = await session.goto(url, timeout_ms)
    except PlaywrightTimeoutError as e:
        raise NavigationTimeout(f"Timeout loading {url} after {timeout_ms}ms", url) from e
    except PlaywrightError as e:
        raise ScrapingError(f"Error navigating to {url}: {e}", url) from e

    if response is not None:
        logger.info(f"Navigation status: {response.status}")

    try:
        await session.wait_for_selector("body", min(timeout_ms, BODY_WAIT_TIMEOUT))
    except PlaywrightTimeoutError:
        logger.debug("Body did not appear, continuing anyway")

    if content_wait:
        await asyncio.sleep(content_wait)


async def trigger_lazy_load(
    session: BrowserSession,
    step: int = 300,
    interval: float = 0.2,
    max_distance: int = 3000,
    settle: float = 2.0,
) -> int:
    """
    Scroll down in ``step`` pixel increments so lazy-loaded cards render.

    Stops once the scrolled distance reaches the page height (the page has
    stopped growing) or ``max_distance``, then waits ``settle`` seconds.
    Some cards may still be missing afterwards.

    Returns:
        int: total pixels scrolled
    """
    scrolled = 0
    while scrolled < max_distance:
        height = await session.evaluate(SCROLL_HEIGHT_SCRIPT)
        await session.evaluate(SCROLL_BY_SCRIPT, step)
        scrolled += step
        if scrolled >= int(height or 0):
            break
        await asyncio.sleep(interval)

    logger.debug(f"Scrolled {scrolled}px, waiting {settle:.1f}s for content to settle")
    await asyncio.sleep(settle)
    return scrolled
