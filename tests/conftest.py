from __future__ import annotations

import os

# The engine in app.db.session is built at import time
os.environ.setdefault("SQLALCHEMY_DATABASE_URI", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "testing")

from decimal import Decimal
from types import SimpleNamespace
from typing import Any, Callable, Iterable

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config.scraping import ScrapingSettings
from app.core.caching import cache
from app.db.base_class import Base
from app.schemas.car import NormalizedListing
from app.scrapers.browser import SCROLL_BY_SCRIPT, SCROLL_HEIGHT_SCRIPT
from app.scrapers.extractor import SNAPSHOT_SCRIPT


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autoflush=False, bind=engine, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def scraping_settings() -> ScrapingSettings:
    return ScrapingSettings(
        TARGET_URL="https://www.facebook.com/marketplace/manila/cars?minPrice=350000",
        USER_AGENT="test-agent",
        NAVIGATION_TIMEOUT=1000,
        NAVIGATION_RETRIES=1,
        RETRY_DELAY=0,
        CONTENT_WAIT=0,
        SCROLL_INTERVAL=0,
        SCROLL_SETTLE=0,
        MAX_LISTINGS=50,
        RUN_TIMEOUT=5,
    )


def make_listing(item_id: int, **overrides: Any) -> NormalizedListing:
    values = {
        "title": f"2015 Toyota Vios 1.3 E MT unit {item_id}",
        "price": Decimal("350000"),
        "currency": "PHP",
        "year": 2015,
        "mileage": None,
        "location": "Manila",
        "source_url": f"https://www.facebook.com/marketplace/item/{item_id}/",
        "source_listing_id": str(item_id),
    }
    values.update(overrides)
    return NormalizedListing(**values)


def make_element(item_id: int, price: str = "₱350,000", title: str | None = None, **extra: Any) -> dict[str, Any]:
    title = title or f"2015 Toyota Vios 1.3 E MT unit {item_id}"
    element = {
        "href": f"https://www.facebook.com/marketplace/item/{item_id}/?ref=search&referral_code=abc",
        "texts": [price, title, "Quezon City, PH", "80K km"],
        "image": f"https://scontent.example.com/{item_id}.jpg",
    }
    element.update(extra)
    return element


class FakeSession:
    """Stands in for BrowserSession: same four methods, no browser."""

    def __init__(
        self,
        elements: Iterable[dict[str, Any]] = (),
        page_height: int = 1000,
        goto: Callable[[str, int], Any] | None = None,
    ) -> None:
        self.elements = list(elements)
        self.page_height = page_height
        self._goto = goto
        self.visited: list[str] = []
        self.scrolls: list[int] = []
        self.snapshot_args: list[Any] = []
        self.close_calls = 0
        self.closed = False

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def goto(self, url: str, timeout_ms: int) -> Any:
        self.visited.append(url)
        if self._goto is not None:
            return await self._goto(url, timeout_ms)
        return SimpleNamespace(status=200)

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> None:
        return None

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == SCROLL_HEIGHT_SCRIPT:
            return self.page_height
        if script == SCROLL_BY_SCRIPT:
            self.scrolls.append(arg)
            return None
        if script == SNAPSHOT_SCRIPT:
            self.snapshot_args.append(arg)
            return self.elements
        raise AssertionError(f"unexpected script: {script}")

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True


def make_launcher(*sessions: FakeSession):
    """Launcher that hands out ``sessions`` in order, one per run."""
    queue = list(sessions)
    launched: list[FakeSession] = []

    async def _launch(settings: ScrapingSettings) -> FakeSession:
        session = queue.pop(0)
        launched.append(session)
        return session

    _launch.launched = launched
    return _launch
