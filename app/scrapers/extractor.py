"""
Listing extraction from a loaded marketplace page.

The page script only snapshots the DOM: for every listing anchor it returns
the link, the text fragments of the surrounding card and the first image.
Deciding which anchors become candidates happens here in Python.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set
from urllib.parse import urljoin

from app.config.scraping import ScrapingSettings
from app.exceptions.scraping import ExtractionParseError
from app.scrapers.browser import BrowserSession
from app.scrapers.parsing import (
    canonical_listing_url,
    classify_fragments,
    extract_listing_id,
)

logger = logging.getLogger(__name__)

SNAPSHOT_SCRIPT = """
({ selector, levels }) => {
  return Array.from(document.querySelectorAll(selector)).map((link) => {
    let container = link;
    for (let i = 0; i < levels && container; i++) {
      container = container.parentElement;
    }
    if (!container) {
      return { href: link.href, texts: null, image: null };
    }
    const texts = Array.from(container.querySelectorAll('span'))
      .map((span) => (span.textContent || '').trim())
      .filter((text) => text.length > 0);
    const img = container.querySelector('img');
    const image = img ? (img.getAttribute('src') || img.getAttribute('data-src')) : null;
    return { href: link.href, texts, image };
  });
}
"""


@dataclass
class RawListingCandidate:
    """Untyped listing data lifted from one card on the page."""
    source_id: str
    title_text: str
    price_text: str
    url: str
    image_url: Optional[str] = None


def _candidate_from_element(
    element: Dict[str, Any],
    source_id: str,
    base_url: str,
    min_title_length: int,
) -> Optional[RawListingCandidate]:
    texts = element.get("texts")
    if texts is None:
        raise ExtractionParseError(f"No card container for listing {source_id}")
    if not isinstance(texts, list):
        raise ExtractionParseError(f"Unexpected text payload for listing {source_id}")

    fragments = classify_fragments([str(t) for t in texts], min_title_length=min_title_length)
    if not fragments.price or not fragments.title:
        logger.debug(
            f"Discarding listing {source_id}: "
            f"price={'found' if fragments.price else 'missing'}, "
            f"title={'found' if fragments.title else 'missing'}"
        )
        return None

    image = element.get("image")
    return RawListingCandidate(
        source_id=source_id,
        title_text=fragments.title,
        price_text=fragments.price,
        url=canonical_listing_url(element["href"], base_url),
        image_url=urljoin(base_url, image) if isinstance(image, str) and image else None,
    )


def extract_candidates(
    elements: List[Dict[str, Any]],
    max_listings: int,
    base_url: str,
    min_title_length: int = 10,
) -> List[RawListingCandidate]:
    """
    Turn a DOM snapshot into at most ``max_listings`` candidates, one per
    listing id. The first anchor seen for an id wins; later anchors to the
    same item are ignored even if the first one did not yield a candidate.
    """
    candidates: List[RawListingCandidate] = []
    seen_ids: Set[str] = set()

    for element in elements:
        if len(candidates) >= max_listings:
            logger.info(f"Reached max listings ({max_listings}), ignoring the rest of the page")
            break

        try:
            if not isinstance(element, dict):
                raise ExtractionParseError(f"Unexpected element payload: {element!r}")

            href = element.get("href")
            if not isinstance(href, str):
                raise ExtractionParseError(f"Listing link without href: {element!r}")
            source_id = extract_listing_id(href)
            if not source_id:
                continue
            if source_id in seen_ids:
                continue
            seen_ids.add(source_id)

            candidate = _candidate_from_element(element, source_id, base_url, min_title_length)
            if candidate:
                candidates.append(candidate)
        except ExtractionParseError as e:
            logger.debug(f"Error parsing listing element: {e.message}")
            continue

    return candidates


async def extract_listings(session: BrowserSession, settings: ScrapingSettings) -> List[RawListingCandidate]:
    """Snapshot the current page and build the candidate list."""
    elements = await session.evaluate(
        SNAPSHOT_SCRIPT,
        {"selector": settings.LISTING_LINK_SELECTOR, "levels": settings.CONTAINER_ANCESTOR_LEVELS},
    )
    elements = elements or []
    logger.info(f"Found {len(elements)} listing links on the page")

    candidates = extract_candidates(
        elements,
        max_listings=settings.MAX_LISTINGS,
        base_url=settings.TARGET_URL,
        min_title_length=settings.MIN_TITLE_LENGTH,
    )
    logger.info(f"Scraped {len(candidates)} raw listings")
    return candidates
