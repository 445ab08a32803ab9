from typing import List
import logging

from pydantic import ValidationError

from app.exceptions.scraping import NormalizationError
from app.schemas.car import NormalizedListing
from app.scrapers.extractor import RawListingCandidate
from app.scrapers.parsing import clean_text, parse_mileage, parse_price, parse_year

logger = logging.getLogger(__name__)

def normalize_listing(
    candidate: RawListingCandidate,
    default_currency: str = "PHP",
    default_location: str = "Manila",
) -> NormalizedListing:
    """
    Turn a raw candidate into a listing that is safe to store.

    Raises:
        NormalizationError: if the price cannot be parsed or the result fails validation
    """
    price = parse_price(candidate.price_text, default_currency=default_currency)
    if price is None:
        raise NormalizationError(f"Could not parse price '{candidate.price_text}'", candidate.url)

    title = clean_text(candidate.title_text)

    try:
        return NormalizedListing(
            title=title,
            price=price.amount,
            currency=price.currency,
            year=parse_year(title),
            mileage=parse_mileage(title),
            location=default_location,
            source_url=candidate.url,
            source_listing_id=candidate.source_id,
            image_url=candidate.image_url,
        )
    except ValidationError as e:
        raise NormalizationError(f"Invalid listing data: {e}", candidate.url) from e

def normalize_candidates(
    candidates: List[RawListingCandidate],
    default_currency: str = "PHP",
    default_location: str = "Manila",
) -> List[NormalizedListing]:
    """Normalize every candidate, dropping the ones that fail."""
    normalized = []
    for candidate in candidates:
        try:
            normalized.append(normalize_listing(
                candidate,
                default_currency=default_currency,
                default_location=default_location,
            ))
        except NormalizationError as e:
            logger.warning(f"Dropping listing {candidate.source_id}: {e.message}")
            continue

    logger.info(f"Processed {len(normalized)}/{len(candidates)} valid listings")
    return normalized
