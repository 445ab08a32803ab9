#!/usr/bin/env python3
"""
Run one marketplace scrape from the command line and store the results.

Exits with 0 when the run succeeds, even if no listings were found, and 1
when the run fails.
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.append(str(project_root))

from app.config.scraping import ScrapingSettings, settings as default_settings  # noqa: E402
from app.core.logging import setup_logging  # noqa: E402
from app.db.init_db import init_db  # noqa: E402
from app.db.session import get_db_session  # noqa: E402
from app.exceptions.scraping import ScrapingError  # noqa: E402
from app.schemas.car import ScrapeResult  # noqa: E402
from app.services.scraping import ScrapingService  # noqa: E402

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Scrape car listings from the marketplace')
    parser.add_argument('--url', default=default_settings.TARGET_URL,
                        help='Marketplace search page to scrape')
    parser.add_argument('--max-listings', type=int, default=default_settings.MAX_LISTINGS,
                        help=f'Maximum number of listings to scrape (default: {default_settings.MAX_LISTINGS})')
    parser.add_argument('--headed', action='store_true',
                        help='Show the browser window instead of running headless')
    parser.add_argument('--timeout', type=int, default=default_settings.NAVIGATION_TIMEOUT,
                        help='Navigation timeout in milliseconds')
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> ScrapingSettings:
    return default_settings.model_copy(update={
        'TARGET_URL': args.url,
        'MAX_LISTINGS': args.max_listings,
        'HEADLESS': not args.headed,
        'NAVIGATION_TIMEOUT': args.timeout,
    })


async def run_scraper(settings: ScrapingSettings) -> ScrapeResult:
    service = ScrapingService(settings=settings)
    with get_db_session() as db:
        return await service.run_once(db)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    settings = build_settings(args)
    logger.info(f"Starting scraper (url={settings.TARGET_URL}, max_listings={settings.MAX_LISTINGS}, "
                f"headless={settings.HEADLESS})")

    try:
        init_db()
        result = asyncio.run(run_scraper(settings))
    except ScrapingError as e:
        logger.error(f"Scraping failed: {e.message}")
        return 1
    except SQLAlchemyError as e:
        logger.error(f"Database unavailable: {e}")
        return 1

    logger.info(f"Successfully stored {result.stored_count} listings")
    for listing in result.listings:
        logger.info(f"  {listing.currency} {listing.price:,} - {listing.title}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
