import logging
import math
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import asc, case, desc, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.caching import cache
from app.core.config import settings
from app.db.models.car import CarListing as CarListingModel, utcnow
from app.exceptions.scraping import PersistenceError
from app.schemas.car import (
    CarListing,
    CarListingUpdate,
    ListingFilter,
    ListingsPage,
    ListingStatistics,
    NormalizedListing,
    Pagination,
)

logger = logging.getLogger(__name__)

STATS_CACHE_KEY = "car_listings:statistics"

SORT_COLUMNS = {
    "created_at": CarListingModel.created_at,
    "price": CarListingModel.price,
    "year": CarListingModel.year,
    "title": CarListingModel.title,
}

class CarService:
    """Storage and query operations for car listings."""

    async def upsert_batch(self, db: Session, listings: List[NormalizedListing]) -> List[CarListing]:
        """
        Insert or update a batch of listings keyed by ``source_url`` in one transaction.

        A listing whose URL is already stored is updated in place, refreshed
        with a new ``last_scraped_at`` and marked active again. Either every
        listing in the batch is written or none is.

        Args:
            db: Database session
            listings: Normalized listings from one scrape run

        Returns:
            The stored listings, in batch order

        Raises:
            PersistenceError: if any listing fails to store; the whole batch is rolled back
        """
        scraped_at = utcnow()
        try:
            stored = [self._upsert_one(db, listing, scraped_at) for listing in listings]
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error in bulk upsert, rolled back {len(listings)} listings: {str(e)}")
            raise PersistenceError(f"Failed to store listings: {e}") from e

        cache.delete(STATS_CACHE_KEY)
        logger.info(f"Bulk upserted {len(stored)} listings")
        return [CarListing.model_validate(listing) for listing in stored]

    def _upsert_one(self, db: Session, listing: NormalizedListing, scraped_at) -> CarListingModel:
        values = {
            "title": listing.title,
            "price": listing.price,
            "currency": listing.currency,
            "year": listing.year,
            "mileage": listing.mileage,
            "location": listing.location,
            "listing_id": listing.source_listing_id,
            "image_url": listing.image_url,
            "description": listing.description,
            "last_scraped_at": scraped_at,
            "is_active": True,
        }

        existing = db.query(CarListingModel).filter(
            CarListingModel.source_url == listing.source_url
        ).first()

        if existing:
            for key, value in values.items():
                setattr(existing, key, value)
            record = existing
        else:
            record = CarListingModel(source_url=listing.source_url, **values)
            db.add(record)

        # Flush per listing so a later duplicate URL in the same batch finds this row
        db.flush()
        return record

    async def find_many(self, db: Session, filters: ListingFilter) -> ListingsPage:
        """
        Retrieve listings matching ``filters`` with pagination.

        Args:
            db: Database session
            filters: Price/year ranges, location substring, free-text search,
                sort and page settings

        Returns:
            One page of listings plus pagination details
        """
        query = db.query(CarListingModel)

        if filters.is_active is not None:
            query = query.filter(CarListingModel.is_active == filters.is_active)
        if filters.min_price is not None:
            query = query.filter(CarListingModel.price >= filters.min_price)
        if filters.max_price is not None:
            query = query.filter(CarListingModel.price <= filters.max_price)
        if filters.min_year is not None:
            query = query.filter(CarListingModel.year >= filters.min_year)
        if filters.max_year is not None:
            query = query.filter(CarListingModel.year <= filters.max_year)
        if filters.location:
            query = query.filter(CarListingModel.location.ilike(f"%{filters.location}%"))
        if filters.search:
            pattern = f"%{filters.search}%"
            query = query.filter(or_(
                CarListingModel.title.ilike(pattern),
                CarListingModel.description.ilike(pattern),
            ))

        total = query.count()

        order = desc if filters.sort_order == "DESC" else asc
        items = (
            query.order_by(order(SORT_COLUMNS[filters.sort_by]), order(CarListingModel.id))
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
            .all()
        )

        total_pages = math.ceil(total / filters.limit)
        return ListingsPage(
            items=[CarListing.model_validate(item) for item in items],
            pagination=Pagination(
                page=filters.page,
                limit=filters.limit,
                total=total,
                total_pages=total_pages,
                has_next=filters.page < total_pages,
                has_prev=filters.page > 1,
            ),
        )

    def _get_active(self, db: Session, listing_id: int) -> Optional[CarListingModel]:
        return db.query(CarListingModel).filter(
            CarListingModel.id == listing_id,
            CarListingModel.is_active.is_(True),
        ).first()

    async def find_one(self, db: Session, listing_id: int) -> Optional[CarListing]:
        """Retrieve a single active listing by ID, or None."""
        listing = self._get_active(db, listing_id)
        return CarListing.model_validate(listing) if listing else None

    async def update(self, db: Session, listing_id: int, updates: CarListingUpdate) -> Optional[CarListing]:
        """
        Apply ``updates`` to an active listing.

        Returns:
            The updated listing, or None if it does not exist or is inactive

        Raises:
            ValueError: if ``updates`` carries no fields
        """
        fields = updates.model_dump(exclude_unset=True, exclude_none=True)
        if not fields:
            raise ValueError("No valid fields to update")

        listing = self._get_active(db, listing_id)
        if not listing:
            return None

        for key, value in fields.items():
            setattr(listing, key, value)
        db.commit()
        db.refresh(listing)

        cache.delete(STATS_CACHE_KEY)
        return CarListing.model_validate(listing)

    async def soft_delete(self, db: Session, listing_id: int) -> bool:
        """Mark a listing inactive. The row is kept."""
        listing = db.query(CarListingModel).filter(CarListingModel.id == listing_id).first()
        if not listing:
            return False

        listing.is_active = False
        db.commit()

        cache.delete(STATS_CACHE_KEY)
        return True

    async def get_statistics(self, db: Session) -> ListingStatistics:
        """Aggregate figures over all stored listings, cached for a short time."""
        cached = cache.get(STATS_CACHE_KEY)
        if cached is not None:
            return cached

        row = db.query(
            func.count(CarListingModel.id),
            func.count(case((CarListingModel.is_active.is_(True), 1))),
            func.avg(CarListingModel.price),
            func.min(CarListingModel.price),
            func.max(CarListingModel.price),
            func.avg(CarListingModel.year),
            func.count(func.distinct(CarListingModel.location)),
        ).one()

        total, active, avg_price, min_price, max_price, avg_year, locations = row
        stats = ListingStatistics(
            total_listings=total or 0,
            active_listings=active or 0,
            average_price=Decimal(str(avg_price or 0)).quantize(Decimal("0.01")),
            min_price=Decimal(str(min_price or 0)),
            max_price=Decimal(str(max_price or 0)),
            average_year=round(avg_year) if avg_year else None,
            unique_locations=locations or 0,
        )
        cache.set(STATS_CACHE_KEY, stats, ttl=settings.STATS_CACHE_TTL)
        return stats
