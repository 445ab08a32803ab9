from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, DateTime, Text, Boolean, Numeric, Index,
    CheckConstraint
)

from app.db.base_class import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CarListing(Base):
    """A car listing scraped from the marketplace."""
    __tablename__ = "car_listings"
    __table_args__ = (
        Index('idx_car_listings_price', 'price'),
        Index('idx_car_listings_year', 'year'),
        Index('idx_car_listings_location', 'location'),
        Index('idx_car_listings_created_at', 'created_at'),
        Index('idx_car_listings_is_active', 'is_active'),
        CheckConstraint('price >= 0', name='ck_car_listings_price_non_negative'),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Basic Information
    title = Column(String(500), nullable=False, comment="Listing title")
    description = Column(Text, nullable=True, comment="Detailed description")

    # Pricing
    price = Column(Numeric(12, 2), nullable=False, comment="Asking price")
    currency = Column(String(10), nullable=False, default="PHP", comment="ISO currency code")

    # Vehicle Details
    year = Column(Integer, nullable=True, comment="Manufacturing year")
    mileage = Column(String(100), nullable=True, comment="Mileage as written in the listing, e.g. '50,000 km'")
    location = Column(String(255), nullable=True, comment="Where the car is located")

    # Source
    source_url = Column(Text, unique=True, nullable=False, comment="Unique URL of the listing - prevents duplicates")
    listing_id = Column(String(100), nullable=True, comment="Identifier assigned by the marketplace")

    # Media
    image_url = Column(Text, nullable=True, comment="URL of the first listing image")

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    last_scraped_at = Column(DateTime(timezone=True), default=utcnow, nullable=False,
                             comment="When this listing was last refreshed by the scraper")

    # Soft delete flag
    is_active = Column(Boolean, default=True, nullable=False,
                       comment="FALSE if the listing is no longer available")

    def __repr__(self):
        return f"<CarListing(id={self.id}, title='{self.title}', price={self.price})>"
