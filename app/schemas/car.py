from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


def max_plausible_year() -> int:
    return datetime.now().year + 1


class NormalizedListing(BaseModel):
    """A scraped listing that is safe to hand to the persistence layer."""
    title: str = Field(..., min_length=1, max_length=500)
    price: Decimal = Field(..., ge=0)
    currency: str = Field("PHP", pattern=r"^[A-Z]{3}$")
    year: Optional[int] = None
    mileage: Optional[str] = Field(None, max_length=100)
    location: str
    source_url: str = Field(..., min_length=1)
    source_listing_id: Optional[str] = None
    image_url: Optional[str] = None
    description: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title cannot be empty")
        return v.strip()

    @field_validator("year")
    @classmethod
    def year_plausible(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not (1900 <= v <= max_plausible_year()):
            return None
        return v


class CarListing(BaseModel):
    """A listing as stored in the database."""
    id: int
    title: str
    price: Decimal
    currency: str
    year: Optional[int] = None
    mileage: Optional[str] = None
    location: Optional[str] = None
    source_url: str
    listing_id: Optional[str] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    last_scraped_at: datetime

    class Config:
        from_attributes = True


class CarListingUpdate(BaseModel):
    """Fields a client may change on a stored listing."""
    title: Optional[str] = Field(None, min_length=3, max_length=500)
    price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=10)
    year: Optional[int] = Field(None, ge=1900)
    mileage: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    image_url: Optional[str] = None

    @field_validator("title", "mileage", "location", "description")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if isinstance(v, str) else v

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v:
            raise ValueError("Title cannot be empty")
        return v

    @field_validator("year")
    @classmethod
    def year_not_in_future(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v > max_plausible_year():
            raise ValueError("Year must be a valid year")
        return v


SortField = Literal["created_at", "price", "year", "title"]


class ListingFilter(BaseModel):
    """Query parameters accepted by the listing search."""
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    sort_by: SortField = "created_at"
    sort_order: Literal["ASC", "DESC"] = "DESC"
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    min_year: Optional[int] = Field(None, ge=1900)
    max_year: Optional[int] = Field(None, ge=1900)
    location: Optional[str] = Field(None, max_length=255)
    search: Optional[str] = Field(None, max_length=255)
    is_active: Optional[bool] = True

    @field_validator("sort_order", mode="before")
    @classmethod
    def upper_sort_order(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator("location", "search")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class ListingsPage(BaseModel):
    items: List[CarListing]
    pagination: Pagination


class ListingStatistics(BaseModel):
    total_listings: int
    active_listings: int
    average_price: Decimal
    min_price: Decimal
    max_price: Decimal
    average_year: Optional[int] = None
    unique_locations: int


class ScrapeResult(BaseModel):
    """Outcome of one scrape run."""
    stored_count: int
    listings: List[CarListing] = []


class ListingsResponse(BaseModel):
    success: bool = True
    data: List[CarListing]
    pagination: Pagination


class ListingResponse(BaseModel):
    success: bool = True
    data: CarListing
    message: Optional[str] = None


class StatisticsResponse(BaseModel):
    success: bool = True
    data: ListingStatistics


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ScrapeResponse(BaseModel):
    success: bool = True
    message: str
    count: int
    listings: List[CarListing] = []
