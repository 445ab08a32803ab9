import logging
from decimal import Decimal
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.car import (
    CarListingUpdate,
    ListingFilter,
    ListingResponse,
    ListingsResponse,
    MessageResponse,
    SortField,
    StatisticsResponse,
)
from app.services.car import CarService

router = APIRouter()
logger = logging.getLogger(__name__)

car_service = CarService()


def get_car_service() -> CarService:
    return car_service


@router.get("/listings", response_model=ListingsResponse)
async def get_listings(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: SortField = "created_at",
    sort_order: Literal["ASC", "DESC", "asc", "desc"] = "DESC",
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    min_year: Optional[int] = Query(None, ge=1900),
    max_year: Optional[int] = Query(None, ge=1900),
    location: Optional[str] = Query(None, max_length=255),
    search: Optional[str] = Query(None, max_length=255),
    db: Session = Depends(get_db),
    service: CarService = Depends(get_car_service),
):
    """
    Retrieve active car listings with filtering, sorting and pagination.
    """
    filters = ListingFilter(
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        min_price=min_price,
        max_price=max_price,
        min_year=min_year,
        max_year=max_year,
        location=location,
        search=search,
    )
    result = await service.find_many(db, filters)
    return ListingsResponse(data=result.items, pagination=result.pagination)


@router.get("/listings/{listing_id}", response_model=ListingResponse)
async def get_listing(
    listing_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    service: CarService = Depends(get_car_service),
):
    listing = await service.find_one(db, listing_id)
    if not listing:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Listing not found")
    return ListingResponse(data=listing)


@router.put("/listings/{listing_id}", response_model=ListingResponse)
async def update_listing(
    updates: CarListingUpdate,
    listing_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    service: CarService = Depends(get_car_service),
):
    """
    Update the editable fields of an active listing.
    """
    try:
        listing = await service.update(db, listing_id, updates)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not listing:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Listing not found or inactive")

    logger.info(f"Updated listing {listing_id}")
    return ListingResponse(data=listing, message="Listing updated successfully")


@router.delete("/listings/{listing_id}", response_model=MessageResponse)
async def delete_listing(
    listing_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    service: CarService = Depends(get_car_service),
):
    """
    Soft delete a listing. It stays in the database but is no longer served.
    """
    if not await service.soft_delete(db, listing_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Listing not found")

    logger.info(f"Soft deleted listing {listing_id}")
    return MessageResponse(message="Listing deleted successfully")


@router.get("/stats", response_model=StatisticsResponse)
async def get_statistics(
    db: Session = Depends(get_db),
    service: CarService = Depends(get_car_service),
):
    stats = await service.get_statistics(db)
    return StatisticsResponse(data=stats)
