import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.exceptions.scraping import ScrapeInProgressError, ScrapingError
from app.schemas.car import ScrapeResponse
from app.services.scraping import ScrapingService

router = APIRouter()
logger = logging.getLogger(__name__)

# One service per process so its run lock covers every request
scraping_service = ScrapingService()


def get_scraping_service() -> ScrapingService:
    return scraping_service


@router.post("/scrape", response_model=ScrapeResponse)
async def trigger_scrape(
    db: Session = Depends(get_db),
    service: ScrapingService = Depends(get_scraping_service),
):
    """
    Run one scrape of the marketplace and store the results.

    The request waits for the run to finish. A second request while a run is
    active gets a 409.
    """
    try:
        result = await service.trigger_scrape(db)
    except ScrapeInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except ScrapingError as e:
        logger.error(f"Scrape request failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Scraping process failed",
        )

    return ScrapeResponse(
        message="Scraping completed successfully",
        count=result.stored_count,
        listings=result.listings,
    )
