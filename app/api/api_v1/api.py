from fastapi import APIRouter

from app.api.api_v1.endpoints import car, scraper

# Create main router
api_router = APIRouter()

api_router.include_router(car.router, tags=["listings"])
api_router.include_router(scraper.router, tags=["scraper"])
