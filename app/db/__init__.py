"""Database layer: declarative base, the car_listings model and session helpers."""

from .base_class import Base
from .models.car import CarListing
from .session import SessionLocal, engine, get_db, get_db_session

__all__ = ['Base', 'CarListing', 'SessionLocal', 'engine', 'get_db', 'get_db_session']
