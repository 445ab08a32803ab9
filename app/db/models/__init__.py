from .car import CarListing

__all__ = ['CarListing']
