"""Scrapers package for the application."""

from .browser import BrowserSession, launch_session, navigate, trigger_lazy_load
from .extractor import RawListingCandidate, extract_candidates, extract_listings

__all__ = [
    'BrowserSession',
    'launch_session',
    'navigate',
    'trigger_lazy_load',
    'RawListingCandidate',
    'extract_candidates',
    'extract_listings',
]
