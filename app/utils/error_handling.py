from typing import Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from sqlalchemy.exc import SQLAlchemyError

from app.exceptions.scraping import (
    ScrapingError, NavigationTimeout,
    NormalizationError, PersistenceError
)

class ErrorHandler:
    @staticmethod
    def handle_scraping_error(
        error: Exception,
        url: Optional[str] = None
    ) -> ScrapingError:
        """Converts raw exceptions into specific scraping errors"""
        if isinstance(error, ScrapingError):
            return error

        if isinstance(error, (PlaywrightTimeoutError, TimeoutError)):
            return NavigationTimeout(f"Page did not settle: {error}", url)

        if isinstance(error, SQLAlchemyError):
            return PersistenceError(f"Database error: {error}", url)

        if isinstance(error, (ValueError, TypeError)):
            return NormalizationError(f"Data processing failed: {error}", url)

        return ScrapingError(f"Scraping failed: {error}", url)

    @staticmethod
    def get_retry_delay(error: ScrapingError, attempt: int, base_delay: float = 2.0) -> float:
        """Calculate appropriate retry delay based on error type"""
        if isinstance(error, NavigationTimeout):
            return base_delay * (1.5 ** attempt)

        return base_delay * (1.2 ** attempt)  # default exponential backoff

    @staticmethod
    def should_retry(error: ScrapingError) -> bool:
        """Only a page that failed to settle is worth another attempt"""
        return isinstance(error, NavigationTimeout)
