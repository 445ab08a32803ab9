from typing import Optional


class ScrapingError(Exception):
    """Base class for all scraping-related errors"""
    def __init__(self, message: str, url: Optional[str] = None):
        self.message = message
        self.url = url
        super().__init__(message)

class LaunchError(ScrapingError):
    """Raised when the browser session cannot be started"""
    pass

class NavigationTimeout(ScrapingError):
    """Raised when the target page never settles within the timeout"""
    pass

class ExtractionParseError(ScrapingError):
    """Raised for a single page element that cannot be turned into a candidate"""
    pass

class NormalizationError(ScrapingError):
    """Raised when a raw candidate cannot be normalized into a listing"""
    pass

class PersistenceError(ScrapingError):
    """Raised when a batch of listings could not be stored"""
    pass

class ScrapeInProgressError(ScrapingError):
    """Raised when a scrape is triggered while another run is active"""
    pass

class RunDeadlineExceeded(ScrapingError):
    """Raised when a run exceeds its overall deadline"""
    pass
