from pydantic_settings import BaseSettings
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path('.') / '.env'
load_dotenv(dotenv_path=env_path)

class ScrapingSettings(BaseSettings):
    # Target
    TARGET_URL: str = "https://www.facebook.com/marketplace/manila/cars?minPrice=350000&exact=false"
    LISTING_LINK_SELECTOR: str = 'a[href*="/marketplace/item/"]'

    # Browser settings
    HEADLESS: bool = True
    VIEWPORT_WIDTH: int = 1920
    VIEWPORT_HEIGHT: int = 1080
    USER_AGENT: Optional[str] = None  # random desktop Chrome UA when unset
    ACCEPT_LANGUAGE: str = "en-US,en;q=0.9"

    # Navigation
    NAVIGATION_TIMEOUT: int = 30000  # milliseconds
    NAVIGATION_RETRIES: int = 1
    RETRY_DELAY: float = 2.0  # seconds
    CONTENT_WAIT: float = 5.0  # seconds

    # Lazy loading
    SCROLL_STEP: int = 300  # pixels
    SCROLL_INTERVAL: float = 0.2  # seconds
    SCROLL_MAX_DISTANCE: int = 3000  # pixels
    SCROLL_SETTLE: float = 2.0  # seconds

    # Extraction
    MAX_LISTINGS: int = 50
    CONTAINER_ANCESTOR_LEVELS: int = 5
    MIN_TITLE_LENGTH: int = 10

    # Normalization fallbacks
    DEFAULT_LOCATION: str = "Manila"
    DEFAULT_CURRENCY: str = "PHP"

    # Overall deadline for a single run
    RUN_TIMEOUT: Optional[float] = 300.0  # seconds

    class Config:
        env_prefix = "SCRAPING_"
        case_sensitive = False

# Create a settings instance
settings = ScrapingSettings()
