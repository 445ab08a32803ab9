import logging
from typing import Optional

from sqlalchemy.engine import Engine

from app.db.base_class import Base
from app.db.models import car  # noqa: F401  registers the tables on Base.metadata

logger = logging.getLogger(__name__)

def init_db(bind: Optional[Engine] = None) -> None:
    """Create all tables that do not exist yet."""
    if bind is None:
        from app.db.session import engine as bind

    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=bind)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        raise

if __name__ == "__main__":
    init_db()
