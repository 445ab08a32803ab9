#!/usr/bin/env python3
"""
Create the car_listings schema in the configured database.
"""
import sys
import logging
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.append(str(project_root))

from app.core.logging import setup_logging  # noqa: E402
from app.db.init_db import init_db  # noqa: E402

logger = logging.getLogger(__name__)


def main() -> int:
    setup_logging()
    logger.info("Starting database initialization...")
    try:
        init_db()
    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
