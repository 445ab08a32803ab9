"""Database session management."""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.core.config import settings

logger = logging.getLogger(__name__)


def get_engine_options(database_url: str) -> Dict[str, Any]:
    """Engine keyword arguments appropriate for the database backend."""
    if database_url.startswith("sqlite"):
        # One shared connection so an in-memory database survives across sessions
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
            "echo": settings.DEBUG,
        }
    return {
        "pool_pre_ping": True,  # Check connection health before using
        "pool_size": 5,         # Number of connections to keep open
        "max_overflow": 10,     # Max number of connections beyond pool_size
        "pool_timeout": 30,     # Seconds to wait for a connection from the pool
        "pool_recycle": 3600,   # Recycle connections after 1 hour
        "echo": settings.DEBUG,
    }

# Create engine with connection pool settings
database_url = settings.DATABASE_URL
logger.info(f"Using database: {make_url(database_url).render_as_string(hide_password=True)}")
engine = create_engine(database_url, **get_engine_options(database_url))

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False  # Prevent attribute access after commit
)

@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Session for scripts: commits on success, rolls back on error, always closes."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
