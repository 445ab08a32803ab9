"""Logging setup shared by the API and the command-line scripts."""
import logging
from typing import Optional

from app.core.config import settings

_configured = False


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Configure the root logger with a console handler and an optional file handler.

    Calling it again is a no-op, so the API startup hook and the scripts can
    both call it safely.
    """
    global _configured
    if _configured:
        return

    level_name = (level or settings.LOG_LEVEL).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    fmt = logging.Formatter(settings.LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(fmt)
    root.addHandler(console)

    log_file = log_file or settings.LOG_FILE
    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(fmt)
        root.addHandler(fh)

    # SQL statements only in debug mode
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DEBUG else logging.WARNING
    )

    _configured = True
