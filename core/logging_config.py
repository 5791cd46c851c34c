"""
core/logging_config.py
----------------------
Central logging setup: console handler plus a rotating file under ./logs.

Modules only ever call `logging.getLogger(__name__)`; entry points (Streamlit
launcher, FastAPI app) call `configure_from_env()` once.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = "logs",
    max_file_size: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> None:
    """
    Configure the root logger once.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_dir: Directory for the rotating log file; None disables file logging
        max_file_size: Bytes before rotation
        backup_count: Rotated files to keep
    """
    global _configured
    if _configured:
        return

    level = getattr(logging, log_level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(console)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            path / "studyinsights.log",
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    # realtime / http clients are chatty at INFO
    for noisy in ("httpx", "httpcore", "websockets", "realtime"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))

    _configured = True
    logging.getLogger(__name__).info("Logging configured at %s", logging.getLevelName(level))


def configure_from_env() -> None:
    """Configure logging from LOG_LEVEL / LOG_DIR."""
    log_dir = os.getenv("LOG_DIR", "logs")
    setup_logging(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=log_dir if log_dir.lower() != "none" else None,
    )
