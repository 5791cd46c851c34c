# database/db_setup.py
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from core.config import DEFAULT_DB_URL

# ---------------------------------------------------------------------
# Base class for ORM models
# ---------------------------------------------------------------------
Base = declarative_base()


# ---------------------------------------------------------------------
# Engine factory
# ---------------------------------------------------------------------
def get_engine(db_url: Optional[str] = None):
    """
    Return a SQLAlchemy Engine for the local store.

    Example:
        engine = get_engine("sqlite:///:memory:")

    In-memory SQLite shares one connection (StaticPool) so every session
    sees the same database.
    """
    url = db_url or DEFAULT_DB_URL
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=False, future=True, **kwargs)
    return create_engine(url, echo=False, future=True)


def init_db(engine) -> None:
    """Create the three tables if they do not exist yet."""
    # models register themselves on Base at import time
    from database import models  # noqa: F401

    Base.metadata.create_all(engine)
