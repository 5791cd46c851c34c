"""
core/config.py
--------------
Runtime configuration, read once from environment variables.

    STUDYINSIGHTS_STORE            "supabase" | "local"  (auto when unset)
    SUPABASE_URL / SUPABASE_ANON_KEY
    SUPABASE_SERVICE_ROLE_KEY      admin key, only used to delete accounts
    STUDYINSIGHTS_DB_URL           SQLAlchemy URL for the local store
    STUDYINSIGHTS_REALTIME         "1" / "0"  change subscriptions on/off
    STUDYINSIGHTS_REFRESH_SECONDS  Streamlit autorefresh interval
    LOG_LEVEL
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_DB_URL = "sqlite:///" + os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
    "database",
    "studyinsights.db",
)


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AppConfig:
    store: str = "local"
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    db_url: str = DEFAULT_DB_URL
    realtime: bool = True
    refresh_seconds: int = 15
    log_level: str = "INFO"

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

    @classmethod
    def from_env(cls) -> "AppConfig":
        url = os.getenv("SUPABASE_URL") or None
        key = os.getenv("SUPABASE_ANON_KEY") or None
        store = (os.getenv("STUDYINSIGHTS_STORE") or "").strip().lower()
        if store not in {"supabase", "local"}:
            store = "supabase" if url and key else "local"
        try:
            refresh = int(os.getenv("STUDYINSIGHTS_REFRESH_SECONDS", "15"))
        except ValueError:
            refresh = 15
        return cls(
            store=store,
            supabase_url=url,
            supabase_anon_key=key,
            supabase_service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or None,
            db_url=os.getenv("STUDYINSIGHTS_DB_URL", DEFAULT_DB_URL),
            realtime=_flag(os.getenv("STUDYINSIGHTS_REALTIME"), True),
            refresh_seconds=max(refresh, 0),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
