"""
StudyInsights Status API
========================

FastAPI service exposing liveness, health, status and stateless insights
endpoints for dashboards and scripts.

Routes
------
- `GET /`               liveness probe
- `GET /health`         store connectivity + process metrics (core.health)
- `GET /status/summary` version, store mode, concepts and sync rules
- `POST /insights/*`    statistics over a posted snapshot (backend.routes.insights)

The API never reads user data. The store is only used to answer `/health`
and is built lazily from `AppConfig.from_env()` on first use; tests may put
their own store on `app.state.store`.

Run with: `uvicorn backend.main:app --reload`
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from backend.routes.insights import router as insights_router
from core.app_state import build_store
from core.concepts import list_concepts
from core.config import AppConfig
from core.health import system_health
from core.logging_config import configure_from_env
from core.metadata import __project__, __version__, get_metadata
from core.store import RemoteStore
from core.sync_rules import list_sync_rules

configure_from_env()
logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------- #
# FastAPI App
# --------------------------------------------------------------------------- #

app = FastAPI(
    title=f"{__project__} Status API",
    version=__version__,
    description=(
        "Health and status of the StudyInsights deployment.\n"
        "- Store connectivity and process metrics.\n"
        "- Stateless credit / GPA statistics over a posted snapshot."
    ),
)
app.state.config = AppConfig.from_env()
app.state.store = None

app.include_router(insights_router)
logger.info("[Backend] registered /insights router")


async def _health_store() -> Optional[RemoteStore]:
    """Store used for the connectivity probe, built on first request."""
    if app.state.store is not None:
        return app.state.store
    try:
        app.state.store = await build_store(app.state.config)
    except Exception as e:  # noqa: BLE001
        logger.warning("[Backend] store unavailable for health probe: %s", e)
        return None
    return app.state.store


# --------------------------------------------------------------------------- #
# Core Routes
# --------------------------------------------------------------------------- #

@app.get("/")
async def root():
    """Basic liveness probe."""
    return {
        "status": "ok",
        "message": f"{__project__} backend is live.",
        "version": app.version,
        "store": app.state.config.store,
    }


@app.get("/health")
async def health():
    """
    System health endpoint.

    Delegates to core.health.system_health, which pings the configured store
    and reports uptime and CPU/memory usage.
    """
    return await system_health(await _health_store())


@app.get("/status/summary")
async def status_summary():
    """High-level status summary for dashboards and scripts."""
    config: AppConfig = app.state.config
    return {
        **get_metadata(),
        "backend_version": app.version,
        "store": config.store,
        "supabase_configured": config.supabase_configured,
        "realtime": config.realtime,
        "concepts": list_concepts(),
        "sync_rules": list_sync_rules(),
    }
