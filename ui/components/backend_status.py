# ui/components/backend_status.py
"""
Sidebar status indicator for the StudyInsights pages.

Features
--------
- Store status of the current session (mode, loading, per-collection errors,
  live-update subscriptions).
- Optional status API probe: `/health` validated with a pydantic schema,
  cached with st.cache_data.
- Never crashes the UI when the backend is offline.
"""

from __future__ import annotations

import os
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import requests
import streamlit as st
from pydantic import BaseModel, Field

from core.metadata import __project__, __version__
from core.snapshot import Snapshot
from core.ui_config import BACKEND_URL

CACHE_TTL = int(os.getenv("BACKEND_STATUS_TTL", "60"))  # seconds

STATUS_COLORS = {
    "ok": "green",
    "healthy": "green",
    "degraded": "orange",
    "error": "red",
    "offline": "red",
}


class HealthSchema(BaseModel):
    """Structured schema for the /health endpoint response."""

    status: str = Field(default="unknown", description="Overall backend status")
    message: Optional[str] = Field(default=None, description="Optional status message")
    version: Optional[str] = Field(default=None, description="Backend version string")
    store: Optional[str] = Field(default=None, description="Store mode: supabase or local")
    store_connected: Optional[bool] = Field(default=None, description="Store connectivity flag")
    store_latency_ms: Optional[float] = Field(default=None, description="Store ping latency in ms")
    cpu_load: Optional[float] = Field(default=None, description="Backend CPU load")
    memory_usage: Optional[float] = Field(default=None, description="Backend memory usage in MB")
    uptime_sec: Optional[float] = Field(default=None, description="Backend uptime in seconds")
    latency_ms: Optional[float] = Field(default=None, description="Round-trip latency in ms")

    def color(self) -> str:
        return get_status_color(self.status)


def get_status_color(status: str) -> str:
    """Color for a status string, gray when unknown."""
    return STATUS_COLORS.get((status or "").lower(), "gray")


def parse_health(data: Dict[str, Any], latency_ms: Optional[float] = None) -> HealthSchema:
    """Validate a /health payload; anything unparseable becomes an error status."""
    try:
        health = HealthSchema(**data)
    except Exception as e:  # noqa: BLE001
        return HealthSchema(status="error", message=f"Malformed health payload: {e}")
    if latency_ms is not None:
        health = health.model_copy(update={"latency_ms": latency_ms})
    return health


@st.cache_data(ttl=CACHE_TTL)
def get_backend_status() -> Dict[str, Any]:
    """Fetch the backend /health endpoint with structured fallback."""
    url = f"{BACKEND_URL}/health"
    try:
        resp = requests.get(url, timeout=5)
        latency_ms = round(resp.elapsed.total_seconds() * 1000, 2)
        if resp.status_code != 200:
            return {"status": "error", "message": f"HTTP {resp.status_code}: {resp.text[:100]}"}
        return parse_health(resp.json(), latency_ms).model_dump()
    except requests.exceptions.RequestException as e:
        return {
            "status": "offline",
            "message": f"Backend unreachable at {BACKEND_URL} ({e.__class__.__name__})",
        }


def cache_status(snapshot: Snapshot, store_mode: str, subscriptions: int) -> Dict[str, Any]:
    """Status of the session cache, in the same shape as the health payload."""
    if snapshot.loading:
        status, message = "degraded", "Loading…"
    elif snapshot.errors:
        status, message = "degraded", f"{len(snapshot.errors)} sync problem(s)"
    else:
        status, message = "ok", "In sync"
    return {
        "status": status,
        "message": message,
        "store": store_mode,
        "subscriptions": subscriptions,
        "errors": dict(snapshot.errors),
    }


def render_status_bar(
    snapshot: Snapshot,
    store_mode: str,
    subscriptions: int = 0,
    show_backend: bool = False,
    last_change: Optional[Tuple[str, datetime]] = None,
) -> None:
    """Render a compact store/backend summary in the sidebar."""
    st.sidebar.markdown("---")
    st.sidebar.caption("### 🔍 Sync Status")

    local = cache_status(snapshot, store_mode, subscriptions)
    st.sidebar.markdown(
        f"<span style='color:{get_status_color(local['status'])}; font-weight:600;'>"
        f"● {local['message']}</span>",
        unsafe_allow_html=True,
    )
    st.sidebar.caption(f"☁️ Store: {store_mode}")
    st.sidebar.caption(f"📡 Live updates: {subscriptions} channel(s)")
    if last_change is not None:
        what, when = last_change
        st.sidebar.caption(f"🕒 Last change: {what} at {when.astimezone():%H:%M:%S}")
    for collection, message in local["errors"].items():
        st.sidebar.caption(f"⚠️ {collection}: {message}")

    if show_backend:
        with st.sidebar.expander("Status API", expanded=False):
            health = get_backend_status()
            st.markdown(
                f"<span style='color:{get_status_color(health.get('status', ''))};'>"
                f"● {health.get('status', 'unknown').upper()}</span>",
                unsafe_allow_html=True,
            )
            if health.get("message"):
                st.caption(f"💬 {health['message']}")
            st.json(health)

    st.sidebar.caption(f"{__project__} v{__version__}")
