"""
core/health.py
--------------
System health diagnostics.

Purpose
-------
- Used by the FastAPI `/health` endpoint and the Streamlit sidebar.
- Validates store connectivity (Supabase table ping or local engine ping).
- Reports uptime, version, CPU/memory usage.
- Returns a JSON-safe dict ready for serialization.
"""

from __future__ import annotations

import asyncio
import os
import platform
import time
from typing import Any, Dict, Optional

import psutil

from core.metadata import __version__
from core.store import RemoteStore

# Cache the process start time for uptime calculation
START_TIME = time.time()


async def system_health(store: Optional[RemoteStore] = None) -> Dict[str, Any]:
    """
    Return structured health diagnostics.

    Parameters
    ----------
    store : RemoteStore, optional
        Store to probe. Without one, the store is reported as "unconfigured".

    Returns
    -------
    dict
        JSON-safe health report compatible with the UI HealthSchema.
    """
    status = "ok"
    message = "Backend operational."
    store_connected = False
    latency_ms = None
    store_mode = store.mode if store is not None else "unconfigured"

    # --- Store connectivity test ---
    if store is None:
        status = "degraded"
        message = "No store configured."
    else:
        started = time.perf_counter()
        try:
            store_connected = await store.ping()
        except Exception as e:  # noqa: BLE001
            message = f"Store check failed: {e.__class__.__name__}"
        latency_ms = round((time.perf_counter() - started) * 1000, 2)
        if not store_connected:
            status = "degraded"
            if message == "Backend operational.":
                message = f"{store_mode} store unreachable."

    # --- System metrics ---
    try:
        # the sample blocks for its interval
        cpu_load = await asyncio.to_thread(psutil.cpu_percent, 0.1)
        memory_usage = round(psutil.virtual_memory().used / (1024 * 1024), 2)
    except Exception:  # noqa: BLE001 - metrics are optional
        cpu_load = None
        memory_usage = None

    return {
        "status": status,
        "message": message,
        "version": os.getenv("BACKEND_VERSION", __version__),
        "store": store_mode,
        "store_connected": store_connected,
        "store_latency_ms": latency_ms,
        "cpu_load": cpu_load,
        "memory_usage": memory_usage,
        "uptime_sec": round(time.time() - START_TIME, 2),
        "system": platform.system(),
        "release": platform.release(),
    }
