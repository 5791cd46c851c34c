"""
core/ui_config.py
-----------------
Configuration constants for the Streamlit pages.
"""

from __future__ import annotations

import os

BACKEND_URL: str = os.getenv("BACKEND_URL", "http://127.0.0.1:8000").rstrip("/")

PAGE_ICON = "🎓"
APP_TITLE = "StudyInsights"
