"""
StudyInsights Core Metadata
---------------------------
Project identity shared by the UI footer, the status API and health reports.
"""

from datetime import date

__project__ = "StudyInsights"
__version__ = "1.0.0"
__updated__ = date.today().isoformat()

CORE_METADATA = {
    "project": __project__,
    "version": __version__,
    "updated": __updated__,
    "description": (
        "StudyInsights is a personal academic-planning dashboard: study programs, "
        "courses, credit progress and GPA statistics on top of Supabase."
    ),
}


def get_metadata() -> dict:
    """Return current system metadata as a dict."""
    return dict(CORE_METADATA)
