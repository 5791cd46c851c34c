"""
StudyInsights Core Concepts Registry
------------------------------------
Declares the major modules of the application.

Each Concept declares:
- purpose (what it does)
- location (where it lives)
- dependencies (explicit synchronizations)
"""

CONCEPTS = {
    "RemoteStore": {
        "location": "supabase_client/, database/",
        "purpose": "Owner-scoped CRUD and change notifications (Supabase or local SQLite).",
        "dependencies": [],
    },
    "DerivationEngine": {
        "location": "analytics/",
        "purpose": "Credits, GPA, completion, grade bands and trends from a snapshot.",
        "dependencies": [],
    },
    "CacheController": {
        "location": "core/sync_controller.py",
        "purpose": "Keep the in-memory snapshot consistent with the store.",
        "dependencies": ["RemoteStore"],
    },
    "AppState": {
        "location": "core/app_state.py",
        "purpose": "Per-session container owning store, cache and event loop.",
        "dependencies": ["RemoteStore", "CacheController"],
    },
    "UIFrontend": {
        "location": "ui/",
        "purpose": "Streamlit pages: programs, courses, charts, settings.",
        "dependencies": ["AppState", "DerivationEngine"],
    },
    "StatusAPI": {
        "location": "backend/",
        "purpose": "FastAPI health/status and stateless insights endpoints.",
        "dependencies": ["DerivationEngine", "RemoteStore"],
    },
}


def list_concepts() -> list[str]:
    """Return list of concept names."""
    return list(CONCEPTS.keys())


def describe_concept(name: str) -> dict:
    """Get description of a specific concept."""
    return CONCEPTS.get(name, {"error": "Concept not found."})
