"""
core/sync_rules.py
------------------
Concept-to-concept synchronization map (who triggers whom, and how).

Each synchronization describes:
    - source: Concept initiating the flow
    - target: Concept receiving data
    - mode:   communication type ("internal", "db", "realtime", "ui", "http")
    - purpose: short natural language description
"""

from dataclasses import dataclass, asdict
from typing import List, Dict


@dataclass(frozen=True)
class SyncRule:
    source: str
    target: str
    mode: str
    purpose: str

    def as_dict(self) -> Dict[str, str]:
        return asdict(self)


SYNC_RULES: List[SyncRule] = [
    SyncRule("UIFrontend", "CacheController", "ui", "Issue create/update/delete, then refresh the slice"),
    SyncRule("CacheController", "RemoteStore", "db", "Fetch owner-scoped collections"),
    SyncRule("RemoteStore", "CacheController", "realtime", "Change notification triggers full re-fetch"),
    SyncRule("UIFrontend", "DerivationEngine", "internal", "Compute statistics from the snapshot"),
    SyncRule("DerivationEngine", "UIFrontend", "internal", "Finish signals applied via CacheController"),
    SyncRule("StatusAPI", "DerivationEngine", "http", "Stateless insights over a posted snapshot"),
    SyncRule("StatusAPI", "RemoteStore", "db", "Connectivity probe for /health"),
]


def list_sync_rules(as_dicts: bool = True):
    """Return synchronization rules as list of dicts or objects."""
    return [r.as_dict() for r in SYNC_RULES] if as_dicts else SYNC_RULES


def describe_sync_map() -> str:
    """Return a readable multi-line summary of all synchronizations."""
    lines = ["StudyInsights Synchronization Map\n"]
    for rule in SYNC_RULES:
        lines.append(f"{rule.source:16s} -> {rule.target:16s} [{rule.mode}] {rule.purpose}")
    return "\n".join(lines)


if __name__ == "__main__":
    print(describe_sync_map())
