"""
Insights Endpoints
------------------
Stateless statistics over a posted snapshot.

The caller sends the rows it already holds (`courses`, `study_programs`,
`preferences`); nothing is read from or written to the store. Bodies are
validated with the same row models the store adapters use, so a malformed
row gives HTTP 422.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from analytics.grade_stats import credits_over_time, grade_distribution, semester_averages
from analytics.progress import dashboard_summary, reconcile_finished
from core.schemas import Course, Preferences, StudyProgram

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/insights", tags=["insights"])


class SnapshotPayload(BaseModel):
    """Request body shared by all insights endpoints."""

    courses: List[Course] = Field(default_factory=list)
    study_programs: List[StudyProgram] = Field(default_factory=list)
    preferences: Optional[Preferences] = None


class FinishSignalOut(BaseModel):
    program_id: str
    finished: bool
    earned: float
    target: float
    message: str


@router.post("/summary")
async def insights_summary(payload: SnapshotPayload) -> Dict[str, Any]:
    """
    Headline figures plus chart series for one snapshot.

    `gpa` and each program's `gpa` are null when no course qualifies.
    """
    try:
        summary = dashboard_summary(payload.courses, payload.study_programs, payload.preferences)
        summary["charts"] = {
            "grade_distribution": grade_distribution(payload.courses, payload.preferences),
            "semester_averages": semester_averages(payload.courses),
            "credits_over_time": credits_over_time(payload.courses),
        }
        return summary
    except Exception as e:  # noqa: BLE001
        logger.exception("Insights summary failed")
        raise HTTPException(status_code=500, detail=f"Insights summary failed: {e}")


@router.post("/reconcile", response_model=List[FinishSignalOut])
async def insights_reconcile(payload: SnapshotPayload) -> List[Dict[str, Any]]:
    """Programs whose stored `finished` flag disagrees with their earned credits."""
    try:
        signals = reconcile_finished(payload.study_programs, payload.courses)
    except Exception as e:  # noqa: BLE001
        logger.exception("Reconciliation failed")
        raise HTTPException(status_code=500, detail=f"Reconciliation failed: {e}")
    return [{**asdict(s), "message": s.message} for s in signals]
