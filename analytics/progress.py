"""
analytics/progress.py
---------------------

Credit, GPA and completion figures derived from a snapshot.

This module must remain network-agnostic and pure:
- Input : course / program models and (optional) preferences
- Output: plain numbers, dicts, or `FinishSignal` decisions

Grades follow the "lower is better" convention (1.0 is the best grade on the
default 1–5 scale). Every function is total: empty inputs give 0 or the
`None` sentinel ("no data"), never a ZeroDivisionError or NaN.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from core.schemas import DEFAULT_PREFERENCES, Course, Preferences, StudyProgram


# --------------------------------------------------------------------------- #
# Credits
# --------------------------------------------------------------------------- #

def credits_planned(courses: Iterable[Course]) -> float:
    """Sum of credits over all courses."""
    return float(sum(c.credits for c in courses))


def credits_earned(courses: Iterable[Course]) -> float:
    """Sum of credits over finished courses."""
    return float(sum(c.credits for c in courses if c.finished))


def program_courses(program: StudyProgram, courses: Iterable[Course]) -> List[Course]:
    return [c for c in courses if c.program_id == program.id]


def program_earned_credits(program: StudyProgram, courses: Iterable[Course]) -> float:
    """
    Credits earned inside one program: finished, graded, credits > 0.

    The credits > 0 guard matches the GPA filter so completion and grade
    figures are computed over the same courses.
    """
    return float(
        sum(
            c.credits
            for c in program_courses(program, courses)
            if c.finished and c.grade is not None and c.credits > 0
        )
    )


# --------------------------------------------------------------------------- #
# GPA
# --------------------------------------------------------------------------- #

def _include_failed(preferences: Optional[Preferences]) -> bool:
    if preferences is None:
        return DEFAULT_PREFERENCES["grade_include_failed"]
    return preferences.grade_include_failed


def _grade_passed(preferences: Optional[Preferences]) -> float:
    if preferences is None:
        return DEFAULT_PREFERENCES["grade_passed"]
    return preferences.grade_passed


def gpa_courses(courses: Iterable[Course], preferences: Optional[Preferences] = None) -> List[Course]:
    """Courses that count towards the weighted GPA under `preferences`."""
    rated = [c for c in courses if c.grade is not None and c.credits > 0]
    if _include_failed(preferences):
        return rated
    passed = _grade_passed(preferences)
    return [c for c in rated if c.grade <= passed]


def weighted_gpa(
    courses: Iterable[Course],
    preferences: Optional[Preferences] = None,
) -> Optional[float]:
    """
    Credit-weighted average grade.

    Returns None ("no data") when no eligible course carries credits.
    """
    rated = gpa_courses(courses, preferences)
    total_credits = sum(c.credits for c in rated)
    if total_credits <= 0:
        return None
    return sum(c.grade * c.credits for c in rated) / total_credits


def compare_to_average(grade: Optional[float], average: Optional[float]) -> Optional[str]:
    """
    Position of a single grade against an average: "better", "worse" or "equal".

    Lower grades are better, so a grade below the average is "better".
    """
    if grade is None or average is None:
        return None
    if math.isclose(grade, average, abs_tol=1e-9):
        return "equal"
    return "better" if grade < average else "worse"


# --------------------------------------------------------------------------- #
# Completion
# --------------------------------------------------------------------------- #

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def effective_target(program: StudyProgram, courses: Iterable[Course]) -> float:
    """Program credit target, or the planned credits of its courses when unset."""
    if program.credits and program.credits > 0:
        return float(program.credits)
    return credits_planned(program_courses(program, courses))


def completion_ratio(program: StudyProgram, courses: Iterable[Course]) -> int:
    """Earned / target in percent, clamped to [0, 100] and rounded half-up."""
    courses = list(courses)
    target = effective_target(program, courses)
    if target <= 0:
        return 0
    ratio = program_earned_credits(program, courses) / target * 100.0
    return max(0, min(100, _round_half_up(ratio)))


# --------------------------------------------------------------------------- #
# Auto-finish reconciliation
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class FinishSignal:
    """Instruction to flip `study_programs.finished`; produced, never executed, here."""

    program_id: str
    finished: bool
    earned: float
    target: float

    @property
    def message(self) -> str:
        if self.finished:
            return (
                f"Required credits reached ({self.earned:g}/{self.target:g}); "
                "program can be marked as finished."
            )
        return (
            f"Earned credits dropped below target ({self.earned:g}/{self.target:g}); "
            "program is no longer finished."
        )


def reconcile_program_finished(
    program: StudyProgram,
    courses: Iterable[Course],
) -> Optional[FinishSignal]:
    """
    Compare the stored `finished` flag with the derived one.

    - earned >= target and not finished -> FinishSignal(finished=True)
    - earned <  target and finished     -> FinishSignal(finished=False)
    - otherwise, or when there is no target at all -> None
    """
    courses = list(courses)
    target = effective_target(program, courses)
    if target <= 0:
        return None
    earned = program_earned_credits(program, courses)
    if earned >= target and not program.finished:
        return FinishSignal(program.id, True, earned, target)
    if earned < target and program.finished:
        return FinishSignal(program.id, False, earned, target)
    return None


def reconcile_finished(
    study_programs: Iterable[StudyProgram],
    courses: Iterable[Course],
) -> List[FinishSignal]:
    courses = list(courses)
    signals = []
    for program in study_programs:
        signal = reconcile_program_finished(program, courses)
        if signal is not None:
            signals.append(signal)
    return signals


# --------------------------------------------------------------------------- #
# Summaries (UI / API)
# --------------------------------------------------------------------------- #

def program_summary(
    program: StudyProgram,
    courses: Iterable[Course],
    preferences: Optional[Preferences] = None,
) -> Dict[str, Any]:
    """Figures shown on the program detail page."""
    courses = list(courses)
    own = program_courses(program, courses)
    return {
        "program_id": program.id,
        "name": program.name,
        "course_count": len(own),
        "credits_planned": credits_planned(own),
        "credits_earned": program_earned_credits(program, courses),
        "target_credits": effective_target(program, courses),
        "completion": completion_ratio(program, courses),
        "gpa": weighted_gpa(own, preferences),
        "current_semester": program.current_semester,
        "semesters": program.semesters,
        "finished": program.finished,
    }


def dashboard_summary(
    courses: Sequence[Course],
    study_programs: Sequence[StudyProgram],
    preferences: Optional[Preferences] = None,
) -> Dict[str, Any]:
    """Headline numbers for the overview page and the insights endpoint."""
    planned = credits_planned(courses)
    earned = credits_earned(courses)
    return {
        "course_count": len(courses),
        "finished_course_count": sum(1 for c in courses if c.finished),
        "program_count": len(study_programs),
        "finished_program_count": sum(1 for p in study_programs if p.finished),
        "credits_planned": planned,
        "credits_earned": earned,
        "credits_ratio": _round_half_up(earned / planned * 100.0) if planned > 0 else 0,
        "gpa": weighted_gpa(courses, preferences),
        "programs": [program_summary(p, courses, preferences) for p in study_programs],
    }
