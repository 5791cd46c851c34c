"""
analytics/grade_stats.py
------------------------

Chart-oriented aggregates: grade distribution bands, per-semester averages
and credits over time.

Pure helpers (no Streamlit, no store access). Outputs are lists of plain
dicts so they serialize as-is through the insights endpoint and convert to
DataFrames in one call for Plotly.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from core.schemas import DEFAULT_PREFERENCES, Course, Preferences

BAND_WIDTH = 1.0
# absorbs float error so a grade on a band edge belongs to the upper band
EDGE_TOLERANCE = 1e-9


def _scale(preferences: Optional[Preferences]) -> Tuple[float, float]:
    if preferences is None:
        return DEFAULT_PREFERENCES["grade_min"], DEFAULT_PREFERENCES["grade_max"]
    return preferences.grade_min, preferences.grade_max


# --------------------------------------------------------------------------- #
# Grade distribution
# --------------------------------------------------------------------------- #

def grade_bands(preferences: Optional[Preferences] = None) -> List[Tuple[float, float]]:
    """
    Consecutive bands of width 1.0 covering [grade_min, grade_max].

    Bands are half-open [lo, hi); the last one is closed so that grade_max
    itself has a home. A scale whose span is not a whole number ends with a
    narrower final band.
    """
    lo, hi = _scale(preferences)
    count = max(1, math.ceil((hi - lo) / BAND_WIDTH - EDGE_TOLERANCE))
    return [(lo + i * BAND_WIDTH, min(lo + (i + 1) * BAND_WIDTH, hi)) for i in range(count)]


def band_index(grade: float, preferences: Optional[Preferences] = None) -> int:
    """Band of a single grade after clamping it into the scale."""
    lo, hi = _scale(preferences)
    last = len(grade_bands(preferences)) - 1
    clamped = min(max(grade, lo), hi)
    return min(int(math.floor((clamped - lo) / BAND_WIDTH + EDGE_TOLERANCE)), last)


def grade_distribution(
    courses: Iterable[Course],
    preferences: Optional[Preferences] = None,
) -> List[Dict[str, Any]]:
    """
    Count graded courses per band.

    Every graded course lands in exactly one band; out-of-scale grades are
    clamped first. All bands are returned, including empty ones.
    """
    bands = grade_bands(preferences)
    lo, hi = _scale(preferences)
    graded = [c for c in courses if c.grade is not None]

    counts = np.zeros(len(bands), dtype=int)
    credits = np.zeros(len(bands), dtype=float)
    if graded:
        grades = np.clip(np.array([c.grade for c in graded], dtype=float), lo, hi)
        idx = np.minimum(np.floor((grades - lo) / BAND_WIDTH + EDGE_TOLERANCE).astype(int), len(bands) - 1)
        np.add.at(counts, idx, 1)
        np.add.at(credits, idx, np.array([c.credits for c in graded], dtype=float))

    rows = []
    for i, (b_lo, b_hi) in enumerate(bands):
        closing = "]" if i == len(bands) - 1 else ")"
        rows.append(
            {
                "band": f"[{b_lo:g}, {b_hi:g}{closing}",
                "lo": b_lo,
                "hi": b_hi,
                "count": int(counts[i]),
                "credits": float(credits[i]),
            }
        )
    return rows


# --------------------------------------------------------------------------- #
# Per-semester trend
# --------------------------------------------------------------------------- #

def semester_averages(courses: Iterable[Course]) -> List[Dict[str, Any]]:
    """
    Credit-weighted average grade per semester number, rounded to 2 decimals.

    Only graded courses with credits > 0 take part; semesters without such a
    course are omitted.
    """
    rows = [
        {"semester": c.semesters, "grade": c.grade, "credits": c.credits}
        for c in courses
        if c.grade is not None and c.credits > 0
    ]
    if not rows:
        return []

    df = pd.DataFrame(rows)
    df["weighted"] = df["grade"] * df["credits"]
    grouped = (
        df.groupby("semester", sort=True)
        .agg(weighted=("weighted", "sum"), credits=("credits", "sum"), course_count=("grade", "size"))
        .reset_index()
    )
    grouped["average"] = (grouped["weighted"] / grouped["credits"]).round(2)

    return [
        {
            "semester": int(r.semester),
            "average": float(r.average),
            "credits": float(r.credits),
            "course_count": int(r.course_count),
        }
        for r in grouped.itertuples(index=False)
    ]


# --------------------------------------------------------------------------- #
# Credits over time
# --------------------------------------------------------------------------- #

def credits_over_time(courses: Iterable[Course]) -> List[Dict[str, Any]]:
    """
    Credits per calendar month of `created_at`, oldest month first, with a
    running cumulative total.
    """
    rows = [{"month": c.created_at.strftime("%Y-%m"), "credits": c.credits} for c in courses]
    if not rows:
        return []

    df = pd.DataFrame(rows)
    monthly = df.groupby("month", sort=True)["credits"].sum().reset_index()
    monthly["cumulative"] = monthly["credits"].cumsum()

    return [
        {"month": r.month, "credits": float(r.credits), "cumulative": float(r.cumulative)}
        for r in monthly.itertuples(index=False)
    ]
