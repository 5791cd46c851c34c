"""
StudyInsights: Chart Components
-------------------------------

Purpose
-------
Plotly figure builders for the dashboard pages:
- grade distribution per band
- per-semester average trend with the overall GPA as reference line
- credits over time (monthly bars + cumulative line)
- completion gauge for one program

Design
------
- Pure functions, no Streamlit imports (pages call these).
- Inputs are the list-of-dict outputs of `analytics.grade_stats`.
- Empty inputs give an empty figure with a note instead of raising.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

ACCENT = "#4C78A8"
REFERENCE = "#E45756"


def _empty_figure(title: str, note: str = "No data yet") -> go.Figure:
    fig = go.Figure()
    fig.update_layout(
        title=title,
        xaxis={"visible": False},
        yaxis={"visible": False},
        annotations=[{"text": note, "showarrow": False, "font": {"size": 16}}],
    )
    return fig


# --------------------------------------------------------------------------- #
# Grade distribution
# --------------------------------------------------------------------------- #
def build_distribution_figure(
    distribution: List[Dict[str, Any]],
    title: str = "Grade distribution",
) -> go.Figure:
    """Bar chart of course counts per grade band (best band on the left)."""
    if not distribution or sum(row["count"] for row in distribution) == 0:
        return _empty_figure(title, "No graded courses yet")

    df = pd.DataFrame(distribution)
    fig = px.bar(
        df,
        x="band",
        y="count",
        hover_data={"credits": True, "band": False},
        title=title,
        color_discrete_sequence=[ACCENT],
    )
    fig.update_layout(xaxis_title="Grade band", yaxis_title="Courses", bargap=0.15)
    fig.update_yaxes(dtick=1)
    return fig


# --------------------------------------------------------------------------- #
# Per-semester trend
# --------------------------------------------------------------------------- #
def build_semester_trend_figure(
    averages: List[Dict[str, Any]],
    gpa: Optional[float] = None,
    title: str = "Average grade per semester",
) -> go.Figure:
    """
    Line chart of the weighted average per semester.

    The y axis is reversed because lower grades are better.
    """
    if not averages:
        return _empty_figure(title, "No graded courses yet")

    df = pd.DataFrame(averages)
    fig = px.line(df, x="semester", y="average", markers=True, title=title)
    fig.update_traces(line_color=ACCENT)
    if gpa is not None:
        fig.add_hline(
            y=gpa,
            line_dash="dash",
            line_color=REFERENCE,
            annotation_text=f"GPA {gpa:.2f}",
            annotation_position="top left",
        )
    fig.update_layout(xaxis_title="Semester", yaxis_title="Average grade")
    fig.update_xaxes(dtick=1)
    fig.update_yaxes(autorange="reversed")
    return fig


# --------------------------------------------------------------------------- #
# Credits over time
# --------------------------------------------------------------------------- #
def build_credits_figure(
    monthly: List[Dict[str, Any]],
    title: str = "Credits over time",
) -> go.Figure:
    """Monthly credits as bars with the running total on a second axis."""
    if not monthly:
        return _empty_figure(title)

    df = pd.DataFrame(monthly)
    fig = go.Figure()
    fig.add_trace(go.Bar(x=df["month"], y=df["credits"], name="Credits", marker_color=ACCENT))
    fig.add_trace(
        go.Scatter(
            x=df["month"],
            y=df["cumulative"],
            name="Cumulative",
            mode="lines+markers",
            line={"color": REFERENCE},
            yaxis="y2",
        )
    )
    fig.update_layout(
        title=title,
        xaxis_title="Month",
        yaxis={"title": "Credits"},
        yaxis2={"title": "Cumulative", "overlaying": "y", "side": "right", "rangemode": "tozero"},
        legend_title_text="Series",
    )
    return fig


# --------------------------------------------------------------------------- #
# Completion gauge
# --------------------------------------------------------------------------- #
def build_completion_gauge(
    completion: int,
    earned: float,
    target: float,
    title: str = "Completion",
) -> go.Figure:
    """Gauge of a program's completion percentage (0-100)."""
    value = max(0, min(100, int(completion)))
    fig = go.Figure(
        go.Indicator(
            mode="gauge+number",
            value=value,
            number={"suffix": "%"},
            title={"text": f"{title}<br><sub>{earned:g} / {target:g} credits</sub>"},
            gauge={
                "axis": {"range": [0, 100]},
                "bar": {"color": ACCENT},
                "threshold": {"line": {"color": REFERENCE, "width": 3}, "value": 100},
            },
        )
    )
    fig.update_layout(height=260, margin={"t": 60, "b": 10, "l": 30, "r": 30})
    return fig
