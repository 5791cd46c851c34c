"""
StudyInsights: Streamlit Launcher
---------------------------------
Main entrypoint of the multipage app (`streamlit run ui/overview.py`).

Shows the headline figures of the signed-in user: credits, GPA, program
completion and the three charts. Other dashboards live under ui/pages/.
"""

import os
import sys

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.append(ROOT_DIR)

import streamlit as st
from streamlit_autorefresh import st_autorefresh

from analytics.grade_stats import credits_over_time, grade_distribution, semester_averages
from analytics.progress import dashboard_summary
from core.ui_config import APP_TITLE, PAGE_ICON
from core.ui_helpers import format_grade, get_app_state, require_login, show_cache_errors
from ui.components.backend_status import render_status_bar
from ui.components.visualizer import (
    build_credits_figure,
    build_distribution_figure,
    build_semester_trend_figure,
)

st.set_page_config(page_title=APP_TITLE, page_icon=PAGE_ICON, layout="wide")

state = get_app_state()
st.title(f"{PAGE_ICON} {APP_TITLE}")
st.caption("Your study programs, credits and grades at a glance.")

if not require_login(state):
    st.stop()

# Realtime events refresh the cache in the background; rerun to pick them up.
st_autorefresh(interval=state.config.refresh_seconds * 1000, limit=None, key="overview_refresh")

with st.sidebar:
    if st.button("🔄 Refresh", key="overview_reload"):
        state.call("refresh_all")

snap = state.snapshot()
show_cache_errors(snap)
render_status_bar(
    snap,
    state.store.mode,
    state.subscription_count(),
    show_backend=True,
    last_change=state.last_change(),
)

if snap.loading:
    st.info("Loading your data…")
    st.stop()

if snap.is_empty:
    st.info("No study programs yet. Create your first one on the **Programs** page.")
    st.stop()

summary = dashboard_summary(snap.courses, snap.study_programs, snap.preferences)

# -----------------------------
# Headline metrics
# -----------------------------
c1, c2, c3, c4 = st.columns(4)
c1.metric("Programs", summary["program_count"], f"{summary['finished_program_count']} finished")
c2.metric("Courses", summary["course_count"], f"{summary['finished_course_count']} finished")
c3.metric(
    "Credits earned",
    f"{summary['credits_earned']:g} / {summary['credits_planned']:g}",
    f"{summary['credits_ratio']}%",
)
c4.metric("GPA", format_grade(summary["gpa"]))

# -----------------------------
# Programs
# -----------------------------
st.subheader("Programs")
for program in summary["programs"]:
    label = f"{program['name']} — semester {program['current_semester']}/{program['semesters']}"
    if program["finished"]:
        label += " ✅"
    st.progress(program["completion"] / 100, text=f"{label} ({program['completion']}%)")

# -----------------------------
# Charts
# -----------------------------
st.subheader("Statistics")
left, right = st.columns(2)
with left:
    st.plotly_chart(
        build_distribution_figure(grade_distribution(snap.courses, snap.preferences)),
        use_container_width=True,
    )
with right:
    st.plotly_chart(
        build_semester_trend_figure(semester_averages(snap.courses), summary["gpa"]),
        use_container_width=True,
    )
st.plotly_chart(build_credits_figure(credits_over_time(snap.courses)), use_container_width=True)
