# ===============================================================
# StudyInsights: Program Detail
# ===============================================================
# Features:
#   • Semester navigation (previous / next)
#   • Completion gauge, credits and GPA of one program
#   • Courses of the program grouped by semester
#   • Finished flag kept in line with earned credits
# ===============================================================

import sys, os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../../")))

import pandas as pd
import streamlit as st

from analytics.grade_stats import semester_averages
from analytics.progress import program_summary, reconcile_program_finished
from core.ui_helpers import format_grade, get_app_state, notify_result, require_login, show_cache_errors
from ui.components.backend_status import render_status_bar
from ui.components.visualizer import build_completion_gauge, build_semester_trend_figure

st.set_page_config(page_title="Program — StudyInsights", page_icon="📘", layout="wide")

state = get_app_state()
if not require_login(state):
    st.stop()

snap = state.snapshot()
show_cache_errors(snap)
render_status_bar(snap, state.store.mode, state.subscription_count(), last_change=state.last_change())

if not snap.study_programs:
    st.info("No programs yet. Create one on the **Programs** page.")
    st.stop()

ids = [p.id for p in snap.study_programs]
requested = st.query_params.get("id")
program_id = st.sidebar.selectbox(
    "Program",
    ids,
    index=ids.index(requested) if requested in ids else 0,
    format_func=lambda pid: snap.program(pid).name,
)
st.query_params["id"] = program_id
program = snap.program(program_id)

# -----------------------------
# Finished flag reconciliation
# -----------------------------
signal = reconcile_program_finished(program, snap.courses)
if signal is not None:
    if notify_result(state.call("apply_finish_signal", signal), signal.message):
        st.rerun()

summary = program_summary(program, snap.courses, snap.preferences)

st.title(f"📘 {program.name}")
st.caption(f"{program.degree.value} · {program.institution}")
if program.description:
    st.markdown(program.description)

# -----------------------------
# Semester navigation
# -----------------------------
prev_col, label_col, next_col = st.columns([1, 2, 1])
if prev_col.button("◀ Previous", disabled=program.current_semester <= 1):
    if notify_result(state.call("retreat_semester", program.id)):
        st.rerun()
label_col.markdown(
    f"<h3 style='text-align:center;'>Semester {program.current_semester} of {program.semesters}</h3>",
    unsafe_allow_html=True,
)
if next_col.button("Next ▶", disabled=program.current_semester >= program.semesters):
    if notify_result(state.call("advance_semester", program.id)):
        st.rerun()

# -----------------------------
# Progress
# -----------------------------
left, right = st.columns([1, 2])
with left:
    st.plotly_chart(
        build_completion_gauge(summary["completion"], summary["credits_earned"], summary["target_credits"]),
        use_container_width=True,
    )
    st.metric("GPA", format_grade(summary["gpa"]))
    st.metric("Planned credits", f"{summary['credits_planned']:g}")
    if program.finished:
        st.success("Program finished 🎉")

own = snap.courses_for(program.id)
with right:
    st.plotly_chart(build_semester_trend_figure(semester_averages(own), summary["gpa"]), use_container_width=True)

# -----------------------------
# Courses
# -----------------------------
st.subheader("Courses")
if not own:
    st.info("No courses in this program yet. Add them on the **Courses** page.")
    st.stop()

df = pd.DataFrame(
    [
        {
            "Semester": c.semesters,
            "Code": c.course_code,
            "Name": c.name,
            "Credits": c.credits,
            "Grade": c.grade,
            "Finished": c.finished,
            "Tags": ", ".join(c.tags),
        }
        for c in own
    ]
).sort_values(["Semester", "Name"])

only_current = st.toggle("Only current semester", value=False)
if only_current:
    df = df[df["Semester"] == program.current_semester]
st.dataframe(df, use_container_width=True, hide_index=True)
