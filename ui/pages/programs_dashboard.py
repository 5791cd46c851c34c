# ===============================================================
# StudyInsights: Programs
# ===============================================================
# Features:
#   • List of study programs with completion and GPA
#   • Create / edit / delete programs (validated before any write)
#   • Deleting a program removes its courses
# ===============================================================

import sys, os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../../")))

import streamlit as st

from analytics.progress import program_summary
from core.schemas import Degree
from core.ui_helpers import format_grade, get_app_state, notify_result, require_login, show_cache_errors
from ui.components.backend_status import render_status_bar

st.set_page_config(page_title="Programs — StudyInsights", page_icon="🎓", layout="wide")
st.title("🎓 Study Programs")

state = get_app_state()
if not require_login(state):
    st.stop()

snap = state.snapshot()
show_cache_errors(snap)
render_status_bar(snap, state.store.mode, state.subscription_count(), last_change=state.last_change())

DEGREES = [d.value for d in Degree]


def program_form(key, program=None):
    """Render the program fields and return the entered values (or None)."""
    with st.form(key):
        name = st.text_input("Name", value=program.name if program else "")
        institution = st.text_input("Institution", value=program.institution if program else "")
        degree = st.selectbox(
            "Degree",
            DEGREES,
            index=DEGREES.index(program.degree.value) if program else DEGREES.index(Degree.BACHELOR.value),
        )
        col1, col2, col3 = st.columns(3)
        semesters = col1.number_input("Semesters", min_value=1, step=1, value=program.semesters if program else 6)
        current = col2.number_input(
            "Current semester", min_value=1, step=1, value=program.current_semester if program else 1
        )
        credits = col3.number_input(
            "Credit target", min_value=0.0, step=1.0, value=float(program.credits) if program else 180.0
        )
        description = st.text_area("Description", value=(program.description or "") if program else "")
        if st.form_submit_button("Save" if program else "Create program"):
            return {
                "name": name,
                "institution": institution,
                "degree": degree,
                "semesters": int(semesters),
                "current_semester": int(current),
                "credits": float(credits),
                "description": description,
            }
    return None


# -----------------------------
# Create
# -----------------------------
with st.expander("➕ New program", expanded=not snap.study_programs):
    data = program_form("new_program")
    if data is not None and notify_result(state.call("add_program", data), "Program created"):
        st.rerun()

# -----------------------------
# List
# -----------------------------
if not snap.study_programs:
    st.info("No programs yet.")
    st.stop()

for program in snap.study_programs:
    summary = program_summary(program, snap.courses, snap.preferences)
    header = f"{program.name} · {program.degree.value} · {program.institution}"
    if program.finished:
        header += " ✅"
    with st.expander(header):
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Semester", f"{program.current_semester}/{program.semesters}")
        c2.metric("Courses", summary["course_count"])
        c3.metric("Completion", f"{summary['completion']}%")
        c4.metric("GPA", format_grade(summary["gpa"]))
        st.progress(summary["completion"] / 100)

        data = program_form(f"edit_{program.id}", program)
        if data is not None and notify_result(state.call("update_program", program.id, data), "Program saved"):
            st.rerun()

        confirm = st.checkbox("I understand all courses of this program are deleted too", key=f"confirm_{program.id}")
        if st.button("🗑️ Delete program", key=f"delete_{program.id}", disabled=not confirm):
            if notify_result(state.call("delete_program", program.id), "Program deleted"):
                st.rerun()
