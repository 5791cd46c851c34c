# ===============================================================
# StudyInsights: Courses
# ===============================================================
# Features:
#   • Filter by program, semester and tag
#   • Create / edit / delete courses (grades checked against preferences)
#   • Per-course notes
#   • Grade compared with the program average (lower is better)
# ===============================================================

import sys, os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../../")))

import streamlit as st

from analytics.progress import compare_to_average, program_courses, weighted_gpa
from core.schemas import DEFAULT_PREFERENCES, markdown_notes, notes_text
from core.ui_helpers import format_grade, get_app_state, notify_result, require_login, show_cache_errors
from ui.components.backend_status import render_status_bar

st.set_page_config(page_title="Courses — StudyInsights", page_icon="📚", layout="wide")
st.title("📚 Courses")

state = get_app_state()
if not require_login(state):
    st.stop()

snap = state.snapshot()
show_cache_errors(snap)
render_status_bar(snap, state.store.mode, state.subscription_count(), last_change=state.last_change())

if not snap.study_programs:
    st.info("Create a study program first.")
    st.stop()

prefs = snap.preferences
grade_min = prefs.grade_min if prefs else DEFAULT_PREFERENCES["grade_min"]
grade_max = prefs.grade_max if prefs else DEFAULT_PREFERENCES["grade_max"]

PROGRAM_IDS = [p.id for p in snap.study_programs]
COMPARISON = {"better": "🟢 better than average", "worse": "🔴 worse than average", "equal": "⚪ on average"}


def course_form(key, course=None):
    """Render the course fields and return the entered values (or None)."""
    with st.form(key):
        program_id = st.selectbox(
            "Program",
            PROGRAM_IDS,
            index=PROGRAM_IDS.index(course.program_id) if course and course.program_id in PROGRAM_IDS else 0,
            format_func=lambda pid: snap.program(pid).name,
        )
        col1, col2 = st.columns([1, 3])
        code = col1.text_input("Code", value=course.course_code if course else "")
        name = col2.text_input("Name", value=course.name if course else "")
        col3, col4, col5 = st.columns(3)
        credits = col3.number_input("Credits", min_value=0.0, step=0.5, value=float(course.credits) if course else 5.0)
        semester = col4.number_input("Semester", min_value=1, step=1, value=course.semesters if course else 1)
        graded = col5.checkbox("Graded", value=course is not None and course.grade is not None)
        grade = st.slider(
            f"Grade ({grade_min:g} best – {grade_max:g})",
            min_value=float(grade_min),
            max_value=float(grade_max),
            step=0.1,
            value=float(course.grade) if course and course.grade is not None else float(grade_min),
        )
        finished = st.checkbox("Finished", value=course.finished if course else False)
        tags = st.text_input("Tags (comma separated)", value=", ".join(course.tags) if course else "")
        if st.form_submit_button("Save" if course else "Create course"):
            return {
                "program_id": program_id,
                "course_code": code,
                "name": name,
                "credits": float(credits),
                "semesters": int(semester),
                "grade": grade if graded else None,
                "finished": finished,
                "tags": tags,
            }
    return None


# -----------------------------
# Create
# -----------------------------
with st.expander("➕ New course", expanded=not snap.courses):
    data = course_form("new_course")
    if data is not None and notify_result(state.call("add_course", data), "Course created"):
        st.rerun()

# -----------------------------
# Filters
# -----------------------------
all_tags = sorted({t for c in snap.courses for t in c.tags}, key=str.lower)
f1, f2, f3 = st.columns(3)
program_filter = f1.selectbox(
    "Program",
    [None] + PROGRAM_IDS,
    format_func=lambda pid: "All programs" if pid is None else snap.program(pid).name,
)
semester_filter = f2.selectbox("Semester", [None] + sorted({c.semesters for c in snap.courses}),
                               format_func=lambda s: "All semesters" if s is None else f"Semester {s}")
tag_filter = f3.multiselect("Tags", all_tags)

courses = list(snap.courses)
if program_filter:
    courses = [c for c in courses if c.program_id == program_filter]
if semester_filter:
    courses = [c for c in courses if c.semesters == semester_filter]
if tag_filter:
    wanted = {t.lower() for t in tag_filter}
    courses = [c for c in courses if wanted & {t.lower() for t in c.tags}]

if not courses:
    st.info("No courses match the filters.")
    st.stop()

# -----------------------------
# List
# -----------------------------
averages = {
    p.id: weighted_gpa(program_courses(p, snap.courses), prefs) for p in snap.study_programs
}

for course in courses:
    program = snap.program(course.program_id)
    header = f"{course.course_code + ' · ' if course.course_code else ''}{course.name}"
    if course.finished:
        header += " ✅"
    with st.expander(header):
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Program", program.name if program else "–")
        c2.metric("Credits", f"{course.credits:g}")
        c3.metric("Grade", format_grade(course.grade))
        comparison = compare_to_average(course.grade, averages.get(course.program_id))
        c4.metric("Program average", format_grade(averages.get(course.program_id)))
        if comparison:
            st.caption(COMPARISON[comparison])
        if course.tags:
            st.caption(" ".join(f"`{t}`" for t in course.tags))

        tab_edit, tab_notes = st.tabs(["Edit", "Notes"])
        with tab_edit:
            data = course_form(f"edit_{course.id}", course)
            if data is not None and notify_result(state.call("update_course", course.id, data), "Course saved"):
                st.rerun()
            if st.button("🗑️ Delete course", key=f"delete_{course.id}"):
                if notify_result(state.call("delete_course", course.id), "Course deleted"):
                    st.rerun()
        with tab_notes:
            current = notes_text(course.editor_state)
            if current is None:
                # another editor wrote these notes; keep the document untouched
                st.info("These notes were written in another editor and are shown read-only.")
                st.json(course.editor_state, expanded=False)
            else:
                text = st.text_area("Notes (Markdown)", value=current, key=f"notes_{course.id}", height=200)
                if st.button("💾 Save notes", key=f"save_notes_{course.id}"):
                    document = markdown_notes(text)
                    if notify_result(state.call("save_course_notes", course.id, document), "Notes saved"):
                        st.rerun()
