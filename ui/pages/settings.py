# ===============================================================
# StudyInsights: Settings
# ===============================================================
# Features:
#   • Grading scale (min, max, passing grade, include failed courses)
#   • Account: name and e-mail, new password, password reset,
#     delete account, sign out
# ===============================================================

import sys, os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../../")))

import streamlit as st

from core.schemas import DEFAULT_PREFERENCES
from core.ui_helpers import get_app_state, notify_result, require_login, reset_app_state, show_cache_errors
from ui.components.backend_status import render_status_bar

st.set_page_config(page_title="Settings — StudyInsights", page_icon="⚙️", layout="wide")
st.title("⚙️ Settings")

state = get_app_state()
if not require_login(state):
    st.stop()

snap = state.snapshot()
show_cache_errors(snap)
render_status_bar(snap, state.store.mode, state.subscription_count(), last_change=state.last_change())
identity = state.identity()

# -----------------------------
# Grading scale
# -----------------------------
st.subheader("Grading scale")
st.caption("Lower grades are better. The passing grade is the worst grade that still passes.")

current = snap.preferences.model_dump() if snap.preferences else dict(DEFAULT_PREFERENCES)
with st.form("preferences"):
    c1, c2, c3 = st.columns(3)
    grade_min = c1.number_input("Best grade", value=float(current["grade_min"]), step=0.1)
    grade_max = c2.number_input("Worst grade", value=float(current["grade_max"]), step=0.1)
    grade_passed = c3.number_input("Passing grade", value=float(current["grade_passed"]), step=0.1)
    include_failed = st.checkbox(
        "Include failed courses in the GPA", value=bool(current["grade_include_failed"])
    )
    if st.form_submit_button("Save"):
        result = state.call(
            "save_preferences",
            {
                "grade_min": grade_min,
                "grade_max": grade_max,
                "grade_passed": grade_passed,
                "grade_include_failed": include_failed,
            },
        )
        if notify_result(result, "Preferences saved"):
            st.rerun()

# -----------------------------
# Account
# -----------------------------
st.subheader("Account")
if identity is not None:
    st.write(f"Signed in as **{identity.name or identity.email or identity.id}**")

    with st.form("account"):
        name = st.text_input("Name", value=identity.name or "")
        email = st.text_input("E-mail", value=identity.email or "")
        if st.form_submit_button("Save account"):
            error = state.update_account(name, email)
            if error:
                st.error(error)
            else:
                st.toast("Account saved", icon="✅")
                st.rerun()

    with st.form("password", clear_on_submit=True):
        password = st.text_input("New password", type="password")
        repeat = st.text_input("Repeat new password", type="password")
        if st.form_submit_button("Update password"):
            if password != repeat:
                st.error("Passwords do not match")
            else:
                error = state.update_password(password)
                if error:
                    st.error(error)
                else:
                    st.success("Password updated.")

col1, col2 = st.columns(2)
if col1.button("📧 Send password reset e-mail", disabled=not (identity and identity.email)):
    error = state.reset_password(identity.email)
    if error:
        st.error(error)
    else:
        st.success("Check your inbox for the reset link.")

if col2.button("🚪 Sign out"):
    error = state.sign_out()
    reset_app_state()
    if error:
        st.error(error)
    else:
        st.rerun()

# -----------------------------
# Danger zone
# -----------------------------
with st.expander("Delete account"):
    st.warning("Deletes your account with all study programs, courses and preferences.")
    confirmed = st.checkbox("I understand this cannot be undone")
    if st.button("🗑️ Delete my account", disabled=not confirmed):
        error = state.delete_account()
        if error:
            st.error(error)
        else:
            reset_app_state()
            st.rerun()
