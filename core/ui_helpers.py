"""
core/ui_helpers.py
------------------
Shared Streamlit helpers for all StudyInsights pages.

- One `AppState` per browser session, kept in `st.session_state`.
- Consistent rendering of `MutationResult`s: validation errors inline,
  remote failures as transient toasts.
- Login gate used at the top of every page.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

import streamlit as st
from streamlit import runtime
from streamlit.runtime.scriptrunner import get_script_run_ctx

from core.app_state import AppState
from core.logging_config import configure_from_env
from core.snapshot import Snapshot
from core.sync_controller import MutationResult

STATE_KEY = "studyinsights_app_state"

logger = logging.getLogger(__name__)

# session id -> AppState, so states of closed browser tabs can be shut down
_SESSIONS: Dict[str, AppState] = {}
_SESSIONS_LOCK = threading.Lock()


def _session_id() -> Optional[str]:
    ctx = get_script_run_ctx()
    return ctx.session_id if ctx is not None else None


def track_session(session_id: Optional[str], state: AppState) -> None:
    if session_id is None:
        return
    with _SESSIONS_LOCK:
        _SESSIONS[session_id] = state


def reap_orphaned_states() -> int:
    """
    Shut down AppStates whose browser session has ended without a sign-out.

    Streamlit drops a session when its tab closes but keeps no hook for
    objects in `st.session_state`, so every new session sweeps the registry.
    Returns the number of states shut down.
    """
    if not runtime.exists():
        return 0
    rt = runtime.get_instance()
    with _SESSIONS_LOCK:
        ended = [sid for sid in _SESSIONS if not rt.is_active_session(sid)]
        states = [_SESSIONS.pop(sid) for sid in ended]
    for state in states:
        state.shutdown()
    if states:
        logger.info("Shut down %d AppState(s) of ended sessions", len(states))
    return len(states)


def get_app_state() -> AppState:
    """Return the session's AppState, creating and starting it on first use."""
    state: Optional[AppState] = st.session_state.get(STATE_KEY)
    if state is None or state.closed:
        configure_from_env()
        reap_orphaned_states()
        state = AppState()
        state.start()
        st.session_state[STATE_KEY] = state
        track_session(_session_id(), state)
    return state


def reset_app_state() -> None:
    """Shut the session's AppState down (used after sign-out)."""
    state: Optional[AppState] = st.session_state.pop(STATE_KEY, None)
    session_id = _session_id()
    if session_id is not None:
        with _SESSIONS_LOCK:
            _SESSIONS.pop(session_id, None)
    if state is not None:
        state.shutdown()


def notify_result(result: MutationResult, success: Optional[str] = None) -> bool:
    """
    Show the outcome of a mutation.

    Returns True on success so callers can `st.rerun()` right after.
    """
    if result.ok:
        if success:
            st.toast(success, icon="✅")
        return True
    if result.kind == "validation":
        if result.field_errors:
            for name, message in result.field_errors.items():
                st.error(f"**{name}**: {message}")
        else:
            st.error(result.error)
    elif result.kind == "unauthenticated":
        st.warning("Your session has expired. Please sign in again.")
    else:
        st.toast(f"⚠️ {result.error}")
    return False


def show_cache_errors(snapshot: Snapshot) -> None:
    """Surface per-collection fetch failures; the previous data stays visible."""
    for collection, message in snapshot.errors.items():
        st.toast(f"⚠️ {collection}: {message}")


def format_grade(value: Optional[float]) -> str:
    return "–" if value is None else f"{value:.2f}"


def require_login(state: AppState) -> bool:
    """Render the sign-in / sign-up form when nobody is signed in."""
    if state.identity() is not None:
        return True

    st.info("Please sign in to see your study programs.")
    local = state.store.mode == "local"
    tab_in, tab_up = st.tabs(["Sign in", "Create account"])

    with tab_in:
        with st.form("sign_in"):
            email = st.text_input("E-mail")
            password = st.text_input("Password", type="password", disabled=local)
            if st.form_submit_button("Sign in"):
                error = state.sign_in(email, password)
                if error:
                    st.error(error)
                else:
                    st.rerun()

    with tab_up:
        with st.form("sign_up"):
            name = st.text_input("Name")
            email = st.text_input("E-mail", key="sign_up_email")
            password = st.text_input("Password", type="password", key="sign_up_password", disabled=local)
            if st.form_submit_button("Create account"):
                error = state.sign_up(email, password, name)
                if error:
                    st.error(error)
                elif state.identity() is None:
                    st.success("Check your inbox to confirm your e-mail address.")
                else:
                    st.rerun()
    return False
