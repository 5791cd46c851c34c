"""AppState: loop bridge and session lifecycle on the local store."""
from datetime import datetime, timezone

import pytest

from core.app_state import AppState, app_session, local_identity
from core.config import AppConfig
from database.db_setup import get_engine
from database.queries import LocalStore

CONFIG = AppConfig(store="local", db_url="sqlite:///:memory:", realtime=True)


@pytest.fixture
def state():
    with app_session(CONFIG, LocalStore(get_engine("sqlite:///:memory:"))) as s:
        yield s


def test_local_identity_is_stable():
    assert local_identity("Ada@Example.org ").id == local_identity("ada@example.org").id


def test_starts_signed_out(state):
    assert state.identity() is None
    assert state.snapshot().is_empty


def test_sign_in_creates_preferences_and_subscriptions(state):
    assert state.sign_in("ada@example.org") is None

    snap = state.snapshot()
    assert state.identity().email == "ada@example.org"
    assert snap.preferences is not None
    assert state.subscription_count() == 3


def test_mutations_through_the_loop(state):
    state.sign_in("ada@example.org")
    result = state.call(
        "add_program",
        {"name": "CS", "degree": "Bachelor", "institution": "Uni", "semesters": 6, "credits": 30},
    )
    assert result.ok
    program_id = result.data.id

    assert state.call("add_course", {"program_id": program_id, "name": "A", "credits": 5}).ok
    state.run(state.cache.wait_idle())
    assert len(state.snapshot().courses_for(program_id)) == 1


def test_sign_out_clears_cache(state):
    state.sign_in("ada@example.org")
    state.sign_out()
    assert state.identity() is None
    assert state.subscription_count() == 0
    assert state.store.feed.open_subscriptions == 0


def test_shutdown_is_final():
    state = AppState(CONFIG, LocalStore(get_engine("sqlite:///:memory:")))
    state.shutdown()
    state.shutdown()
    assert state.closed
    with pytest.raises(RuntimeError):
        state.snapshot()


def test_last_change_tracks_cache_updates(state):
    before = datetime.now(timezone.utc)
    state.sign_in("ada@example.org")
    what, when = state.last_change()
    assert when >= before
    assert what in {"courses", "study_programs", "preferences", "loading"}
    assert when.tzinfo is not None


def test_update_account_renames_local_user(state):
    state.sign_in("ada@example.org")
    assert state.update_account("Ada Lovelace", "ada@example.org") is None
    assert state.identity().name == "Ada Lovelace"
    assert "not available" in state.update_account("Ada", "other@example.org")
    assert state.update_password("secret123") is not None


def test_delete_account_removes_local_rows(state):
    state.sign_in("ada@example.org")
    owner = state.identity().id
    assert state.call(
        "add_program",
        {"name": "CS", "degree": "Bachelor", "institution": "Uni", "semesters": 6, "credits": 30},
    ).ok

    assert state.delete_account() is None

    assert state.identity() is None
    assert state.run(state.store.fetch_all("study_programs", owner)) == []
    assert state.run(state.store.fetch_one("preferences", owner)) is None
    assert state.delete_account() == "Not authenticated"
