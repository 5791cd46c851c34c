"""
DataCache behaviour: initial load, ordering of concurrent fetches, teardown,
failure handling, subscriptions and mutation helpers.
"""
import asyncio

import pytest

from analytics.progress import reconcile_program_finished
from core.change_feed import ChangeEvent
from core.errors import RemoteFailure
from core.schemas import COURSES, PREFERENCES, STUDY_PROGRAMS, markdown_notes
from core.sync_controller import DataCache
from conftest import USER, FakeStore, make_course, make_prefs, make_program


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


# =============================================================================
# Loading
# =============================================================================

@pytest.mark.asyncio
async def test_start_loads_all_three_collections(store):
    program = make_program()
    store.rows[STUDY_PROGRAMS] = [program]
    store.rows[COURSES] = [make_course(program_id=program.id)]
    cache = DataCache(store)

    await cache.start()

    assert cache.loading is False
    assert cache.study_programs == (program,)
    assert len(cache.courses) == 1
    assert cache.preferences is not None
    assert cache.identity == USER
    assert cache.errors == {}


@pytest.mark.asyncio
async def test_loading_true_until_all_fetches_resolve(store):
    cache = DataCache(store, realtime=False)
    [held] = store.hold(COURSES, 1)

    task = asyncio.create_task(cache.start())
    await settle()
    assert cache.loading is True

    held.set_result([])
    await task
    assert cache.loading is False


@pytest.mark.asyncio
async def test_unauthenticated_resolves_empty_without_error():
    store = FakeStore(identity=None)
    cache = DataCache(store)

    await cache.start()

    assert cache.courses == ()
    assert cache.study_programs == ()
    assert cache.preferences is None
    assert cache.errors == {}
    assert cache.subscription_count == 0
    assert store.calls == []


@pytest.mark.asyncio
async def test_missing_preferences_created_with_defaults():
    store = FakeStore()
    cache = DataCache(store, realtime=False)

    await cache.start()

    inserts = [c for c in store.calls if c[0] == "insert"]
    assert len(inserts) == 1
    assert inserts[0][1] == PREFERENCES
    assert inserts[0][2]["user_id"] == USER.id
    assert cache.preferences.grade_passed == 4.0


@pytest.mark.asyncio
async def test_preferences_insert_race_reads_existing_row():
    store = FakeStore()
    existing = make_prefs(grade_max=6.0)

    async def insert(collection, row):
        store.rows[PREFERENCES] = [existing]
        raise RemoteFailure("duplicate key", collection=collection, operation="insert")

    store.insert = insert
    cache = DataCache(store, realtime=False)

    assert await cache.refresh_preferences() is True
    assert cache.preferences == existing


# =============================================================================
# Ordering and teardown
# =============================================================================

@pytest.mark.asyncio
async def test_newer_fetch_wins_when_older_resolves_last(store):
    cache = DataCache(store, realtime=False)
    old = make_course(name="old")
    new = make_course(name="new")
    first, second = store.hold(COURSES, 2)

    t1 = asyncio.create_task(cache.refresh_courses())
    await settle()
    t2 = asyncio.create_task(cache.refresh_courses())
    await settle()

    second.set_result([new])
    assert await t2 is True
    first.set_result([old])
    assert await t1 is False
    assert cache.courses == (new,)


@pytest.mark.asyncio
async def test_close_discards_in_flight_results(store):
    cache = DataCache(store)
    await cache.start()
    [held] = store.hold(COURSES, 1)

    task = asyncio.create_task(cache.refresh_courses())
    await settle()
    await cache.close()
    held.set_result([make_course()])

    assert await task is False
    assert cache.courses == ()
    assert cache.subscription_count == 0
    assert store.feed.open_subscriptions == 0


@pytest.mark.asyncio
async def test_refresh_is_idempotent(store):
    store.rows[COURSES] = [make_course(), make_course()]
    cache = DataCache(store, realtime=False)
    await cache.start()

    first = cache.courses
    await cache.refresh_courses()
    assert cache.courses == first


@pytest.mark.asyncio
async def test_failed_fetch_keeps_previous_slice(store):
    store.rows[COURSES] = [make_course()]
    cache = DataCache(store, realtime=False)
    await cache.start()
    before = cache.courses

    store.fail[("fetch", COURSES)] = RemoteFailure("boom", collection=COURSES, operation="fetch")
    assert await cache.refresh_courses() is False

    assert cache.courses == before
    assert "boom" in cache.errors[COURSES]

    del store.fail[("fetch", COURSES)]
    assert await cache.refresh_courses() is True
    assert COURSES not in cache.errors


@pytest.mark.asyncio
async def test_initial_load_failure_is_isolated_to_its_collection(store):
    program = make_program()
    store.rows[STUDY_PROGRAMS] = [program]
    store.rows[COURSES] = [make_course(program_id=program.id)]
    store.fail[("fetch", COURSES)] = RemoteFailure("timeout", collection=COURSES, operation="fetch")
    cache = DataCache(store)

    await cache.start()

    assert cache.loading is False
    assert cache.courses == ()
    assert "timeout" in cache.errors[COURSES]
    assert cache.study_programs == (program,)
    assert cache.preferences is not None
    assert set(cache.errors) == {COURSES}
    assert cache.subscription_count == 3


# =============================================================================
# Subscriptions
# =============================================================================

@pytest.mark.asyncio
async def test_change_event_triggers_full_refetch(store):
    cache = DataCache(store)
    await cache.start()
    assert cache.subscription_count == 3

    added = make_course()
    store.rows[COURSES] = [added]
    store.feed.publish(ChangeEvent(COURSES, "INSERT", {"id": "ignored"}), USER.id)
    await cache.wait_idle()

    assert cache.courses == (added,)


@pytest.mark.asyncio
async def test_events_for_other_owner_ignored(store):
    cache = DataCache(store)
    await cache.start()
    fetches = len(store.calls)

    assert store.feed.publish(ChangeEvent(COURSES, "INSERT"), "someone-else") == 0
    await cache.wait_idle()
    assert len(store.calls) == fetches


@pytest.mark.asyncio
async def test_switch_identity_rebuilds_subscriptions(store):
    cache = DataCache(store)
    await cache.start()
    await cache.switch_identity()

    assert cache.subscription_count == 3
    assert store.feed.open_subscriptions == 3


@pytest.mark.asyncio
async def test_listeners_notified(store):
    cache = DataCache(store, realtime=False)
    seen = []
    cache.add_listener(seen.append)
    await cache.start()
    cache.remove_listener(seen.append)

    assert {COURSES, STUDY_PROGRAMS, PREFERENCES, "loading"} <= set(seen)


# =============================================================================
# Mutations
# =============================================================================

@pytest.mark.asyncio
async def test_validation_failure_makes_no_store_call(store):
    cache = DataCache(store, realtime=False)
    await cache.start()
    store.calls.clear()

    result = await cache.add_program({"name": "", "degree": "Bachelor", "institution": "X", "semesters": 6})

    assert result.ok is False
    assert result.kind == "validation"
    assert "name" in result.field_errors
    assert store.calls == []


@pytest.mark.asyncio
async def test_add_program_refreshes_slice(store):
    cache = DataCache(store, realtime=False)
    await cache.start()

    result = await cache.add_program(
        {"name": "Math", "degree": "Master", "institution": "Uni", "semesters": 4, "credits": 120}
    )

    assert result.ok is True
    assert [p.name for p in cache.study_programs] == ["Math"]
    assert store.writes()[-1][2]["user_id"] == USER.id


@pytest.mark.asyncio
async def test_remote_failure_returned_not_raised(store):
    cache = DataCache(store, realtime=False)
    await cache.start()
    store.fail[("insert", COURSES)] = RemoteFailure("fk violation", collection=COURSES, operation="insert")

    result = await cache.add_course({"program_id": "p1", "name": "A"})

    assert result.ok is False
    assert result.kind == "remote"
    assert "fk violation" in result.error


@pytest.mark.asyncio
async def test_mutation_without_session():
    store = FakeStore(identity=None)
    cache = DataCache(store, realtime=False)
    await cache.start()

    result = await cache.add_course({"program_id": "p1", "name": "A"})
    assert result.kind == "unauthenticated"


@pytest.mark.asyncio
async def test_semester_navigation_bounds(store):
    program = make_program(semesters=2, current_semester=1)
    store.rows[STUDY_PROGRAMS] = [program]
    cache = DataCache(store, realtime=False)
    await cache.start()

    assert (await cache.retreat_semester(program.id)).ok is False
    assert (await cache.advance_semester(program.id)).ok is True
    assert cache.program(program.id).current_semester == 2
    assert (await cache.advance_semester(program.id)).ok is False
    assert (await cache.advance_semester("missing")).kind == "not_found"


@pytest.mark.asyncio
async def test_finish_signal_applied_once(store):
    program = make_program(credits=10)
    store.rows[STUDY_PROGRAMS] = [program]
    store.rows[COURSES] = [make_course(program_id=program.id, credits=10, grade=1.0, finished=True)]
    cache = DataCache(store, realtime=False)
    await cache.start()

    signal = reconcile_program_finished(cache.program(program.id), cache.courses)
    assert (await cache.apply_finish_signal(signal)).ok is True
    assert cache.program(program.id).finished is True
    updates = len([c for c in store.calls if c[0] == "update"])

    assert (await cache.apply_finish_signal(signal)).ok is True
    assert len([c for c in store.calls if c[0] == "update"]) == updates
    assert reconcile_program_finished(cache.program(program.id), cache.courses) is None


@pytest.mark.asyncio
async def test_delete_program_refreshes_courses(store):
    program = make_program()
    store.rows[STUDY_PROGRAMS] = [program]
    cache = DataCache(store, realtime=False)
    await cache.start()

    store.calls.clear()
    assert (await cache.delete_program(program.id)).ok is True
    fetched = {c[1] for c in store.calls if c[0] == "fetch_all"}
    assert fetched == {STUDY_PROGRAMS, COURSES}


@pytest.mark.asyncio
async def test_save_course_notes_stores_document_as_is(store):
    course = make_course()
    store.rows[COURSES] = [course]
    cache = DataCache(store, realtime=False)
    await cache.start()

    document = {"format": "markdown", "content": "# Week 1"}
    assert (await cache.save_course_notes(course.id, document)).ok is True
    assert store.writes()[-1][3] == {"editor_state": document}
    assert cache.course(course.id).editor_state == document


@pytest.mark.asyncio
async def test_notes_of_another_editor_are_not_overwritten(store):
    rich = {"root": {"type": "root", "children": [{"type": "paragraph"}]}}
    course = make_course(editor_state=rich)
    store.rows[COURSES] = [course]
    cache = DataCache(store, realtime=False)
    await cache.start()

    result = await cache.save_course_notes(course.id, markdown_notes("replaced"))

    assert result.kind == "validation"
    assert "editor_state" in result.field_errors
    assert store.writes() == []
    assert cache.course(course.id).editor_state == rich

    assert (await cache.save_course_notes(course.id, markdown_notes("replaced"), replace=True)).ok is True


@pytest.mark.asyncio
async def test_save_preferences_updates_existing_row(store):
    cache = DataCache(store, realtime=False)
    await cache.start()
    pref_id = cache.preferences.id

    result = await cache.save_preferences({"grade_min": 1, "grade_max": 6, "grade_passed": 4})

    assert result.ok is True
    assert store.writes()[-1][:3] == ("update", PREFERENCES, pref_id)
    assert cache.preferences.grade_max == 6
