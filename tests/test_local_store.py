"""LocalStore: owner scoping, constraints and published change events."""
import threading

import pytest

from core.errors import RemoteFailure
from core.schemas import COURSES, PREFERENCES, STUDY_PROGRAMS, Course, StudyProgram
from conftest import OTHER, USER

PROGRAM = {
    "name": "Computer Science",
    "degree": "Bachelor",
    "institution": "TU Example",
    "semesters": 6,
    "credits": 180,
}


async def add_program(store, owner=USER, **kw):
    return await store.insert(STUDY_PROGRAMS, {**PROGRAM, **kw, "user_id": owner.id})


@pytest.mark.asyncio
async def test_insert_and_fetch_scoped_to_owner(local_store):
    mine = await add_program(local_store)
    await add_program(local_store, owner=OTHER, name="Other")

    rows = await local_store.fetch_all(STUDY_PROGRAMS, USER.id)

    assert isinstance(mine, StudyProgram)
    assert [p.id for p in rows] == [mine.id]


@pytest.mark.asyncio
async def test_fetch_all_orders_newest_first(local_store):
    first = await add_program(local_store, name="First")
    second = await add_program(local_store, name="Second")

    rows = await local_store.fetch_all(STUDY_PROGRAMS, USER.id)
    assert [p.id for p in rows] == [second.id, first.id]
    rows = await local_store.fetch_all(STUDY_PROGRAMS, USER.id, direction="asc")
    assert [p.id for p in rows] == [first.id, second.id]


@pytest.mark.asyncio
async def test_unknown_order_column_rejected(local_store):
    with pytest.raises(RemoteFailure):
        await local_store.fetch_all(COURSES, USER.id, order_by="nope")


@pytest.mark.asyncio
async def test_course_round_trip_keeps_tags_and_notes(local_store):
    program = await add_program(local_store)
    document = {"format": "markdown", "content": "notes"}
    course = await local_store.insert(
        COURSES,
        {
            "user_id": USER.id,
            "program_id": program.id,
            "name": "Algorithms",
            "credits": 6,
            "tags": ["core", "math"],
            "editor_state": document,
        },
    )

    fetched = await local_store.fetch_one(COURSES, USER.id, {"id": course.id})
    assert isinstance(fetched, Course)
    assert fetched.tags == ["core", "math"]
    assert fetched.editor_state == document


@pytest.mark.asyncio
async def test_course_requires_own_program(local_store):
    foreign = await add_program(local_store, owner=OTHER)
    with pytest.raises(RemoteFailure) as exc:
        await local_store.insert(COURSES, {"user_id": USER.id, "program_id": foreign.id, "name": "X"})
    assert "foreign key" in str(exc.value)


@pytest.mark.asyncio
async def test_update_only_own_rows(local_store):
    program = await add_program(local_store)

    updated = await local_store.update(STUDY_PROGRAMS, program.id, USER.id, {"current_semester": 3})
    assert updated.current_semester == 3

    with pytest.raises(RemoteFailure):
        await local_store.update(STUDY_PROGRAMS, program.id, OTHER.id, {"current_semester": 4})
    with pytest.raises(RemoteFailure):
        await local_store.update(STUDY_PROGRAMS, program.id, USER.id, {"user_id": OTHER.id})


@pytest.mark.asyncio
async def test_delete_program_cascades_courses(local_store):
    program = await add_program(local_store)
    await local_store.insert(COURSES, {"user_id": USER.id, "program_id": program.id, "name": "A"})

    await local_store.delete(STUDY_PROGRAMS, program.id, USER.id)

    assert await local_store.fetch_all(STUDY_PROGRAMS, USER.id) == []
    assert await local_store.fetch_all(COURSES, USER.id) == []
    # deleting again is a no-op
    await local_store.delete(STUDY_PROGRAMS, program.id, USER.id)


@pytest.mark.asyncio
async def test_single_preferences_row_per_owner(local_store):
    await local_store.insert(PREFERENCES, {"user_id": USER.id})
    with pytest.raises(RemoteFailure):
        await local_store.insert(PREFERENCES, {"user_id": USER.id})


@pytest.mark.asyncio
async def test_writes_are_published(local_store):
    events = []
    await local_store.feed.subscribe(STUDY_PROGRAMS, USER.id, events.append)
    await local_store.feed.subscribe(COURSES, USER.id, events.append)

    program = await add_program(local_store)
    await local_store.insert(COURSES, {"user_id": USER.id, "program_id": program.id, "name": "A"})
    await local_store.update(STUDY_PROGRAMS, program.id, USER.id, {"finished": True})
    await local_store.delete(STUDY_PROGRAMS, program.id, USER.id)

    assert [(e.collection, e.event_type) for e in events] == [
        (STUDY_PROGRAMS, "INSERT"),
        (COURSES, "INSERT"),
        (STUDY_PROGRAMS, "UPDATE"),
        (STUDY_PROGRAMS, "DELETE"),
        (COURSES, "DELETE"),
    ]
    assert events[2].old_record["finished"] is False


@pytest.mark.asyncio
async def test_identity_and_ping(local_store):
    assert await local_store.resolve_current_identity() == USER
    local_store.sign_out()
    assert await local_store.resolve_current_identity() is None
    assert await local_store.ping() is True


@pytest.mark.asyncio
async def test_queries_run_on_worker_threads(local_store):
    threads = []
    make_session = local_store.Session

    def session():
        threads.append(threading.get_ident())
        return make_session()

    local_store.Session = session
    program = await add_program(local_store)
    await local_store.fetch_all(STUDY_PROGRAMS, USER.id)
    await local_store.delete(STUDY_PROGRAMS, program.id, USER.id)

    assert len(threads) == 3
    assert threading.get_ident() not in threads
    assert await local_store.ping() is True
