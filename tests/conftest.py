"""
Shared fixtures: row factories, a controllable fake store and an in-memory
LocalStore.
"""
import asyncio
import itertools
import os
from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone

import pytest

os.environ.setdefault("LOG_DIR", "none")

from core.change_feed import InMemoryChangeFeed
from core.errors import RemoteFailure
from core.schemas import COLLECTIONS, PREFERENCES, Course, Preferences, StudyProgram
from core.store import Identity, RemoteStore

USER = Identity(id="user-1", email="ada@example.org", name="Ada")
OTHER = Identity(id="user-2", email="bob@example.org", name="Bob")

_ids = itertools.count(1)
BASE_TIME = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_program(**kw):
    data = {
        "id": f"prog-{next(_ids)}",
        "user_id": USER.id,
        "created_at": BASE_TIME,
        "name": "Computer Science",
        "degree": "Bachelor",
        "institution": "TU Example",
        "semesters": 6,
        "current_semester": 1,
        "credits": 180,
        "finished": False,
    }
    data.update(kw)
    return StudyProgram.model_validate(data)


def make_course(**kw):
    data = {
        "id": f"course-{next(_ids)}",
        "user_id": USER.id,
        "created_at": BASE_TIME,
        "program_id": "prog-x",
        "name": "Algorithms",
        "credits": 5,
        "grade": None,
        "semesters": 1,
        "finished": False,
    }
    data.update(kw)
    return Course.model_validate(data)


def make_prefs(**kw):
    data = {
        "id": f"pref-{next(_ids)}",
        "user_id": USER.id,
        "created_at": BASE_TIME,
        "grade_min": 1.0,
        "grade_max": 5.0,
        "grade_passed": 4.0,
        "grade_include_failed": False,
    }
    data.update(kw)
    return Preferences.model_validate(data)


def months_later(n):
    return BASE_TIME + timedelta(days=31 * n)


class FakeStore(RemoteStore):
    """
    RemoteStore double.

    - `rows[collection]` is what fetches return.
    - `fail[(operation, collection)] = exc` makes that call raise.
    - `hold(collection, n)` makes the next n fetches wait on futures the
      test resolves in whatever order it likes.
    - `calls` records (operation, collection, ...) for every call.
    """

    mode = "fake"

    def __init__(self, identity=USER):
        self.feed = InMemoryChangeFeed()
        self.identity = identity
        self.rows = {c: [] for c in COLLECTIONS}
        self.fail = {}
        self.calls = []
        self._held = defaultdict(deque)

    def hold(self, collection, n):
        loop = asyncio.get_running_loop()
        futures = [loop.create_future() for _ in range(n)]
        self._held[collection].extend(futures)
        return futures

    def _maybe_fail(self, operation, collection):
        exc = self.fail.get((operation, collection))
        if exc is not None:
            raise exc

    async def resolve_current_identity(self):
        return self.identity

    async def fetch_all(self, collection, owner_id, order_by="created_at", direction="desc"):
        self.calls.append(("fetch_all", collection, owner_id))
        if self._held[collection]:
            return list(await self._held[collection].popleft())
        self._maybe_fail("fetch", collection)
        return [r for r in self.rows[collection] if r.user_id == owner_id]

    async def fetch_one(self, collection, owner_id, filters=None):
        self.calls.append(("fetch_one", collection, owner_id))
        if self._held[collection]:
            return await self._held[collection].popleft()
        self._maybe_fail("fetch", collection)
        return next((r for r in self.rows[collection] if r.user_id == owner_id), None)

    async def insert(self, collection, row):
        self.calls.append(("insert", collection, row))
        self._maybe_fail("insert", collection)
        model = {
            "courses": Course,
            "study_programs": StudyProgram,
            "preferences": Preferences,
        }[collection].model_validate({"id": f"new-{next(_ids)}", "created_at": BASE_TIME, **row})
        self.rows[collection].append(model)
        return model

    async def update(self, collection, row_id, owner_id, patch):
        self.calls.append(("update", collection, row_id, patch))
        self._maybe_fail("update", collection)
        for i, row in enumerate(self.rows[collection]):
            if row.id == row_id and row.user_id == owner_id:
                self.rows[collection][i] = row.model_copy(update=patch)
                return self.rows[collection][i]
        raise RemoteFailure(f"row {row_id} not found", collection=collection, operation="update")

    async def delete(self, collection, row_id, owner_id):
        self.calls.append(("delete", collection, row_id))
        self._maybe_fail("delete", collection)
        self.rows[collection] = [
            r for r in self.rows[collection] if not (r.id == row_id and r.user_id == owner_id)
        ]

    def writes(self):
        return [c for c in self.calls if c[0] in {"insert", "update", "delete"}]


@pytest.fixture
def store():
    fake = FakeStore()
    fake.rows[PREFERENCES] = [make_prefs()]
    return fake


@pytest.fixture
def local_store():
    from database.db_setup import get_engine
    from database.queries import LocalStore

    engine = get_engine("sqlite:///:memory:")
    yield LocalStore(engine, identity=USER)
    engine.dispose()
