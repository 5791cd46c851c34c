# database/queries.py
"""
LocalStore: the remote store contract on top of SQLAlchemy / SQLite.

Used for local development (STUDYINSIGHTS_STORE=local) and by the test suite.
It mirrors what the hosted store does server-side:
- every query is scoped to the owner (`user_id`)
- `courses.program_id` must reference a program of the same owner
- deleting a program deletes its courses
- one preferences row per owner
- each committed write is published on an in-process change feed

SQLAlchemy sessions are blocking, so each query runs on a worker thread via
`asyncio.to_thread` and the session loop keeps serving realtime callbacks.
Events are published back on the loop once the write has committed.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from core.change_feed import ChangeEvent, InMemoryChangeFeed
from core.errors import RemoteFailure
from core.schemas import COURSES, PREFERENCES, STUDY_PROGRAMS, parse_row, parse_rows
from core.store import Identity, RemoteStore

from .db_setup import get_engine, init_db
from .models import TABLES, CourseRecord, StudyProgramRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

READ_ONLY_COLUMNS = {"id", "user_id", "created_at", "updated_at"}


def _to_dict(record: Any) -> Dict[str, Any]:
    return {c.name: getattr(record, c.name) for c in record.__table__.columns}


class LocalStore(RemoteStore):
    mode = "local"

    def __init__(
        self,
        engine=None,
        identity: Optional[Identity] = None,
        feed: Optional[InMemoryChangeFeed] = None,
    ):
        self.engine = engine if engine is not None else get_engine()
        init_db(self.engine)
        self.Session = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        self.feed = feed or InMemoryChangeFeed()
        self._identity = identity
        # one SQLite connection is shared by the worker threads
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Identity (no real auth locally)
    # ------------------------------------------------------------------ #

    def sign_in(self, identity: Identity) -> None:
        self._identity = identity
        logger.info("[LocalStore] signed in as %s", identity.id)

    def sign_out(self) -> None:
        self._identity = None

    async def resolve_current_identity(self) -> Optional[Identity]:
        return self._identity

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _table(self, collection: str):
        try:
            return TABLES[collection]
        except KeyError:
            raise RemoteFailure(f"unknown collection '{collection}'", collection=collection, operation="query")

    def _check_columns(self, collection: str, operation: str, data: Dict[str, Any], allowed: set) -> None:
        unknown = sorted(set(data) - allowed)
        if unknown:
            raise RemoteFailure(
                f"Could not find column(s) {unknown}",
                collection=collection,
                operation=operation,
            )

    async def _run(self, work: Callable[[], T], collection: str, operation: str) -> T:
        """Run blocking session work on a worker thread, one call at a time."""

        def locked() -> T:
            with self._lock:
                return work()

        try:
            return await asyncio.to_thread(locked)
        except SQLAlchemyError as e:
            raise RemoteFailure(str(e), collection=collection, operation=operation) from e

    def _publish(self, collection: str, event_type: str, record: Dict[str, Any], owner_id: str) -> None:
        self.feed.publish(ChangeEvent(collection, event_type, record), owner_id)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    async def fetch_all(
        self,
        collection: str,
        owner_id: str,
        order_by: str = "created_at",
        direction: str = "desc",
    ) -> List[Any]:
        table = self._table(collection)
        column = table.__table__.columns.get(order_by)
        if column is None:
            raise RemoteFailure(f"cannot order by '{order_by}'", collection=collection, operation="fetch")
        order = column.desc() if direction.lower() == "desc" else column.asc()

        def query() -> List[Dict[str, Any]]:
            with self.Session() as session:
                records = session.scalars(
                    select(table).where(table.user_id == owner_id).order_by(order)
                ).all()
                return [_to_dict(r) for r in records]

        rows = await self._run(query, collection, "fetch")
        return parse_rows(collection, rows)

    async def fetch_one(
        self,
        collection: str,
        owner_id: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Optional[Any]:
        table = self._table(collection)
        stmt = select(table).where(table.user_id == owner_id)
        for name, value in (filters or {}).items():
            column = table.__table__.columns.get(name)
            if column is None:
                raise RemoteFailure(f"unknown column '{name}'", collection=collection, operation="fetch")
            stmt = stmt.where(column == value)

        def query() -> Optional[Dict[str, Any]]:
            with self.Session() as session:
                record = session.scalars(stmt.limit(1)).first()
                return _to_dict(record) if record is not None else None

        row = await self._run(query, collection, "fetch")
        return parse_row(collection, row) if row is not None else None

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    async def insert(self, collection: str, row: Dict[str, Any]) -> Any:
        table = self._table(collection)
        owner_id = row.get("user_id")
        if not owner_id:
            raise RemoteFailure("user_id is required", collection=collection, operation="insert")
        columns = {c.name for c in table.__table__.columns} - {"created_at", "updated_at"}
        self._check_columns(collection, "insert", row, columns)

        def write() -> Dict[str, Any]:
            with self.Session() as session:
                if collection == COURSES:
                    self._check_program_owner(session, row.get("program_id"), owner_id)
                if collection == PREFERENCES:
                    exists = session.scalars(select(table).where(table.user_id == owner_id)).first()
                    if exists is not None:
                        raise RemoteFailure(
                            "duplicate key value violates unique constraint \"preferences_user_id_key\"",
                            collection=collection,
                            operation="insert",
                        )
                record = table(**row)
                session.add(record)
                session.commit()
                session.refresh(record)
                return _to_dict(record)

        data = await self._run(write, collection, "insert")
        logger.debug("[LocalStore] inserted into '%s'", collection)
        parsed = parse_row(collection, data)
        self._publish(collection, "INSERT", data, owner_id)
        return parsed

    async def update(
        self,
        collection: str,
        row_id: str,
        owner_id: str,
        patch: Dict[str, Any],
    ) -> Any:
        table = self._table(collection)
        writable = {c.name for c in table.__table__.columns} - READ_ONLY_COLUMNS
        self._check_columns(collection, "update", patch, writable)

        def write() -> Tuple[Dict[str, Any], Dict[str, Any]]:
            with self.Session() as session:
                record = session.scalars(
                    select(table).where(table.id == row_id, table.user_id == owner_id)
                ).first()
                if record is None:
                    raise RemoteFailure(f"row {row_id} not found", collection=collection, operation="update")
                if collection == COURSES and "program_id" in patch:
                    self._check_program_owner(session, patch["program_id"], owner_id)
                old = _to_dict(record)
                for key, value in patch.items():
                    setattr(record, key, value)
                session.commit()
                session.refresh(record)
                return _to_dict(record), old

        data, old = await self._run(write, collection, "update")
        parsed = parse_row(collection, data)
        self.feed.publish(ChangeEvent(collection, "UPDATE", data, old), owner_id)
        return parsed

    async def delete(self, collection: str, row_id: str, owner_id: str) -> None:
        table = self._table(collection)

        def write() -> Tuple[Optional[Dict[str, Any]], int]:
            with self.Session() as session:
                record = session.scalars(
                    select(table).where(table.id == row_id, table.user_id == owner_id)
                ).first()
                if record is None:
                    return None, 0
                old = _to_dict(record)
                removed = 0
                if collection == STUDY_PROGRAMS:
                    courses = session.scalars(
                        select(CourseRecord).where(
                            CourseRecord.program_id == row_id, CourseRecord.user_id == owner_id
                        )
                    ).all()
                    for course in courses:
                        session.delete(course)
                    removed = len(courses)
                session.delete(record)
                session.commit()
                return old, removed

        old, removed_courses = await self._run(write, collection, "delete")
        if old is None:
            # same as PostgREST: deleting nothing is not an error
            return
        self.feed.publish(ChangeEvent(collection, "DELETE", {}, old), owner_id)
        if removed_courses:
            self.feed.publish(ChangeEvent(COURSES, "DELETE", {}, {"program_id": row_id}), owner_id)

    async def purge_owner(self, owner_id: str) -> int:
        """Delete every row of one owner (local account deletion)."""

        def write() -> int:
            removed = 0
            with self.Session() as session:
                for table in TABLES.values():
                    for record in session.scalars(select(table).where(table.user_id == owner_id)).all():
                        session.delete(record)
                        removed += 1
                session.commit()
            return removed

        removed = await self._run(write, "*", "delete")
        logger.info("[LocalStore] removed %d row(s) of %s", removed, owner_id)
        return removed

    def _check_program_owner(self, session, program_id: Optional[str], owner_id: str) -> None:
        program = None
        if program_id:
            program = session.scalars(
                select(StudyProgramRecord).where(
                    StudyProgramRecord.id == program_id, StudyProgramRecord.user_id == owner_id
                )
            ).first()
        if program is None:
            raise RemoteFailure(
                "insert or update on table \"courses\" violates foreign key constraint \"courses_program_id_fkey\"",
                collection=COURSES,
                operation="write",
            )

    async def ping(self) -> bool:
        def probe() -> None:
            with self.engine.connect() as conn:
                conn.exec_driver_sql("SELECT 1")

        try:
            await self._run(probe, "*", "ping")
            return True
        except RemoteFailure as e:
            logger.warning("[LocalStore] ping failed: %s", e)
            return False
