"""
core/sync_controller.py
-----------------------
Cache & sync controller: owns the in-memory snapshot of one identity's
courses, study programs and preferences, and keeps it consistent with the
remote store.

Protocol
--------
- `start()` issues the three collection fetches concurrently; `loading` stays
  true until all three have resolved. Without a session every slice resolves
  empty, which is a valid end state rather than an error.
- One change subscription per collection (owner scoped). Any event triggers a
  full re-fetch of that collection; payloads are never patched in.
- Writers call the mutation helpers (or a `refresh_*`) right after a write so
  the UI does not wait for the notification round-trip.
- Each fetch carries a per-collection sequence tag. A result is applied only
  if no newer fetch of the same collection has been applied already.
- `close()` unsubscribes everything, cancels pending refresh tasks and bumps
  the generation so results of fetches issued earlier are dropped.
- Failures are recorded per collection; the previous slice is kept. No
  public coroutine raises.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from analytics.progress import FinishSignal
from core.change_feed import ChangeEvent, SubscriptionHandle
from core.errors import RemoteFailure, Unauthenticated, ValidationFailure
from core.schemas import (
    COLLECTIONS,
    COURSES,
    DEFAULT_PREFERENCES,
    PREFERENCES,
    STUDY_PROGRAMS,
    Course,
    Preferences,
    StudyProgram,
    notes_text,
)
from core.snapshot import Snapshot
from core.store import Identity, RemoteStore
from core.validation import (
    validate_course,
    validate_course_patch,
    validate_preferences,
    validate_program,
    validate_program_patch,
)

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]


@dataclass(frozen=True)
class MutationResult:
    """Outcome of a write. `kind` is "validation", "remote", "unauthenticated" or "not_found"."""

    ok: bool
    data: Any = None
    error: Optional[str] = None
    kind: Optional[str] = None
    field_errors: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def failure(cls, error: str, kind: str, field_errors: Optional[Dict[str, str]] = None) -> "MutationResult":
        return cls(ok=False, error=error, kind=kind, field_errors=dict(field_errors or {}))

    @classmethod
    def invalid(cls, exc: ValidationFailure) -> "MutationResult":
        return cls.failure(exc.summary(), "validation", exc.errors)


class DataCache:
    """Snapshot owner for one application session."""

    def __init__(
        self,
        store: RemoteStore,
        *,
        realtime: bool = True,
        order_by: str = "created_at",
    ):
        self.store = store
        self.realtime = realtime
        self.order_by = order_by

        self._courses: Tuple[Course, ...] = ()
        self._programs: Tuple[StudyProgram, ...] = ()
        self._preferences: Optional[Preferences] = None
        self._loading = False
        self._errors: Dict[str, str] = {}
        self._identity: Optional[Identity] = None
        self._version = 0

        self._issued: Dict[str, int] = {c: 0 for c in COLLECTIONS}
        self._applied: Dict[str, int] = {c: 0 for c in COLLECTIONS}
        self._generation = 0
        self._started = False
        self._handles: List[SubscriptionHandle] = []
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------ #
    # Read side
    # ------------------------------------------------------------------ #

    @property
    def courses(self) -> Tuple[Course, ...]:
        return self._courses

    @property
    def study_programs(self) -> Tuple[StudyProgram, ...]:
        return self._programs

    @property
    def preferences(self) -> Optional[Preferences]:
        return self._preferences

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def errors(self) -> Dict[str, str]:
        return dict(self._errors)

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def version(self) -> int:
        return self._version

    @property
    def subscription_count(self) -> int:
        return len(self._handles)

    def snapshot(self) -> Snapshot:
        return Snapshot(
            courses=self._courses,
            study_programs=self._programs,
            preferences=self._preferences,
            loading=self._loading,
            errors=dict(self._errors),
            version=self._version,
        )

    def program(self, program_id: str) -> Optional[StudyProgram]:
        return next((p for p in self._programs if p.id == program_id), None)

    def course(self, course_id: str) -> Optional[Course]:
        return next((c for c in self._courses if c.id == course_id), None)

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, what: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(what)
            except Exception:  # noqa: BLE001 - a broken listener must not break the cache
                logger.exception("Cache listener failed for %s", what)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self) -> None:
        """Initial load of all three collections, then open subscriptions."""
        if self._started:
            return
        self._started = True
        generation = self._generation

        self._loading = True
        self._notify("loading")
        await asyncio.gather(
            self.refresh_courses(),
            self.refresh_study_programs(),
            self.refresh_preferences(),
        )
        if generation != self._generation:
            return
        self._loading = False
        self._notify("loading")

        logger.info(
            "Cache loaded for %s: %d program(s), %d course(s)",
            self._identity.id if self._identity else "anonymous",
            len(self._programs),
            len(self._courses),
        )

        if self.realtime and self._identity is not None:
            await self._subscribe_all(self._identity, generation)

    async def close(self) -> None:
        """Tear down subscriptions and drop everything cached."""
        self._generation += 1
        handles, self._handles = self._handles, []
        for handle in handles:
            try:
                await self.store.feed.unsubscribe(handle)
            except Exception as e:  # noqa: BLE001
                logger.warning("Unsubscribe from %s failed: %s", handle.collection, e)

        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
        self._tasks.clear()

        self._started = False
        self._loading = False
        self._courses = ()
        self._programs = ()
        self._preferences = None
        self._errors = {}
        self._identity = None
        self._version += 1
        self._notify("closed")

    async def switch_identity(self) -> None:
        """Sign-in / sign-out happened: rebuild the cache for the new identity."""
        await self.close()
        await self.start()

    async def wait_idle(self) -> None:
        """Wait for notification-triggered refreshes that are still running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Subscriptions
    # ------------------------------------------------------------------ #

    async def _subscribe_all(self, identity: Identity, generation: int) -> None:
        for collection in COLLECTIONS:
            try:
                handle = await self.store.feed.subscribe(
                    collection, identity.id, self._change_handler(collection, generation)
                )
            except Exception as e:  # noqa: BLE001
                logger.warning("Live updates for %s unavailable: %s", collection, e)
                self._errors[f"{collection}:subscribe"] = f"Live updates unavailable: {e}"
                continue

            if generation != self._generation:
                # closed while subscribing
                await self.store.feed.unsubscribe(handle)
                return
            self._handles.append(handle)

    def _change_handler(self, collection: str, generation: int) -> Callable[[ChangeEvent], None]:
        def on_change(event: ChangeEvent) -> None:
            if generation != self._generation:
                return
            logger.debug("%s change (%s) -> refresh", collection, event.event_type)
            task = asyncio.ensure_future(self.refresh(collection))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return on_change

    # ------------------------------------------------------------------ #
    # Fetching
    # ------------------------------------------------------------------ #

    async def refresh_courses(self) -> bool:
        return await self.refresh(COURSES)

    async def refresh_study_programs(self) -> bool:
        return await self.refresh(STUDY_PROGRAMS)

    async def refresh_preferences(self) -> bool:
        return await self.refresh(PREFERENCES)

    async def refresh_all(self) -> None:
        await asyncio.gather(*(self.refresh(c) for c in COLLECTIONS))

    async def refresh(self, collection: str) -> bool:
        """
        Re-fetch one collection and replace its slice.

        Returns True when the result was applied, False when it failed or was
        superseded by a newer fetch / a teardown.
        """
        generation = self._generation
        self._issued[collection] += 1
        tag = self._issued[collection]

        try:
            identity = await self.store.resolve_current_identity()
            value = await self._load(collection, identity)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # noqa: BLE001 - recorded as state, never raised
            if self._is_stale(generation, collection, tag):
                return False
            message = str(e) if isinstance(e, RemoteFailure) else f"Failed to fetch {collection}: {e}"
            logger.warning("Fetch of %s failed, keeping previous data: %s", collection, message)
            self._errors[collection] = message
            self._notify(collection)
            return False

        if self._is_stale(generation, collection, tag):
            logger.debug("Discarding stale %s result #%d", collection, tag)
            return False

        self._applied[collection] = tag
        self._identity = identity
        self._errors.pop(collection, None)
        if collection == COURSES:
            self._courses = value
        elif collection == STUDY_PROGRAMS:
            self._programs = value
        else:
            self._preferences = value
        self._version += 1
        self._notify(collection)
        return True

    def _is_stale(self, generation: int, collection: str, tag: int) -> bool:
        return generation != self._generation or tag <= self._applied[collection]

    async def _load(self, collection: str, identity: Optional[Identity]) -> Any:
        if identity is None:
            return None if collection == PREFERENCES else ()
        if collection == PREFERENCES:
            return await self._load_preferences(identity)
        rows = await self.store.fetch_all(collection, identity.id, self.order_by, "desc")
        return tuple(rows)

    async def _load_preferences(self, identity: Identity) -> Preferences:
        row = await self.store.fetch_one(PREFERENCES, identity.id)
        if row is not None:
            return row
        logger.info("No preferences for %s yet, creating defaults", identity.id)
        try:
            return await self.store.insert(PREFERENCES, {"user_id": identity.id, **DEFAULT_PREFERENCES})
        except RemoteFailure:
            # a concurrent first read may have created the row already
            row = await self.store.fetch_one(PREFERENCES, identity.id)
            if row is None:
                raise
            return row

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    async def _mutate(
        self,
        action: Callable[[Identity], Awaitable[Any]],
        refresh: Tuple[str, ...],
        label: str,
    ) -> MutationResult:
        try:
            identity = await self.store.resolve_current_identity()
            if identity is None:
                raise Unauthenticated()
            data = await action(identity)
        except asyncio.CancelledError:
            raise
        except Unauthenticated as e:
            return MutationResult.failure(str(e), "unauthenticated")
        except RemoteFailure as e:
            logger.warning("%s failed: %s", label, e)
            return MutationResult.failure(str(e), "remote")
        except Exception as e:  # noqa: BLE001
            logger.exception("%s failed unexpectedly", label)
            return MutationResult.failure(f"{label} failed: {e}", "remote")

        for collection in refresh:
            await self.refresh(collection)
        return MutationResult(ok=True, data=data)

    def _missing(self, what: str, row_id: str) -> MutationResult:
        return MutationResult.failure(f"{what} {row_id} not found", "not_found")

    # -- study programs ------------------------------------------------- #

    async def add_program(self, data: Dict[str, Any]) -> MutationResult:
        try:
            payload = validate_program(data)
        except ValidationFailure as e:
            return MutationResult.invalid(e)
        return await self._mutate(
            lambda ident: self.store.insert(STUDY_PROGRAMS, {**payload, "user_id": ident.id}),
            (STUDY_PROGRAMS,),
            "Create program",
        )

    async def update_program(self, program_id: str, patch: Dict[str, Any]) -> MutationResult:
        current = self.program(program_id)
        if current is None:
            return self._missing("Program", program_id)
        try:
            clean = validate_program_patch(current, patch)
        except ValidationFailure as e:
            return MutationResult.invalid(e)
        return await self._mutate(
            lambda ident: self.store.update(STUDY_PROGRAMS, program_id, ident.id, clean),
            (STUDY_PROGRAMS,),
            "Update program",
        )

    async def delete_program(self, program_id: str) -> MutationResult:
        # courses go with the program on the store side
        return await self._mutate(
            lambda ident: self.store.delete(STUDY_PROGRAMS, program_id, ident.id),
            (STUDY_PROGRAMS, COURSES),
            "Delete program",
        )

    async def set_current_semester(self, program_id: str, semester: int) -> MutationResult:
        return await self.update_program(program_id, {"current_semester": semester})

    async def advance_semester(self, program_id: str) -> MutationResult:
        program = self.program(program_id)
        if program is None:
            return self._missing("Program", program_id)
        if program.current_semester >= program.semesters:
            return MutationResult.failure("Already in the last semester", "validation")
        return await self.set_current_semester(program_id, program.current_semester + 1)

    async def retreat_semester(self, program_id: str) -> MutationResult:
        program = self.program(program_id)
        if program is None:
            return self._missing("Program", program_id)
        if program.current_semester <= 1:
            return MutationResult.failure("Already in the first semester", "validation")
        return await self.set_current_semester(program_id, program.current_semester - 1)

    async def set_program_finished(self, program_id: str, finished: bool) -> MutationResult:
        return await self.update_program(program_id, {"finished": bool(finished)})

    async def apply_finish_signal(self, signal: FinishSignal) -> MutationResult:
        """Write the `finished` flag a reconciliation pass asked for."""
        program = self.program(signal.program_id)
        if program is None:
            return self._missing("Program", signal.program_id)
        if program.finished == signal.finished:
            return MutationResult(ok=True, data=program)
        logger.info(
            "Marking program %s as %s (%g/%g credits)",
            program.id,
            "finished" if signal.finished else "not finished",
            signal.earned,
            signal.target,
        )
        return await self.set_program_finished(signal.program_id, signal.finished)

    # -- courses -------------------------------------------------------- #

    async def add_course(self, data: Dict[str, Any]) -> MutationResult:
        try:
            payload = validate_course(data, self._preferences)
        except ValidationFailure as e:
            return MutationResult.invalid(e)
        return await self._mutate(
            lambda ident: self.store.insert(COURSES, {**payload, "user_id": ident.id}),
            (COURSES,),
            "Create course",
        )

    async def update_course(self, course_id: str, patch: Dict[str, Any]) -> MutationResult:
        current = self.course(course_id)
        if current is None:
            return self._missing("Course", course_id)
        try:
            clean = validate_course_patch(current, patch, self._preferences)
        except ValidationFailure as e:
            return MutationResult.invalid(e)
        return await self._mutate(
            lambda ident: self.store.update(COURSES, course_id, ident.id, clean),
            (COURSES,),
            "Update course",
        )

    async def delete_course(self, course_id: str) -> MutationResult:
        return await self._mutate(
            lambda ident: self.store.delete(COURSES, course_id, ident.id),
            (COURSES,),
            "Delete course",
        )

    async def save_course_notes(self, course_id: str, editor_state: Any, replace: bool = False) -> MutationResult:
        """
        Store the serialized notes document exactly as given.

        A stored document of another editor format is only replaced when
        `replace` is set.
        """
        course = self.course(course_id)
        if course is None:
            return self._missing("Course", course_id)
        if not replace and notes_text(course.editor_state) is None:
            return MutationResult.invalid(
                ValidationFailure({"editor_state": "stored in another editor format; not overwritten"})
            )
        return await self._mutate(
            lambda ident: self.store.update(COURSES, course_id, ident.id, {"editor_state": editor_state}),
            (COURSES,),
            "Save notes",
        )

    # -- preferences ---------------------------------------------------- #

    async def save_preferences(self, data: Dict[str, Any]) -> MutationResult:
        try:
            payload = validate_preferences(data)
        except ValidationFailure as e:
            return MutationResult.invalid(e)

        current = self._preferences

        async def write(ident: Identity) -> Any:
            if current is not None and current.user_id == ident.id:
                return await self.store.update(PREFERENCES, current.id, ident.id, payload)
            return await self.store.insert(PREFERENCES, {**payload, "user_id": ident.id})

        return await self._mutate(write, (PREFERENCES,), "Save preferences")
