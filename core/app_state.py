"""
core/app_state.py
-----------------
Application-state container: one per signed-in browser session.

Owns
----
- the remote store (Supabase or local SQLite, chosen by `AppConfig`)
- the `DataCache` for the current identity
- a private asyncio loop running on a daemon thread

Streamlit executes each rerun synchronously, while the store client, the
realtime channels and the cache are asyncio objects that must live on one
loop for the whole session. `run()` submits a coroutine to that loop and
blocks for its result, so all cache state is only ever touched from the loop
thread.

Lifecycle: construct -> `start()` -> ... -> `sign_out()` / `sign_in()`
(rebuilds the cache for the new identity) -> `shutdown()`.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Awaitable, Iterator, Optional, Tuple, TypeVar

from core.config import AppConfig
from core.snapshot import Snapshot
from core.store import Identity, RemoteStore
from core.sync_controller import DataCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30.0


async def build_store(config: AppConfig) -> RemoteStore:
    """Instantiate the store selected by the configuration."""
    if config.store == "supabase":
        from supabase_client.helpers import SupabaseStore

        return await SupabaseStore.connect(config.supabase_url, config.supabase_anon_key)

    from database.db_setup import get_engine
    from database.queries import LocalStore

    return LocalStore(get_engine(config.db_url))


def local_identity(email: str, name: Optional[str] = None) -> Identity:
    """Deterministic identity for the local store (same e-mail, same rows)."""
    email = email.strip().lower()
    return Identity(id=str(uuid.uuid5(uuid.NAMESPACE_URL, f"local:{email}")), email=email, name=name)


class AppState:
    def __init__(self, config: Optional[AppConfig] = None, store: Optional[RemoteStore] = None):
        self.config = config or AppConfig.from_env()
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever,
            name="studyinsights-loop",
            daemon=True,
        )
        self._thread.start()
        self._closed = False

        self.store: RemoteStore = store if store is not None else self.run(build_store(self.config))
        self.cache = DataCache(self.store, realtime=self.config.realtime)
        self._last_change: Optional[Tuple[str, datetime]] = None
        self.cache.add_listener(self._record_change)
        logger.info("AppState ready (store=%s, realtime=%s)", self.store.mode, self.config.realtime)

    # ------------------------------------------------------------------ #
    # Loop bridge
    # ------------------------------------------------------------------ #

    def run(self, coro: Awaitable[T], timeout: Optional[float] = DEFAULT_TIMEOUT) -> T:
        """Run `coro` on the session loop and wait for its result."""
        if self._closed:
            raise RuntimeError("AppState has been shut down")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout)

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------ #
    # Cache access
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        self.run(self.cache.start())

    def snapshot(self) -> Snapshot:
        async def read() -> Snapshot:
            return self.cache.snapshot()

        return self.run(read())

    def identity(self) -> Optional[Identity]:
        async def read() -> Optional[Identity]:
            return self.cache.identity

        return self.run(read())

    def subscription_count(self) -> int:
        async def read() -> int:
            return self.cache.subscription_count

        return self.run(read())

    def _record_change(self, what: str) -> None:
        # runs on the loop thread; pages read it on their next rerun
        self._last_change = (what, datetime.now(timezone.utc))

    def last_change(self) -> Optional[Tuple[str, datetime]]:
        """Name and time of the most recent slice change the cache applied."""
        return self._last_change

    def call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        """Invoke a cache coroutine by name, e.g. `call("add_course", data)`."""
        return self.run(getattr(self.cache, method)(*args, **kwargs))

    # ------------------------------------------------------------------ #
    # Session
    # ------------------------------------------------------------------ #

    def sign_in(self, email: str, password: str = "") -> Optional[str]:
        """Sign in and rebuild the cache. Returns an error message or None."""
        if self.store.mode == "local":
            self.store.sign_in(local_identity(email))
        else:
            from supabase_client import auth

            _, error = self.run(auth.sign_in(self.store.client, email, password))
            if error:
                return error
        self.run(self.cache.switch_identity())
        return None

    def sign_up(self, email: str, password: str, name: str = "") -> Optional[str]:
        if self.store.mode == "local":
            self.store.sign_in(local_identity(email, name or None))
            self.run(self.cache.switch_identity())
            return None

        from supabase_client import auth

        identity, error = self.run(auth.sign_up(self.store.client, email, password, name))
        if error:
            return error
        if identity is not None:
            self.run(self.cache.switch_identity())
        return None

    def reset_password(self, email: str) -> Optional[str]:
        if self.store.mode == "local":
            return "Password reset is not available for the local store."
        from supabase_client import auth

        return self.run(auth.reset_password(self.store.client, email))

    def update_account(self, name: str, email: str) -> Optional[str]:
        """Change display name and e-mail of the signed-in user."""
        current = self.identity()
        if current is None:
            return "Not authenticated"
        if self.store.mode == "local":
            if (email or "").strip().lower() != (current.email or ""):
                return "Changing the e-mail is not available for the local store."
            self.store.sign_in(Identity(id=current.id, email=current.email, name=name.strip() or None))
            self.run(self.cache.switch_identity())
            return None

        from supabase_client import auth

        identity, error = self.run(auth.update_account(self.store.client, name, email))
        if error:
            return error
        if identity is not None:
            self.run(self.cache.switch_identity())
        return None

    def update_password(self, password: str) -> Optional[str]:
        if self.store.mode == "local":
            return "Passwords are not used by the local store."
        from supabase_client import auth

        return self.run(auth.update_password(self.store.client, password))

    def delete_account(self) -> Optional[str]:
        """Delete the signed-in account and everything it owns, then sign out."""
        current = self.identity()
        if current is None:
            return "Not authenticated"
        if self.store.mode == "local":
            self.run(self.store.purge_owner(current.id))
            self.store.sign_out()
            self.run(self.cache.close())
            return None

        from supabase_client import auth
        from supabase_client.config import get_admin_client

        async def delete() -> Optional[str]:
            admin = await get_admin_client(self.config.supabase_url, self.config.supabase_service_role_key)
            return await auth.delete_account(self.store.client, admin)

        try:
            error = self.run(delete())
        except RuntimeError as e:
            return str(e)
        if error is None:
            self.run(self.cache.close())
        return error

    def sign_out(self) -> Optional[str]:
        error = None
        if self.store.mode == "local":
            self.store.sign_out()
        else:
            from supabase_client import auth

            error = self.run(auth.sign_out(self.store.client))
        self.run(self.cache.close())
        return error

    def shutdown(self) -> None:
        """Close subscriptions and the store, then stop the loop thread."""
        if self._closed:
            return
        try:
            self.run(self.cache.close())
            self.run(self.store.close())
        except Exception as e:  # noqa: BLE001 - shutdown is best effort
            logger.warning("AppState shutdown incomplete: %s", e)
        finally:
            self._closed = True
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)
            if not self._loop.is_running():
                self._loop.close()
            logger.info("AppState shut down")


@contextmanager
def app_session(config: Optional[AppConfig] = None, store: Optional[RemoteStore] = None) -> Iterator[AppState]:
    """Started AppState that is always shut down, for scripts and tests."""
    state = AppState(config, store)
    try:
        state.start()
        yield state
    finally:
        state.shutdown()
