"""
core/store.py
-------------
Contract of the remote store consumed by the cache controller.

Two implementations exist:
    - supabase_client.helpers.SupabaseStore  (hosted Postgres + Auth + Realtime)
    - database.queries.LocalStore            (SQLAlchemy / SQLite, dev & tests)

Every method is a coroutine. Row-returning methods hand back parsed models
from `core.schemas`; any store error surfaces as `RemoteFailure`.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from core.change_feed import ChangeFeed


@dataclass(frozen=True)
class Identity:
    """Opaque authenticated user. `id` scopes every row access."""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None


class RemoteStore(abc.ABC):
    """Owner-scoped CRUD + ordering + change notifications."""

    #: Change notification transport bound to this store.
    feed: ChangeFeed

    #: Short label used in logs and health reports ("supabase", "local").
    mode: str = "remote"

    @abc.abstractmethod
    async def resolve_current_identity(self) -> Optional[Identity]:
        """Return the signed-in identity, or None when unauthenticated."""
        raise NotImplementedError

    @abc.abstractmethod
    async def fetch_all(
        self,
        collection: str,
        owner_id: str,
        order_by: str = "created_at",
        direction: str = "desc",
    ) -> List[Any]:
        raise NotImplementedError

    @abc.abstractmethod
    async def fetch_one(
        self,
        collection: str,
        owner_id: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Optional[Any]:
        """Return the first matching row or None. Absence is not an error."""
        raise NotImplementedError

    @abc.abstractmethod
    async def insert(self, collection: str, row: Dict[str, Any]) -> Any:
        raise NotImplementedError

    @abc.abstractmethod
    async def update(
        self,
        collection: str,
        row_id: str,
        owner_id: str,
        patch: Dict[str, Any],
    ) -> Any:
        raise NotImplementedError

    @abc.abstractmethod
    async def delete(self, collection: str, row_id: str, owner_id: str) -> None:
        raise NotImplementedError

    async def ping(self) -> bool:
        """Cheap connectivity probe used by health checks."""
        return True

    async def close(self) -> None:
        """Release transport resources (feed, connections)."""
        await self.feed.close()
