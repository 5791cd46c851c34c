# supabase_client/helpers.py
"""
Supabase implementation of the remote store contract.

Features
--------
- Owner-scoped CRUD on `courses`, `study_programs`, `preferences`
  (`user_id = <identity>` on every query; RLS enforces the same server-side).
- Every returned row is parsed into its pydantic model; malformed rows and
  PostgREST / transport errors surface as `RemoteFailure`.
- Identity comes from the Supabase Auth session held by the client.
- Change notifications via `supabase_client.realtime.SupabaseChangeFeed`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from supabase import AsyncClient

from core.change_feed import ChangeFeed
from core.errors import RemoteFailure
from core.schemas import STUDY_PROGRAMS, parse_row, parse_rows
from core.store import Identity, RemoteStore
from supabase_client.config import get_supabase_client
from supabase_client.realtime import SupabaseChangeFeed

logger = logging.getLogger(__name__)


def _error_message(exc: Exception) -> str:
    """PostgREST APIError carries `.message`; httpx errors only have str()."""
    message = getattr(exc, "message", None)
    return str(message or exc) or exc.__class__.__name__


class SupabaseStore(RemoteStore):
    """RemoteStore backed by a supabase-py AsyncClient."""

    mode = "supabase"

    def __init__(self, client: AsyncClient, feed: Optional[ChangeFeed] = None):
        self.client = client
        self.feed = feed or SupabaseChangeFeed(client)

    @classmethod
    async def connect(cls, url: Optional[str] = None, key: Optional[str] = None) -> "SupabaseStore":
        client = await get_supabase_client(url, key)
        logger.info("[Supabase] client ready")
        return cls(client)

    # ------------------------------------------------------------------ #
    # Identity
    # ------------------------------------------------------------------ #

    async def resolve_current_identity(self) -> Optional[Identity]:
        try:
            res = await self.client.auth.get_user()
        except Exception as e:  # noqa: BLE001 - missing / expired session
            logger.debug("[Supabase] no usable session: %s", e)
            return None

        user = getattr(res, "user", None) if res is not None else None
        if user is None:
            return None
        meta = getattr(user, "user_metadata", None) or {}
        return Identity(
            id=str(user.id),
            email=getattr(user, "email", None),
            name=meta.get("full_name") or meta.get("name"),
        )

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    async def _execute(self, collection: str, operation: str, query: Any) -> List[Dict[str, Any]]:
        logger.debug("[Supabase] → %s '%s'", operation, collection)
        try:
            res = await query.execute()
        except Exception as e:  # noqa: BLE001 - APIError, httpx transport errors
            raise RemoteFailure(_error_message(e), collection=collection, operation=operation) from e
        data = res.data if res is not None else None
        if data is None:
            return []
        rows = data if isinstance(data, list) else [data]
        logger.debug("[Supabase] ← %d row(s) from '%s'", len(rows), collection)
        return rows

    async def fetch_all(
        self,
        collection: str,
        owner_id: str,
        order_by: str = "created_at",
        direction: str = "desc",
    ) -> List[Any]:
        query = (
            self.client.table(collection)
            .select("*")
            .eq("user_id", owner_id)
            .order(order_by, desc=direction.lower() == "desc")
        )
        return parse_rows(collection, await self._execute(collection, "fetch", query))

    async def fetch_one(
        self,
        collection: str,
        owner_id: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Optional[Any]:
        query = self.client.table(collection).select("*").eq("user_id", owner_id)
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        rows = await self._execute(collection, "fetch", query.limit(1))
        return parse_row(collection, rows[0]) if rows else None

    async def insert(self, collection: str, row: Dict[str, Any]) -> Any:
        query = self.client.table(collection).insert(row)
        rows = await self._execute(collection, "insert", query)
        if not rows:
            raise RemoteFailure(
                "insert returned no data (check RLS / schema)",
                collection=collection,
                operation="insert",
            )
        return parse_row(collection, rows[0])

    async def update(
        self,
        collection: str,
        row_id: str,
        owner_id: str,
        patch: Dict[str, Any],
    ) -> Any:
        query = (
            self.client.table(collection)
            .update(patch)
            .eq("id", row_id)
            .eq("user_id", owner_id)
        )
        rows = await self._execute(collection, "update", query)
        if not rows:
            raise RemoteFailure(
                f"row {row_id} not found",
                collection=collection,
                operation="update",
            )
        return parse_row(collection, rows[0])

    async def delete(self, collection: str, row_id: str, owner_id: str) -> None:
        query = (
            self.client.table(collection)
            .delete()
            .eq("id", row_id)
            .eq("user_id", owner_id)
        )
        await self._execute(collection, "delete", query)

    async def ping(self) -> bool:
        try:
            await self.client.table(STUDY_PROGRAMS).select("id").limit(1).execute()
            return True
        except Exception as e:  # noqa: BLE001
            logger.warning("[Supabase] ping failed: %s", _error_message(e))
            return False
