# supabase_client/realtime.py
"""
Supabase Realtime transport for `core.change_feed.ChangeFeed`.

One channel per (collection, owner) subscription, listening to
`postgres_changes` for every event type, filtered with `user_id=eq.<owner>`.
Only the fact that something changed matters to the cache; the payload is
converted to a `ChangeEvent` for logging and otherwise ignored.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from supabase import AsyncClient

from core.change_feed import ChangeCallback, ChangeEvent, ChangeFeed, SubscriptionHandle
from core.errors import RemoteFailure

logger = logging.getLogger(__name__)


def to_change_event(collection: str, payload: Any) -> ChangeEvent:
    """
    Normalize a realtime payload.

    realtime-py delivers {"data": {"type", "record", "old_record", ...}, "ids": [...]};
    the JS-style shape {"eventType", "new", "old"} is accepted as well.
    """
    if not isinstance(payload, dict):
        return ChangeEvent(collection, "UNKNOWN")
    data: Dict[str, Any] = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    event_type = data.get("type") or data.get("eventType") or "UNKNOWN"
    record = data.get("record") or data.get("new") or {}
    old_record = data.get("old_record") or data.get("old") or {}
    return ChangeEvent(collection, str(event_type).upper(), dict(record), dict(old_record))


class SupabaseChangeFeed(ChangeFeed):
    def __init__(self, client: AsyncClient, schema: str = "public"):
        self.client = client
        self.schema = schema
        self._channels: Dict[int, Any] = {}

    async def subscribe(
        self,
        collection: str,
        owner_id: str,
        on_change: ChangeCallback,
    ) -> SubscriptionHandle:
        handle_id = self._next_id()
        channel = self.client.channel(f"{collection}-changes-{handle_id}")

        def callback(payload: Any) -> None:
            on_change(to_change_event(collection, payload))

        channel.on_postgres_changes(
            "*",
            callback=callback,
            table=collection,
            schema=self.schema,
            filter=f"user_id=eq.{owner_id}",
        )
        try:
            await channel.subscribe()
        except Exception as e:  # noqa: BLE001
            raise RemoteFailure(str(e), collection=collection, operation="subscribe") from e

        self._channels[handle_id] = channel
        logger.info("[Supabase] subscribed to %s changes", collection)
        return SubscriptionHandle(handle_id, collection, owner_id, transport=channel)

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        channel = self._channels.pop(handle.id, None)
        if channel is None:
            return
        await self.client.remove_channel(channel)
        logger.info("[Supabase] unsubscribed from %s changes", handle.collection)

    async def close(self) -> None:
        for handle_id in list(self._channels):
            channel = self._channels.pop(handle_id)
            try:
                await self.client.remove_channel(channel)
            except Exception as e:  # noqa: BLE001
                logger.warning("[Supabase] failed to remove channel: %s", e)

    @property
    def open_subscriptions(self) -> int:
        return len(self._channels)
