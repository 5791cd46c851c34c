"""
core/change_feed.py
-------------------
Change-notification transport used as a side-channel trigger for re-fetches.

The cache controller only needs `subscribe` / `unsubscribe`; what carries the
events (Supabase Realtime websocket, in-process queue, webhook, polling) is
an implementation detail of the concrete feed.

Events are delivered to a plain callback on the event loop that owns the
subscription. Callbacks must not block; the controller schedules a refresh
task and returns.
"""

from __future__ import annotations

import abc
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    """One row-level change. `record` / `old_record` are informational only."""

    collection: str
    event_type: str
    record: Dict[str, Any] = field(default_factory=dict)
    old_record: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SubscriptionHandle:
    """Token returned by `subscribe`; pass it back to `unsubscribe`."""

    id: int
    collection: str
    owner_id: str
    transport: Any = field(default=None, compare=False, repr=False)


ChangeCallback = Callable[[ChangeEvent], None]


class ChangeFeed(abc.ABC):
    """Owner-scoped change subscriptions, one per collection."""

    _ids = itertools.count(1)

    def _next_id(self) -> int:
        return next(self._ids)

    @abc.abstractmethod
    async def subscribe(
        self,
        collection: str,
        owner_id: str,
        on_change: ChangeCallback,
    ) -> SubscriptionHandle:
        raise NotImplementedError

    @abc.abstractmethod
    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def close(self) -> None:
        """Drop every open subscription."""
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def open_subscriptions(self) -> int:
        raise NotImplementedError


class InMemoryChangeFeed(ChangeFeed):
    """
    Local, in-process feed. Stores call `publish` after each write and every
    subscriber of that (collection, owner) pair is notified synchronously.
    """

    def __init__(self):
        self._subscribers: Dict[int, tuple[SubscriptionHandle, ChangeCallback]] = {}

    async def subscribe(
        self,
        collection: str,
        owner_id: str,
        on_change: ChangeCallback,
    ) -> SubscriptionHandle:
        handle = SubscriptionHandle(self._next_id(), collection, owner_id)
        self._subscribers[handle.id] = (handle, on_change)
        logger.debug("[Feed] + %s for %s (#%d)", collection, owner_id, handle.id)
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        if self._subscribers.pop(handle.id, None) is not None:
            logger.debug("[Feed] - %s (#%d)", handle.collection, handle.id)

    async def close(self) -> None:
        self._subscribers.clear()

    @property
    def open_subscriptions(self) -> int:
        return len(self._subscribers)

    def publish(self, event: ChangeEvent, owner_id: Optional[str]) -> int:
        """Deliver `event` to matching subscribers; returns how many were notified."""
        targets = [
            cb
            for handle, cb in list(self._subscribers.values())
            if handle.collection == event.collection and handle.owner_id == owner_id
        ]
        for cb in targets:
            try:
                cb(event)
            except Exception:  # noqa: BLE001 - one bad subscriber must not stop the rest
                logger.exception("[Feed] subscriber failed on %s", event.collection)
        return len(targets)
