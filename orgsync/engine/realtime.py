"""
orgsync.engine.realtime — Coin Counter Feed
============================================

In-process publish/subscribe for per-user coin balances.  Services publish
from worker threads after a balance changes; the ``/api/realtime/coins``
websocket subscribes on the event loop and forwards each update.

Usage::

    queue = coin_feed.subscribe(user_id)      # inside a coroutine
    try:
        while True:
            update = await queue.get()        # {"user_id": ..., "coins": ...}
    finally:
        coin_feed.unsubscribe(user_id, queue)
"""

from __future__ import annotations

import asyncio
import logging
import threading

logger = logging.getLogger(__name__)


class CoinFeed:
    """Thread-safe fan-out of coin updates to asyncio queues."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[tuple[asyncio.AbstractEventLoop, asyncio.Queue]]] = {}

    def subscribe(self, user_id: str) -> asyncio.Queue:
        """Register a queue for *user_id*.  Must be called on a running loop."""
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        with self._lock:
            self._subscribers.setdefault(user_id, []).append((loop, queue))
        return queue

    def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        with self._lock:
            subs = self._subscribers.get(user_id, [])
            self._subscribers[user_id] = [s for s in subs if s[1] is not queue]
            if not self._subscribers[user_id]:
                del self._subscribers[user_id]

    def subscriber_count(self, user_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(user_id, []))

    def publish(self, user_id: str, coins: int) -> int:
        """Push ``{"user_id", "coins"}`` to every subscriber of *user_id*.

        Returns the number of queues the update was delivered to.
        """
        with self._lock:
            subs = list(self._subscribers.get(user_id, []))
        payload = {"user_id": user_id, "coins": coins}
        delivered = 0
        for loop, queue in subs:
            try:
                loop.call_soon_threadsafe(queue.put_nowait, payload)
                delivered += 1
            except RuntimeError:
                logger.warning("Dropping coin subscriber for %s: event loop closed", user_id)
                self.unsubscribe(user_id, queue)
        return delivered


# Process-wide feed shared by coin_service and the websocket route
coin_feed = CoinFeed()
