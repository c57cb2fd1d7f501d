"""In-process publish/subscribe channel keyed by topic.

Delivery is fire-and-forget: no acknowledgment, persistence or replay.
A failing subscriber is logged and skipped; the publisher never sees it.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

log = structlog.get_logger(__name__)

Handler = Callable[[Any], Awaitable[None]]


class PubSubChannel:
    """Topic-keyed fan-out to async handlers."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` on ``topic``. Returns a callable that unsubscribes it."""
        self._subscribers[topic].append(handler)
        log.info("pubsub_subscribed", topic=topic, total=len(self._subscribers[topic]))

        def unsubscribe() -> None:
            handlers = self._subscribers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)
                log.info("pubsub_unsubscribed", topic=topic, total=len(handlers))

        return unsubscribe

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, []))

    async def publish(self, topic: str, message: Any) -> int:
        """Deliver ``message`` to every handler on ``topic``; returns successful deliveries."""
        delivered = 0
        for handler in list(self._subscribers.get(topic, [])):
            try:
                await handler(message)
                delivered += 1
            except Exception:
                log.warning("pubsub_delivery_failed", topic=topic, exc_info=True)
        return delivered
