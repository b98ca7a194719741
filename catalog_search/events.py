"""In-process publish/subscribe channel for UI-wide notifications."""
from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

CURRENCY_CHANGED = "currency_changed"
CLOSE_OTHER_POPUPS = "close_other_popups"

Handler = Callable[[Any], None]


class EventChannel:
    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``topic`` and return a function that removes it."""
        with self._lock:
            self._handlers[topic].append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(topic, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def publish(self, topic: str, payload: Any = None) -> int:
        with self._lock:
            handlers = list(self._handlers.get(topic, []))
        delivered = 0
        for handler in handlers:
            try:
                handler(payload)
                delivered += 1
            except Exception:
                logger.exception("Handler %r failed for topic %s", handler, topic)
        logger.debug("publish topic=%s delivered=%s/%s", topic, delivered, len(handlers))
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()


_channel: EventChannel | None = None


def get_channel() -> EventChannel:
    global _channel
    if _channel is None:
        _channel = EventChannel()
    return _channel
