"""
In-process event bus

Operations publish their events through deferred() so that nothing is
emitted for a call that ends up failing.
"""

import logging
import threading
from collections import deque
from contextlib import contextmanager
from typing import Callable, Deque, List, Optional, Type

from ..types.events import Event
from .tracing import get_correlation_id

logger = logging.getLogger(__name__)

Subscriber = Callable[[Event], None]


class EventBus:
    """
    Publish/subscribe for manager events with bounded history

    Usage:
        bus = EventBus()
        bus.subscribe(print, PositionOpened)
        with bus.deferred():
            bus.publish(PositionOpened(...))   # delivered on clean exit
    """

    def __init__(self, history_size: int = 1000):
        self._subscribers: List[tuple] = []
        self._history: Deque[Event] = deque(maxlen=history_size)
        self._local = threading.local()

    def subscribe(self, callback: Subscriber, event_type: Optional[Type[Event]] = None) -> None:
        """Register a callback, optionally filtered to one event class"""
        self._subscribers.append((event_type, callback))

    def unsubscribe(self, callback: Subscriber) -> None:
        self._subscribers = [(t, cb) for t, cb in self._subscribers if cb is not callback]

    def publish(self, event: Event) -> None:
        """Deliver an event now, or buffer it while inside deferred()"""
        buffer = getattr(self._local, "buffer", None)
        if buffer is not None:
            buffer.append(event)
            return
        self._deliver(event)

    @contextmanager
    def deferred(self):
        """
        Buffer events published in this block

        Buffered events are delivered in order when the block exits
        cleanly and dropped when it raises. Nested blocks share the
        outermost buffer.
        """
        if getattr(self._local, "buffer", None) is not None:
            yield
            return

        self._local.buffer = []
        try:
            yield
        except BaseException:
            dropped = len(self._local.buffer)
            self._local.buffer = None
            if dropped:
                logger.debug(f"Dropped {dropped} event(s) from failed operation")
            raise
        events, self._local.buffer = self._local.buffer, None
        for event in events:
            self._deliver(event)

    def history(self, event_type: Optional[Type[Event]] = None) -> List[Event]:
        """Delivered events, oldest first"""
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if isinstance(e, event_type)]

    def _deliver(self, event: Event) -> None:
        self._history.append(event)
        cid = get_correlation_id()
        prefix = f"[{cid}] " if cid else ""
        logger.info(f"{prefix}Event {event.name}: {event.to_dict()}")

        for event_type, callback in list(self._subscribers):
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                callback(event)
            except Exception:
                # Subscriber errors are logged, never raised to the publisher
                logger.exception(f"Event subscriber failed for {event.name}")
