"""EventBus — pub/sub for registry change notifications.

The registry publishes shape lifecycle, selection and live-metric events
here; host surfaces (repaint loop, side panels, persistence sync) drain
their own queue at their own pace. Publishing never blocks the pointer
handler that caused the change.
"""

from __future__ import annotations

import queue
import threading


class EventBus:
    """Thread-safe pub/sub with bounded per-subscriber queues."""

    def __init__(self, maxsize: int = 1000) -> None:
        self._lock = threading.Lock()
        self._maxsize = maxsize
        self._subscribers: list[tuple[queue.Queue, str | None]] = []

    def subscribe(self, event_filter: str | None = None) -> queue.Queue:
        """Subscribe to events. Returns a Queue that receives matching events.

        Args:
            event_filter: Optional event-type prefix, e.g. ``"field_"``.
                None receives everything.
        """
        q: queue.Queue = queue.Queue(maxsize=self._maxsize)
        with self._lock:
            self._subscribers.append((q, event_filter))
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        with self._lock:
            self._subscribers = [(s, f) for s, f in self._subscribers if s is not q]

    def publish(self, event_type: str, data: dict | None = None) -> None:
        msg = {"type": event_type}
        if data is not None:
            msg["data"] = data
        with self._lock:
            for q, event_filter in self._subscribers:
                if event_filter is not None and not event_type.startswith(event_filter):
                    continue
                try:
                    q.put_nowait(msg)
                except queue.Full:
                    # Full: drop the oldest message and retry once
                    try:
                        q.get_nowait()
                    except queue.Empty:
                        pass
                    try:
                        q.put_nowait(msg)
                    except queue.Full:
                        pass

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)


def drain(q: queue.Queue) -> list[dict]:
    """Pop every queued message without blocking."""
    messages = []
    while True:
        try:
            messages.append(q.get_nowait())
        except queue.Empty:
            return messages
