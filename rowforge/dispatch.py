"""Single-threaded dispatch of generation notifications and posted callbacks.

Producers on any thread publish onto typed channels or post callbacks; the
owner thread drains everything in arrival order with pump() or run_until().
Channels share one inbox, so progress and status for the same run are
applied in the order they were published.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable

from rowforge.generation_events import GenerationProgress, GenerationStatusUpdate

__all__ = ["NotificationChannel", "NotificationDispatcher", "safe_dispatch"]

logger = logging.getLogger("dispatch")

_KIND_CALLBACK = "callback"


def safe_dispatch(
    post: Callable[[Callable[[], None]], object],
    callback: Callable[[], None],
    *,
    is_alive: Callable[[], bool] | None = None,
) -> bool:
    if is_alive is not None and not bool(is_alive()):
        return False
    try:
        post(callback)
    except RuntimeError:
        return False
    return True


@dataclass(frozen=True)
class NotificationChannel:
    """Typed publishing handle onto the dispatcher inbox."""

    kind: str
    event_type: type
    dispatcher: "NotificationDispatcher"

    def publish(self, event: object) -> bool:
        if not isinstance(event, self.event_type):
            raise TypeError(
                f"Notification channel '{self.kind}': expected {self.event_type.__name__}, "
                f"got {type(event).__name__}. Fix: publish {self.event_type.__name__} records only."
            )
        return self.dispatcher._enqueue(self.kind, event)

    def subscribe(self, handler: Callable[[object], None]) -> Callable[[], None]:
        return self.dispatcher.subscribe(self.kind, handler)


class NotificationDispatcher:
    def __init__(self) -> None:
        self._inbox: queue.Queue[tuple[str, object]] = queue.Queue()
        self._handlers: dict[str, list[Callable[[object], None]]] = {}
        self._closed = False
        self._lock = threading.Lock()
        self.progress = self.channel("progress", GenerationProgress)
        self.status = self.channel("status", GenerationStatusUpdate)

    def channel(self, kind: str, event_type: type) -> NotificationChannel:
        if kind == _KIND_CALLBACK:
            raise ValueError(
                f"Notification dispatcher: channel kind '{kind}' is reserved. "
                "Fix: choose another channel name."
            )
        with self._lock:
            self._handlers.setdefault(kind, [])
        return NotificationChannel(kind=kind, event_type=event_type, dispatcher=self)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    def subscribe(self, kind: str, handler: Callable[[object], None]) -> Callable[[], None]:
        with self._lock:
            self._handlers.setdefault(kind, []).append(handler)

        def _unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(kind, [])
                if handler in handlers:
                    handlers.remove(handler)

        return _unsubscribe

    def _enqueue(self, kind: str, payload: object) -> bool:
        if self._closed:
            return False
        self._inbox.put((kind, payload))
        return True

    def post(self, callback: Callable[[], None]) -> bool:
        """Run callback on the dispatch thread at the next pump."""
        return safe_dispatch(
            lambda cb: self._enqueue(_KIND_CALLBACK, cb),
            callback,
            is_alive=lambda: not self._closed,
        )

    def marshal(self, callback: Callable[..., None]) -> Callable[..., None]:
        def _wrapped(*args, **kwargs) -> None:
            self.post(lambda: callback(*args, **kwargs))

        return _wrapped

    def pending(self) -> int:
        return self._inbox.qsize()

    def _deliver(self, kind: str, payload: object) -> None:
        if kind == _KIND_CALLBACK:
            assert callable(payload)
            try:
                payload()
            except Exception:  # noqa: BLE001
                logger.exception("Posted callback failed")
            return

        with self._lock:
            handlers = list(self._handlers.get(kind, []))
        if not handlers:
            logger.debug("No handler for '%s' notification: %r", kind, payload)
        for handler in handlers:
            try:
                handler(payload)
            except Exception:  # noqa: BLE001
                logger.exception("Handler for '%s' notification failed", kind)

    def pump(self, max_items: int | None = None) -> int:
        """Deliver queued items without blocking. Returns how many were delivered."""
        delivered = 0
        while max_items is None or delivered < max_items:
            try:
                kind, payload = self._inbox.get_nowait()
            except queue.Empty:
                break
            self._deliver(kind, payload)
            delivered += 1
        return delivered

    def run_until(self, stop: threading.Event, *, poll_interval: float = 0.1) -> int:
        """Block on the inbox and deliver until stop is set. Returns the delivered count."""
        delivered = 0
        while not stop.is_set():
            try:
                kind, payload = self._inbox.get(timeout=poll_interval)
            except queue.Empty:
                continue
            self._deliver(kind, payload)
            delivered += 1
        return delivered + self.pump()
