"""
In-process progress change notifications.

Views and background consumers register a callback and receive a
``ProgressEvent`` every time a project's progress is persisted. The returned
handle unregisters the callback.

Usage:
    from buildtrack.services.progress_events import subscribe

    unsubscribe = subscribe(lambda event: refresh(event.project_id))
    ...
    unsubscribe()
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """Payload delivered to progress listeners."""

    project_id: int
    progress: int

    def to_dict(self) -> dict:
        return {"project_id": self.project_id, "progress": self.progress}


ProgressListener = Callable[[ProgressEvent], None]


class ProgressNotifier:
    """Publish/subscribe registry for progress events.

    Listeners are called synchronously, in subscription order, on the thread
    that publishes. A listener that raises is logged and skipped.
    """

    def __init__(self):
        self._listeners: list[ProgressListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(listener)

        return unsubscribe

    def unsubscribe(self, listener: ProgressListener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass  # already removed

    def publish(self, event: ProgressEvent) -> int:
        """Deliver ``event`` to every listener. Returns how many succeeded."""
        with self._lock:
            listeners = list(self._listeners)
        delivered = 0
        for listener in listeners:
            try:
                listener(event)
                delivered += 1
            except Exception:
                logger.exception(
                    "Progress listener %r failed for project %s", listener, event.project_id,
                    extra={"project_id": event.project_id},
                )
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)


# Process-wide default notifier used by the app's progress service
progress_notifier = ProgressNotifier()


def subscribe(listener: ProgressListener) -> Callable[[], None]:
    """Register ``listener`` on the default notifier; returns the unsubscribe handle."""
    return progress_notifier.subscribe(listener)
