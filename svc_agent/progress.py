"""Fire-and-forget progress events for a UI to render.

Producers call ``put()`` and never block: when the queue is full the oldest
pending event is discarded to make room.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256


@dataclass(frozen=True)
class Progress:
    service: str
    percent: Optional[int]
    state: str


class ProgressSink(Protocol):
    def put(self, event: Progress) -> None:
        ...


class ProgressQueue:
    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE) -> None:
        self._q: "queue.Queue[Progress]" = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def put(self, event: Progress) -> None:
        while True:
            try:
                self._q.put_nowait(event)
                return
            except queue.Full:
                try:
                    self._q.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass

    def get(self, timeout: Optional[float] = None) -> Optional[Progress]:
        try:
            return self._q.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[Progress]:
        out: List[Progress] = []
        while True:
            try:
                out.append(self._q.get_nowait())
            except queue.Empty:
                return out


class ProgressConsumer:
    """Single consumer thread feeding queued events to ``render``."""

    def __init__(self, updates: ProgressQueue, render: Callable[[Progress], None]) -> None:
        self.updates = updates
        self.render = render
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="progress", daemon=True)

    def start(self) -> "ProgressConsumer":
        self._thread.start()
        return self

    def stop(self, timeout: float = 5.0) -> None:
        """Ask the consumer to flush what is queued and exit.

        Only the consumer thread renders, so a renderer slower than
        ``timeout`` still sees every event in order; the flush just
        finishes after we return.
        """

        self._stop.set()
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Progress renderer still busy after %.1fs", timeout)

    def _loop(self) -> None:
        while not self._stop.is_set():
            event = self.updates.get(timeout=0.1)
            if event is not None:
                self._render(event)
        # flush whatever arrived after the last poll
        for event in self.updates.drain():
            self._render(event)

    def _render(self, event: Progress) -> None:
        try:
            self.render(event)
        except Exception:
            logger.exception("Progress renderer failed for %s", event)


class ProgressTracker:
    """Turns byte counts from a download into percentage events."""

    def __init__(self, service: str, updates: ProgressSink, state: str = "Downloading") -> None:
        self.service = service
        self.updates = updates
        self.state = state
        self._last: Optional[int] = None

    def __call__(self, done: int, total: Optional[int]) -> None:
        if not total:
            return
        percent = min(100, int(done * 100 / total))
        if percent == self._last:
            return
        self._last = percent
        self.updates.put(Progress(service=self.service, percent=percent, state=self.state))
