"""One-way channel carrying streamed text from the backend producer to the UI loop."""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Fragment:
    text: str


@dataclass(frozen=True)
class Done:
    pass


BridgeMessage = Union[Fragment, Done]


class StreamBridge:
    """
    Unbounded single-producer/single-consumer FIFO of `Fragment` and `Done` messages.

    The producer owns the push side; the event loop owns `get` and `close`. Closing
    discards whatever is still queued and silently drops anything pushed afterwards,
    so a producer that outlives a cancelled loop never blocks or errors.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[BridgeMessage] = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._done_sent = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push_fragment(self, text: str) -> None:
        if not text:
            return
        with self._lock:
            if self._closed or self._done_sent:
                return
            self._queue.put_nowait(Fragment(text))

    def push_done(self) -> None:
        with self._lock:
            if self._closed or self._done_sent:
                return
            self._done_sent = True
            self._queue.put_nowait(Done())

    def get(self, timeout: float | None = None) -> BridgeMessage | None:
        """Block for the next message; `None` on timeout or once the bridge is closed."""
        if self._closed:
            return None
        try:
            message = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if self._closed:
            return None
        return message

    def close(self) -> None:
        with self._lock:
            self._closed = True
            while True:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    break
