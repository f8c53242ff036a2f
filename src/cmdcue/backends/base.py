"""Producer side of the stream: a backend generates text, a daemon thread pushes it onto the bridge."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Protocol

from cmdcue.bridge import StreamBridge

logger = logging.getLogger(__name__)

Emit = Callable[[str], None]


class Backend(Protocol):
    """
    A text-generation collaborator.

    `prepare()` runs before the TUI starts and raises `BackendUnavailableError` when the
    backend cannot be used at all. `generate()` blocks, calling `emit` once per text
    fragment in arrival order, and raises on failure.
    """

    name: str
    local: bool

    def prepare(self) -> None: ...

    def generate(self, prompt: str, emit: Emit) -> None: ...


class Producer:
    """Runs one backend generation on a daemon thread and feeds the bridge."""

    def __init__(
        self,
        backend: Backend,
        prompt: str,
        bridge: StreamBridge,
        *,
        on_error: Callable[[BaseException], None] | None = None,
    ) -> None:
        self.backend = backend
        self.prompt = prompt
        self.bridge = bridge
        self.on_error = on_error
        self.error: BaseException | None = None
        self._thread = threading.Thread(target=self._run, daemon=True, name=f"cmdcue-producer-{backend.name}")
        self._finished = threading.Event()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def start(self) -> "Producer":
        self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> bool:
        return self._finished.wait(timeout)

    def _emit(self, text: str) -> None:
        self.bridge.push_fragment(text)

    def _run(self) -> None:
        try:
            self.backend.generate(self.prompt, self._emit)
        except Exception as exc:
            # No Done on failure: the consumer is stopped through on_error instead.
            logger.exception("backend %s failed", self.backend.name)
            self.error = exc
            if self.on_error is not None:
                self.on_error(exc)
        else:
            self.bridge.push_done()
        finally:
            self._finished.set()
