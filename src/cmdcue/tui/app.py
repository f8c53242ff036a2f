"""Textual event loop: reveal the streamed response, then let the user pick commands to run."""

from __future__ import annotations

import contextlib
import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll

from cmdcue.bridge import BridgeMessage, Done, StreamBridge
from cmdcue.render import render_frame
from cmdcue.session import Session
from cmdcue.tui.widgets import SPINNER_FRAMES, ResponseFrame

logger = logging.getLogger(__name__)

_BRIDGE_POLL_INTERVAL_S = 0.1
_SPINNER_INTERVAL_S = 0.08
_SESSION_KEYS = ("up", "k", "down", "j", "enter", "space", "q", "escape", "ctrl+c")


@dataclass
class SelectionOutcome:
    commands: list[str] = field(default_factory=list)
    session: Session | None = None
    error: BaseException | None = None


class CommandSelectionApp(App[list[str]]):
    """
    Single-threaded owner of the `Session`.

    Bridge messages are pulled on a daemon thread and handed to the UI thread one at a
    time, in push order; reveal ticks are a self-rescheduling timer on the same loop, so
    every session mutation happens here and the frame is redrawn after each one.
    """

    CSS = """
    Screen {
        background: transparent;
    }

    Screen:inline {
        height: auto;
        min-height: 1;
        border: none;
    }

    #response {
        height: auto;
        max-height: 100vh;
        scrollbar-size-vertical: 1;
    }
    """

    BINDINGS = [Binding(key, f"session_key('{key}')", show=False, priority=True) for key in _SESSION_KEYS]

    def __init__(self, bridge: StreamBridge, session: Session | None = None, *, local: bool = False, **kwargs: Any):
        super().__init__(**kwargs)
        self.bridge = bridge
        self.session = session or Session()
        self.local = local
        self.error: BaseException | None = None

        self._frame: ResponseFrame | None = None
        self._spinner_index = 0
        self._spinner_timer: Any = None
        self._pump_thread: threading.Thread | None = None
        self._finished = False
        self._pending_abort: BaseException | None = None
        self._ui_thread_id: int | None = None

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="response"):
            yield ResponseFrame(id="frame")

    def on_mount(self) -> None:
        self._ui_thread_id = threading.get_ident()
        self._frame = self.query_one("#frame", ResponseFrame)
        self.session.resize(self.size.width)
        self._spinner_timer = self.set_interval(_SPINNER_INTERVAL_S, self._advance_spinner)
        self.set_timer(self.session.scheduler.initial_delay, self._on_reveal_tick)
        self._pump_thread = threading.Thread(
            target=self._pump_bridge,
            daemon=True,
            name="cmdcue-bridge-pump",
        )
        self._pump_thread.start()
        self._redraw()
        if self._pending_abort is not None:
            self._abort(self._pending_abort)

    @property
    def frame_text(self) -> str:
        return self._frame.plain if self._frame is not None else ""

    def abort(self, error: BaseException) -> None:
        """Stop the loop because the producer failed; safe to call from any thread."""
        self._pending_abort = error
        if self._ui_thread_id == threading.get_ident():
            self._abort(error)
            return
        self._call_from_thread_safe(self._abort, error)

    def _abort(self, error: BaseException) -> None:
        if self._finished:
            return
        self.error = error
        self.session.cancel()
        self._finish()

    def _call_from_thread_safe(self, callback: Any, *args: Any, **kwargs: Any) -> None:
        if self._finished:
            return
        with contextlib.suppress(RuntimeError):
            self.call_from_thread(callback, *args, **kwargs)

    def _pump_bridge(self) -> None:
        while not self.bridge.closed:
            message = self.bridge.get(timeout=_BRIDGE_POLL_INTERVAL_S)
            if message is None:
                continue
            self._call_from_thread_safe(self._on_bridge_message, message)
            if isinstance(message, Done):
                return

    def _on_bridge_message(self, message: BridgeMessage) -> None:
        if self._finished:
            return
        self.session.apply(message)
        if isinstance(message, Done):
            logger.debug("generation done after %d chars", len(self.session.accumulated_text))
        self._after_event()

    def _on_reveal_tick(self) -> None:
        if self._finished:
            return
        delay = self.session.tick()
        self._after_event()
        if not self._finished:
            self.set_timer(delay, self._on_reveal_tick)

    def _advance_spinner(self) -> None:
        if self.session.accumulated_text:
            if self._spinner_timer is not None:
                self._spinner_timer.stop()
                self._spinner_timer = None
            return
        self._spinner_index = (self._spinner_index + 1) % len(SPINNER_FRAMES)
        self._redraw()

    def action_session_key(self, key: str) -> None:
        if self._finished:
            return
        if self.session.handle_key(key):
            self._after_event()

    def on_resize(self, event: events.Resize) -> None:
        self.session.resize(event.size.width)
        self._redraw()

    def _after_event(self) -> None:
        self._redraw()
        if self.session.closed:
            self._finish()

    def _redraw(self) -> None:
        if self._frame is None:
            return
        frame = render_frame(self.session, spinner_frame=SPINNER_FRAMES[self._spinner_index], local=self.local)
        self._frame.show(frame)
        with contextlib.suppress(Exception):
            self.query_one("#response", VerticalScroll).scroll_end(animate=False)

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self.bridge.close()
        if self._spinner_timer is not None:
            self._spinner_timer.stop()
            self._spinner_timer = None
        logger.debug("selection closed as %s with %d command(s)", self.session.state.value, len(self.session.result))
        self.exit(self.session.result)


def run_selection(
    bridge: StreamBridge,
    session: Session | None = None,
    *,
    local: bool = False,
    inline: bool = True,
    on_start: Any = None,
) -> SelectionOutcome:
    """
    Run the picker until the user commits or cancels.

    `on_start(app)` is called before the loop starts so a producer can be wired to
    `app.abort`.
    """
    app = CommandSelectionApp(bridge, session, local=local)
    if on_start is not None:
        on_start(app)
    result = app.run(inline=inline, inline_no_clear=inline)
    return SelectionOutcome(commands=list(result or []), session=app.session, error=app.error)
