"""State of one streamed response: reveal progress, extracted directives and the user's selection."""

from __future__ import annotations

from enum import Enum

from cmdcue.bridge import BridgeMessage, Done, Fragment
from cmdcue.directives import DEFAULT_SYNTAX, DirectiveExtractor, DirectiveSyntax, contains_elevated
from cmdcue.reveal import RevealScheduler

DEFAULT_RENDER_WIDTH = 80

CANCEL_KEYS = frozenset({"q", "escape", "esc", "ctrl+c"})
UP_KEYS = frozenset({"up", "k"})
DOWN_KEYS = frozenset({"down", "j"})
TOGGLE_KEYS = frozenset({"enter", "space"})


class SessionState(str, Enum):
    AWAITING_FIRST_CONTENT = "awaiting_first_content"
    STREAMING = "streaming"
    READY_FOR_SELECTION = "ready_for_selection"
    NO_DIRECTIVES_FOUND = "no_directives_found"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


class Session:
    """
    Mutable state owned by the event loop; nothing else writes to it.

    `selection_flags` always holds one flag per directive plus a trailing slot for the
    synthetic RUN row, so `cursor == len(directives)` addresses RUN.
    """

    def __init__(
        self,
        *,
        syntax: DirectiveSyntax = DEFAULT_SYNTAX,
        scheduler: RevealScheduler | None = None,
        max_width: int = 200,
    ) -> None:
        self.syntax = syntax
        self.scheduler = scheduler or RevealScheduler()
        self.max_width = max_width

        self.accumulated_text = ""
        self.visible_length = 0
        self.directives: list[str] = []
        self.selection_flags: list[bool] = [False]
        self.cursor = 0
        self.generation_done = False
        self.contains_elevated_command = False
        self.width = 0

        self._extractor = DirectiveExtractor(syntax)
        self._outcome: SessionState | None = None
        self._selected: list[str] = []

    @property
    def state(self) -> SessionState:
        if self._outcome is not None:
            return self._outcome
        if not self.accumulated_text:
            return SessionState.NO_DIRECTIVES_FOUND if self.generation_done else SessionState.AWAITING_FIRST_CONTENT
        if self.generation_done and self.visible_length >= len(self.accumulated_text):
            return SessionState.READY_FOR_SELECTION if self.directives else SessionState.NO_DIRECTIVES_FOUND
        return SessionState.STREAMING

    @property
    def closed(self) -> bool:
        return self._outcome is not None

    @property
    def result(self) -> list[str]:
        """Selected directive bodies once committed; empty when cancelled or still open."""
        if self._outcome is SessionState.COMMITTED:
            return list(self._selected)
        return []

    @property
    def visible_text(self) -> str:
        return self.accumulated_text[: self.visible_length]

    @property
    def render_width(self) -> int:
        width = self.width if self.width > 0 else DEFAULT_RENDER_WIDTH
        return min(width, self.max_width)

    def selected_directives(self) -> list[str]:
        return [body for body, flag in zip(self.directives, self.selection_flags) if flag]

    def apply(self, message: BridgeMessage) -> None:
        if self.closed:
            return
        if isinstance(message, Fragment):
            self._append(message.text)
        elif isinstance(message, Done):
            self.generation_done = True
        self._close_if_nothing_to_select()

    def tick(self) -> float:
        """Advance the reveal by one step; returns seconds until the next tick."""
        if self.closed:
            return self.scheduler.initial_delay
        self.visible_length, delay = self.scheduler.advance(self.visible_length, len(self.accumulated_text))
        self._close_if_nothing_to_select()
        return delay

    def resize(self, width: int) -> None:
        self.width = max(0, int(width))

    def handle_key(self, key: str) -> bool:
        """Apply a key press; returns False when the key means nothing in the current state."""
        if self.closed:
            return False
        key = key.lower()
        if key in CANCEL_KEYS:
            self.cancel()
            return True
        if not self.directives:
            return False

        if key in UP_KEYS:
            self.cursor = max(0, self.cursor - 1)
            return True
        if key in DOWN_KEYS:
            self.cursor = min(len(self.directives), self.cursor + 1)
            return True
        if key in TOGGLE_KEYS:
            if self.cursor < len(self.directives):
                self.selection_flags[self.cursor] = not self.selection_flags[self.cursor]
                return True
            self.commit()
            return True
        return False

    def commit(self) -> None:
        if self.closed:
            return
        self._selected = self.selected_directives()
        self._outcome = SessionState.COMMITTED

    def cancel(self) -> None:
        if self.closed:
            return
        self._selected = []
        self._outcome = SessionState.CANCELLED

    def _append(self, text: str) -> None:
        self.accumulated_text += text
        self.visible_length = min(self.visible_length, len(self.accumulated_text))

        directives = self._extractor.feed(self.accumulated_text)
        if len(directives) != len(self.directives):
            # Earlier directives never change on append, so their flags stay valid.
            kept = self.selection_flags[: len(self.directives)]
            self.selection_flags = kept + [False] * (len(directives) - len(kept) + 1)
        self.directives = directives
        self.contains_elevated_command = contains_elevated(directives, self.syntax.elevation_prefixes)

    def _close_if_nothing_to_select(self) -> None:
        if self.state is SessionState.NO_DIRECTIVES_FOUND:
            self._outcome = SessionState.CANCELLED
