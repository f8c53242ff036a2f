"""Widgets for the response/command-picker screen."""

from __future__ import annotations

from rich.text import Text
from textual.widgets import Static

SPINNER_FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]


class ResponseFrame(Static):
    """Holds the whole rendered frame; the app replaces its content after every event."""

    DEFAULT_CSS = """
    ResponseFrame {
        width: 100%;
        height: auto;
        padding: 0 0;
    }
    """

    def __init__(self, **kwargs: object) -> None:
        super().__init__("", **kwargs)
        self._plain = ""

    def show(self, frame: Text) -> None:
        self._plain = frame.plain
        self.update(frame)

    @property
    def plain(self) -> str:
        """Text of the last frame shown, without styles."""
        return self._plain
