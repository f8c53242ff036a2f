"""Create instances of cmdcue model providers.

Each module exposes an `instance` function that returns a `TextModel`: something whose
`stream(prompt)` yields the reply as text deltas, in order.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol

from . import bedrock, gemini, ollama, openai


class TextModel(Protocol):
    model_id: str

    def stream(self, prompt: str) -> Iterator[str]: ...


__all__ = ["TextModel", "bedrock", "gemini", "ollama", "openai"]
