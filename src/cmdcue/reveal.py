"""Typewriter pacing for streamed text."""

from __future__ import annotations

import random

from cmdcue.settings import RevealConfig


class RevealScheduler:
    """
    Decide how far the visible prefix advances per tick, and how long until the next tick.

    Each tick reveals a uniform random `min_chunk..max_chunk` characters. The next delay
    grows linearly with the fraction already revealed, from 1 ms up to `ceiling_ms`, so the
    reveal starts fast and slows as it closes in on the currently known end of text.
    """

    def __init__(
        self,
        *,
        min_chunk: int = 2,
        max_chunk: int = 8,
        ceiling_ms: int = 30,
        initial_delay_ms: int = 100,
        enabled: bool = True,
        rng: random.Random | None = None,
    ) -> None:
        if min_chunk < 1 or max_chunk < min_chunk:
            raise ValueError(f"invalid reveal chunk range {min_chunk}..{max_chunk}")
        self.min_chunk = min_chunk
        self.max_chunk = max_chunk
        self.ceiling_ms = ceiling_ms
        self.initial_delay_ms = initial_delay_ms
        self.enabled = enabled
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, config: RevealConfig, *, rng: random.Random | None = None) -> "RevealScheduler":
        return cls(
            min_chunk=config.min_chunk,
            max_chunk=config.max_chunk,
            ceiling_ms=config.ceiling_ms,
            initial_delay_ms=config.initial_delay_ms,
            enabled=config.enabled,
            rng=rng,
        )

    @property
    def initial_delay(self) -> float:
        return self.initial_delay_ms / 1000.0

    def delay_for(self, visible: int, total: int) -> float:
        if total <= 0:
            return self.initial_delay
        delay_ms = int(max(visible / total * self.ceiling_ms, 1))
        return delay_ms / 1000.0

    def advance(self, visible: int, total: int) -> tuple[int, float]:
        """Return `(new_visible, seconds_until_next_tick)`."""
        if total <= 0:
            return 0, self.initial_delay
        if not self.enabled:
            return total, self.initial_delay
        step = self._rng.randint(self.min_chunk, self.max_chunk)
        new_visible = min(visible + step, total)
        return new_visible, self.delay_for(new_visible, total)
