"""Last prompt and response, kept so `cmdcue -c` can continue the conversation."""

from __future__ import annotations

import logging
from pathlib import Path

from cmdcue.state_paths import conversation_cache_path

logger = logging.getLogger(__name__)


def write_conversation(user_turn: str, response: str, *, path: Path | None = None) -> Path:
    resolved = path or conversation_cache_path()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    resolved.write_text(f"{user_turn}\n{response}", encoding="utf-8")
    return resolved


def read_conversation(*, path: Path | None = None) -> str:
    """Cached conversation, or "" when nothing was cached yet or the file can't be read."""
    resolved = path or conversation_cache_path()
    try:
        return resolved.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""
    except OSError as exc:
        logger.warning("could not read conversation cache %s: %s", resolved, exc)
        return ""
