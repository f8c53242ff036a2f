from __future__ import annotations

import os
from pathlib import Path


def state_dir(*, home: Path | None = None) -> Path:
    """
    Return the base directory for cmdcue state (settings/keyring/logs/conversation cache).

    Default: `~/.cmdcue`
    Override: `CMDCUE_STATE_DIR`

    Notes:
    - If CMDCUE_STATE_DIR is relative, it is interpreted relative to the current working directory.
    - This does not create directories; callers should mkdir as needed.
    """
    raw = os.getenv("CMDCUE_STATE_DIR")
    if isinstance(raw, str) and raw.strip():
        return Path(raw.strip()).expanduser().resolve()

    base = (home or Path.home()).expanduser()
    return base / ".cmdcue"


def settings_path() -> Path:
    return state_dir() / "settings.json"


def keyring_path() -> Path:
    return state_dir() / "keyring.json"


def conversation_cache_path() -> Path:
    return state_dir() / "conversation_cache.txt"


def logs_dir() -> Path:
    return state_dir() / "logs"
