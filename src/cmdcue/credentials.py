"""API keys stored in a small JSON keyring under the state directory (mode 0600)."""

from __future__ import annotations

import json
import os
from pathlib import Path

from cmdcue.errors import ConfigError
from cmdcue.state_paths import keyring_path

_KEYRING_MODE = 0o600


def _load(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}
    try:
        loaded = json.loads(path.read_text(encoding="utf-8") or "{}")
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Could not read keyring {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f"Keyring {path} must contain a JSON object.")
    return {str(k): str(v) for k, v in loaded.items() if isinstance(v, str)}


def read_credential(name: str, *, path: Path | None = None) -> str | None:
    value = _load(path or keyring_path()).get(name)
    return value if value and value.strip() else None


def save_credential(name: str, value: str, *, path: Path | None = None) -> Path:
    resolved = path or keyring_path()
    data = _load(resolved)
    data[name] = value.strip()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(resolved, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _KEYRING_MODE)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)
        f.write("\n")
    # os.open only applies the mode on creation.
    os.chmod(resolved, _KEYRING_MODE)
    return resolved
