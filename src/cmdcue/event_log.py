from __future__ import annotations

import json
import logging
import os
import threading
import time
import uuid
from pathlib import Path
from typing import Any

from cmdcue.state_paths import logs_dir

_DIAGNOSTIC_LOG_NAME = "cmdcue.log"


def _truthy_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on", "enabled", "enable"}


def _iso_ts() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.localtime())


def _truncate(value: str, limit: int) -> str:
    if limit <= 0:
        return value
    if len(value) <= limit:
        return value
    return value[:limit] + f"...[truncated {len(value) - limit} chars]"


class SessionEventLog:
    """
    Lightweight JSONL log of one cmdcue invocation (prompt, response, selection, command results).

    Writes one JSON object per line to a session log file in `~/.cmdcue/logs/`.
    String fields longer than `CMDCUE_LOG_MAX_FIELD_CHARS` are truncated.
    """

    def __init__(self, log_dir: Path | None = None, *, enabled: bool | None = None) -> None:
        self.enabled = _truthy_env("CMDCUE_LOG_EVENTS", True) if enabled is None else enabled
        self.log_dir = log_dir or Path(os.getenv("CMDCUE_LOG_DIR", str(logs_dir())))
        self.session_id = os.getenv("CMDCUE_SESSION_ID", uuid.uuid4().hex)
        self.max_field_chars = int(os.getenv("CMDCUE_LOG_MAX_FIELD_CHARS", "8000"))

        self._lock = threading.Lock()
        self._log_path = self.log_dir / f"{time.strftime('%Y%m%d_%H%M%S')}_{self.session_id}.jsonl"

    @property
    def path(self) -> Path:
        return self._log_path

    def _write_append(self, line: str) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        with self._lock:
            with self._log_path.open("a", encoding="utf-8") as f:
                f.write(line)
                f.write("\n")

    def log(self, event: str, payload: dict[str, Any] | None = None) -> None:
        if not self.enabled:
            return
        record: dict[str, Any] = {}
        for key, value in (payload or {}).items():
            record[key] = _truncate(value, self.max_field_chars) if isinstance(value, str) else value
        record.update({"ts": _iso_ts(), "event": event, "session_id": self.session_id})
        try:
            self._write_append(json.dumps(record, ensure_ascii=False, default=str))
        except OSError:
            logging.getLogger(__name__).warning("could not write event log %s", self._log_path, exc_info=True)


def configure_logging(level: str | None = None, *, log_dir: Path | None = None) -> Path | None:
    """
    Route diagnostic `logging` output to `~/.cmdcue/logs/cmdcue.log`.

    The terminal belongs to the TUI while it runs, so nothing is attached to stderr.
    Level defaults to `CMDCUE_LOG_LEVEL` (WARNING when unset).
    """
    resolved_level = (level or os.getenv("CMDCUE_LOG_LEVEL") or "WARNING").strip().upper()
    target_dir = log_dir or logs_dir()
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        return None

    log_path = target_dir / _DIAGNOSTIC_LOG_NAME
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger("cmdcue")
    for existing in [h for h in root.handlers if isinstance(h, logging.FileHandler)]:
        root.removeHandler(existing)
        existing.close()
    root.addHandler(handler)
    root.setLevel(getattr(logging, resolved_level, logging.WARNING))
    root.propagate = False
    return log_path
