from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import pytest

from cmdcue import state_paths
from cmdcue.conversation_cache import read_conversation, write_conversation
from cmdcue.credentials import read_credential, save_credential
from cmdcue.errors import ConfigError


def test_state_dir_honours_env_override(tmp_path: Path) -> None:
    assert state_paths.state_dir() == (tmp_path / "state").resolve()
    assert state_paths.keyring_path().name == "keyring.json"


def test_state_dir_defaults_to_home(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("CMDCUE_STATE_DIR", raising=False)
    assert state_paths.state_dir(home=tmp_path) == tmp_path / ".cmdcue"


def test_conversation_round_trip() -> None:
    assert read_conversation() == ""

    path = write_conversation("how do I list files?", "Use @run[ls]")

    assert path == state_paths.conversation_cache_path()
    assert read_conversation() == "how do I list files?\nUse @run[ls]"


def test_credentials_saved_private() -> None:
    assert read_credential("gemini") is None

    path = save_credential("gemini", " g-key \n")
    save_credential("openai", "sk-key")

    assert read_credential("gemini") == "g-key"
    assert json.loads(path.read_text(encoding="utf-8")) == {"gemini": "g-key", "openai": "sk-key"}
    if os.name == "posix":
        assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_corrupt_keyring_raises_config_error() -> None:
    path = state_paths.keyring_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("not json", encoding="utf-8")

    with pytest.raises(ConfigError):
        read_credential("gemini")
