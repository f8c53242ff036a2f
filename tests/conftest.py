"""
Test configuration and fixtures for pytest
"""

import random

import pytest

from cmdcue.reveal import RevealScheduler
from cmdcue.session import Session


@pytest.fixture(autouse=True)
def _isolated_state(tmp_path, monkeypatch):
    """Keep unit tests away from the real ~/.cmdcue and the caller's provider env."""
    monkeypatch.setenv("CMDCUE_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("CMDCUE_LOG_EVENTS", "0")
    for name in (
        "CMDCUE_PROVIDER",
        "CMDCUE_MODEL_ID",
        "CMDCUE_REVEAL",
        "CMDCUE_LOG_DIR",
        "CMDCUE_LOG_LEVEL",
        "GOOGLE_AI_KEY",
        "OPENAI_API_KEY",
        "OPENAI_BASE_URL",
        "OLLAMA_HOST",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def instant_session():
    """Session whose reveal jumps to the end of the text on every tick."""
    return Session(scheduler=RevealScheduler(enabled=False))


@pytest.fixture
def seeded_scheduler():
    return RevealScheduler(rng=random.Random(1234))
