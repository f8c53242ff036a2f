"""Cloud and local model providers reached through their Python client libraries."""

from __future__ import annotations

import logging
from typing import Any

from cmdcue import models
from cmdcue.backends.base import Emit
from cmdcue.errors import BackendError, BackendUnavailableError
from cmdcue.models import TextModel

logger = logging.getLogger(__name__)

_MODEL_MODULES = {
    "bedrock": models.bedrock,
    "gemini": models.gemini,
    "ollama": models.ollama,
    "openai": models.openai,
}


class ModelBackend:
    """Streams the reply of one `cmdcue.models` provider for a single user turn."""

    def __init__(self, provider: str, model_config: dict[str, Any]) -> None:
        if provider not in _MODEL_MODULES:
            raise BackendUnavailableError(f"model_provider=<{provider}> | not a model backend")
        self.name = provider
        self.local = provider == "ollama"
        self.model_config = dict(model_config)
        self._model: TextModel | None = None

    def prepare(self) -> None:
        if self.name in {"openai", "gemini"}:
            client_args = self.model_config.get("client_args") or {}
            if not client_args.get("api_key"):
                raise BackendUnavailableError(f"No API key configured for {self.name}.")
        try:
            self._model = _MODEL_MODULES[self.name].instance(**self.model_config)
        except Exception as exc:
            raise BackendUnavailableError(f"Could not create {self.name} model: {exc}") from exc
        logger.debug("prepared %s model %s", self.name, self._model.model_id)

    def generate(self, prompt: str, emit: Emit) -> None:
        if self._model is None:
            self.prepare()
        assert self._model is not None
        try:
            for text in self._model.stream(prompt):
                emit(text)
        except Exception as exc:
            raise BackendError(str(exc) or exc.__class__.__name__) from exc
