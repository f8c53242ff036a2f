"""Create instance of an Ollama chat model served over the Ollama HTTP API."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from ollama import Client


class OllamaChatModel:
    def __init__(self, client: Any, model_id: str, options: dict[str, Any] | None = None) -> None:
        self.client = client
        self.model_id = model_id
        self.options = dict(options or {})

    def stream(self, prompt: str) -> Iterator[str]:
        chunks = self.client.chat(
            model=self.model_id,
            messages=[{"role": "user", "content": prompt}],
            options=self.options or None,
            stream=True,
        )
        for chunk in chunks:
            part = (chunk.get("message") or {}).get("content", "")
            if part:
                yield part


def instance(
    host: str | None = None,
    model_id: str = "llama3.1",
    **options: Any,
) -> OllamaChatModel:
    """Create an Ollama chat model.

    Args:
        host: The address of the Ollama server; None uses the client's default (OLLAMA_HOST or localhost:11434).
        model_id: Ollama model ID.
        **options: Ollama model options (temperature, num_ctx, ...).
    """
    return OllamaChatModel(Client(host=host), model_id=model_id or "llama3.1", options=options)
