"""Create instance of an OpenAI Chat Completions model."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, TypedDict

from openai import OpenAI
from typing_extensions import Unpack

DEFAULT_MODEL_ID = "gpt-5-mini"


class OpenAIConfig(TypedDict, total=False):
    model_id: str
    params: dict[str, Any]


def normalize_base_url(base_url: str) -> str:
    # The OpenAI Python SDK expects base_url to include `/v1`.
    base_url = base_url.strip().rstrip("/")
    if base_url and not base_url.endswith("/v1"):
        base_url = base_url + "/v1"
    return base_url


class OpenAIChatModel:
    """Streams one user turn through `chat.completions` on any OpenAI-protocol endpoint."""

    def __init__(self, client: Any, model_id: str, params: dict[str, Any] | None = None) -> None:
        self.client = client
        self.model_id = model_id
        self.params = dict(params or {})

    def stream(self, prompt: str) -> Iterator[str]:
        response = self.client.chat.completions.create(
            model=self.model_id,
            messages=[{"role": "user", "content": prompt}],
            stream=True,
            **self.params,
        )
        for chunk in response:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield content


def instance(client_args: dict[str, Any] | None = None, **model_config: Unpack[OpenAIConfig]) -> OpenAIChatModel:
    """Create an OpenAI chat model.

    Args:
        client_args: Keyword arguments for `openai.OpenAI` (api_key, base_url, timeout...).
        **model_config: `model_id` and request `params` (temperature, max_completion_tokens...).
    """
    return OpenAIChatModel(
        OpenAI(**(client_args or {})),
        model_id=model_config.get("model_id") or DEFAULT_MODEL_ID,
        params=model_config.get("params"),
    )
