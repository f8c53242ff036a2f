"""Create a Gemini model through Google's OpenAI-compatible endpoint."""

from __future__ import annotations

from typing import Any

from openai import OpenAI
from typing_extensions import Unpack

from .openai import OpenAIChatModel, OpenAIConfig

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_MODEL_ID = "gemini-2.0-flash"


def instance(client_args: dict[str, Any] | None = None, **model_config: Unpack[OpenAIConfig]) -> OpenAIChatModel:
    """Create an OpenAI-protocol chat model pointed at the Gemini API.

    `client_args["api_key"]` must carry the Google AI key; `base_url` defaults to the
    Gemini OpenAI-compatible endpoint.
    """
    args = dict(client_args or {})
    args.setdefault("base_url", GEMINI_OPENAI_BASE_URL)
    return OpenAIChatModel(
        OpenAI(**args),
        model_id=model_config.get("model_id") or DEFAULT_MODEL_ID,
        params=model_config.get("params"),
    )
