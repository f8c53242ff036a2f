"""Create instance of an Amazon Bedrock model using the Converse streaming API."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, TypedDict

import boto3
from botocore.config import Config as BotocoreConfig
from typing_extensions import Unpack

DEFAULT_MODEL_ID = "us.anthropic.claude-sonnet-4-20250514-v1:0"
DEFAULT_BOTO_CLIENT_CONFIG: dict[str, Any] = {
    "read_timeout": 120,
    "connect_timeout": 30,
    "retries": {"max_attempts": 1, "mode": "standard"},
}

_INFERENCE_KEYS = {
    "max_tokens": "maxTokens",
    "temperature": "temperature",
    "top_p": "topP",
    "stop_sequences": "stopSequences",
}


class BedrockConfig(TypedDict, total=False):
    model_id: str
    region_name: str
    max_tokens: int
    temperature: float
    top_p: float
    stop_sequences: list[str]
    boto_client_config: dict[str, Any] | BotocoreConfig


class BedrockConverseModel:
    def __init__(self, client: Any, model_id: str, inference_config: dict[str, Any] | None = None) -> None:
        self.client = client
        self.model_id = model_id
        self.inference_config = dict(inference_config or {})

    def stream(self, prompt: str) -> Iterator[str]:
        request: dict[str, Any] = {
            "modelId": self.model_id,
            "messages": [{"role": "user", "content": [{"text": prompt}]}],
        }
        if self.inference_config:
            request["inferenceConfig"] = self.inference_config
        response = self.client.converse_stream(**request)
        for event in response["stream"]:
            text = event.get("contentBlockDelta", {}).get("delta", {}).get("text")
            if text:
                yield text


def instance(**model_config: Unpack[BedrockConfig]) -> BedrockConverseModel:
    """Create a Bedrock model.

    A `boto_client_config` given as a dict (as it is in settings.json) is turned into a
    botocore `Config`; retries are off by default since a failed run is reported, not retried.
    """
    config_dict: dict[str, Any] = dict(model_config)
    boto_client_config = config_dict.pop("boto_client_config", DEFAULT_BOTO_CLIENT_CONFIG)
    if isinstance(boto_client_config, dict):
        boto_client_config = BotocoreConfig(**boto_client_config)

    client = boto3.client(
        "bedrock-runtime",
        region_name=config_dict.pop("region_name", None),
        config=boto_client_config,
    )
    inference_config = {_INFERENCE_KEYS[key]: value for key, value in config_dict.items() if key in _INFERENCE_KEYS}
    return BedrockConverseModel(
        client,
        model_id=config_dict.get("model_id") or DEFAULT_MODEL_ID,
        inference_config=inference_config,
    )
