"""Text-generation backends and the provider registry."""

from __future__ import annotations

import os
from typing import Any

from cmdcue.backends.base import Backend, Emit, Producer
from cmdcue.backends.model_backend import ModelBackend
from cmdcue.backends.remote import RemoteBackend
from cmdcue.backends.subprocess_backends import OllamaCliBackend, TgptBackend
from cmdcue.errors import ConfigError
from cmdcue.models.openai import normalize_base_url
from cmdcue.settings import KNOWN_PROVIDERS, CmdcueSettings

API_KEY_ENV = {
    "gemini": "GOOGLE_AI_KEY",
    "openai": "OPENAI_API_KEY",
}

__all__ = [
    "API_KEY_ENV",
    "Backend",
    "Emit",
    "ModelBackend",
    "OllamaCliBackend",
    "Producer",
    "RemoteBackend",
    "TgptBackend",
    "create_backend",
    "has_aws_credentials",
    "model_config_for",
    "requires_api_key",
    "resolve_provider",
]


def has_aws_credentials() -> bool:
    """
    Check whether botocore can resolve AWS credentials locally.

    No network request is made; only configured credential sources are inspected.
    """
    try:
        import botocore.session

        return botocore.session.get_session().get_credentials() is not None
    except Exception:
        return False


def requires_api_key(provider: str) -> bool:
    return provider in API_KEY_ENV


def resolve_provider(
    *,
    cli_provider: str | None,
    env_provider: str | None,
    settings_provider: str | None,
) -> tuple[str, str | None]:
    """
    Pick the provider (CLI > env > settings > gemini) and return it with an optional notice.

    A Bedrock choice that came only from settings falls back to OpenAI when no AWS
    credentials resolve but OPENAI_API_KEY is set.
    """
    cli = (cli_provider or "").strip().lower()
    env = (env_provider or "").strip().lower()
    configured = (settings_provider or "").strip().lower()

    selected = cli or env or configured or "gemini"
    if selected not in KNOWN_PROVIDERS:
        raise ConfigError(f"Unknown provider {selected!r}; expected one of: {', '.join(KNOWN_PROVIDERS)}")

    if not (cli or env) and selected == "bedrock" and not has_aws_credentials():
        if (os.getenv("OPENAI_API_KEY") or "").strip():
            return (
                "openai",
                "No AWS credentials detected for Bedrock; falling back to OpenAI because OPENAI_API_KEY is set.",
            )
    return selected, None


def model_config_for(
    provider: str,
    settings: CmdcueSettings,
    *,
    model_id: str | None = None,
    api_key: str | None = None,
) -> dict[str, Any]:
    """Keyword arguments for `cmdcue.models.<provider>.instance`, built from settings."""
    provider_cfg = settings.models.for_provider(provider)
    resolved_model = model_id or provider_cfg.model_id
    params = dict(provider_cfg.params or {})

    if provider in {"openai", "gemini"}:
        client_args = dict(provider_cfg.client_args or {})
        if api_key:
            client_args["api_key"] = api_key
        if provider == "openai" and "base_url" not in client_args and os.getenv("OPENAI_BASE_URL"):
            client_args["base_url"] = normalize_base_url(os.getenv("OPENAI_BASE_URL", ""))
        config: dict[str, Any] = {"model_id": resolved_model, "client_args": client_args}
        if params:
            config["params"] = params
        return config

    # Bedrock and Ollama take their inference parameters as top-level config keys.
    config = {"model_id": resolved_model, **params, **provider_cfg.extra}
    if provider == "ollama":
        config["host"] = provider_cfg.host or os.getenv("OLLAMA_HOST")
    return config


def create_backend(
    provider: str,
    settings: CmdcueSettings,
    *,
    model_id: str | None = None,
    api_key: str | None = None,
) -> Backend:
    name = provider.strip().lower()
    if name in {"bedrock", "gemini", "ollama", "openai"}:
        return ModelBackend(name, model_config_for(name, settings, model_id=model_id, api_key=api_key))
    if name == "ollama-cli":
        return OllamaCliBackend(model_id or settings.models.for_provider(name).model_id or "llama3")
    if name == "tgpt":
        extra_args = settings.models.for_provider(name).extra.get("args")
        return TgptBackend([str(a) for a in extra_args] if isinstance(extra_args, list) else None)
    if name == "remote":
        return RemoteBackend(settings.remote)
    raise ConfigError(f"Unknown provider {provider!r}; expected one of: {', '.join(KNOWN_PROVIDERS)}")
