from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from cmdcue.errors import ConfigError
from cmdcue.state_paths import settings_path as _default_settings_path

KNOWN_PROVIDERS = ("gemini", "openai", "bedrock", "ollama", "ollama-cli", "tgpt", "remote")


def _truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on", "enabled", "enable"}


def _deep_merge_dict(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dicts (override wins). Lists are replaced, not merged."""
    out: dict[str, Any] = dict(base)
    for key, value in override.items():
        out_value = out.get(key)
        if isinstance(value, dict) and isinstance(out_value, dict):
            out[key] = _deep_merge_dict(out_value, value)
        else:
            out[key] = value
    return out


def _positive_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value if value > 0 else default
    if isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
        return parsed if parsed > 0 else default
    return default


@dataclass(frozen=True)
class ProviderConfig:
    model_id: str | None = None
    host: str | None = None
    params: dict[str, Any] | None = None
    client_args: dict[str, Any] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ProviderConfig":
        model_id = raw.get("model_id")
        host = raw.get("host")
        params = raw.get("params")
        client_args = raw.get("client_args")
        extra = {k: v for k, v in raw.items() if k not in {"model_id", "host", "params", "client_args"}}
        return cls(
            model_id=model_id.strip() if isinstance(model_id, str) and model_id.strip() else None,
            host=host.strip() if isinstance(host, str) and host.strip() else None,
            params=params if isinstance(params, dict) else None,
            client_args=client_args if isinstance(client_args, dict) else None,
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.model_id:
            out["model_id"] = self.model_id
        if self.host:
            out["host"] = self.host
        if self.params:
            out["params"] = self.params
        if self.client_args:
            out["client_args"] = self.client_args
        out.update(self.extra)
        return out


@dataclass(frozen=True)
class ModelsConfig:
    provider: str | None = None
    providers: dict[str, ProviderConfig] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ModelsConfig":
        provider = raw.get("provider")
        providers_raw = raw.get("providers")
        providers: dict[str, ProviderConfig] = {}
        if isinstance(providers_raw, dict):
            for provider_name, provider_value in providers_raw.items():
                if not isinstance(provider_name, str) or not isinstance(provider_value, dict):
                    continue
                providers[provider_name.strip().lower()] = ProviderConfig.from_dict(provider_value)
        return cls(
            provider=provider.strip().lower() if isinstance(provider, str) and provider.strip() else None,
            providers=providers,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"providers": {k: v.to_dict() for k, v in self.providers.items()}}
        if self.provider:
            out["provider"] = self.provider
        return out

    def for_provider(self, name: str) -> ProviderConfig:
        return self.providers.get(name.strip().lower(), ProviderConfig())


@dataclass(frozen=True)
class DirectivesConfig:
    token: str = "@run"
    elevation_prefixes: tuple[str, ...] = ("sudo",)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "DirectivesConfig":
        token = raw.get("token")
        prefixes = raw.get("elevation_prefixes")
        return cls(
            token=token if isinstance(token, str) and token.strip() else "@run",
            elevation_prefixes=tuple(str(p) for p in prefixes if str(p))
            if isinstance(prefixes, list)
            else ("sudo",),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"token": self.token, "elevation_prefixes": list(self.elevation_prefixes)}


@dataclass(frozen=True)
class RevealConfig:
    enabled: bool = True
    min_chunk: int = 2
    max_chunk: int = 8
    ceiling_ms: int = 30
    initial_delay_ms: int = 100

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "RevealConfig":
        enabled = raw.get("enabled")
        min_chunk = _positive_int(raw.get("min_chunk"), 2)
        max_chunk = _positive_int(raw.get("max_chunk"), 8)
        if max_chunk < min_chunk:
            raise ConfigError(f"reveal.max_chunk ({max_chunk}) must be >= reveal.min_chunk ({min_chunk})")
        return cls(
            enabled=enabled if isinstance(enabled, bool) else _truthy(str(enabled)) if enabled is not None else True,
            min_chunk=min_chunk,
            max_chunk=max_chunk,
            ceiling_ms=_positive_int(raw.get("ceiling_ms"), 30),
            initial_delay_ms=_positive_int(raw.get("initial_delay_ms"), 100),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "min_chunk": self.min_chunk,
            "max_chunk": self.max_chunk,
            "ceiling_ms": self.ceiling_ms,
            "initial_delay_ms": self.initial_delay_ms,
        }


@dataclass(frozen=True)
class UIConfig:
    max_width: int = 200

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "UIConfig":
        return cls(max_width=_positive_int(raw.get("max_width"), 200))

    def to_dict(self) -> dict[str, Any]:
        return {"max_width": self.max_width}


@dataclass(frozen=True)
class RemoteConfig:
    """Generic REST backend: POST `data_template` (with "<PROMPT>" substituted) to `url`."""

    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    data_template: Any = None
    field_to_extract: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "RemoteConfig":
        url = raw.get("url")
        headers = raw.get("headers")
        field_to_extract = raw.get("field_to_extract")
        return cls(
            url=url.strip() if isinstance(url, str) else "",
            headers={str(k): str(v) for k, v in headers.items()} if isinstance(headers, dict) else {},
            data_template=raw.get("data_template"),
            field_to_extract=field_to_extract.strip() if isinstance(field_to_extract, str) else "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "headers": dict(self.headers),
            "data_template": self.data_template,
            "field_to_extract": self.field_to_extract,
        }


@dataclass(frozen=True)
class CmdcueSettings:
    models: ModelsConfig = field(default_factory=ModelsConfig)
    directives: DirectivesConfig = field(default_factory=DirectivesConfig)
    reveal: RevealConfig = field(default_factory=RevealConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CmdcueSettings":
        models_raw = raw.get("models")
        directives_raw = raw.get("directives")
        reveal_raw = raw.get("reveal")
        ui_raw = raw.get("ui")
        remote_raw = raw.get("remote")
        return cls(
            models=ModelsConfig.from_dict(models_raw) if isinstance(models_raw, dict) else ModelsConfig(),
            directives=DirectivesConfig.from_dict(directives_raw)
            if isinstance(directives_raw, dict)
            else DirectivesConfig(),
            reveal=RevealConfig.from_dict(reveal_raw) if isinstance(reveal_raw, dict) else RevealConfig(),
            ui=UIConfig.from_dict(ui_raw) if isinstance(ui_raw, dict) else UIConfig(),
            remote=RemoteConfig.from_dict(remote_raw) if isinstance(remote_raw, dict) else RemoteConfig(),
            raw=raw,
        )

    def to_dict(self) -> dict[str, Any]:
        base = dict(self.raw) if isinstance(self.raw, dict) else {}
        base.update(
            {
                "models": self.models.to_dict(),
                "directives": self.directives.to_dict(),
                "reveal": self.reveal.to_dict(),
                "ui": self.ui.to_dict(),
                "remote": self.remote.to_dict(),
            }
        )
        return base


def load_settings(path: Path | None = None) -> CmdcueSettings:
    """
    Load cmdcue settings from `~/.cmdcue/settings.json`.

    Environment overrides:
    - CMDCUE_PROVIDER: choose the default provider
    - CMDCUE_MODEL_ID: force the model id of the active provider
    - CMDCUE_REVEAL: enable/disable the typewriter reveal
    """
    resolved_path = path or _default_settings_path()
    raw: dict[str, Any] = {}
    if resolved_path.exists() and resolved_path.is_file():
        try:
            loaded = json.loads(resolved_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigError(f"Could not read settings file {resolved_path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"Settings file {resolved_path} must contain a JSON object.")
        raw = loaded

    defaults = default_settings_template().to_dict()
    merged = _deep_merge_dict(defaults, raw) if raw else defaults
    remote_raw = raw.get("remote")
    if isinstance(remote_raw, dict) and "data_template" in remote_raw:
        # data_template is replaced, never merged.
        merged["remote"]["data_template"] = remote_raw["data_template"]
    settings = CmdcueSettings.from_dict(merged)

    # Apply env overrides into the returned structure (does not persist to disk).
    forced_provider = os.getenv("CMDCUE_PROVIDER")
    forced_model = os.getenv("CMDCUE_MODEL_ID")
    reveal_env = os.getenv("CMDCUE_REVEAL")

    models = settings.models
    if forced_provider and forced_provider.strip():
        models = replace(models, provider=forced_provider.strip().lower())

    if forced_model and forced_model.strip() and models.provider:
        providers = dict(models.providers)
        providers[models.provider] = replace(models.for_provider(models.provider), model_id=forced_model.strip())
        models = replace(models, providers=providers)

    if models is not settings.models:
        settings = replace(settings, models=models)

    if reveal_env is not None:
        settings = replace(settings, reveal=replace(settings.reveal, enabled=_truthy(reveal_env)))

    return settings


def save_settings(settings: CmdcueSettings, path: Path | None = None) -> Path:
    resolved_path = path or _default_settings_path()
    resolved_path.parent.mkdir(parents=True, exist_ok=True)
    resolved_path.write_text(json.dumps(settings.to_dict(), indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return resolved_path


def with_default_provider(settings: CmdcueSettings, provider: str) -> CmdcueSettings:
    name = provider.strip().lower()
    if name not in KNOWN_PROVIDERS:
        raise ConfigError(f"Unknown provider {provider!r}; expected one of: {', '.join(KNOWN_PROVIDERS)}")
    return replace(settings, models=replace(settings.models, provider=name))


def default_settings_template() -> CmdcueSettings:
    # Provider selection precedence (highest -> lowest):
    # - CLI args
    # - env (CMDCUE_PROVIDER)
    # - `~/.cmdcue/settings.json`
    # - built-ins (this function)
    return CmdcueSettings(
        models=ModelsConfig(
            provider="gemini",
            providers={
                "gemini": ProviderConfig(model_id="gemini-2.0-flash", params={"temperature": 0.7}),
                "openai": ProviderConfig(model_id="gpt-5-mini"),
                "bedrock": ProviderConfig(model_id="us.anthropic.claude-sonnet-4-20250514-v1:0"),
                "ollama": ProviderConfig(model_id="llama3.1"),
                "ollama-cli": ProviderConfig(model_id="llama3"),
                "tgpt": ProviderConfig(),
            },
        ),
        directives=DirectivesConfig(),
        reveal=RevealConfig(),
        ui=UIConfig(),
        remote=RemoteConfig(
            url="",
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            data_template={"model": "example-model", "messages": "<PROMPT>"},
            field_to_extract="content",
        ),
        raw={},
    )
