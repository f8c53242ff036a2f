from __future__ import annotations

import io
import json
import subprocess
import sys
import urllib.error
from pathlib import Path
from types import SimpleNamespace
from unittest import mock

import pytest

from cmdcue import backends
from cmdcue.backends import model_backend, subprocess_backends
from cmdcue.backends import remote as remote_backend
from cmdcue.backends.base import Producer
from cmdcue.bridge import Done, Fragment, StreamBridge
from cmdcue.errors import BackendError, BackendUnavailableError, ConfigError
from cmdcue.settings import RemoteConfig, load_settings


def _drain(bridge: StreamBridge) -> list:
    messages = []
    while True:
        message = bridge.get(timeout=0.05)
        if message is None:
            return messages
        messages.append(message)


class _ListBackend:
    name = "fake"
    local = True

    def __init__(self, chunks: list[str], error: Exception | None = None) -> None:
        self.chunks = chunks
        self.error = error

    def prepare(self) -> None:
        return None

    def generate(self, prompt: str, emit) -> None:
        for chunk in self.chunks:
            emit(chunk)
        if self.error is not None:
            raise self.error


def test_producer_pushes_fragments_then_done() -> None:
    bridge = StreamBridge()
    producer = Producer(_ListBackend(["a", "", "b"]), "prompt", bridge).start()

    assert producer.join(timeout=2.0)
    assert _drain(bridge) == [Fragment("a"), Fragment("b"), Done()]
    assert producer.error is None


def test_producer_reports_error_without_done() -> None:
    bridge = StreamBridge()
    errors: list[BaseException] = []
    producer = Producer(
        _ListBackend(["partial"], error=BackendError("boom")), "prompt", bridge, on_error=errors.append
    ).start()

    assert producer.join(timeout=2.0)
    assert _drain(bridge) == [Fragment("partial")]
    assert [str(e) for e in errors] == ["boom"]
    assert isinstance(producer.error, BackendError)


def test_resolve_provider_precedence(monkeypatch) -> None:
    monkeypatch.setattr(backends, "has_aws_credentials", lambda: True)
    assert backends.resolve_provider(cli_provider="tgpt", env_provider="openai", settings_provider="gemini") == (
        "tgpt",
        None,
    )
    assert backends.resolve_provider(cli_provider=None, env_provider="openai", settings_provider="gemini") == (
        "openai",
        None,
    )
    assert backends.resolve_provider(cli_provider=None, env_provider=None, settings_provider=None) == ("gemini", None)


def test_resolve_provider_falls_back_from_bedrock(monkeypatch) -> None:
    monkeypatch.setattr(backends, "has_aws_credentials", lambda: False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    provider, notice = backends.resolve_provider(cli_provider=None, env_provider=None, settings_provider="bedrock")

    assert provider == "openai"
    assert notice and "OPENAI_API_KEY" in notice


def test_resolve_provider_rejects_unknown() -> None:
    with pytest.raises(ConfigError):
        backends.resolve_provider(cli_provider="nope", env_provider=None, settings_provider=None)


def test_model_config_for_gemini_carries_key_and_params(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "settings.json")

    config = backends.model_config_for("gemini", settings, api_key="g-key")

    assert config == {
        "model_id": "gemini-2.0-flash",
        "client_args": {"api_key": "g-key"},
        "params": {"temperature": 0.7},
    }


def test_model_config_for_openai_normalizes_base_url(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_BASE_URL", "http://localhost:8000/")
    settings = load_settings(tmp_path / "settings.json")

    config = backends.model_config_for("openai", settings, model_id="gpt-4o-mini", api_key="sk")

    assert config["model_id"] == "gpt-4o-mini"
    assert config["client_args"] == {"api_key": "sk", "base_url": "http://localhost:8000/v1"}


def test_model_config_for_ollama_uses_host(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("OLLAMA_HOST", "http://gpu:11434")
    settings = load_settings(tmp_path / "settings.json")

    assert backends.model_config_for("ollama", settings) == {"model_id": "llama3.1", "host": "http://gpu:11434"}


def test_create_backend_picks_implementation(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "settings.json")

    assert isinstance(backends.create_backend("bedrock", settings), backends.ModelBackend)
    assert isinstance(backends.create_backend("ollama-cli", settings), backends.OllamaCliBackend)
    assert isinstance(backends.create_backend("tgpt", settings), backends.TgptBackend)
    assert isinstance(backends.create_backend("remote", settings), backends.RemoteBackend)
    assert backends.create_backend("ollama", settings).local is True
    assert backends.create_backend("gemini", settings, api_key="k").local is False


def test_model_backend_requires_api_key() -> None:
    backend = backends.ModelBackend("openai", {"model_id": "gpt-5-mini", "client_args": {}})
    with pytest.raises(BackendUnavailableError):
        backend.prepare()


def test_stream_process_emits_lines() -> None:
    chunks: list[str] = []
    subprocess_backends.stream_process([sys.executable, "-c", "print('one'); print('two')"], chunks.append)
    assert chunks == ["one\n", "two\n"]


def test_stream_process_raises_with_stderr_tail() -> None:
    argv = [sys.executable, "-c", "import sys; sys.stderr.write('model missing'); sys.exit(2)"]
    with pytest.raises(BackendError, match="exited with code 2: model missing"):
        subprocess_backends.stream_process(argv, lambda text: None)


def test_ollama_cli_prepare_checks_binary(monkeypatch) -> None:
    monkeypatch.setattr(subprocess_backends.shutil, "which", lambda name: None)
    with pytest.raises(BackendUnavailableError, match="not installed"):
        backends.OllamaCliBackend("llama3").prepare()


def test_ollama_cli_prepare_checks_model_list(monkeypatch) -> None:
    monkeypatch.setattr(subprocess_backends.shutil, "which", lambda name: "/usr/bin/ollama")
    listing = subprocess.CompletedProcess(["ollama", "list"], 0, stdout="NAME\nmistral:latest\n", stderr="")
    monkeypatch.setattr(subprocess_backends.subprocess, "run", lambda *a, **k: listing)

    with pytest.raises(BackendUnavailableError, match="ollama pull llama3"):
        backends.OllamaCliBackend("llama3").prepare()
    backends.OllamaCliBackend("mistral").prepare()


def test_ollama_cli_generate_invokes_run(monkeypatch) -> None:
    calls: list[list[str]] = []
    monkeypatch.setattr(subprocess_backends, "stream_process", lambda argv, emit: calls.append(argv))

    backends.OllamaCliBackend("llama3").generate("list files", lambda text: None)

    assert calls == [["ollama", "run", "llama3", "list files"]]


def test_tgpt_prepare_and_generate(monkeypatch) -> None:
    monkeypatch.setattr(subprocess_backends.shutil, "which", lambda name: None)
    with pytest.raises(BackendUnavailableError):
        backends.TgptBackend().prepare()

    calls: list[list[str]] = []
    monkeypatch.setattr(subprocess_backends, "stream_process", lambda argv, emit: calls.append(argv))
    backends.TgptBackend(["--provider", "phind"]).generate("hi", lambda text: None)
    assert calls == [["tgpt", "--provider", "phind", "hi"]]


def test_replace_prompt_is_recursive_and_copies() -> None:
    template = {"model": "m", "messages": [{"role": "user", "content": "<PROMPT>"}], "raw": "<PROMPT>"}

    filled = remote_backend.replace_prompt(template, "hello")

    assert filled == {"model": "m", "messages": [{"role": "user", "content": "hello"}], "raw": "hello"}
    assert template["raw"] == "<PROMPT>"


def test_find_field_searches_depth_first() -> None:
    payload = {"id": 1, "choices": [{"message": {"role": "assistant", "content": "answer"}}]}
    assert remote_backend.find_field(payload, "content") == "answer"
    assert remote_backend.find_field(payload, "missing") is None


def test_remote_backend_requires_url() -> None:
    with pytest.raises(BackendUnavailableError):
        backends.RemoteBackend(RemoteConfig(field_to_extract="content")).prepare()


class _FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
        return False


def test_remote_backend_posts_template_and_emits_field(monkeypatch) -> None:
    captured = {}

    def _urlopen(request, timeout=None):
        captured["url"] = request.full_url
        captured["body"] = json.loads(request.data.decode("utf-8"))
        captured["headers"] = dict(request.header_items())
        return _FakeResponse(json.dumps({"output": {"content": "Use @run[ls]"}}).encode("utf-8"))

    monkeypatch.setattr(remote_backend.urllib.request, "urlopen", _urlopen)
    config = RemoteConfig(
        url="https://api.example.com/v1/chat",
        headers={"Authorization": "Bearer t"},
        data_template={"model": "x", "messages": "<PROMPT>"},
        field_to_extract="content",
    )

    chunks: list[str] = []
    backends.RemoteBackend(config).generate("list files", chunks.append)

    assert chunks == ["Use @run[ls]"]
    assert captured["url"] == "https://api.example.com/v1/chat"
    assert captured["body"] == {"model": "x", "messages": "list files"}
    assert captured["headers"]["Authorization"] == "Bearer t"


def test_remote_backend_http_error(monkeypatch) -> None:
    def _urlopen(request, timeout=None):
        raise urllib.error.HTTPError(request.full_url, 401, "Unauthorized", {}, io.BytesIO(b"bad key"))

    monkeypatch.setattr(remote_backend.urllib.request, "urlopen", _urlopen)
    config = RemoteConfig(url="https://api.example.com", data_template={}, field_to_extract="content")

    with pytest.raises(BackendError, match="HTTP 401"):
        backends.RemoteBackend(config).generate("x", lambda text: None)


def test_remote_backend_missing_field(monkeypatch) -> None:
    monkeypatch.setattr(remote_backend.urllib.request, "urlopen", lambda request, timeout=None: _FakeResponse(b"{}"))
    config = RemoteConfig(url="https://api.example.com", data_template={}, field_to_extract="content")

    with pytest.raises(BackendError, match="not found"):
        backends.RemoteBackend(config).generate("x", lambda text: None)



class _FakeModel:
    model_id = "m"

    def __init__(self, chunks: list[str], error: Exception | None = None) -> None:
        self.chunks = chunks
        self.error = error

    def stream(self, prompt: str):
        yield from self.chunks
        if self.error is not None:
            raise self.error


def test_model_backend_streams_text(monkeypatch) -> None:
    model_module = mock.MagicMock()
    model_module.instance.return_value = _FakeModel(["Try ", "@run[ls]"])
    monkeypatch.setitem(model_backend._MODEL_MODULES, "bedrock", model_module)

    backend = backends.ModelBackend("bedrock", {"model_id": "m"})
    backend.prepare()
    chunks: list[str] = []
    backend.generate("hello", chunks.append)

    assert chunks == ["Try ", "@run[ls]"]
    model_module.instance.assert_called_once_with(model_id="m")


def test_model_backend_wraps_stream_errors(monkeypatch) -> None:
    model_module = mock.MagicMock()
    model_module.instance.return_value = _FakeModel(["partial"], error=RuntimeError("ThrottlingException"))
    monkeypatch.setitem(model_backend._MODEL_MODULES, "bedrock", model_module)

    backend = backends.ModelBackend("bedrock", {"model_id": "m"})
    chunks: list[str] = []
    with pytest.raises(BackendError, match="ThrottlingException"):
        backend.generate("hello", chunks.append)
    assert chunks == ["partial"]


def test_model_backend_reports_construction_failure(monkeypatch) -> None:
    model_module = mock.MagicMock()
    model_module.instance.side_effect = ValueError("bad region")
    monkeypatch.setitem(model_backend._MODEL_MODULES, "bedrock", model_module)

    with pytest.raises(BackendUnavailableError, match="bad region"):
        backends.ModelBackend("bedrock", {"model_id": "m"}).prepare()


def _chat_chunk(content):
    delta = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta)] if content is not None else [])


def test_openai_model_streams_deltas() -> None:
    from cmdcue.models.openai import OpenAIChatModel

    client = mock.MagicMock()
    client.chat.completions.create.return_value = iter(
        [_chat_chunk(None), _chat_chunk("Hi "), _chat_chunk(""), _chat_chunk("there")]
    )

    model = OpenAIChatModel(client, "gpt-5-mini", {"temperature": 0.2})

    assert list(model.stream("hello")) == ["Hi ", "there"]
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-5-mini"
    assert kwargs["messages"] == [{"role": "user", "content": "hello"}]
    assert kwargs["stream"] is True
    assert kwargs["temperature"] == 0.2


def test_gemini_points_at_google_endpoint(monkeypatch) -> None:
    from cmdcue.models import gemini

    client_class = mock.MagicMock()
    monkeypatch.setattr(gemini, "OpenAI", client_class)

    model = gemini.instance(client_args={"api_key": "g"}, model_id="gemini-2.0-flash", params={"temperature": 0.7})

    client_class.assert_called_once_with(api_key="g", base_url=gemini.GEMINI_OPENAI_BASE_URL)
    assert model.model_id == "gemini-2.0-flash"
    assert model.params == {"temperature": 0.7}


def test_ollama_model_streams_message_content() -> None:
    from cmdcue.models.ollama import OllamaChatModel

    client = mock.MagicMock()
    client.chat.return_value = iter(
        [{"message": {"content": "a"}}, {"message": {"content": ""}}, {"message": {"content": "b"}}]
    )

    model = OllamaChatModel(client, "llama3.1", {"temperature": 0.1})

    assert list(model.stream("hi")) == ["a", "b"]
    assert client.chat.call_args.kwargs["options"] == {"temperature": 0.1}
    assert client.chat.call_args.kwargs["stream"] is True


def test_bedrock_instance_builds_converse_client(monkeypatch) -> None:
    from botocore.config import Config

    from cmdcue.models import bedrock

    boto_client = mock.MagicMock()
    boto_client.converse_stream.return_value = {
        "stream": [
            {"messageStart": {"role": "assistant"}},
            {"contentBlockDelta": {"delta": {"text": "Use "}}},
            {"contentBlockDelta": {"delta": {"text": "@run[ls]"}}},
            {"messageStop": {"stopReason": "end_turn"}},
        ]
    }
    client_factory = mock.MagicMock(return_value=boto_client)
    monkeypatch.setattr(bedrock.boto3, "client", client_factory)

    model = bedrock.instance(
        model_id="m", max_tokens=512, region_name="us-west-2", boto_client_config={"read_timeout": 5}
    )

    assert list(model.stream("hi")) == ["Use ", "@run[ls]"]
    args, kwargs = client_factory.call_args
    assert args == ("bedrock-runtime",)
    assert kwargs["region_name"] == "us-west-2"
    assert isinstance(kwargs["config"], Config)
    request = boto_client.converse_stream.call_args.kwargs
    assert request["modelId"] == "m"
    assert request["inferenceConfig"] == {"maxTokens": 512}
    assert request["messages"] == [{"role": "user", "content": [{"text": "hi"}]}]
