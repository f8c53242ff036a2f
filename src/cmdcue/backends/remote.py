"""Generic REST backend: POST a JSON template with the prompt filled in, pull one field out of the reply."""

from __future__ import annotations

import copy
import json
import logging
import urllib.error
import urllib.request
from typing import Any

from cmdcue.backends.base import Emit
from cmdcue.errors import BackendError, BackendUnavailableError
from cmdcue.settings import RemoteConfig

logger = logging.getLogger(__name__)

PROMPT_PLACEHOLDER = "<PROMPT>"
DEFAULT_TIMEOUT_S = 120.0


def replace_prompt(data: Any, prompt: str) -> Any:
    """Copy of `data` with every string exactly equal to "<PROMPT>" replaced by `prompt`."""
    if isinstance(data, dict):
        return {key: replace_prompt(value, prompt) for key, value in data.items()}
    if isinstance(data, list):
        return [replace_prompt(item, prompt) for item in data]
    if data == PROMPT_PLACEHOLDER:
        return prompt
    return copy.deepcopy(data)


def find_field(data: Any, field_name: str) -> str | None:
    """Depth-first search for the first string value stored under `field_name`."""
    if isinstance(data, dict):
        value = data.get(field_name)
        if isinstance(value, str):
            return value
        for child in data.values():
            found = find_field(child, field_name)
            if found is not None:
                return found
    elif isinstance(data, list):
        for item in data:
            found = find_field(item, field_name)
            if found is not None:
                return found
    return None


class RemoteBackend:
    name = "remote"
    local = False

    def __init__(self, config: RemoteConfig, *, timeout_s: float = DEFAULT_TIMEOUT_S) -> None:
        self.config = config
        self.timeout_s = timeout_s

    def prepare(self) -> None:
        if not self.config.url:
            raise BackendUnavailableError(
                "No remote endpoint configured; set `remote.url` (and headers/data_template) in settings.json"
            )
        if not self.config.field_to_extract:
            raise BackendUnavailableError("No `remote.field_to_extract` configured in settings.json")

    def generate(self, prompt: str, emit: Emit) -> None:
        payload = json.dumps(replace_prompt(self.config.data_template, prompt)).encode("utf-8")
        headers = {"Content-Type": "application/json", **self.config.headers}
        request = urllib.request.Request(self.config.url, data=payload, headers=headers, method="POST")

        try:
            with urllib.request.urlopen(request, timeout=self.timeout_s) as response:
                body = response.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")[:500]
            raise BackendError(f"HTTP {exc.code} {exc.reason}: {detail}") from exc
        except urllib.error.URLError as exc:
            raise BackendError(f"Request failed: {exc.reason}") from exc
        except OSError as exc:
            raise BackendError(f"Request failed: {exc}") from exc

        try:
            parsed = json.loads(body)
        except ValueError as exc:
            raise BackendError(f"Remote response is not JSON: {exc}") from exc

        text = find_field(parsed, self.config.field_to_extract)
        if text is None:
            raise BackendError(f"Field {self.config.field_to_extract!r} not found in remote response")
        logger.debug("remote backend returned %d chars", len(text))
        emit(text)
