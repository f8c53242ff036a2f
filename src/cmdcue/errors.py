from __future__ import annotations

from typing import Any

ERROR_CATEGORY_TRANSIENT = "transient"
ERROR_CATEGORY_AUTH_ERROR = "auth_error"
ERROR_CATEGORY_NOT_INSTALLED = "not_installed"
ERROR_CATEGORY_SAFETY_BLOCK = "safety_block"
ERROR_CATEGORY_FATAL = "fatal"

_TRANSIENT_MARKERS = (
    "throttlingexception",
    "rate limit",
    "rate_limit_error",
    "resource_exhausted",
    "429",
    "timeout",
    "timed out",
    "temporarily unavailable",
    "try again",
    "service unavailable",
    "503",
    "502",
    "500",
    "connection refused",
    "econnrefused",
    "name or service not known",
)

_AUTH_MARKERS = (
    "invalid api key",
    "api key not valid",
    "api_key_invalid",
    "unauthorized",
    "authentication failed",
    "forbidden",
    "access denied",
    "credential",
    "expired token",
    "no aws credentials",
    "error 400",
    "401",
    "403",
)

_NOT_INSTALLED_MARKERS = (
    "not installed",
    "command not found",
    "no such file or directory",
)

_SAFETY_MARKERS = (
    "finishreasonsafety",
    "blocked for safety",
    "safety settings",
    "content_filter",
)

_HINTS = {
    ERROR_CATEGORY_TRANSIENT: "The backend looks temporarily unavailable; try again in a moment.",
    ERROR_CATEGORY_AUTH_ERROR: "Check your API key or credentials (`cmdcue --set-key <provider>`).",
    ERROR_CATEGORY_NOT_INSTALLED: "The local backend is not installed or not on PATH.",
    ERROR_CATEGORY_SAFETY_BLOCK: "The content generation was blocked for safety reasons. Please try a different prompt.",
}


class CmdcueError(Exception):
    """Base class for errors surfaced to the user by the CLI."""


class ConfigError(CmdcueError):
    """Settings or backend configuration is invalid."""


class BackendUnavailableError(CmdcueError):
    """A backend cannot be used at all (missing binary, model, key or endpoint)."""


class BackendError(CmdcueError):
    """A backend failed while producing the response stream."""


def classify_error_message(message: Any) -> dict[str, Any]:
    text = str(message or "").strip()
    lowered = text.lower()

    if any(marker in lowered for marker in _SAFETY_MARKERS):
        category = ERROR_CATEGORY_SAFETY_BLOCK
    elif any(marker in lowered for marker in _NOT_INSTALLED_MARKERS):
        category = ERROR_CATEGORY_NOT_INSTALLED
    elif any(marker in lowered for marker in _AUTH_MARKERS):
        category = ERROR_CATEGORY_AUTH_ERROR
    elif any(marker in lowered for marker in _TRANSIENT_MARKERS):
        category = ERROR_CATEGORY_TRANSIENT
    else:
        category = ERROR_CATEGORY_FATAL

    result: dict[str, Any] = {"category": category}
    hint = _HINTS.get(category)
    if hint:
        result["hint"] = hint
    return result
