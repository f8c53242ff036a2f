"""Backends that drive a local text-generation CLI and stream its stdout."""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile

from cmdcue.backends.base import Emit
from cmdcue.errors import BackendError, BackendUnavailableError

logger = logging.getLogger(__name__)

_STDERR_TAIL_CHARS = 2000


def stream_process(argv: list[str], emit: Emit) -> None:
    """Run `argv`, emitting each stdout line as it arrives; raise `BackendError` on non-zero exit."""
    logger.debug("spawning %s", argv[0])
    with tempfile.TemporaryFile(mode="w+", encoding="utf-8", errors="replace") as stderr_file:
        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=stderr_file,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            raise BackendError(f"failed to start {argv[0]}: {exc}") from exc

        assert proc.stdout is not None
        try:
            for line in proc.stdout:
                emit(line)
        finally:
            proc.stdout.close()
            return_code = proc.wait()

        if return_code != 0:
            stderr_file.seek(0)
            detail = stderr_file.read().strip()[-_STDERR_TAIL_CHARS:]
            raise BackendError(f"{argv[0]} exited with code {return_code}" + (f": {detail}" if detail else ""))


class OllamaCliBackend:
    """`ollama run <model> <prompt>` for users without the Ollama HTTP API reachable."""

    name = "ollama-cli"
    local = True

    def __init__(self, model_id: str = "llama3") -> None:
        self.model_id = model_id

    def prepare(self) -> None:
        if shutil.which("ollama") is None:
            raise BackendUnavailableError("ollama is not installed on this system; install it from https://ollama.com")
        try:
            listing = subprocess.run(["ollama", "list"], capture_output=True, text=True, check=False)
        except OSError as exc:
            raise BackendUnavailableError(f"could not run `ollama list`: {exc}") from exc
        if listing.returncode != 0:
            raise BackendUnavailableError(f"`ollama list` failed: {listing.stderr.strip() or listing.returncode}")
        if self.model_id not in listing.stdout:
            raise BackendUnavailableError(
                f"Model {self.model_id!r} is not installed in ollama; install it first with `ollama pull {self.model_id}`"
            )

    def generate(self, prompt: str, emit: Emit) -> None:
        stream_process(["ollama", "run", self.model_id, prompt], emit)


class TgptBackend:
    """Free-provider text generation through the `tgpt` CLI."""

    name = "tgpt"
    local = False

    def __init__(self, extra_args: list[str] | None = None) -> None:
        self.extra_args = list(extra_args or [])

    def prepare(self) -> None:
        if shutil.which("tgpt") is None:
            raise BackendUnavailableError("tgpt is not installed on this system; see https://github.com/aandrew-me/tgpt")

    def generate(self, prompt: str, emit: Emit) -> None:
        stream_process(["tgpt", *self.extra_args, prompt], emit)
