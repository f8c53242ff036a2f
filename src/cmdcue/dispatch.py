from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Iterable
from dataclasses import dataclass

from rich.console import Console
from rich.markup import escape

from cmdcue.event_log import SessionEventLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    command: str
    returncode: int | None
    error: str | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return not self.skipped and self.error is None and self.returncode == 0


def run_command(command: str, *, cwd: str | None = None, env: dict[str, str] | None = None) -> CommandResult:
    """
    Run one directive body through the user's shell with the terminal attached.

    stdin/stdout/stderr are inherited, so prompts (sudo password, pagers, editors) work.
    """
    if not command or not command.strip():
        return CommandResult(command=command, returncode=None, error="empty command", skipped=True)

    run_env = os.environ.copy()
    if env:
        run_env.update(env)

    try:
        completed = subprocess.run(command, shell=True, cwd=cwd, env=run_env, check=False)
    except OSError as exc:
        return CommandResult(command=command, returncode=None, error=f"failed to launch: {exc}")

    if completed.returncode != 0:
        return CommandResult(command=command, returncode=completed.returncode, error=f"exit code {completed.returncode}")
    return CommandResult(command=command, returncode=0)


def run_commands(
    commands: Iterable[str],
    *,
    console: Console | None = None,
    event_log: SessionEventLog | None = None,
) -> list[CommandResult]:
    """
    Run the selected commands one after another, in order.

    Best effort: a command that fails to launch or exits non-zero is reported and the
    remaining commands still run.
    """
    err_console = console or Console(stderr=True)
    results: list[CommandResult] = []
    for command in commands:
        result = run_command(command)
        results.append(result)

        if result.skipped:
            err_console.print("[yellow]Skipping empty command.[/yellow]")
            logger.warning("skipped empty command")
        elif not result.ok:
            err_console.print(f"[red]Error running command[/red] {escape(repr(command))}: {escape(str(result.error))}")
            logger.warning("command %r failed: %s", command, result.error)
        else:
            logger.info("command %r succeeded", command)

        if event_log is not None:
            event_log.log(
                "command_result",
                {
                    "command": command,
                    "returncode": result.returncode,
                    "error": result.error,
                    "skipped": result.skipped,
                },
            )
    return results
