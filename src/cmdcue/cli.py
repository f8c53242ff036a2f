"""`cmdcue` entry point: ask a model, review the suggested commands, run the ones you pick."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace
from typing import IO

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from cmdcue.backends import API_KEY_ENV, Producer, create_backend, requires_api_key, resolve_provider
from cmdcue.bridge import StreamBridge
from cmdcue.conversation_cache import read_conversation, write_conversation
from cmdcue.credentials import read_credential, save_credential
from cmdcue.directives import DirectiveSyntax
from cmdcue.dispatch import run_commands
from cmdcue.errors import BackendUnavailableError, CmdcueError, classify_error_message
from cmdcue.event_log import SessionEventLog, configure_logging
from cmdcue.host_info import collect_host_info
from cmdcue.prompting import build_prompt, user_text
from cmdcue.reveal import RevealScheduler
from cmdcue.session import Session
from cmdcue.settings import KNOWN_PROVIDERS, CmdcueSettings, load_settings, save_settings, with_default_provider
from cmdcue.tui.app import CommandSelectionApp, run_selection

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

_TTY_PATH = "/dev/tty"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cmdcue",
        description="Ask a model for help in the terminal and pick which of its suggested commands to run.",
    )
    parser.add_argument("prompt", nargs="*", help="What you want to do")
    parser.add_argument(
        "-c",
        "--continue",
        dest="continue_conversation",
        action="store_true",
        help="Continue the previous conversation",
    )
    parser.add_argument("--provider", choices=KNOWN_PROVIDERS, default=None, help="Backend to use for this run")
    parser.add_argument("--model", default=None, help="Model id for this run (overrides settings)")
    parser.add_argument("--no-reveal", action="store_true", help="Show text as soon as it arrives")
    parser.add_argument(
        "--set-default",
        metavar="PROVIDER",
        choices=KNOWN_PROVIDERS,
        default=None,
        help="Persist the default backend in settings.json and exit",
    )
    parser.add_argument(
        "--set-key",
        metavar="PROVIDER",
        choices=sorted(API_KEY_ENV),
        default=None,
        help="Store an API key for a provider in the keyring and exit",
    )
    return parser


def read_piped_input(stream: IO[str] | None = None) -> str:
    stream = stream if stream is not None else sys.stdin
    if stream is None or stream.isatty():
        return ""
    return stream.read().strip()


def reattach_tty() -> bool:
    """Point fd 0 back at the controlling terminal after stdin was consumed from a pipe."""
    try:
        fd = os.open(_TTY_PATH, os.O_RDONLY)
    except OSError as exc:
        logger.warning("could not open %s: %s", _TTY_PATH, exc)
        return False
    try:
        os.dup2(fd, 0)
    finally:
        os.close(fd)
    sys.stdin = open(0, encoding="utf-8", closefd=False)  # noqa: SIM115
    return True


def resolve_api_key(provider: str, console: Console, *, interactive: bool = True) -> str | None:
    """Env var first, then the keyring, then ask once and remember the answer."""
    env_name = API_KEY_ENV.get(provider)
    if env_name:
        from_env = (os.getenv(env_name) or "").strip()
        if from_env:
            return from_env

    stored = read_credential(provider)
    if stored:
        return stored

    if not interactive:
        return None
    console.print(f"No API key found for [bold]{provider}[/bold] (set {env_name} or enter one now).")
    entered = Prompt.ask("API key", password=True, console=console).strip()
    if not entered:
        return None
    path = save_credential(provider, entered)
    console.print(f"[green]Saved key to {escape(str(path))}[/green]")
    return entered


def _session_for(settings: CmdcueSettings) -> Session:
    syntax = DirectiveSyntax(
        token=settings.directives.token,
        elevation_prefixes=settings.directives.elevation_prefixes,
    )
    return Session(
        syntax=syntax,
        scheduler=RevealScheduler.from_config(settings.reveal),
        max_width=settings.ui.max_width,
    )


def _report_backend_failure(console: Console, error: BaseException, event_log: SessionEventLog) -> None:
    message = str(error) or error.__class__.__name__
    classification = classify_error_message(message)
    console.print(f"[red]Error:[/red] {escape(message)}")
    if classification.get("hint"):
        console.print(f"[yellow]{escape(classification['hint'])}[/yellow]")
    event_log.log("backend_error", {"error": message, **classification})


def run(args: argparse.Namespace, *, console: Console, event_log: SessionEventLog) -> int:
    settings = load_settings()

    if args.set_key:
        entered = Prompt.ask(f"API key for {args.set_key}", password=True, console=console).strip()
        if not entered:
            console.print("[red]No key entered.[/red]")
            return EXIT_FAILURE
        path = save_credential(args.set_key, entered)
        console.print(f"Saved {args.set_key} key to {escape(str(path))}")
        return EXIT_OK

    if args.set_default:
        path = save_settings(with_default_provider(settings, args.set_default))
        console.print(f"Default provider set to {args.set_default} in {escape(str(path))}")
        return EXIT_OK

    if args.no_reveal:
        settings = replace(settings, reveal=replace(settings.reveal, enabled=False))

    provider, notice = resolve_provider(
        cli_provider=args.provider,
        env_provider=os.getenv("CMDCUE_PROVIDER"),
        settings_provider=settings.models.provider,
    )
    if notice:
        console.print(f"[yellow]{escape(notice)}[/yellow]")

    piped_input = read_piped_input()
    if piped_input and not reattach_tty():
        console.print("[red]Error:[/red] piped input was read but no terminal is available for the picker.")
        return EXIT_FAILURE

    api_key = None
    if requires_api_key(provider):
        api_key = resolve_api_key(provider, console, interactive=sys.stdin.isatty())
        if not api_key:
            console.print(f"[red]Error:[/red] an API key is required for {provider}.")
            return EXIT_FAILURE

    backend = create_backend(provider, settings, model_id=args.model, api_key=api_key)
    try:
        backend.prepare()
    except BackendUnavailableError as exc:
        _report_backend_failure(console, exc, event_log)
        return EXIT_FAILURE

    previous = read_conversation() if args.continue_conversation else ""
    prompt_text = " ".join(args.prompt)
    user_turn = user_text(prompt_text, piped_input=piped_input, previous=previous)
    session = _session_for(settings)
    full_prompt = build_prompt(
        prompt_text,
        host=collect_host_info(),
        piped_input=piped_input,
        previous=previous,
        syntax=session.syntax,
    )
    event_log.log("prompt", {"provider": provider, "model": args.model, "prompt": user_turn})

    bridge = StreamBridge()

    def _start_producer(app: CommandSelectionApp) -> None:
        Producer(backend, full_prompt, bridge, on_error=app.abort).start()

    outcome = run_selection(bridge, session, local=backend.local, on_start=_start_producer)

    if outcome.error is not None:
        _report_backend_failure(console, outcome.error, event_log)
        return EXIT_FAILURE

    if session.generation_done:
        write_conversation(user_turn, session.accumulated_text)
        event_log.log("generation_done", {"response": session.accumulated_text})

    event_log.log("selection", {"state": session.state.value, "commands": outcome.commands})
    if outcome.commands:
        run_commands(outcome.commands, console=console, event_log=event_log)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    console = Console(stderr=True)
    event_log = SessionEventLog()
    try:
        return run(args, console=console, event_log=event_log)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        return EXIT_INTERRUPTED
    except CmdcueError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        logger.error("%s", exc)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
