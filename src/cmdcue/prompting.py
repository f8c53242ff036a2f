"""Assemble the text sent to the backend."""

from __future__ import annotations

from cmdcue.directives import DEFAULT_SYNTAX, DirectiveSyntax
from cmdcue.host_info import HostInfo

EMPTY_PROMPT = "The user did not provide a prompt."
PIPED_INPUT_HEADER = "User also attached via pipe the following input:"

_PRE_PROMPT = """\
You are a command-line assistant running in the user's terminal. Answer concisely in plain text.
When a shell command would help, write it inline as {token}[command], for example {token}[ls -la].
Each {token}[...] must hold exactly one complete command on a single line with no surrounding backticks, \
and must not contain a closing square bracket. The user will pick which of these commands to run, \
in the order they appear."""


def pre_prompt(syntax: DirectiveSyntax = DEFAULT_SYNTAX) -> str:
    return _PRE_PROMPT.format(token=syntax.token)


def describe_host(host: HostInfo) -> str:
    sentence = f"The user, {host.username}, is currently running {host.os_name} on {host.hostname} in {host.cwd}."
    if host.shell:
        sentence += f" Their shell is {host.shell}."
    if host.package_managers:
        sentence += f" Available package managers: {', '.join(host.package_managers)}."
    return sentence


def user_text(prompt: str, *, piped_input: str = "", previous: str = "") -> str:
    """
    The user's turn as it is cached for `-c`: previous conversation, then the prompt, then piped input.
    """
    text = f"{previous}\n" if previous else ""
    text += prompt.strip()
    if not text.strip():
        text = EMPTY_PROMPT
    if piped_input:
        text += f"\n\n{PIPED_INPUT_HEADER}\n{piped_input}"
    return text


def build_prompt(
    prompt: str,
    *,
    host: HostInfo | None = None,
    piped_input: str = "",
    previous: str = "",
    syntax: DirectiveSyntax = DEFAULT_SYNTAX,
) -> str:
    header = pre_prompt(syntax)
    if host is not None:
        header += "\n" + describe_host(host)
    return f"{header}\n User: {user_text(prompt, piped_input=piped_input, previous=previous)}"
