"""Recognise `@run[...]` command directives embedded in generated text."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from rich.text import Text

DEFAULT_TOKEN = "@run"
DEFAULT_ELEVATION_PREFIXES: tuple[str, ...] = ("sudo",)
DIRECTIVE_STYLE = "bold blue"


@dataclass(frozen=True)
class DirectiveSyntax:
    """Marker token plus the elevation keywords that flag a directive body for review."""

    token: str = DEFAULT_TOKEN
    elevation_prefixes: tuple[str, ...] = DEFAULT_ELEVATION_PREFIXES
    pattern: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # Body runs to the first closing bracket and never spans a newline.
        object.__setattr__(self, "pattern", re.compile(re.escape(self.token) + r"\[(.*?)\]"))


DEFAULT_SYNTAX = DirectiveSyntax()


def extract_directives(text: str, syntax: DirectiveSyntax = DEFAULT_SYNTAX) -> list[str]:
    """Return directive bodies in order of appearance; unclosed directives are not returned."""
    return [match.group(1) for match in syntax.pattern.finditer(text)]


class DirectiveExtractor:
    """
    Incremental form of `extract_directives` for append-only text.

    Everything before the end of the last closed directive is settled, so each
    `feed` only rescans from there. The result always equals the batch result
    for the full text fed so far.
    """

    def __init__(self, syntax: DirectiveSyntax = DEFAULT_SYNTAX) -> None:
        self.syntax = syntax
        self._directives: list[str] = []
        self._resume_at = 0

    @property
    def directives(self) -> list[str]:
        return list(self._directives)

    def feed(self, text: str) -> list[str]:
        """Scan the full accumulated `text` (a superset of what was fed before)."""
        if len(text) < self._resume_at:
            raise ValueError("DirectiveExtractor only accepts append-only text")
        for match in self.syntax.pattern.finditer(text, self._resume_at):
            self._directives.append(match.group(1))
            self._resume_at = match.end()
        return self.directives


def highlight_directives(text: str, syntax: DirectiveSyntax = DEFAULT_SYNTAX) -> Text:
    """Strip marker syntax and style each directive body so it stands out in the transcript."""
    highlighted = Text()
    cursor = 0
    for match in syntax.pattern.finditer(text):
        highlighted.append(text[cursor : match.start()])
        highlighted.append(match.group(1), style=DIRECTIVE_STYLE)
        cursor = match.end()
    highlighted.append(text[cursor:])
    return highlighted


def is_elevated(body: str, prefixes: Iterable[str] = DEFAULT_ELEVATION_PREFIXES) -> bool:
    return any(prefix and body.startswith(prefix) for prefix in prefixes)


def contains_elevated(bodies: Iterable[str], prefixes: Iterable[str] = DEFAULT_ELEVATION_PREFIXES) -> bool:
    resolved = tuple(prefixes)
    return any(is_elevated(body, resolved) for body in bodies)
