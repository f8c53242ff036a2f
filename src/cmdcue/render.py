"""Turn a `Session` into the single frame the TUI displays."""

from __future__ import annotations

import re

from rich.text import Text

from cmdcue.directives import highlight_directives
from cmdcue.session import Session

RULE = "—" * 21
SELECTED_STYLE = "green"
WARNING_STYLE = "red"
ELEVATED_WARNING = (
    "Warning: This response contains {keywords} commands. Please thoroughly review the commands before running them."
)
USAGE_HINT = "Please select the commands to run. q to quit. up/down to select, enter to toggle."

_WORD_RE = re.compile(r"\S+")


def _wrap_paragraph(paragraph: Text, width: int) -> Text:
    words = [paragraph[m.start() : m.end()] for m in _WORD_RE.finditer(paragraph.plain)]
    if not words:
        return Text()

    lines: list[list[Text]] = [[words[0]]]
    space_left = width - len(words[0])
    for word in words[1:]:
        if len(word) + 1 > space_left:
            lines.append([word])
            space_left = width - len(word)
        else:
            lines[-1].append(word)
            space_left -= 1 + len(word)
    return Text("\n").join(Text(" ").join(line) for line in lines)


def wrap_text(text: Text | str, width: int) -> Text:
    """
    Greedy word wrap, paragraph by paragraph, keeping styles.

    Runs of whitespace inside a paragraph collapse to one space; a word longer than
    `width` gets a line of its own rather than being split.
    """
    source = Text(text) if isinstance(text, str) else text
    width = max(1, width)
    plain = source.plain
    paragraphs: list[Text] = []
    start = 0
    for line in plain.split("\n"):
        end = start + len(line)
        paragraphs.append(_wrap_paragraph(source[start:end], width) if line.strip() else Text())
        start = end + 1
    return Text("\n").join(paragraphs)


def render_frame(session: Session, *, spinner_frame: str = "", local: bool = False) -> Text:
    """Build the full frame: revealed response, then the command picker when directives exist."""
    width = session.render_width
    if not session.accumulated_text:
        status = "Initializing..." if local else "Connecting..."
        return Text(f"{spinner_frame} {status}" if spinner_frame else status)

    frame = Text()
    visible = session.visible_text.strip()
    frame.append_text(wrap_text(highlight_directives(visible, session.syntax), width))

    if not session.directives:
        return frame

    frame.append(f"\n{RULE}\n")
    frame.append("Command List:\n\n")
    for index, body in enumerate(session.directives):
        selected = session.selection_flags[index]
        marker = "> " if session.cursor == index else "  "
        check = "[x]" if selected else "[ ]"
        frame.append(marker)
        frame.append(f"{check} {body}", style=SELECTED_STYLE if selected else None)
        frame.append("\n")

    if session.cursor == len(session.directives):
        frame.append(">   ")
        frame.append("[RUN]", style=SELECTED_STYLE)
        frame.append("\n")
    else:
        frame.append("    [RUN]\n")

    if session.contains_elevated_command:
        frame.append("\n")
        keywords = "/".join(session.syntax.elevation_prefixes)
        warning = ELEVATED_WARNING.format(keywords=keywords)
        frame.append_text(wrap_text(Text(warning, style=WARNING_STYLE), width))
        frame.append("\n")

    frame.append("\n")
    frame.append_text(wrap_text(USAGE_HINT, width))
    return frame
