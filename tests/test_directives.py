from __future__ import annotations

import pytest

from cmdcue.directives import (
    DEFAULT_SYNTAX,
    DirectiveExtractor,
    DirectiveSyntax,
    contains_elevated,
    extract_directives,
    highlight_directives,
    is_elevated,
)


def test_extracts_bodies_in_order() -> None:
    text = "First @run[echo hi] then @run[ls -l] and done."
    assert extract_directives(text) == ["echo hi", "ls -l"]


def test_unclosed_directive_is_not_returned() -> None:
    assert extract_directives("try @run[echo hi") == []
    assert extract_directives("ok @run[a] then @run[b") == ["a"]


def test_body_stops_at_first_closing_bracket() -> None:
    assert extract_directives("@run[test [x] y]") == ["test [x"]


def test_body_does_not_span_newlines() -> None:
    assert extract_directives("@run[echo\nhi] @run[pwd]") == ["pwd"]


def test_empty_body_is_a_directive() -> None:
    assert extract_directives("@run[]") == [""]


def test_custom_token_is_escaped() -> None:
    syntax = DirectiveSyntax(token="$(x)")
    assert extract_directives("$(x)[date] @run[ls]", syntax) == ["date"]


@pytest.mark.parametrize(
    "chunks",
    [
        ["run ", "@run[echo hi] and ", "@run[ls -l]"],
        ["@r", "un[ec", "ho hi]", " @run", "[ls -l", "]"],
        ["@run[echo hi] and @run[ls -l]"],
        list("@run[echo hi] and @run[ls -l]"),
    ],
)
def test_incremental_extraction_matches_batch(chunks: list[str]) -> None:
    extractor = DirectiveExtractor()
    text = ""
    for chunk in chunks:
        text += chunk
        assert extractor.feed(text) == extract_directives(text)
    assert extractor.directives == ["echo hi", "ls -l"]


def test_incremental_extraction_rejects_shrinking_text() -> None:
    extractor = DirectiveExtractor()
    extractor.feed("@run[ls] more text")
    with pytest.raises(ValueError):
        extractor.feed("@run")


def test_highlight_strips_markers_and_styles_body() -> None:
    highlighted = highlight_directives("Use @run[ls -la] to list.")

    assert highlighted.plain == "Use ls -la to list."
    styled = [(span.start, span.end, str(span.style)) for span in highlighted.spans]
    assert styled == [(4, 10, "bold blue")]


def test_highlight_leaves_partial_marker_alone() -> None:
    assert highlight_directives("Use @run[ls").plain == "Use @run[ls"


def test_elevation_is_exact_case_sensitive_prefix() -> None:
    assert is_elevated("sudo rm -rf /tmp/x")
    assert not is_elevated("ls")
    assert not is_elevated("SUDO ls")
    assert not is_elevated(" echo sudo")


def test_contains_elevated_uses_configured_prefixes() -> None:
    assert contains_elevated(["ls", "sudo apt update"], DEFAULT_SYNTAX.elevation_prefixes)
    assert not contains_elevated(["ls", "pwd"])
    assert contains_elevated(["doas reboot"], ("sudo", "doas"))
