"""Tests for terminal output parsing."""

from __future__ import annotations

import pytest

from kswitch.domain.ansi_parser import AnsiStream, TextStyle, apply_sgr, parse_ansi


def _plain(raw: bytes | str) -> str:
    return parse_ansi(raw).plain


def test_empty_input() -> None:
    assert _plain("") == ""
    assert _plain(b"") == ""
    assert not parse_ansi("")


def test_plain_text_is_preserved() -> None:
    assert _plain("Hello, World!") == "Hello, World!"
    assert _plain("Line 1\nLine 2\nLine 3") == "Line 1\nLine 2\nLine 3"
    assert _plain("col1\tcol2\tcol3") == "col1\tcol2\tcol3"


def test_invalid_utf8_yields_empty_result() -> None:
    assert parse_ansi(b"ok\xff\xfe") == parse_ansi("")


def test_bytes_are_decoded() -> None:
    assert _plain("héllo ✓".encode()) == "héllo ✓"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("a\rb", "b"),
        ("a\nb\rc", "a\nc"),
        ("first\rsecond\rthird", "third"),
        ("text\r", "text"),
        ("line\r\nnext", "line\nnext"),
        ("progress 10%\rprogress 100%\ndone", "progress 100%\ndone"),
    ],
)
def test_carriage_return_keeps_last_write(raw: str, expected: str) -> None:
    assert _plain(raw) == expected


def test_carriage_return_collapse_is_idempotent() -> None:
    once = _plain("a\rb\nc\rd\re")
    assert _plain(once) == once


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("abc\bd", "abd"),
        ("\babc", "abc"),
        ("abcd\b\bxy", "abxy"),
        ("a\n\bb", "a\nb"),
    ],
)
def test_backspace(raw: str, expected: str) -> None:
    assert _plain(raw) == expected


def test_control_characters_are_stripped() -> None:
    assert _plain("Hello\x07World") == "HelloWorld"
    assert _plain("hello\x03world") == "helloworld"


def test_eof_marker_at_line_start_is_stripped() -> None:
    assert _plain("^Dhello") == "hello"
    assert _plain("line1\n^Dline2") == "line1\nline2"
    assert _plain("keep ^D inline") == "keep ^D inline"


@pytest.mark.parametrize(
    "raw",
    [
        "\x1b[0mtext",
        "\x1b[1mtext\x1b[0m",
        "\x1b[31mtext\x1b[0m",
        "\x1b[91mtext\x1b[0m",
        "\x1b[38;5;196mtext\x1b[0m",
        "\x1b[44mtext\x1b[0m",
        "\x1b[1;31mtext\x1b[0m",
        "\x1b[38;2;10;20;30mtext\x1b[m",
    ],
)
def test_sgr_sequences_never_reach_text(raw: str) -> None:
    assert _plain(raw) == "text"


def test_non_sgr_sequences_are_dropped() -> None:
    assert _plain("line1\x1b[1Aline2") == "line1line2"
    assert _plain("\x1b[2Kclear\x1b[2J") == "clear"
    assert _plain("\x1b[?25lhidden cursor\x1b[?25h") == "hidden cursor"
    assert _plain("\x1b[>0cdevice") == "device"


def test_osc_and_single_character_escapes_are_dropped() -> None:
    assert _plain("\x1b]0;Window Title\x1b\\actual text") == "actual text"
    assert _plain("\x1bMtext") == "text"
    assert _plain("text\x1b") == "text"


def test_styles_are_attached_to_segments() -> None:
    result = parse_ansi("plain \x1b[1;31mred\x1b[0m done")

    assert [segment.text for segment in result.segments] == ["plain ", "red", " done"]
    assert result.segments[0].style == TextStyle()
    assert result.segments[1].style == TextStyle(foreground=1, bold=True)
    assert result.segments[2].style == TextStyle()


def test_style_survives_carriage_return_collapse() -> None:
    result = parse_ansi("\x1b[32mspinner\r\x1b[33mdone\x1b[0m")

    assert result.plain == "done"
    assert result.segments[0].style.foreground == 3


def test_apply_sgr_colors() -> None:
    style = apply_sgr(TextStyle(), "38;5;196;48;2;1;2;3")
    assert style.foreground == 196
    assert style.background == (1, 2, 3)

    assert apply_sgr(TextStyle(), "91;104") == TextStyle(foreground=9, background=12)
    assert apply_sgr(TextStyle(foreground=1), "39") == TextStyle()
    assert apply_sgr(TextStyle(background=1), "49") == TextStyle()


def test_apply_sgr_weight_and_reset() -> None:
    style = apply_sgr(TextStyle(), "1;2")
    assert style.bold and style.dim
    assert apply_sgr(style, "22") == TextStyle()
    assert apply_sgr(TextStyle(foreground=2, bold=True), "") == TextStyle()
    assert apply_sgr(TextStyle(foreground=2, bold=True), "0") == TextStyle()


def _streamed(pieces: list[str], **kwargs: int) -> AnsiStream:
    stream = AnsiStream(**kwargs)
    for piece in pieces:
        stream.feed(piece)
    return stream


def test_stream_matches_whole_parse() -> None:
    raw = "\x1b[32mok\x1b[0m\nprogress 10%\rprogress 100%\n^Ddone\b\bNE\x1b]0;t\x07\n"
    pieces = [raw[index : index + 3] for index in range(0, len(raw), 3)]

    assert _streamed(pieces).snapshot().plain == parse_ansi(raw).plain


def test_stream_partial_line_is_reparsed() -> None:
    stream = _streamed(["10%"])
    assert stream.snapshot().plain == "10%"

    stream.feed("\r100%")
    assert stream.snapshot().plain == "100%"


def test_stream_carries_style_across_lines() -> None:
    stream = _streamed(["\x1b[31mred\n", "still red\n", "\x1b[0mplain"])

    styles = [segment.style for segment in stream.snapshot().segments]
    assert styles[0] == TextStyle(foreground=1)
    assert styles[1] == TextStyle(foreground=1)
    assert styles[-1] == TextStyle()


def test_stream_commits_long_partial_lines() -> None:
    stream = _streamed(["x" * 78, "\x1b[3"], max_pending=80)

    stream.feed("1mred")

    result = stream.snapshot()
    assert result.plain == "x" * 78 + "red"
    assert result.segments[-1].style == TextStyle(foreground=1)


def test_stream_drops_input_beyond_limit() -> None:
    stream = _streamed(["abc\n", "defgh"], limit=6)

    assert stream.snapshot().plain == "abc\nde"
    stream.feed("more")
    assert stream.snapshot().plain == "abc\nde"


def test_tail_keeps_last_characters_with_styles() -> None:
    text = parse_ansi("plain \x1b[31mred\x1b[0m")

    tail = text.tail(5)

    assert tail.plain == "n red"
    assert tail.segments[-1].style == TextStyle(foreground=1)
    assert text.tail(100) == text
    assert not text.tail(0)
