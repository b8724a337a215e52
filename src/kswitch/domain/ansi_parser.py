"""Turn raw terminal output into styled text segments."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

Color = int | tuple[int, int, int]

_CSI_RE = re.compile(r"\x1b\[[?>]?([0-9;]*)([A-Za-z])")
# C0 controls other than BS, TAB, LF, CR and ESC.
_CONTROL_RE = re.compile(r"[\x00-\x07\x0b\x0c\x0e-\x1a\x1c-\x1f]")
_LINE_CONTROL_RE = re.compile(r"([\n\r\b\x1b])")


@dataclass(frozen=True)
class TextStyle:
    """Style applied to a run of text.

    Colors are palette indexes (0-255) or ``(r, g, b)`` tuples.
    """

    foreground: Color | None = None
    background: Color | None = None
    bold: bool = False
    dim: bool = False


PLAIN = TextStyle()


@dataclass(frozen=True)
class StyledSegment:
    """A run of text sharing one style."""

    text: str
    style: TextStyle = PLAIN


@dataclass(frozen=True)
class StyledText:
    """Ordered styled segments with all terminal control resolved."""

    segments: tuple[StyledSegment, ...] = ()

    @property
    def plain(self) -> str:
        """Return text without styling."""
        return "".join(segment.text for segment in self.segments)

    def tail(self, max_chars: int) -> StyledText:
        """Return the last ``max_chars`` characters, styles kept."""
        kept: list[StyledSegment] = []
        remaining = max_chars
        for segment in reversed(self.segments):
            if remaining <= 0:
                break
            if len(segment.text) > remaining:
                segment = StyledSegment(segment.text[-remaining:], segment.style)
            kept.append(segment)
            remaining -= len(segment.text)
        return StyledText(tuple(reversed(kept)))

    def __str__(self) -> str:
        return self.plain

    def __bool__(self) -> bool:
        return bool(self.segments)


def parse_ansi(raw: bytes | str) -> StyledText:
    """Parse terminal output into styled text.

    Bytes that are not valid UTF-8 produce an empty result. Carriage
    returns keep only the last non-empty write of each line, backspace
    deletes the previous character of the current write and every escape
    sequence other than SGR is dropped.
    """
    if isinstance(raw, bytes):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            return StyledText()
    else:
        text = raw

    segments, _ = _parse_text(text, PLAIN, line_start=True)
    return StyledText(segments)


class AnsiStream:
    """Styled text built from terminal output that arrives in pieces.

    Completed lines are parsed once and kept; only the trailing partial
    line is parsed again by ``snapshot``. A partial line longer than
    ``max_pending`` characters is committed as it stands. Input beyond
    ``limit`` characters is dropped.
    """

    def __init__(self, *, limit: int | None = None, max_pending: int = 64 * 1024) -> None:
        self._limit = limit
        self._max_pending = max_pending
        self._received = 0
        self._segments: list[StyledSegment] = []
        self._style = PLAIN
        self._line_start = True
        self._pending = ""

    def feed(self, text: str) -> None:
        """Append decoded output."""
        if self._limit is not None:
            room = self._limit - self._received
            if room <= 0:
                return
            text = text[:room]
        self._received += len(text)
        self._pending += text

        cut = self._pending.rfind("\n") + 1
        if not cut and len(self._pending) > self._max_pending:
            cut = _safe_cut(self._pending)
        if cut:
            self._commit(self._pending[:cut])
            self._pending = self._pending[cut:]

    def snapshot(self) -> StyledText:
        """Return everything received so far as styled text."""
        if not self._pending:
            return StyledText(tuple(self._segments))
        tail, _ = _parse_text(self._pending, self._style, line_start=self._line_start)
        return StyledText((*self._segments, *tail))

    def _commit(self, text: str) -> None:
        segments, self._style = _parse_text(
            text, self._style, line_start=self._line_start
        )
        self._line_start = text.endswith("\n")
        self._segments.extend(segments)


def _safe_cut(text: str) -> int:
    """Return a split point that does not break a trailing escape sequence."""
    escape = text.rfind("\x1b")
    if escape > 0 and len(text) - escape <= 64:
        return escape
    return len(text)


def _parse_text(
    text: str, style: TextStyle, *, line_start: bool
) -> tuple[tuple[StyledSegment, ...], TextStyle]:
    text = _strip_controls(text)
    text = _strip_eof_markers(text, line_start)
    text = _strip_non_csi_escapes(text)
    return _render(text, style)


def _strip_controls(text: str) -> str:
    return _CONTROL_RE.sub("", text)


def _strip_eof_markers(text: str, line_start: bool = True) -> str:
    # Literal "^D" echoed by the terminal at the start of a line.
    if line_start and text.startswith("^D"):
        text = text[2:]
    return text.replace("\n^D", "\n")


def _strip_non_csi_escapes(text: str) -> str:
    out: list[str] = []
    index = 0
    length = len(text)
    while index < length:
        escape = text.find("\x1b", index)
        if escape < 0:
            out.append(text[index:])
            break
        out.append(text[index:escape])
        if escape + 1 >= length:
            break
        marker = text[escape + 1]
        if marker == "[":
            out.append("\x1b[")
            index = escape + 2
        elif marker == "]":
            index = _skip_osc(text, escape + 2)
        else:
            index = escape + 2
    return "".join(out)


def _skip_osc(text: str, index: int) -> int:
    """Return the index just past an OSC terminator (BEL or ESC backslash)."""
    length = len(text)
    while index < length:
        char = text[index]
        if char == "\x07":
            return index + 1
        if char == "\x1b":
            if index + 1 < length and text[index + 1] == "\\":
                return index + 2
            index += 2
            continue
        index += 1
    return length


class _LineBuffer:
    """Styled runs of the line being built, resolving CR and backspace."""

    def __init__(self) -> None:
        self.lines: list[StyledSegment] = []
        self.current: list[StyledSegment] = []
        self.last_written: list[StyledSegment] = []

    def write(self, text: str, style: TextStyle) -> None:
        self.current.append(StyledSegment(text, style))

    def backspace(self) -> None:
        if self.current:
            last = self.current.pop()
            if len(last.text) > 1:
                self.current.append(StyledSegment(last.text[:-1], last.style))

    def carriage_return(self) -> None:
        if self.current:
            self.last_written = self.current
        self.current = []

    def newline(self, style: TextStyle) -> None:
        self._flush_line()
        self.lines.append(StyledSegment("\n", style))

    def finish(self) -> list[StyledSegment]:
        self._flush_line()
        return self.lines

    def _flush_line(self) -> None:
        self.lines.extend(self.current or self.last_written)
        self.current = []
        self.last_written = []


def _render(
    text: str, style: TextStyle
) -> tuple[tuple[StyledSegment, ...], TextStyle]:
    buffer = _LineBuffer()
    position = 0

    for match in _CSI_RE.finditer(text):
        _feed(buffer, text[position : match.start()], style)
        if match.group(2) == "m":
            style = apply_sgr(style, match.group(1))
        position = match.end()
    _feed(buffer, text[position:], style)

    return _group(buffer.finish()), style


def _feed(buffer: _LineBuffer, chunk: str, style: TextStyle) -> None:
    for piece in _LINE_CONTROL_RE.split(chunk):
        if piece == "\n":
            buffer.newline(style)
        elif piece == "\r":
            buffer.carriage_return()
        elif piece == "\b":
            buffer.backspace()
        elif piece == "\x1b":
            # Unterminated CSI introducer
            continue
        elif piece:
            buffer.write(piece, style)


def _group(runs: list[StyledSegment]) -> tuple[StyledSegment, ...]:
    segments: list[StyledSegment] = []
    texts: list[str] = []
    current: TextStyle | None = None
    for run in runs:
        if run.style != current and texts:
            segments.append(StyledSegment("".join(texts), current or PLAIN))
            texts = []
        current = run.style
        texts.append(run.text)
    if texts:
        segments.append(StyledSegment("".join(texts), current or PLAIN))
    return tuple(segments)


def apply_sgr(style: TextStyle, params: str) -> TextStyle:
    """Return ``style`` updated by the parameters of one SGR sequence."""
    codes = [int(part) for part in params.split(";") if part]
    if not codes:
        return PLAIN

    index = 0
    while index < len(codes):
        code = codes[index]
        if code == 0:
            style = PLAIN
        elif code == 1:
            style = replace(style, bold=True)
        elif code == 2:
            style = replace(style, dim=True)
        elif code == 22:
            style = replace(style, bold=False, dim=False)
        elif 30 <= code <= 37:
            style = replace(style, foreground=code - 30)
        elif 40 <= code <= 47:
            style = replace(style, background=code - 40)
        elif 90 <= code <= 97:
            style = replace(style, foreground=code - 90 + 8)
        elif 100 <= code <= 107:
            style = replace(style, background=code - 100 + 8)
        elif code == 39:
            style = replace(style, foreground=None)
        elif code == 49:
            style = replace(style, background=None)
        elif code in (38, 48):
            color, consumed = _extended_color(codes, index + 1)
            if color is not None:
                if code == 38:
                    style = replace(style, foreground=color)
                else:
                    style = replace(style, background=color)
            index += consumed
        index += 1
    return style


def _extended_color(codes: list[int], index: int) -> tuple[Color | None, int]:
    """Decode ``5;n`` or ``2;r;g;b``; return the color and codes consumed."""
    if index + 1 < len(codes) and codes[index] == 5:
        value = codes[index + 1]
        return (value if 0 <= value <= 255 else None), 2
    if index + 3 < len(codes) and codes[index] == 2:
        red, green, blue = (min(max(v, 0), 255) for v in codes[index + 1 : index + 4])
        return (red, green, blue), 4
    return None, 0
