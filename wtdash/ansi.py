"""Decode SGR-styled pane captures into rich styled runs.

Only `ESC [ ... m` changes the style. Any other CSI sequence (cursor moves,
erase, private modes) is dropped together with its parameters, and a lone
ESC is discarded.
"""

from dataclasses import dataclass

from rich.color import Color
from rich.style import Style
from rich.text import Text

ESC = "\x1b"


@dataclass(frozen=True)
class StyledRun:
    text: str
    style: Style


@dataclass
class _Pen:
    fg: Color | None = None
    bg: Color | None = None
    bold: bool = False
    dim: bool = False
    italic: bool = False
    underline: bool = False

    def style(self) -> Style:
        return Style(
            color=self.fg,
            bgcolor=self.bg,
            bold=self.bold or None,
            dim=self.dim or None,
            italic=self.italic or None,
            underline=self.underline or None,
        )

    def reset(self) -> None:
        self.fg = self.bg = None
        self.bold = self.dim = self.italic = self.underline = False


def indexed_color(n: int) -> Color:
    """Map a 256-color palette index to a color."""
    if n < 16:
        return Color.from_ansi(n)
    if n < 232:
        i = n - 16
        r, g, b = i // 36, (i // 6) % 6, i % 6
        return Color.from_rgb(r * 51, g * 51, b * 51)
    level = 8 + (n - 232) * 10
    return Color.from_rgb(level, level, level)


def _extended_color(params: list[int], i: int) -> tuple[Color | None, int]:
    """Parse the tail of a 38/48 parameter. Returns the color and how many params it used."""
    if i < len(params) and params[i] == 5 and i + 1 < len(params):
        n = params[i + 1]
        return (indexed_color(n) if 0 <= n <= 255 else None), 2
    if i < len(params) and params[i] == 2 and i + 3 < len(params):
        r, g, b = (min(max(v, 0), 255) for v in params[i + 1:i + 4])
        return Color.from_rgb(r, g, b), 4
    return None, 0


def _apply_sgr(pen: _Pen, raw_params: str) -> None:
    params: list[int] = []
    for part in raw_params.split(";"):
        if part == "":
            params.append(0)
        elif part.isdigit():
            params.append(int(part))
        else:
            params.append(-1)
    if not params:
        params = [0]

    i = 0
    while i < len(params):
        p = params[i]
        i += 1
        if p == 0:
            pen.reset()
        elif p == 1:
            pen.bold = True
        elif p == 2:
            pen.dim = True
        elif p == 3:
            pen.italic = True
        elif p == 4:
            pen.underline = True
        elif p == 22:
            pen.bold = pen.dim = False
        elif p == 23:
            pen.italic = False
        elif p == 24:
            pen.underline = False
        elif 30 <= p <= 37:
            pen.fg = Color.from_ansi(p - 30)
        elif 90 <= p <= 97:
            pen.fg = Color.from_ansi(p - 90 + 8)
        elif 40 <= p <= 47:
            pen.bg = Color.from_ansi(p - 40)
        elif 100 <= p <= 107:
            pen.bg = Color.from_ansi(p - 100 + 8)
        elif p == 39:
            pen.fg = None
        elif p == 49:
            pen.bg = None
        elif p in (38, 48):
            color, used = _extended_color(params, i)
            i += used
            if color is not None:
                if p == 38:
                    pen.fg = color
                else:
                    pen.bg = color


def parse(raw: str) -> list[list[StyledRun]]:
    """Split raw into lines of styled runs."""
    lines: list[list[StyledRun]] = [[]]
    pen = _Pen()
    buf: list[str] = []

    def flush() -> None:
        if buf:
            lines[-1].append(StyledRun("".join(buf), pen.style()))
            buf.clear()

    i, n = 0, len(raw)
    while i < n:
        ch = raw[i]
        if ch == ESC:
            if i + 1 < n and raw[i + 1] == "[":
                j = i + 2
                while j < n and "\x30" <= raw[j] <= "\x3f":
                    j += 1
                params_end = j
                while j < n and "\x20" <= raw[j] <= "\x2f":
                    j += 1
                if j >= n:
                    break
                if raw[j] == "m":
                    flush()
                    _apply_sgr(pen, raw[i + 2:params_end])
                i = j + 1
            else:
                i += 1
            continue
        if ch == "\n":
            flush()
            lines.append([])
        elif ch != "\r":
            buf.append(ch)
        i += 1
    flush()
    if not lines[-1]:
        lines.pop()
    return lines


def plain_text(line: list[StyledRun]) -> str:
    return "".join(run.text for run in line)


def to_text(lines: list[list[StyledRun]]) -> Text:
    text = Text()
    for idx, line in enumerate(lines):
        if idx:
            text.append("\n")
        for run in line:
            text.append(run.text, style=run.style)
    return text
