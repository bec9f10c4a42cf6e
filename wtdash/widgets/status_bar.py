from rich.text import Text
from textual.widgets import Static

from wtdash.input_buffer import InputBuffer
from wtdash.modes import Confirm, GitPopup, Input, Mode, Move, MoveSession, Normal, Search, mode_label

_HINTS = "? help  p project  w worktree  s session  d delete  g git  / search  q quit"


def _buffer_text(buf: InputBuffer) -> Text:
    out = Text(buf.prompt, style="bold")
    out.append(buf.value[:buf.cursor])
    under = buf.value[buf.cursor:buf.cursor + 1] or " "
    out.append(under, style="reverse")
    out.append(buf.value[buf.cursor + 1:])
    if buf.completions and buf.completion_index is not None:
        out.append(f"  [{buf.completion_index + 1}/{len(buf.completions)}]", style="dim")
    return out


def status_line(mode: Mode, status: str | None, loading: bool) -> Text:
    line = Text(f" {mode_label(mode)} ", style="bold reverse")
    line.append(" ")
    match mode:
        case Input(buffer=buf):
            line.append_text(_buffer_text(buf))
        case Confirm(message=message):
            line.append(message, style="bold yellow")
            line.append("  (y/n)", style="dim")
        case Search(query=query, match_index=idx, matches=matches):
            line.append(f"/{query}")
            if matches:
                line.append(f"  {idx + 1}/{len(matches)}", style="dim")
        case Move() | MoveSession():
            line.append("j/k move, enter/esc done", style="dim")
        case GitPopup():
            line.append("p pull  P push  r rebase  m merge from  M merge into  esc cancel", style="dim")
        case Normal() if not status and not loading:
            line.append(_HINTS, style="dim")
    if loading:
        line.append("  working…", style="italic")
    elif status:
        line.append(f"  {status}", style="red" if status.startswith(("Error", "Refresh error")) else "")
    return line


class StatusBar(Static):
    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        dock: bottom;
        background: $panel;
    }
    """

    def __init__(self) -> None:
        super().__init__("", id="status-bar")

    def show(self, mode: Mode, status: str | None, loading: bool) -> None:
        self.update(status_line(mode, status, loading))
