import time

from rich.text import Text
from textual.events import Click, Key
from textual.message import Message
from textual.widgets import Static

from wtdash import tree
from wtdash.models import Project, Session, Workspace, Worktree
from wtdash.services.attention import SessionStatus, classify, idle_label

_STATUS_ICONS = {
    SessionStatus.MUTED: ("⊘", "dim"),
    SessionStatus.BELL: ("●", "bold red"),
    SessionStatus.ACTIVE: ("◉", "green"),
    SessionStatus.NEEDS_ATTENTION: ("●", "bold yellow"),
    SessionStatus.IDLE: ("○", "dim"),
}


class RowClicked(Message):
    """Fired when a tree row is clicked; row indexes the visible flat view."""

    def __init__(self, row: int) -> None:
        self.row = row
        super().__init__()


def _fold_marker(expanded: bool, has_children: bool) -> str:
    if not has_children:
        return "  "
    return "▾ " if expanded else "▸ "


def render_row(workspace: Workspace, entry: tree.FlatEntry, now: float) -> Text:
    node = tree.node_at(workspace, entry)
    row = Text(no_wrap=True, overflow="ellipsis")
    match node:
        case Project():
            row.append(_fold_marker(node.expanded, bool(node.worktrees)))
            row.append(node.name, style="bold")
        case Worktree():
            row.append("  ")
            row.append(_fold_marker(node.expanded, bool(node.sessions)))
            row.append(node.label(), style="cyan")
            if node.is_main:
                row.append(" (main)", style="dim")
            if node.fetch_failed:
                row.append(" ⚠", style="yellow")
        case Session():
            icon, style = _STATUS_ICONS[classify(node, now)]
            row.append("      ")
            row.append(icon, style=style)
            row.append(f" {node.display_name}")
            idle = idle_label(node, now)
            if idle:
                row.append(f" {idle}", style="dim")
    return row


def visible_window(cursor: int, total: int, height: int, offset: int) -> int:
    """Scroll offset keeping cursor within [offset, offset + height)."""
    if height <= 0 or total <= height:
        return 0
    if cursor < offset:
        offset = cursor
    elif cursor >= offset + height:
        offset = cursor - height + 1
    return max(0, min(offset, total - height))


class WorkspaceTree(Static, can_focus=True):
    """Projects, worktrees and sessions, one row each."""

    DEFAULT_CSS = """
    WorkspaceTree {
        width: 40;
        min-width: 28;
        height: 1fr;
        border-right: solid $accent;
        background: $surface;
        padding: 0;
    }
    """

    def __init__(self) -> None:
        super().__init__("", id="tree")
        self._offset = 0

    def show(self, workspace: Workspace, flat: list[tree.FlatEntry], cursor: int) -> None:
        if not flat:
            self.update(Text("No projects. Press p to add one.", style="italic dim"))
            return
        self._offset = visible_window(cursor, len(flat), self.size.height, self._offset)
        now = time.time()
        lines = []
        end = self._offset + self.size.height if self.size.height > 0 else len(flat)
        for pos in range(self._offset, min(end, len(flat))):
            row = render_row(workspace, flat[pos], now)
            if pos == cursor:
                row.stylize("reverse")
            lines.append(row)
        self.update(Text("\n").join(lines))

    def on_key(self, event: Key) -> None:
        if self.app.handle_key(event.key, event.character):  # type: ignore[attr-defined]
            event.prevent_default()
            event.stop()

    def on_click(self, event: Click) -> None:
        event.stop()
        self.post_message(RowClicked(self._offset + event.y))
