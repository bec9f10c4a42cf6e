from rich.text import Text
from textual.widgets import Static

from wtdash.config import project_config_path
from wtdash.models import Project, Worktree

HELP_KEYS = [
    ("j/k, ↑/↓", "move cursor"),
    ("h/l, ←/→", "collapse / expand"),
    ("enter", "toggle, or attach to session"),
    ("p", "add project"),
    ("w", "add worktree"),
    ("s", "new session"),
    ("o", "run a command in a throwaway session"),
    ("d", "delete / kill / unregister"),
    ("c", "clean merged worktrees"),
    ("e", "project config"),
    ("r", "set alias / rename session"),
    ("R", "refresh"),
    ("n/N", "next / previous session needing attention"),
    ("a", "next active session"),
    ("x", "dismiss / mute"),
    ("m", "move project or session"),
    ("[ ], ctrl+u/d", "previous / next project"),
    ("/", "search"),
    ("S", "send command to session"),
    ("C", "send Ctrl-C to session"),
    ("g", "git: pull, push, rebase, merge"),
    ("q", "quit"),
]


def help_text() -> Text:
    out = Text("Keys\n\n", style="bold")
    width = max(len(k) for k, _ in HELP_KEYS)
    for key, desc in HELP_KEYS:
        out.append(f"  {key:<{width}}  ", style="bold cyan")
        out.append(f"{desc}\n")
    out.append("\npress any key to close", style="dim italic")
    return out


def config_text(project: Project) -> Text:
    out = Text(f"{project.name} config\n", style="bold")
    out.append(f"{project_config_path(project.path)}\n\n", style="dim")
    cfg = project.config
    if cfg is None or not (cfg.post_create or cfg.copy_include or cfg.copy_exclude):
        out.append("(empty)\n", style="dim")
    else:
        out.append(f"hooks.postCreate  {cfg.post_create or '-'}\n")
        out.append(f"copy.include      {', '.join(cfg.copy_include) or '-'}\n")
        out.append(f"copy.exclude      {', '.join(cfg.copy_exclude) or '-'}\n")
    out.append("\ne edit in $EDITOR, any other key closes", style="dim italic")
    return out



def git_text(wt: Worktree, default_branch: str) -> Text:
    target = default_branch if len(default_branch) <= 10 else default_branch[:9] + "…"
    out = Text(f"git: {wt.label()}\n", style="bold")
    out.append(f"{wt.path}\n\n", style="dim")
    for key, desc in (
        ("p", "pull"),
        ("P", "push"),
        ("r", f"pull --rebase origin {target}"),
        ("m", f"merge from {target}"),
        ("M", f"merge into {target}"),
    ):
        out.append(f"  {key}  ", style="bold cyan")
        out.append(f"{desc}\n")
    out.append("\nesc closes", style="dim italic")
    return out

class Overlay(Static):
    """Centered panel for help, per-project config and the git popup; hidden in other modes."""

    DEFAULT_CSS = """
    Overlay {
        layer: overlay;
        width: 64;
        height: auto;
        max-height: 80%;
        offset: 10 2;
        padding: 1 2;
        border: round $accent;
        background: $panel;
        display: none;
    }
    """

    def __init__(self) -> None:
        super().__init__("", id="overlay")

    def show(self, content: Text | None) -> None:
        if content is None:
            self.display = False
            return
        self.update(content)
        self.display = True
