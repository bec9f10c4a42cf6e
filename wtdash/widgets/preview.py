from rich.text import Text
from textual.widgets import Static

from wtdash import ansi, tree
from wtdash.models import GitInfo, Project, Session, Workspace, Worktree


def worktree_summary(wt: Worktree) -> Text:
    """Branch, remote tracking and recent history for the preview pane."""
    out = Text()
    out.append(wt.label(), style="bold cyan")
    out.append(f"\n{wt.path}", style="dim")
    info: GitInfo | None = wt.git_info
    if info is None:
        out.append("\n\nloading git info…", style="italic dim")
        return out
    if not info.available:
        out.append("\n\nno git info (not on a branch)", style="dim")
        return out

    if info.remote_branch:
        out.append(f"\n\nremote: {info.remote_branch}  ↑ {info.ahead} ahead  ↓ {info.behind} behind")
    else:
        out.append("\n\nno upstream branch", style="dim")
    if wt.fetch_failed:
        out.append("\nfetch failed", style="yellow")

    if info.recent_commits:
        out.append("\n\nrecent commits", style="bold")
        for commit in info.recent_commits:
            out.append(f"\n  {commit.hash} ", style="yellow")
            out.append(commit.message)

    if info.modified_files:
        out.append("\n\nmodified", style="bold")
        for path in info.modified_files:
            out.append(f"\n  {path}", style="red")
    else:
        out.append("\n\n● clean", style="green")
    return out


def project_summary(project: Project) -> Text:
    out = Text()
    out.append(project.name, style="bold")
    out.append(f"\n{project.path}", style="dim")
    out.append(f"\n\ndefault branch: {project.default_branch}")
    sessions = sum(len(wt.sessions) for wt in project.worktrees)
    out.append(f"\n{len(project.worktrees)} worktrees, {sessions} sessions")
    if project.config and project.config.post_create:
        out.append(f"\npost-create: {project.config.post_create}", style="dim")
    return out


class PreviewPane(Static):
    """Captured pane of the selected session, or a summary of the selected node."""

    DEFAULT_CSS = """
    PreviewPane {
        width: 1fr;
        height: 1fr;
        overflow-y: auto;
        padding: 0 1;
    }
    """

    def __init__(self) -> None:
        super().__init__("", id="preview")
        self._last_hash: int = 0

    def show(self, workspace: Workspace, entry: tree.FlatEntry | None) -> None:
        if entry is None:
            content: Text | str = "Select a project, worktree or session"
        else:
            node = tree.node_at(workspace, entry)
            match node:
                case Session():
                    if node.pane_capture is None:
                        content = Text("waiting for capture…", style="italic dim")
                    else:
                        content = ansi.to_text(ansi.parse(node.pane_capture))
                case Worktree():
                    content = worktree_summary(node)
                case Project():
                    content = project_summary(node)
        digest = hash(str(content) if isinstance(content, str) else (content.plain, repr(content.spans)))
        if digest == self._last_hash:
            return
        self._last_hash = digest
        self.update(content)
