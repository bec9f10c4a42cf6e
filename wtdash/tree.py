"""Flat, cursor-addressable view over the project/worktree/session tree.

Entries are index triples into the current `Workspace`. They are only valid
until the next structural change, so every consumer goes through
`FlatView.entries()`, which rebuilds after `invalidate()`.
"""

from dataclasses import dataclass

from wtdash.models import Project, Session, Workspace, Worktree


@dataclass(frozen=True)
class ProjectRef:
    project: int


@dataclass(frozen=True)
class WorktreeRef:
    project: int
    worktree: int


@dataclass(frozen=True)
class SessionRef:
    project: int
    worktree: int
    session: int


FlatEntry = ProjectRef | WorktreeRef | SessionRef


def flatten(workspace: Workspace, include_collapsed: bool = False) -> list[FlatEntry]:
    """Depth-first walk. Collapsed nodes hide their children unless include_collapsed."""
    flat: list[FlatEntry] = []
    for pi, project in enumerate(workspace.projects):
        flat.append(ProjectRef(pi))
        if not (project.expanded or include_collapsed):
            continue
        for wi, wt in enumerate(project.worktrees):
            flat.append(WorktreeRef(pi, wi))
            if not (wt.expanded or include_collapsed):
                continue
            for si in range(len(wt.sessions)):
                flat.append(SessionRef(pi, wi, si))
    return flat


def resolve(flat: list[FlatEntry], cursor: int) -> FlatEntry | None:
    if 0 <= cursor < len(flat):
        return flat[cursor]
    return None


def clamp(cursor: int, length: int) -> int:
    if length == 0:
        return 0
    return max(0, min(cursor, length - 1))


def node_at(workspace: Workspace, entry: FlatEntry) -> Project | Worktree | Session:
    project = workspace.projects[entry.project]
    match entry:
        case ProjectRef():
            return project
        case WorktreeRef(worktree=wi):
            return project.worktrees[wi]
        case SessionRef(worktree=wi, session=si):
            return project.worktrees[wi].sessions[si]


def toggle_expanded(workspace: Workspace, entry: FlatEntry) -> bool | None:
    """Flip the expand flag of a project or worktree. Sessions have none."""
    node = node_at(workspace, entry)
    if isinstance(node, Session):
        return None
    node.expanded = not node.expanded
    return node.expanded


def reveal(workspace: Workspace, entry: FlatEntry) -> None:
    """Expand every ancestor of entry so it appears in the visible flattening."""
    if isinstance(entry, ProjectRef):
        return
    workspace.projects[entry.project].expanded = True
    if isinstance(entry, SessionRef):
        workspace.projects[entry.project].worktrees[entry.worktree].expanded = True


def parent_of(entry: FlatEntry) -> FlatEntry | None:
    match entry:
        case SessionRef(project=pi, worktree=wi):
            return WorktreeRef(pi, wi)
        case WorktreeRef(project=pi):
            return ProjectRef(pi)
    return None


def identity_of(workspace: Workspace, entry: FlatEntry) -> tuple[str, ...]:
    """Stable key for entry: paths and session names survive reconciliation, indices do not."""
    project = workspace.projects[entry.project]
    if isinstance(entry, ProjectRef):
        return (project.path,)
    wt = project.worktrees[entry.worktree]
    if isinstance(entry, WorktreeRef):
        return (project.path, wt.path)
    return (project.path, wt.path, wt.sessions[entry.session].name)


def locate(workspace: Workspace, flat: list[FlatEntry], key: tuple[str, ...]) -> int | None:
    for i, entry in enumerate(flat):
        if identity_of(workspace, entry) == key:
            return i
    return None


def searchable_text(workspace: Workspace, entry: FlatEntry) -> str:
    node = node_at(workspace, entry)
    match node:
        case Project():
            return node.name.lower()
        case Worktree():
            return " ".join(filter(None, [node.branch, node.alias, node.name])).lower()
        case Session():
            return node.display_name.lower()


class FlatView:
    """Cached flattening with an explicit dirty flag.

    Structural mutations call `invalidate()`; `entries()` is the single
    accessor and rebuilds lazily.
    """

    def __init__(self) -> None:
        self._entries: list[FlatEntry] = []
        self.dirty = True

    def invalidate(self) -> None:
        self.dirty = True

    def entries(self, workspace: Workspace) -> list[FlatEntry]:
        if self.dirty:
            self._entries = flatten(workspace)
            self.dirty = False
        return self._entries
