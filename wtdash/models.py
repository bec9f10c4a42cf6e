from pydantic import BaseModel, ConfigDict, Field


def tmux_safe(name: str) -> str:
    """tmux rewrites '.' and ':' in session names; do it up front so names round-trip."""
    return name.replace(".", "_").replace(":", "_")


class CommitSummary(BaseModel):
    hash: str
    message: str = ""


class GitInfo(BaseModel):
    """Remote/commit/diff summary for a worktree, loaded lazily on selection.

    available is False when the worktree has no branch checked out (detached
    HEAD) or could not be read.
    """

    model_config = ConfigDict(extra="ignore")

    available: bool = True
    remote_branch: str | None = None
    ahead: int = 0
    behind: int = 0
    recent_commits: list[CommitSummary] = Field(default_factory=list)
    modified_files: list[str] = Field(default_factory=list)


class ProjectConfig(BaseModel):
    """Per-project settings read from `.gtrconfig`."""

    post_create: str | None = None
    copy_include: list[str] = Field(default_factory=list)
    copy_exclude: list[str] = Field(default_factory=list)


class SessionActivity(BaseModel):
    """Activity facts for one tmux session, aggregated across its windows."""

    has_bell: bool = False
    last_activity: float = 0.0
    has_running_app: bool = False


class WorktreeEntry(BaseModel):
    """One row of `git worktree list`."""

    name: str
    path: str
    branch: str
    is_main: bool = False


class Session(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    display_name: str
    has_bell: bool = False
    has_running_app: bool = False
    running_app_suppressed: bool = False
    muted: bool = False
    last_activity: float | None = None
    pane_capture: str | None = None


class Worktree(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    branch: str
    path: str
    is_main: bool = False
    alias: str | None = None
    sessions: list[Session] = Field(default_factory=list)
    expanded: bool = True
    git_info: GitInfo | None = None
    last_fetched: float | None = None
    fetch_failed: bool = False

    def session_slug(self) -> str:
        return self.alias or self.branch.replace("/", "-")

    def session_prefix(self, project_name: str) -> str:
        return tmux_safe(f"{project_name}-{self.session_slug()}-")

    def label(self) -> str:
        if self.alias:
            return f"{self.alias} ({self.branch})"
        return self.branch

    def get_session(self, name: str) -> Session | None:
        for s in self.sessions:
            if s.name == name:
                return s
        return None


class Project(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    path: str
    default_branch: str = "main"
    worktrees: list[Worktree] = Field(default_factory=list)
    config: ProjectConfig | None = None
    expanded: bool = True

    def get_worktree(self, path: str) -> Worktree | None:
        for wt in self.worktrees:
            if wt.path == path:
                return wt
        return None


class Workspace(BaseModel):
    projects: list[Project] = Field(default_factory=list)

    def get_project(self, path: str) -> Project | None:
        for p in self.projects:
            if p.path == path:
                return p
        return None
