import pytest

import wtdash.services.tmux as _tmux_mod
from wtdash.config import GlobalConfig, ProjectEntry
from wtdash.controller import Dashboard
from wtdash.models import GitInfo, Project, Session, Workspace, Worktree, WorktreeEntry


@pytest.fixture(autouse=True)
def _reset_tmux_caches():
    """Reset tmux module-level caches between tests."""
    _tmux_mod._server = None
    _tmux_mod._pane_cache.clear()
    yield
    _tmux_mod._server = None
    _tmux_mod._pane_cache.clear()


@pytest.fixture(autouse=True)
def _isolate_state_dirs(tmp_path, monkeypatch):
    """Keep config and cache writes inside tmp_path."""
    monkeypatch.setattr("wtdash.config.STATE_DIR", tmp_path / "state")
    monkeypatch.setattr("wtdash.services.cache.CACHE_DIR", tmp_path / "cache")


def make_session(name: str, display: str | None = None, **fields) -> Session:
    return Session(name=name, display_name=display or name, **fields)


@pytest.fixture()
def workspace() -> Workspace:
    """Three projects; fully expanded it flattens to:

    0 alpha, 1 main, 2 shell, 3 feat/x, 4 claude, 5 server,
    6 beta, 7 main, 8 logs, 9 alphabet, 10 main
    """
    alpha = Project(
        name="alpha",
        path="/repos/alpha",
        worktrees=[
            Worktree(
                name="main", branch="main", path="/repos/alpha", is_main=True,
                sessions=[make_session("alpha-main-shell", "shell")],
            ),
            Worktree(
                name="alpha-feat-x", branch="feat/x", path="/repos/alpha-feat-x",
                sessions=[
                    make_session("alpha-feat-x-claude", "claude"),
                    make_session("alpha-feat-x-server", "server"),
                ],
            ),
        ],
    )
    beta = Project(
        name="beta",
        path="/repos/beta",
        worktrees=[
            Worktree(
                name="main", branch="main", path="/repos/beta", is_main=True,
                sessions=[make_session("beta-main-logs", "logs")],
            ),
        ],
    )
    alphabet = Project(
        name="alphabet",
        path="/repos/alphabet",
        worktrees=[Worktree(name="main", branch="main", path="/repos/alphabet", is_main=True)],
    )
    return Workspace(projects=[alpha, beta, alphabet])


@pytest.fixture()
def global_config(workspace) -> GlobalConfig:
    return GlobalConfig(projects=[ProjectEntry(name=p.name, path=p.path) for p in workspace.projects])


@pytest.fixture()
def dashboard(workspace, global_config, tmp_path) -> Dashboard:
    return Dashboard(global_config, workspace, config_file=tmp_path / "config.toml")


@pytest.fixture()
def live_state(monkeypatch, workspace):
    """Serve git and tmux snapshots that match the `workspace` fixture.

    Tests mutate the returned dict to simulate external changes.
    """
    state = {
        "worktrees": {
            p.path: [
                WorktreeEntry(name=wt.name, path=wt.path, branch=wt.branch, is_main=wt.is_main)
                for wt in p.worktrees
            ]
            for p in workspace.projects
        },
        "roster": [
            (s.name, wt.path)
            for p in workspace.projects
            for wt in p.worktrees
            for s in wt.sessions
        ],
        "activity": {},
        "captures": {},
    }

    def list_worktrees(path):
        if path not in state["worktrees"]:
            raise RuntimeError(f"Failed to list worktrees for {path}: not a git repository")
        return list(state["worktrees"][path])

    monkeypatch.setattr("wtdash.services.worktree.list_worktrees", list_worktrees)
    monkeypatch.setattr("wtdash.services.tmux.list_sessions_with_paths", lambda: list(state["roster"]))
    monkeypatch.setattr("wtdash.services.tmux.session_activity", lambda: dict(state["activity"]))
    monkeypatch.setattr("wtdash.services.tmux.capture_pane", lambda name: state["captures"].get(name))
    monkeypatch.setattr("wtdash.services.git_info.get_git_info", lambda path: GitInfo())
    monkeypatch.setattr("wtdash.services.git_info.start_fetch", lambda path: None)
    return state
