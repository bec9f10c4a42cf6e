"""Project registration and worktree/session lifecycle operations."""

import logging
from pathlib import Path

from wtdash.config import GlobalConfig, load_project_config
from wtdash.models import Project, Workspace, Worktree, WorktreeEntry, tmux_safe
from wtdash.services import tmux
from wtdash.services import worktree as git_worktree

logger = logging.getLogger(__name__)


def _worktrees_from_entries(entries: list[WorktreeEntry], aliases: dict[str, str]) -> list[Worktree]:
    return [
        Worktree(
            name=e.name,
            branch=e.branch,
            path=e.path,
            is_main=e.is_main,
            alias=aliases.get(e.branch) or None,
        )
        for e in entries
    ]


def build_project(name: str, path: str, aliases: dict[str, str]) -> Project:
    """Load a project from disk. A broken repo still yields a project, just without worktrees."""
    try:
        entries = git_worktree.list_worktrees(path)
    except RuntimeError:
        logger.warning("Could not list worktrees for project", extra={"project": name, "path": path})
        entries = []
    return Project(
        name=name,
        path=path,
        default_branch=git_worktree.detect_default_branch(path),
        worktrees=_worktrees_from_entries(entries, aliases),
        config=load_project_config(path),
    )


def load_workspace(config: GlobalConfig) -> Workspace:
    return Workspace(projects=[build_project(e.name, e.path, e.aliases) for e in config.projects])


def register_project(path: Path, config: GlobalConfig, workspace: Workspace) -> Project:
    """Validate path, add it to config and return the loaded project."""
    if str(path) in ("", "."):
        raise ValueError("empty path")
    if not path.exists():
        raise ValueError(f"path does not exist: {path}")
    if not git_worktree.is_git_repo(path):
        raise ValueError(f"not a git repository: {path}")
    if workspace.get_project(str(path)) is not None:
        raise ValueError(f"already registered: {path}")

    name = path.name or "unknown"
    entry = config.add_project(name, str(path))
    project = build_project(entry.name, entry.path, entry.aliases)
    logger.info("Registered project", extra={"project": name, "path": str(path)})
    return project


def unregister_project(path: str, config: GlobalConfig, workspace: Workspace) -> None:
    """Forget a project. Files on disk are untouched."""
    config.remove_project(path)
    workspace.projects = [p for p in workspace.projects if p.path != path]


def create_worktree(project: Project, branch: str) -> str:
    return git_worktree.create_worktree(project.path, branch, project.default_branch)


def delete_worktree(project: Project, wt: Worktree) -> None:
    """Remove the worktree from git, then kill the sessions living in it."""
    if wt.is_main:
        raise ValueError("Cannot delete main worktree")
    git_worktree.remove_worktree(project.path, wt.path, wt.branch)
    for session in wt.sessions:
        try:
            tmux.kill_session(session.name)
        except RuntimeError:
            logger.debug("Session already gone", extra={"session": session.name})


def session_display_name(project: Project, name: str | None, command: str | None) -> str:
    """Explicit name, else the command's program, else the project name."""
    if name:
        return name
    if command and command.split():
        return command.split()[0]
    return project.name


def create_session(project: Project, wt: Worktree, name: str | None = None, command: str | None = None) -> str:
    """Start a session in wt and return its tmux name."""
    prefix = wt.session_prefix(project.name)
    display = session_display_name(project, name, command)
    tmux_name = tmux.unique_session_name(tmux_safe(f"{prefix}{display}"))
    if command:
        tmux.create_session_with_command(tmux_name, wt.path, command)
    else:
        tmux.create_session(tmux_name, wt.path)
    return tmux_name


def create_ephemeral_session(project: Project, wt: Worktree, command: str) -> str:
    """Start a session that runs command as its only process."""
    tmux_name = tmux.unique_session_name(f"{wt.session_prefix(project.name)}run")
    tmux.create_ephemeral_session(tmux_name, wt.path, command)
    return tmux_name


def set_alias(config: GlobalConfig, project: Project, wt: Worktree, alias: str) -> None:
    config.set_alias(project.path, wt.branch, alias)
    wt.alias = alias or None
