"""Merge live git and tmux snapshots into the workspace tree.

Worktree and session lists are rebuilt from the snapshots on every pass.
UI-local state that git and tmux know nothing about (expand flags, git info,
fetch metadata, pane captures, suppression, mute, session order) is carried
over by identity: worktree path and session name.
"""

import logging
import time

from wtdash.models import Project, Session, SessionActivity, Workspace, Worktree, WorktreeEntry
from wtdash.services import attention
from wtdash.services import worktree as git_worktree

logger = logging.getLogger(__name__)


def strip_prefix(name: str, prefix: str) -> str:
    """Display name for a session.

    Sessions we didn't create keep their full name, and so does a session
    named exactly prefix, so no row is left with an empty label.
    """
    if name.startswith(prefix) and len(name) > len(prefix):
        return name[len(prefix):]
    return name


def apply_activity(session: Session, snapshot: SessionActivity | None, now: float) -> None:
    if session.muted:
        session.has_bell = False
        session.has_running_app = False
        session.last_activity = None
        session.running_app_suppressed = False
        return
    if snapshot is not None:
        session.has_bell = snapshot.has_bell
        session.has_running_app = snapshot.has_running_app
        session.last_activity = snapshot.last_activity if snapshot.last_activity > 0 else None
    # Fresh activity cancels an earlier dismissal.
    if attention.is_currently_active(session, now):
        session.running_app_suppressed = False


def _rebuild_session(
    name: str, prefix: str, previous: Session | None, snapshot: SessionActivity | None, now: float,
) -> Session:
    session = Session(name=name, display_name=strip_prefix(name, prefix))
    if previous is not None:
        session.pane_capture = previous.pane_capture
        session.running_app_suppressed = previous.running_app_suppressed
        session.muted = previous.muted
    apply_activity(session, snapshot, now)
    return session


def _rebuild_worktree(
    project: Project,
    entry: WorktreeEntry,
    aliases: dict[str, str],
    previous: Worktree | None,
    roster: list[tuple[str, str]],
    activity: dict[str, SessionActivity],
    now: float,
) -> Worktree:
    wt = Worktree(
        name=entry.name,
        branch=entry.branch,
        path=entry.path,
        is_main=entry.is_main,
        alias=aliases.get(entry.branch) or None,
    )
    prefix = wt.session_prefix(project.name)
    prev_sessions = {s.name: s for s in previous.sessions} if previous else {}

    seen: set[str] = set()
    for name, path in roster:
        if path != entry.path or name in seen:
            continue
        seen.add(name)
        wt.sessions.append(_rebuild_session(name, prefix, prev_sessions.get(name), activity.get(name), now))

    if previous is not None:
        order = {s.name: i for i, s in enumerate(previous.sessions)}
        wt.sessions.sort(key=lambda s: order.get(s.name, len(order)))
        wt.git_info = previous.git_info
        wt.expanded = previous.expanded
        wt.last_fetched = previous.last_fetched
        wt.fetch_failed = previous.fetch_failed
    return wt


def refresh_project(
    project: Project,
    aliases: dict[str, str],
    roster: list[tuple[str, str]],
    activity: dict[str, SessionActivity],
    now: float,
) -> None:
    """Replace project's worktrees from a fresh git snapshot. Raises RuntimeError if git fails."""
    entries = git_worktree.list_worktrees(project.path)
    previous: dict[str, Worktree] = {wt.path: wt for wt in project.worktrees}
    rebuilt: list[Worktree] = []
    seen: set[str] = set()
    for entry in entries:
        if entry.path in seen:
            continue
        seen.add(entry.path)
        rebuilt.append(_rebuild_worktree(project, entry, aliases, previous.get(entry.path), roster, activity, now))
    project.worktrees = rebuilt


def refresh_workspace(
    workspace: Workspace,
    aliases_by_path: dict[str, dict[str, str]],
    roster: list[tuple[str, str]],
    activity: dict[str, SessionActivity],
    now: float | None = None,
) -> list[str]:
    """Full reconciliation pass over every registered project.

    A project whose worktree query fails keeps its previous worktrees. Returns
    one message per failed project.
    """
    now = time.time() if now is None else now
    errors: list[str] = []
    for project in workspace.projects:
        try:
            refresh_project(project, aliases_by_path.get(project.path, {}), roster, activity, now)
        except RuntimeError as e:
            logger.warning("Worktree refresh failed", extra={"project": project.name, "error": str(e)})
            errors.append(f"{project.name}: {e}")
    return errors


def update_activity(workspace: Workspace, activity: dict[str, SessionActivity], now: float | None = None) -> bool:
    """Lightweight poll: refresh activity fields in place. Returns True if any changed."""
    now = time.time() if now is None else now
    changed = False
    for project in workspace.projects:
        for wt in project.worktrees:
            for session in wt.sessions:
                snapshot = activity.get(session.name)
                if session.muted or snapshot is None:
                    continue
                before = (
                    session.has_bell,
                    session.has_running_app,
                    session.last_activity,
                    session.running_app_suppressed,
                )
                apply_activity(session, snapshot, now)
                after = (
                    session.has_bell,
                    session.has_running_app,
                    session.last_activity,
                    session.running_app_suppressed,
                )
                changed = changed or before != after
    return changed
