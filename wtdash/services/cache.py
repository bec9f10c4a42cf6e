"""Persisted UI cache: session order, expand flags, suppression/mute, cursor.

Loaded before the first reconciliation so the tree paints immediately;
sessions restored from here carry no activity or capture until the first
live pass replaces them.
"""

import fcntl
import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from wtdash.constants import CACHE_DIR
from wtdash.models import Session, Workspace
from wtdash.services.reconcile import strip_prefix

logger = logging.getLogger(__name__)


class SessionFlags(BaseModel):
    suppressed: bool = False
    muted: bool = False


class CacheState(BaseModel):
    model_config = ConfigDict(extra="ignore")

    worktree_sessions: dict[str, list[str]] = Field(default_factory=dict)
    worktree_expanded: dict[str, bool] = Field(default_factory=dict)
    project_expanded: dict[str, bool] = Field(default_factory=dict)
    session_flags: dict[str, SessionFlags] = Field(default_factory=dict)
    cursor: int = 0


def _ensure_cache_dir() -> None:
    CACHE_DIR.mkdir(parents=True, exist_ok=True)


def _cache_file() -> Path:
    return CACHE_DIR / "state.json"


def load_cache() -> CacheState:
    cache_file = _cache_file()
    if not cache_file.exists():
        return CacheState()
    lock_file = cache_file.with_suffix(".lock")
    try:
        with open(lock_file, "a") as lf:
            fcntl.flock(lf, fcntl.LOCK_SH)
            try:
                data = json.loads(cache_file.read_text())
            finally:
                fcntl.flock(lf, fcntl.LOCK_UN)
        return CacheState.model_validate(data)
    except (json.JSONDecodeError, OSError, ValidationError):
        logger.debug("Failed to read cache, starting fresh", exc_info=True)
        return CacheState()


def save_cache(state: CacheState) -> None:
    _ensure_cache_dir()
    cache_file = _cache_file()
    lock_file = cache_file.with_suffix(".lock")
    tmp = cache_file.with_suffix(".tmp")
    with open(lock_file, "a") as lf:
        fcntl.flock(lf, fcntl.LOCK_EX)
        try:
            tmp.write_text(state.model_dump_json(indent=2))
            tmp.rename(cache_file)
        finally:
            fcntl.flock(lf, fcntl.LOCK_UN)


def apply_cache(workspace: Workspace, state: CacheState) -> None:
    """Restore cached UI state onto a freshly loaded workspace."""
    for project in workspace.projects:
        project.expanded = state.project_expanded.get(project.path, project.expanded)
        for wt in project.worktrees:
            wt.expanded = state.worktree_expanded.get(wt.path, wt.expanded)
            if wt.sessions:
                continue
            prefix = wt.session_prefix(project.name)
            for name in state.worktree_sessions.get(wt.path, []):
                flags = state.session_flags.get(name, SessionFlags())
                wt.sessions.append(Session(
                    name=name,
                    display_name=strip_prefix(name, prefix),
                    running_app_suppressed=flags.suppressed,
                    muted=flags.muted,
                ))


def snapshot_cache(workspace: Workspace, cursor: int) -> CacheState:
    state = CacheState(cursor=cursor)
    for project in workspace.projects:
        state.project_expanded[project.path] = project.expanded
        for wt in project.worktrees:
            state.worktree_expanded[wt.path] = wt.expanded
            state.worktree_sessions[wt.path] = [s.name for s in wt.sessions]
            for s in wt.sessions:
                if s.running_app_suppressed or s.muted:
                    state.session_flags[s.name] = SessionFlags(suppressed=s.running_app_suppressed, muted=s.muted)
    return state
