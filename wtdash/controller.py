"""Interaction state machine.

`Dashboard` exclusively owns the workspace tree. Input events go through
`handle()`, timers through `tick()`; rendering only reads `workspace`,
`flat()`, `cursor`, `mode`, `status` and `loading`.
"""

import contextlib
import logging
import os
import shlex
import subprocess
import time
from collections.abc import Callable
from pathlib import Path
from typing import ContextManager, Protocol

from wtdash import tree
from wtdash.config import GlobalConfig, expand_path, load_project_config, project_config_path, save_global_config
from wtdash.constants import ACTIVITY_POLL_MS, CAPTURE_INTERVAL_MS, FETCH_INTERVAL_S, RESCAN_INTERVAL_MS
from wtdash.events import Action, Event, InputChar, MouseClick
from wtdash.input_buffer import InputBuffer
from wtdash.models import Project, Session, Workspace, Worktree, tmux_safe
from wtdash.modes import (
    AddProject,
    AddSession,
    AddSessionCommand,
    AddWorktree,
    Config,
    Confirm,
    DeleteProject,
    DeleteSession,
    DeleteWorktree,
    GitPopup,
    Help,
    Input,
    Mode,
    Move,
    MoveSession,
    Normal,
    OpenRun,
    PendingAction,
    RenameSession,
    Search,
    SendCommand,
    SetAlias,
)
from wtdash.services import attention, git_info, reconcile, tmux
from wtdash.services import workspace as ops
from wtdash.services import worktree as git_worktree
from wtdash.services.cache import CacheState, apply_cache, snapshot_cache

logger = logging.getLogger(__name__)


class Host(Protocol):
    """The terminal front-end driving a Dashboard."""

    def redraw_then(self, callback: Callable[[], None]) -> None:
        """Paint the current state, then run callback."""

    def suspend(self) -> ContextManager[None]:
        """Hand the real terminal to a child process for the duration of the block."""


class HeadlessHost:
    """Host without a screen: callbacks run immediately."""

    def redraw_then(self, callback: Callable[[], None]) -> None:
        callback()

    def suspend(self) -> ContextManager[None]:
        return contextlib.nullcontext()


class Dashboard:
    def __init__(
        self,
        config: GlobalConfig,
        workspace: Workspace,
        host: Host | None = None,
        config_file: Path | None = None,
        cursor: int = 0,
    ) -> None:
        self.config = config
        self.workspace = workspace
        self.host: Host = host or HeadlessHost()
        self._config_file = config_file
        self.view = tree.FlatView()
        self.mode: Mode = Normal()
        self.cursor = tree.clamp(cursor, len(self.flat()))
        self.status: str | None = None
        self.loading = False
        self.should_quit = False
        self._last_rescan = float("-inf")
        self._last_activity = float("-inf")
        self._last_capture = float("-inf")
        self._fetch: git_info.FetchProbe | None = None

    @classmethod
    def from_config(
        cls,
        config: GlobalConfig,
        cache: CacheState,
        host: Host | None = None,
        config_file: Path | None = None,
    ) -> "Dashboard":
        """Load every registered project and paint it from the cache before the first live pass."""
        workspace = ops.load_workspace(config)
        apply_cache(workspace, cache)
        return cls(config, workspace, host=host, config_file=config_file, cursor=cache.cursor)

    # State access

    def flat(self) -> list[tree.FlatEntry]:
        return self.view.entries(self.workspace)

    def selection(self) -> tree.FlatEntry | None:
        return tree.resolve(self.flat(), self.cursor)

    def wants_text(self) -> bool:
        return isinstance(self.mode, (Input, Search))

    def wants_git_keys(self) -> bool:
        return isinstance(self.mode, GitPopup)

    def cache_state(self) -> CacheState:
        return snapshot_cache(self.workspace, self.cursor)

    def _invalidate(self) -> None:
        self.view.invalidate()
        self.cursor = tree.clamp(self.cursor, len(self.flat()))

    def _selected_key(self) -> tuple[str, ...] | None:
        entry = self.selection()
        return tree.identity_of(self.workspace, entry) if entry is not None else None

    def _restore_cursor(self, key: tuple[str, ...] | None) -> None:
        self.view.invalidate()
        flat = self.flat()
        if key is not None:
            pos = tree.locate(self.workspace, flat, key)
            if pos is not None:
                self.cursor = pos
                return
        self.cursor = tree.clamp(self.cursor, len(flat))

    def _selected_project(self) -> Project | None:
        entry = self.selection()
        return self.workspace.projects[entry.project] if entry is not None else None

    def _selected_worktree(self) -> tuple[Project, Worktree] | None:
        entry = self.selection()
        if not isinstance(entry, (tree.WorktreeRef, tree.SessionRef)):
            return None
        project = self.workspace.projects[entry.project]
        return project, project.worktrees[entry.worktree]

    def _selected_session(self) -> tuple[Project, Worktree, Session] | None:
        entry = self.selection()
        if not isinstance(entry, tree.SessionRef):
            return None
        project = self.workspace.projects[entry.project]
        wt = project.worktrees[entry.worktree]
        return project, wt, wt.sessions[entry.session]

    def _project(self, path: str) -> Project:
        project = self.workspace.get_project(path)
        if project is None:
            raise LookupError(f"Project no longer registered: {path}")
        return project

    def _worktree(self, project_path: str, wt_path: str) -> tuple[Project, Worktree]:
        project = self._project(project_path)
        wt = project.get_worktree(wt_path)
        if wt is None:
            raise LookupError(f"Worktree no longer exists: {wt_path}")
        return project, wt

    def _session(self, project_path: str, wt_path: str, name: str) -> tuple[Project, Worktree, Session]:
        project, wt = self._worktree(project_path, wt_path)
        session = wt.get_session(name)
        if session is None:
            raise LookupError(f"Session no longer exists: {name}")
        return project, wt, session

    def _select(self, key: tuple[str, ...]) -> None:
        pos = tree.locate(self.workspace, self.flat(), key)
        if pos is not None:
            self.cursor = pos

    def _save_config(self) -> None:
        save_global_config(self.config, self._config_file)

    # Dispatch

    def handle(self, event: Event) -> None:
        """Run one input event through the current mode.

        Failures end up in the status line and never propagate.
        """
        if self.loading:
            return
        self.status = None
        try:
            self._dispatch(event)
        except Exception as e:
            logger.warning("Action failed", extra={"event": repr(event)}, exc_info=True)
            self.status = f"Error: {e}"

    def _dispatch(self, event: Event) -> None:
        match self.mode:
            case Normal():
                self._dispatch_normal(event)
            case Input() as mode:
                self._dispatch_input(mode, event)
            case Confirm() as mode:
                self._dispatch_confirm(mode, event)
            case Config() as mode:
                self._dispatch_config(mode, event)
            case Move() as mode:
                self._dispatch_move(mode, event)
            case MoveSession() as mode:
                self._dispatch_move_session(mode, event)
            case Search() as mode:
                self._dispatch_search(mode, event)
            case Help():
                self.mode = Normal()
            case GitPopup() as mode:
                self._dispatch_git(mode, event)

    def _run_loading(self, job: Callable[[], None]) -> None:
        """Flag loading, let the host paint, then run the blocking job."""
        self.loading = True

        def run() -> None:
            try:
                job()
            except Exception as e:
                logger.warning("Action failed", exc_info=True)
                self.status = f"Error: {e}"
            finally:
                self.loading = False

        self.host.redraw_then(run)

    def _dispatch_normal(self, event: Event) -> None:
        match event:
            case MouseClick(row=row):
                if 0 <= row < len(self.flat()):
                    self.cursor = row
            case Action.QUIT:
                self.should_quit = True
            case Action.UP:
                self.move_cursor(-1)
            case Action.DOWN:
                self.move_cursor(1)
            case Action.LEFT:
                self.nav_left()
            case Action.RIGHT:
                self.nav_right()
            case Action.SELECT:
                self.action_select()
            case Action.ADD_PROJECT:
                self.mode = Input(AddProject(), InputBuffer("path: ", "~/", complete_paths=True))
            case Action.ADD_WORKTREE:
                self.action_add_worktree()
            case Action.ADD_SESSION:
                self.action_add_session()
            case Action.OPEN_RUN:
                self.action_open_run()
            case Action.DELETE:
                self.action_delete()
            case Action.CLEAN:
                self.action_clean()
            case Action.EDIT_CONFIG:
                self.action_edit_config()
            case Action.RENAME:
                self.action_rename()
            case Action.REFRESH:
                self._last_rescan = time.monotonic()
                if not self.refresh_all():
                    self.status = "Refreshed"
            case Action.HELP:
                self.mode = Help()
            case Action.NEXT_ATTENTION | Action.PREV_ATTENTION:
                self.jump_to(attention.needs_attention, event is Action.NEXT_ATTENTION, "No sessions need attention")
            case Action.NEXT_ACTIVE:
                self.jump_to(attention.is_currently_active, True, "No active sessions")
            case Action.DISMISS:
                self.action_dismiss()
            case Action.MOVE:
                self.action_move()
            case Action.NEXT_PROJECT | Action.PREV_PROJECT:
                self.jump_project(event is Action.NEXT_PROJECT)
            case Action.SEARCH:
                self.mode = Search()
            case Action.SEND_COMMAND:
                self.action_send_command()
            case Action.SEND_INTERRUPT:
                self.action_send_interrupt()
            case Action.GIT:
                self.action_git()

    # Navigation

    def move_cursor(self, delta: int) -> None:
        self.cursor = tree.clamp(self.cursor + delta, len(self.flat()))

    def nav_left(self) -> None:
        """Collapse the selected node, or step out to its parent."""
        entry = self.selection()
        if entry is None:
            return
        node = tree.node_at(self.workspace, entry)
        if isinstance(entry, (tree.ProjectRef, tree.WorktreeRef)) and node.expanded:
            node.expanded = False
            self._invalidate()
            return
        parent = tree.parent_of(entry)
        if parent is not None:
            self.cursor = self.flat().index(parent)

    def nav_right(self) -> None:
        """Expand the selected node, or step into its first child."""
        entry = self.selection()
        if entry is None or isinstance(entry, tree.SessionRef):
            return
        node = tree.node_at(self.workspace, entry)
        if not node.expanded:
            node.expanded = True
            self._invalidate()
            return
        children = node.worktrees if isinstance(node, Project) else node.sessions
        if children:
            self.move_cursor(1)

    def jump_project(self, forward: bool) -> None:
        flat = self.flat()
        positions = range(self.cursor + 1, len(flat)) if forward else range(self.cursor - 1, -1, -1)
        for pos in positions:
            if isinstance(flat[pos], tree.ProjectRef):
                self.cursor = pos
                return

    def jump_to(self, predicate: Callable[[Session, float], bool], forward: bool, empty_message: str) -> None:
        """Move to the next session satisfying predicate, expanding collapsed ancestors."""
        now = time.time()
        full = tree.flatten(self.workspace, include_collapsed=True)
        current = self.selection()
        start = full.index(current) if current in full else None

        def matches(pos: int) -> bool:
            entry = full[pos]
            return isinstance(entry, tree.SessionRef) and predicate(tree.node_at(self.workspace, entry), now)

        pos = attention.find_candidate(len(full), start, matches, forward)
        if pos is None:
            self.status = empty_message
            return
        target = full[pos]
        tree.reveal(self.workspace, target)
        self.view.invalidate()
        self.cursor = self.flat().index(target)

    # Normal-mode actions

    def action_select(self) -> None:
        entry = self.selection()
        match entry:
            case tree.SessionRef():
                name = tree.node_at(self.workspace, entry).name
                self._run_loading(lambda: self.attach(name))
            case tree.ProjectRef() | tree.WorktreeRef():
                tree.toggle_expanded(self.workspace, entry)
                self._invalidate()

    def attach(self, name: str) -> None:
        """Switch the enclosing tmux client, or suspend the UI and attach in the foreground."""
        if tmux.is_inside_tmux():
            tmux.switch_client(name)
        else:
            with self.host.suspend():
                tmux.attach_foreground(name)
        self._last_rescan = float("-inf")

    def action_add_worktree(self) -> None:
        project = self._selected_project()
        if project is None:
            self.status = "Select a project first (press p to add one)"
            return
        self.mode = Input(AddWorktree(project.path), InputBuffer("branch: "))

    def action_add_session(self) -> None:
        selected = self._selected_worktree()
        if selected is None:
            self.status = "Select a worktree first"
            return
        project, wt = selected
        self.mode = Input(AddSession(project.path, wt.path), InputBuffer("session name (optional): "))

    def action_open_run(self) -> None:
        selected = self._selected_worktree()
        if selected is None:
            self.status = "Select a worktree first"
            return
        project, wt = selected
        self.mode = Input(OpenRun(project.path, wt.path), InputBuffer("run: "))

    def action_delete(self) -> None:
        entry = self.selection()
        match entry:
            case tree.SessionRef():
                project = self.workspace.projects[entry.project]
                wt = project.worktrees[entry.worktree]
                session = wt.sessions[entry.session]
                self.mode = Confirm(
                    f"Kill session '{session.name}'?",
                    DeleteSession(project.path, wt.path, session.name),
                )
            case tree.WorktreeRef():
                project = self.workspace.projects[entry.project]
                wt = project.worktrees[entry.worktree]
                if wt.is_main:
                    self.status = "Cannot delete main worktree"
                    return
                if git_worktree.is_branch_merged(project.path, wt.branch, project.default_branch):
                    message = f"Delete worktree '{wt.name}'?"
                else:
                    message = f"Delete UNMERGED worktree '{wt.name}'? Changes will be lost!"
                self.mode = Confirm(message, DeleteWorktree(project.path, wt.path))
            case tree.ProjectRef():
                project = self.workspace.projects[entry.project]
                self.mode = Confirm(
                    f"Unregister project '{project.name}'? (files not deleted)",
                    DeleteProject(project.path),
                )

    def action_clean(self) -> None:
        project = self._selected_project()
        targets = [project] if project is not None else list(self.workspace.projects)

        def job() -> None:
            removed: list[str] = []
            for p in targets:
                try:
                    removed.extend(git_worktree.clean_merged(p.path, p.default_branch))
                except RuntimeError:
                    if project is not None:
                        raise
                    logger.warning("Clean failed for project", extra={"project": p.name}, exc_info=True)
            self.refresh_all()
            self.status = f"Cleaned: {', '.join(removed)}" if removed else "No merged worktrees to clean"

        self._run_loading(job)

    def action_edit_config(self) -> None:
        project = self._selected_project()
        if project is None:
            self.status = "Select a project or worktree"
            return
        self.mode = Config(project.path)

    def action_rename(self) -> None:
        entry = self.selection()
        match entry:
            case tree.WorktreeRef():
                project = self.workspace.projects[entry.project]
                wt = project.worktrees[entry.worktree]
                self.mode = Input(SetAlias(project.path, wt.path), InputBuffer("alias: ", wt.alias or ""))
            case tree.SessionRef():
                project = self.workspace.projects[entry.project]
                wt = project.worktrees[entry.worktree]
                session = wt.sessions[entry.session]
                self.mode = Input(
                    RenameSession(project.path, wt.path, session.name),
                    InputBuffer("name: ", session.name),
                )
            case _:
                self.status = "Select a worktree or session"

    def action_dismiss(self) -> None:
        selected = self._selected_session()
        if selected is None:
            self.status = "Select a session"
            return
        session = selected[2]
        outcome = attention.dismiss(session)
        self.status = f"{outcome.capitalize()} '{session.display_name}'"

    def action_move(self) -> None:
        entry = self.selection()
        match entry:
            case tree.ProjectRef():
                self.mode = Move(self.workspace.projects[entry.project].path)
            case tree.SessionRef():
                project = self.workspace.projects[entry.project]
                wt = project.worktrees[entry.worktree]
                self.mode = MoveSession(project.path, wt.path, wt.sessions[entry.session].name)
            case _:
                self.status = "Select a project or session to move"

    def action_send_command(self) -> None:
        selected = self._selected_session()
        if selected is None:
            self.status = "Select a session"
            return
        self.mode = Input(SendCommand(selected[2].name), InputBuffer("send: "))

    def action_send_interrupt(self) -> None:
        selected = self._selected_session()
        if selected is None:
            self.status = "Select a session"
            return
        tmux.send_interrupt(selected[2].name)
        self.status = f"Sent Ctrl-C to '{selected[2].display_name}'"

    def action_git(self) -> None:
        selected = self._selected_worktree()
        if selected is None:
            self.status = "Select a worktree first"
            return
        project, wt = selected
        self.mode = GitPopup(project.path, wt.path)

    # Input mode

    def _dispatch_input(self, mode: Input, event: Event) -> None:
        buf = mode.buffer
        match event:
            case InputChar(char=ch):
                buf.insert(ch)
            case Action.BACKSPACE:
                buf.backspace()
            case Action.DELETE_CHAR:
                buf.delete()
            case Action.LEFT:
                buf.left()
            case Action.RIGHT:
                buf.right()
            case Action.HOME:
                buf.home()
            case Action.END:
                buf.end()
            case Action.TAB | Action.DOWN:
                buf.cycle_completion(forward=True)
            case Action.BACKTAB | Action.UP:
                buf.cycle_completion(forward=False)
            case Action.CANCEL:
                self.mode = Normal()
            case Action.SELECT:
                self.mode = Normal()
                self._submit_input(mode.context, buf.value.strip())

    def _submit_input(self, context, value: str) -> None:
        match context:
            case AddProject():
                if value:
                    self._register_project(expand_path(value))
            case AddWorktree(project=pp):
                if value:
                    self._run_loading(lambda: self._create_worktree(pp, value))
            case AddSession(project=pp, worktree=wp):
                self.mode = Input(AddSessionCommand(pp, wp, value or None), InputBuffer("command (optional): "))
            case AddSessionCommand(project=pp, worktree=wp, name=name):
                self._create_session(pp, wp, name, value or None)
            case OpenRun(project=pp, worktree=wp):
                if value:
                    self._run_loading(lambda: self._open_run(pp, wp, value))
            case SetAlias(project=pp, worktree=wp):
                self._set_alias(pp, wp, value)
            case RenameSession(project=pp, worktree=wp, session=name):
                if value and value != name:
                    self._rename_session(pp, wp, name, value)
            case SendCommand(session=name):
                if value:
                    tmux.send_keys(name, value, enter=True)
                    self.status = f"Sent to '{name}'"

    def _register_project(self, path: Path) -> None:
        project = ops.register_project(path, self.config, self.workspace)
        self.workspace.projects.append(project)
        self._save_config()
        self._invalidate()
        self._select((project.path,))
        self.status = f"Project registered: {project.name}"

    def _create_worktree(self, project_path: str, branch: str) -> None:
        project = self._project(project_path)
        wt_path = ops.create_worktree(project, branch)
        self.refresh_all()
        self._select((project.path, wt_path))
        self.status = f"Created worktree: {branch}"

    def _create_session(self, project_path: str, wt_path: str, name: str | None, command: str | None) -> None:
        project, wt = self._worktree(project_path, wt_path)
        tmux_name = ops.create_session(project, wt, name, command)
        self.refresh_all()
        self._select((project.path, wt.path, tmux_name))
        self.status = f"Session '{tmux_name}' created"

    def _open_run(self, project_path: str, wt_path: str, command: str) -> None:
        project, wt = self._worktree(project_path, wt_path)
        name = ops.create_ephemeral_session(project, wt, command)
        self.attach(name)

    def _set_alias(self, project_path: str, wt_path: str, alias: str) -> None:
        project, wt = self._worktree(project_path, wt_path)
        ops.set_alias(self.config, project, wt, alias)
        self._save_config()
        prefix = wt.session_prefix(project.name)
        for session in wt.sessions:
            session.display_name = reconcile.strip_prefix(session.name, prefix)
        if alias:
            self.status = f"Alias '{alias}' set for '{wt.branch}'"
        else:
            self.status = f"Alias cleared for '{wt.branch}'"

    def _rename_session(self, project_path: str, wt_path: str, old_name: str, new_name: str) -> None:
        project, wt, session = self._session(project_path, wt_path, old_name)
        new_name = tmux_safe(new_name)
        tmux.rename_session(old_name, new_name)
        session.name = new_name
        session.display_name = reconcile.strip_prefix(new_name, wt.session_prefix(project.name))
        self.status = f"Session renamed to '{new_name}'"

    # Git popup

    def _dispatch_git(self, mode: GitPopup, event: Event) -> None:
        """Run the chosen git operation on the popup's worktree. Any other key closes the popup."""
        self.mode = Normal()
        project, wt = self._worktree(mode.project, mode.worktree)
        operation = self._git_operation(event, wt.path, project.default_branch)
        if operation is None:
            return
        self._run_loading(lambda: self._run_git(mode.project, mode.worktree, operation))

    def _git_operation(self, event: Event, wt_path: str, default_branch: str) -> Callable[[], str] | None:
        match event:
            case Action.GIT_PULL:
                return lambda: git_worktree.pull(wt_path)
            case Action.GIT_PUSH:
                return lambda: git_worktree.push(wt_path)
            case Action.GIT_PULL_REBASE:
                return lambda: git_worktree.pull_rebase(wt_path, default_branch)
            case Action.GIT_MERGE_FROM:
                return lambda: git_worktree.merge_from(wt_path, default_branch)
            case Action.GIT_MERGE_INTO:
                return lambda: git_worktree.merge_into(wt_path, default_branch)
        return None

    def _run_git(self, project_path: str, wt_path: str, operation: Callable[[], str]) -> None:
        output = operation()
        _, wt = self._worktree(project_path, wt_path)
        wt.git_info = git_info.get_git_info(wt.path)
        lines = [line.strip() for line in output.splitlines() if line.strip()]
        self.status = lines[-1] if lines else "Done"

    # Confirm mode

    def _dispatch_confirm(self, mode: Confirm, event: Event) -> None:
        self.mode = Normal()
        if event in (Action.CONFIRM, Action.SELECT):
            pending = mode.pending
            self._run_loading(lambda: self._execute(pending))

    def _execute(self, pending: PendingAction) -> None:
        match pending:
            case DeleteProject(project=pp):
                project = self._project(pp)
                ops.unregister_project(pp, self.config, self.workspace)
                self._save_config()
                self._invalidate()
                self.status = f"Unregistered: {project.name}"
            case DeleteWorktree(project=pp, worktree=wp):
                project, wt = self._worktree(pp, wp)
                ops.delete_worktree(project, wt)
                project.worktrees = [w for w in project.worktrees if w.path != wp]
                self._invalidate()
                self.status = f"Deleted: {wt.branch}"
            case DeleteSession(project=pp, worktree=wp, session=name):
                _, wt, _ = self._session(pp, wp, name)
                tmux.kill_session(name)
                wt.sessions = [s for s in wt.sessions if s.name != name]
                self._invalidate()
                self.status = f"Killed session: {name}"

    # Config mode

    def _dispatch_config(self, mode: Config, event: Event) -> None:
        self.mode = Normal()
        if event is Action.EDIT_CONFIG:
            self.edit_project_config(self._project(mode.project))

    def edit_project_config(self, project: Project) -> None:
        """Open `.gtrconfig` in $EDITOR, then reload it."""
        editor = shlex.split(os.environ.get("EDITOR") or "vi")
        path = project_config_path(project.path)
        with self.host.suspend():
            subprocess.run([*editor, str(path)])
        project.config = load_project_config(project.path)
        self.status = f"Reloaded {path.name}"

    # Move modes

    def _dispatch_move(self, mode: Move, event: Event) -> None:
        match event:
            case Action.UP | Action.DOWN:
                self._move_project(mode.project, -1 if event is Action.UP else 1)
            case Action.CANCEL | Action.SELECT | Action.MOVE:
                self.mode = Normal()
                self._save_config()
                self.status = "Project order saved"

    def _move_project(self, path: str, delta: int) -> None:
        projects = self.workspace.projects
        idx = next((i for i, p in enumerate(projects) if p.path == path), None)
        if idx is None or not 0 <= idx + delta < len(projects):
            return
        projects[idx], projects[idx + delta] = projects[idx + delta], projects[idx]
        self.config.move_project(path, delta)
        self.view.invalidate()
        self._select((path,))

    def _dispatch_move_session(self, mode: MoveSession, event: Event) -> None:
        match event:
            case Action.UP | Action.DOWN:
                self._move_session(mode, -1 if event is Action.UP else 1)
            case Action.CANCEL | Action.SELECT | Action.MOVE:
                self.mode = Normal()

    def _move_session(self, mode: MoveSession, delta: int) -> None:
        _, wt = self._worktree(mode.project, mode.worktree)
        idx = next((i for i, s in enumerate(wt.sessions) if s.name == mode.session), None)
        if idx is None or not 0 <= idx + delta < len(wt.sessions):
            return
        wt.sessions[idx], wt.sessions[idx + delta] = wt.sessions[idx + delta], wt.sessions[idx]
        self.view.invalidate()
        self._select((mode.project, mode.worktree, mode.session))

    # Search mode

    def _dispatch_search(self, mode: Search, event: Event) -> None:
        match event:
            case InputChar(char=ch):
                mode.query += ch
                self._update_search(mode)
            case Action.BACKSPACE:
                mode.query = mode.query[:-1]
                self._update_search(mode)
            case Action.SELECT | Action.TAB | Action.DOWN:
                self._cycle_search(mode, 1)
            case Action.BACKTAB | Action.UP:
                self._cycle_search(mode, -1)
            case Action.CANCEL:
                self.mode = Normal()

    def _update_search(self, mode: Search) -> None:
        mode.match_index = 0
        query = mode.query.lower()
        if not query:
            mode.matches = []
            return
        flat = self.flat()
        mode.matches = [i for i, entry in enumerate(flat) if query in tree.searchable_text(self.workspace, entry)]
        if not mode.matches:
            self.status = f"No match for '{mode.query}'"
            return
        self.cursor = mode.matches[0]
        if len(mode.matches) == 1:
            self.mode = Normal()

    def _cycle_search(self, mode: Search, step: int) -> None:
        if not mode.matches:
            return
        mode.match_index = (mode.match_index + step) % len(mode.matches)
        self.cursor = tree.clamp(mode.matches[mode.match_index], len(self.flat()))

    # Timers

    def tick(self, now: float | None = None) -> bool:
        """Advance the rescan, activity and capture timers. Returns True if any fired.

        A full rescan also refreshes activity, so the activity poll is skipped
        on that tick.
        """
        if self.loading:
            return False
        now = time.monotonic() if now is None else now
        fired = False
        try:
            self._poll_fetch()
            if now - self._last_rescan >= RESCAN_INTERVAL_MS / 1000:
                self._last_rescan = self._last_activity = now
                fired = True
                self.refresh_all()
            elif now - self._last_activity >= ACTIVITY_POLL_MS / 1000:
                self._last_activity = now
                fired = True
                self.poll_activity()
            if now - self._last_capture >= CAPTURE_INTERVAL_MS / 1000:
                self._last_capture = now
                fired = True
                self.refresh_captures()
        except Exception as e:
            logger.warning("Periodic refresh failed", exc_info=True)
            self.status = f"Refresh error: {e}"
        return fired

    def refresh_all(self) -> list[str]:
        """Full reconciliation against live git and tmux state, keeping the cursor on the same node."""
        key = self._selected_key()
        roster = tmux.list_sessions_with_paths()
        activity = tmux.session_activity()
        errors = reconcile.refresh_workspace(self.workspace, self.config.aliases_by_path(), roster, activity)
        self._restore_cursor(key)
        if errors:
            self.status = errors[0]
        return errors

    def poll_activity(self) -> bool:
        return reconcile.update_activity(self.workspace, tmux.session_activity())

    def refresh_captures(self) -> None:
        """Capture the selected session's pane and load git info for its worktree."""
        selected = self._selected_worktree()
        if selected is None:
            return
        _, wt = selected
        if wt.git_info is None:
            wt.git_info = git_info.get_git_info(wt.path)
        self._maybe_start_fetch(wt)

        selected_session = self._selected_session()
        if selected_session is None:
            return
        session = selected_session[2]
        raw = tmux.capture_pane(session.name)
        if raw is not None:
            session.pane_capture = tmux.trim_capture(raw)

    def _maybe_start_fetch(self, wt: Worktree) -> None:
        if self._fetch is not None:
            return
        now = time.time()
        if wt.last_fetched is not None and now - wt.last_fetched < FETCH_INTERVAL_S:
            return
        wt.last_fetched = now
        self._fetch = git_info.start_fetch(wt.path)

    def _poll_fetch(self) -> None:
        if self._fetch is None:
            return
        result = self._fetch.poll()
        if result is None:
            return
        probe, self._fetch = self._fetch, None
        for project in self.workspace.projects:
            wt = project.get_worktree(probe.path)
            if wt is None:
                continue
            wt.fetch_failed = not result
            if result:
                wt.git_info = git_info.get_git_info(wt.path)

    def shutdown(self) -> None:
        if self._fetch is not None:
            self._fetch.kill()
            self._fetch = None
