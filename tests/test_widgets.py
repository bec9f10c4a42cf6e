import pytest

from wtdash.input_buffer import InputBuffer
from wtdash.models import CommitSummary, GitInfo, Project, ProjectConfig, Workspace, Worktree
from wtdash.modes import Confirm, DeleteSession, GitPopup, Input, Normal, Search, SendCommand
from wtdash.tree import ProjectRef, SessionRef, WorktreeRef
from wtdash.widgets.overlay import HELP_KEYS, config_text, git_text, help_text
from wtdash.widgets.preview import project_summary, worktree_summary
from wtdash.widgets.status_bar import status_line
from wtdash.widgets.tree_view import render_row, visible_window

NOW = 1_000_000.0


class TestRenderRow:
    def test_project_row(self, workspace):
        assert render_row(workspace, ProjectRef(0), NOW).plain == "▾ alpha"

        workspace.projects[0].expanded = False
        assert render_row(workspace, ProjectRef(0), NOW).plain == "▸ alpha"

    def test_project_without_worktrees_has_no_marker(self):
        ws = Workspace(projects=[Project(name="empty", path="/e")])
        assert render_row(ws, ProjectRef(0), NOW).plain == "  empty"

    def test_worktree_row(self, workspace):
        main = render_row(workspace, WorktreeRef(0, 0), NOW).plain
        assert main == "  ▾ main (main)"

        feat = workspace.projects[0].worktrees[1]
        feat.alias = "login"
        feat.fetch_failed = True
        assert render_row(workspace, WorktreeRef(0, 1), NOW).plain == "  ▾ login (feat/x) ⚠"

    @pytest.mark.parametrize("fields,icon", [
        ({}, "○"),
        ({"muted": True}, "⊘"),
        ({"has_bell": True}, "●"),
        ({"last_activity": NOW - 1, "has_running_app": True}, "◉"),
    ])
    def test_session_icon(self, workspace, fields, icon):
        session = workspace.projects[0].worktrees[0].sessions[0]
        for key, value in fields.items():
            setattr(session, key, value)

        row = render_row(workspace, SessionRef(0, 0, 0), NOW).plain

        assert row.strip().startswith(f"{icon} shell")

    def test_session_idle_label(self, workspace):
        workspace.projects[0].worktrees[0].sessions[0].last_activity = NOW - 125

        assert render_row(workspace, SessionRef(0, 0, 0), NOW).plain.endswith("shell 2m")


class TestVisibleWindow:
    @pytest.mark.parametrize("cursor,total,height,offset,expected", [
        (5, 10, 20, 3, 0),
        (0, 50, 10, 5, 0),
        (12, 50, 10, 0, 3),
        (7, 50, 10, 3, 3),
        (49, 50, 10, 0, 40),
        (3, 50, 0, 7, 0),
    ])
    def test_offset(self, cursor, total, height, offset, expected):
        assert visible_window(cursor, total, height, offset) == expected


class TestStatusLine:
    def test_normal_shows_hints(self):
        line = status_line(Normal(), None, False).plain

        assert line.startswith(" NORMAL ")
        assert "? help" in line

    def test_status_replaces_hints(self):
        line = status_line(Normal(), "Refreshed", False).plain

        assert "? help" not in line
        assert line.endswith("Refreshed")

    def test_loading(self):
        assert status_line(Normal(), "old", True).plain.endswith("working…")

    def test_input_shows_prompt_and_value(self):
        mode = Input(SendCommand("s"), InputBuffer("command: ", "make"))

        assert "command: make" in status_line(mode, None, False).plain

    def test_confirm(self):
        mode = Confirm("Kill session 's'?", DeleteSession("/p", "/p", "s"))

        assert "Kill session 's'?  (y/n)" in status_line(mode, None, False).plain

    def test_search_counter(self):
        mode = Search(query="ma", match_index=1, matches=[1, 7, 10])

        assert "/ma  2/3" in status_line(mode, None, False).plain

    def test_git_popup_hints(self):
        line = status_line(GitPopup("/p", "/p"), None, False).plain

        assert line.startswith(" GIT ")
        assert "P push" in line


class TestPreview:
    def test_worktree_without_git_info(self):
        wt = Worktree(name="main", branch="main", path="/repos/alpha")

        assert "loading git info" in worktree_summary(wt).plain

    def test_worktree_not_on_a_branch(self):
        wt = Worktree(name="wip", branch="HEAD", path="/repos/wip", git_info=GitInfo(available=False))

        text = worktree_summary(wt).plain

        assert "no git info" in text
        assert "loading" not in text
        assert "clean" not in text

    def test_worktree_summary(self):
        wt = Worktree(
            name="alpha-feat-x", branch="feat/x", path="/repos/alpha-feat-x", fetch_failed=True,
            git_info=GitInfo(
                remote_branch="origin/feat/x", ahead=2, behind=0,
                recent_commits=[CommitSummary(hash="abc123", message="Add login")],
                modified_files=["src/app.py"],
            ),
        )

        text = worktree_summary(wt).plain

        assert "remote: origin/feat/x  ↑ 2 ahead  ↓ 0 behind" in text
        assert "fetch failed" in text
        assert "abc123 Add login" in text
        assert "src/app.py" in text
        assert "clean" not in text

    def test_clean_worktree(self):
        wt = Worktree(name="main", branch="main", path="/r", git_info=GitInfo())

        text = worktree_summary(wt).plain

        assert "no upstream branch" in text
        assert "● clean" in text

    def test_project_summary(self, workspace):
        text = project_summary(workspace.projects[0]).plain

        assert "default branch: main" in text
        assert "2 worktrees, 3 sessions" in text


class TestOverlay:
    def test_help_lists_every_key(self):
        text = help_text().plain

        for key, desc in HELP_KEYS:
            assert key in text
            assert desc in text

    def test_config_empty(self):
        text = config_text(Project(name="alpha", path="/repos/alpha")).plain

        assert "/repos/alpha/.gtrconfig" in text
        assert "(empty)" in text

    def test_config_values(self):
        project = Project(
            name="alpha", path="/repos/alpha",
            config=ProjectConfig(post_create="npm install", copy_include=[".env", ".env.local"]),
        )

        text = config_text(project).plain

        assert "hooks.postCreate  npm install" in text
        assert "copy.include      .env, .env.local" in text
        assert "copy.exclude      -" in text

    def test_git_popup_lists_operations(self):
        wt = Worktree(name="alpha-feat-x", branch="feat/x", path="/repos/alpha-feat-x", alias="login")

        text = git_text(wt, "main").plain

        assert text.startswith("git: login (feat/x)")
        assert "pull --rebase origin main" in text
        assert "merge into main" in text

    def test_git_popup_truncates_long_branch(self):
        wt = Worktree(name="main", branch="main", path="/r")

        text = git_text(wt, "release/2024-q4").plain

        assert "merge from release/2…" in text
        assert "release/2024" not in text
