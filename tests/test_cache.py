from wtdash.models import Project, Workspace, Worktree
from wtdash.services import cache
from wtdash.services.cache import CacheState, SessionFlags, apply_cache, load_cache, save_cache, snapshot_cache


def _bare_workspace() -> Workspace:
    """The fixture layout as it looks straight after loading: no sessions yet."""
    return Workspace(projects=[
        Project(name="alpha", path="/repos/alpha", worktrees=[
            Worktree(name="main", branch="main", path="/repos/alpha", is_main=True),
            Worktree(name="alpha-feat-x", branch="feat/x", path="/repos/alpha-feat-x"),
        ]),
    ])


class TestLoadSave:
    def test_missing_is_default(self):
        assert load_cache() == CacheState()

    def test_round_trip(self):
        state = CacheState(
            worktree_sessions={"/repos/alpha": ["alpha-main-shell"]},
            project_expanded={"/repos/alpha": False},
            session_flags={"alpha-main-shell": SessionFlags(muted=True)},
            cursor=4,
        )

        save_cache(state)

        assert load_cache() == state

    def test_corrupt_file_starts_fresh(self):
        cache.CACHE_DIR.mkdir(parents=True)
        (cache.CACHE_DIR / "state.json").write_text("{not json")

        assert load_cache() == CacheState()

    def test_wrong_shape_starts_fresh(self):
        cache.CACHE_DIR.mkdir(parents=True)
        (cache.CACHE_DIR / "state.json").write_text('{"cursor": "lots"}')

        assert load_cache() == CacheState()


class TestSnapshot:
    def test_captures_ui_state(self, workspace):
        workspace.projects[1].expanded = False
        workspace.projects[0].worktrees[1].sessions[1].muted = True
        workspace.projects[0].worktrees[0].sessions[0].running_app_suppressed = True

        state = snapshot_cache(workspace, cursor=3)

        assert state.cursor == 3
        assert state.project_expanded["/repos/beta"] is False
        assert state.worktree_sessions["/repos/alpha-feat-x"] == ["alpha-feat-x-claude", "alpha-feat-x-server"]
        assert state.session_flags == {
            "alpha-main-shell": SessionFlags(suppressed=True),
            "alpha-feat-x-server": SessionFlags(muted=True),
        }


class TestApply:
    def test_restores_sessions_in_order(self, workspace):
        state = snapshot_cache(workspace, cursor=0)
        fresh = _bare_workspace()

        apply_cache(fresh, state)

        feat = fresh.projects[0].worktrees[1]
        assert [s.name for s in feat.sessions] == ["alpha-feat-x-claude", "alpha-feat-x-server"]
        assert [s.display_name for s in feat.sessions] == ["claude", "server"]
        assert feat.sessions[0].last_activity is None
        assert feat.sessions[0].pane_capture is None

    def test_restores_flags_and_expansion(self):
        state = CacheState(
            worktree_sessions={"/repos/alpha": ["alpha-main-shell"]},
            worktree_expanded={"/repos/alpha-feat-x": False},
            project_expanded={"/repos/alpha": False},
            session_flags={"alpha-main-shell": SessionFlags(suppressed=True, muted=True)},
        )
        fresh = _bare_workspace()

        apply_cache(fresh, state)

        alpha = fresh.projects[0]
        assert alpha.expanded is False
        assert alpha.worktrees[0].expanded is True
        assert alpha.worktrees[1].expanded is False
        shell = alpha.worktrees[0].sessions[0]
        assert shell.running_app_suppressed and shell.muted

    def test_does_not_touch_populated_worktrees(self, workspace):
        state = CacheState(worktree_sessions={"/repos/alpha": ["stale"]})

        apply_cache(workspace, state)

        assert [s.name for s in workspace.projects[0].worktrees[0].sessions] == ["alpha-main-shell"]

    def test_unknown_paths_ignored(self):
        fresh = _bare_workspace()

        apply_cache(fresh, CacheState(worktree_sessions={"/gone": ["x"]}, project_expanded={"/gone": False}))

        assert fresh.projects[0].expanded is True
        assert all(not wt.sessions for wt in fresh.projects[0].worktrees)
