import logging
from collections.abc import Callable

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.events import Key

from wtdash.config import load_global_config
from wtdash.constants import TICK_MS
from wtdash.controller import Dashboard
from wtdash.events import MouseClick, translate_key
from wtdash.modes import Config, GitPopup, Help
from wtdash.services.cache import load_cache, save_cache
from wtdash.widgets.overlay import Overlay, config_text, git_text, help_text
from wtdash.widgets.preview import PreviewPane
from wtdash.widgets.status_bar import StatusBar
from wtdash.widgets.tree_view import RowClicked, WorkspaceTree

logger = logging.getLogger(__name__)


class DashboardApp(App):
    """wtdash: projects, worktrees and tmux sessions in one tree."""

    TITLE = "wtdash"

    DEFAULT_CSS = """
    Screen {
        layers: base overlay;
    }
    #body {
        height: 1fr;
    }
    """

    def __init__(self, dashboard: Dashboard | None = None) -> None:
        super().__init__()
        if dashboard is None:
            dashboard = Dashboard.from_config(load_global_config(), load_cache())
        dashboard.host = self
        self.dashboard = dashboard

    def compose(self) -> ComposeResult:
        with Horizontal(id="body"):
            yield WorkspaceTree()
            yield PreviewPane()
        yield StatusBar()
        yield Overlay()

    def on_mount(self) -> None:
        self.query_one(WorkspaceTree).focus()
        self.refresh_view()
        self.set_interval(TICK_MS / 1000, self._on_tick)

    def _on_tick(self) -> None:
        if self.dashboard.tick():
            self.refresh_view()

    def refresh_view(self) -> None:
        """Repaint every widget from the dashboard's current state."""
        d = self.dashboard
        self.query_one(WorkspaceTree).show(d.workspace, d.flat(), d.cursor)
        self.query_one(PreviewPane).show(d.workspace, d.selection())
        self.query_one(StatusBar).show(d.mode, d.status, d.loading)
        self.query_one(Overlay).show(self._overlay_content())

    def _overlay_content(self) -> Text | None:
        match self.dashboard.mode:
            case Help():
                return help_text()
            case Config(project=path):
                project = self.dashboard.workspace.get_project(path)
                return config_text(project) if project else None
            case GitPopup(project=project_path, worktree=wt_path):
                project = self.dashboard.workspace.get_project(project_path)
                wt = project.get_worktree(wt_path) if project else None
                return git_text(wt, project.default_branch) if wt else None
        return None

    def redraw_then(self, callback: Callable[[], None]) -> None:
        self.refresh_view()

        def run() -> None:
            callback()
            self._sync()

        self.call_after_refresh(run)

    def _sync(self) -> None:
        if self.dashboard.should_quit:
            self._save_and_exit()
            return
        self.refresh_view()

    def handle_key(self, key: str, character: str | None) -> bool:
        """Translate and dispatch a key press. Returns False if the key is unbound."""
        d = self.dashboard
        event = translate_key(key, character, d.wants_text(), git_popup=d.wants_git_keys())
        if event is None:
            return False
        d.handle(event)
        self._sync()
        return True

    def on_key(self, event: Key) -> None:
        if self.handle_key(event.key, event.character):
            event.prevent_default()
            event.stop()

    def on_row_clicked(self, message: RowClicked) -> None:
        self.dashboard.handle(MouseClick(message.row))
        self._sync()

    async def action_quit(self) -> None:
        self._save_and_exit()

    def _save_and_exit(self) -> None:
        self.dashboard.shutdown()
        try:
            save_cache(self.dashboard.cache_state())
        except OSError:
            logger.warning("Failed to save cache", exc_info=True)
        self.exit()
