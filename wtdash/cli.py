import logging
import shutil
import sys

import click

from wtdash.logging_config import setup_logging

logger = logging.getLogger(__name__)


def _check_prerequisites() -> None:
    """Verify tmux is available, exit with a helpful message if not."""
    if not shutil.which("tmux"):
        click.echo("Missing required tool:\n", err=True)
        click.echo("  • tmux (brew install tmux on macOS, apt install tmux on Linux)", err=True)
        sys.exit(1)


@click.command()
@click.option("--debug", is_flag=True, help="Log at DEBUG level to ~/.cache/wtdash/wtdash.log")
def cli(debug: bool) -> None:
    """wtdash: one tree for your git projects, their worktrees and tmux sessions."""
    _check_prerequisites()
    log_file = setup_logging(debug=debug)
    logger.info("Starting wtdash", extra={"log_file": str(log_file), "debug": debug})

    # Lazy import: pulling in Textual is slow, and the prerequisite check should fail fast.
    from wtdash.app import DashboardApp

    DashboardApp().run()
