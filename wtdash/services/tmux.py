import logging
import os
import subprocess
import time

import libtmux

from wtdash.constants import PASSIVE_COMMANDS, SHELL_NAMES
from wtdash.models import SessionActivity

logger = logging.getLogger(__name__)

# Cached server and pane references to avoid repeated subprocess calls.
# libtmux.Server() is cheap, but .sessions.get() triggers `tmux list-sessions`.
_server: libtmux.Server | None = None
_pane_cache: dict[str, tuple[float, libtmux.Pane]] = {}  # session_name -> (timestamp, pane)
_PANE_CACHE_TTL = 30.0  # seconds

_FIELD_SEP = "\t"


def _get_server() -> libtmux.Server:
    global _server
    if _server is None:
        _server = libtmux.Server()
    return _server


def _get_pane(session_name: str) -> libtmux.Pane | None:
    """Get cached pane reference, refreshing if stale."""
    now = time.monotonic()
    if session_name in _pane_cache:
        ts, pane = _pane_cache[session_name]
        if now - ts < _PANE_CACHE_TTL:
            return pane

    try:
        session = _get_server().sessions.get(session_name=session_name)
        pane = session.active_pane
        _pane_cache[session_name] = (now, pane)
        return pane
    except Exception:
        _pane_cache.pop(session_name, None)
        return None


def invalidate_pane_cache(session_name: str | None = None) -> None:
    """Clear cached pane references."""
    if session_name:
        _pane_cache.pop(session_name, None)
    else:
        _pane_cache.clear()


def _query(*args: str) -> list[str]:
    """Run a tmux query and return its stdout lines. Failures yield no lines."""
    try:
        result = _get_server().cmd(*args)
    except Exception:
        logger.debug("tmux query failed", extra={"args": args}, exc_info=True)
        return []
    if result.stderr:
        logger.debug("tmux query reported errors", extra={"args": args, "stderr": result.stderr})
    return result.stdout or []


def is_inside_tmux() -> bool:
    return bool(os.environ.get("TMUX"))


def list_sessions_with_paths() -> list[tuple[str, str]]:
    """All live sessions as (session name, working directory) pairs."""
    roster = []
    for line in _query("list-sessions", "-F", f"#{{session_name}}{_FIELD_SEP}#{{session_path}}"):
        name, _, path = line.partition(_FIELD_SEP)
        if name and path:
            roster.append((name, path))
    return roster


def _is_running_app(command: str) -> bool:
    command = command.strip().lstrip("-")
    return bool(command) and command not in SHELL_NAMES and command not in PASSIVE_COMMANDS


def session_activity() -> dict[str, SessionActivity]:
    """Per-session activity aggregated across windows.

    Bells are OR'd, the activity timestamp is the newest window's, and a
    session runs an app if any window's foreground command is neither a shell
    nor a passive program.
    """
    fmt = _FIELD_SEP.join([
        "#{session_name}",
        "#{window_bell_flag}",
        "#{window_activity}",
        "#{pane_current_command}",
    ])
    activity: dict[str, SessionActivity] = {}
    for line in _query("list-windows", "-a", "-F", fmt):
        parts = line.split(_FIELD_SEP)
        if len(parts) != 4 or not parts[0]:
            continue
        name, bell, ts, command = parts
        try:
            stamp = float(ts) if ts else 0.0
        except ValueError:
            stamp = 0.0
        current = activity.setdefault(name, SessionActivity())
        current.has_bell = current.has_bell or bell == "1"
        current.last_activity = max(current.last_activity, stamp)
        current.has_running_app = current.has_running_app or _is_running_app(command)
    return activity


def session_exists(name: str) -> bool:
    try:
        return bool(_get_server().has_session(name))
    except Exception:
        return False


def unique_session_name(base: str) -> str:
    """base, or base_2, base_3, ... whichever is free first."""
    if not session_exists(base):
        return base
    n = 2
    while session_exists(f"{base}_{n}"):
        n += 1
    return f"{base}_{n}"


def _apply_session_defaults(session: libtmux.Session) -> None:
    try:
        session.set_option("mouse", "on")
    except Exception:
        logger.debug("Failed to enable mouse on tmux session", extra={"session": session.session_name})


def create_session(name: str, start_dir: str, window_command: str | None = None) -> None:
    """Create a detached session rooted at start_dir."""
    kwargs = {"session_name": name, "start_directory": start_dir, "attach": False}
    if window_command:
        kwargs["window_command"] = window_command
    try:
        session = _get_server().new_session(**kwargs)
    except Exception as e:
        raise RuntimeError(f"Failed to create tmux session '{name}': {e}") from e
    _apply_session_defaults(session)
    logger.info("Created tmux session", extra={"session": name, "path": start_dir})


def create_session_with_command(name: str, start_dir: str, command: str) -> None:
    """Create a session and type command into its shell, so the shell outlives it."""
    create_session(name, start_dir)
    send_keys(name, command, enter=True)


def create_ephemeral_session(name: str, start_dir: str, command: str) -> None:
    """Create a session whose only process is command; it ends when command exits."""
    create_session(name, start_dir, window_command=command)


def capture_pane(session_name: str) -> str | None:
    """Visible pane content with escape sequences, or None if the session is gone."""
    pane = _get_pane(session_name)
    if pane is None:
        return None
    try:
        lines = pane.capture_pane(escape_sequences=True)
    except Exception:
        invalidate_pane_cache(session_name)
        return None
    if isinstance(lines, str):
        return lines
    return "\n".join(lines)


def trim_capture(raw: str) -> str:
    """Drop trailing blank lines."""
    lines = raw.splitlines()
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def send_keys(session_name: str, keys: str, enter: bool = True, literal: bool = False) -> None:
    pane = _get_pane(session_name)
    if pane is None:
        raise RuntimeError(f"Session '{session_name}' not found")
    try:
        pane.send_keys(keys, enter=enter, literal=literal)
    except Exception as e:
        invalidate_pane_cache(session_name)
        raise RuntimeError(f"Failed to send keys to '{session_name}': {e}") from e


def send_interrupt(session_name: str) -> None:
    send_keys(session_name, "C-c", enter=False)


def kill_session(name: str) -> None:
    invalidate_pane_cache(name)
    try:
        _get_server().sessions.get(session_name=name).kill()
    except Exception as e:
        raise RuntimeError(f"Failed to kill tmux session '{name}': {e}") from e


def rename_session(old_name: str, new_name: str) -> None:
    invalidate_pane_cache(old_name)
    try:
        _get_server().sessions.get(session_name=old_name).rename_session(new_name)
    except Exception as e:
        raise RuntimeError(f"Failed to rename tmux session '{old_name}': {e}") from e


def switch_client(name: str) -> None:
    """Point the enclosing tmux client at another session."""
    result = _get_server().cmd("switch-client", "-t", name)
    if result.stderr:
        raise RuntimeError(f"tmux switch-client failed: {' '.join(result.stderr)}")


def attach_foreground(name: str) -> int:
    """Run `tmux attach-session` on the real terminal until the user detaches."""
    result = subprocess.run(["tmux", "attach-session", "-t", name])
    return result.returncode
