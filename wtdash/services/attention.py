"""Attention classification for sessions.

Nothing here is stored: every status is derived from the session's activity
fields and the current wall-clock time.
"""

from collections.abc import Callable
from enum import Enum

from wtdash.constants import IDLE_SECS
from wtdash.models import Session


class SessionStatus(Enum):
    MUTED = "muted"
    BELL = "bell"
    ACTIVE = "active"
    NEEDS_ATTENTION = "needs_attention"
    IDLE = "idle"


def is_currently_active(session: Session, now: float) -> bool:
    return session.last_activity is not None and now - session.last_activity < IDLE_SECS


def needs_attention(session: Session, now: float) -> bool:
    return (
        not session.muted
        and not is_currently_active(session, now)
        and session.has_running_app
        and not session.running_app_suppressed
    )


def classify(session: Session, now: float) -> SessionStatus:
    if session.muted:
        return SessionStatus.MUTED
    if session.has_bell:
        return SessionStatus.BELL
    if is_currently_active(session, now):
        return SessionStatus.ACTIVE
    if needs_attention(session, now):
        return SessionStatus.NEEDS_ATTENTION
    return SessionStatus.IDLE


def find_candidate(
    count: int, start: int | None, matches: Callable[[int], bool], forward: bool = True,
) -> int | None:
    """Circular scan over positions 0..count-1, beginning just past start.

    start=None scans from the beginning (forward) or the end (backward).
    The start position itself is checked last, so a lone match is still found.
    """
    if count == 0:
        return None
    if start is None:
        start = -1 if forward else count
    step = 1 if forward else -1
    for offset in range(1, count + 1):
        pos = (start + step * offset) % count
        if matches(pos):
            return pos
    return None


def mute(session: Session) -> None:
    session.muted = True
    session.has_bell = False
    session.has_running_app = False
    session.last_activity = None
    session.running_app_suppressed = False


def dismiss(session: Session) -> str:
    """Suppress an unsuppressed running app, otherwise toggle mute.

    Returns what happened: "suppressed", "muted" or "unmuted".
    """
    if not session.muted and session.has_running_app and not session.running_app_suppressed:
        session.running_app_suppressed = True
        return "suppressed"
    if session.muted:
        session.muted = False
        return "unmuted"
    mute(session)
    return "muted"


def idle_label(session: Session, now: float) -> str:
    if session.last_activity is None:
        return ""
    elapsed = max(0, int(now - session.last_activity))
    if elapsed < 60:
        return f"{elapsed}s"
    if elapsed < 3600:
        return f"{elapsed // 60}m"
    return f"{elapsed // 3600}h"
