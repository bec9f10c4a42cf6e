"""Discrete input events and the key map that produces them."""

from dataclasses import dataclass
from enum import Enum


class Action(Enum):
    QUIT = "quit"
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    SELECT = "select"
    CANCEL = "cancel"
    BACKSPACE = "backspace"
    DELETE_CHAR = "delete_char"
    HOME = "home"
    END = "end"
    TAB = "tab"
    BACKTAB = "backtab"
    ADD_PROJECT = "add_project"
    ADD_WORKTREE = "add_worktree"
    ADD_SESSION = "add_session"
    OPEN_RUN = "open_run"
    DELETE = "delete"
    CLEAN = "clean"
    EDIT_CONFIG = "edit_config"
    RENAME = "rename"
    REFRESH = "refresh"
    HELP = "help"
    CONFIRM = "confirm"
    NEXT_ATTENTION = "next_attention"
    PREV_ATTENTION = "prev_attention"
    NEXT_ACTIVE = "next_active"
    DISMISS = "dismiss"
    MOVE = "move"
    NEXT_PROJECT = "next_project"
    PREV_PROJECT = "prev_project"
    SEARCH = "search"
    SEND_COMMAND = "send_command"
    SEND_INTERRUPT = "send_interrupt"
    GIT = "git"
    GIT_PULL = "git_pull"
    GIT_PUSH = "git_push"
    GIT_PULL_REBASE = "git_pull_rebase"
    GIT_MERGE_FROM = "git_merge_from"
    GIT_MERGE_INTO = "git_merge_into"


@dataclass(frozen=True)
class InputChar:
    """A printable character typed while a text field has focus."""

    char: str


@dataclass(frozen=True)
class MouseClick:
    """Left click on a tree row, as an index into the visible flat view."""

    row: int


Event = Action | InputChar | MouseClick


_SPECIAL_KEYS = {
    "enter": Action.SELECT,
    "escape": Action.CANCEL,
    "backspace": Action.BACKSPACE,
    "delete": Action.DELETE_CHAR,
    "up": Action.UP,
    "down": Action.DOWN,
    "left": Action.LEFT,
    "right": Action.RIGHT,
    "home": Action.HOME,
    "end": Action.END,
    "tab": Action.TAB,
    "shift+tab": Action.BACKTAB,
}

_NORMAL_KEYS = {
    "ctrl+d": Action.NEXT_PROJECT,
    "ctrl+u": Action.PREV_PROJECT,
}

_NORMAL_CHARS = {
    "q": Action.QUIT,
    "j": Action.DOWN,
    "k": Action.UP,
    "h": Action.LEFT,
    "l": Action.RIGHT,
    "p": Action.ADD_PROJECT,
    "w": Action.ADD_WORKTREE,
    "s": Action.ADD_SESSION,
    "o": Action.OPEN_RUN,
    "d": Action.DELETE,
    "c": Action.CLEAN,
    "e": Action.EDIT_CONFIG,
    "r": Action.RENAME,
    "R": Action.REFRESH,
    "?": Action.HELP,
    "y": Action.CONFIRM,
    "n": Action.NEXT_ATTENTION,
    "N": Action.PREV_ATTENTION,
    "a": Action.NEXT_ACTIVE,
    "x": Action.DISMISS,
    "m": Action.MOVE,
    "]": Action.NEXT_PROJECT,
    "[": Action.PREV_PROJECT,
    "/": Action.SEARCH,
    "S": Action.SEND_COMMAND,
    "C": Action.SEND_INTERRUPT,
    "g": Action.GIT,
}

_GIT_CHARS = {
    "p": Action.GIT_PULL,
    "P": Action.GIT_PUSH,
    "r": Action.GIT_PULL_REBASE,
    "m": Action.GIT_MERGE_FROM,
    "M": Action.GIT_MERGE_INTO,
}


def translate_key(key: str, character: str | None, text_entry: bool, git_popup: bool = False) -> Event | None:
    """Map a terminal key press to an event.

    With text_entry set, printable characters are delivered verbatim so that
    letters bound to actions can still be typed. With git_popup set, the
    popup's letters map to git operations instead of their usual actions.
    """
    if key in _SPECIAL_KEYS:
        return _SPECIAL_KEYS[key]
    printable = character if character and len(character) == 1 and character.isprintable() else None
    if text_entry:
        return InputChar(printable) if printable else None
    if git_popup and printable in _GIT_CHARS:
        return _GIT_CHARS[printable]
    if key in _NORMAL_KEYS:
        return _NORMAL_KEYS[key]
    if printable:
        return _NORMAL_CHARS.get(printable)
    return None
