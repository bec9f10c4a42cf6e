"""Interaction modes and the data each one carries.

Nodes are referenced by path/name rather than tree index, since a
reconciliation pass can run while a prompt is open.
"""

from dataclasses import dataclass, field

from wtdash.input_buffer import InputBuffer


# Input contexts: what the text being typed is for.

@dataclass(frozen=True)
class AddProject:
    pass


@dataclass(frozen=True)
class AddWorktree:
    project: str


@dataclass(frozen=True)
class AddSession:
    project: str
    worktree: str


@dataclass(frozen=True)
class AddSessionCommand:
    project: str
    worktree: str
    name: str | None


@dataclass(frozen=True)
class OpenRun:
    project: str
    worktree: str


@dataclass(frozen=True)
class SetAlias:
    project: str
    worktree: str


@dataclass(frozen=True)
class RenameSession:
    project: str
    worktree: str
    session: str


@dataclass(frozen=True)
class SendCommand:
    session: str


InputContext = (
    AddProject | AddWorktree | AddSession | AddSessionCommand | OpenRun | SetAlias | RenameSession | SendCommand
)


# Destructive actions waiting for confirmation.

@dataclass(frozen=True)
class DeleteProject:
    project: str


@dataclass(frozen=True)
class DeleteWorktree:
    project: str
    worktree: str


@dataclass(frozen=True)
class DeleteSession:
    project: str
    worktree: str
    session: str


PendingAction = DeleteProject | DeleteWorktree | DeleteSession


# Modes.

@dataclass
class Normal:
    pass


@dataclass
class Input:
    context: InputContext
    buffer: InputBuffer


@dataclass
class Confirm:
    message: str
    pending: PendingAction


@dataclass
class Config:
    project: str


@dataclass
class Move:
    project: str


@dataclass
class MoveSession:
    project: str
    worktree: str
    session: str


@dataclass
class Search:
    query: str = ""
    match_index: int = 0
    matches: list[int] = field(default_factory=list)


@dataclass
class Help:
    pass


@dataclass
class GitPopup:
    project: str
    worktree: str


Mode = Normal | Input | Confirm | Config | Move | MoveSession | Search | Help | GitPopup


def mode_label(mode: Mode) -> str:
    match mode:
        case Normal():
            return "NORMAL"
        case Input():
            return "INPUT"
        case Confirm():
            return "CONFIRM"
        case Config():
            return "CONFIG"
        case Move() | MoveSession():
            return "MOVE"
        case Search():
            return "SEARCH"
        case Help():
            return "HELP"
        case GitPopup():
            return "GIT"
    return ""
