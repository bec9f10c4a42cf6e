import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class InputBuffer:
    """Single-line text field with a cursor and optional directory completion."""

    def __init__(self, prompt: str, value: str = "", complete_paths: bool = False) -> None:
        self.prompt = prompt
        self.value = value
        self.cursor = len(value)
        self.complete_paths = complete_paths
        self.completions: list[str] = []
        self.completion_index: int | None = None
        self._completion_base = ""

    def insert(self, text: str) -> None:
        self.value = self.value[:self.cursor] + text + self.value[self.cursor:]
        self.cursor += len(text)
        self._reset_completions()

    def backspace(self) -> None:
        if self.cursor == 0:
            return
        self.value = self.value[:self.cursor - 1] + self.value[self.cursor:]
        self.cursor -= 1
        self._reset_completions()

    def delete(self) -> None:
        if self.cursor < len(self.value):
            self.value = self.value[:self.cursor] + self.value[self.cursor + 1:]
            self._reset_completions()

    def left(self) -> None:
        self.cursor = max(0, self.cursor - 1)

    def right(self) -> None:
        self.cursor = min(len(self.value), self.cursor + 1)

    def home(self) -> None:
        self.cursor = 0

    def end(self) -> None:
        self.cursor = len(self.value)

    def _reset_completions(self) -> None:
        self.completions = []
        self.completion_index = None

    def cycle_completion(self, forward: bool = True) -> None:
        """Replace the value with the next (or previous) matching directory."""
        if not self.complete_paths:
            return
        if self.completion_index is None:
            self._completion_base = self.value
            self.completions = directory_completions(self.value)
            if not self.completions:
                return
            self.completion_index = 0 if forward else len(self.completions) - 1
        else:
            step = 1 if forward else -1
            self.completion_index = (self.completion_index + step) % len(self.completions)
        self.value = self.completions[self.completion_index]
        self.cursor = len(self.value)


def _fuzzy_score(candidate: str, query: str) -> int | None:
    """Lower is better. None if query isn't a subsequence of candidate."""
    if not query:
        return 0
    c, q = candidate.lower(), query.lower()
    if c.startswith(q):
        return 0
    pos = -1
    gaps = 0
    for ch in q:
        nxt = c.find(ch, pos + 1)
        if nxt < 0:
            return None
        gaps += nxt - pos - 1
        pos = nxt
    return 1 + gaps


def directory_completions(raw: str) -> list[str]:
    """Subdirectories matching the last path component of raw.

    Suggestions keep the user's `~` prefix and end with a slash so the next
    Tab descends into the chosen directory.
    """
    head, sep, fragment = raw.rpartition("/")
    parent_raw = f"{head}/" if sep else ""
    parent = Path(os.path.expanduser(parent_raw or ".")).absolute()
    try:
        children = [p.name for p in parent.iterdir() if p.is_dir()]
    except OSError:
        logger.debug("Cannot list directory for completion", extra={"path": str(parent)})
        return []
    scored = []
    for name in children:
        if name.startswith(".") and not fragment.startswith("."):
            continue
        score = _fuzzy_score(name, fragment)
        if score is not None:
            scored.append((score, name.lower(), name))
    scored.sort()
    return [f"{parent_raw}{name}/" for _, _, name in scored]
