import logging
import time
from pathlib import Path

import git as gitpython

from wtdash.constants import FETCH_TIMEOUT_S, MAX_MODIFIED_FILES, RECENT_COMMITS
from wtdash.models import CommitSummary, GitInfo

logger = logging.getLogger(__name__)


def get_git_info(wt_path: str | Path) -> GitInfo:
    """Branch summary for the preview pane.

    A worktree that isn't on a branch, or can't be opened, gets an info with
    available=False.
    """
    try:
        repo = gitpython.Repo(wt_path)
        if not repo.git.branch("--show-current").strip():
            return GitInfo(available=False)
    except (gitpython.GitCommandError, gitpython.InvalidGitRepositoryError, gitpython.NoSuchPathError):
        logger.debug("Git info unavailable", extra={"path": str(wt_path)}, exc_info=True)
        return GitInfo(available=False)

    ahead, behind = _ahead_behind(repo)
    return GitInfo(
        remote_branch=_upstream(repo),
        ahead=ahead,
        behind=behind,
        recent_commits=_recent_commits(repo, RECENT_COMMITS),
        modified_files=_modified_files(repo),
    )


def _upstream(repo: gitpython.Repo) -> str | None:
    try:
        return repo.git.rev_parse("--abbrev-ref", "@{upstream}").strip() or None
    except gitpython.GitCommandError:
        return None


def _recent_commits(repo: gitpython.Repo, n: int) -> list[CommitSummary]:
    try:
        output = repo.git.log("--oneline", f"-{n}")
    except gitpython.GitCommandError:
        return []
    commits = []
    for line in output.splitlines():
        sha, _, message = line.partition(" ")
        if sha:
            commits.append(CommitSummary(hash=sha, message=message))
    return commits


def _modified_files(repo: gitpython.Repo) -> list[str]:
    try:
        output = repo.git.status("--short")
    except gitpython.GitCommandError:
        return []
    files = [line[3:].strip() for line in output.splitlines() if len(line) > 3]
    return files[:MAX_MODIFIED_FILES]


def _ahead_behind(repo: gitpython.Repo) -> tuple[int, int]:
    try:
        output = repo.git.rev_list("--left-right", "--count", "HEAD...@{upstream}")
        parts = output.split()
        return int(parts[0]), int(parts[1])
    except (gitpython.GitCommandError, IndexError, ValueError):
        return 0, 0


class FetchProbe:
    """A `git fetch` running in the background, polled from the UI tick.

    The process is killed once it runs longer than timeout.
    """

    def __init__(self, wt_path: str, handle, timeout: float = FETCH_TIMEOUT_S, clock=time.monotonic) -> None:
        self.path = wt_path
        # GitPython terminates the child when its handle is collected, so hold on to it.
        self._handle = handle
        self._proc = handle.proc
        self._timeout = timeout
        self._clock = clock
        self._started = clock()

    def poll(self) -> bool | None:
        """None while running, else whether the fetch succeeded."""
        code = self._proc.poll()
        if code is None:
            if self._clock() - self._started <= self._timeout:
                return None
            logger.info("Fetch timed out", extra={"path": self.path, "timeout": self._timeout})
            self.kill()
            return False
        if code != 0:
            logger.info("Fetch failed", extra={"path": self.path, "returncode": code})
        return code == 0

    def kill(self) -> None:
        if self._proc.poll() is None:
            self._proc.kill()
            self._proc.wait()


def start_fetch(wt_path: str, timeout: float = FETCH_TIMEOUT_S) -> FetchProbe | None:
    """Launch `git fetch` for the worktree without waiting for it.

    None when the worktree has no remotes or can't be opened.
    """
    try:
        repo = gitpython.Repo(wt_path)
        if not repo.remotes:
            return None
        handle = repo.git.fetch("--quiet", as_process=True)
    except (gitpython.GitCommandError, gitpython.InvalidGitRepositoryError, gitpython.NoSuchPathError):
        logger.info("Could not start fetch", extra={"path": wt_path}, exc_info=True)
        return None
    return FetchProbe(wt_path, handle, timeout=timeout)
