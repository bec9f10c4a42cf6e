from unittest.mock import MagicMock

import git as gitpython
import pytest

from wtdash.models import CommitSummary
from wtdash.services.git_info import FetchProbe, get_git_info, start_fetch


def _patch_repo(monkeypatch, repo=None):
    mock_repo = repo or MagicMock()
    monkeypatch.setattr(gitpython, "Repo", lambda *a, **kw: mock_repo)
    return mock_repo


class TestGetGitInfo:
    def test_collects_summary(self, monkeypatch):
        repo = _patch_repo(monkeypatch)
        repo.git.branch.return_value = "feat/x\n"
        repo.git.rev_parse.return_value = "origin/feat/x"
        repo.git.rev_list.return_value = "2\t1"
        repo.git.log.return_value = "abc123 Add login\ndef456 Fix typo"
        repo.git.status.return_value = " M src/app.py\n?? notes.txt"

        info = get_git_info("/repos/alpha-feat-x")

        assert info.available
        assert info.remote_branch == "origin/feat/x"
        assert (info.ahead, info.behind) == (2, 1)
        assert info.recent_commits == [
            CommitSummary(hash="abc123", message="Add login"),
            CommitSummary(hash="def456", message="Fix typo"),
        ]
        assert info.modified_files == ["src/app.py", "notes.txt"]

    def test_no_upstream(self, monkeypatch):
        repo = _patch_repo(monkeypatch)
        repo.git.branch.return_value = "main"
        repo.git.rev_parse.side_effect = gitpython.GitCommandError("rev-parse", 128)
        repo.git.rev_list.side_effect = gitpython.GitCommandError("rev-list", 128)
        repo.git.log.return_value = ""
        repo.git.status.return_value = ""

        info = get_git_info("/repos/alpha")

        assert info.remote_branch is None
        assert (info.ahead, info.behind) == (0, 0)
        assert info.recent_commits == []
        assert info.modified_files == []

    def test_detached_head_is_unavailable(self, monkeypatch):
        repo = _patch_repo(monkeypatch)
        repo.git.branch.return_value = ""

        info = get_git_info("/repos/alpha")

        assert info.available is False
        repo.git.log.assert_not_called()

    def test_missing_path_is_unavailable(self, monkeypatch):
        monkeypatch.setattr(gitpython, "Repo", MagicMock(side_effect=gitpython.NoSuchPathError("/gone")))

        assert get_git_info("/gone").available is False


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _probe(returncodes, timeout=10.0):
    handle = MagicMock()
    handle.proc.poll.side_effect = list(returncodes)
    clock = FakeClock()
    return FetchProbe("/repos/alpha", handle, timeout=timeout, clock=clock), handle.proc, clock


class TestFetchProbe:
    def test_running_then_success(self):
        probe, proc, _ = _probe([None, 0])

        assert probe.poll() is None
        assert probe.poll() is True
        proc.kill.assert_not_called()

    def test_nonzero_exit_is_failure(self):
        probe, _, _ = _probe([128])

        assert probe.poll() is False

    def test_timeout_kills(self):
        probe, proc, clock = _probe([None, None, None], timeout=10.0)

        clock.now = 5.0
        assert probe.poll() is None

        clock.now = 10.5
        assert probe.poll() is False
        proc.kill.assert_called_once()
        proc.wait.assert_called_once()

    def test_kill_after_exit_is_noop(self):
        probe, proc, _ = _probe([0])

        probe.kill()

        proc.kill.assert_not_called()


class TestStartFetch:
    def test_starts_background_fetch(self, monkeypatch):
        repo = _patch_repo(monkeypatch)
        repo.remotes = [MagicMock()]

        probe = start_fetch("/repos/alpha")

        assert isinstance(probe, FetchProbe)
        assert probe.path == "/repos/alpha"
        repo.git.fetch.assert_called_once_with("--quiet", as_process=True)

    def test_no_remotes(self, monkeypatch):
        repo = _patch_repo(monkeypatch)
        repo.remotes = []

        assert start_fetch("/repos/alpha") is None
        repo.git.fetch.assert_not_called()

    @pytest.mark.parametrize("error", [
        gitpython.InvalidGitRepositoryError("/x"),
        gitpython.NoSuchPathError("/x"),
    ])
    def test_unopenable_repo(self, monkeypatch, error):
        monkeypatch.setattr(gitpython, "Repo", MagicMock(side_effect=error))

        assert start_fetch("/x") is None
