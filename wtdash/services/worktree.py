import logging
import re
from pathlib import Path

import git as gitpython

from wtdash.models import WorktreeEntry

logger = logging.getLogger(__name__)

_GIT_ERRORS = (gitpython.GitCommandError, gitpython.InvalidGitRepositoryError, gitpython.NoSuchPathError)


def _repo(path: str | Path) -> gitpython.Repo:
    return gitpython.Repo(path)


def parse_porcelain(output: str, repo_path: str) -> list[WorktreeEntry]:
    """Parse `git worktree list --porcelain`.

    The first block is the main checkout and is named "main"; linked
    worktrees are named after their directory. Detached entries get the
    branch "HEAD".
    """
    blocks: list[tuple[str, str]] = []
    current_path = ""
    current_branch = ""
    for line in output.splitlines():
        if line.startswith("worktree "):
            if current_path:
                blocks.append((current_path, current_branch))
            current_path = line[len("worktree "):]
            current_branch = ""
        elif line.startswith("branch "):
            current_branch = line[len("branch "):].removeprefix("refs/heads/")
        elif line == "" and current_path:
            blocks.append((current_path, current_branch))
            current_path = ""
    if current_path:
        blocks.append((current_path, current_branch))

    entries = [
        WorktreeEntry(
            name="main" if i == 0 else Path(path).name,
            path=path,
            branch=branch or "HEAD",
            is_main=i == 0,
        )
        for i, (path, branch) in enumerate(blocks)
    ]
    if not entries:
        entries.append(WorktreeEntry(name="main", path=str(repo_path), branch="HEAD", is_main=True))
    return entries


def list_worktrees(repo_path: str | Path) -> list[WorktreeEntry]:
    """Snapshot of a project's worktrees. Raises RuntimeError if git fails."""
    try:
        output = _repo(repo_path).git.worktree("list", "--porcelain")
    except _GIT_ERRORS as e:
        raise RuntimeError(f"Failed to list worktrees for {repo_path}: {getattr(e, 'stderr', None) or e}") from e
    return parse_porcelain(output, str(repo_path))


def _branch_exists(repo: gitpython.Repo, branch: str) -> bool:
    try:
        repo.git.rev_parse("--verify", f"refs/heads/{branch}")
        return True
    except gitpython.GitCommandError:
        return False


def worktree_path_for(repo_path: str | Path, branch: str) -> Path:
    """Sibling directory `<repo>-<branch slug>` next to the main checkout."""
    repo_path = Path(repo_path)
    slug = re.sub(r"[^A-Za-z0-9_.-]", "-", branch.replace("/", "-"))
    return repo_path.parent / f"{repo_path.name}-{slug}"


def create_worktree(repo_path: str | Path, branch: str, base_branch: str) -> str:
    """Create a worktree for branch, branching from base_branch if it doesn't exist yet."""
    wt_path = worktree_path_for(repo_path, branch)
    if wt_path.exists():
        raise FileExistsError(f"Worktree path already exists: {wt_path}")

    repo = _repo(repo_path)
    try:
        if _branch_exists(repo, branch):
            repo.git.worktree("add", str(wt_path), branch)
        else:
            repo.git.worktree("add", "-b", branch, str(wt_path), base_branch)
    except gitpython.GitCommandError as e:
        raise RuntimeError(f"Failed to create worktree: {e.stderr or e}") from e
    logger.info("Created worktree", extra={"branch": branch, "path": str(wt_path)})
    return str(wt_path)


def remove_worktree(repo_path: str | Path, wt_path: str | Path, branch: str) -> None:
    """Force-remove a worktree, then delete its branch if git considers it merged."""
    repo = _repo(repo_path)
    try:
        repo.git.worktree("remove", "--force", str(wt_path))
    except gitpython.GitCommandError as e:
        raise RuntimeError(f"Failed to remove worktree: {e.stderr or e}") from e

    try:
        repo.git.branch("-d", branch)
    except gitpython.GitCommandError:
        logger.debug("Branch not deleted after worktree removal", extra={"branch": branch}, exc_info=True)


def is_branch_merged(repo_path: str | Path, branch: str, default_branch: str) -> bool:
    """True if branch is an ancestor of default_branch."""
    try:
        _repo(repo_path).git.merge_base("--is-ancestor", branch, default_branch)
        return True
    except _GIT_ERRORS:
        return False


def merged_branches(repo_path: str | Path, default_branch: str) -> list[str]:
    try:
        output = _repo(repo_path).git.branch("--merged", default_branch)
    except gitpython.GitCommandError as e:
        raise RuntimeError(f"Failed to list merged branches: {e.stderr or e}") from e
    branches = []
    for line in output.splitlines():
        name = line.strip().lstrip("*+").strip()
        if name and name != default_branch and not name.startswith(("HEAD", "(")):
            branches.append(name)
    return branches


def clean_merged(repo_path: str | Path, default_branch: str) -> list[str]:
    """Remove every linked worktree whose branch is merged into default_branch.

    Returns the branch names that were removed.
    """
    merged = set(merged_branches(repo_path, default_branch))
    removed: list[str] = []
    for entry in list_worktrees(repo_path):
        if entry.is_main or entry.branch not in merged:
            continue
        try:
            remove_worktree(repo_path, entry.path, entry.branch)
        except RuntimeError:
            logger.warning("Failed to clean merged worktree", extra={"path": entry.path}, exc_info=True)
            continue
        removed.append(entry.branch)
    return removed


def detect_default_branch(repo_path: str | Path, remote: str = "origin") -> str:
    try:
        repo = _repo(repo_path)
    except _GIT_ERRORS:
        return "main"
    try:
        ref = repo.git.symbolic_ref(f"refs/remotes/{remote}/HEAD")
        return ref.split("/")[-1]
    except gitpython.GitCommandError:
        pass
    for candidate in ("main", "master"):
        for ref in (f"refs/remotes/{remote}/{candidate}", f"refs/heads/{candidate}"):
            try:
                repo.git.rev_parse("--verify", ref)
                return candidate
            except gitpython.GitCommandError:
                continue
    try:
        return repo.active_branch.name
    except TypeError:
        return "main"


def is_git_repo(path: str | Path) -> bool:
    return (Path(path) / ".git").exists()


# Branch operations for the git popup. Each returns what git printed.

def _output(result: tuple[int, str, str]) -> str:
    _, stdout, stderr = result
    return (stdout or stderr).strip()


def _current_branch(repo: gitpython.Repo) -> str:
    try:
        branch = repo.git.branch("--show-current").strip()
    except gitpython.GitCommandError as e:
        raise RuntimeError(f"Failed to read current branch: {e.stderr or e}") from e
    if not branch:
        raise RuntimeError("Not on a branch")
    return branch


def pull(wt_path: str | Path) -> str:
    try:
        return _output(_repo(wt_path).git.pull(with_extended_output=True))
    except _GIT_ERRORS as e:
        raise RuntimeError(f"Pull failed: {getattr(e, 'stderr', None) or e}") from e


def _needs_upstream(e: gitpython.GitCommandError) -> bool:
    message = str(e.stderr or e)
    return "no upstream" in message or "--set-upstream" in message


def push(wt_path: str | Path) -> str:
    """Push the current branch, setting `origin/<branch>` as upstream on first push."""
    repo = _repo(wt_path)
    try:
        return _output(repo.git.push(with_extended_output=True))
    except gitpython.GitCommandError as e:
        if not _needs_upstream(e):
            raise RuntimeError(f"Push failed: {e.stderr or e}") from e

    branch = _current_branch(repo)
    logger.info("Pushing new branch upstream", extra={"branch": branch, "path": str(wt_path)})
    try:
        return _output(repo.git.push("-u", "origin", branch, with_extended_output=True))
    except gitpython.GitCommandError as e:
        raise RuntimeError(f"Push failed: {e.stderr or e}") from e


def pull_rebase(wt_path: str | Path, branch: str) -> str:
    """Rebase the worktree's branch onto `origin/<branch>`."""
    try:
        return _output(_repo(wt_path).git.pull("--rebase", "origin", branch, with_extended_output=True))
    except _GIT_ERRORS as e:
        raise RuntimeError(f"Pull --rebase failed: {getattr(e, 'stderr', None) or e}") from e


def merge_from(wt_path: str | Path, source: str) -> str:
    try:
        return _output(_repo(wt_path).git.merge(source, with_extended_output=True))
    except _GIT_ERRORS as e:
        raise RuntimeError(f"Merge from {source} failed: {getattr(e, 'stderr', None) or e}") from e


def merge_into(wt_path: str | Path, target: str) -> str:
    """Merge the worktree's branch into target, then check the branch out again.

    The original branch is restored whether or not the merge succeeds; a
    conflicted merge is aborted first.
    """
    repo = _repo(wt_path)
    current = _current_branch(repo)
    try:
        repo.git.checkout(target)
    except gitpython.GitCommandError as e:
        raise RuntimeError(f"Failed to check out {target}: {e.stderr or e}") from e

    try:
        repo.git.merge(current)
    except gitpython.GitCommandError as e:
        try:
            repo.git.merge("--abort")
        except gitpython.GitCommandError:
            logger.debug("Nothing to abort after failed merge", extra={"target": target}, exc_info=True)
        raise RuntimeError(f"Merge into {target} failed: {e.stderr or e}") from e
    finally:
        try:
            repo.git.checkout(current)
        except gitpython.GitCommandError as e:
            raise RuntimeError(f"Failed to return to {current}: {e.stderr or e}") from e

    logger.info("Merged branch", extra={"branch": current, "target": target})
    return f"Merged {current} into {target}, returned to {current}"
