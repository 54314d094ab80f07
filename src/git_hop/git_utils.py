"""Git operations wrapper utilities and the git CLI capability provider."""

import logging
import subprocess
from pathlib import Path
from shutil import which

from .constants import DEFAULT_GIT_TIMEOUT
from .exceptions import GitError
from .models import BranchInfo, WorktreeInfo

logger = logging.getLogger(__name__)

# Format used for `git branch -a`: "<HEAD marker>\t<full refname>"
BRANCH_FORMAT = "%(HEAD)%09%(refname)"


def run_command(
    cmd: list[str],
    cwd: Path | None = None,
    check: bool = True,
    capture: bool = False,
    timeout: float | None = None,
) -> subprocess.CompletedProcess:
    """
    Run a shell command.

    Args:
        cmd: Command and arguments as a list
        cwd: Working directory for the command
        check: Raise exception on non-zero exit code
        capture: Capture stdout/stderr
        timeout: Seconds to wait before giving up (None waits forever)

    Returns:
        CompletedProcess instance

    Raises:
        GitError: If command fails and check=True, times out, or is missing
    """
    kwargs = {}
    if capture:
        kwargs["stdout"] = subprocess.PIPE
        kwargs["stderr"] = subprocess.PIPE
        kwargs["text"] = True

    logger.debug("Running %s (cwd=%s)", " ".join(cmd), cwd)
    try:
        result = subprocess.run(cmd, cwd=cwd, check=False, timeout=timeout, **kwargs)
    except FileNotFoundError as e:
        raise GitError(f"Command not found: {cmd[0]}") from e
    except NotADirectoryError as e:
        raise GitError(f"Not a directory: {cwd}") from e
    except subprocess.TimeoutExpired as e:
        raise GitError(f"Command timed out after {timeout}s: {' '.join(cmd)}") from e

    if check and result.returncode != 0:
        output = (result.stderr or "").strip() if capture else ""
        raise GitError(f"Command failed: {' '.join(cmd)}\n{output}".rstrip())
    return result


def git_command(
    *args: str,
    repo: Path | None = None,
    check: bool = True,
    capture: bool = False,
    timeout: float | None = None,
) -> subprocess.CompletedProcess:
    """
    Run a git command.

    Args:
        *args: Git command arguments
        repo: Repository path
        check: Raise exception on non-zero exit code
        capture: Capture stdout/stderr
        timeout: Seconds to wait for git

    Returns:
        CompletedProcess instance

    Raises:
        GitError: If git command fails
    """
    cmd = ["git"] + list(args)
    return run_command(cmd, cwd=repo, check=check, capture=capture, timeout=timeout)


def get_repo_root(path: Path | None = None, timeout: float | None = None) -> Path:
    """
    Get the root directory of the git repository.

    Args:
        path: Optional path to start from (defaults to current directory)
        timeout: Seconds to wait for git

    Returns:
        Path to repository root

    Raises:
        GitError: If not in a git repository, or git is missing or times out
    """
    result = git_command(
        "rev-parse", "--show-toplevel", repo=path, check=False, capture=True, timeout=timeout
    )
    if result.returncode != 0:
        where = path if path is not None else Path.cwd()
        raise GitError(f"Not a git repository: {where}")
    return Path(result.stdout.strip())


def normalize_branch_name(branch: str) -> str:
    """Strip the refs/heads/ prefix from a branch ref."""
    if branch.startswith("refs/heads/"):
        return branch[len("refs/heads/"):]
    return branch


def parse_worktree_porcelain(output: str) -> list[WorktreeInfo]:
    """
    Parse `git worktree list --porcelain` output.

    Args:
        output: Raw porcelain output

    Returns:
        One WorktreeInfo per worktree block, in git's order (main first)
    """
    items: list[WorktreeInfo] = []
    current: dict | None = None

    def flush() -> None:
        if current is not None:
            items.append(WorktreeInfo(**current))

    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        key, _, value = line.partition(" ")
        if key == "worktree":
            flush()
            current = {"path": Path(value.strip())}
        elif current is None:
            continue
        elif key == "HEAD":
            current["commit"] = value.strip()
        elif key == "branch":
            current["branch"] = normalize_branch_name(value.strip())
        elif key == "bare":
            current["is_bare"] = True
        elif key == "detached":
            current["is_detached"] = True
        elif key == "locked":
            current["is_locked"] = True
        elif key == "prunable":
            current["is_prunable"] = True
    flush()

    return items


def parse_branch_lines(output: str) -> list[BranchInfo]:
    """
    Parse `git branch -a --format=%(HEAD)%09%(refname)` output.

    Remote-tracking refs are reduced to their short name, symbolic
    ``<remote>/HEAD`` pointers are dropped, and a branch that exists both
    locally and on a remote is reported once (as the local branch).

    Args:
        output: Raw command output

    Returns:
        Branches sorted by name
    """
    branches: dict[str, BranchInfo] = {}
    for raw_line in output.splitlines():
        if not raw_line.strip():
            continue
        head, _, ref = raw_line.partition("\t")
        ref = ref.strip()
        is_current = head.strip() == "*"

        if ref.startswith("refs/heads/"):
            name = ref[len("refs/heads/"):]
            branches[name] = BranchInfo(name=name, is_current=is_current)
        elif ref.startswith("refs/remotes/"):
            remote, _, name = ref[len("refs/remotes/"):].partition("/")
            if not name or name == "HEAD":
                continue
            if name not in branches:
                branches[name] = BranchInfo(name=name, remote=remote)

    return [branches[name] for name in sorted(branches)]


def has_command(name: str) -> bool:
    """
    Check if a command is available in PATH.

    Args:
        name: Command name

    Returns:
        True if command exists, False otherwise
    """
    return bool(which(name))


class GitCLIClient:
    """Git capability provider that shells out to the git CLI."""

    def __init__(self, timeout: float = DEFAULT_GIT_TIMEOUT):
        self.timeout = timeout

    def list_worktrees(self, repo_path: Path) -> list[WorktreeInfo]:
        """
        List the worktrees attached to a repository.

        Raises:
            GitError: If git fails or times out
        """
        result = git_command(
            "worktree", "list", "--porcelain",
            repo=Path(repo_path), capture=True, timeout=self.timeout,
        )
        return parse_worktree_porcelain(result.stdout)

    def list_branches(self, repo_path: Path) -> list[BranchInfo]:
        """
        List local and remote-tracking branches of a repository.

        Raises:
            GitError: If git fails or times out
        """
        result = git_command(
            "branch", "-a", f"--format={BRANCH_FORMAT}",
            repo=Path(repo_path), capture=True, timeout=self.timeout,
        )
        return parse_branch_lines(result.stdout)

    def validate_repository(self, path: Path) -> None:
        """
        Check that path is the top level of a git repository.

        A directory nested inside some other repository does not count.

        Raises:
            GitError: If path is not a repository root
        """
        path = Path(path)
        if not path.is_dir():
            raise GitError(f"Not a directory: {path}")

        toplevel = get_repo_root(path, timeout=self.timeout)
        try:
            same = toplevel.samefile(path)
        except OSError:
            same = toplevel.resolve() == path.resolve()
        if not same:
            raise GitError(f"Not a repository root: {path} (inside {toplevel})")
