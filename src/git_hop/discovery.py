"""Filesystem discovery of git repositories.

Finds the projects living in the configured projects directory and walks up
from a directory to the enclosing main checkout.
"""

import logging
from pathlib import Path

from .exceptions import GitError
from .models import GitDir, GitProvider

logger = logging.getLogger(__name__)


def find_git_dir_by_traversal(start: Path) -> Path | None:
    """Walk up from start looking for a directory that holds a .git directory.

    Linked worktrees (whose .git is a file) are skipped so the walk keeps
    going towards the enclosing main checkout.

    Args:
        start: Directory to start from.

    Returns:
        The first directory with a .git directory, or None at the filesystem root.
    """
    current = start
    while True:
        try:
            if (current / ".git").is_dir():
                return current
        except OSError:
            pass

        parent = current.parent
        if parent == current:
            return None
        current = parent


def find_git_repositories(directory: Path, provider: GitProvider | None = None) -> list[GitDir]:
    """List the git repositories directly inside a directory.

    Args:
        directory: Directory to scan (typically the projects directory).
        provider: When given, each candidate must pass validate_repository;
            otherwise every subdirectory is reported.

    Returns:
        Repositories sorted by name. Empty if directory does not exist.

    Raises:
        GitError: If the directory exists but cannot be read.
    """
    if not directory.exists():
        return []

    try:
        entries = sorted(directory.iterdir())
    except OSError as e:
        raise GitError(f"Failed to read directory {directory}: {e}") from e

    found: list[GitDir] = []
    for entry in entries:
        if not entry.is_dir():
            continue

        if provider is not None:
            try:
                provider.validate_repository(entry)
            except GitError as e:
                logger.debug("Skipping %s: %s", entry, e)
                continue

        found.append(GitDir(name=entry.name, path=entry))

    return found
