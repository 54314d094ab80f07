"""Context detection: where does a directory sit relative to projects and worktrees.

Classification is evaluated in a fixed order:

1. Worktree: the path lies under ``<worktrees_dir>/<project>/<branch>`` and
   that worktree root has a ``.git`` file containing ``gitdir:``.
2. Project: some ancestor (or the path itself) has a ``.git`` directory.
3. Outside git.

The worktree check comes first because a worktree may sit inside a tree
that also has a ``.git`` directory higher up.
"""

import logging
import os
import threading
import time
from collections.abc import Callable
from contextlib import contextmanager
from pathlib import Path

from .constants import DEFAULT_CACHE_TTL, GITDIR_MARKER
from .discovery import find_git_dir_by_traversal
from .exceptions import ContextDetectionError, PathError
from .models import Context, ContextType
from .pathutils import is_path_under, normalize_path

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Lock allowing many concurrent readers or a single writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._writer = True
            while self._readers:
                self._cond.wait()
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class ValidityCache:
    """TTL cache of worktree validity keyed by canonical worktree root."""

    def __init__(self, ttl: float = DEFAULT_CACHE_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[bool, float]] = {}
        self._lock = ReadWriteLock()

    def get(self, key: str) -> bool | None:
        """Return the cached validity, or None on a miss or expired entry."""
        now = self._clock()
        with self._lock.read():
            entry = self._entries.get(key)
        if entry is None:
            return None
        valid, expires_at = entry
        if expires_at <= now:
            return None
        return valid

    def put(self, key: str, valid: bool) -> None:
        expires_at = self._clock() + self.ttl
        with self._lock.write():
            self._entries[key] = (valid, expires_at)

    def invalidate_under(self, root: Path) -> int:
        """
        Drop every entry whose key lies under root.

        Returns:
            Number of entries removed
        """
        with self._lock.write():
            stale = [key for key in self._entries if _is_under(root, key)]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        with self._lock.write():
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)


def _is_under(root: Path, key: str) -> bool:
    # Keys are stored unresolved; match lexically as well as after resolution
    key_path = Path(key)
    if key_path == root or root in key_path.parents:
        return True
    try:
        return is_path_under(root, key_path)
    except PathError:
        return False


def is_valid_git_worktree(worktree_root: Path) -> bool:
    """Check that worktree_root/.git is a regular file pointing at a gitdir."""
    git_path = worktree_root / ".git"
    try:
        if not git_path.is_file():
            return False
        content = git_path.read_text(errors="replace")
    except OSError:
        return False
    return GITDIR_MARKER in content


class ContextDetector:
    """Classify directories as project, worktree or outside git."""

    def __init__(
        self,
        worktrees_dir: Path,
        cache: ValidityCache | None = None,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        worktree_checker: Callable[[Path], bool] = is_valid_git_worktree,
    ):
        self.worktrees_dir = Path(worktrees_dir)
        self.cache = cache if cache is not None else ValidityCache(cache_ttl)
        self._check_worktree = worktree_checker

    def detect_context(self, directory: str | Path) -> Context:
        """
        Detect the context of a directory.

        Args:
            directory: Directory to classify

        Returns:
            Context of type WORKTREE, PROJECT or OUTSIDE_GIT

        Raises:
            ContextDetectionError: If directory is empty, missing or inaccessible
        """
        raw = os.fspath(directory) if directory is not None else ""
        if not raw:
            raise ContextDetectionError("", "empty directory path")

        try:
            os.stat(raw)
        except FileNotFoundError as e:
            raise ContextDetectionError(raw, "directory does not exist", e) from e
        except (OSError, ValueError) as e:
            raise ContextDetectionError(raw, "cannot access directory", e) from e

        try:
            normalized = normalize_path(raw)
        except PathError as e:
            raise ContextDetectionError(raw, "failed to normalize directory", e) from e

        ctx = self._detect_worktree(normalized) or self._detect_project(normalized)
        if ctx is None:
            ctx = Context(
                type=ContextType.OUTSIDE_GIT,
                path=normalized,
                explanation="Not in a git repository or worktree",
            )
        logger.debug("Detected %s for %s", ctx, normalized)
        return ctx

    def invalidate_cache_for_repo(self, repo_path: str | Path) -> None:
        """
        Forget cached worktree validity for everything under repo_path.

        Call after creating, deleting or pruning worktrees.
        """
        root = normalize_path(repo_path)
        removed = self.cache.invalidate_under(root)
        logger.debug("Invalidated %d cache entries under %s", removed, root)

    def clear_cache(self) -> None:
        self.cache.clear()

    def _detect_worktree(self, directory: Path) -> Context | None:
        worktrees_dir = normalize_path(self.worktrees_dir)
        try:
            rel = directory.relative_to(worktrees_dir)
        except ValueError:
            return None

        parts = rel.parts
        if len(parts) < 2:
            return None

        project_name, branch_name = parts[0], parts[1]
        worktree_root = worktrees_dir / project_name / branch_name
        if not self._is_valid_worktree(worktree_root):
            return None

        return Context(
            type=ContextType.WORKTREE,
            path=directory,
            project_name=project_name,
            branch_name=branch_name,
            explanation=f"In worktree for project '{project_name}' on branch '{branch_name}'",
        )

    def _detect_project(self, directory: Path) -> Context | None:
        repo_root = find_git_dir_by_traversal(directory)
        if repo_root is None:
            return None

        project_name = repo_root.name
        return Context(
            type=ContextType.PROJECT,
            path=repo_root,
            project_name=project_name,
            explanation=f"In project directory '{project_name}'",
        )

    def _is_valid_worktree(self, worktree_root: Path) -> bool:
        key = str(worktree_root)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        valid = self._check_worktree(worktree_root)
        self.cache.put(key, valid)
        return valid
