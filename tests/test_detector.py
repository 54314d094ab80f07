"""Tests for context detection and the worktree validity cache."""

import threading
from pathlib import Path

import pytest

from git_hop.detector import ContextDetector, ReadWriteLock, ValidityCache, is_valid_git_worktree
from git_hop.exceptions import ContextDetectionError
from git_hop.models import ContextType


class CountingChecker:
    """Worktree checker that counts filesystem checks."""

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, worktree_root: Path) -> bool:
        self.calls += 1
        return is_valid_git_worktree(worktree_root)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestIsValidGitWorktree:
    def test_gitdir_file(self, make_worktree) -> None:
        worktree = make_worktree("acme", "feature-x")
        assert is_valid_git_worktree(worktree) is True

    def test_git_directory_is_not_worktree(self, workspace) -> None:
        root = workspace.worktrees_dir / "acme" / "main"
        (root / ".git").mkdir(parents=True)
        assert is_valid_git_worktree(root) is False

    def test_git_file_without_marker(self, workspace) -> None:
        root = workspace.worktrees_dir / "acme" / "broken"
        root.mkdir(parents=True)
        (root / ".git").write_text("not a pointer\n")
        assert is_valid_git_worktree(root) is False

    def test_missing_git(self, workspace) -> None:
        assert is_valid_git_worktree(workspace.worktrees_dir / "nope") is False


class TestDetectContext:
    def test_worktree(self, workspace, make_worktree) -> None:
        """A worktree root with a gitdir file is a Worktree context."""
        worktree = make_worktree("acme", "feature-x")
        detector = ContextDetector(workspace.worktrees_dir)

        ctx = detector.detect_context(worktree)

        assert ctx.type is ContextType.WORKTREE
        assert ctx.project_name == "acme"
        assert ctx.branch_name == "feature-x"
        assert ctx.path == worktree
        assert ctx.is_worktree
        assert ctx.is_in_git_context

    def test_worktree_subdirectory(self, workspace, make_worktree) -> None:
        """Nested directories keep their own path but the worktree's names."""
        worktree = make_worktree("acme", "feature-x")
        nested = worktree / "src" / "pkg"
        nested.mkdir(parents=True)
        detector = ContextDetector(workspace.worktrees_dir)

        ctx = detector.detect_context(nested)

        assert ctx.type is ContextType.WORKTREE
        assert ctx.branch_name == "feature-x"
        assert ctx.path == nested

    def test_git_directory_under_worktrees_falls_through(self, workspace) -> None:
        """A .git directory inside the worktrees tree is a project, not a worktree."""
        root = workspace.worktrees_dir / "acme" / "main"
        (root / ".git").mkdir(parents=True)
        detector = ContextDetector(workspace.worktrees_dir)

        ctx = detector.detect_context(root)

        assert ctx.type is ContextType.PROJECT
        assert ctx.project_name == "main"
        assert ctx.path == root

    def test_project_root(self, workspace, make_project) -> None:
        project = make_project("acme")
        detector = ContextDetector(workspace.worktrees_dir)

        ctx = detector.detect_context(project)

        assert ctx.type is ContextType.PROJECT
        assert ctx.project_name == "acme"
        assert ctx.path == project
        assert ctx.branch_name == ""

    def test_project_subdirectory(self, workspace, make_project) -> None:
        """Context path is the repository root, not the input directory."""
        project = make_project("acme")
        nested = project / "docs" / "api"
        nested.mkdir(parents=True)
        detector = ContextDetector(workspace.worktrees_dir)

        ctx = detector.detect_context(nested)

        assert ctx.type is ContextType.PROJECT
        assert ctx.project_name == "acme"
        assert ctx.path == project

    def test_worktree_takes_priority_over_project(self, workspace) -> None:
        """A worktree nested inside a repository is still a worktree."""
        outer = workspace.root / "outer"
        (outer / ".git").mkdir(parents=True)
        worktrees_dir = outer / "Worktrees"
        worktree = worktrees_dir / "acme" / "feature-x"
        worktree.mkdir(parents=True)
        (worktree / ".git").write_text("gitdir: /somewhere\n")
        detector = ContextDetector(worktrees_dir)

        ctx = detector.detect_context(worktree)

        assert ctx.type is ContextType.WORKTREE
        assert ctx.project_name == "acme"

    def test_project_level_of_worktrees_dir(self, workspace, make_worktree) -> None:
        """<worktrees_dir>/<project> alone is not a worktree."""
        make_worktree("acme", "feature-x")
        detector = ContextDetector(workspace.worktrees_dir)

        ctx = detector.detect_context(workspace.worktrees_dir / "acme")

        assert ctx.type is not ContextType.WORKTREE

    def test_outside_git(self, workspace) -> None:
        plain = workspace.root / "plain"
        plain.mkdir()
        detector = ContextDetector(workspace.worktrees_dir)

        ctx = detector.detect_context(plain)

        assert ctx.type is ContextType.OUTSIDE_GIT
        assert ctx.path == plain
        assert ctx.project_name == ""
        assert "Not in a git repository" in ctx.explanation
        assert not ctx.is_in_git_context

    def test_unnormalized_input(self, workspace, make_worktree) -> None:
        worktree = make_worktree("acme", "feature-x")
        detector = ContextDetector(workspace.worktrees_dir)

        ctx = detector.detect_context(f"{worktree}/src/../.")

        assert ctx.type is ContextType.WORKTREE
        assert ctx.path == worktree

    def test_symlinked_worktrees_dir(self, workspace, make_worktree) -> None:
        """The configured worktrees dir may itself be a symlink."""
        worktree = make_worktree("acme", "feature-x")
        alias = workspace.root / "wt-alias"
        alias.symlink_to(workspace.worktrees_dir)
        detector = ContextDetector(alias)

        ctx = detector.detect_context(worktree)

        assert ctx.type is ContextType.WORKTREE
        assert ctx.branch_name == "feature-x"

    def test_idempotent(self, workspace, make_worktree, make_project) -> None:
        worktree = make_worktree("acme", "feature-x")
        project = make_project("acme")
        detector = ContextDetector(workspace.worktrees_dir)

        for directory in (worktree, project, workspace.root):
            assert detector.detect_context(directory) == detector.detect_context(directory)

    def test_empty_path(self, workspace) -> None:
        detector = ContextDetector(workspace.worktrees_dir)
        with pytest.raises(ContextDetectionError, match="empty directory path"):
            detector.detect_context("")

    def test_missing_directory(self, workspace) -> None:
        detector = ContextDetector(workspace.worktrees_dir)
        missing = workspace.root / "missing"

        with pytest.raises(ContextDetectionError) as exc_info:
            detector.detect_context(missing)

        assert exc_info.value.path == str(missing)
        assert "does not exist" in str(exc_info.value)
        assert isinstance(exc_info.value.cause, FileNotFoundError)


class TestDetectorCache:
    def test_repeated_detection_uses_cache(self, workspace, make_worktree) -> None:
        worktree = make_worktree("acme", "feature-x")
        checker = CountingChecker()
        detector = ContextDetector(workspace.worktrees_dir, worktree_checker=checker)

        detector.detect_context(worktree)
        detector.detect_context(worktree)
        detector.detect_context(worktree / ".")

        assert checker.calls == 1

    def test_subdirectories_share_cache_entry(self, workspace, make_worktree) -> None:
        worktree = make_worktree("acme", "feature-x")
        (worktree / "src").mkdir()
        checker = CountingChecker()
        detector = ContextDetector(workspace.worktrees_dir, worktree_checker=checker)

        detector.detect_context(worktree)
        detector.detect_context(worktree / "src")

        assert checker.calls == 1

    def test_invalidation_forces_recheck(self, workspace, make_worktree) -> None:
        worktree = make_worktree("acme", "feature-x")
        checker = CountingChecker()
        detector = ContextDetector(workspace.worktrees_dir, worktree_checker=checker)

        detector.detect_context(worktree)
        detector.invalidate_cache_for_repo(workspace.worktrees_dir / "acme")
        detector.detect_context(worktree)

        assert checker.calls == 2

    def test_invalidation_sees_removed_worktree(self, workspace, make_worktree) -> None:
        """After invalidation a deleted .git file is no longer a worktree."""
        worktree = make_worktree("acme", "feature-x")
        detector = ContextDetector(workspace.worktrees_dir)
        assert detector.detect_context(worktree).type is ContextType.WORKTREE

        (worktree / ".git").unlink()
        detector.invalidate_cache_for_repo(workspace.worktrees_dir / "acme")

        assert detector.detect_context(worktree).type is not ContextType.WORKTREE

    def test_invalidation_leaves_other_projects(self, workspace, make_worktree) -> None:
        acme = make_worktree("acme", "feature-x")
        other = make_worktree("other", "feature-x")
        checker = CountingChecker()
        detector = ContextDetector(workspace.worktrees_dir, worktree_checker=checker)
        detector.detect_context(acme)
        detector.detect_context(other)

        detector.invalidate_cache_for_repo(workspace.worktrees_dir / "acme")
        detector.detect_context(other)

        assert checker.calls == 2
        assert len(detector.cache) == 1

    def test_clear_cache(self, workspace, make_worktree) -> None:
        worktree = make_worktree("acme", "feature-x")
        checker = CountingChecker()
        detector = ContextDetector(workspace.worktrees_dir, worktree_checker=checker)

        detector.detect_context(worktree)
        detector.clear_cache()
        detector.detect_context(worktree)

        assert checker.calls == 2

    def test_entries_expire(self, workspace, make_worktree) -> None:
        worktree = make_worktree("acme", "feature-x")
        clock = FakeClock()
        checker = CountingChecker()
        detector = ContextDetector(
            workspace.worktrees_dir,
            cache=ValidityCache(ttl=5.0, clock=clock),
            worktree_checker=checker,
        )

        detector.detect_context(worktree)
        clock.now += 4.9
        detector.detect_context(worktree)
        assert checker.calls == 1

        clock.now += 0.2
        detector.detect_context(worktree)
        assert checker.calls == 2

    def test_concurrent_detection(self, workspace, make_worktree) -> None:
        worktrees = [make_worktree("acme", f"branch-{i}") for i in range(8)]
        detector = ContextDetector(workspace.worktrees_dir)
        errors: list[BaseException] = []

        def worker() -> None:
            try:
                for _ in range(20):
                    for worktree in worktrees:
                        assert detector.detect_context(worktree).type is ContextType.WORKTREE
                    detector.invalidate_cache_for_repo(workspace.worktrees_dir / "acme")
            except BaseException as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []


class TestValidityCache:
    def test_miss(self) -> None:
        assert ValidityCache().get("/nope") is None

    def test_put_get(self) -> None:
        cache = ValidityCache()
        cache.put("/w/acme/x", False)
        assert cache.get("/w/acme/x") is False

    def test_invalidate_under_counts(self) -> None:
        cache = ValidityCache()
        cache.put("/w/acme/x", True)
        cache.put("/w/acme/y", True)
        cache.put("/w/acme-two/x", True)

        assert cache.invalidate_under(Path("/w/acme")) == 2
        assert cache.get("/w/acme-two/x") is True


class TestReadWriteLock:
    def test_concurrent_readers(self) -> None:
        lock = ReadWriteLock()
        with lock.read():
            with lock.read():
                pass

    def test_writer_waits_for_reader(self) -> None:
        lock = ReadWriteLock()
        order: list[str] = []
        reader_in = threading.Event()
        release_reader = threading.Event()

        def reader() -> None:
            with lock.read():
                reader_in.set()
                release_reader.wait()
                order.append("reader")

        def writer() -> None:
            with lock.write():
                order.append("writer")

        r = threading.Thread(target=reader)
        r.start()
        reader_in.wait()
        w = threading.Thread(target=writer)
        w.start()
        release_reader.set()
        r.join()
        w.join()

        assert order == ["reader", "writer"]
