"""Shared fixtures for git-hop tests."""

import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import pytest

from git_hop.exceptions import GitError
from git_hop.git_utils import has_command
from git_hop.models import BranchInfo, WorktreeInfo


@dataclass
class Workspace:
    """A projects directory and a worktrees directory under tmp_path."""

    root: Path
    projects_dir: Path
    worktrees_dir: Path


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    """Create empty Projects/ and Worktrees/ directories."""
    root = tmp_path.resolve()
    projects_dir = root / "Projects"
    worktrees_dir = root / "Worktrees"
    projects_dir.mkdir()
    worktrees_dir.mkdir()
    return Workspace(root=root, projects_dir=projects_dir, worktrees_dir=worktrees_dir)


@pytest.fixture
def make_project(workspace: Workspace) -> Callable[[str], Path]:
    """Factory for fake main checkouts: <projects_dir>/<name>/.git/"""

    def _make(name: str) -> Path:
        project = workspace.projects_dir / name
        (project / ".git").mkdir(parents=True)
        return project

    return _make


@pytest.fixture
def make_worktree(workspace: Workspace) -> Callable[[str, str], Path]:
    """Factory for fake linked worktrees: <worktrees_dir>/<project>/<branch>/.git file"""

    def _make(project: str, branch: str) -> Path:
        worktree = workspace.worktrees_dir / project / branch
        worktree.mkdir(parents=True)
        gitdir = workspace.projects_dir / project / ".git" / "worktrees" / branch
        (worktree / ".git").write_text(f"gitdir: {gitdir}\n")
        return worktree

    return _make


class FakeProvider:
    """In-memory GitProvider that records calls and can be told to fail."""

    def __init__(
        self,
        worktrees: list[WorktreeInfo] | None = None,
        branches: list[BranchInfo] | None = None,
        valid_repos: set[str] | None = None,
    ):
        self.worktrees = list(worktrees or [])
        self.branches = list(branches or [])
        self.valid_repos = valid_repos
        self.fail_worktrees = False
        self.fail_branches = False
        self.calls: list[tuple[str, Path]] = []

    def list_worktrees(self, repo_path: Path) -> list[WorktreeInfo]:
        self.calls.append(("list_worktrees", repo_path))
        if self.fail_worktrees:
            raise GitError("worktree list failed")
        return list(self.worktrees)

    def list_branches(self, repo_path: Path) -> list[BranchInfo]:
        self.calls.append(("list_branches", repo_path))
        if self.fail_branches:
            raise GitError("branch list failed")
        return list(self.branches)

    def validate_repository(self, path: Path) -> None:
        self.calls.append(("validate_repository", path))
        if self.valid_repos is not None and path.name not in self.valid_repos:
            raise GitError(f"Not a git repository: {path}")


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def temp_git_repo(workspace: Workspace, monkeypatch) -> Path:
    """Create a real repository at <projects_dir>/myapp with one commit."""
    if not has_command("git"):
        pytest.skip("git is not installed")

    repo = workspace.projects_dir / "myapp"
    repo.mkdir()
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("HOME", str(workspace.root))

    def git(*args: str) -> None:
        subprocess.run(["git", *args], cwd=repo, check=True, capture_output=True)

    git("init", "-b", "main")
    git("config", "user.name", "Test User")
    git("config", "user.email", "test@example.com")
    git("config", "commit.gpgsign", "false")
    (repo / "README.md").write_text("# myapp\n")
    git("add", "README.md")
    git("commit", "-m", "Initial commit")
    return repo
