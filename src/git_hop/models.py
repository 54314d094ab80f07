"""Dataclasses and protocols shared across modules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol


class ContextType(str, Enum):
    """Where a directory sits relative to projects and worktrees."""

    UNKNOWN = "unknown"
    PROJECT = "project"
    WORKTREE = "worktree"
    OUTSIDE_GIT = "outside-git"


class PathType(str, Enum):
    """What a resolved identifier points at."""

    PROJECT = "project"
    WORKTREE = "worktree"
    INVALID = "invalid"


@dataclass(frozen=True)
class Context:
    """Detected location of a directory."""

    type: ContextType
    path: Path
    project_name: str = ""
    branch_name: str = ""
    explanation: str = ""

    @property
    def is_in_git_context(self) -> bool:
        return self.type in (ContextType.PROJECT, ContextType.WORKTREE)

    @property
    def is_project(self) -> bool:
        return self.type is ContextType.PROJECT

    @property
    def is_worktree(self) -> bool:
        return self.type is ContextType.WORKTREE

    def __str__(self) -> str:
        if self.type is ContextType.PROJECT:
            return f"Project(project={self.project_name}, path={self.path})"
        if self.type is ContextType.WORKTREE:
            return (
                f"Worktree(project={self.project_name}, branch={self.branch_name}, "
                f"path={self.path})"
            )
        if self.type is ContextType.OUTSIDE_GIT:
            return "OutsideGit"
        return "Unknown"


@dataclass(frozen=True)
class ResolutionResult:
    """Concrete target produced for an identifier."""

    resolved_path: Path | None
    type: PathType
    project_name: str = ""
    branch_name: str = ""
    explanation: str = ""

    @property
    def is_valid(self) -> bool:
        return self.type is not PathType.INVALID


@dataclass(frozen=True)
class ResolutionSuggestion:
    """A completion candidate for a partially typed identifier."""

    text: str
    description: str
    type: PathType
    project_name: str = ""
    branch_name: str = ""


@dataclass(frozen=True)
class SuggestionOptions:
    """Filters applied when building completion suggestions."""

    # Only suggest worktrees that still exist on disk (drops "main" and
    # branches that would need a new worktree)
    existing_only: bool = False


@dataclass(frozen=True)
class WorktreeInfo:
    """A worktree as reported by git."""

    path: Path
    branch: str = ""
    commit: str = ""
    is_bare: bool = False
    is_detached: bool = False
    is_locked: bool = False
    is_prunable: bool = False


@dataclass(frozen=True)
class BranchInfo:
    """A local or remote-tracking branch."""

    name: str
    is_current: bool = False
    remote: str = ""


@dataclass(frozen=True)
class GitDir:
    """A directory holding a git repository."""

    name: str
    path: Path


class GitProvider(Protocol):
    """Git capabilities consumed by the resolver and discovery."""

    def list_worktrees(self, repo_path: Path) -> list[WorktreeInfo]: ...

    def list_branches(self, repo_path: Path) -> list[BranchInfo]: ...

    def validate_repository(self, path: Path) -> None: ...
