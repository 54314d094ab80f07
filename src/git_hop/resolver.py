"""Identifier resolution: turn "main", a branch, or "project/branch" into a path.

How an identifier is read depends on the detected context:

    context      identifier      resolves to
    -----------  --------------  -----------------------------------------
    project      main            <projects_dir>/<project>
    project      <branch>        <worktrees_dir>/<project>/<branch>
    worktree     main            <projects_dir>/<project>
    worktree     <branch>        <worktrees_dir>/<project>/<branch>
    outside git  <project>       <projects_dir>/<project>
    any          <proj>/<branch> <worktrees_dir>/<proj>/<branch>

Every fragment is screened for traversal sequences and "." segments before
it is joined, and the joined path must still lie under its base directory.
Both failures are raised as ResolutionError, never silently repaired.
"""

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from .constants import IDENTIFIER_FORMATS, MAIN_IDENTIFIER
from .discovery import find_git_repositories
from .exceptions import PathError, ResolutionError
from .models import (
    Context,
    ContextType,
    GitProvider,
    PathType,
    ResolutionResult,
    ResolutionSuggestion,
    SuggestionOptions,
    WorktreeInfo,
)
from .pathutils import contains_path_traversal, is_path_under

logger = logging.getLogger(__name__)


@dataclass
class _SourceResult:
    """Outcome of one suggestion source: its items, or the error it hit."""

    items: list = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_cross_project_reference(identifier: str) -> tuple[str, str] | None:
    """
    Split "project/branch" into its two parts.

    Returns:
        (project, branch), or None unless there are exactly two non-empty parts
    """
    parts = identifier.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    return parts[0], parts[1]


class ContextResolver:
    """Resolve identifiers and build completion suggestions for a context."""

    def __init__(
        self,
        projects_dir: Path,
        worktrees_dir: Path,
        provider: GitProvider | None = None,
        validate_projects: bool = True,
    ):
        self.projects_dir = Path(projects_dir)
        self.worktrees_dir = Path(worktrees_dir)
        self.provider = provider
        self.validate_projects = validate_projects

    def resolve_identifier(self, ctx: Context, identifier: str) -> ResolutionResult:
        """
        Resolve an identifier relative to a context.

        Args:
            ctx: Detected context
            identifier: "main", a branch name, a project name, or "project/branch"

        Returns:
            ResolutionResult; type INVALID for a malformed cross-project
            reference or an unknown context

        Raises:
            ResolutionError: If the identifier is empty, contains traversal or "."
                sequences, or resolves outside the configured directories
        """
        if not identifier:
            raise ResolutionError(
                "", ctx.path, "empty identifier", [f"Use one of: {', '.join(IDENTIFIER_FORMATS)}"]
            )
        if os.curdir in identifier.split("/"):
            raise ResolutionError(
                identifier,
                ctx.path,
                f"identifier contains a '{os.curdir}' path segment",
                [f"Use one of: {', '.join(IDENTIFIER_FORMATS)}"],
            )

        if ctx.type in (ContextType.PROJECT, ContextType.WORKTREE):
            if identifier == MAIN_IDENTIFIER:
                return self._resolve_main(ctx)
            if "/" in identifier:
                return self._resolve_cross_project(ctx, identifier)
            return self._resolve_worktree(ctx, identifier)

        if ctx.type is ContextType.OUTSIDE_GIT:
            if "/" in identifier:
                return self._resolve_cross_project(ctx, identifier)
            return self._resolve_project(ctx, identifier)

        return ResolutionResult(
            resolved_path=None,
            type=PathType.INVALID,
            explanation=(
                f"Cannot resolve identifier '{identifier}' from unknown context. "
                f"Expected one of: {', '.join(IDENTIFIER_FORMATS)}"
            ),
        )

    def get_resolution_suggestions(
        self,
        ctx: Context,
        partial: str,
        options: SuggestionOptions = SuggestionOptions(),
    ) -> list[ResolutionSuggestion]:
        """
        Build completion suggestions for a partially typed identifier.

        Never raises because of the git provider: a source that fails
        contributes no suggestions and the failure is only logged, so shell
        completion keeps working.

        Args:
            ctx: Detected context
            partial: Prefix typed so far
            options: Suggestion filters

        Returns:
            Suggestions in source order (main, worktrees, branches) or
            discovered projects when outside git
        """
        sources: list[tuple[str, Callable[[], object]]] = []

        if ctx.type in (ContextType.PROJECT, ContextType.WORKTREE):
            worktrees = self._run_source("worktree listing", lambda: self._list_worktrees(ctx))
            sources.append(("main", lambda: self._main_suggestion(ctx, partial, options)))
            sources.append(
                ("worktrees", lambda: self._worktree_suggestions(ctx, partial, worktrees, options))
            )
            if not options.existing_only:
                sources.append(
                    ("branches", lambda: self._branch_suggestions(ctx, partial, worktrees))
                )
        elif ctx.type is ContextType.OUTSIDE_GIT:
            sources.append(("projects", lambda: self._project_suggestions(partial)))

        suggestions: list[ResolutionSuggestion] = []
        for name, source in sources:
            result = self._run_source(name, source)
            # Failed sources degrade to "no suggestions from that source"
            if result.ok:
                suggestions.extend(result.items)
        return suggestions

    # Resolution

    def _resolve_main(self, ctx: Context) -> ResolutionResult:
        if contains_path_traversal(ctx.project_name):
            raise ResolutionError(
                MAIN_IDENTIFIER,
                ctx.path,
                f"project name '{ctx.project_name}' contains path traversal sequences",
                ["Use a valid project name without '..' or path separators"],
            )

        project_path = self.projects_dir / ctx.project_name
        self._ensure_under(self.projects_dir, project_path, MAIN_IDENTIFIER, ctx, "project")

        return ResolutionResult(
            resolved_path=project_path,
            type=PathType.PROJECT,
            project_name=ctx.project_name,
            explanation=f"Resolved 'main' to project root '{ctx.project_name}'",
        )

    def _resolve_worktree(self, ctx: Context, identifier: str) -> ResolutionResult:
        if contains_path_traversal(ctx.project_name) or contains_path_traversal(identifier):
            raise ResolutionError(
                identifier,
                ctx.path,
                "project or branch name contains path traversal sequences",
                ["Use a valid project or branch name without '..' or path separators"],
            )

        worktree_path = self.worktrees_dir / ctx.project_name / identifier
        self._ensure_under(self.worktrees_dir, worktree_path, identifier, ctx, "worktree")

        return ResolutionResult(
            resolved_path=worktree_path,
            type=PathType.WORKTREE,
            project_name=ctx.project_name,
            branch_name=identifier,
            explanation=f"Resolved '{identifier}' to worktree of project '{ctx.project_name}'",
        )

    def _resolve_project(self, ctx: Context, identifier: str) -> ResolutionResult:
        if contains_path_traversal(identifier):
            raise ResolutionError(
                identifier,
                ctx.path,
                "project name contains path traversal sequences",
                ["Use a valid project name without '..' or path separators"],
            )

        project_path = self.projects_dir / identifier
        self._ensure_under(self.projects_dir, project_path, identifier, ctx, "project")

        return ResolutionResult(
            resolved_path=project_path,
            type=PathType.PROJECT,
            project_name=identifier,
            explanation=f"Resolved '{identifier}' to project directory",
        )

    def _resolve_cross_project(self, ctx: Context, identifier: str) -> ResolutionResult:
        if contains_path_traversal(identifier):
            raise ResolutionError(
                identifier,
                ctx.path,
                "identifier contains path traversal sequences",
                ["Use format 'project/branch' with valid names"],
            )

        parsed = parse_cross_project_reference(identifier)
        if parsed is None:
            return ResolutionResult(
                resolved_path=None,
                type=PathType.INVALID,
                explanation=(
                    f"Invalid cross-project reference format: '{identifier}'. "
                    "Expected: project/branch"
                ),
            )

        project_name, branch_name = parsed
        worktree_path = self.worktrees_dir / project_name / branch_name
        self._ensure_under(self.worktrees_dir, worktree_path, identifier, ctx, "worktree")

        return ResolutionResult(
            resolved_path=worktree_path,
            type=PathType.WORKTREE,
            project_name=project_name,
            branch_name=branch_name,
            explanation=f"Resolved '{identifier}' to worktree of project '{project_name}'",
        )

    def _ensure_under(
        self,
        base: Path,
        target: Path,
        identifier: str,
        ctx: Context,
        kind: str,
    ) -> None:
        try:
            under = is_path_under(base, target)
        except PathError as e:
            raise ResolutionError(
                identifier, ctx.path, f"path validation failed: {e}", cause=e
            ) from e
        if not under:
            raise ResolutionError(
                identifier,
                ctx.path,
                f"{kind} path {target} is outside the configured {kind}s directory {base}",
            )

    # Suggestions

    def _run_source(self, name: str, source: Callable[[], object]) -> _SourceResult:
        try:
            outcome = source()
        except Exception as e:
            logger.debug("Suggestion source '%s' failed: %s", name, e)
            return _SourceResult(error=e)
        if isinstance(outcome, _SourceResult):
            return outcome
        return _SourceResult(items=list(outcome))

    def _list_worktrees(self, ctx: Context) -> list[WorktreeInfo]:
        if self.provider is None:
            return []
        return self.provider.list_worktrees(ctx.path)

    def _main_suggestion(
        self, ctx: Context, partial: str, options: SuggestionOptions
    ) -> list[ResolutionSuggestion]:
        # With existing_only the main checkout comes from the worktree listing
        if options.existing_only or not MAIN_IDENTIFIER.startswith(partial):
            return []
        return [
            ResolutionSuggestion(
                text=MAIN_IDENTIFIER,
                description="Project root directory",
                type=PathType.PROJECT,
                project_name=ctx.project_name,
            )
        ]

    def _worktree_suggestions(
        self,
        ctx: Context,
        partial: str,
        worktrees: _SourceResult,
        options: SuggestionOptions,
    ) -> _SourceResult:
        if not worktrees.ok:
            return worktrees

        suggestions = []
        for worktree in worktrees.items:
            if not worktree.branch:
                continue
            if not worktree.branch.startswith(partial):
                continue
            if options.existing_only and not worktree.path.exists():
                continue
            suggestions.append(
                ResolutionSuggestion(
                    text=worktree.branch,
                    description=f"Worktree for branch {worktree.branch}",
                    type=PathType.WORKTREE,
                    project_name=ctx.project_name,
                    branch_name=worktree.branch,
                )
            )
        return _SourceResult(items=suggestions)

    def _branch_suggestions(
        self, ctx: Context, partial: str, worktrees: _SourceResult
    ) -> _SourceResult | list[ResolutionSuggestion]:
        # Branches are only offered when worktree branches can be excluded
        if not worktrees.ok:
            return worktrees
        if self.provider is None:
            return []

        branches = self.provider.list_branches(ctx.path)
        with_worktree = {wt.branch for wt in worktrees.items if wt.branch}

        return [
            ResolutionSuggestion(
                text=branch.name,
                description=f"Branch {branch.name} (create worktree)",
                type=PathType.PROJECT,
                project_name=ctx.project_name,
                branch_name=branch.name,
            )
            for branch in branches
            if branch.name.startswith(partial) and branch.name not in with_worktree
        ]

    def _project_suggestions(self, partial: str) -> list[ResolutionSuggestion]:
        validator = self.provider if self.validate_projects else None
        projects = find_git_repositories(self.projects_dir, validator)
        return [
            ResolutionSuggestion(
                text=project.name,
                description="Project directory",
                type=PathType.PROJECT,
                project_name=project.name,
            )
            for project in projects
            if project.name.startswith(partial)
        ]
