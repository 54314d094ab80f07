"""Context-aware navigation built on the detector and resolver."""

import logging
from pathlib import Path

from .config import Config
from .constants import IDENTIFIER_FORMATS
from .detector import ContextDetector
from .discovery import find_git_repositories
from .exceptions import ContextDetectionError, NavigationError
from .git_utils import GitCLIClient
from .models import (
    Context,
    ContextType,
    GitDir,
    GitProvider,
    PathType,
    ResolutionResult,
    ResolutionSuggestion,
    SuggestionOptions,
    WorktreeInfo,
)
from .resolver import ContextResolver

logger = logging.getLogger(__name__)


class ContextService:
    """Detect the caller's context and resolve identifiers against it."""

    def __init__(
        self,
        config: Config,
        detector: ContextDetector,
        resolver: ContextResolver,
        provider: GitProvider,
    ):
        self.config = config
        self.detector = detector
        self.resolver = resolver
        self.provider = provider

    def get_current_context(self) -> Context:
        """
        Detect the context of the current working directory.

        Raises:
            ContextDetectionError: If the working directory is gone or unreadable
        """
        try:
            cwd = Path.cwd()
        except OSError as e:
            raise ContextDetectionError("", "failed to get working directory", e) from e
        return self.detector.detect_context(cwd)

    def detect_context_from_path(self, path: str | Path) -> Context:
        return self.detector.detect_context(path)

    def resolve_identifier(
        self, identifier: str, context: Context | None = None
    ) -> ResolutionResult:
        """
        Resolve an identifier from the given context (default: current directory).

        Raises:
            ContextDetectionError: If the current context cannot be detected
            ResolutionError: If the identifier is unsafe or empty
        """
        ctx = context if context is not None else self.get_current_context()
        return self.resolver.resolve_identifier(ctx, identifier)

    def resolve_path(self, identifier: str, context: Context | None = None) -> Path:
        """
        Resolve an identifier to a directory that exists.

        Args:
            identifier: "main", a branch, a project, or "project/branch"
            context: Context to resolve from (default: current directory)

        Returns:
            Existing directory to navigate to

        Raises:
            NavigationError: If the identifier is malformed or the target is missing
            ResolutionError: If the identifier is unsafe or empty
        """
        result = self.resolve_identifier(identifier, context)
        if not result.is_valid or result.resolved_path is None:
            raise NavigationError(
                result.explanation,
                [f"Use one of: {', '.join(IDENTIFIER_FORMATS)}"],
            )

        path = result.resolved_path
        if not path.exists():
            if result.type is PathType.WORKTREE:
                git_prefix = f"git -C {self.config.projects_dir / result.project_name}"
                raise NavigationError(
                    f"Worktree '{result.project_name}/{result.branch_name}' not found at {path}",
                    [
                        f"Create it with: {git_prefix} worktree add {path} {result.branch_name}",
                        f"Or start a new branch: {git_prefix} worktree add -b "
                        f"{result.branch_name} {path} {self.config.default_source_branch}",
                        "Use 'hop list' to see available worktrees",
                    ],
                )
            raise NavigationError(
                f"Project '{result.project_name}' not found at {path}",
                [
                    "Check project name spelling",
                    f"Verify the project exists in {self.config.projects_dir}",
                    "Use 'hop list' to see available projects",
                ],
            )
        if not path.is_dir():
            raise NavigationError(f"Path is not a directory: {path}")

        return path

    def get_completion_suggestions(
        self,
        partial: str,
        context: Context | None = None,
        options: SuggestionOptions = SuggestionOptions(),
    ) -> list[ResolutionSuggestion]:
        """
        Completion suggestions for a partial identifier.

        Returns an empty list when the current context cannot be detected, and
        honours the configured max_suggestions limit.
        """
        if context is None:
            try:
                context = self.get_current_context()
            except ContextDetectionError as e:
                logger.debug("No completion context: %s", e)
                return []

        suggestions = self.resolver.get_resolution_suggestions(context, partial, options)

        limit = self.config.max_suggestions
        if limit > 0 and len(suggestions) > limit:
            suggestions = suggestions[:limit]
        return suggestions

    def list_projects(self) -> list[GitDir]:
        """List the repositories in the projects directory."""
        validator = self.provider if self.config.enable_git_validation else None
        return find_git_repositories(self.config.projects_dir, validator)

    def list_worktrees(self, project_name: str) -> list[WorktreeInfo]:
        """
        List the worktrees of a project.

        The project name goes through the same safety checks as a typed
        identifier before any git command runs.

        Raises:
            ResolutionError: If the project name is unsafe
            NavigationError: If the project does not exist
            GitError: If git fails
        """
        outside = Context(type=ContextType.OUTSIDE_GIT, path=self.config.projects_dir)
        project_path = self.resolve_path(project_name, outside)
        return self.provider.list_worktrees(project_path)


def build_service(config: Config) -> ContextService:
    """Wire a ContextService with the git CLI provider."""
    provider = GitCLIClient(timeout=config.git_timeout)
    detector = ContextDetector(config.worktrees_dir, cache_ttl=config.cache_ttl)
    resolver = ContextResolver(
        config.projects_dir,
        config.worktrees_dir,
        provider=provider,
        validate_projects=config.enable_git_validation,
    )
    return ContextService(config, detector, resolver, provider)
