"""Custom exception hierarchy for git-hop."""

from pathlib import Path


class GitHopError(Exception):
    """Base error for all git-hop exceptions."""


class PathError(GitHopError):
    """Raised when a path cannot be normalized or compared."""


class GitError(GitHopError):
    """Raised when a git invocation fails or a repository is invalid."""


class ConfigError(GitHopError):
    """Raised when configuration cannot be loaded or is invalid."""

    def __init__(self, message: str, path: Path | None = None):
        if path is not None:
            message = f"{message} ({path})"
        super().__init__(message)
        self.path = path


class ContextDetectionError(GitHopError):
    """Raised when the context of a directory cannot be determined."""

    def __init__(self, path: str | Path, message: str, cause: BaseException | None = None):
        super().__init__(f"context detection failed for {path or '<empty>'}: {message}")
        self.path = str(path)
        self.message = message
        self.cause = cause


class ResolutionError(GitHopError):
    """Raised when an identifier cannot be safely resolved to a path."""

    def __init__(
        self,
        identifier: str,
        context_path: str | Path | None,
        message: str,
        suggestions: list[str] | None = None,
        cause: BaseException | None = None,
    ):
        text = f"cannot resolve '{identifier}': {message}" if identifier else message
        super().__init__(text)
        self.identifier = identifier
        self.context_path = str(context_path) if context_path else ""
        self.message = message
        self.suggestions = list(suggestions or [])
        self.cause = cause


class NavigationError(GitHopError):
    """Raised when a resolved target cannot be navigated to."""

    def __init__(self, message: str, suggestions: list[str] | None = None):
        super().__init__(message)
        self.suggestions = list(suggestions or [])
