"""Constants and default values for git-hop."""

from pathlib import Path

# Identifier that always means "the project's main checkout"
MAIN_IDENTIFIER = "main"

# Marker written by git into a linked worktree's .git file
GITDIR_MARKER = "gitdir:"

# Context detection
DEFAULT_CACHE_TTL = 5.0

# Git CLI provider
DEFAULT_GIT_TIMEOUT = 10.0
DEFAULT_SOURCE_BRANCH = "main"

# Configuration
CONFIG_DIR_NAME = "git-hop"
CONFIG_FILE_NAME = "config.toml"
ENV_PREFIX = "GIT_HOP_"

# Formats shown to the user when an identifier cannot be resolved
IDENTIFIER_FORMATS = [
    "main",
    "<branch>",
    "<project>/<branch>",
]


def default_projects_dir() -> Path:
    """Default location of the main project checkouts (~/Projects)."""
    return Path.home() / "Projects"


def default_worktrees_dir() -> Path:
    """
    Default location of the per-branch worktrees (~/Worktrees).

    Worktrees are laid out as <worktrees_dir>/<project>/<branch>.
    """
    return Path.home() / "Worktrees"
