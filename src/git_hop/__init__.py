"""Jump between git projects and their per-branch worktrees."""

from importlib import metadata

try:
    __version__ = metadata.version("git-hop")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
