"""Path normalization and containment checks.

Every path git-hop hands back to the user is built by joining user-typed
fragments onto one of the configured base directories. The helpers here
reject traversal sequences in those fragments and prove that the joined
result still lives under its base directory, resolving symlinks on both
sides so a link planted inside the tree cannot point the result elsewhere.
"""

import os
from pathlib import Path
from urllib.parse import unquote_plus

from .exceptions import PathError


def _resolve_symlinks(path: str) -> str:
    """Resolve symlinks in an absolute path, falling back to the path itself."""
    try:
        return os.path.realpath(path)
    except (OSError, ValueError):
        return path


def normalize_path(path: str | Path) -> Path:
    """
    Normalize a path to an absolute, symlink-resolved form.

    The path is cleaned lexically (``.`` and ``..`` segments), made absolute
    against the process working directory, and then symlinks are resolved.
    When resolution fails the absolute, unresolved form is returned instead.
    Normalizing an already normalized path returns it unchanged.

    Args:
        path: Path to normalize

    Returns:
        Absolute, normalized path

    Raises:
        PathError: If the path is empty
    """
    raw = os.fspath(path)
    if not raw:
        raise PathError("Cannot normalize an empty path")
    absolute = os.path.abspath(os.path.normpath(raw))
    return Path(_resolve_symlinks(absolute))


def is_path_under(base: str | Path, target: str | Path) -> bool:
    """
    Check whether target lies inside base (base itself counts as inside).

    Symlinks are resolved on both sides independently before comparing, so a
    symlink inside ``base`` that points outside of it is reported as outside.
    A parent of ``base`` is never contained in it.

    Args:
        base: Base directory
        target: Path to check

    Returns:
        True if target is base or a descendant of base

    Raises:
        PathError: If exactly one of base and target is empty, or the two
            paths cannot be related (e.g. different drives)
    """
    base_raw = os.fspath(base)
    target_raw = os.fspath(target)

    if not base_raw and not target_raw:
        return True
    if not base_raw or not target_raw:
        raise PathError(
            f"Cannot compare paths: base={base_raw!r}, target={target_raw!r} (empty path)"
        )

    resolved_base = _resolve_symlinks(os.path.abspath(base_raw))
    resolved_target = _resolve_symlinks(os.path.abspath(target_raw))

    try:
        rel = os.path.relpath(resolved_target, resolved_base)
    except ValueError as e:
        raise PathError(
            f"Failed to get relative path from {resolved_base} to {resolved_target}"
        ) from e

    if rel == os.curdir:
        return True
    return rel.split(os.sep, 1)[0] != os.pardir


def contains_path_traversal(value: str) -> bool:
    """
    Detect path traversal sequences in a user-supplied name fragment.

    Catches literal ``..`` as well as percent-encoded (``%2e%2e``, any case)
    and double-encoded (``%252e%252e``) variants.

    Args:
        value: Raw identifier fragment (project or branch name)

    Returns:
        True if the fragment contains a traversal sequence
    """
    if ".." in value:
        return True

    decoded = unquote_plus(value)
    if decoded != value:
        if ".." in decoded:
            return True
        double_decoded = unquote_plus(decoded)
        if double_decoded != decoded and ".." in double_decoded:
            return True

    return False
