"""Configuration loading for git-hop.

Values are layered, later layers winning:

1. built-in defaults
2. the TOML config file (``$XDG_CONFIG_HOME/git-hop/config.toml``)
3. ``GIT_HOP_*`` environment variables
4. explicit overrides (CLI flags)

Example config.toml::

    projects_dir = "~/Projects"
    worktrees_dir = "~/Worktrees"
    default_source_branch = "main"

    [context_detection]
    cache_ttl = "5s"
    enable_git_validation = true

    [git]
    timeout = "10s"

    [navigation]
    max_suggestions = 0
"""

import logging
import os
import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .constants import (
    CONFIG_DIR_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_CACHE_TTL,
    DEFAULT_GIT_TIMEOUT,
    DEFAULT_SOURCE_BRANCH,
    ENV_PREFIX,
    default_projects_dir,
    default_worktrees_dir,
)
from .exceptions import ConfigError

logger = logging.getLogger(__name__)

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

# TOML table -> {toml key: config field}
_TOML_SECTIONS = {
    "context_detection": {
        "cache_ttl": "cache_ttl",
        "enable_git_validation": "enable_git_validation",
    },
    "git": {"timeout": "git_timeout"},
    "navigation": {"max_suggestions": "max_suggestions"},
}
_TOML_TOP_LEVEL = {"projects_dir", "worktrees_dir", "default_source_branch"}

_ENV_FIELDS = (
    "projects_dir",
    "worktrees_dir",
    "default_source_branch",
    "cache_ttl",
    "enable_git_validation",
    "git_timeout",
    "max_suggestions",
)


def parse_duration(value: Any, default: float) -> float:
    """
    Parse a duration into seconds.

    Accepts Go-style duration strings ("500ms", "5s", "1m", "1h30m", "1.5s")
    and bare numbers, which are taken as seconds. Empty, negative or
    unparsable values yield the default.

    Args:
        value: Raw value from a config file, environment variable or flag
        default: Seconds to use when value is missing or invalid

    Returns:
        Duration in seconds
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value) if value >= 0 else default

    text = str(value).strip()
    if not text:
        return default

    try:
        seconds = float(text)
        return seconds if seconds >= 0 else default
    except ValueError:
        pass

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            return default
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(text):
        return default
    return total


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigError(f"Invalid boolean for {key}: {value!r}")


def _parse_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"Invalid integer for {key}: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid integer for {key}: {value!r}") from e


def _parse_dir(value: Any) -> Path:
    return Path(os.path.expanduser(str(value)))


@dataclass(frozen=True)
class Config:
    """Resolved git-hop configuration."""

    projects_dir: Path
    worktrees_dir: Path
    default_source_branch: str = DEFAULT_SOURCE_BRANCH
    cache_ttl: float = DEFAULT_CACHE_TTL
    enable_git_validation: bool = True
    git_timeout: float = DEFAULT_GIT_TIMEOUT
    max_suggestions: int = 0

    @classmethod
    def default(cls) -> "Config":
        return cls(
            projects_dir=default_projects_dir(),
            worktrees_dir=default_worktrees_dir(),
        )

    def validate(self) -> None:
        """
        Validate the configuration.

        Raises:
            ConfigError: Listing every problem found
        """
        problems: list[str] = []
        if not self.projects_dir.is_absolute():
            problems.append(f"projects_dir must be an absolute path, got '{self.projects_dir}'")
        if not self.worktrees_dir.is_absolute():
            problems.append(f"worktrees_dir must be an absolute path, got '{self.worktrees_dir}'")
        if not self.default_source_branch:
            problems.append("default_source_branch cannot be empty")
        if self.max_suggestions < 0:
            problems.append("max_suggestions cannot be negative")

        if problems:
            raise ConfigError("Invalid configuration: " + "; ".join(problems))


def get_config_path(env: Mapping[str, str] | None = None) -> Path:
    """Get the path to the config file.

    Returns:
        $GIT_HOP_CONFIG if set, else $XDG_CONFIG_HOME/git-hop/config.toml,
        else ~/.config/git-hop/config.toml
    """
    env = os.environ if env is None else env
    explicit = env.get(f"{ENV_PREFIX}CONFIG")
    if explicit:
        return Path(os.path.expanduser(explicit))

    xdg = env.get("XDG_CONFIG_HOME")
    config_home = Path(xdg) if xdg else Path.home() / ".config"
    return config_home / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def _read_config_file(path: Path) -> dict[str, Any]:
    """Read a TOML config file and flatten it into config field names."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {e}", path) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse config file: {e}", path) from e

    values: dict[str, Any] = {}
    for key, value in data.items():
        if key in _TOML_TOP_LEVEL:
            values[key] = value
        elif key in _TOML_SECTIONS and isinstance(value, dict):
            mapping = _TOML_SECTIONS[key]
            for sub_key, sub_value in value.items():
                if sub_key in mapping:
                    values[mapping[sub_key]] = sub_value
                else:
                    logger.warning("Ignoring unknown config key %s.%s in %s", key, sub_key, path)
        else:
            logger.warning("Ignoring unknown config key %s in %s", key, path)
    return values


def _read_env(env: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for field_name in _ENV_FIELDS:
        raw = env.get(f"{ENV_PREFIX}{field_name.upper()}")
        if raw is not None and raw != "":
            values[field_name] = raw
    return values


def _build_config(values: Mapping[str, Any]) -> Config:
    defaults = Config.default()
    return Config(
        projects_dir=_parse_dir(values.get("projects_dir", defaults.projects_dir)),
        worktrees_dir=_parse_dir(values.get("worktrees_dir", defaults.worktrees_dir)),
        default_source_branch=str(
            values.get("default_source_branch", defaults.default_source_branch)
        ).strip(),
        cache_ttl=parse_duration(values.get("cache_ttl"), DEFAULT_CACHE_TTL),
        enable_git_validation=_parse_bool(
            "enable_git_validation",
            values.get("enable_git_validation", defaults.enable_git_validation),
        ),
        git_timeout=parse_duration(values.get("git_timeout"), DEFAULT_GIT_TIMEOUT),
        max_suggestions=_parse_int(
            "max_suggestions", values.get("max_suggestions", defaults.max_suggestions)
        ),
    )


def load_config(
    overrides: Mapping[str, Any] | None = None,
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Config:
    """
    Load configuration from defaults, config file, environment and overrides.

    Args:
        overrides: Highest-priority values keyed by Config field name
            (None values are ignored)
        config_path: Config file to read instead of the default location
        env: Environment mapping (defaults to os.environ)

    Returns:
        Validated Config

    Raises:
        ConfigError: If the config file is malformed or the result is invalid
    """
    env = os.environ if env is None else env
    path = config_path or get_config_path(env)

    values: dict[str, Any] = {}
    if path.is_file():
        logger.debug("Loading config from %s", path)
        values.update(_read_config_file(path))
    elif config_path is not None:
        raise ConfigError("Config file not found", config_path)

    values.update(_read_env(env))
    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})

    config = _build_config(values)
    config.validate()
    return config
