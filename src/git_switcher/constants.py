import os
from pathlib import Path

"""Global constants and path definitions for git-switcher.

This module defines the filesystem layout (adhering to XDG standards where applicable),
application identifiers, and the default branch-switch policy used across the
application.
"""

# --- Identity ---
APP_NAME = "git-switcher"
"""str: The human-readable application name (also the logger name)."""

STASH_LABEL = "git-switcher: autostash before branch switch"
"""str: The message attached to stash entries created before a branch switch."""

# --- Branch Policy ---
FALLBACK_BRANCHES = ["main", "master"]
"""list[str]: Trunk branches probed, in order, when a requested branch is missing."""

DEFAULT_BRANCH = "master"
"""str: Branch assumed when HEAD is detached and no branch was requested."""

DEFAULT_COMMIT_MESSAGE = "Routine update via script"
"""str: Commit message used when the user leaves the prompt blank."""

RECENT_COMMITS = 5
"""int: Number of commits shown after a successful checkout."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "git-switcher"
"""Path: The directory for runtime state data."""

LOG_DIR = STATE_DIR / "logs"
"""Path: The root directory holding per-command run logs."""

# --- Configuration Paths ---
CONFIG_DIR: Path = Path.home() / ".config/git-switcher"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

LOCAL_CONFIG_NAME = "switcher.toml"
"""str: Per-repository configuration file name."""

PYPROJECT_SECTION = "tool.switcher"
"""str: Section of pyproject.toml holding per-repository configuration."""
