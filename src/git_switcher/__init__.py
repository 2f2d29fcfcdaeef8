"""git-switcher: Safe branch switching for local git repositories.

This package provides the command-line interface and the core logic for
switching branches without losing uncommitted work, falling back to a trunk
branch when the requested one is missing, plus an interactive check-in
workflow and run-log housekeeping.
"""

from . import (
    backend,
    cli,
    config,
    constants,
    git_wrapper,
    models,
    ops,
    runlog,
    switcher,
)

__all__ = [
    "backend",
    "cli",
    "config",
    "constants",
    "git_wrapper",
    "models",
    "ops",
    "runlog",
    "switcher",
]
