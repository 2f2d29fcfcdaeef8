import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_BRANCH,
    FALLBACK_BRANCHES,
    LOCAL_CONFIG_NAME,
    LOG_DIR,
    PYPROJECT_SECTION,
    STASH_LABEL,
)

logger = logging.getLogger(APP_NAME)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_age(value: int | str) -> int:
    """Converts human-readable age strings (e.g., '60d', '2 weeks') to days."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+)\s*(d|day|w|wk|week)s?$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid age format '{value}'")
    num, unit = int(match.group(1)), match.group(2)
    multiplier = {"d": 1, "day": 1, "w": 7, "wk": 7, "week": 7}
    return num * multiplier[unit]


def _parse_branch_list(value: Any) -> list[str]:
    if not isinstance(value, list) or not all(
        isinstance(v, str) and v.strip() for v in value
    ):
        raise ValueError(f"Expected a list of branch names, got {value!r}")
    return [v.strip() for v in value]


def _parse_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected a non-empty string, got {value!r}")
    return value.strip()


def _parse_directory(value: Any) -> Path:
    return Path(_parse_name(value)).expanduser()


def _parse_level(value: Any) -> str:
    level = str(value).strip().upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Invalid log level '{value}'")
    return level


@dataclass
class CoreConfig:
    """Branch-switch policy settings.

    Attributes:
        fallback_branches (list[str]): Trunk branches probed in order when the
            requested branch does not exist.
        default_branch (str): Branch assumed when HEAD is detached.
        remote_name (str): The git remote used by `push`.
        stash_label (str): Message identifying autostash entries.
    """

    fallback_branches: list[str] = field(
        default_factory=lambda: list(FALLBACK_BRANCHES)
    )
    default_branch: str = DEFAULT_BRANCH
    remote_name: str = "origin"
    stash_label: str = STASH_LABEL


@dataclass
class LoggingConfig:
    """Run-log settings.

    Attributes:
        directory (Path): Root directory for per-run log files.
        level (str): Minimum level written to the log.
    """

    directory: Path = LOG_DIR
    level: str = "INFO"


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for a run log before rotation.
        log_retention (int): Age in days after which run logs are pruned.
    """

    max_log_size: int = 5 * 1024 * 1024
    log_retention: int = 60


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        core (CoreConfig): Branch policy settings.
        logging (LoggingConfig): Run-log settings.
        limits (LimitsConfig): Resource limits.
    """

    core: CoreConfig = field(default_factory=CoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    # Cache for the base global configuration
    _global_cache: "Config | None" = None

    @classmethod
    def load(cls, repo_path: Path | None = None) -> "Config":
        """Loads and merges configuration from defaults, global, and local sources.

        Args:
            repo_path (Path | None): The repository root to search for local config.

        Returns:
            Config: The fully merged configuration object.
        """
        # 1. Load or Retrieve Global Config
        if cls._global_cache is None:
            instance = cls()
            if CONFIG_FILE.exists():
                instance._merge_from_file(CONFIG_FILE)
            cls._global_cache = instance

        # Copy the nested sections so local overrides never leak into the cache
        cached = cls._global_cache
        instance = cls(
            core=replace(
                cached.core, fallback_branches=list(cached.core.fallback_branches)
            ),
            logging=replace(cached.logging),
            limits=replace(cached.limits),
        )

        # 2. Load Local Config (if applicable)
        if repo_path:
            local_toml = repo_path / LOCAL_CONFIG_NAME
            pyproject = repo_path / "pyproject.toml"

            if local_toml.exists():
                instance._merge_from_file(local_toml)
            elif pyproject.exists():
                instance._merge_from_file(pyproject, section=PYPROJECT_SECTION)

        return instance

    def _merge_from_file(self, path: Path, section: str | None = None) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
            section (str | None): Dot-separated section path (e.g., 'tool.switcher').
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if section:
                for key in section.split("."):
                    data = data.get(key, {}) if isinstance(data, dict) else {}

            if not data:
                return
            if not isinstance(data, dict):
                logger.warning(f"Config error in {path}: [{section}] is not a table.")
                return

            for name in ("core", "logging", "limits"):
                if name not in data:
                    continue
                if not isinstance(data[name], dict):
                    logger.warning(
                        f"Config error in {path}: [{name}] must be a table. Ignoring."
                    )
                    continue
                setattr(
                    self,
                    name,
                    self._update_dataclass(name, getattr(self, name), data[name]),
                )

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: "
                f"{', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                elif k == "log_retention":
                    filtered_updates[k] = parse_age(v)
                elif k == "fallback_branches":
                    filtered_updates[k] = _parse_branch_list(v)
                elif k == "level":
                    filtered_updates[k] = _parse_level(v)
                elif k == "directory":
                    filtered_updates[k] = _parse_directory(v)
                else:
                    filtered_updates[k] = _parse_name(v)
            except (TypeError, ValueError) as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
