import datetime
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import Config
from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)

_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def run_log_path(log_dir: Path, command: str, project: str) -> Path:
    """Builds the per-run log file path.

    Args:
        log_dir (Path): Root log directory.
        command (str): The subcommand being run (one directory per command).
        project (str): Name of the repository the run targets.

    Returns:
        Path: `<log_dir>/<command>/<project>_<YYYYmmdd_HHMMSS>.log`.
    """
    stamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    return log_dir / command / f"{project}_{stamp}.log"


def setup_logging(
    command: str, project: str, config: Config, verbose: bool = False
) -> Path | None:
    """Configures the logging subsystem for one CLI run.

    Every record at the configured level goes to a fresh, timestamped run log.
    The console only sees warnings unless `verbose` is set, since user-facing
    output is printed separately.

    Args:
        command (str): The subcommand being run.
        project (str): Name of the target repository (or log scope).
        config (Config): Loaded configuration.
        verbose (bool, optional): Mirror all records to stderr.

    Returns:
        Path | None: The run log path, or None if it could not be created.
    """
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(logging.DEBUG if verbose else config.logging.level)
    formatter = logging.Formatter(_FORMAT, _DATE_FORMAT)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    log_file = run_log_path(config.logging.directory, command, project)
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=config.limits.max_log_size,
            backupCount=1,
        )
    except OSError as e:
        logger.warning(f"Cannot create log file {log_file}: {e}")
        return None

    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    return log_file
