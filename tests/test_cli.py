"""Tests for the Command Line Interface (CLI) module."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from git_switcher import cli
from git_switcher.config import Config


@pytest.fixture
def config(tmp_path: Path, mocker: MagicMock) -> Config:
    """A default config whose run logs land in a temporary directory."""
    conf = Config()
    conf.logging.directory = tmp_path / "logs"
    mocker.patch("git_switcher.cli.Config.load", return_value=conf)
    return conf


def test_checkout_dispatch(tmp_path: Path, mocker: MagicMock, config: Config) -> None:
    """Verifies that `checkout` forwards path, branch and --yes to the workflow."""
    (tmp_path / ".git").mkdir()
    mock_checkout = mocker.patch("git_switcher.cli.ops.interactive_checkout")

    cli.main(["checkout", "-C", str(tmp_path), "feature", "--yes"])

    mock_checkout.assert_called_once_with(tmp_path.resolve(), "feature", True, config)


def test_push_dispatch(tmp_path: Path, mocker: MagicMock, config: Config) -> None:
    mock_check_in = mocker.patch("git_switcher.cli.ops.check_in")

    cli.main(["push", "-C", str(tmp_path), "-m", "fix typo"])

    mock_check_in.assert_called_once_with(
        tmp_path.resolve(), None, "fix typo", False, config
    )


def test_prune_logs_defaults_to_configured_retention(
    mocker: MagicMock, config: Config
) -> None:
    config.limits.log_retention = 14
    mock_prune = mocker.patch("git_switcher.cli.ops.prune_logs")

    cli.main(["prune-logs"])

    mock_prune.assert_called_once_with(14, config.logging.directory, False)


def test_prune_logs_days_flag(mocker: MagicMock, config: Config) -> None:
    mock_prune = mocker.patch("git_switcher.cli.ops.prune_logs")

    cli.main(["prune-logs", "--days", "3", "--yes"])

    mock_prune.assert_called_once_with(3, config.logging.directory, True)


def test_run_log_is_created_per_command(
    tmp_path: Path, mocker: MagicMock, config: Config
) -> None:
    """Verifies that each run writes a timestamped log under <log_dir>/<command>/."""
    (tmp_path / ".git").mkdir()
    mocker.patch("git_switcher.cli.ops.interactive_checkout")

    cli.main(["checkout", "-C", str(tmp_path), "main", "--yes"])

    logs = list((config.logging.directory / "checkout").glob(f"{tmp_path.name}_*.log"))
    assert len(logs) == 1


def test_branches_rejects_non_repo(tmp_path: Path, config: Config) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["branches", "-C", str(tmp_path)])
    assert exc_info.value.code == 1


def test_no_command_prints_help(capsys: pytest.CaptureFixture) -> None:
    cli.main([])

    captured = capsys.readouterr()
    assert "Branches:" in captured.out
    assert "checkout" in captured.out


def test_config_command_shows_settings(
    mocker: MagicMock, config: Config
) -> None:
    mock_console = mocker.patch("git_switcher.cli.console")

    cli.main(["config"])

    mock_console.print.assert_called()
