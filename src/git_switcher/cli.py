import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from . import ops, runlog
from .config import CONFIG_FILE, Config
from .constants import APP_NAME
from .git_wrapper import GitRepo
from .models import RepositoryRef

logger = logging.getLogger(APP_NAME)
console = Console()


class SwitcherHelpFormatter(argparse.HelpFormatter):
    """Custom help formatter that groups subcommands under headers."""

    def _format_action(self, action: argparse.Action) -> str:
        if isinstance(action, argparse._SubParsersAction):
            parts = []

            groups = {
                "Branches": ["checkout", "branches"],
                "Check-in": ["push"],
                "Maintenance": ["prune-logs", "config"],
            }

            subactions = list(self._iter_indented_subactions(action))

            for group_name, commands in groups.items():
                group_actions = [a for a in subactions if a.dest in commands]
                if not group_actions:
                    continue

                parts.append(f"\n  {group_name}:\n")

                self._indent()
                for subaction in group_actions:
                    parts.append(self._format_action(subaction))
                self._dedent()

            return self._join_parts(parts)

        return super()._format_action(action)


def show_config(config: Config) -> None:
    """Displays the effective configuration and the file it is read from."""
    table = Table(title="git-switcher Configuration", show_lines=True)
    table.add_column("Section", style="cyan", justify="right")
    table.add_column("Key", style="green")
    table.add_column("Value", style="yellow")
    table.add_column("Description")

    table.add_row(
        "core",
        "fallback_branches",
        ", ".join(config.core.fallback_branches),
        "Trunk branches tried, in order, when the requested branch is missing.",
    )
    table.add_row(
        "",
        "default_branch",
        config.core.default_branch,
        "Branch assumed when HEAD is detached and no branch is given.",
    )
    table.add_row(
        "", "remote_name", config.core.remote_name, "Remote used by 'push'."
    )
    table.add_row(
        "",
        "stash_label",
        config.core.stash_label,
        "Message identifying autostash entries.",
    )
    table.add_row(
        "logging",
        "directory",
        str(config.logging.directory),
        "Root directory for per-run log files.",
    )
    table.add_row("", "level", config.logging.level, "Minimum level written to logs.")
    table.add_row(
        "limits",
        "max_log_size",
        str(config.limits.max_log_size),
        "Max run log size in bytes (e.g., '5mb').",
    )
    table.add_row(
        "",
        "log_retention",
        f"{config.limits.log_retention} days",
        "Age after which 'prune-logs' deletes run logs (e.g., '60d', '2w').",
    )

    console.print(table)
    console.print(f"[dim]Global config file: {CONFIG_FILE}[/dim]")


def list_branches(path: Path) -> None:
    """Prints the branches of the repository at `path`."""
    ref = RepositoryRef.resolve(path)
    if not ref.is_valid_repo:
        console.print("[bold red]ERROR:[/bold red] Not a Git repo! Exiting.")
        sys.exit(1)
    ops.show_branches(GitRepo(ref.path))


def build_parser() -> argparse.ArgumentParser:
    """Builds the argument parser for the git-switcher CLI."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Safe branch switching and interactive check-in for git.",
        formatter_class=SwitcherHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Mirror log output to stderr"
    )

    subparsers = parser.add_subparsers(dest="command")

    checkout_parser = subparsers.add_parser(
        "checkout", help="Switch branch, stashing and restoring local changes"
    )
    checkout_parser.add_argument(
        "-C", dest="path", default=".", help="Repository path (default: .)"
    )
    checkout_parser.add_argument(
        "branch", nargs="?", help="Target branch (prompted if omitted)"
    )
    checkout_parser.add_argument(
        "--yes", "-y", action="store_true", help="Do not prompt; accept defaults"
    )

    push_parser = subparsers.add_parser(
        "push", help="Stage, commit and push local changes"
    )
    push_parser.add_argument(
        "-C", dest="path", default=".", help="Repository path (default: .)"
    )
    push_parser.add_argument(
        "branch", nargs="?", help="Branch to push (default: current)"
    )
    push_parser.add_argument("--message", "-m", help="Commit message")
    push_parser.add_argument(
        "--yes", "-y", action="store_true", help="Stage everything without prompting"
    )

    branches_parser = subparsers.add_parser("branches", help="List branches")
    branches_parser.add_argument(
        "-C", dest="path", default=".", help="Repository path (default: .)"
    )

    prune_parser = subparsers.add_parser("prune-logs", help="Delete old run logs")
    prune_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Age in days (default: limits.log_retention)",
    )
    prune_parser.add_argument(
        "--yes", "-y", action="store_true", help="Remove stale empty directories"
    )

    subparsers.add_parser("config", help="Show effective configuration")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the git-switcher CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return

    repo_path = Path(getattr(args, "path", ".")).expanduser().resolve()
    config = Config.load(repo_path if (repo_path / ".git").exists() else None)

    scope = repo_path.name if hasattr(args, "path") else args.command
    log_file = runlog.setup_logging(args.command, scope, config, args.verbose)
    if log_file:
        logger.debug(f"Run log: {log_file}")

    if args.command == "checkout":
        ops.interactive_checkout(repo_path, args.branch, args.yes, config)
    elif args.command == "push":
        ops.check_in(repo_path, args.branch, args.message, args.yes, config)
    elif args.command == "branches":
        list_branches(repo_path)
    elif args.command == "prune-logs":
        days = args.days if args.days is not None else config.limits.log_retention
        ops.prune_logs(days, config.logging.directory, args.yes)
    elif args.command == "config":
        show_config(config)


if __name__ == "__main__":
    main()
