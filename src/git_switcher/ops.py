import logging
import sys
import time
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from . import switcher
from .config import Config
from .constants import APP_NAME, DEFAULT_COMMIT_MESSAGE, RECENT_COMMITS
from .git_wrapper import GitRepo
from .models import RepositoryRef, SwitchEvent, SwitchOutcome, SwitchState

console = Console()
logger = logging.getLogger(APP_NAME)


def _open_repo(path: Path) -> GitRepo:
    """Returns a GitRepo for `path`, exiting with an error if it is not a repository."""
    ref = RepositoryRef.resolve(path)
    if not ref.is_valid_repo:
        logger.error(f"No .git directory in {ref.path}")
        console.print("[bold red]ERROR:[/bold red] Not a Git repo! Exiting.")
        sys.exit(1)
    return GitRepo(ref.path)


def _porcelain_path(line: str) -> str:
    """Extracts the target path from a `git status --porcelain` line."""
    path = line[3:]
    if " -> " in path:
        path = path.split(" -> ", 1)[1]
    if len(path) > 1 and path.startswith('"') and path.endswith('"'):
        path = path[1:-1]
    return path


def print_event(event: SwitchEvent) -> None:
    """Renders a switch event on the console."""
    if event.is_warning:
        console.print(f"[bold yellow]WARNING:[/bold yellow] {event.message}")
    else:
        console.print(f"[cyan]{event.message}[/cyan]")
    for detail in event.details:
        console.print(f"   {detail}")


def show_branches(repo: GitRepo) -> None:
    """Prints local and remote-tracking branches, marking the current one."""
    current = repo.current_branch()
    console.print("[cyan]Available branches:[/cyan]")
    for name in repo.list_branches():
        marker = "*" if name == current else " "
        style = "bold green" if name == current else ""
        console.print(f" {marker} {name}", style=style)
    for name in repo.list_branches(remote=True):
        console.print(f"   {name}", style="red")


def show_recent_commits(repo: GitRepo, branch: str) -> None:
    """Prints the latest commits of the checked-out branch."""
    lines = repo.recent_log(RECENT_COMMITS)
    if not lines:
        return
    console.print(f"[cyan]Recent commits in branch {branch}:[/cyan]")
    for line in lines:
        console.print(f"   {line}", highlight=False)


def _preview_changes(repo: GitRepo) -> None:
    tracked = [line for line in repo.status_porcelain() if not line.startswith("??")]
    if not tracked:
        return
    console.print(
        "[cyan]You have unstaged or uncommitted changes to tracked files:[/cyan]"
    )
    for line in tracked:
        console.print(f"   {line}", highlight=False)
    stat = repo.diff_stat()
    if stat:
        console.print("[cyan]Preview diff before switching branch:[/cyan]")
        console.print(stat, highlight=False)


def _ask_fallback(requested: str, fallback: str) -> bool:
    console.print(f"[bold red]Branch '{requested}' does not exist.[/bold red]")
    return Confirm.ask(f"   Fall back to branch '{fallback}'?", default=True)


def interactive_checkout(
    path: Path,
    branch: str | None = None,
    assume_yes: bool = False,
    config: Config | None = None,
) -> SwitchOutcome:
    """Checks out a branch while preserving uncommitted work.

    Lists branches, prompts for the target when none is given (blank keeps
    the current branch), previews local changes and then runs the safe switch.

    Args:
        path (Path): The working tree root.
        branch (str | None): Target branch; prompts when None.
        assume_yes (bool): Accept the default for every prompt.
        config (Config | None): Defaults to the repository's merged config.

    Returns:
        SwitchOutcome: The result of the switch.
    """
    repo = _open_repo(path)
    config = config or Config.load(repo.path)
    logger.info(f"Starting git checkout for {repo.path}")

    show_branches(repo)

    if branch is None:
        if assume_yes:
            branch = ""
        else:
            branch = Prompt.ask(
                "[cyan]Enter target branch to checkout "
                "(leave blank for current branch)[/cyan]",
                default="",
                show_default=False,
            )

    _preview_changes(repo)

    try:
        outcome = switcher.switch_to(
            repo.path,
            branch,
            config=config,
            report=print_event,
            confirm_fallback=None if assume_yes else _ask_fallback,
        )
    except switcher.FallbackDeclined as e:
        logger.info(f"Checkout cancelled by user: {e}")
        console.print("[bold red]ABORTED.[/bold red]")
        sys.exit(0)
    except switcher.SwitchError as e:
        logger.error(str(e))
        console.print(f"[bold red]ERROR:[/bold red] {e}")
        sys.exit(1)

    if outcome.state is SwitchState.DONE_NOOP:
        console.print(
            f"[bold green]SUCCESS:[/bold green] Already on branch '{outcome.branch}' "
            "and working tree is clean/up to date!"
        )
        return outcome

    show_recent_commits(repo, outcome.branch)

    if outcome.state is SwitchState.DONE_WITH_WARNING:
        console.print(
            f"[bold yellow]DONE:[/bold yellow] On branch '{outcome.branch}' "
            "with warnings (see above)."
        )
    else:
        console.print(
            f"[bold green]SUCCESS:[/bold green] On branch '{outcome.branch}'."
        )
    logger.info(f"Completed git checkout for {repo.path} ({outcome.state.value})")
    return outcome


def _resolve_push_branch(
    repo: GitRepo, branch: str | None, assume_yes: bool
) -> str | None:
    """Picks the branch to push, offering the current branch if `branch` is missing."""
    current = repo.current_branch()
    if not branch:
        branch = current
    if not branch:
        logger.error("Detached HEAD; no branch to push.")
        console.print(
            "[bold red]ERROR:[/bold red] HEAD is detached. Specify a branch to push."
        )
        sys.exit(1)

    if repo.branch_exists(branch):
        return branch

    logger.error(f"Branch {branch} does not exist.")
    console.print(f"[bold red]ERROR:[/bold red] Branch '{branch}' does not exist.")
    if not current:
        sys.exit(1)
    if assume_yes or Confirm.ask(
        f"   Use current branch '{current}' instead?", default=False
    ):
        return current
    return None


def check_in(
    path: Path,
    branch: str | None = None,
    message: str | None = None,
    assume_yes: bool = False,
    config: Config | None = None,
) -> bool:
    """Interactively stages, commits and pushes local changes.

    Args:
        path (Path): The working tree root.
        branch (str | None): Branch to push; defaults to the current branch.
        message (str | None): Commit message; prompts when None.
        assume_yes (bool): Stage every change and accept every default.
        config (Config | None): Defaults to the repository's merged config.

    Returns:
        bool: True if a commit was pushed, False if the run ended early.
    """
    repo = _open_repo(path)
    config = config or Config.load(repo.path)
    logger.info(f"Starting Git interactive check-in for {repo.path}")

    lines = repo.status_porcelain()
    if not lines:
        logger.info("No unstaged, modified, or untracked files found. Nothing to add.")
        console.print("[cyan]No changes to commit or push.[/cyan]")
        return False

    table = Table(title="Git Status", show_header=True, header_style="bold cyan")
    table.add_column("Status", style="yellow")
    table.add_column("Path")
    for line in lines:
        table.add_row(line[:2], _porcelain_path(line))
    console.print(table)

    # 1. Selection.
    selected = []
    for line in lines:
        file = _porcelain_path(line)
        if assume_yes or Confirm.ask(f"Stage [{line[:2]}] {file}?", default=False):
            selected.append(file)
            logger.info(f"Selected: {file}")
        else:
            logger.info(f"Skipped: {file}")

    if not selected:
        logger.info("No files selected for staging/commit.")
        console.print("[cyan]No files were chosen for push.[/cyan]")
        return False

    try:
        repo.add(*selected)
    except RuntimeError as e:
        logger.error(f"git add failed: {e}")
        console.print(f"[bold red]ERROR:[/bold red] git add failed: {e}")
        sys.exit(1)
    logger.info(f"Added/staged: {' '.join(selected)}")
    console.print("[bold green]SUCCESS:[/bold green] Files staged.")

    # 2. Commit.
    if message is None:
        message = (
            DEFAULT_COMMIT_MESSAGE
            if assume_yes
            else Prompt.ask("[cyan]Commit message[/cyan]", default="")
        )
    message = message.strip() or DEFAULT_COMMIT_MESSAGE

    try:
        repo.commit(message)
    except RuntimeError as e:
        if "nothing to commit" in str(e).lower():
            logger.info("Nothing was staged, nothing committed.")
            console.print("[cyan]Nothing committed. Exiting.[/cyan]")
            return False
        logger.error(f"git commit failed: {e}")
        console.print(f"[bold red]ERROR:[/bold red] git commit failed: {e}")
        sys.exit(1)
    logger.info("Commit completed successfully.")
    console.print("[bold green]SUCCESS:[/bold green] Commit recorded.")

    # 3. Push.
    target = _resolve_push_branch(repo, branch, assume_yes)
    if target is None:
        logger.info("Push cancelled by user. Nothing pushed.")
        console.print("[cyan]Push cancelled by user.[/cyan]")
        return False

    remote = config.core.remote_name
    with console.status(
        f"[bold blue]Pushing to {remote}/{target}...[/bold blue]", spinner="dots"
    ):
        try:
            repo.push(remote, target)
        except RuntimeError as e:
            logger.error(f"git push failed: {e}")
            console.print(
                "[bold red]ERROR:[/bold red] git push failed. "
                "Check credentials, remote, or branch."
            )
            console.print(f"[dim]{e}[/dim]")
            sys.exit(1)

    logger.info(f"Push to {remote}/{target} successful.")
    console.print(
        Panel(
            f"[bold]Remote:[/bold] {remote}\n"
            f"[bold]Branch:[/bold] {target}\n"
            f"[bold]Message:[/bold] {message}",
            title="Push Completed",
            border_style="green",
            expand=False,
        )
    )
    return True


def prune_logs(days: int, log_dir: Path, assume_yes: bool = False) -> int:
    """Deletes run logs older than the retention period.

    Empty directories with no activity for `days` days are offered for
    deletion as well.

    Args:
        days (int): The retention period in days.
        log_dir (Path): Root directory of the run logs.
        assume_yes (bool): Delete stale empty directories without asking.

    Returns:
        int: The number of files deleted.
    """
    if not log_dir.exists():
        console.print(f"[dim]No log directory at {log_dir}.[/dim]")
        return 0

    now = time.time()
    cutoff = now - (days * 86400)

    console.print(
        f"[bold blue]MAINTENANCE:[/bold blue] "
        f"Scanning for logs older than {days} days..."
    )
    logger.info(f"Starting cleanup of files older than {days} days under {log_dir}")

    deleted_count = 0
    for file in sorted(p for p in log_dir.rglob("*") if p.is_file()):
        try:
            if file.stat().st_mtime >= cutoff:
                continue
            file.unlink()
            logger.info(f"Deleted file: {file}")
            console.print(f"   Deleted {file}", style="dim")
            deleted_count += 1
        except OSError as e:
            logger.error(f"Failed to delete file {file}: {e}")
            console.print(f"[bold red]ERROR:[/bold red] Failed to delete {file}: {e}")

    if deleted_count == 0:
        logger.info(f"No files older than {days} days found under {log_dir}.")
        console.print("[dim]No stale logs found.[/dim]")
    else:
        console.print(f"[bold red]Deleted {deleted_count} stale log(s).[/bold red]")

    # Deepest first. A parent emptied during this pass has a fresh mtime, so it
    # is only offered on a later run once it has been idle for `days` days.
    dirs = sorted(
        (p for p in log_dir.rglob("*") if p.is_dir()),
        key=lambda p: len(p.parts),
        reverse=True,
    )
    for directory in dirs:
        try:
            if any(directory.iterdir()):
                continue
            age_days = (now - directory.stat().st_mtime) / 86400
        except OSError as e:
            logger.warning(f"Failed to inspect directory {directory}: {e}")
            continue
        if age_days < days:
            continue

        if assume_yes or Confirm.ask(
            f"Directory {directory} is empty and idle for {int(age_days)} days. "
            "Delete it?",
            default=False,
        ):
            try:
                directory.rmdir()
                logger.info(f"Deleted empty directory {directory}")
                console.print(f"[green]Deleted directory {directory}[/green]")
            except OSError as e:
                logger.error(f"Failed to delete directory {directory}: {e}")
                console.print(
                    f"[bold red]ERROR:[/bold red] Failed to delete {directory}: {e}"
                )
        else:
            logger.info(f"Skipped deletion of directory {directory}")

    logger.info("Cleanup of old log files and empty directories completed.")
    return deleted_count
