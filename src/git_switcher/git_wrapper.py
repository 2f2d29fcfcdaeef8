import logging
import subprocess
from pathlib import Path

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)


class GitRepo:
    """A wrapper around the Git command-line interface for a specific repository.

    This class provides methods to execute common Git operations using `subprocess`,
    abstracting away the command construction and output handling.

    Attributes:
        path (Path): The file system path to the repository root.
    """

    def __init__(self, path: Path):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.

        Raises:
            ValueError: If the specified path does not contain a .git entry.
        """
        self.path = path
        if not (self.path / ".git").exists():
            raise ValueError(f"Not a git repository: {self.path}")

    def _run(self, args: list[str], capture: bool = True) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            capture (bool, optional):   Whether to capture and return stdout.
                                        Defaults to True.

        Returns:
            str:    The stdout of the command with trailing whitespace removed
                    if capture is True, otherwise an empty string. Leading
                    whitespace is kept since porcelain status depends on it.

        Raises:
            RuntimeError: If the git command returns a non-zero exit code.
        """
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=capture,
                text=True,
                check=True,
            )
            return res.stdout.rstrip() if capture else ""
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() or (e.stdout or "").strip() or str(e)
            raise RuntimeError(f"Git error: {detail}") from e

    def current_branch(self) -> str | None:
        """Retrieves the name of the currently checked-out branch.

        Returns:
            str | None: The short branch name, or None when HEAD is detached.
        """
        try:
            return self._run(["symbolic-ref", "--short", "-q", "HEAD"]) or None
        except RuntimeError:
            return None

    def list_branches(self, remote: bool = False) -> list[str]:
        """Lists local (or remote-tracking) branch names.

        Args:
            remote (bool, optional): List remote-tracking branches instead.

        Returns:
            list[str]: Short branch names, in git's sort order.
        """
        namespace = "refs/remotes" if remote else "refs/heads"
        output = self._run(["for-each-ref", "--format=%(refname:short)", namespace])
        return output.splitlines() if output else []

    def branch_exists(self, name: str) -> bool:
        """Checks whether a local branch with the given name exists.

        Args:
            name (str): The short branch name.
        """
        try:
            self._run(["show-ref", "--verify", "--quiet", f"refs/heads/{name}"])
            return True
        except RuntimeError:
            return False

    def status_porcelain(self, path: str | None = None) -> list[str]:
        """Returns the porcelain (machine-readable) status of the repository.

        Args:
            path (Optional[str], optional): A specific path to check status for.
                                            Defaults to None.

        Returns:
            list[str]: A list of status lines returned by `git status --porcelain`.
        """
        cmd = ["status", "--porcelain"]
        if path:
            cmd.append(path)
        output = self._run(cmd)
        return output.splitlines() if output else []

    def get_untracked_files(self) -> list[str]:
        """Lists files that are not tracked by git and are not ignored.

        Paths are listed file by file (new directories are expanded) and are
        never quoted.

        Returns:
            list[str]: A list of untracked file paths.
        """
        output = self._run(["ls-files", "-z", "--others", "--exclude-standard"])
        return [p for p in output.split("\0") if p]

    def ahead_behind(self) -> tuple[int, int] | None:
        """Counts commits the current branch is ahead of and behind its upstream.

        Returns:
            tuple[int, int] | None: (ahead, behind), or None if the branch has
            no upstream configured.
        """
        try:
            output = self._run(
                ["rev-list", "--left-right", "--count", "HEAD...@{upstream}"]
            )
        except RuntimeError as e:
            logger.debug(f"No upstream for HEAD in {self.path}: {e}")
            return None
        ahead, behind = output.split()
        return int(ahead), int(behind)

    def stash_push(self, message: str) -> None:
        """Stashes tracked changes under the given message.

        Args:
            message (str): The label attached to the stash entry.
        """
        self._run(["stash", "push", "-m", message])

    def stash_top(self) -> str | None:
        """Returns the commit id of the newest stash entry, or None if there is none."""
        try:
            return self._run(["rev-parse", "-q", "--verify", "refs/stash"]) or None
        except RuntimeError:
            return None

    def stash_list(self) -> list[tuple[str, str, str]]:
        """Lists stash entries, newest first.

        Returns:
            list[tuple[str, str, str]]: Triples of (ref, commit id, subject), e.g.
            ('stash@{0}', '3f2a...', 'On main: my label').
        """
        output = self._run(["stash", "list", "--format=%gd%x09%H%x09%gs"])
        entries = []
        for line in output.splitlines():
            parts = line.split("\t", 2)
            if len(parts) == 3:
                entries.append((parts[0], parts[1], parts[2]))
        return entries

    def stash_pop(self, ref: str) -> None:
        """Applies and drops a stash entry.

        Args:
            ref (str): The stash reference, e.g. 'stash@{0}'.
        """
        self._run(["stash", "pop", ref])

    def unmerged_files(self) -> list[str]:
        """Lists paths with unresolved merge conflicts."""
        output = self._run(["diff", "--name-only", "--diff-filter=U"])
        return output.splitlines() if output else []

    def checkout(self, branch: str) -> None:
        """Checks out a specific branch.

        Args:
            branch (str): The target branch name.
        """
        # Trailing "--" keeps a same-named file from being read as a pathspec.
        self._run(["checkout", branch, "--"])

    def add(self, *paths: str) -> None:
        """Stages the given paths."""
        if not paths:
            return
        self._run(["add", "--", *paths])

    def commit(self, message: str) -> None:
        """Creates a new commit with the provided message.

        Args:
            message (str): The commit message.
        """
        self._run(["commit", "-m", message])

    def push(self, remote: str, branch: str) -> None:
        """Pushes a branch to the given remote.

        Args:
            remote (str): The remote name (e.g., 'origin').
            branch (str): The local branch to push.
        """
        self._run(["push", remote, branch], capture=False)

    def recent_log(self, count: int) -> list[str]:
        """Returns short one-line summaries of the most recent commits.

        Args:
            count (int): Maximum number of commits to return.

        Returns:
            list[str]: Lines formatted as 'sha | author | date | subject'.
        """
        try:
            output = self._run(
                [
                    "log",
                    "-n",
                    str(count),
                    "--pretty=format:%h | %an | %ad | %s",
                    "--date=short",
                ]
            )
        except RuntimeError as e:
            logger.warning(f"Git error reading log in {self.path}: {e}")
            return []
        return output.splitlines() if output else []

    def diff_stat(self) -> str:
        """Returns `git diff --stat` for unstaged changes to tracked files."""
        return self._run(["diff", "--stat"])
