"""Version-control capabilities consumed by the branch switcher.

Architecture:
- VcsBackend: Abstract interface listing every operation the switcher needs
- GitBackend: Production implementation on top of `GitRepo`

Tests supply an in-memory implementation of `VcsBackend` instead of a real
repository.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from .constants import APP_NAME
from .git_wrapper import GitRepo
from .models import PopResult, RepositoryRef, WorkingTreeStatus

logger = logging.getLogger(APP_NAME)


class VcsBackend(ABC):
    """Abstract interface for the version-control operations used by a switch."""

    @abstractmethod
    def list_local_branches(self, repo: RepositoryRef) -> list[str]: ...

    @abstractmethod
    def branch_exists(self, repo: RepositoryRef, name: str) -> bool: ...

    @abstractmethod
    def current_branch(self, repo: RepositoryRef) -> str | None:
        """Returns the checked-out branch, or None when HEAD is detached."""
        ...

    @abstractmethod
    def working_tree_status(self, repo: RepositoryRef) -> WorkingTreeStatus: ...

    @abstractmethod
    def is_up_to_date_with_upstream(self, repo: RepositoryRef) -> bool:
        """Returns False only when the current branch is behind its upstream."""
        ...

    @abstractmethod
    def stash_push(self, repo: RepositoryRef, label: str) -> bool: ...

    @abstractmethod
    def stash_top(self, repo: RepositoryRef) -> str | None:
        """Returns the commit id of the newest stash entry, or None if there is none."""
        ...

    @abstractmethod
    def find_stash(self, repo: RepositoryRef, commit: str) -> str | None:
        """Returns the current stash ref (e.g. 'stash@{1}') of the entry `commit`."""
        ...

    @abstractmethod
    def stash_pop(self, repo: RepositoryRef, commit: str) -> PopResult: ...

    @abstractmethod
    def checkout(self, repo: RepositoryRef, branch: str) -> bool: ...

    @abstractmethod
    def conflicted_files(self, repo: RepositoryRef) -> list[str]: ...


class GitBackend(VcsBackend):
    """`VcsBackend` implemented with the git command-line tool."""

    def __init__(self) -> None:
        self._repos: dict[Path, GitRepo] = {}

    def _git(self, repo: RepositoryRef) -> GitRepo:
        if repo.path not in self._repos:
            self._repos[repo.path] = GitRepo(repo.path)
        return self._repos[repo.path]

    def list_local_branches(self, repo: RepositoryRef) -> list[str]:
        return self._git(repo).list_branches()

    def branch_exists(self, repo: RepositoryRef, name: str) -> bool:
        return self._git(repo).branch_exists(name)

    def current_branch(self, repo: RepositoryRef) -> str | None:
        return self._git(repo).current_branch()

    def working_tree_status(self, repo: RepositoryRef) -> WorkingTreeStatus:
        git = self._git(repo)
        dirty = any(not line.startswith("??") for line in git.status_porcelain())
        return WorkingTreeStatus(dirty=dirty, untracked_files=git.get_untracked_files())

    def is_up_to_date_with_upstream(self, repo: RepositoryRef) -> bool:
        counts = self._git(repo).ahead_behind()
        if counts is None:
            # No upstream means nothing incoming.
            return True
        _, behind = counts
        return behind == 0

    def stash_push(self, repo: RepositoryRef, label: str) -> bool:
        try:
            self._git(repo).stash_push(label)
            return True
        except RuntimeError as e:
            logger.error(f"Stash push failed in {repo.path}: {e}")
            return False

    def stash_top(self, repo: RepositoryRef) -> str | None:
        return self._git(repo).stash_top()

    def find_stash(self, repo: RepositoryRef, commit: str) -> str | None:
        try:
            entries = self._git(repo).stash_list()
        except RuntimeError as e:
            logger.warning(f"Could not list stashes in {repo.path}: {e}")
            return None
        for ref, entry_commit, _ in entries:
            if entry_commit == commit:
                return ref
        return None

    def stash_pop(self, repo: RepositoryRef, commit: str) -> PopResult:
        ref = self.find_stash(repo, commit)
        if ref is None:
            logger.error(f"No stash entry for commit {commit} in {repo.path}")
            return PopResult.FAILURE
        git = self._git(repo)
        try:
            git.stash_pop(ref)
            return PopResult.SUCCESS
        except RuntimeError as e:
            if self.conflicted_files(repo):
                logger.warning(f"Stash {ref} applied with conflicts: {e}")
                return PopResult.CONFLICT
            logger.error(f"Stash pop of {ref} failed: {e}")
            return PopResult.FAILURE

    def checkout(self, repo: RepositoryRef, branch: str) -> bool:
        try:
            self._git(repo).checkout(branch)
            return True
        except RuntimeError as e:
            logger.error(f"Checkout of '{branch}' failed in {repo.path}: {e}")
            return False

    def conflicted_files(self, repo: RepositoryRef) -> list[str]:
        try:
            return self._git(repo).unmerged_files()
        except RuntimeError as e:
            logger.warning(f"Could not list conflicted files in {repo.path}: {e}")
            return []
