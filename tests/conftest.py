"""Shared fixtures: an in-memory version-control backend for headless switch tests."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from git_switcher.backend import VcsBackend
from git_switcher.constants import APP_NAME
from git_switcher.models import PopResult, RepositoryRef, WorkingTreeStatus


class FakeBackend(VcsBackend):
    """Simulates a repository's branches, working tree and stash stack.

    Every mutating or status call is recorded in `calls` so tests can assert
    which operations ran (and which never did).
    """

    def __init__(
        self,
        branches: list[str] | None = None,
        current: str | None = "main",
        dirty: bool = False,
        untracked: list[str] | None = None,
        behind: int = 0,
        stash_push_ok: bool = True,
        stash_push_saves: bool = True,
        checkout_ok: bool = True,
        pop_result: PopResult = PopResult.SUCCESS,
        conflicts: list[str] | None = None,
        drop_stash_on_checkout: bool = False,
        stashes: list[str] | None = None,
    ) -> None:
        self.branches = list(branches if branches is not None else ["main"])
        self.current = current
        self.dirty = dirty
        self.untracked = list(untracked or [])
        self.behind = behind
        self.stash_push_ok = stash_push_ok
        # False models a push that exits 0 but saves nothing (submodule edits).
        self.stash_push_saves = stash_push_saves
        self.checkout_ok = checkout_ok
        self.pop_result = pop_result
        self.conflicts = list(conflicts or [])
        self.drop_stash_on_checkout = drop_stash_on_checkout
        # (commit, label) pairs, newest first (index 0 is stash@{0}). Entries
        # passed in are leftovers from earlier runs.
        self.stashes = [(f"old{i}", label) for i, label in enumerate(stashes or [])]
        self._commits = 0
        self.calls: list[tuple[str, ...]] = []
        self._in_conflict = False

    def ops(self, name: str) -> list[tuple[str, ...]]:
        return [c for c in self.calls if c[0] == name]

    def stash_labels(self) -> list[str]:
        return [label for _, label in self.stashes]

    def list_local_branches(self, repo: RepositoryRef) -> list[str]:
        return list(self.branches)

    def branch_exists(self, repo: RepositoryRef, name: str) -> bool:
        return name in self.branches

    def current_branch(self, repo: RepositoryRef) -> str | None:
        return self.current

    def working_tree_status(self, repo: RepositoryRef) -> WorkingTreeStatus:
        return WorkingTreeStatus(dirty=self.dirty, untracked_files=list(self.untracked))

    def is_up_to_date_with_upstream(self, repo: RepositoryRef) -> bool:
        return self.behind == 0

    def stash_push(self, repo: RepositoryRef, label: str) -> bool:
        self.calls.append(("stash_push", label))
        if not self.stash_push_ok:
            return False
        if self.dirty and self.stash_push_saves:
            self._commits += 1
            self.stashes.insert(0, (f"run{self._commits}", label))
            self.dirty = False
        return True

    def stash_top(self, repo: RepositoryRef) -> str | None:
        return self.stashes[0][0] if self.stashes else None

    def find_stash(self, repo: RepositoryRef, commit: str) -> str | None:
        for index, (entry_commit, _) in enumerate(self.stashes):
            if entry_commit == commit:
                return f"stash@{{{index}}}"
        return None

    def stash_pop(self, repo: RepositoryRef, commit: str) -> PopResult:
        self.calls.append(("stash_pop", commit))
        entry = next((e for e in self.stashes if e[0] == commit), None)
        if entry is None:
            return PopResult.FAILURE
        if self.pop_result is PopResult.SUCCESS:
            self.stashes.remove(entry)
            self.dirty = True
        elif self.pop_result is PopResult.CONFLICT:
            # git keeps the entry when the pop conflicts
            self.dirty = True
            self._in_conflict = True
        return self.pop_result

    def checkout(self, repo: RepositoryRef, branch: str) -> bool:
        self.calls.append(("checkout", branch))
        if not self.checkout_ok or branch not in self.branches:
            return False
        self.current = branch
        if self.drop_stash_on_checkout:
            self.stashes.clear()
        return True

    def conflicted_files(self, repo: RepositoryRef) -> list[str]:
        return list(self.conflicts) if self._in_conflict else []


@pytest.fixture(autouse=True)
def reset_app_logger() -> Iterator[None]:
    """Drops handlers attached by CLI runs so they never outlive a test."""
    yield
    app_logger = logging.getLogger(APP_NAME)
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()
    app_logger.setLevel(logging.NOTSET)


@pytest.fixture(scope="session")
def fake_backend_cls() -> type[FakeBackend]:
    """Provides the FakeBackend class (session-scoped so property tests can use it)."""
    return FakeBackend


@pytest.fixture(scope="session")
def repo_dir(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """A directory that looks like a git working tree (has a .git entry)."""
    path = tmp_path_factory.mktemp("repo")
    (path / ".git").mkdir()
    return path
