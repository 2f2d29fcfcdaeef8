"""Safe branch switching.

A switch never discards uncommitted work and never fails just because the
requested branch is missing while a trunk branch exists. The flow is:

    VALIDATE_REPO -> RESOLVE_BRANCH -> CHECK_ALREADY_SATISFIED
        -> PRESERVE (stash) -> CHECKOUT -> REAPPLY (stash pop)

Fatal conditions raise a `SwitchError` subclass; everything else ends in a
`SwitchOutcome`. Decisions that used to be terminal prompts (which branch,
whether to accept a fallback) are passed in by the caller.
"""

import logging
from collections.abc import Callable
from pathlib import Path

from .backend import GitBackend, VcsBackend
from .config import Config
from .constants import APP_NAME
from .models import (
    BranchResolution,
    EventKind,
    PopResult,
    RepositoryRef,
    StashRecord,
    SwitchEvent,
    SwitchOutcome,
    SwitchState,
)

logger = logging.getLogger(APP_NAME)

Reporter = Callable[[SwitchEvent], None]
FallbackDecision = Callable[[str, str], bool]


class SwitchError(Exception):
    """Base class for fatal branch-switch errors."""


class NotARepository(SwitchError):
    def __init__(self, path: Path):
        super().__init__(f"Not a git repository: {path}")
        self.path = path


class NoResolvableBranch(SwitchError):
    def __init__(self, requested: str, fallbacks: list[str]):
        super().__init__(
            f"Branch '{requested}' does not exist and no fallback branch "
            f"({', '.join(fallbacks) or 'none configured'}) was found."
        )
        self.requested = requested
        self.fallbacks = fallbacks


class FallbackDeclined(SwitchError):
    def __init__(self, requested: str, fallback: str):
        super().__init__(
            f"Branch '{requested}' does not exist; fallback to '{fallback}' declined."
        )
        self.requested = requested
        self.fallback = fallback


class StashFailed(SwitchError):
    def __init__(self, label: str, reason: str):
        super().__init__(
            f"Could not stash local changes ('{label}'): {reason}. "
            "Checkout aborted; working tree untouched."
        )
        self.label = label


class CheckoutFailed(SwitchError):
    """Checkout failed. A stash taken earlier in the same run may still be queued."""

    def __init__(self, branch: str, stash: StashRecord):
        message = f"Checkout of branch '{branch}' failed."
        if stash.present:
            message += (
                f" Your changes are still stashed as '{stash.label}'; "
                "restore them with 'git stash pop' once resolved."
            )
        super().__init__(message)
        self.branch = branch
        self.stash_pending = stash.present
        self.stash_label = stash.label


def _noop_reporter(_event: SwitchEvent) -> None:
    pass


def resolve_target_branch(
    backend: VcsBackend,
    repo: RepositoryRef,
    requested: str,
    fallbacks: list[str],
    default_branch: str,
    confirm_fallback: FallbackDecision | None = None,
    report: Reporter = _noop_reporter,
) -> BranchResolution:
    """Resolves the branch to check out.

    A blank request means the current branch (or `default_branch` when HEAD is
    detached). A missing branch falls back to the first of `fallbacks` that
    exists locally.

    Raises:
        NotARepository: If `repo` has no git metadata.
        NoResolvableBranch: If neither the request nor any fallback exists.
        FallbackDeclined: If `confirm_fallback` rejects the fallback.
    """
    if not repo.is_valid_repo:
        raise NotARepository(repo.path)

    requested = requested.strip()
    name = requested
    if not name:
        current = backend.current_branch(repo)
        if current:
            logger.info(f"No branch given, using current branch '{current}'")
            return BranchResolution(requested=requested, resolved=current)
        logger.info(f"Detached HEAD, defaulting to '{default_branch}'")
        name = default_branch

    if backend.branch_exists(repo, name):
        return BranchResolution(requested=requested, resolved=name)

    fallback = next((b for b in fallbacks if backend.branch_exists(repo, b)), None)
    if fallback is None:
        raise NoResolvableBranch(name, fallbacks)

    if confirm_fallback is not None and not confirm_fallback(name, fallback):
        raise FallbackDeclined(name, fallback)

    logger.info(f"Branch '{name}' does not exist, falling back to '{fallback}'")
    report(
        SwitchEvent(
            EventKind.FALLBACK,
            f"Branch '{name}' does not exist. Falling back to '{fallback}'.",
        )
    )
    return BranchResolution(requested=requested, resolved=fallback, used_fallback=True)


def is_already_satisfied(
    backend: VcsBackend, repo: RepositoryRef, resolution: BranchResolution
) -> bool:
    """True if HEAD is on the target, the tree is clean and nothing is incoming."""
    if backend.current_branch(repo) != resolution.resolved:
        return False
    if backend.working_tree_status(repo).dirty:
        return False
    return backend.is_up_to_date_with_upstream(repo)


def preserve_uncommitted(
    backend: VcsBackend,
    repo: RepositoryRef,
    label: str,
    report: Reporter = _noop_reporter,
) -> StashRecord:
    """Stashes tracked changes under `label` if the tree is dirty.

    Untracked files are not stashed; they are reported so the caller knows
    they will be carried across the switch.

    The entry is identified by the commit `git stash` created, not by its
    label, so an older entry under the same label is never mistaken for it.
    If git saved nothing (e.g. the only change is inside a submodule) no
    stash is recorded and a warning is reported.

    Raises:
        StashFailed: If the stash could not be created.
    """
    status = backend.working_tree_status(repo)

    if status.untracked_files:
        report(
            SwitchEvent(
                EventKind.UNTRACKED_FILES,
                "These new/untracked files will remain after checkout:",
                list(status.untracked_files),
            )
        )

    if not status.dirty:
        return StashRecord(present=False)

    logger.info(f"Stashing local changes as '{label}'")
    previous = backend.stash_top(repo)
    if not backend.stash_push(repo, label):
        raise StashFailed(label, "stash push failed")

    commit = backend.stash_top(repo)
    if commit is None or commit == previous:
        logger.warning("git stash saved nothing; changes stay in the working tree")
        report(
            SwitchEvent(
                EventKind.NOTHING_STASHED,
                "git could not stash the local changes (e.g. edits inside a "
                "submodule); they are left in the working tree.",
            )
        )
        return StashRecord(present=False)

    report(SwitchEvent(EventKind.STASHED, f"Local changes stashed as '{label}'."))
    return StashRecord(present=True, label=label, commit=commit)


def switch_branch(
    backend: VcsBackend,
    repo: RepositoryRef,
    resolution: BranchResolution,
    stash: StashRecord,
    report: Reporter = _noop_reporter,
) -> None:
    """Checks out `resolution.resolved`.

    Raises:
        CheckoutFailed: If the checkout did not complete. Not retried.
    """
    if not backend.checkout(repo, resolution.resolved):
        logger.error(f"Failed to checkout branch: {resolution.resolved}")
        raise CheckoutFailed(resolution.resolved, stash)

    logger.info(f"Checked out branch: {resolution.resolved}")
    report(
        SwitchEvent(
            EventKind.CHECKED_OUT, f"Checked out branch: {resolution.resolved}"
        )
    )


def reapply_if_present(
    backend: VcsBackend,
    repo: RepositoryRef,
    stash: StashRecord,
    report: Reporter = _noop_reporter,
) -> tuple[bool, bool, list[str]]:
    """Pops this run's stash back onto the new branch.

    Returns:
        tuple[bool, bool, list[str]]: (reapplied, conflict, conflicting paths).
        Conflicts are a warning, not an error: the branch switch itself has
        already succeeded.
    """
    if not stash.present:
        return False, False, []

    ref = backend.find_stash(repo, stash.commit)
    if ref is None:
        logger.warning(f"Stash '{stash.label}' not found after checkout")
        report(
            SwitchEvent(
                EventKind.STASH_MISSING,
                f"Stash '{stash.label}' was not found after checkout; "
                "check 'git stash list'.",
            )
        )
        return False, False, []

    result = backend.stash_pop(repo, stash.commit)

    if result is PopResult.SUCCESS:
        logger.info(f"Stash '{stash.label}' applied cleanly")
        report(SwitchEvent(EventKind.REAPPLIED, "Stash applied cleanly."))
        return True, False, []

    if result is PopResult.CONFLICT:
        files = backend.conflicted_files(repo)
        logger.warning(
            f"Stash '{stash.label}' applied with conflicts: {', '.join(files)}"
        )
        report(
            SwitchEvent(
                EventKind.REAPPLY_CONFLICT,
                f"Stash '{stash.label}' had conflicts; please resolve manually. "
                "The stash entry is kept until you drop it.",
                files,
            )
        )
        return True, True, files

    logger.error(f"Stash '{stash.label}' could not be applied")
    report(
        SwitchEvent(
            EventKind.STASH_PENDING,
            f"Stash '{stash.label}' ({ref}) could not be applied and is still "
            f"queued; apply it manually with 'git stash pop {ref}'.",
        )
    )
    return False, False, []


def switch_to(
    repo_path: Path | str,
    requested_branch: str = "",
    backend: VcsBackend | None = None,
    config: Config | None = None,
    report: Reporter | None = None,
    confirm_fallback: FallbackDecision | None = None,
) -> SwitchOutcome:
    """Switches the working tree at `repo_path` to `requested_branch`.

    Args:
        repo_path (Path | str): The working tree root.
        requested_branch (str): Branch to check out; blank means current.
        backend (VcsBackend | None): Defaults to `GitBackend`.
        config (Config | None): Defaults to `Config.load(repo_path)`.
        report (Reporter | None): Receives informational and warning events.
        confirm_fallback (FallbackDecision | None): Asked before switching to a
            fallback branch; None accepts the fallback.

    Returns:
        SwitchOutcome: The terminal state and what happened to the stash.

    Raises:
        SwitchError: On any fatal condition.
    """
    repo = RepositoryRef.resolve(repo_path)
    backend = backend or GitBackend()
    report = report or _noop_reporter

    if not repo.is_valid_repo:
        logger.error(f"No .git directory in {repo.path}")
        raise NotARepository(repo.path)

    config = config or Config.load(repo.path)
    label = config.core.stash_label

    resolution = resolve_target_branch(
        backend,
        repo,
        requested_branch,
        config.core.fallback_branches,
        config.core.default_branch,
        confirm_fallback=confirm_fallback,
        report=report,
    )

    if is_already_satisfied(backend, repo, resolution):
        logger.info(f"Already on '{resolution.resolved}' and up to date. No changes.")
        return SwitchOutcome(
            success=True,
            branch=resolution.resolved,
            state=SwitchState.DONE_NOOP,
            resolution=resolution,
        )

    untracked: list[str] = []
    warnings: list[SwitchEvent] = []

    def _collect(event: SwitchEvent) -> None:
        if event.kind is EventKind.UNTRACKED_FILES:
            untracked.extend(event.details)
        if event.is_warning:
            warnings.append(event)
        report(event)

    stash = preserve_uncommitted(backend, repo, label, _collect)
    switch_branch(backend, repo, resolution, stash, report)

    reapplied, conflict, conflict_files = reapply_if_present(
        backend, repo, stash, _collect
    )

    return SwitchOutcome(
        success=True,
        branch=resolution.resolved,
        stash_reapplied=reapplied,
        conflict=conflict,
        state=SwitchState.DONE_WITH_WARNING if warnings else SwitchState.DONE,
        resolution=resolution,
        stash=stash,
        conflict_files=conflict_files,
        untracked_files=untracked,
    )
