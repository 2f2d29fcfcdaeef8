"""Value types exchanged between the branch switcher and its backends."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


@dataclass(frozen=True)
class RepositoryRef:
    """Identifies a working tree location.

    Attributes:
        path (Path): The working tree root.
        is_valid_repo (bool): Whether git metadata was found at `path`.
    """

    path: Path
    is_valid_repo: bool

    @classmethod
    def resolve(cls, path: Path | str) -> "RepositoryRef":
        """Builds a reference, checking for a `.git` entry (directory or worktree file)."""
        resolved = Path(path).expanduser().resolve()
        return cls(path=resolved, is_valid_repo=(resolved / ".git").exists())


@dataclass(frozen=True)
class BranchResolution:
    """The branch a request resolved to.

    Attributes:
        requested (str): The name the caller asked for (may be blank).
        resolved (str): The local branch that will be checked out.
        used_fallback (bool): True if `resolved` is a trunk fallback.
    """

    requested: str
    resolved: str
    used_fallback: bool = False


@dataclass(frozen=True)
class StashRecord:
    """Snapshot of uncommitted changes taken right before a switch.

    Attributes:
        present (bool): Whether this run created a stash entry.
        label (str): The message the entry was stashed under.
        commit (str): Commit id of the entry; identifies it even when older
            entries share the same label.
    """

    present: bool
    label: str = ""
    commit: str = ""


@dataclass(frozen=True)
class WorkingTreeStatus:
    """Working tree state as seen by the backend.

    Attributes:
        dirty (bool): True if tracked files have staged or unstaged changes.
        untracked_files (list[str]): Paths git does not track (and does not ignore).
    """

    dirty: bool
    untracked_files: list[str] = field(default_factory=list)


class PopResult(Enum):
    """Result of re-applying a stash entry."""

    SUCCESS = "success"
    CONFLICT = "conflict"
    FAILURE = "failure"


class SwitchState(Enum):
    """Terminal states of a successful switch. Failures are raised instead."""

    DONE_NOOP = "done_noop"
    DONE = "done"
    DONE_WITH_WARNING = "done_with_warning"


class EventKind(Enum):
    UNTRACKED_FILES = "untracked_files"
    FALLBACK = "fallback"
    STASHED = "stashed"
    NOTHING_STASHED = "nothing_stashed"
    CHECKED_OUT = "checked_out"
    REAPPLIED = "reapplied"
    REAPPLY_CONFLICT = "reapply_conflict"
    STASH_MISSING = "stash_missing"
    STASH_PENDING = "stash_pending"


WARNING_EVENTS = frozenset(
    {
        EventKind.NOTHING_STASHED,
        EventKind.REAPPLY_CONFLICT,
        EventKind.STASH_MISSING,
        EventKind.STASH_PENDING,
    }
)


@dataclass(frozen=True)
class SwitchEvent:
    """Informational event emitted while a switch runs.

    Attributes:
        kind (EventKind): What happened.
        message (str): Human-readable summary including branch and stash label.
        details (list[str]): Related paths (untracked or conflicting files).
    """

    kind: EventKind
    message: str
    details: list[str] = field(default_factory=list)

    @property
    def is_warning(self) -> bool:
        return self.kind in WARNING_EVENTS


@dataclass
class SwitchOutcome:
    """Final result of a branch switch.

    Attributes:
        success (bool): Always True for a returned outcome; failures raise.
        branch (str): The branch checked out at the end.
        stash_reapplied (bool): Whether this run's stash was applied back.
        conflict (bool): True if re-applying the stash left merge conflicts.
        state (SwitchState): The terminal state reached.
        resolution (BranchResolution | None): How the branch was resolved.
        stash (StashRecord): The stash taken for this run, if any.
        conflict_files (list[str]): Paths left with conflict markers.
        untracked_files (list[str]): Untracked paths carried across the switch.
    """

    success: bool
    branch: str
    stash_reapplied: bool = False
    conflict: bool = False
    state: SwitchState = SwitchState.DONE
    resolution: BranchResolution | None = None
    stash: StashRecord = field(default_factory=lambda: StashRecord(present=False))
    conflict_files: list[str] = field(default_factory=list)
    untracked_files: list[str] = field(default_factory=list)
