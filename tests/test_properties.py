from pathlib import Path
from typing import Any

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from git_switcher import switcher
from git_switcher.config import Config
from git_switcher.constants import STASH_LABEL
from git_switcher.models import RepositoryRef, SwitchState

FALLBACKS = ["main", "master"]

# Strategy: plausible branch names that never collide with the trunk names
branch_names = st.text(
    alphabet="abcdefghijklmnopqrstuvwxyz0123456789-_/", min_size=1, max_size=20
).filter(lambda s: s not in FALLBACKS and s.strip("/") == s)

# Session-scoped fixtures only; the warning is about function-scoped ones.
property_settings = settings(
    max_examples=75, suppress_health_check=[HealthCheck.function_scoped_fixture]
)


@property_settings
@given(
    requested=branch_names,
    others=st.lists(branch_names, max_size=4),
    has_main=st.booleans(),
    has_master=st.booleans(),
)
def test_fallback_prefers_main_then_master(
    repo_dir: Path,
    fake_backend_cls: Any,
    requested: str,
    others: list[str],
    has_main: bool,
    has_master: bool,
) -> None:
    """
    Property: a missing branch resolves to 'main' if present, else 'master',
    and fails with NoResolvableBranch when neither exists.
    """
    branches = [b for b in others if b != requested]
    if has_main:
        branches.append("main")
    if has_master:
        branches.append("master")
    backend = fake_backend_cls(branches=branches, current=None)
    ref = RepositoryRef.resolve(repo_dir)

    if not (has_main or has_master):
        try:
            switcher.resolve_target_branch(backend, ref, requested, FALLBACKS, "master")
        except switcher.NoResolvableBranch:
            return
        raise AssertionError("Expected NoResolvableBranch")

    resolution = switcher.resolve_target_branch(
        backend, ref, requested, FALLBACKS, "master"
    )
    assert resolution.used_fallback is True
    assert resolution.resolved == ("main" if has_main else "master")
    assert backend.branch_exists(ref, resolution.resolved)


@property_settings
@given(
    branch=branch_names,
    dirty=st.booleans(),
    behind=st.integers(min_value=0, max_value=5),
)
def test_noop_only_when_clean_and_current(
    repo_dir: Path, fake_backend_cls: Any, branch: str, dirty: bool, behind: int
) -> None:
    """
    Property: staying on the current branch is a no-op (zero stash/checkout
    calls) exactly when the tree is clean and not behind upstream.
    """
    backend = fake_backend_cls(
        branches=["main", branch], current=branch, dirty=dirty, behind=behind
    )

    outcome = switcher.switch_to(repo_dir, branch, backend=backend, config=Config())

    if not dirty and behind == 0:
        assert outcome.state is SwitchState.DONE_NOOP
        assert backend.calls == []
    else:
        assert outcome.state is SwitchState.DONE
        assert backend.ops("checkout") == [("checkout", branch)]


@property_settings
@given(
    target=branch_names,
    dirty=st.booleans(),
    stash_ok=st.booleans(),
    saves=st.booleans(),
    old_stashes=st.integers(min_value=0, max_value=3),
)
def test_stash_safety_and_single_reapply(
    repo_dir: Path,
    fake_backend_cls: Any,
    target: str,
    dirty: bool,
    stash_ok: bool,
    saves: bool,
    old_stashes: int,
) -> None:
    """
    Property: checkout never runs after a failed stash push, and a successful
    run pops at most its own stash once, leaving older same-label entries alone
    even when git saved nothing for this run.
    """
    backend = fake_backend_cls(
        branches=["main", target],
        current="main",
        dirty=dirty,
        behind=1,
        stash_push_ok=stash_ok,
        stash_push_saves=saves,
        stashes=[STASH_LABEL] * old_stashes,
    )

    try:
        outcome = switcher.switch_to(
            repo_dir, target, backend=backend, config=Config()
        )
    except switcher.StashFailed:
        assert dirty and not stash_ok
        assert backend.ops("checkout") == []
        return

    stashed = dirty and saves
    assert backend.ops("stash_pop") == ([("stash_pop", "run1")] if stashed else [])
    assert outcome.stash_reapplied is stashed
    assert backend.stash_labels() == [STASH_LABEL] * old_stashes


@property_settings
@given(runs=st.integers(min_value=2, max_value=4))
def test_repeated_switches_never_double_apply(
    repo_dir: Path, fake_backend_cls: Any, runs: int
) -> None:
    """
    Property: back-to-back switches of a dirty tree each stash and pop exactly
    once, and no stash entry is left behind.
    """
    backend = fake_backend_cls(
        branches=["main", "feature"], current="main", dirty=True
    )

    for i in range(runs):
        target = "feature" if i % 2 == 0 else "main"
        switcher.switch_to(repo_dir, target, backend=backend, config=Config())

    assert len(backend.ops("stash_push")) == runs
    assert len(backend.ops("stash_pop")) == runs
    assert backend.stash_labels() == []
