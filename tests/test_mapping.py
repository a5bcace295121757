"""
Tests for the mapping helpers shared by every adapter.

Feature: canonical model mapping
"""

from datetime import datetime, timezone

from hypothesis import given, settings
from hypothesis import strategies as st

from reviewkit.providers.mapping import (
    BRANCH_PREFIX,
    GHOST_USER,
    check_outcome,
    closed_at_for,
    count_diff_lines,
    file_diff,
    strip_ref,
    user_type,
)
from reviewkit.types import CheckConclusion, CheckStatus, UserType

branch_name_strategy = st.from_regex(r"[A-Za-z0-9_.-]{1,20}(/[A-Za-z0-9_.-]{1,20})?", fullmatch=True)
path_strategy = st.from_regex(r"[a-z]{1,8}(/[a-z]{1,8}){0,3}\.py", fullmatch=True)
status_strategy = st.sampled_from(list(CheckStatus))
conclusion_strategy = st.one_of(st.none(), st.sampled_from(list(CheckConclusion)))

T1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
T2 = datetime(2024, 1, 2, tzinfo=timezone.utc)


@given(name=branch_name_strategy)
@settings(max_examples=100)
def test_property_strip_ref(name: str) -> None:
    """
    Property: Branch refs are reported without the refs/heads/ prefix
    """
    assert strip_ref(BRANCH_PREFIX + name) == name


def test_strip_ref_leaves_other_refs() -> None:
    assert strip_ref("refs/tags/v1") == "refs/tags/v1"
    assert strip_ref("main") == "main"


@given(status=status_strategy, conclusion=conclusion_strategy)
@settings(max_examples=100)
def test_property_check_outcome_is_consistent(
    status: CheckStatus, conclusion: CheckConclusion | None
) -> None:
    """
    Property: Reconciled checks satisfy the completed/conclusion invariant

    A conclusion is present exactly when the status is COMPLETED.
    """
    new_status, new_conclusion = check_outcome(status, conclusion)
    assert (new_status is CheckStatus.COMPLETED) == (new_conclusion is not None)
    if conclusion is not None:
        assert new_conclusion is conclusion


def test_completed_without_conclusion_is_neutral() -> None:
    assert check_outcome(CheckStatus.COMPLETED, None) == (
        CheckStatus.COMPLETED,
        CheckConclusion.NEUTRAL,
    )


def test_closed_at_for() -> None:
    assert closed_at_for(True, T1, T2) == T1
    assert closed_at_for(False, None, T2) == T2
    assert closed_at_for(True, None, T2) == T2


def test_user_type() -> None:
    assert user_type("Bot") is UserType.BOT
    assert user_type("Mannequin") is UserType.USER
    assert user_type(None) is UserType.USER
    assert GHOST_USER.login == "ghost"


@given(old=path_strategy, new=path_strategy)
@settings(max_examples=100)
def test_property_file_diff_headers(old: str, new: str) -> None:
    """
    Property: Synthesized file sections carry git headers

    Every section starts with ``diff --git`` and names both paths.
    """
    section = file_diff(old, new, None, "+ missing")
    lines = section.splitlines()
    assert lines[:3] == [f"diff --git a/{old} b/{new}", f"--- a/{old}", f"+++ b/{new}"]
    assert lines[3:] == ["@@", "+ missing"]


def test_file_diff_keeps_fragment() -> None:
    section = file_diff("a.py", "a.py", "@@ -1 +1 @@\n-x\n+y\n\n", "+ missing")
    assert section.endswith("@@ -1 +1 @@\n-x\n+y")


@given(
    added=st.integers(min_value=0, max_value=20),
    removed=st.integers(min_value=0, max_value=20),
    context=st.integers(min_value=0, max_value=20),
)
@settings(max_examples=100)
def test_property_count_diff_lines(added: int, removed: int, context: int) -> None:
    """
    Property: Line counts ignore file headers and context lines
    """
    patch = "\n".join(
        ["--- a/x.py", "+++ b/x.py", "@@ -1 +1 @@"]
        + ["+new"] * added
        + ["-old"] * removed
        + [" same"] * context
    )
    assert count_diff_lines(patch) == (added, removed)
