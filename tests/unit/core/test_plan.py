"""Tests for the plan builder."""

from __future__ import annotations

from pathlib import Path

import pytest

from devreclaim.core.errors import LifecycleError
from devreclaim.core.plan import build_plan, is_admissible
from devreclaim.types.models import CandidateState, Protection, ProtectionReason
from support import make_candidate

DIRTY = Protection.protected(ProtectionReason.UNCOMMITTED_CHANGES, overridable=True)
GIT = Protection.protected(ProtectionReason.GIT_METADATA, overridable=False)


@pytest.mark.unit
class TestIsAdmissible:
    """Test the admission rule."""

    def test_approved(self) -> None:
        """Test approved candidates are always admitted."""
        assert is_admissible(Protection.approved(), override_protections=False)

    def test_overridable(self) -> None:
        """Test overridable protections need the override."""
        assert not is_admissible(DIRTY, override_protections=False)
        assert is_admissible(DIRTY, override_protections=True)

    def test_not_overridable(self) -> None:
        """Test hard protections hold even with the override."""
        assert not is_admissible(GIT, override_protections=True)

    def test_unchecked(self) -> None:
        """Test a candidate without a verdict is never admitted."""
        assert not is_admissible(None, override_protections=True)


@pytest.mark.unit
class TestBuildPlan:
    """Test build_plan()."""

    def test_orders_by_size_then_path(self, tmp_path: Path) -> None:
        """Test items are sorted largest first, ties broken by path."""
        candidates = [
            make_candidate(tmp_path / "b", size=10),
            make_candidate(tmp_path / "c", size=500),
            make_candidate(tmp_path / "a", size=10),
        ]

        plan = build_plan(candidates)

        assert [item.path.name for item in plan] == ["c", "a", "b"]
        assert plan.total_bytes == 520
        assert plan.total_count == len(plan) == 3
        assert all(item.state is CandidateState.PLANNED for item in plan)

    def test_protected_withheld(self, tmp_path: Path) -> None:
        """Test protected candidates stay out of the plan."""
        candidates = [
            make_candidate(tmp_path / "free", size=1),
            make_candidate(tmp_path / "dirty", size=2, protection=DIRTY),
            make_candidate(tmp_path / "meta", size=3, protection=GIT),
        ]

        plan = build_plan(candidates)

        assert [item.path.name for item in plan] == ["free"]
        assert [item.path.name for item in plan.withheld] == ["dirty", "meta"]
        assert plan.total_bytes == 1

    def test_override_admits_overridable_only(self, tmp_path: Path) -> None:
        """Test the override admits soft protections but not hard ones."""
        candidates = [
            make_candidate(tmp_path / "dirty", size=2, protection=DIRTY),
            make_candidate(tmp_path / "meta", size=3, protection=GIT),
        ]

        plan = build_plan(candidates, override_protections=True)

        assert [item.path.name for item in plan] == ["dirty"]
        assert plan.override_protections
        assert plan.items[0].protection == DIRTY

    def test_nested_candidates_collapse(self, tmp_path: Path) -> None:
        """Test a candidate inside another planned candidate is folded into it."""
        outer = tmp_path / "outer"
        candidates = [
            make_candidate(outer / "inner", size=40),
            make_candidate(outer, size=100),
            make_candidate(tmp_path / "sibling", size=5),
        ]

        plan = build_plan(candidates)

        assert [item.path for item in plan] == [outer, tmp_path / "sibling"]
        assert plan.total_bytes == 105
        assert [item.path for item in plan.withheld] == [outer / "inner"]

    def test_nested_under_protected_is_kept(self, tmp_path: Path) -> None:
        """Test a withheld ancestor does not absorb its descendants."""
        outer = tmp_path / "outer"
        candidates = [
            make_candidate(outer, size=100, protection=DIRTY),
            make_candidate(outer / "inner", size=40),
        ]

        plan = build_plan(candidates)

        assert [item.path for item in plan] == [outer / "inner"]

    def test_empty(self) -> None:
        """Test an empty candidate list gives an empty plan."""
        plan = build_plan([])

        assert plan.items == ()
        assert plan.total_bytes == 0

    def test_requires_sized(self, tmp_path: Path) -> None:
        """Test unsized candidates are rejected."""
        with pytest.raises(LifecycleError):
            _ = build_plan([make_candidate(tmp_path / "x", state=CandidateState.SAFETY_CHECKED)])

    def test_duplicate_paths_rejected(self, tmp_path: Path) -> None:
        """Test one path cannot be planned twice."""
        with pytest.raises(ValueError, match="Duplicate"):
            _ = build_plan([make_candidate(tmp_path / "x"), make_candidate(tmp_path / "x")])

    def test_inputs_untouched(self, tmp_path: Path) -> None:
        """Test the builder returns new snapshots."""
        candidate = make_candidate(tmp_path / "x", size=7)

        plan = build_plan([candidate])

        assert candidate.state is CandidateState.SIZED
        assert plan.items[0] is not candidate
