"""Property-based tests for plan invariants using Hypothesis.

These tests verify properties that hold for any set of sized candidates,
whatever their nesting, sizes and protections.
"""

from __future__ import annotations

from pathlib import Path

from hypothesis import given, strategies as st

from devreclaim.core.plan import build_plan, is_admissible
from devreclaim.types.models import Candidate, Protection, ProtectionReason
from support import make_candidate

BASE = Path("/workspace")

PROTECTIONS = (
    Protection.approved(),
    Protection.protected(ProtectionReason.UNCOMMITTED_CHANGES, overridable=True),
    Protection.protected(ProtectionReason.NO_REMOTE, overridable=True),
    Protection.protected(ProtectionReason.GIT_METADATA, overridable=False),
    Protection.protected(ProtectionReason.DENY_LISTED, overridable=False),
)

# Few segment names so generated paths often nest inside each other
relative_paths = st.lists(
    st.sampled_from(["app", "lib", "node_modules", "target", "build"]),
    min_size=1,
    max_size=4,
).map(lambda parts: "/".join(parts))

entries = st.lists(
    st.tuples(relative_paths, st.integers(min_value=0, max_value=10**12), st.sampled_from(PROTECTIONS)),
    max_size=40,
    unique_by=lambda entry: entry[0],
)

type Entries = list[tuple[str, int, Protection]]


def _candidates(generated: Entries) -> list[Candidate]:
    return [
        make_candidate(BASE / relative, size=size, protection=protection, root=BASE)
        for relative, size, protection in generated
    ]


@given(entries, st.booleans())
def test_every_candidate_accounted_once(generated: Entries, override: bool) -> None:
    """Each input lands in exactly one of items and withheld."""
    candidates = _candidates(generated)

    plan = build_plan(candidates, override_protections=override)

    planned = [item.path for item in plan.items]
    withheld = [item.path for item in plan.withheld]
    assert sorted(planned + withheld) == sorted(candidate.path for candidate in candidates)
    assert not set(planned) & set(withheld)


@given(entries, st.booleans())
def test_no_planned_item_inside_another(generated: Entries, override: bool) -> None:
    """Planned paths never nest."""
    plan = build_plan(_candidates(generated), override_protections=override)

    planned = {item.path for item in plan.items}
    for item in plan.items:
        assert not planned & set(item.path.parents)


@given(entries, st.booleans())
def test_only_admissible_items(generated: Entries, override: bool) -> None:
    """Protections are honoured, and hard ones even under override."""
    plan = build_plan(_candidates(generated), override_protections=override)

    for item in plan.items:
        assert is_admissible(item.protection, override_protections=override)
        assert item.protection is not None
        assert not (item.protection.is_protected and not item.protection.overridable)


@given(entries)
def test_admissible_withheld_has_planned_ancestor(generated: Entries) -> None:
    """An approved candidate is only left out when an ancestor is planned."""
    plan = build_plan(_candidates(generated))

    planned = {item.path for item in plan.items}
    for item in plan.withheld:
        if is_admissible(item.protection, override_protections=False):
            assert planned & set(item.path.parents)


@given(entries, st.booleans())
def test_order_and_total(generated: Entries, override: bool) -> None:
    """Items run largest first with a path tie-break, and the total adds up."""
    plan = build_plan(_candidates(generated), override_protections=override)

    keys = [(-(item.size or 0), str(item.path)) for item in plan.items]
    assert keys == sorted(keys)
    assert plan.total_bytes == sum(item.size or 0 for item in plan.items)
