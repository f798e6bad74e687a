"""Plan builder: turn sized candidates into an ordered removal plan."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from devreclaim.types.models import Candidate, CandidateState, Plan, Protection

logger = logging.getLogger(__name__)


def is_admissible(protection: Protection | None, *, override_protections: bool) -> bool:
    """Whether a candidate with this protection may enter a plan."""
    if protection is None:
        return False
    if not protection.is_protected:
        return True
    return override_protections and protection.overridable


def build_plan(candidates: Iterable[Candidate], *, override_protections: bool = False) -> Plan:
    """Build an immutable plan.

    Keeps approved candidates, plus protected ones whose protection is
    overridable when ``override_protections`` is set. A kept candidate
    nested inside another kept candidate is folded into its ancestor, so
    every byte is counted once. Items are ordered by size descending, then
    path, and moved to the ``planned`` state.

    Args:
        candidates: Sized candidates
        override_protections: Admit candidates with overridable protections

    Returns:
        The plan, with everything left out listed in ``withheld``

    Raises:
        LifecycleError: If a candidate is not sized
        ValueError: If the same path appears twice
    """
    admitted: list[Candidate] = []
    withheld: list[Candidate] = []
    seen: set[Path] = set()

    for candidate in candidates:
        candidate.require(CandidateState.SIZED)
        if candidate.path in seen:
            msg = f"Duplicate candidate path: {candidate.path}"
            raise ValueError(msg)
        seen.add(candidate.path)

        if is_admissible(candidate.protection, override_protections=override_protections):
            admitted.append(candidate)
        else:
            withheld.append(candidate)

    kept: list[Candidate] = []
    kept_paths: set[Path] = set()
    for candidate in sorted(admitted, key=lambda item: len(item.path.parts)):
        if any(ancestor in kept_paths for ancestor in candidate.path.parents):
            withheld.append(candidate)
            continue
        kept.append(candidate)
        kept_paths.add(candidate.path)

    kept.sort(key=lambda item: (-(item.size or 0), str(item.path)))
    items = tuple(candidate.advance(CandidateState.PLANNED) for candidate in kept)
    total_bytes = sum(item.size or 0 for item in items)

    logger.info(
        "Plan built",
        extra={
            "items": len(items),
            "total_bytes": total_bytes,
            "withheld": len(withheld),
            "override_protections": override_protections,
        },
    )
    return Plan(
        items=items,
        total_bytes=total_bytes,
        override_protections=override_protections,
        withheld=tuple(sorted(withheld, key=lambda item: str(item.path))),
    )
