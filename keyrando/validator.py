"""Assignment validation for keyrando.

This module checks finished assignments, distinguishing between errors
(blocking) and warnings (informational).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from keyrando.graph import Node
from keyrando.permutation import Assignment, KeyItemsPermutation


@dataclass
class ValidationResult:
    """Result of assignment validation.

    Attributes:
        is_valid: True if the assignment passes all required checks (no errors).
        errors: List of blocking issues that make the assignment invalid.
        warnings: List of informational issues that don't block validation.
    """

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def simulate_progression(nodes: Mapping[str, Node]) -> set[str]:
    """Replay a playthrough over the requirement graph.

    Starting with nothing, repeatedly mark every node whose requirement
    holds given what is already reached, until nothing changes. A placed
    item is reached once the area holding it is.

    Returns:
        Names of every reachable node.
    """
    reached: set[str] = set()
    changed = True
    while changed:
        changed = False
        for name in sorted(nodes):
            if name not in reached and nodes[name].req.evaluate(reached):
                reached.add(name)
                changed = True
    return reached


def validate_assignment(
    perm: KeyItemsPermutation, assignment: Assignment
) -> ValidationResult:
    """Validate an assignment against all constraints.

    Checks:
    - Completability (every area, event and item reachable)
    - Placements (no item in an unused area, forced placements = warnings)
    - Lateness range
    - Priority (no duplicates)
    - Unused areas have empty reachability sets

    Args:
        perm: The permutation run which produced the assignment.
        assignment: The assignment to validate.

    Returns:
        ValidationResult with errors and warnings.
    """
    errors: list[str] = []
    warnings: list[str] = []

    _check_placements(perm, errors, warnings)
    _check_completable(perm, errors, warnings)
    _check_lateness(assignment, errors)
    _check_priority(assignment, errors)
    _check_unused_areas(perm, assignment, errors)

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def _check_placements(
    perm: KeyItemsPermutation, errors: list[str], warnings: list[str]
) -> None:
    """Check where items were placed.

    Args:
        perm: The permutation run.
        errors: List to append errors to.
        warnings: List to append warnings to.
    """
    for placement in perm.placements:
        if placement.area in perm.graph.unused_areas:
            errors.append(
                f"Key item {placement.item} placed in unused area {placement.area}"
            )
        if placement.outside_logic:
            warnings.append(
                f"Key item {placement.item} forced into {placement.area} "
                f"outside of logic"
            )


def _check_completable(
    perm: KeyItemsPermutation, errors: list[str], warnings: list[str]
) -> None:
    """Check that every node can be reached in a playthrough.

    Unreachable nodes are only warnings when a forced placement ignored
    logic, since the caller asked for it.
    """
    reached = simulate_progression(perm.nodes)
    unreachable = sorted(name for name in perm.nodes if name not in reached)
    if not unreachable:
        return
    message = f"Unreachable: {', '.join(unreachable)}"
    if any(p.outside_logic for p in perm.placements):
        warnings.append(message)
    else:
        errors.append(message)


def _check_lateness(assignment: Assignment, errors: list[str]) -> None:
    for name, value in sorted(assignment.location_lateness.items()):
        if not 0.0 <= value <= 1.0:
            errors.append(f"Lateness of {name} out of range: {value}")


def _check_priority(assignment: Assignment, errors: list[str]) -> None:
    seen = set()
    for key in assignment.priority:
        if key in seen:
            errors.append(f"Duplicate priority entry: {key}")
        seen.add(key)


def _check_unused_areas(
    perm: KeyItemsPermutation, assignment: Assignment, errors: list[str]
) -> None:
    for area in sorted(perm.graph.unused_areas):
        if assignment.included_areas.get(area):
            errors.append(f"Unused area {area} has prerequisites")
