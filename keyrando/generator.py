"""Key item assignment with seed rerolls.

A hard dependency loop depends on the random placement so far, so an
attempt that hits one is retried from scratch with a different seed.
"""

from __future__ import annotations

import random
from collections.abc import Mapping
from dataclasses import dataclass, field

from keyrando.annotations import Annotations
from keyrando.config import Config
from keyrando.errors import AssignmentError, HardLoopError
from keyrando.permutation import Assignment, KeyItemsPermutation, Placement
from keyrando.validator import ValidationResult, validate_assignment


@dataclass
class AssignmentResult:
    """Result of key item assignment.

    Attributes:
        assignment: The completed assignment.
        seed: The actual seed used.
        validation: Validation result (with any warnings).
        attempts: Number of attempts made.
        placements: Key item placements, in placement order.
    """

    assignment: Assignment
    seed: int
    validation: ValidationResult
    attempts: int
    placements: list[Placement] = field(default_factory=list)


def assign_keyitems(
    config: Config,
    ann: Annotations,
    seed: int,
    preset: Mapping[str, str] | None = None,
    explain: bool = False,
) -> tuple[KeyItemsPermutation, Assignment]:
    """Run a single assignment attempt with a fresh permutation."""
    perm = KeyItemsPermutation(ann, config, explain=explain)
    assignment = perm.assign_items(random.Random(seed), preset)
    return perm, assignment


def _validated(
    config: Config,
    ann: Annotations,
    seed: int,
    preset: Mapping[str, str] | None,
    explain: bool,
    attempts: int,
) -> AssignmentResult:
    perm, assignment = assign_keyitems(config, ann, seed, preset, explain)
    validation = validate_assignment(perm, assignment)
    if not validation.is_valid:
        errors = "; ".join(validation.errors)
        raise AssignmentError(f"Validation failed: {errors}")
    return AssignmentResult(
        assignment=assignment,
        seed=seed,
        validation=validation,
        attempts=attempts,
        placements=perm.placements,
    )


def assign_with_retry(
    config: Config,
    ann: Annotations,
    preset: Mapping[str, str] | None = None,
    max_attempts: int = 100,
    explain: bool = False,
) -> AssignmentResult:
    """Assign key items with automatic retry on hard dependency loops.

    If config.seed is 0, tries random seeds until one succeeds.
    If config.seed is non-zero, uses that seed (fails on a hard loop).

    Args:
        config: Configuration
        ann: Annotation data
        preset: Optional forced item -> area placements
        max_attempts: Maximum retry attempts (only for seed=0)
        explain: Print placement diagnostics

    Returns:
        AssignmentResult with assignment, seed, validation and attempt count.

    Raises:
        HardLoopError: If the fixed seed hits a hard loop.
        AssignmentError: On any fatal error, or after max_attempts.
    """
    if config.seed != 0:
        # Fixed seed - single attempt
        return _validated(config, ann, config.seed, preset, explain, 1)

    # Auto-reroll mode
    base_rng = random.Random()

    for attempt in range(max_attempts):
        seed = base_rng.randint(1, 999999999)
        try:
            return _validated(config, ann, seed, preset, explain, attempt + 1)
        except HardLoopError as e:
            print(f"Attempt {attempt + 1}: seed {seed} failed - {e}")
            continue

    raise AssignmentError(f"Failed to assign key items after {max_attempts} attempts")
