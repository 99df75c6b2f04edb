"""Weighted random selection helpers.

All randomness flows through an injected `random.Random`, so a fixed seed
and fixed inputs reproduce the same draws.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Sequence
from typing import TypeVar

T = TypeVar("T")


def _pick_index(rng: random.Random, weights: Sequence[float]) -> int | None:
    positive = [max(weight, 0) for weight in weights]
    if sum(positive) <= 0:
        return None
    return rng.choices(range(len(positive)), weights=positive, k=1)[0]


def weighted_choice(
    rng: random.Random, choices: Sequence[T], weight: Callable[[T], float]
) -> T | None:
    """Pick one choice with probability proportional to its weight.

    Choices with zero or negative weight are never picked. One draw is
    consumed only when some weight is positive.

    Args:
        rng: Random source.
        choices: Candidates, in a stable order.
        weight: Weight function.

    Returns:
        The chosen candidate, or None if no candidate has positive weight.
    """
    index = _pick_index(rng, [weight(c) for c in choices])
    return None if index is None else choices[index]


def weighted_shuffle(
    rng: random.Random, choices: Sequence[T], weight: Callable[[T], float]
) -> list[T]:
    """Order choices by repeated weighted picks without replacement.

    Zero-weight choices end up last, in uniformly shuffled order.
    """
    remaining = list(choices)
    weights = [weight(c) for c in remaining]
    result: list[T] = []
    while remaining:
        index = _pick_index(rng, weights)
        if index is None:
            rng.shuffle(remaining)
            result.extend(remaining)
            break
        result.append(remaining.pop(index))
        weights.pop(index)
    return result
