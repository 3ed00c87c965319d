"""Weighted pocket selection: one draw, probability proportional to weight."""

from __future__ import annotations

from typing import Sequence

from pachinko.config import ConfigurationError, Pocket
from pachinko.random_source import RandomSource, draw


def select_index(weights: Sequence[float], random_source: RandomSource) -> int:
    """Pick an index with probability proportional to its (clamped) weight.

    A target falling exactly on a cumulative boundary belongs to the entry
    that pushed the running total past it. Zero-weight entries can only come
    back through the two fallbacks: all-zero weights return index 0, and a
    walk that never passes the target returns the last index.
    """
    if not weights:
        raise ConfigurationError("Cannot select from an empty pocket table")

    clamped = [max(w, 0.0) for w in weights]
    total_weight = sum(clamped)

    # Degenerate table: no draw is consumed
    if total_weight <= 0:
        return 0

    target = draw(random_source) * total_weight
    cumulative = 0.0
    for i, w in enumerate(clamped):
        cumulative += w
        if target < cumulative:
            return i

    # Floating-point drift or a non-finite total
    return len(clamped) - 1


def select_pocket(pockets: Sequence[Pocket], random_source: RandomSource) -> Pocket:
    return pockets[select_index([p.weight for p in pockets], random_source)]
