"""
PACHINKO — Outcome Resolver

Turns the pocket a ball landed in into an Outcome through two Bernoulli
rolls:

    reward gate   pocket.reward <= 0          → miss, no draws
    hit roll      r1 >= hit_rate              → miss
    rush roll     r2 <  rush_rate             → rush win, otherwise plain win

Draw order is fixed (hit roll, then rush roll); seeded tests depend on it.
Out-of-range rates are clamped, never rejected.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from pachinko.config import Pocket, ProbabilityConfig
from pachinko.random_source import RandomSource, draw


@dataclass(frozen=True)
class Outcome:
    """Result of one round."""
    is_win: bool
    is_rush: bool
    reward: int

    def to_dict(self) -> dict:
        return {"is_win": self.is_win, "is_rush": self.is_rush, "reward": self.reward}


MISS = Outcome(is_win=False, is_rush=False, reward=0)


def rush_payout(pocket: Pocket, probability: ProbabilityConfig) -> int:
    """Reward paid when a rush is won on *pocket*.

    An explicit rush_reward never pays less than the base reward. Without one
    (or with a zero one) the base reward is scaled by the multiplier, which is
    clamped to at least 1 and rounded down to whole credits.
    """
    if pocket.rush_reward:
        return max(pocket.rush_reward, pocket.reward)
    return int(math.floor(pocket.reward * probability.clamped_multiplier()))


def resolve_outcome(pocket: Pocket, probability: ProbabilityConfig,
                    random_source: RandomSource) -> Outcome:
    """Resolve one landed ball. Consumes 0, 1 or 2 draws."""
    if pocket.reward <= 0:
        return MISS

    hit_rate = probability.clamped_hit_rate()
    if hit_rate <= 0:
        return MISS
    if draw(random_source) >= hit_rate:
        return MISS

    rush_rate = probability.clamped_rush_rate()
    is_rush = draw(random_source) < rush_rate
    if is_rush:
        return Outcome(is_win=True, is_rush=True, reward=rush_payout(pocket, probability))
    return Outcome(is_win=True, is_rush=False, reward=pocket.reward)
