"""
PACHINKO — Round Engine

Composes the weighted selector and the outcome resolver into a single round.
This is the entry point a presentation layer calls; everything it needs to
draw the result (which pocket, win/rush, reward) comes back in one value.

Usage:
    from pachinko.engine import play_round, resolve_round
    result = play_round(config.pockets, config.probability, source)
    outcome = resolve_round(config.pockets, config.probability, source)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from pachinko.config import Pocket, ProbabilityConfig
from pachinko.random_source import RandomSource, system_random_source
from pachinko.resolver import Outcome, resolve_outcome
from pachinko.selector import select_pocket


@dataclass(frozen=True)
class RoundResult:
    pocket: Pocket
    outcome: Outcome

    def to_dict(self) -> dict:
        return {"pocket_id": self.pocket.id, "pocket_label": self.pocket.label, **self.outcome.to_dict()}


def play_round(pockets: Sequence[Pocket], probability: ProbabilityConfig,
               random_source: Optional[RandomSource] = None) -> RoundResult:
    """Select a pocket, then resolve it. Selection draws before the rolls."""
    source = random_source if random_source is not None else system_random_source()
    pocket = select_pocket(pockets, source)
    return RoundResult(pocket=pocket, outcome=resolve_outcome(pocket, probability, source))


def resolve_round(pockets: Sequence[Pocket], probability: ProbabilityConfig,
                  random_source: Optional[RandomSource] = None) -> Outcome:
    return play_round(pockets, probability, random_source).outcome
