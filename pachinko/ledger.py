"""
PACHINKO — Session Ledger

Credit balance and round count for one play session.

The ledger does not defend against overdraft: charge() assumes the caller
already checked can_afford(). PachinkoSession.shoot() is that caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from pachinko.resolver import Outcome


@dataclass
class SessionLedger:
    initial_credits: int
    credits: int = field(init=False)
    round_count: int = field(default=0, init=False)
    last_outcome: Optional[Outcome] = field(default=None, init=False)

    def __post_init__(self):
        self.credits = self.initial_credits

    def can_afford(self, cost: int) -> bool:
        return self.credits >= cost

    def charge(self, cost: int) -> None:
        """Take the wager for one round. Precondition: can_afford(cost)."""
        self.credits -= cost
        self.round_count += 1

    def credit(self, amount: int) -> None:
        self.credits += amount

    def record(self, outcome: Outcome) -> None:
        self.last_outcome = outcome

    def reset(self, initial_credits: Optional[int] = None) -> None:
        """Back to the starting balance with no rounds played."""
        if initial_credits is not None:
            self.initial_credits = initial_credits
        self.credits = self.initial_credits
        self.round_count = 0
        self.last_outcome = None

    def snapshot(self) -> dict:
        return {
            "credits": self.credits,
            "round_count": self.round_count,
            "last_outcome": self.last_outcome.to_dict() if self.last_outcome else None,
        }
