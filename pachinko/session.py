"""
PACHINKO — Play Session

Caller-side orchestration around the engine: checks affordability before
charging, credits the reward, remembers the last outcome and keeps a short
newest-first event log for the display.

Usage:
    from pachinko.config import default_config
    from pachinko.session import PachinkoSession

    session = PachinkoSession(default_config())
    result = session.shoot()          # None when credits are short
    for entry in session.events:
        print(entry.format())
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from pachinko.config import GameConfig
from pachinko.engine import RoundResult, play_round
from pachinko.ledger import SessionLedger
from pachinko.random_source import RandomSource, system_random_source
from pachinko.resolver import Outcome

logger = logging.getLogger("pachinko.session")


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    message: str

    def format(self) -> str:
        return f"[{self.timestamp.strftime('%H:%M:%S')}] {self.message}"


def describe(result: RoundResult) -> str:
    outcome = result.outcome
    if outcome.is_rush:
        return f"{result.pocket.label} / RUSH +{outcome.reward}"
    if outcome.is_win:
        return f"{result.pocket.label} / WIN +{outcome.reward}"
    return f"{result.pocket.label} / MISS"


class PachinkoSession:
    """One game instance: a ledger, a random source and an event log."""

    def __init__(self, config: GameConfig,
                 random_source: Optional[RandomSource] = None,
                 timestamp_provider: Optional[Callable[[], datetime]] = None):
        self.config = config
        self.random_source = random_source if random_source is not None else system_random_source()
        self.timestamp_provider = timestamp_provider or datetime.now
        self.ledger = SessionLedger(initial_credits=config.initial_credits)
        self._events: deque[LogEntry] = deque(maxlen=config.max_log_items)
        self.log("Board initialized.")

    # ── Read access for the display ──────────────────────────

    @property
    def credits(self) -> int:
        return self.ledger.credits

    @property
    def round_count(self) -> int:
        return self.ledger.round_count

    @property
    def last_outcome(self) -> Optional[Outcome]:
        return self.ledger.last_outcome

    @property
    def events(self) -> list[LogEntry]:
        """Newest first."""
        return list(self._events)

    # ── Actions ──────────────────────────────────────────────

    def log(self, message: str) -> LogEntry:
        entry = LogEntry(timestamp=self.timestamp_provider(), message=message)
        self._events.appendleft(entry)
        return entry

    def shoot(self) -> Optional[RoundResult]:
        """Fire one ball. Returns None, without touching the ledger, when credits are short."""
        cost = self.config.ball_cost
        if not self.ledger.can_afford(cost):
            logger.warning(f"Shot refused: {self.ledger.credits} credits, ball costs {cost}")
            self.log("Insufficient credits.")
            return None

        self.ledger.charge(cost)
        result = play_round(self.config.pockets, self.config.probability, self.random_source)
        self.ledger.credit(result.outcome.reward)
        self.ledger.record(result.outcome)

        logger.debug(
            f"Round {self.ledger.round_count}: pocket={result.pocket.id} "
            f"win={result.outcome.is_win} rush={result.outcome.is_rush} "
            f"reward={result.outcome.reward} credits={self.ledger.credits}"
        )
        self.log(f"Ball {self.ledger.round_count}: {describe(result)} (credits {self.ledger.credits})")
        return result

    def reset(self) -> None:
        self.ledger.reset(self.config.initial_credits)
        self._events.clear()
        logger.info("Session reset")
        self.log("Reset to initial state.")
