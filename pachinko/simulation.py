"""
PACHINKO — Monte Carlo Simulation

Measures a pocket table against its theoretical expected return, and replays
the "how many balls until RUSH?" experiment.

Usage:
    from pachinko.simulation import expected_return, simulate, simulate_until_rush
    config = default_config()
    print(f"Theoretical RTP: {expected_return(config) * 100:.2f}%")
    result = simulate(config, rounds=100_000, seed=42)
    print(result.summary())
    run = simulate_until_rush(config)
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Optional

from pachinko.config import GameConfig
from pachinko.engine import play_round
from pachinko.random_source import RandomSource, SeededRandomSource
from pachinko.resolver import rush_payout
from pachinko.session import PachinkoSession

logger = logging.getLogger("pachinko.simulation")


# ═══════════════════════════════════════════════════════════════
# Closed Form
# ═══════════════════════════════════════════════════════════════

def landing_probabilities(config: GameConfig) -> dict[str, float]:
    """Selection probability per pocket id, mirroring the selector's fallbacks."""
    weights = [max(p.weight, 0.0) for p in config.pockets]
    total = sum(weights)
    if total <= 0:
        return {p.id: (1.0 if i == 0 else 0.0) for i, p in enumerate(config.pockets)}
    return {p.id: w / total for p, w in zip(config.pockets, weights)}


def expected_payout(config: GameConfig) -> float:
    """Expected credits returned per ball."""
    prob = config.probability
    hit = prob.clamped_hit_rate()
    rush = prob.clamped_rush_rate()
    landing = landing_probabilities(config)
    total = 0.0
    for p in config.pockets:
        if p.reward <= 0:
            continue
        per_hit = (1.0 - rush) * p.reward + rush * rush_payout(p, prob)
        total += landing[p.id] * hit * per_hit
    return total


def expected_return(config: GameConfig) -> float:
    """Theoretical RTP as a fraction of the ball cost (0 for free balls)."""
    if config.ball_cost <= 0:
        return 0.0
    return expected_payout(config) / config.ball_cost


# ═══════════════════════════════════════════════════════════════
# Monte Carlo
# ═══════════════════════════════════════════════════════════════

@dataclass
class SimResult:
    """Statistics from a Monte Carlo run."""
    rounds: int
    total_wagered: float
    total_returned: float
    rtp: float
    rtp_theoretical: float
    hit_frequency: float          # fraction of rounds paying > 0
    rush_frequency: float         # fraction of rounds ending in RUSH
    max_reward: int
    confidence_95: tuple = (0.0, 0.0)
    pocket_counts: dict = field(default_factory=dict)
    duration_seconds: float = 0.0
    seed: Optional[int] = None

    @property
    def rtp_delta(self) -> float:
        return abs(self.rtp - self.rtp_theoretical)

    def summary(self) -> str:
        lines = [
            "═══ Monte Carlo: PACHINKO ═══",
            f"  Rounds:      {self.rounds:,}",
            f"  Theoretical: {self.rtp_theoretical * 100:.4f}%",
            f"  Measured:    {self.rtp * 100:.4f}%",
            f"  95% CI:      {self.confidence_95[0] * 100:.4f}% .. {self.confidence_95[1] * 100:.4f}%",
            f"  Hit Freq:    {self.hit_frequency * 100:.2f}%",
            f"  Rush Freq:   {self.rush_frequency * 100:.3f}%",
            f"  Max Reward:  {self.max_reward}",
            f"  Duration:    {self.duration_seconds:.2f}s",
        ]
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "rounds": self.rounds,
            "seed": self.seed,
            "total_wagered": round(self.total_wagered, 2),
            "total_returned": round(self.total_returned, 2),
            "rtp": round(self.rtp, 6),
            "rtp_theoretical": round(self.rtp_theoretical, 6),
            "rtp_delta": round(self.rtp_delta, 6),
            "confidence_95": [round(x, 6) for x in self.confidence_95],
            "hit_frequency": round(self.hit_frequency, 6),
            "rush_frequency": round(self.rush_frequency, 6),
            "max_reward": self.max_reward,
            "pocket_counts": dict(self.pocket_counts),
            "duration_seconds": round(self.duration_seconds, 3),
        }


def simulate(config: GameConfig, rounds: int = 100_000, seed: Optional[int] = 42,
             random_source: Optional[RandomSource] = None) -> SimResult:
    """Play *rounds* balls without a ledger and collect payout statistics."""
    if rounds <= 0:
        raise ValueError(f"rounds must be positive, got {rounds}")
    source = random_source if random_source is not None else SeededRandomSource(seed)
    cost = config.ball_cost

    started = time.perf_counter()
    total_returned = 0
    wins = rushes = max_reward = 0
    sum_sq = 0.0
    counts = {p.id: 0 for p in config.pockets}

    for _ in range(rounds):
        result = play_round(config.pockets, config.probability, source)
        reward = result.outcome.reward
        counts[result.pocket.id] += 1
        total_returned += reward
        if reward > 0:
            wins += 1
        if result.outcome.is_rush:
            rushes += 1
        if reward > max_reward:
            max_reward = reward
        if cost > 0:
            sum_sq += (reward / cost) ** 2

    total_wagered = float(cost * rounds)
    rtp = total_returned / total_wagered if total_wagered > 0 else 0.0

    # 95% confidence interval for the RTP
    variance = max(sum_sq / rounds - rtp ** 2, 0.0)
    std_err = math.sqrt(variance / rounds)
    ci = (rtp - 1.96 * std_err, rtp + 1.96 * std_err)

    duration = time.perf_counter() - started
    logger.info(f"Simulated {rounds:,} rounds in {duration:.2f}s: RTP {rtp * 100:.3f}%")

    return SimResult(
        rounds=rounds,
        total_wagered=total_wagered,
        total_returned=float(total_returned),
        rtp=rtp,
        rtp_theoretical=expected_return(config),
        hit_frequency=wins / rounds,
        rush_frequency=rushes / rounds,
        max_reward=max_reward,
        confidence_95=ci,
        pocket_counts=counts,
        duration_seconds=duration,
        seed=seed if random_source is None else None,
    )


# ═══════════════════════════════════════════════════════════════
# Rush Run
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RushRun:
    shots: int
    rush_achieved: bool
    credits_remaining: int

    def to_dict(self) -> dict:
        return {
            "shots": self.shots,
            "rush_achieved": self.rush_achieved,
            "credits_remaining": self.credits_remaining,
        }


def simulate_until_rush(config: GameConfig, random_source: Optional[RandomSource] = None,
                        max_shots: int = 1_000_000) -> RushRun:
    """Shoot from a fresh session until the first RUSH, until credits run out
    or until *max_shots* balls have been fired."""
    session = PachinkoSession(config, random_source=random_source)
    while session.ledger.can_afford(config.ball_cost) and session.round_count < max_shots:
        result = session.shoot()
        if result is not None and result.outcome.is_rush:
            break

    run = RushRun(
        shots=session.round_count,
        rush_achieved=bool(session.last_outcome and session.last_outcome.is_rush),
        credits_remaining=session.credits,
    )
    logger.info(f"Rush run: {run.shots} shots, rush={run.rush_achieved}, credits={run.credits_remaining}")
    return run
