"""
PACHINKO — Outcome Resolution Engine

Weighted pocket selection, the two-stage hit/rush roll and reward
computation for a pachinko ball-drop game, plus the credit ledger a
presentation layer drives.

Usage:
    from pachinko import default_config, resolve_round, SeededRandomSource
    config = default_config()
    outcome = resolve_round(config.pockets, config.probability, SeededRandomSource(42))

    from pachinko import PachinkoSession
    session = PachinkoSession(config)
    result = session.shoot()
"""

from pachinko.config import (
    ConfigurationError, GameConfig, Pocket, ProbabilityConfig,
    build_config, default_config, load_config, validate_config,
)
from pachinko.engine import RoundResult, play_round, resolve_round
from pachinko.ledger import SessionLedger
from pachinko.random_source import (
    ProvablyFairRandomSource, RandomSource, RandomSourceExhausted,
    SeededRandomSource, SequenceRandomSource, system_random_source,
)
from pachinko.resolver import MISS, Outcome, resolve_outcome
from pachinko.selector import select_index, select_pocket
from pachinko.session import PachinkoSession
from pachinko.simulation import RushRun, SimResult, expected_return, simulate, simulate_until_rush

__version__ = "1.0.0"

__all__ = [
    "ConfigurationError", "GameConfig", "Pocket", "ProbabilityConfig",
    "build_config", "default_config", "load_config", "validate_config",
    "RoundResult", "play_round", "resolve_round",
    "SessionLedger",
    "ProvablyFairRandomSource", "RandomSource", "RandomSourceExhausted",
    "SeededRandomSource", "SequenceRandomSource", "system_random_source",
    "MISS", "Outcome", "resolve_outcome",
    "select_index", "select_pocket",
    "PachinkoSession",
    "RushRun", "SimResult", "expected_return", "simulate", "simulate_until_rush",
]
