"""
PACHINKO — Random Sources

Every random decision in the engine pulls one value from a *random source*:
a zero-argument callable returning a number. The engine normalizes whatever
comes back into [0, 1), so sources that return negative or large values stay
usable.

Sources shipped here:
    system_random_source()     — platform uniform generator (default)
    SeededRandomSource(seed)   — reproducible private stream
    SequenceRandomSource(vals) — scripted values for tests
    ProvablyFairRandomSource   — HMAC-SHA256(server_seed, client_seed:nonce)

Usage:
    from pachinko.random_source import SeededRandomSource, draw
    source = SeededRandomSource(42)
    r = draw(source)
"""

from __future__ import annotations

import hashlib
import hmac
import math
import os
import random
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

RandomSource = Callable[[], float]


class RandomSourceExhausted(RuntimeError):
    """A strict scripted source was asked for more values than it holds."""


def normalize(value: float) -> float:
    """Fold any finite number into [0, 1): abs(value) minus its integer part."""
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Random source returned a non-finite value: {value!r}")
    value = abs(value)
    return value - math.floor(value)


def draw(source: RandomSource) -> float:
    """Pull exactly one value from *source* and normalize it."""
    return normalize(source())


def system_random_source() -> RandomSource:
    return random.random


# ═══════════════════════════════════════════════════════════════
# Deterministic Sources
# ═══════════════════════════════════════════════════════════════

class SeededRandomSource:
    """Reproducible stream backed by a private random.Random."""

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._rng = random.Random(seed)

    def __call__(self) -> float:
        return self._rng.random()


class SequenceRandomSource:
    """Replays a fixed script of values.

    Once the script runs out the last value repeats (0 for an empty script).
    With ``strict=True`` an exhausted script raises RandomSourceExhausted
    instead, which lets a test prove a draw never happened.
    """

    def __init__(self, values: Sequence[float], strict: bool = False):
        self.values = list(values)
        self.strict = strict
        self.calls = 0

    def __call__(self) -> float:
        index = self.calls
        self.calls += 1
        if index < len(self.values):
            return self.values[index]
        if self.strict:
            raise RandomSourceExhausted(
                f"Scripted source exhausted after {len(self.values)} values"
            )
        return self.values[-1] if self.values else 0.0

    @property
    def remaining(self) -> int:
        return max(0, len(self.values) - self.calls)


# ═══════════════════════════════════════════════════════════════
# Provably Fair Source
# ═══════════════════════════════════════════════════════════════

@dataclass
class FairDraw:
    """Audit record for one provably fair draw."""
    nonce: int
    combined_hash: str
    raw_value: float

    def verification_data(self, client_seed: str) -> dict:
        return {
            "nonce": self.nonce,
            "client_seed": client_seed,
            "combined_hash": self.combined_hash,
            "raw_value": self.raw_value,
            "verification_steps": [
                "1. Compute: combined = HMAC-SHA256(server_seed, client_seed + ':' + str(nonce))",
                "2. Take first 8 hex chars of combined → int value",
                "3. raw_value = int_value / 0x100000000",
            ],
        }


@dataclass
class ProvablyFairRandomSource:
    """Verifiable draws from a server seed, a client seed and a nonce.

    The server seed stays secret while the session runs; only its SHA-256
    hash is shared up front. After the session the seed is revealed and every
    draw can be recomputed from ``history``.
    """
    server_seed: str = ""
    client_seed: str = ""
    nonce: int = 0
    history: list[FairDraw] = field(default_factory=list)

    def __post_init__(self):
        if not self.server_seed:
            self.server_seed = os.urandom(32).hex()
        if not self.client_seed:
            self.client_seed = os.urandom(16).hex()

    @property
    def server_seed_hash(self) -> str:
        return hashlib.sha256(self.server_seed.encode()).hexdigest()

    def derive_hash(self, nonce: int) -> str:
        message = f"{self.client_seed}:{nonce}"
        return hmac.new(
            self.server_seed.encode(),
            message.encode(),
            hashlib.sha256,
        ).hexdigest()

    @staticmethod
    def hash_to_float(hex_hash: str) -> float:
        """Convert the first 8 hex characters to a float in [0, 1)."""
        return int(hex_hash[:8], 16) / 0x100000000

    def __call__(self) -> float:
        combined = self.derive_hash(self.nonce)
        value = self.hash_to_float(combined)
        self.history.append(FairDraw(nonce=self.nonce, combined_hash=combined, raw_value=value))
        self.nonce += 1
        return value

    def verify(self, fair_draw: FairDraw) -> bool:
        """Recompute a recorded draw from the seeds."""
        combined = self.derive_hash(fair_draw.nonce)
        return combined == fair_draw.combined_hash and self.hash_to_float(combined) == fair_draw.raw_value
