"""
PACHINKO — Game Configuration

Pydantic models for the pocket table and the probability parameters.
A configuration is read once at session setup and never mutated.

Setup problems (no pockets, duplicate ids, missing fields, unreadable JSON)
fail fast with ConfigurationError. Rates and multipliers outside their usual
range are *not* errors: the engine clamps them at use, and validate_config()
only reports them as warnings.

Usage:
    from pachinko.config import default_config, load_config
    config = default_config()
    config = load_config("pockets.json")
    print(config.model_dump_json(indent=2))
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import (
    BaseModel, ConfigDict, Field, ValidationError, computed_field, field_validator, model_validator,
)


class ConfigurationError(ValueError):
    """Fatal game setup error."""


# ═══════════════════════════════════════════════════════════════
# Models
# ═══════════════════════════════════════════════════════════════

class Pocket(BaseModel):
    """One prize slot in the weighted outcome table."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, allow_inf_nan=False)

    id: str = Field(min_length=1)
    label: str = ""                              # Display name, defaults to id
    reward: int                                  # 0 = guaranteed miss
    rush_reward: Optional[int] = Field(None, alias="rushReward")
    weight: float                                # Relative selection mass

    @model_validator(mode="before")
    @classmethod
    def default_label(cls, data):
        if isinstance(data, dict) and not data.get("label") and data.get("id"):
            data = {**data, "label": data["id"]}
        return data


class ProbabilityConfig(BaseModel):
    """Hit/rush probabilities shared by every pocket."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, allow_inf_nan=False)

    hit_rate: float = Field(alias="hitRate")
    rush_rate: float = Field(alias="rushRate")
    rush_reward_multiplier: float = Field(alias="rushRewardMultiplier")

    def clamped_hit_rate(self) -> float:
        return clamp(self.hit_rate, 0.0, 1.0)

    def clamped_rush_rate(self) -> float:
        return clamp(self.rush_rate, 0.0, 1.0)

    def clamped_multiplier(self) -> float:
        return max(self.rush_reward_multiplier, 1.0)


class GameConfig(BaseModel):
    """Complete configuration for one pachinko session."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: str = "1.0.0"
    initial_credits: int = Field(50, ge=0, alias="initialCredits")
    ball_cost: int = Field(1, ge=0, alias="ballCost")
    max_log_items: int = Field(6, ge=1, alias="maxLogItems")
    pockets: tuple[Pocket, ...]
    probability: ProbabilityConfig

    @field_validator("pockets")
    @classmethod
    def check_pockets(cls, pockets):
        if not pockets:
            raise ValueError("at least one pocket is required")
        seen = set()
        for pocket in pockets:
            if pocket.id in seen:
                raise ValueError(f"duplicate pocket id: {pocket.id}")
            seen.add(pocket.id)
        return pockets

    @computed_field
    @property
    def config_hash(self) -> str:
        """SHA-256 of the math fields, for audit."""
        math_json = json.dumps(
            {
                "ball_cost": self.ball_cost,
                "pockets": [p.model_dump() for p in self.pockets],
                "probability": self.probability.model_dump(),
            },
            sort_keys=True,
        )
        return hashlib.sha256(math_json.encode()).hexdigest()[:16]

    def pocket(self, pocket_id: str) -> Pocket:
        for p in self.pockets:
            if p.id == pocket_id:
                return p
        raise KeyError(pocket_id)


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


# ═══════════════════════════════════════════════════════════════
# Defaults
# ═══════════════════════════════════════════════════════════════

DEFAULT_POCKETS: list[dict] = [
    {"id": "start",      "label": "Start Chucker", "reward": 5,  "rush_reward": 20, "weight": 3},
    {"id": "side_left",  "label": "Left Tulip",    "reward": 2,                     "weight": 4},
    {"id": "side_right", "label": "Right Tulip",   "reward": 2,                     "weight": 4},
    {"id": "attacker",   "label": "Attacker",      "reward": 10, "rush_reward": 50, "weight": 1},
    {"id": "out",        "label": "Out Hole",      "reward": 0,                     "weight": 8},
]

DEFAULT_PROBABILITY: dict = {
    "hit_rate": 0.35,
    "rush_rate": 0.10,
    "rush_reward_multiplier": 3,
}


def default_config(**overrides) -> GameConfig:
    """Built-in pocket table (about 92% expected return per ball)."""
    data: dict[str, Any] = {
        "initial_credits": 50,
        "ball_cost": 1,
        "max_log_items": 6,
        "pockets": [dict(p) for p in DEFAULT_POCKETS],
        "probability": dict(DEFAULT_PROBABILITY),
    }
    data.update(overrides)
    return build_config(data)


def build_config(data: Mapping[str, Any]) -> GameConfig:
    """Validate a plain mapping into a GameConfig.

    Accepts snake_case keys or the camelCase keys used by browser configs
    (``rushReward``, ``hitRate``, ``initialCredits``...). A flat layout with
    the rates at the top level is accepted too.
    """
    data = dict(data)
    if "probability" not in data:
        rate_keys = {
            "hit_rate", "hitRate", "rush_rate", "rushRate",
            "rush_reward_multiplier", "rushRewardMultiplier",
        }
        probability = {k: data.pop(k) for k in list(data) if k in rate_keys}
        if probability:
            data["probability"] = probability
    try:
        return GameConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid game configuration: {e}") from e


def load_config(path: str | Path) -> GameConfig:
    """Read a JSON game configuration from disk."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Config file is not valid JSON: {path} ({e})") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must hold a JSON object: {path}")
    return build_config(data)


# ═══════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════

def validate_config(config: GameConfig) -> list[str]:
    """Return human-readable warnings for values the engine will clamp."""
    from pachinko.simulation import expected_return

    warnings = []
    prob = config.probability
    if not 0.0 <= prob.hit_rate <= 1.0:
        warnings.append(f"hit_rate {prob.hit_rate} outside [0, 1]; clamped to {prob.clamped_hit_rate()}")
    if not 0.0 <= prob.rush_rate <= 1.0:
        warnings.append(f"rush_rate {prob.rush_rate} outside [0, 1]; clamped to {prob.clamped_rush_rate()}")
    if prob.rush_reward_multiplier < 1.0:
        warnings.append(
            f"rush_reward_multiplier {prob.rush_reward_multiplier} below 1; clamped to 1"
        )

    if sum(max(p.weight, 0.0) for p in config.pockets) <= 0:
        warnings.append(f"All pocket weights are zero; every ball lands in '{config.pockets[0].id}'")
    for p in config.pockets:
        if p.weight < 0:
            warnings.append(f"Pocket '{p.id}' has negative weight {p.weight}; treated as 0")
        if p.reward < 0:
            warnings.append(f"Pocket '{p.id}' has negative reward {p.reward}; treated as a miss")
        if p.rush_reward and p.rush_reward < p.reward:
            warnings.append(
                f"Pocket '{p.id}' rush_reward {p.rush_reward} below reward {p.reward}; "
                f"rush pays {p.reward}"
            )

    if config.ball_cost == 0:
        warnings.append("ball_cost is 0; every shot is free")
    else:
        rtp = expected_return(config)
        if rtp > 1.0:
            warnings.append(f"Expected return {rtp * 100:.2f}% exceeds 100%; the player gains credits on average")
    return warnings
