#!/usr/bin/env python3
"""
PACHINKO — Unit Test Suite

Run: python tests.py
     python tests.py -v                  # verbose
     python tests.py TestOutcomeResolver # run specific class

Test categories:
  TestRandomSource     — normalization, scripted/seeded/provably fair sources
  TestWeightedSelector — cumulative boundaries, zero-weight and drift fallbacks
  TestOutcomeResolver  — reward gate, hit/rush rolls, draw order, rush payouts
  TestSessionLedger    — charge/credit/reset bookkeeping
  TestGameConfig       — validation, camelCase loading, warnings, expected return
"""

import hashlib
import json
import math
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from pachinko.config import (
    ConfigurationError, GameConfig, Pocket, ProbabilityConfig,
    build_config, default_config, load_config, validate_config,
)
from pachinko.engine import play_round, resolve_round
from pachinko.ledger import SessionLedger
from pachinko.random_source import (
    ProvablyFairRandomSource, RandomSourceExhausted, SeededRandomSource,
    SequenceRandomSource, draw, normalize,
)
from pachinko.resolver import MISS, Outcome, resolve_outcome, rush_payout
from pachinko.selector import select_index, select_pocket
from pachinko.simulation import expected_return


HIT_POCKET = Pocket(id="hit", label="Hit", reward=10, rush_reward=40, weight=1)
MISS_POCKET = Pocket(id="miss", label="Miss", reward=0, weight=0)
PROB = ProbabilityConfig(hit_rate=0.5, rush_rate=0.25, rush_reward_multiplier=4)


def fixed(value):
    return lambda: value


# ============================================================
# Random Source Tests
# ============================================================

class TestRandomSource(unittest.TestCase):
    """Normalization and the bundled random sources."""

    def test_normalize_folds_into_unit_interval(self):
        self.assertEqual(normalize(0.3), 0.3)
        self.assertEqual(normalize(-0.25), 0.25)
        self.assertEqual(normalize(3.75), 0.75)
        self.assertEqual(normalize(1.0), 0.0)
        self.assertEqual(normalize(-2), 0.0)

    def test_normalize_rejects_non_finite(self):
        with self.assertRaises(ValueError):
            normalize(float("nan"))
        with self.assertRaises(ValueError):
            normalize(float("inf"))

    def test_draw_calls_source_once(self):
        source = SequenceRandomSource([0.4, 0.7])
        self.assertEqual(draw(source), 0.4)
        self.assertEqual(source.calls, 1)

    def test_sequence_repeats_last_value(self):
        source = SequenceRandomSource([0.1, 0.2])
        self.assertEqual([source() for _ in range(4)], [0.1, 0.2, 0.2, 0.2])
        self.assertEqual(source.remaining, 0)

    def test_empty_sequence_returns_zero(self):
        self.assertEqual(SequenceRandomSource([])(), 0.0)

    def test_strict_sequence_raises_when_exhausted(self):
        source = SequenceRandomSource([0.5], strict=True)
        source()
        with self.assertRaises(RandomSourceExhausted):
            source()

    def test_seeded_source_is_reproducible(self):
        a = SeededRandomSource(123)
        b = SeededRandomSource(123)
        self.assertEqual([a() for _ in range(10)], [b() for _ in range(10)])

    def test_provably_fair_source_is_verifiable(self):
        source = ProvablyFairRandomSource(server_seed="server", client_seed="client")
        values = [source() for _ in range(5)]
        for v in values:
            self.assertGreaterEqual(v, 0.0)
            self.assertLess(v, 1.0)
        self.assertEqual(source.nonce, 5)
        self.assertEqual([d.nonce for d in source.history], [0, 1, 2, 3, 4])
        self.assertTrue(all(source.verify(d) for d in source.history))
        self.assertEqual(source.server_seed_hash, hashlib.sha256(b"server").hexdigest())

        replay = ProvablyFairRandomSource(server_seed="server", client_seed="client")
        self.assertEqual([replay() for _ in range(5)], values)

    def test_provably_fair_generates_seeds(self):
        source = ProvablyFairRandomSource()
        self.assertEqual(len(source.server_seed), 64)
        self.assertEqual(len(source.client_seed), 32)

    def test_verification_data_lists_steps(self):
        source = ProvablyFairRandomSource(server_seed="s", client_seed="c")
        source()
        data = source.history[0].verification_data(source.client_seed)
        self.assertEqual(data["nonce"], 0)
        self.assertEqual(data["client_seed"], "c")
        self.assertEqual(len(data["verification_steps"]), 3)


# ============================================================
# Weighted Selector Tests
# ============================================================

class TestWeightedSelector(unittest.TestCase):
    """Proportional selection with one draw per call."""

    WEIGHTS = [1, 2, 3, 3, 5]  # cumulative 1, 3, 6, 9, 14

    def test_cumulative_boundaries(self):
        """r=0.5 → target 7 → first cumulative sum above 7 is 9 (index 3)."""
        self.assertEqual(select_index(self.WEIGHTS, fixed(0.5)), 3)
        self.assertEqual(select_index(self.WEIGHTS, fixed(0.0)), 0)
        self.assertEqual(select_index(self.WEIGHTS, fixed(0.2)), 1)   # target 2.8
        self.assertEqual(select_index(self.WEIGHTS, fixed(0.4)), 2)   # target 5.6
        self.assertEqual(select_index(self.WEIGHTS, fixed(0.99)), 4)  # target 13.86

    def test_exact_boundary_belongs_to_next_entry(self):
        """Target 1.0 equals the first cumulative sum, so it goes to index 1."""
        self.assertEqual(select_index([1, 1, 2], fixed(0.25)), 1)
        self.assertEqual(select_index([1, 1, 2], fixed(0.5)), 2)

    def test_all_zero_weights_return_first_without_drawing(self):
        source = SequenceRandomSource([], strict=True)
        self.assertEqual(select_index([0, 0, 0], source), 0)
        self.assertEqual(source.calls, 0)

    def test_negative_weights_count_as_zero(self):
        self.assertEqual(select_index([-5, 1], fixed(0.0)), 1)
        self.assertEqual(select_index([-1, -2], fixed(0.7)), 0)

    def test_zero_weight_entries_are_never_drawn(self):
        for r in (0.0, 0.25, 0.5, 0.999):
            self.assertEqual(select_index([0, 1, 0], fixed(r)), 1)

    def test_exhausted_walk_falls_back_to_last(self):
        """A non-finite total never gets passed by the running sum."""
        self.assertEqual(select_index([float("inf"), 1.0], fixed(0.5)), 1)
        self.assertEqual(select_index([float("inf"), 1.0, 2.0], fixed(0.0)), 2)

    def test_out_of_range_draws_are_normalized(self):
        self.assertEqual(select_index(self.WEIGHTS, fixed(-0.5)), 3)
        self.assertEqual(select_index(self.WEIGHTS, fixed(2.5)), 3)

    def test_empty_table_is_setup_error(self):
        with self.assertRaises(ConfigurationError):
            select_index([], fixed(0.5))

    def test_select_pocket_uses_one_draw(self):
        source = SequenceRandomSource([0.0], strict=True)
        self.assertIs(select_pocket([HIT_POCKET, MISS_POCKET], source), HIT_POCKET)
        self.assertEqual(source.calls, 1)


# ============================================================
# Outcome Resolver Tests
# ============================================================

class TestOutcomeResolver(unittest.TestCase):
    """Reward gate, hit roll, rush roll and payouts."""

    def test_zero_reward_is_always_a_miss(self):
        source = SequenceRandomSource([], strict=True)
        for _ in range(3):
            self.assertEqual(resolve_outcome(MISS_POCKET, PROB, source), MISS)
        self.assertEqual(source.calls, 0)
        self.assertEqual(MISS, Outcome(is_win=False, is_rush=False, reward=0))

    def test_hit_rate_boundary(self):
        self.assertEqual(resolve_outcome(HIT_POCKET, PROB, SequenceRandomSource([0.5], strict=True)), MISS)
        outcome = resolve_outcome(HIT_POCKET, PROB, SequenceRandomSource([0.4999, 0.9], strict=True))
        self.assertEqual(outcome, Outcome(is_win=True, is_rush=False, reward=10))

    def test_rush_win(self):
        outcome = resolve_outcome(HIT_POCKET, PROB, SequenceRandomSource([0.1, 0.1], strict=True))
        self.assertEqual(outcome, Outcome(is_win=True, is_rush=True, reward=40))

    def test_miss_never_draws_rush_roll(self):
        source = SequenceRandomSource([0.6], strict=True)
        self.assertEqual(resolve_outcome(HIT_POCKET, PROB, source), MISS)
        self.assertEqual(source.calls, 1)

    def test_hit_draws_before_rush(self):
        """Swapping the two values turns a rush into a miss."""
        self.assertTrue(resolve_outcome(HIT_POCKET, PROB, SequenceRandomSource([0.1, 0.4])).is_win)
        self.assertFalse(resolve_outcome(HIT_POCKET, PROB, SequenceRandomSource([0.1, 0.4])).is_rush)
        self.assertFalse(resolve_outcome(HIT_POCKET, PROB, SequenceRandomSource([0.6, 0.1])).is_win)

    def test_rush_reward_floor(self):
        pocket = Pocket(id="odd", reward=10, rush_reward=5, weight=1)
        outcome = resolve_outcome(pocket, PROB, SequenceRandomSource([0.0, 0.0]))
        self.assertTrue(outcome.is_rush)
        self.assertEqual(outcome.reward, 10)

    def test_multiplier_used_without_rush_reward(self):
        pocket = Pocket(id="plain", reward=10, weight=1)
        self.assertEqual(rush_payout(pocket, PROB), 40)

    def test_zero_rush_reward_falls_back_to_multiplier(self):
        pocket = Pocket(id="zero", reward=10, rush_reward=0, weight=1)
        self.assertEqual(rush_payout(pocket, PROB), 40)

    def test_multiplier_clamped_to_one(self):
        pocket = Pocket(id="plain", reward=10, weight=1)
        prob = ProbabilityConfig(hit_rate=1, rush_rate=1, rush_reward_multiplier=0.5)
        self.assertEqual(resolve_outcome(pocket, prob, fixed(0.0)).reward, 10)

    def test_fractional_multiplier_rounds_down(self):
        pocket = Pocket(id="plain", reward=3, weight=1)
        prob = ProbabilityConfig(hit_rate=1, rush_rate=1, rush_reward_multiplier=2.5)
        self.assertEqual(rush_payout(pocket, prob), 7)

    def test_non_positive_hit_rate_skips_draw(self):
        for rate in (0, -1):
            prob = ProbabilityConfig(hit_rate=rate, rush_rate=0.5, rush_reward_multiplier=4)
            source = SequenceRandomSource([], strict=True)
            self.assertEqual(resolve_outcome(HIT_POCKET, prob, source), MISS)
            self.assertEqual(source.calls, 0)

    def test_rates_above_one_are_clamped(self):
        prob = ProbabilityConfig(hit_rate=5, rush_rate=2, rush_reward_multiplier=4)
        outcome = resolve_outcome(HIT_POCKET, prob, SequenceRandomSource([0.999, 0.999]))
        self.assertEqual(outcome, Outcome(is_win=True, is_rush=True, reward=40))

    def test_zero_rush_rate_still_draws(self):
        prob = ProbabilityConfig(hit_rate=0.5, rush_rate=0, rush_reward_multiplier=4)
        source = SequenceRandomSource([0.1, 0.0], strict=True)
        self.assertEqual(resolve_outcome(HIT_POCKET, prob, source), Outcome(True, False, 10))
        self.assertEqual(source.calls, 2)

    def test_determinism(self):
        values = [0.1, 0.1, 0.6, 0.3, 0.9, 0.2, 0.05, 0.7]

        def run():
            source = SequenceRandomSource(values)
            return [resolve_outcome(HIT_POCKET, PROB, source) for _ in range(5)]

        self.assertEqual(run(), run())

    def test_resolve_round_composes_selector_and_resolver(self):
        pockets = [HIT_POCKET, MISS_POCKET]
        source = SequenceRandomSource([0.0, 0.1, 0.1], strict=True)
        self.assertEqual(resolve_round(pockets, PROB, source), Outcome(True, True, 40))
        self.assertEqual(source.calls, 3)

    def test_play_round_reports_pocket(self):
        result = play_round([MISS_POCKET, HIT_POCKET], PROB, SequenceRandomSource([0.3, 0.9]))
        self.assertEqual(result.pocket.id, "hit")
        self.assertEqual(result.outcome, MISS)
        self.assertEqual(result.to_dict()["pocket_id"], "hit")


# ============================================================
# Session Ledger Tests
# ============================================================

class TestSessionLedger(unittest.TestCase):
    """Credit bookkeeping. The ledger itself never blocks an overdraft."""

    def test_initial_state(self):
        ledger = SessionLedger(initial_credits=20)
        self.assertEqual(ledger.credits, 20)
        self.assertEqual(ledger.round_count, 0)
        self.assertIsNone(ledger.last_outcome)

    def test_charge_and_credit(self):
        ledger = SessionLedger(initial_credits=20)
        self.assertTrue(ledger.can_afford(1))
        ledger.charge(1)
        ledger.credit(10)
        self.assertEqual(ledger.credits, 29)
        self.assertEqual(ledger.round_count, 1)

    def test_can_afford_exact_balance(self):
        ledger = SessionLedger(initial_credits=3)
        self.assertTrue(ledger.can_afford(3))
        self.assertFalse(ledger.can_afford(4))

    def test_charge_does_not_guard_balance(self):
        """Affordability is the caller's check, not the ledger's."""
        ledger = SessionLedger(initial_credits=0)
        self.assertFalse(ledger.can_afford(1))
        ledger.charge(1)
        self.assertEqual(ledger.credits, -1)

    def test_reset(self):
        ledger = SessionLedger(initial_credits=20)
        ledger.charge(5)
        ledger.record(Outcome(True, False, 10))
        ledger.reset()
        self.assertEqual(ledger.credits, 20)
        self.assertEqual(ledger.round_count, 0)
        self.assertIsNone(ledger.last_outcome)

        ledger.reset(100)
        self.assertEqual(ledger.credits, 100)
        self.assertEqual(ledger.initial_credits, 100)

    def test_snapshot_is_json_serializable(self):
        ledger = SessionLedger(initial_credits=5)
        ledger.charge(1)
        ledger.record(Outcome(True, True, 40))
        data = json.loads(json.dumps(ledger.snapshot()))
        self.assertEqual(data["credits"], 4)
        self.assertEqual(data["last_outcome"], {"is_win": True, "is_rush": True, "reward": 40})


# ============================================================
# Game Config Tests
# ============================================================

class TestGameConfig(unittest.TestCase):
    """Pydantic models, loading and validation warnings."""

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.tmpdir, ignore_errors=True)

    def _base(self, **overrides):
        data = {
            "initial_credits": 20,
            "ball_cost": 1,
            "pockets": [
                {"id": "hit", "label": "Hit", "reward": 10, "rush_reward": 40, "weight": 1},
                {"id": "miss", "label": "Miss", "reward": 0, "weight": 0},
            ],
            "probability": {"hit_rate": 0.5, "rush_rate": 0.25, "rush_reward_multiplier": 4},
        }
        data.update(overrides)
        return data

    def test_default_config(self):
        config = default_config()
        self.assertEqual(config.initial_credits, 50)
        self.assertEqual(config.ball_cost, 1)
        self.assertEqual(config.max_log_items, 6)
        self.assertEqual(len(config.pockets), 5)
        self.assertEqual(validate_config(config), [])

    def test_default_expected_return(self):
        self.assertAlmostEqual(expected_return(default_config()), 0.92225)

    def test_empty_pockets_rejected(self):
        with self.assertRaises(ConfigurationError):
            build_config(self._base(pockets=[]))

    def test_duplicate_ids_rejected(self):
        pockets = [{"id": "a", "reward": 1, "weight": 1}, {"id": "a", "reward": 2, "weight": 1}]
        with self.assertRaises(ConfigurationError):
            build_config(self._base(pockets=pockets))

    def test_missing_fields_rejected(self):
        data = self._base()
        del data["probability"]
        with self.assertRaises(ConfigurationError):
            build_config(data)
        with self.assertRaises(ConfigurationError):
            build_config(self._base(pockets=[{"id": "a", "weight": 1}]))

    def test_non_finite_rates_rejected(self):
        prob = {"hit_rate": float("nan"), "rush_rate": 0.25, "rush_reward_multiplier": 4}
        with self.assertRaises(ConfigurationError):
            build_config(self._base(probability=prob))

    def test_direct_construction_raises_value_error(self):
        with self.assertRaises(ValueError):
            GameConfig(pockets=[], probability=PROB)

    def test_camel_case_flat_layout(self):
        config = build_config({
            "initialCredits": 20,
            "ballCost": 1,
            "hitRate": 0.5,
            "rushRate": 0.25,
            "rushRewardMultiplier": 4,
            "pockets": [{"id": "hit", "label": "ヒット", "reward": 10, "rushReward": 40, "weight": 1}],
        })
        self.assertEqual(config.initial_credits, 20)
        self.assertEqual(config.pockets[0].rush_reward, 40)
        self.assertEqual(config.probability.rush_rate, 0.25)

    def test_label_defaults_to_id(self):
        self.assertEqual(Pocket(id="out", reward=0, weight=1).label, "out")

    def test_pocket_lookup(self):
        config = build_config(self._base())
        self.assertEqual(config.pocket("hit").reward, 10)
        with self.assertRaises(KeyError):
            config.pocket("nope")

    def test_load_config_from_file(self):
        path = Path(self.tmpdir) / "pockets.json"
        path.write_text(json.dumps(self._base()), encoding="utf-8")
        config = load_config(path)
        self.assertEqual(config.pockets[0].id, "hit")

    def test_load_config_errors(self):
        with self.assertRaises(ConfigurationError):
            load_config(Path(self.tmpdir) / "missing.json")
        bad = Path(self.tmpdir) / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        with self.assertRaises(ConfigurationError):
            load_config(bad)
        arr = Path(self.tmpdir) / "array.json"
        arr.write_text("[]", encoding="utf-8")
        with self.assertRaises(ConfigurationError):
            load_config(arr)

    def test_config_hash_tracks_math_fields(self):
        a = build_config(self._base())
        b = build_config(self._base())
        c = build_config(self._base(probability={"hit_rate": 0.6, "rush_rate": 0.25, "rush_reward_multiplier": 4}))
        self.assertEqual(len(a.config_hash), 16)
        self.assertEqual(a.config_hash, b.config_hash)
        self.assertNotEqual(a.config_hash, c.config_hash)

    def test_round_trip_through_dump(self):
        config = build_config(self._base())
        self.assertEqual(build_config(json.loads(config.model_dump_json())), config)

    def test_out_of_range_values_are_warnings(self):
        config = build_config(self._base(
            probability={"hit_rate": 1.5, "rush_rate": -0.1, "rush_reward_multiplier": 0.5},
            pockets=[
                {"id": "a", "reward": 10, "rush_reward": 5, "weight": -1},
                {"id": "b", "reward": -3, "weight": 1},
            ],
        ))
        warnings = "\n".join(validate_config(config))
        self.assertIn("hit_rate", warnings)
        self.assertIn("rush_rate", warnings)
        self.assertIn("rush_reward_multiplier", warnings)
        self.assertIn("negative weight", warnings)
        self.assertIn("negative reward", warnings)
        self.assertIn("rush pays 10", warnings)

    def test_generous_table_warns(self):
        config = build_config(self._base(probability={"hit_rate": 1, "rush_rate": 0, "rush_reward_multiplier": 1}))
        self.assertTrue(any("exceeds 100%" in w for w in validate_config(config)))

    def test_expected_return_zero_weight_fallback(self):
        """All-zero weights put every ball into the first pocket."""
        pockets = [
            {"id": "hit", "reward": 10, "rush_reward": 40, "weight": 0},
            {"id": "miss", "reward": 0, "weight": 0},
        ]
        config = build_config(self._base(pockets=pockets))
        self.assertTrue(math.isclose(expected_return(config), 0.5 * (0.75 * 10 + 0.25 * 40)))


if __name__ == "__main__":
    unittest.main()
