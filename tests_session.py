#!/usr/bin/env python3
"""
Tests for the play session, simulations and CLI

Validates:
1.  Session starts with one init log entry and the configured credits
2.  shoot() charges the ball, resolves the round and credits the reward
3.  shoot() refuses without drawing when credits are short
4.  RUSH wins show up in the log and as the last outcome
5.  reset() restores credits, zeroes rounds and clears the log
6.  Event log keeps the newest max_log_items entries, newest first
7.  Monte Carlo RTP lands near the closed-form expected return
8.  simulate_until_rush stops at the first RUSH or when credits run out
9.  CLI subcommands exit cleanly and report config errors with code 2
 10. Free balls, non-positive counts and env settings never crash the CLI
"""

import importlib
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from pachinko.cli import main
from pachinko.config import build_config, default_config
from pachinko.random_source import ProvablyFairRandomSource, SequenceRandomSource
import pachinko.settings
from pachinko.session import PachinkoSession
from pachinko.simulation import expected_return, landing_probabilities, simulate, simulate_until_rush


SIMPLE_POCKETS = [
    {"id": "hit", "label": "Hit", "reward": 10, "rush_reward": 40, "weight": 1},
    {"id": "miss", "label": "Miss", "reward": 0, "weight": 0},
]


def _config(**overrides):
    data = {
        "initial_credits": 20,
        "ball_cost": 1,
        "max_log_items": 6,
        "pockets": SIMPLE_POCKETS,
        "probability": {"hit_rate": 0.5, "rush_rate": 0.25, "rush_reward_multiplier": 4},
    }
    data.update(overrides)
    return build_config(data)


def _fixed_clock():
    return datetime(2023, 1, 1, 0, 0, 0)


# ============================================================
# Session
# ============================================================

def test_session_initial_state():
    session = PachinkoSession(_config(initial_credits=50), timestamp_provider=_fixed_clock)
    assert session.credits == 50
    assert session.round_count == 0
    assert session.last_outcome is None
    assert len(session.events) == 1
    assert session.events[0].message == "Board initialized."
    assert session.events[0].format() == "[00:00:00] Board initialized."


def test_shoot_charges_and_credits_reward():
    session = PachinkoSession(_config(), random_source=SequenceRandomSource([0, 0, 0.6]))
    result = session.shoot()

    assert result is not None
    assert result.pocket.id == "hit"
    assert session.credits == 29
    assert session.round_count == 1
    assert session.last_outcome.reward == 10
    assert session.last_outcome.is_rush is False
    assert "Hit / WIN +10" in session.events[0].message


def test_shoot_refused_when_credits_short():
    source = SequenceRandomSource([], strict=True)
    session = PachinkoSession(_config(initial_credits=0), random_source=source)

    assert session.shoot() is None
    assert session.round_count == 0
    assert session.credits == 0
    assert source.calls == 0
    assert "Insufficient credits" in session.events[0].message


def test_refused_shot_logs_warning(caplog):
    session = PachinkoSession(_config(initial_credits=0))
    with caplog.at_level(logging.WARNING, logger="pachinko.session"):
        session.shoot()
    assert any(
        r.levelno == logging.WARNING and "Shot refused" in r.getMessage() for r in caplog.records
    )


def test_shoot_records_rush():
    source = SequenceRandomSource([0, 0.01, 0.1])
    config = _config(probability={"hit_rate": 0.5, "rush_rate": 0.5, "rush_reward_multiplier": 4})
    session = PachinkoSession(config, random_source=source)
    session.shoot()

    assert session.last_outcome.is_rush is True
    assert session.credits == 20 - 1 + 40
    assert "RUSH +40" in session.events[0].message


def test_shoot_miss_logs_miss():
    session = PachinkoSession(_config(), random_source=SequenceRandomSource([0, 0.9]))
    session.shoot()
    assert session.credits == 19
    assert session.events[0].message.endswith("Hit / MISS (credits 19)")


def test_reset_restores_initial_state():
    session = PachinkoSession(_config(), random_source=SequenceRandomSource([0, 0, 0.6]))
    session.shoot()
    session.reset()

    assert session.credits == 20
    assert session.round_count == 0
    assert session.last_outcome is None
    assert len(session.events) == 1
    assert "Reset" in session.events[0].message


def test_event_log_trims_oldest():
    session = PachinkoSession(_config(max_log_items=3))
    for i in range(5):
        session.log(f"message {i}")

    messages = [e.message for e in session.events]
    assert messages == ["message 4", "message 3", "message 2"]


def test_session_with_provably_fair_source():
    source = ProvablyFairRandomSource(server_seed="server", client_seed="client")
    session = PachinkoSession(default_config(), random_source=source)
    for _ in range(10):
        session.shoot()
    assert session.round_count == 10
    assert source.nonce >= 10
    assert all(source.verify(d) for d in source.history)


# ============================================================
# Simulation
# ============================================================

def test_landing_probabilities_sum_to_one():
    probs = landing_probabilities(default_config())
    assert probs["out"] == pytest.approx(0.4)
    assert sum(probs.values()) == pytest.approx(1.0)


def test_monte_carlo_converges_to_expected_return():
    config = default_config()
    result = simulate(config, rounds=100_000, seed=7)

    assert result.rtp_theoretical == pytest.approx(expected_return(config))
    assert abs(result.rtp - result.rtp_theoretical) < 0.05
    assert result.confidence_95[0] < result.rtp < result.confidence_95[1]
    assert sum(result.pocket_counts.values()) == 100_000
    assert result.pocket_counts["out"] > result.pocket_counts["attacker"]
    assert 0 < result.rush_frequency < result.hit_frequency < 1
    assert result.max_reward <= 50


def test_simulate_is_reproducible():
    config = default_config()
    a = simulate(config, rounds=2_000, seed=11).to_dict()
    b = simulate(config, rounds=2_000, seed=11).to_dict()
    a.pop("duration_seconds")
    b.pop("duration_seconds")
    assert a == b


def test_simulate_rejects_non_positive_rounds():
    with pytest.raises(ValueError):
        simulate(default_config(), rounds=0)


def test_simulate_until_rush_stops_at_rush():
    source = SequenceRandomSource([0, 0.9, 0, 0.1, 0.1])
    run = simulate_until_rush(_config(), random_source=source)
    assert run.rush_achieved is True
    assert run.shots == 2
    assert run.credits_remaining == 20 - 2 + 40


def test_simulate_until_rush_runs_out_of_credits():
    config = _config(initial_credits=3)
    run = simulate_until_rush(config, random_source=SequenceRandomSource([0.0, 0.9]))
    assert run.rush_achieved is False
    assert run.shots == 3
    assert run.credits_remaining == 0
    assert run.to_dict() == {"shots": 3, "rush_achieved": False, "credits_remaining": 0}


def test_simulate_until_rush_respects_shot_cap():
    config = _config(probability={"hit_rate": 1, "rush_rate": 0, "rush_reward_multiplier": 4})
    run = simulate_until_rush(config, random_source=SequenceRandomSource([0.0]), max_shots=25)
    assert run.rush_achieved is False
    assert run.shots == 25
    assert run.credits_remaining == 20 + 25 * 9


def test_simulate_until_rush_free_balls_stop_at_shot_cap():
    config = _config(ball_cost=0, probability={"hit_rate": 0, "rush_rate": 0, "rush_reward_multiplier": 1})
    run = simulate_until_rush(config, random_source=SequenceRandomSource([0.5]), max_shots=40)
    assert run.rush_achieved is False
    assert run.shots == 40
    assert run.credits_remaining == 20


def test_simulate_until_rush_free_balls_can_rush():
    config = _config(ball_cost=0, probability={"hit_rate": 1, "rush_rate": 1, "rush_reward_multiplier": 4})
    run = simulate_until_rush(config, random_source=SequenceRandomSource([0.0]))
    assert run.rush_achieved is True
    assert run.shots == 1
    assert run.credits_remaining == 60


# ============================================================
# CLI
# ============================================================

def test_cli_play(capsys):
    assert main(["play", "--balls", "3", "--seed", "1"]) == 0
    out = capsys.readouterr().out
    assert "Event log" in out
    assert "Board initialized." in out


def test_cli_simulate_json(capsys):
    assert main(["simulate", "--rounds", "1000", "--seed", "3", "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["rounds"] == 1000
    assert data["seed"] == 3


def test_cli_simulate_table(capsys):
    assert main(["simulate", "--rounds", "500", "--seed", "3"]) == 0
    out = capsys.readouterr().out
    assert "Measured RTP" in out
    assert "Landings" in out


def test_cli_rush(capsys):
    assert main(["rush", "--seed", "5"]) == 0
    out = capsys.readouterr().out
    assert "RUSH reached" in out or "Credits ran out" in out


def test_cli_config_from_file(tmp_path, capsys):
    path = tmp_path / "pockets.json"
    path.write_text(json.dumps({
        "pockets": SIMPLE_POCKETS,
        "hitRate": 1.5,
        "rushRate": 0.25,
        "rushRewardMultiplier": 4,
    }), encoding="utf-8")
    assert main(["config", "--config", str(path)]) == 0
    out = capsys.readouterr().out
    assert "Expected return" in out
    assert "hit_rate 1.5 outside [0, 1]" in out


def test_cli_config_error_exit_code(tmp_path, capsys):
    path = tmp_path / "empty.json"
    path.write_text(json.dumps({"pockets": [], "hitRate": 0.5, "rushRate": 0.2, "rushRewardMultiplier": 2}))
    assert main(["config", "--config", str(path)]) == 2
    assert main(["simulate", "--config", str(tmp_path / "missing.json")]) == 2


def _write_config(tmp_path, **overrides):
    data = {
        "ballCost": 0,
        "pockets": SIMPLE_POCKETS,
        "hitRate": 1,
        "rushRate": 1,
        "rushRewardMultiplier": 4,
    }
    data.update(overrides)
    path = tmp_path / "free.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_cli_rush_with_free_balls(tmp_path, capsys):
    assert main(["rush", "--config", _write_config(tmp_path), "--seed", "1"]) == 0
    assert "RUSH reached after 1 balls" in capsys.readouterr().out


def test_cli_rush_with_free_balls_hits_shot_cap(tmp_path, capsys):
    path = _write_config(tmp_path, hitRate=0, rushRate=0)
    assert main(["rush", "--config", path, "--seed", "1", "--max-shots", "50"]) == 0
    out = capsys.readouterr().out
    assert "No RUSH within 50 balls" in out
    assert "Credits remaining: 50" in out


@pytest.mark.parametrize("argv", [
    ["simulate", "--rounds", "-5"],
    ["simulate", "--rounds", "0"],
    ["simulate", "--rounds", "many"],
    ["play", "--balls", "0"],
    ["rush", "--max-shots", "-1"],
])
def test_cli_rejects_non_positive_counts(argv, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    assert excinfo.value.code == 2
    err = capsys.readouterr().err
    assert "must be a positive integer" in err or "invalid int value" in err


def test_cli_simulate_uses_env_rounds(monkeypatch, capsys):
    import pachinko.cli

    monkeypatch.setattr(pachinko.cli.Settings, "SIM_ROUNDS", 300)
    assert main(["simulate", "--seed", "2", "--json"]) == 0
    assert json.loads(capsys.readouterr().out)["rounds"] == 300


def test_cli_bad_env_rounds_exit_code(monkeypatch, capsys):
    import pachinko.cli

    monkeypatch.setattr(pachinko.cli.Settings, "SIM_ROUNDS", 0)
    assert main(["simulate", "--seed", "2"]) == 2
    assert "rounds must be positive" in capsys.readouterr().out


# ============================================================
# Settings and logging
# ============================================================

def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("PACHINKO_SEED", "9")
    monkeypatch.setenv("PACHINKO_SIM_ROUNDS", "250")
    monkeypatch.setenv("PACHINKO_CONFIG", "pockets.json")
    monkeypatch.setenv("PACHINKO_LOG_LEVEL", "debug")
    try:
        settings = importlib.reload(pachinko.settings).Settings
        assert settings.SEED == 9
        assert settings.SIM_ROUNDS == 250
        assert settings.CONFIG_PATH == "pockets.json"
        assert settings.LOG_LEVEL == "DEBUG"
    finally:
        monkeypatch.undo()
        importlib.reload(pachinko.settings)


def test_settings_defaults_without_environment(monkeypatch):
    for name in ("PACHINKO_SEED", "PACHINKO_SIM_ROUNDS", "PACHINKO_CONFIG", "PACHINKO_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    try:
        settings = importlib.reload(pachinko.settings).Settings
        assert settings.SEED is None
        assert settings.SIM_ROUNDS == 100_000
        assert settings.LOG_LEVEL == "WARNING"
    finally:
        monkeypatch.undo()
        importlib.reload(pachinko.settings)


def test_configure_logging_is_idempotent():
    from pachinko.settings import configure_logging

    try:
        logger = configure_logging("debug")
        assert logger.name == "pachinko"
        assert logger.level == logging.DEBUG
        handlers = list(logger.handlers)
        assert len(handlers) == 1

        assert configure_logging("INFO") is logger
        assert logger.level == logging.INFO
        assert logger.handlers == handlers

        assert configure_logging("not-a-level").level == logging.WARNING
    finally:
        configure_logging("WARNING")
