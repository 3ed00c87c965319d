#!/usr/bin/env python3
"""
PACHINKO — Command Line

Usage:
    pachinko simulate --rounds 200000 --seed 7
    pachinko simulate --config pockets.json --json
    pachinko rush --seed 42
    pachinko rush --config free_balls.json --max-shots 5000
    pachinko play --balls 10
    pachinko config
"""

import argparse
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from pachinko.config import GameConfig, default_config, load_config, validate_config
from pachinko.random_source import SeededRandomSource, system_random_source
from pachinko.session import PachinkoSession, describe
from pachinko.settings import Settings, configure_logging
from pachinko.simulation import expected_return, simulate, simulate_until_rush

logger = logging.getLogger("pachinko.cli")


def _load(args) -> GameConfig:
    path = args.config or Settings.CONFIG_PATH
    if path:
        logger.info(f"Loading config from {path}")
        return load_config(path)
    return default_config()


def _seed(args) -> Optional[int]:
    return args.seed if args.seed is not None else Settings.SEED


def _source(args):
    seed = _seed(args)
    return SeededRandomSource(seed) if seed is not None else system_random_source()


def positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if n <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {n}")
    return n


# ═══════════════════════════════════════════════════════════
# Commands
# ═══════════════════════════════════════════════════════════

def cmd_simulate(args, console: Console) -> int:
    config = _load(args)
    rounds = args.rounds if args.rounds is not None else Settings.SIM_ROUNDS
    result = simulate(config, rounds=rounds, seed=_seed(args))

    if args.json:
        console.print_json(data=result.to_dict())
        return 0

    console.print(f"\n[bold cyan]🎯 Pachinko Monte Carlo[/bold cyan]  config {config.config_hash}\n")
    table = Table()
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Rounds", f"{result.rounds:,}")
    table.add_row("Theoretical RTP", f"{result.rtp_theoretical * 100:.4f}%")
    table.add_row("Measured RTP", f"{result.rtp * 100:.4f}%")
    table.add_row("95% CI", f"{result.confidence_95[0] * 100:.3f}% .. {result.confidence_95[1] * 100:.3f}%")
    table.add_row("Hit frequency", f"{result.hit_frequency * 100:.2f}%")
    table.add_row("Rush frequency", f"{result.rush_frequency * 100:.3f}%")
    table.add_row("Max reward", str(result.max_reward))
    console.print(table)

    pockets = Table(title="Landings")
    pockets.add_column("Pocket", style="cyan")
    pockets.add_column("Count", justify="right")
    pockets.add_column("Share", justify="right")
    for pocket in config.pockets:
        count = result.pocket_counts.get(pocket.id, 0)
        pockets.add_row(pocket.label, f"{count:,}", f"{count / result.rounds * 100:.2f}%")
    console.print(pockets)
    return 0


def cmd_rush(args, console: Console) -> int:
    config = _load(args)
    run = simulate_until_rush(config, random_source=_source(args), max_shots=args.max_shots)
    if run.rush_achieved:
        console.print(f"[bold green]RUSH reached after {run.shots} balls[/bold green]")
        console.print(f"Credits remaining: {run.credits_remaining}")
    elif run.shots >= args.max_shots:
        console.print(f"[yellow]No RUSH within {args.max_shots:,} balls.[/yellow]")
        console.print(f"Credits remaining: {run.credits_remaining}")
    else:
        console.print("[yellow]Credits ran out before any RUSH.[/yellow]")
        console.print(f"Balls used: {run.shots}")
    return 0


def cmd_play(args, console: Console) -> int:
    config = _load(args)
    session = PachinkoSession(config, random_source=_source(args))

    table = Table()
    table.add_column("Ball", justify="right")
    table.add_column("Result")
    table.add_column("Credits", justify="right")
    for _ in range(args.balls):
        result = session.shoot()
        if result is None:
            break
        style = "magenta" if result.outcome.is_rush else "green" if result.outcome.is_win else "dim"
        table.add_row(str(session.round_count), Text(describe(result), style=style), str(session.credits))
    console.print(table)

    console.print("\n[bold]Event log:[/bold]")
    for entry in session.events:
        console.print(f"  {entry.format()}", markup=False)
    return 0


def cmd_config(args, console: Console) -> int:
    config = _load(args)
    console.print_json(config.model_dump_json())
    console.print(f"Expected return: {expected_return(config) * 100:.2f}%")
    warnings = validate_config(config)
    if warnings:
        console.print("\n[yellow]⚠️  Warnings:[/yellow]")
        for w in warnings:
            console.print(f"  - {w}", markup=False)
    return 0


COMMANDS = {
    "simulate": cmd_simulate,
    "rush": cmd_rush,
    "play": cmd_play,
    "config": cmd_config,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pachinko", description="Pachinko outcome engine tools")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level (default from env)")
    sub = parser.add_subparsers(dest="command", required=True)

    def common(p):
        p.add_argument("--config", type=str, default=None, help="Path to a JSON game config")
        p.add_argument("--seed", type=int, default=None, help="Seed for reproducible runs")

    p = sub.add_parser("simulate", help="Monte Carlo RTP check")
    common(p)
    p.add_argument("--rounds", type=positive_int, default=None)
    p.add_argument("--json", action="store_true", help="Print results as JSON")

    p = sub.add_parser("rush", help="Shoot until the first RUSH or until credits run out")
    common(p)
    p.add_argument("--max-shots", type=positive_int, default=1_000_000, help="Stop after this many balls")

    p = sub.add_parser("play", help="Shoot a few balls and show the event log")
    common(p)
    p.add_argument("--balls", type=positive_int, default=10)

    p = sub.add_parser("config", help="Dump the game config and validation warnings")
    p.add_argument("--config", type=str, default=None, help="Path to a JSON game config")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    console = Console()
    try:
        return COMMANDS[args.command](args, console)
    except ValueError as e:  # ConfigurationError and bad numeric settings
        console.print(f"❌ {e}", style="bold red", markup=False)
        return 2


if __name__ == "__main__":
    sys.exit(main())
