"""Headless runner that feeds spin triggers from stdin into the engine."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, TextIO

from .config import CONFIG_PATH, EngineConfigError, load_config
from .engine import SpinResult, WheelEngine
from .selector import VALID_MODES


LOGGER = logging.getLogger(__name__)

PROMPT = "[wheel] Press Enter to spin, 'm <1-3>' to change mode, 'q' to quit."


def format_result(result: SpinResult) -> str:
    if not result.accepted:
        return f"[wheel] Trigger rejected ({result.reason})."
    prize = result.prize
    label = prize.name if prize is not None else "?"
    tags = []
    if result.is_filler:
        tags.append("filler")
    if result.forced:
        tags.append(f"forced:{result.reason}")
    suffix = f" [{', '.join(tags)}]" if tags else ""
    return f"[wheel] {result.prize_id}: {label}{suffix}"


def handle_command(engine: WheelEngine, line: str, out: TextIO) -> bool:
    """Process one input line. Returns ``False`` when the runner should stop."""

    command = line.strip().lower()
    if command in {"q", "quit", "exit"}:
        return False

    if command.startswith("m"):
        parts = command.split()
        try:
            mode = int(parts[1])
        except (IndexError, ValueError):
            print("[wheel] Usage: m <1-3>", file=out)
            return True
        if mode not in VALID_MODES:
            print(f"[wheel] Mode must be one of {VALID_MODES}.", file=out)
            return True
        engine.set_mode(mode)
        print(f"[wheel] Mode set to {mode}.", file=out)
        return True

    if not engine.has_stock():
        print("[wheel] No stock left for today.", file=out)
        return True

    print(format_result(engine.spin()), file=out)
    return True


def run_wheel(engine: WheelEngine, source: TextIO = sys.stdin, out: TextIO = sys.stdout) -> None:
    """Run the trigger loop until ``source`` is exhausted or the operator quits."""

    if engine.ledger_day_missing:
        print(
            f"[wheel] Inventory ledger has no rows for {engine.active_date}; all stock is zero.",
            file=out,
        )
    print(PROMPT, file=out)
    try:
        for line in source:
            if not handle_command(engine, line, out):
                break
    except KeyboardInterrupt:
        print("[wheel] Interrupted.", file=out)
    finally:
        engine.shutdown()
        LOGGER.info("Wheel runner stopped after %d spins.", engine.spins_done)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Run the prize wheel engine.")
    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_PATH,
        help=f"Path to configuration file (default: {CONFIG_PATH}).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Decide prizes without writing state or report files.",
    )
    parser.add_argument(
        "--date",
        default=None,
        help="Simulate this date (YYYY-MM-DD) instead of today.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Console log level (default: INFO).",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    try:
        config = load_config(args.config)
    except EngineConfigError as exc:
        raise SystemExit(f"[wheel] {exc}") from exc
    if args.dry_run:
        config = replace(config, dry_run=True)

    engine = WheelEngine(config)
    engine.initialize(args.date)
    run_wheel(engine)


if __name__ == "__main__":
    main()
