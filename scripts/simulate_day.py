"""Simulate a full operating day of prize wheel spins without side effects."""

from __future__ import annotations

import argparse
import csv
import datetime as _dt
import random
from collections import Counter
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Sequence

import numpy as np

from prize_wheel.config import CONFIG_PATH, EngineConfig, load_config
from prize_wheel.engine import WheelEngine


@dataclass
class TimelineEntry:
    time: _dt.datetime
    mode: int
    prize_id: Optional[str]
    is_filler: bool


def split_runs(runs: int, split: Sequence[float]) -> list[int]:
    """Divide ``runs`` across modes 1, 2 and 3; mode 3 takes the rounding remainder."""

    if len(split) != 3:
        raise ValueError("Mode split needs exactly three fractions.")
    mode1 = int(round(runs * split[0]))
    mode2 = int(round(runs * split[1]))
    mode3 = max(0, runs - mode1 - mode2)
    return [mode1, mode2, mode3]


def simulate_day(
    config: EngineConfig,
    date: str,
    runs: int,
    split: Sequence[float],
    seed: Optional[int] = None,
) -> tuple[WheelEngine, list[TimelineEntry]]:
    pacing = replace(
        config.pacing,
        expected_spins_per_day=runs,
        planned_spins=runs,
        progress_source="spins",
    )
    sim_config = replace(config, dry_run=True, auto_rotate=False, pacing=pacing)
    rng = random.Random(seed) if seed is not None else random.Random()
    engine = WheelEngine(sim_config, rng=rng)
    engine.initialize(date, start_poller=False, resume=False)

    start = _dt.datetime.strptime(date, "%Y-%m-%d") + _dt.timedelta(hours=pacing.day_start_hour)
    end = _dt.datetime.strptime(date, "%Y-%m-%d") + _dt.timedelta(hours=pacing.day_end_hour)
    step = (end - start) / max(1, runs)
    now = start

    timeline: list[TimelineEntry] = []
    try:
        for mode, count in zip((1, 2, 3), split_runs(runs, split)):
            engine.set_mode(mode)
            for _ in range(count):
                result = engine.spin()
                timeline.append(
                    TimelineEntry(
                        time=now,
                        mode=mode,
                        prize_id=result.prize_id if result.accepted else None,
                        is_filler=result.is_filler,
                    )
                )
                now += step
    finally:
        engine.shutdown()
    return engine, timeline


def export_results(path: Path, timeline: Sequence[TimelineEntry]) -> None:
    delivered: Counter[str] = Counter(
        entry.prize_id for entry in timeline if entry.prize_id and not entry.is_filler
    )
    filler = sum(1 for entry in timeline if entry.is_filler)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle, lineterminator="\n")
        writer.writerow(["Prize", "Delivered"])
        for prize_id, count in delivered.items():
            writer.writerow([prize_id, count])
        writer.writerow(["FILLER", filler])


def export_timeline(path: Path, timeline: Sequence[TimelineEntry]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle, lineterminator="\n")
        writer.writerow(["Time", "Mode", "PrizeID"])
        for entry in timeline:
            writer.writerow([entry.time.strftime("%H:%M"), entry.mode, entry.prize_id or "ERROR"])


def hourly_deliveries(timeline: Sequence[TimelineEntry]) -> dict[int, int]:
    hours = np.array(
        [entry.time.hour for entry in timeline if entry.prize_id and not entry.is_filler],
        dtype=np.int64,
    )
    if hours.size == 0:
        return {}
    counts = np.bincount(hours, minlength=24)
    return {hour: int(counts[hour]) for hour in range(24) if counts[hour]}


def print_summary(engine: WheelEngine, timeline: Sequence[TimelineEntry]) -> None:
    delivered = Counter(entry.prize_id for entry in timeline if entry.prize_id and not entry.is_filler)
    filler = sum(1 for entry in timeline if entry.is_filler)
    rejected = sum(1 for entry in timeline if entry.prize_id is None)

    print(f"Simulated {len(timeline)} spins (goal {engine.daily_goal} real prizes).")
    print()
    header = f"{'Prize':<20} {'Delivered':>10}"
    print(header)
    print("-" * len(header))
    for prize in engine.catalog:
        if prize.is_filler:
            continue
        print(f"{prize.id:<20} {delivered[prize.id]:>10}")
    print(f"{'(filler)':<20} {filler:>10}")
    if rejected:
        print(f"{'(rejected)':<20} {rejected:>10}")

    print()
    print("Real prizes per hour:")
    for hour, count in hourly_deliveries(timeline).items():
        print(f"  {hour:02d}:00  {count}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config", type=Path, default=CONFIG_PATH, help="Path to config.yaml")
    parser.add_argument(
        "--date",
        required=True,
        help="Ledger date to simulate (YYYY-MM-DD). Starts from the ledger stock; saved state is ignored.",
    )
    parser.add_argument(
        "--runs",
        type=int,
        default=500,
        help="Number of spins in the simulated day (default: 500).",
    )
    parser.add_argument(
        "--mode-split",
        type=float,
        nargs=3,
        default=(0.3, 0.3, 0.4),
        metavar=("M1", "M2", "M3"),
        help="Fraction of spins run in modes 1, 2 and 3 (default: 0.3 0.3 0.4).",
    )
    parser.add_argument("--seed", type=int, default=None, help="Optional RNG seed for reproducibility.")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Where to write the CSV exports (default: the data directory).",
    )
    args = parser.parse_args(argv)

    config = load_config(args.config)
    engine, timeline = simulate_day(config, args.date, args.runs, args.mode_split, args.seed)
    output_dir = args.output_dir or config.data_dir
    export_results(output_dir / f"simulation_{args.date}_results.csv", timeline)
    export_timeline(output_dir / f"simulation_{args.date}_timeline.csv", timeline)
    print_summary(engine, timeline)
    print()
    print(f"Exports written to {output_dir}.")


if __name__ == "__main__":
    main()
