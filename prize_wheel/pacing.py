"""Pacing model deciding how likely a spin is to award a real prize."""

from __future__ import annotations

import datetime as _dt
import math
from dataclasses import dataclass, field
from typing import Iterable, Sequence

import numpy as np


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True)
class PacingCurve:
    """Piecewise-linear map from elapsed-day fraction to expected delivered fraction.

    Keyframes are ``(t, value)`` pairs sorted by ``t``. Outside the keyframe
    range the curve holds its first or last value.
    """

    points: tuple[tuple[float, float], ...] = ((0.0, 0.0), (1.0, 1.0))

    def __post_init__(self) -> None:
        if not self.points:
            raise ValueError("A pacing curve needs at least one keyframe.")
        ordered = tuple(sorted((float(t), float(v)) for t, v in self.points))
        object.__setattr__(self, "points", ordered)

    @classmethod
    def linear(cls) -> "PacingCurve":
        return cls()

    @classmethod
    def from_points(cls, points: Iterable[Sequence[float]]) -> "PacingCurve":
        pairs = []
        for pair in points:
            if len(pair) != 2:
                raise ValueError("Curve keyframes must be (t, value) pairs.")
            pairs.append((float(pair[0]), float(pair[1])))
        return cls(tuple(pairs))

    def evaluate(self, t: float) -> float:
        xs = np.array([p[0] for p in self.points], dtype=np.float64)
        ys = np.array([p[1] for p in self.points], dtype=np.float64)
        return float(np.interp(float(t), xs, ys))

    __call__ = evaluate


@dataclass(frozen=True)
class PacingSettings:
    """Tunables for the real-prize probability model."""

    min_prob: float = 0.10
    max_prob: float = 0.90
    adjustment_strength: float = 0.5
    expected_spins_per_day: int = 500
    # Spins planned for the day; 0 disables catch-up forcing.
    planned_spins: int = 0
    curve: PacingCurve = field(default_factory=PacingCurve.linear)
    progress_source: str = "clock"
    day_start_hour: float = 11.0
    day_end_hour: float = 20.0


def probability_of_real(
    daily_goal: float,
    expected_spins_per_day: float,
    remaining_real: float,
    delivered_real: float,
    day_progress: float,
    curve: PacingCurve | None = None,
    adjustment_strength: float = 0.5,
    min_prob: float = 0.10,
    max_prob: float = 0.90,
) -> float:
    """Return the probability that the next spin awards a real prize.

    The base rate spreads ``daily_goal`` evenly over ``expected_spins_per_day``;
    it is then nudged up when deliveries lag behind ``curve`` at
    ``day_progress`` and down when they run ahead. The result always lies in
    ``[min_prob, max_prob]``. ``remaining_real`` is accepted for callers that
    track it but does not enter the formula.
    """

    if daily_goal <= 0 or expected_spins_per_day <= 0:
        return max_prob

    shape = curve if curve is not None else PacingCurve.linear()
    base_prob = clamp01(daily_goal / max(1.0, expected_spins_per_day))
    expected_ratio = clamp01(shape.evaluate(clamp01(day_progress)))

    expected_delivered = expected_ratio * daily_goal
    diff = expected_delivered - delivered_real
    normalized_diff = diff / max(1.0, daily_goal)

    p = base_prob * (1.0 + adjustment_strength * normalized_diff)
    if not math.isfinite(p):
        return max_prob
    return max(min_prob, min(max_prob, p))


def day_progress_from_clock(now: _dt.datetime, start_hour: float, end_hour: float) -> float:
    """Fraction of the operating window elapsed at ``now``."""

    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start = midnight + _dt.timedelta(hours=start_hour)
    end = midnight + _dt.timedelta(hours=end_hour)
    if now <= start:
        return 0.0
    if now >= end or end <= start:
        return 1.0
    return clamp01((now - start).total_seconds() / (end - start).total_seconds())


def day_progress_from_spins(spins_done: int, expected_spins_per_day: int) -> float:
    """Fraction of the day elapsed when progress is measured in spins."""

    return clamp01(spins_done / max(1, expected_spins_per_day))
