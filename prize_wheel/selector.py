"""Category-aware weighted prize selection and the per-spin outcome decision."""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Final, Optional, Sequence

from .prizes import PrizeCategory, PrizeDefinition


MODE_SMALL_ONLY = 1
MODE_SMALL_MEDIUM = 2
MODE_ALL = 3
VALID_MODES = (MODE_SMALL_ONLY, MODE_SMALL_MEDIUM, MODE_ALL)


class SpinPhase(str, Enum):
    """Phases a trigger passes through while it is being processed."""

    IDLE: Final[str] = "IDLE"
    EVALUATING_STOCK: Final[str] = "EVALUATING_STOCK"
    DECIDING_OUTCOME: Final[str] = "DECIDING_OUTCOME"
    SELECTING: Final[str] = "SELECTING"
    COMMITTING: Final[str] = "COMMITTING"


@dataclass(frozen=True)
class CategoryShares:
    """Relative odds of each category in modes 2 and 3."""

    small: float = 0.8
    medium: float = 0.1
    large: float = 0.1


@dataclass
class StreakCounters:
    """Track consecutive real and filler outcomes."""

    consecutive_real: int = 0
    consecutive_filler: int = 0

    def record(self, real: bool) -> None:
        if real:
            self.consecutive_real += 1
            self.consecutive_filler = 0
        else:
            self.consecutive_filler += 1
            self.consecutive_real = 0

    def reset(self) -> None:
        self.consecutive_real = 0
        self.consecutive_filler = 0


@dataclass(frozen=True)
class Decision:
    """Outcome of the decision step: the catalog index to award, if any."""

    index: Optional[int]
    real: bool = False
    forced: bool = False
    reason: str = "pacing"
    probability: Optional[float] = None


def weighted_pick(
    indices: Sequence[int], weights: Sequence[float], rng: random.Random
) -> Optional[int]:
    """Return one of ``indices`` with odds proportional to its weight.

    Negative weights count as zero. When every weight is zero the pick is
    uniform. The draw is inclusive at both ends, so a draw landing exactly on
    a cumulative boundary goes to the earlier index; the last index is
    returned if float rounding leaves the draw above every cumulative sum.
    """

    if not indices:
        return None

    total = sum(max(0.0, weights[idx]) for idx in indices)
    if total <= 0:
        return indices[rng.randrange(len(indices))]

    draw = rng.uniform(0.0, total)
    cumulative = 0.0
    for idx in indices:
        cumulative += max(0.0, weights[idx])
        if draw <= cumulative:
            return idx
    return indices[-1]


def _buckets(
    remaining: Sequence[int], catalog: Sequence[PrizeDefinition], filler_index: Optional[int]
) -> dict[PrizeCategory, list[int]]:
    buckets: dict[PrizeCategory, list[int]] = {category: [] for category in PrizeCategory}
    for idx, prize in enumerate(catalog):
        if idx == filler_index or remaining[idx] <= 0:
            continue
        buckets[prize.category].append(idx)
    return buckets


def choose_prize(
    mode: int,
    remaining: Sequence[int],
    catalog: Sequence[PrizeDefinition],
    filler_index: Optional[int],
    shares: CategoryShares,
    rng: random.Random,
) -> Optional[int]:
    """Pick an in-stock, non-filler prize index eligible under ``mode``."""

    buckets = _buckets(remaining, catalog, filler_index)
    eligible = [idx for category in PrizeCategory for idx in buckets[category]]
    if not eligible:
        return None

    weights = [prize.weight for prize in catalog]

    if mode == MODE_SMALL_ONLY:
        return weighted_pick(buckets[PrizeCategory.SMALL], weights, rng)

    category_odds = {
        PrizeCategory.SMALL: max(0.0, shares.small),
        PrizeCategory.MEDIUM: max(0.0, shares.medium),
        PrizeCategory.LARGE: max(0.0, shares.large),
    }
    if mode == MODE_SMALL_MEDIUM:
        category_odds[PrizeCategory.LARGE] = 0.0
        eligible = buckets[PrizeCategory.SMALL] + buckets[PrizeCategory.MEDIUM]
    for category, members in buckets.items():
        if not members:
            category_odds[category] = 0.0

    total = sum(category_odds.values())
    if total <= 0:
        return weighted_pick(eligible, weights, rng)

    draw = rng.random()
    cumulative = 0.0
    picked = PrizeCategory.LARGE
    for category in PrizeCategory:
        share = category_odds[category] / total
        if share <= 0:
            continue
        cumulative += share
        picked = category
        if draw < cumulative:
            break

    choice = weighted_pick(buckets[picked], weights, rng)
    if choice is None:
        choice = weighted_pick(eligible, weights, rng)
    return choice


def decide_outcome(
    *,
    mode: int,
    remaining: Sequence[int],
    catalog: Sequence[PrizeDefinition],
    filler_index: Optional[int],
    streaks: StreakCounters,
    shares: CategoryShares,
    rng: random.Random,
    probability: Optional[float] = None,
    max_real_streak: int = 0,
    max_filler_streak: int = 0,
    spins_left: Optional[int] = None,
    on_select: Optional[Callable[[], None]] = None,
) -> Decision:
    """Decide the outcome of one spin without mutating stock.

    ``probability`` is the pacing model's real-prize probability; ``None``
    means pacing is bypassed and a real prize is attempted. ``spins_left``
    enables catch-up forcing when real stock would otherwise go unused.
    ``on_select`` is called once a real prize is to be drawn, just before
    the weighted selection runs.
    """

    def _choose() -> Optional[int]:
        if on_select is not None:
            on_select()
        return choose_prize(mode, remaining, catalog, filler_index, shares, rng)

    total_real = sum(value for idx, value in enumerate(remaining) if idx != filler_index)
    filler_ok = filler_index is not None and remaining[filler_index] > 0

    def _filler(reason: str, forced: bool = False) -> Decision:
        if not filler_ok:
            return Decision(index=None, reason="no_candidate", probability=probability)
        return Decision(
            index=filler_index, real=False, forced=forced, reason=reason, probability=probability
        )

    if total_real <= 0:
        return _filler("no_real_stock", forced=True)

    if max_filler_streak > 0 and streaks.consecutive_filler >= max_filler_streak:
        idx = _choose()
        if idx is not None:
            return Decision(index=idx, real=True, forced=True, reason="filler_streak")
        if filler_ok:
            return _filler("filler_streak_fallback", forced=True)

    if max_real_streak > 0 and streaks.consecutive_real >= max_real_streak and filler_ok:
        return _filler("real_streak", forced=True)

    catch_up = spins_left is not None and total_real >= max(1, spins_left)
    if not catch_up and probability is not None and filler_ok:
        if rng.random() > probability:
            return _filler("pacing")

    idx = _choose()
    if idx is not None:
        return Decision(
            index=idx,
            real=True,
            forced=catch_up,
            reason="catch_up" if catch_up else "pacing",
            probability=probability,
        )
    return _filler("no_eligible_prize")
