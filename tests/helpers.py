from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

from prize_wheel.config import EngineConfig
from prize_wheel.pacing import PacingSettings
from prize_wheel.prizes import FILLER_ID, PrizeCategory, PrizeDefinition


class ScriptedRandom:
    """Stand-in for ``random.Random`` returning pre-programmed draws."""

    def __init__(self, values: Iterable[float] = ()) -> None:
        self._values = list(values)

    def _next(self) -> float:
        if not self._values:
            return 0.0
        return self._values.pop(0)

    def random(self) -> float:
        return self._next()

    def uniform(self, a: float, b: float) -> float:
        return a + (b - a) * self._next()

    def randrange(self, n: int) -> int:
        return min(n - 1, int(self._next() * n))


def small_catalog(filler_stock: int = 10) -> list[PrizeDefinition]:
    return [
        PrizeDefinition("A", "Prize A", PrizeCategory.SMALL, 1.0, 2),
        PrizeDefinition("B", "Prize B", PrizeCategory.MEDIUM, 1.0, 1),
        PrizeDefinition(FILLER_ID, "Try again", PrizeCategory.SMALL, 1.0, filler_stock),
    ]


def engine_config(data_dir: Path, **overrides) -> EngineConfig:
    pacing = overrides.pop("pacing", PacingSettings(min_prob=1.0, max_prob=1.0, progress_source="spins"))
    overrides.setdefault("mode_poll_interval", 0.0)
    return EngineConfig(data_dir=data_dir, pacing=pacing, **overrides)


def write_ledger(path: Path, rows: Sequence[Sequence[object]], header: bool = True) -> None:
    lines = ["date,prizeId,quantity"] if header else []
    lines.extend(",".join(str(cell) for cell in row) for row in rows)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
