"""Daily report aggregation and CSV snapshots."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .paths import DataPaths
from .prizes import PrizeDefinition, normalize_prize_id


LOGGER = logging.getLogger(__name__)


@dataclass
class PrizeTally:
    id: str
    name: str
    delivered: int = 0


@dataclass
class ReportSummary:
    """Counters for one operating day."""

    date: str
    total_spins: int = 0
    total_filler: int = 0
    prizes: dict[str, PrizeTally] = field(default_factory=dict)

    def delivered(self, prize_id: str) -> int:
        tally = self.prizes.get(normalize_prize_id(prize_id))
        return tally.delivered if tally is not None else 0


class DailyReport:
    """Accumulate spin outcomes for the active date and write them to disk."""

    def __init__(self, paths: DataPaths, *, dry_run: bool = False) -> None:
        self.paths = paths
        self.dry_run = dry_run
        self._summary: Optional[ReportSummary] = None
        self._catalog: list[PrizeDefinition] = []
        self._dirty = False

    @property
    def active_date(self) -> Optional[str]:
        return self._summary.date if self._summary is not None else None

    @property
    def dirty(self) -> bool:
        return self._dirty

    def initialize(self, date: str, catalog: Sequence[PrizeDefinition]) -> None:
        """Start a fresh report for ``date``, flushing any previous day first."""

        if self._summary is not None:
            self.flush(force=True)
        self._catalog = list(catalog)
        self._reset(date)
        self.flush(force=True)

    def rotate(self, date: str) -> None:
        """Close out the current day and start an empty report for ``date``."""

        if self._summary is not None and self._summary.date == date:
            return
        LOGGER.info("Rotating daily report from %s to %s.", self.active_date, date)
        self.initialize(date, self._catalog)

    def record_spin(self, prize: Optional[PrizeDefinition], *, is_filler: bool) -> None:
        if self._summary is None:
            LOGGER.warning("record_spin called before the report was initialized.")
            return

        self._summary.total_spins += 1
        if is_filler:
            self._summary.total_filler += 1
        elif prize is not None:
            tally = self._summary.prizes.get(prize.key)
            if tally is None:
                tally = PrizeTally(id=prize.id, name=prize.name or prize.id)
                self._summary.prizes[prize.key] = tally
            tally.delivered += 1

        self._dirty = True
        self.flush()

    def snapshot(self) -> Optional[ReportSummary]:
        """Return a copy of the in-memory counters."""

        if self._summary is None:
            return None
        return ReportSummary(
            date=self._summary.date,
            total_spins=self._summary.total_spins,
            total_filler=self._summary.total_filler,
            prizes={
                key: PrizeTally(tally.id, tally.name, tally.delivered)
                for key, tally in self._summary.prizes.items()
            },
        )

    def flush(self, force: bool = False) -> bool:
        """Write the report file; skipped when nothing changed unless ``force``."""

        if self._summary is None:
            return False
        if not self._dirty and not force:
            return False
        if self.dry_run:
            self._dirty = False
            return False

        summary = self._summary
        path = self.paths.report_file(summary.date)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8", newline="") as handle:
                writer = csv.writer(handle, lineterminator="\n")
                writer.writerow(["Metric", "Value"])
                writer.writerow(["Date", summary.date])
                writer.writerow(["TotalSpins", summary.total_spins])
                writer.writerow(["TotalFiller", summary.total_filler])
                writer.writerow([])
                writer.writerow(["PrizeID", "PrizeName", "Delivered"])
                for tally in summary.prizes.values():
                    if tally.delivered <= 0:
                        continue
                    writer.writerow([tally.id, tally.name, tally.delivered])
        except OSError as exc:
            LOGGER.error("Failed to write daily report %s: %s", path, exc)
            return False
        finally:
            self._dirty = False
        return True

    def _reset(self, date: str) -> None:
        summary = ReportSummary(date=date)
        for prize in self._catalog:
            if prize.is_filler or prize.key in summary.prizes:
                continue
            summary.prizes[prize.key] = PrizeTally(id=prize.id, name=prize.name or prize.id)
        self._summary = summary
        self._dirty = True
