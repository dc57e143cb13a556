"""Filesystem layout of the prize wheel data directory."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class DataPaths:
    """Resolve every artifact path from a single data directory."""

    root: Path

    @property
    def catalog_file(self) -> Path:
        return self.root / "prizes.yaml"

    @property
    def ledger_file(self) -> Path:
        return self.root / "inventory.csv"

    @property
    def mode_file(self) -> Path:
        return self.root / "mode.txt"

    @property
    def state_dir(self) -> Path:
        return self.root / "state"

    @property
    def report_dir(self) -> Path:
        return self.root / "reports"

    @property
    def log_dir(self) -> Path:
        return self.root / "logs"

    def state_file(self, date: str) -> Path:
        """Return the remaining-stock snapshot path for ``date``."""

        return self.state_dir / f"state_{date}.yaml"

    def report_file(self, date: str) -> Path:
        """Return the daily report path for ``date``."""

        return self.report_dir / f"report_{date}.csv"
