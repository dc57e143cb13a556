"""Per-day inventory: ledger base stock, snapshot overlay and persistence."""

from __future__ import annotations

import csv
import datetime as _dt
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence

import yaml

from .paths import DataPaths
from .prizes import PrizeDefinition, find_filler_index, normalize_prize_id


LOGGER = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class LedgerStock:
    """Base stock read from the ledger for one date."""

    date: str
    stock: tuple[int, ...]
    missing_day: bool = False
    ledger_found: bool = True


@dataclass
class InventoryState:
    """Remaining stock per catalog position for the active date."""

    date: str
    remaining: list[int]
    filler_index: Optional[int] = None
    base: tuple[int, ...] = field(default_factory=tuple)
    missing_day: bool = False

    def total(self) -> int:
        return sum(self.remaining)

    def total_real(self) -> int:
        return sum(
            value for index, value in enumerate(self.remaining) if index != self.filler_index
        )

    def decrement(self, index: int) -> int:
        """Consume one unit of ``index`` and return what is left."""

        if index == self.filler_index:
            return self.remaining[index]
        self.remaining[index] = max(0, self.remaining[index] - 1)
        return self.remaining[index]


def _parse_quantity(value: str) -> int:
    try:
        return max(0, int(value.strip()))
    except (AttributeError, ValueError):
        return 0


class InventoryStore:
    """Load, overlay and persist the remaining stock for a given date."""

    def __init__(self, paths: DataPaths, *, dry_run: bool = False) -> None:
        self.paths = paths
        self.dry_run = dry_run
        self.date_override: Optional[str] = None

    # ------------------------------------------------------------------
    # Active date
    # ------------------------------------------------------------------
    def resolve_active_date(self) -> str:
        """Return the simulated date when one is set, else today's date."""

        if self.date_override:
            return self.date_override
        return _dt.date.today().strftime(DATE_FORMAT)

    @contextmanager
    def simulated_date(self, date: str) -> Iterator[str]:
        """Substitute ``date`` for the calendar date inside the ``with`` block."""

        previous = self.date_override
        self.date_override = date
        try:
            yield date
        finally:
            self.date_override = previous

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------
    def load_base_stock(self, date: str, catalog: Sequence[PrizeDefinition]) -> LedgerStock:
        """Read the ledger rows for ``date`` and return the base stock per prize."""

        path = self.paths.ledger_file
        if not path.exists():
            LOGGER.warning("Inventory ledger %s not found; using catalog initial stock.", path)
            return LedgerStock(
                date=date,
                stock=tuple(max(0, prize.initial_stock) for prize in catalog),
                ledger_found=False,
            )

        quantities: dict[str, int] = {}
        try:
            with path.open("r", encoding="utf-8", newline="") as handle:
                for line_number, row in enumerate(csv.reader(handle)):
                    if not row or not any(cell.strip() for cell in row):
                        continue
                    if line_number == 0 and row[0].strip().lower().startswith("date"):
                        continue
                    if len(row) < 3:
                        continue
                    if row[0].strip() != date:
                        continue
                    quantities[normalize_prize_id(row[1])] = _parse_quantity(row[2])
        except (OSError, csv.Error, UnicodeDecodeError) as exc:
            LOGGER.error("Failed to read inventory ledger %s: %s", path, exc)
            return LedgerStock(date=date, stock=tuple(0 for _ in catalog))

        if not quantities:
            LOGGER.warning("Inventory ledger has no rows for %s; all stock is zero.", date)
            return LedgerStock(date=date, stock=tuple(0 for _ in catalog), missing_day=True)

        stock = tuple(quantities.get(prize.key, 0) for prize in catalog)
        LOGGER.info("Inventory ledger applied for %s (total=%d).", date, sum(stock))
        return LedgerStock(date=date, stock=stock)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------
    def apply_persisted_state(
        self, date: str, catalog: Sequence[PrizeDefinition], base_stock: Sequence[int]
    ) -> list[int]:
        """Overlay the saved snapshot for ``date`` on top of ``base_stock``."""

        result = [max(0, int(value)) for value in base_stock]
        path = self.paths.state_file(date)
        if not path.exists():
            LOGGER.info("No saved state for %s; using base stock.", date)
            return result

        try:
            with path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle)
        except (OSError, yaml.YAMLError) as exc:
            LOGGER.error("Failed to read saved state %s: %s", path, exc)
            return result

        if not isinstance(data, dict) or not isinstance(data.get("prizes"), list):
            LOGGER.warning("Saved state %s is empty or malformed; using base stock.", path)
            return result

        stored_date = str(data.get("date") or "")
        if stored_date != date:
            LOGGER.info("Saved state belongs to %s, not %s; ignoring it.", stored_date, date)
            return result

        remaining_by_id: dict[str, int] = {}
        for entry in data["prizes"]:
            if not isinstance(entry, dict):
                continue
            key = normalize_prize_id(entry.get("id"))
            if not key:
                continue
            try:
                remaining_by_id[key] = max(0, int(entry.get("remaining", 0)))
            except (TypeError, ValueError):
                continue

        for index, prize in enumerate(catalog):
            if prize.key in remaining_by_id:
                result[index] = remaining_by_id[prize.key]

        LOGGER.info("Saved state applied for %s.", date)
        return result

    def commit(
        self, date: str, catalog: Sequence[PrizeDefinition], remaining: Sequence[int]
    ) -> bool:
        """Persist the remaining stock snapshot for ``date``.

        Returns ``True`` when the snapshot was written. Dry runs and write
        failures leave the file untouched.
        """

        if self.dry_run:
            return False

        payload = {
            "date": date,
            "prizes": [
                {"id": prize.id, "remaining": int(remaining[index]) if index < len(remaining) else 0}
                for index, prize in enumerate(catalog)
            ],
        }
        path = self.paths.state_file(date)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as handle:
                yaml.safe_dump(payload, handle, sort_keys=False)
        except (OSError, yaml.YAMLError) as exc:
            LOGGER.error("Failed to save state %s: %s", path, exc)
            return False
        return True

    def load_day(
        self, date: str, catalog: Sequence[PrizeDefinition], *, resume: bool = True
    ) -> InventoryState:
        """Resolve the full inventory for ``date``: ledger stock plus saved state.

        With ``resume=False`` the saved state is skipped and the day starts
        from the ledger stock.
        """

        ledger = self.load_base_stock(date, catalog)
        if resume:
            remaining = self.apply_persisted_state(date, catalog, ledger.stock)
        else:
            remaining = list(ledger.stock)
        return InventoryState(
            date=date,
            remaining=remaining,
            filler_index=find_filler_index(catalog),
            base=ledger.stock,
            missing_day=ledger.missing_day,
        )
