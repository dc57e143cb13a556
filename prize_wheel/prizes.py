"""Prize catalog loading and audit utilities for the prize wheel."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import yaml


class PrizeCategory(str, Enum):
    """Prize tiers used by the eligibility modes."""

    SMALL = "Small"
    MEDIUM = "Medium"
    LARGE = "Large"


@dataclass(frozen=True)
class PrizeDefinition:
    """Represent a single prize entry with its selection weight and stock."""

    id: str
    name: str
    category: PrizeCategory = PrizeCategory.SMALL
    weight: float = 1.0
    initial_stock: int = 0

    @property
    def key(self) -> str:
        return normalize_prize_id(self.id)

    @property
    def is_filler(self) -> bool:
        return self.key == FILLER_KEY


# Well-known id of the "try again" placeholder. Matched case-insensitively.
FILLER_ID = "SUERTEPROXIMA"

# Built-in catalog used when no catalog file is present. Edit this list to update defaults.
DEFAULT_CATALOG: List[PrizeDefinition] = [
    PrizeDefinition("STICKER", "Sticker Pack", PrizeCategory.SMALL, 3.0, 40),
    PrizeDefinition("CANDY", "Candy Bag", PrizeCategory.SMALL, 3.0, 40),
    PrizeDefinition("KEYCHAIN", "Keychain", PrizeCategory.SMALL, 2.0, 25),
    PrizeDefinition("MUG", "Coffee Mug", PrizeCategory.MEDIUM, 1.0, 10),
    PrizeDefinition("TSHIRT", "T-Shirt", PrizeCategory.MEDIUM, 1.0, 8),
    PrizeDefinition("HEADPHONES", "Headphones", PrizeCategory.LARGE, 1.0, 2),
    PrizeDefinition(FILLER_ID, "Better luck next time", PrizeCategory.SMALL, 1.0, 9999),
]

LOGGER = logging.getLogger(__name__)
_ROLL_LOGGER = logging.getLogger("prize_wheel.prize_rolls")
_STOCK_LOGGER = logging.getLogger("prize_wheel.prize_stock")


def normalize_prize_id(value: object) -> str:
    """Return the comparison key for a prize id."""

    if value is None:
        return ""
    return str(value).strip().casefold()


FILLER_KEY = normalize_prize_id(FILLER_ID)


def parse_category(value: object) -> PrizeCategory:
    """Parse ``value`` into a category, defaulting to ``SMALL`` when unrecognized."""

    if isinstance(value, PrizeCategory):
        return value
    text = str(value or "").strip().casefold()
    for category in PrizeCategory:
        if category.value.casefold() == text or category.name.casefold() == text:
            return category
    return PrizeCategory.SMALL


def _parse_entry(raw: dict) -> Optional[PrizeDefinition]:
    prize_id = str(raw.get("id") or "").strip()
    if not prize_id:
        return None

    try:
        weight = float(raw.get("weight", 1.0))
    except (TypeError, ValueError):
        weight = 1.0
    try:
        initial_stock = max(0, int(raw.get("initialStock", raw.get("initial_stock", 0)) or 0))
    except (TypeError, ValueError):
        initial_stock = 0

    return PrizeDefinition(
        id=prize_id,
        name=str(raw.get("name") or prize_id),
        category=parse_category(raw.get("category")),
        weight=max(0.0, weight),
        initial_stock=initial_stock,
    )


def load_catalog(
    path: Path, current: Optional[Sequence[PrizeDefinition]] = None
) -> list[PrizeDefinition]:
    """Load the prize catalog from ``path``.

    The file holds a ``prizes`` list (YAML or JSON). When the file is missing,
    empty or malformed the ``current`` catalog is returned unchanged; a
    successful load replaces it entirely.
    """

    fallback = list(current) if current is not None else list(DEFAULT_CATALOG)
    if not path.exists():
        LOGGER.warning("Prize catalog not found at %s; keeping current catalog.", path)
        return fallback

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except (OSError, yaml.YAMLError) as exc:
        LOGGER.error("Failed to read prize catalog %s: %s", path, exc)
        return fallback

    entries = data.get("prizes") if isinstance(data, dict) else None
    if not isinstance(entries, list) or not entries:
        LOGGER.error("Prize catalog %s is empty or malformed; keeping current catalog.", path)
        return fallback

    catalog: list[PrizeDefinition] = []
    seen: set[str] = set()
    for raw in entries:
        if not isinstance(raw, dict):
            LOGGER.warning("Skipping malformed catalog entry: %r", raw)
            continue
        prize = _parse_entry(raw)
        if prize is None:
            LOGGER.warning("Skipping catalog entry without an id: %r", raw)
            continue
        if prize.key in seen:
            LOGGER.warning("Duplicate prize id %s in catalog; keeping the first entry.", prize.id)
            continue
        seen.add(prize.key)
        catalog.append(prize)

    if not catalog:
        LOGGER.error("Prize catalog %s has no usable entries; keeping current catalog.", path)
        return fallback

    LOGGER.info("Loaded %d prizes from %s", len(catalog), path)
    return catalog


def find_filler_index(catalog: Iterable[PrizeDefinition]) -> Optional[int]:
    """Return the index of the filler sentinel in ``catalog``, if present."""

    for index, prize in enumerate(catalog):
        if prize.is_filler:
            return index
    return None


def configure_audit_log(log_dir: Path) -> None:
    """Attach the roll and stock audit loggers to files inside ``log_dir``."""

    log_dir.mkdir(parents=True, exist_ok=True)
    for logger, path in (
        (_ROLL_LOGGER, log_dir / "prize_rolls.log"),
        (_STOCK_LOGGER, log_dir / "prize_stock.log"),
    ):
        target = str(path.resolve())
        for handler in list(logger.handlers):
            if getattr(handler, "baseFilename", None) != target:
                logger.removeHandler(handler)
                handler.close()
        if not logger.handlers:
            handler = logging.FileHandler(path, encoding="utf-8")
            handler.setFormatter(logging.Formatter("%(asctime)s | %(message)s"))
            logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False


def log_prize_roll(prize_id: str, *, forced: bool, dry_run: bool) -> None:
    """Append a prize roll entry to the audit log."""

    mode = "FORCED" if forced else "RANDOM"
    tag = "DRY-RUN" if dry_run else "LIVE"
    _ROLL_LOGGER.info("%s | %s | %s", prize_id, mode, tag)


def log_stock_commit(date: str, prize_id: str, remaining: int) -> None:
    """Log a committed stock decrement for auditing."""

    _STOCK_LOGGER.info("%s | %s | -1 | %d", date, prize_id, remaining)


__all__ = [
    "DEFAULT_CATALOG",
    "FILLER_ID",
    "PrizeCategory",
    "PrizeDefinition",
    "configure_audit_log",
    "find_filler_index",
    "load_catalog",
    "log_prize_roll",
    "log_stock_commit",
    "normalize_prize_id",
    "parse_category",
]
