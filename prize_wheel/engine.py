"""Single-owner engine context tying inventory, pacing, selection and reporting."""

from __future__ import annotations

import datetime as _dt
import logging
import random
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .config import EngineConfig
from .inventory import InventoryState, InventoryStore
from .pacing import day_progress_from_clock, day_progress_from_spins, probability_of_real
from .paths import DataPaths
from .prizes import (
    DEFAULT_CATALOG,
    PrizeDefinition,
    configure_audit_log,
    load_catalog,
    log_prize_roll,
    log_stock_commit,
)
from .report import DailyReport, ReportSummary
from .selector import VALID_MODES, SpinPhase, StreakCounters, decide_outcome


LOGGER = logging.getLogger(__name__)


class EngineStateError(RuntimeError):
    """Raised when the engine is used outside its initialize/shutdown lifecycle."""


@dataclass(frozen=True)
class SpinResult:
    """What a trigger produced. Rejected triggers carry no prize."""

    accepted: bool
    date: Optional[str] = None
    prize: Optional[PrizeDefinition] = None
    index: Optional[int] = None
    is_filler: bool = False
    forced: bool = False
    reason: str = ""
    probability: Optional[float] = None

    @property
    def prize_id(self) -> Optional[str]:
        return self.prize.id if self.prize is not None else None


class ModeFilePoller:
    """Re-read the mode override file and check for day rollover on a timer."""

    def __init__(self, engine: "WheelEngine", interval: float) -> None:
        self.engine = engine
        self.interval = interval
        self._timer: Optional[threading.Timer] = None
        self._stopped = threading.Event()
        self._guard = threading.Lock()

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._stopped.is_set()

    def start(self) -> None:
        self._stopped.clear()
        self._schedule()

    def cancel(self) -> None:
        with self._guard:
            self._stopped.set()
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def tick(self) -> None:
        """Run one poll cycle. Does nothing once the engine has shut down."""

        if not self.engine.initialized:
            return
        self.engine.poll_mode_file()
        if self.engine.config.auto_rotate:
            self.engine.check_day_rollover()

    def _schedule(self) -> None:
        with self._guard:
            if self._stopped.is_set():
                return
            self._timer = threading.Timer(self.interval, self._run)
            self._timer.daemon = True
            self._timer.start()

    def _run(self) -> None:
        if self._stopped.is_set():
            return
        try:
            self.tick()
        except Exception:  # pragma: no cover - keep the poller alive
            LOGGER.exception("Mode poll failed.")
        self._schedule()


class WheelEngine:
    """Own all mutable wheel state for one running day."""

    def __init__(
        self,
        config: EngineConfig,
        *,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], _dt.datetime]] = None,
    ) -> None:
        self.config = config
        self.paths = DataPaths(config.data_dir)
        self.store = InventoryStore(self.paths, dry_run=config.dry_run)
        self.report = DailyReport(self.paths, dry_run=config.dry_run)
        self.streaks = StreakCounters()
        self._rng = rng or random.Random()
        self._clock = clock or _dt.datetime.now
        self._lock = threading.Lock()
        self._poller: Optional[ModeFilePoller] = None
        self._mode = config.mode
        self._phase = SpinPhase.IDLE
        self._catalog: list[PrizeDefinition] = []
        self._inventory: Optional[InventoryState] = None
        self._daily_goal = 0
        self._spins_done = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def initialize(
        self,
        date: Optional[str] = None,
        catalog: Optional[Sequence[PrizeDefinition]] = None,
        *,
        start_poller: bool = True,
        resume: bool = True,
    ) -> None:
        """Load the catalog and the day's inventory and open the daily report.

        ``date`` pins the simulated date for the engine's lifetime; it is
        cleared again by :meth:`shutdown`. ``resume=False`` ignores the saved
        state and starts the day from the ledger stock. Calling this again
        replaces the previous poller.
        """

        self._stop_poller()
        with self._lock:
            if catalog is None:
                catalog = load_catalog(self.paths.catalog_file, DEFAULT_CATALOG)
            self._catalog = list(catalog)
            self.store.date_override = date
            active = self.store.resolve_active_date()
            configure_audit_log(self.paths.log_dir)
            self._load_day(active, resume=resume)
            self.report.initialize(active, self._catalog)
            LOGGER.info(
                "Engine initialized for %s: %d prizes, goal=%d, mode=%d",
                active,
                len(self._catalog),
                self._daily_goal,
                self._mode,
            )

        if start_poller and self.config.mode_poll_interval > 0:
            self._poller = ModeFilePoller(self, self.config.mode_poll_interval)
            self._poller.start()

    def shutdown(self) -> None:
        """Stop polling and flush inventory and report state."""

        self._stop_poller()
        with self._lock:
            if self._inventory is None:
                return
            self.store.commit(self._inventory.date, self._catalog, self._inventory.remaining)
            self.report.flush(force=True)
            self._inventory = None
            self.store.date_override = None
            LOGGER.info("Engine shut down.")

    def _stop_poller(self) -> None:
        if self._poller is not None:
            self._poller.cancel()
            self._poller = None

    def _load_day(self, date: str, resume: bool = True) -> None:
        self._inventory = self.store.load_day(date, self._catalog, resume=resume)
        filler = self._inventory.filler_index
        self._daily_goal = sum(
            value for index, value in enumerate(self._inventory.base) if index != filler
        )
        self._spins_done = 0
        self.streaks.reset()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def initialized(self) -> bool:
        return self._inventory is not None

    @property
    def mode(self) -> int:
        return self._mode

    @property
    def phase(self) -> SpinPhase:
        return self._phase

    @property
    def catalog(self) -> list[PrizeDefinition]:
        return list(self._catalog)

    @property
    def active_date(self) -> Optional[str]:
        return self._inventory.date if self._inventory is not None else None

    @property
    def ledger_day_missing(self) -> bool:
        """True when the ledger has no rows for the active date."""

        return self._inventory is not None and self._inventory.missing_day

    @property
    def polling(self) -> bool:
        return self._poller is not None and self._poller.running

    @property
    def daily_goal(self) -> int:
        return self._daily_goal

    @property
    def spins_done(self) -> int:
        return self._spins_done

    def remaining(self) -> dict[str, int]:
        """Remaining stock keyed by prize id."""

        inventory = self._require_inventory()
        return {prize.id: inventory.remaining[i] for i, prize in enumerate(self._catalog)}

    def ledger_stock(self) -> dict[str, int]:
        inventory = self._require_inventory()
        return {prize.id: inventory.base[i] for i, prize in enumerate(self._catalog)}

    def has_stock(self) -> bool:
        """True while the day can still accept a trigger."""

        return self._inventory is not None and self._inventory.total() > 0

    def report_summary(self) -> Optional[ReportSummary]:
        return self.report.snapshot()

    def set_mode(self, mode: int) -> None:
        if mode not in VALID_MODES:
            raise ValueError(f"Mode must be one of {VALID_MODES}, got {mode!r}.")
        with self._lock:
            self._apply_mode(mode)

    def _apply_mode(self, mode: int) -> None:
        if mode != self._mode:
            LOGGER.info("Mode changed from %d to %d.", self._mode, mode)
            self._mode = mode

    def _require_inventory(self) -> InventoryState:
        if self._inventory is None:
            raise EngineStateError("Engine is not initialized.")
        return self._inventory

    # ------------------------------------------------------------------
    # Spin pipeline
    # ------------------------------------------------------------------
    def spin(self) -> SpinResult:
        """Process one trigger to completion and return its outcome."""

        self._require_inventory()
        if not self._lock.acquire(blocking=False):
            LOGGER.debug("Trigger ignored; a spin is already in flight.")
            return SpinResult(accepted=False, reason="busy")

        try:
            if self.config.auto_rotate:
                self._rollover_locked()
            return self._spin_locked()
        finally:
            self._phase = SpinPhase.IDLE
            self._lock.release()

    def _spin_locked(self) -> SpinResult:
        inventory = self._require_inventory()

        self._phase = SpinPhase.EVALUATING_STOCK
        if inventory.total() <= 0:
            LOGGER.warning("Trigger rejected: no stock left for %s.", inventory.date)
            return SpinResult(accepted=False, date=inventory.date, reason="no_stock")

        self._phase = SpinPhase.DECIDING_OUTCOME
        self._spins_done += 1
        probability = self._pacing_probability(inventory)
        planned = self.config.pacing.planned_spins
        spins_left = max(1, planned - self._spins_done + 1) if planned > 0 else None

        decision = decide_outcome(
            mode=self._mode,
            remaining=inventory.remaining,
            catalog=self._catalog,
            filler_index=inventory.filler_index,
            streaks=self.streaks,
            shares=self.config.shares,
            rng=self._rng,
            probability=probability,
            max_real_streak=self.config.streaks.max_real,
            max_filler_streak=self.config.streaks.max_filler,
            spins_left=spins_left,
            on_select=self._enter_selecting,
        )
        if decision.index is None:
            self._spins_done -= 1
            LOGGER.warning("Trigger rejected: no eligible prize in mode %d.", self._mode)
            return SpinResult(
                accepted=False, date=inventory.date, reason=decision.reason, probability=probability
            )

        prize = self._catalog[decision.index]

        self._phase = SpinPhase.COMMITTING
        self.streaks.record(decision.real)
        if decision.real:
            left = inventory.decrement(decision.index)
            self.store.commit(inventory.date, self._catalog, inventory.remaining)
            log_stock_commit(inventory.date, prize.id, left)
        self.report.record_spin(prize, is_filler=not decision.real)
        log_prize_roll(prize.id, forced=decision.forced, dry_run=self.config.dry_run)

        return SpinResult(
            accepted=True,
            date=inventory.date,
            prize=prize,
            index=decision.index,
            is_filler=not decision.real,
            forced=decision.forced,
            reason=decision.reason,
            probability=probability,
        )

    def _enter_selecting(self) -> None:
        self._phase = SpinPhase.SELECTING

    def _day_progress(self) -> float:
        pacing = self.config.pacing
        if pacing.progress_source == "spins":
            return day_progress_from_spins(self._spins_done, pacing.expected_spins_per_day)
        return day_progress_from_clock(self._clock(), pacing.day_start_hour, pacing.day_end_hour)

    def _pacing_probability(self, inventory: InventoryState) -> float:
        pacing = self.config.pacing
        remaining_real = inventory.total_real()
        delivered_real = max(0, min(self._daily_goal, self._daily_goal - remaining_real))
        return probability_of_real(
            daily_goal=self._daily_goal,
            expected_spins_per_day=pacing.expected_spins_per_day,
            remaining_real=remaining_real,
            delivered_real=delivered_real,
            day_progress=self._day_progress(),
            curve=pacing.curve,
            adjustment_strength=pacing.adjustment_strength,
            min_prob=pacing.min_prob,
            max_prob=pacing.max_prob,
        )

    # ------------------------------------------------------------------
    # Background maintenance
    # ------------------------------------------------------------------
    def check_day_rollover(self) -> bool:
        """Switch to a new day when the active date changed. Returns ``True`` on rollover."""

        with self._lock:
            return self._rollover_locked()

    def _rollover_locked(self) -> bool:
        if self._inventory is None:
            return False
        today = self.store.resolve_active_date()
        if today == self._inventory.date:
            return False

        previous = self._inventory.date
        LOGGER.info("Day rollover detected: %s -> %s", previous, today)
        self.store.commit(previous, self._catalog, self._inventory.remaining)
        self.report.rotate(today)
        self._load_day(today)
        return True

    def poll_mode_file(self) -> Optional[int]:
        """Read the mode override file and apply it when valid."""

        path = self.paths.mode_file
        if not path.exists():
            return None
        try:
            text = path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            LOGGER.error("Failed to read mode file %s: %s", path, exc)
            return None

        try:
            mode = int(text)
        except ValueError:
            LOGGER.warning("Mode file %s holds %r, not an integer; keeping mode %d.", path, text, self._mode)
            return None
        if mode not in VALID_MODES:
            LOGGER.warning("Mode file %s holds out-of-range mode %d; keeping mode %d.", path, mode, self._mode)
            return None

        with self._lock:
            self._apply_mode(mode)
        return mode
