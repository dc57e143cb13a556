from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

import yaml

from prize_wheel.inventory import InventoryStore
from prize_wheel.paths import DataPaths
from prize_wheel.prizes import FILLER_ID, PrizeCategory, PrizeDefinition
from tests.helpers import small_catalog, write_ledger


class InventoryTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.paths = DataPaths(Path(self._tmp.name))
        self.store = InventoryStore(self.paths)
        self.catalog = small_catalog()


class LedgerTests(InventoryTestCase):
    def test_last_matching_row_wins_and_ids_are_case_insensitive(self) -> None:
        write_ledger(
            self.paths.ledger_file,
            [
                ("2025-01-01", "A", 3),
                ("2025-01-01", "b", 7),
                ("2025-01-01", "a", 5),
                ("2025-01-02", "A", 99),
            ],
        )
        ledger = self.store.load_base_stock("2025-01-01", self.catalog)
        self.assertEqual(ledger.stock, (5, 7, 0))
        self.assertFalse(ledger.missing_day)

    def test_missing_day_yields_zero_stock_and_flag(self) -> None:
        write_ledger(self.paths.ledger_file, [("2025-01-01", "A", 5)])
        with self.assertLogs("prize_wheel.inventory", level="WARNING"):
            ledger = self.store.load_base_stock("2025-01-02", self.catalog)
        self.assertEqual(ledger.stock, (0, 0, 0))
        self.assertTrue(ledger.missing_day)

    def test_legitimate_zero_stock_is_not_flagged(self) -> None:
        write_ledger(self.paths.ledger_file, [("2025-01-01", "A", 0)])
        ledger = self.store.load_base_stock("2025-01-01", self.catalog)
        self.assertEqual(ledger.stock, (0, 0, 0))
        self.assertFalse(ledger.missing_day)

    def test_bad_or_negative_quantities_become_zero(self) -> None:
        write_ledger(
            self.paths.ledger_file,
            [("2025-01-01", "A", "lots"), ("2025-01-01", "B", -4), ("2025-01-01", FILLER_ID, 8)],
        )
        ledger = self.store.load_base_stock("2025-01-01", self.catalog)
        self.assertEqual(ledger.stock, (0, 0, 8))

    def test_extra_columns_and_short_rows_are_tolerated(self) -> None:
        write_ledger(
            self.paths.ledger_file,
            [("2025-01-01", "A", 2, "note"), ("2025-01-01", "B")],
        )
        ledger = self.store.load_base_stock("2025-01-01", self.catalog)
        self.assertEqual(ledger.stock, (2, 0, 0))

    def test_missing_ledger_uses_initial_stock(self) -> None:
        ledger = self.store.load_base_stock("2025-01-01", self.catalog)
        self.assertEqual(ledger.stock, (2, 1, 10))
        self.assertFalse(ledger.ledger_found)
        self.assertFalse(ledger.missing_day)


class SnapshotTests(InventoryTestCase):
    def test_round_trip_for_same_date(self) -> None:
        self.assertTrue(self.store.commit("2025-01-01", self.catalog, [1, 0, 10]))
        restored = self.store.apply_persisted_state("2025-01-01", self.catalog, [2, 1, 10])
        self.assertEqual(restored, [1, 0, 10])

    def test_snapshot_for_other_date_is_ignored(self) -> None:
        self.store.commit("2025-01-01", self.catalog, [1, 0, 10])
        path = self.paths.state_file("2025-01-01")
        path.rename(self.paths.state_file("2025-01-02"))
        restored = self.store.apply_persisted_state("2025-01-02", self.catalog, [2, 1, 10])
        self.assertEqual(restored, [2, 1, 10])

    def test_prizes_absent_from_snapshot_keep_base_value(self) -> None:
        path = self.paths.state_file("2025-01-01")
        path.parent.mkdir(parents=True)
        path.write_text(
            yaml.safe_dump({"date": "2025-01-01", "prizes": [{"id": "a", "remaining": 1}]}),
            encoding="utf-8",
        )
        restored = self.store.apply_persisted_state("2025-01-01", self.catalog, [2, 1, 10])
        self.assertEqual(restored, [1, 1, 10])

    def test_corrupt_snapshot_falls_back_to_base(self) -> None:
        path = self.paths.state_file("2025-01-01")
        path.parent.mkdir(parents=True)
        path.write_text("date: [broken", encoding="utf-8")
        restored = self.store.apply_persisted_state("2025-01-01", self.catalog, [2, 1, 10])
        self.assertEqual(restored, [2, 1, 10])

    def test_dry_run_suppresses_commit(self) -> None:
        store = InventoryStore(self.paths, dry_run=True)
        self.assertFalse(store.commit("2025-01-01", self.catalog, [0, 0, 10]))
        self.assertFalse(self.paths.state_file("2025-01-01").exists())

    def test_load_day_combines_ledger_and_snapshot(self) -> None:
        write_ledger(self.paths.ledger_file, [("2025-01-01", "A", 4), ("2025-01-01", FILLER_ID, 3)])
        self.store.commit("2025-01-01", self.catalog, [2, 0, 3])
        state = self.store.load_day("2025-01-01", self.catalog)
        self.assertEqual(state.base, (4, 0, 3))
        self.assertEqual(state.remaining, [2, 0, 3])
        self.assertEqual(state.filler_index, 2)
        self.assertEqual(state.total_real(), 2)

    def test_decrement_never_touches_filler_or_goes_negative(self) -> None:
        catalog = [
            PrizeDefinition("A", "A", PrizeCategory.SMALL, 1.0, 0),
            PrizeDefinition(FILLER_ID, "Try again", PrizeCategory.SMALL, 1.0, 2),
        ]
        state = self.store.load_day("2025-01-01", catalog)
        self.assertEqual(state.decrement(0), 0)
        self.assertEqual(state.decrement(1), 2)


class ActiveDateTests(InventoryTestCase):
    def test_simulated_date_is_cleared_after_use(self) -> None:
        real_today = self.store.resolve_active_date()
        with self.store.simulated_date("2030-06-01"):
            self.assertEqual(self.store.resolve_active_date(), "2030-06-01")
        self.assertEqual(self.store.resolve_active_date(), real_today)

    def test_simulated_date_is_cleared_on_error(self) -> None:
        with self.assertRaises(RuntimeError):
            with self.store.simulated_date("2030-06-01"):
                raise RuntimeError("boom")
        self.assertIsNone(self.store.date_override)


class LoadDayTests(InventoryTestCase):
    def test_missing_day_flag_is_carried(self) -> None:
        write_ledger(self.paths.ledger_file, [("2025-01-02", "A", 3)])
        state = self.store.load_day("2025-01-01", self.catalog)
        self.assertTrue(state.missing_day)
        self.assertEqual(state.remaining, [0, 0, 0])

        state = self.store.load_day("2025-01-02", self.catalog)
        self.assertFalse(state.missing_day)

    def test_resume_false_ignores_saved_state(self) -> None:
        write_ledger(self.paths.ledger_file, [("2025-01-01", "A", 2), ("2025-01-01", "B", 1)])
        self.store.commit("2025-01-01", self.catalog, [0, 0, 0])

        self.assertEqual(self.store.load_day("2025-01-01", self.catalog).remaining, [0, 0, 0])
        fresh = self.store.load_day("2025-01-01", self.catalog, resume=False)
        self.assertEqual(fresh.remaining, [2, 1, 0])
        self.assertEqual(fresh.base, (2, 1, 0))


if __name__ == "__main__":
    unittest.main()
