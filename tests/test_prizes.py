from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from prize_wheel.prizes import (
    DEFAULT_CATALOG,
    PrizeCategory,
    PrizeDefinition,
    find_filler_index,
    load_catalog,
    parse_category,
)


class CatalogLoadingTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name) / "prizes.yaml"
        self.current = [PrizeDefinition("KEEP", "Keep me", PrizeCategory.LARGE, 1.0, 1)]

    def test_missing_file_keeps_current_catalog(self) -> None:
        self.assertEqual(load_catalog(self.path, self.current), self.current)

    def test_missing_file_without_current_uses_defaults(self) -> None:
        self.assertEqual(load_catalog(self.path), DEFAULT_CATALOG)

    def test_empty_file_keeps_current_catalog(self) -> None:
        self.path.write_text("", encoding="utf-8")
        self.assertEqual(load_catalog(self.path, self.current), self.current)

    def test_unparsable_file_keeps_current_catalog(self) -> None:
        self.path.write_text("prizes: [unclosed", encoding="utf-8")
        self.assertEqual(load_catalog(self.path, self.current), self.current)

    def test_successful_load_replaces_catalog(self) -> None:
        payload = {
            "prizes": [
                {"id": "A", "name": "Alpha", "category": "medium", "weight": 2.5, "initialStock": 4},
                {"id": "suerteproxima", "name": "Try again", "category": "Small", "initialStock": 9},
            ]
        }
        self.path.write_text(json.dumps(payload), encoding="utf-8")

        catalog = load_catalog(self.path, self.current)

        self.assertEqual([p.id for p in catalog], ["A", "suerteproxima"])
        self.assertEqual(catalog[0].category, PrizeCategory.MEDIUM)
        self.assertEqual(catalog[0].weight, 2.5)
        self.assertEqual(catalog[0].initial_stock, 4)
        self.assertEqual(find_filler_index(catalog), 1)

    def test_unknown_category_defaults_to_small(self) -> None:
        self.path.write_text(
            "prizes:\n  - {id: X, name: Mystery, category: Gigantic, initialStock: 1}\n",
            encoding="utf-8",
        )
        catalog = load_catalog(self.path, self.current)
        self.assertEqual(catalog[0].category, PrizeCategory.SMALL)

    def test_duplicate_ids_keep_first_entry(self) -> None:
        self.path.write_text(
            "prizes:\n"
            "  - {id: A, name: First}\n"
            "  - {id: a, name: Second}\n",
            encoding="utf-8",
        )
        catalog = load_catalog(self.path, self.current)
        self.assertEqual(len(catalog), 1)
        self.assertEqual(catalog[0].name, "First")


class CategoryParsingTests(unittest.TestCase):
    def test_parse_category_is_case_insensitive(self) -> None:
        self.assertIs(parse_category("LARGE"), PrizeCategory.LARGE)
        self.assertIs(parse_category("medium"), PrizeCategory.MEDIUM)
        self.assertIs(parse_category(None), PrizeCategory.SMALL)

    def test_filler_is_identified_by_id_not_category(self) -> None:
        catalog = [
            PrizeDefinition("A", "A", PrizeCategory.SMALL),
            PrizeDefinition(" SuerteProxima ", "Try again", PrizeCategory.LARGE),
        ]
        self.assertEqual(find_filler_index(catalog), 1)
        self.assertIsNone(find_filler_index(catalog[:1]))


if __name__ == "__main__":
    unittest.main()
