import enum
import os
import sys
import unittest
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from screenkit import CanonicalJsonTypeError, canonical_dumps, definition_hash, to_jsonable


class Status(enum.Enum):
    OPEN = 1
    DONE = 2


@dataclass
class Ref:
    id: int
    name: str


SCREEN = {
    "id": "activity.details",
    "project_id": "1",
    "entity_type": "Activity",
    "lines": [{"kind": "section", "caption": "Info", "name": "Info"}, {"kind": "field", "field": "name"}],
}


class TestCanonicalJson(unittest.TestCase):
    def test_key_order_does_not_matter(self) -> None:
        reordered = {"lines": SCREEN["lines"], "entity_type": "Activity", "project_id": "1", "id": "activity.details"}
        self.assertEqual(canonical_dumps(SCREEN), canonical_dumps(reordered))

    def test_compact_sorted_output(self) -> None:
        self.assertEqual(canonical_dumps({"order": 2, "field": "name"}), '{"field":"name","order":2}')

    def test_line_order_preserved(self) -> None:
        out = canonical_dumps({"fields": ["status", "name"]})
        self.assertEqual(out, '{"fields":["status","name"]}')

    def test_non_ascii_preserved(self) -> None:
        out = canonical_dumps({"caption": "Détails"})
        self.assertIn("Détails", out)
        self.assertNotIn("\\u", out)

    def test_unsupported_types(self) -> None:
        with self.assertRaises(CanonicalJsonTypeError):
            canonical_dumps({"due": date(2024, 1, 1)})
        with self.assertRaises(CanonicalJsonTypeError):
            canonical_dumps({1: "x"})

    def test_non_finite_floats_rejected(self) -> None:
        for bad in (float("nan"), float("inf"), float("-inf")):
            with self.assertRaises(ValueError):
                canonical_dumps({"progress": bad})

    def test_int_and_float_differ(self) -> None:
        self.assertNotEqual(canonical_dumps({"n": 1}), canonical_dumps({"n": 1.0}))


class TestToJsonable(unittest.TestCase):
    def test_entity_field_values(self) -> None:
        value = {
            "status": Status.DONE,
            "hours": Decimal("1.50"),
            "due": date(2024, 3, 4),
            "stamp": datetime(2024, 3, 4, 5, 6),
            "owner": Ref(7, "Ada"),
            "tags": {"b", "a"},
            "pair": (1, None),
        }
        self.assertEqual(
            to_jsonable(value),
            {
                "status": "DONE",
                "hours": "1.50",
                "due": "2024-03-04",
                "stamp": "2024-03-04T05:06:00",
                "owner": 7,
                "tags": ["a", "b"],
                "pair": [1, None],
            },
        )
        canonical_dumps(to_jsonable(value))

    def test_unknown_object_rejected(self) -> None:
        with self.assertRaises(CanonicalJsonTypeError):
            to_jsonable(object())


class TestDefinitionHash(unittest.TestCase):
    def test_format_and_determinism(self) -> None:
        h = definition_hash(SCREEN)
        self.assertTrue(h.startswith("sha256:"))
        self.assertEqual(len(h), len("sha256:") + 64)
        self.assertEqual(h, definition_hash(dict(reversed(list(SCREEN.items())))))

    def test_content_changes_hash(self) -> None:
        changed = dict(SCREEN, entity_type="User")
        self.assertNotEqual(definition_hash(SCREEN), definition_hash(changed))

    def test_bookkeeping_keys_ignored(self) -> None:
        stamped = dict(SCREEN, updated_at="2026-01-01T00:00:00Z", created_at="x", definition_hash="sha256:old")
        self.assertEqual(definition_hash(SCREEN), definition_hash(stamped))


if __name__ == "__main__":
    unittest.main()
