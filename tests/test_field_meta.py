import enum
import os
import sys
import unittest
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import List


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from engine_errors import InvalidOverrideError, MissingMetadataError
from entities import Entity, NamedEntity
from field_meta import (
    ORDER_LAST,
    FieldKind,
    FieldMeta,
    all_fields,
    describe,
    describe_as_dicts,
    find_field,
    ui_field,
    visible_field_names,
)


class Colour(enum.Enum):
    RED = 1
    GREEN = 2


@dataclass(eq=False)
class Task(Entity):
    name: str | None = ui_field(display_name="Name", order=1)
    done: bool = ui_field(False, display_name="Done", order=2)
    due: date | None = ui_field(display_name="Due", order=3, hidden=True)


@dataclass(eq=False)
class Ties(Entity):
    a: str | None = ui_field(display_name="A", order=5)
    b: str | None = ui_field(display_name="B", order=5)
    c: str | None = ui_field(display_name="C")
    d: str | None = ui_field(display_name="D", order=1)
    plain: str | None = None


@dataclass(eq=False)
class Typed(NamedEntity):
    flag: bool = ui_field(False, order=10)
    count: int | None = ui_field(order=11)
    amount: Decimal | None = ui_field(order=12)
    ratio: float | None = ui_field(order=13)
    day: date | None = ui_field(order=14)
    stamp: datetime | None = ui_field(order=15)
    colour: Colour | None = ui_field(order=16)
    tasks: List[Task] = ui_field(default_factory=list, order=17)
    owner: Task | None = ui_field(order=18)
    blob: object = ui_field(order=19)


class NotAModel:
    name = "x"


class TestDescribe(unittest.TestCase):
    def test_task_visible_fields_in_order(self) -> None:
        self.assertEqual(visible_field_names(Task), ["name", "done"])

    def test_describe_is_deterministic(self) -> None:
        first = [d.name for d in describe(Ties)]
        second = [d.name for d in describe(Ties)]
        self.assertEqual(first, second)

    def test_ties_keep_discovery_order_and_unordered_sort_last(self) -> None:
        self.assertEqual(visible_field_names(Ties), ["d", "a", "b", "c"])
        orders = [d.meta.sort_key for d in describe(Ties)]
        self.assertEqual(orders, sorted(orders))
        self.assertEqual(describe(Ties)[-1].meta.sort_key, ORDER_LAST)

    def test_fields_without_metadata_are_not_described(self) -> None:
        self.assertNotIn("plain", visible_field_names(Ties))
        descriptor = find_field(Ties, "plain")
        self.assertIsNotNone(descriptor)
        self.assertIsNone(descriptor.meta)
        with self.assertRaises(MissingMetadataError):
            descriptor.require_meta()

    def test_ancestor_fields_are_included(self) -> None:
        names = visible_field_names(Typed)
        self.assertEqual(names[:2], ["name", "description"])
        self.assertIn("created_date", names)
        self.assertNotIn("id", names)
        self.assertEqual(find_field(Typed, "name").owner, NamedEntity)
        self.assertEqual(find_field(Typed, "flag").owner, Typed)
        self.assertIn("id", [d.name for d in all_fields(Typed)])

    def test_non_dataclass_is_rejected(self) -> None:
        with self.assertRaises(MissingMetadataError) as ctx:
            describe(NotAModel)
        self.assertEqual(ctx.exception.code, "MODEL_NOT_DESCRIBABLE")

    def test_describe_as_dicts(self) -> None:
        items = describe_as_dicts(Task)
        self.assertEqual([i["name"] for i in items], ["name", "done"])
        self.assertEqual(items[1]["kind"], "boolean")


class TestFieldKind(unittest.TestCase):
    def test_classification(self) -> None:
        kinds = {name: find_field(Typed, name).kind() for name in (
            "name", "flag", "count", "amount", "ratio", "day", "stamp", "colour", "tasks", "owner", "blob"
        )}
        self.assertEqual(kinds["name"], FieldKind.STRING)
        self.assertEqual(kinds["flag"], FieldKind.BOOLEAN)
        self.assertEqual(kinds["count"], FieldKind.INTEGER)
        self.assertEqual(kinds["amount"], FieldKind.DECIMAL)
        self.assertEqual(kinds["ratio"], FieldKind.FLOAT)
        self.assertEqual(kinds["day"], FieldKind.DATE)
        self.assertEqual(kinds["stamp"], FieldKind.DATETIME)
        self.assertEqual(kinds["colour"], FieldKind.ENUM)
        self.assertEqual(kinds["tasks"], FieldKind.COLLECTION)
        self.assertEqual(kinds["owner"], FieldKind.ENTITY)
        self.assertEqual(kinds["blob"], FieldKind.UNSUPPORTED)

    def test_collection_element_type(self) -> None:
        self.assertIs(find_field(Typed, "tasks").element_type(), Task)
        self.assertIs(find_field(Typed, "owner").element_type(), Task)


class TestFieldMetaMerge(unittest.TestCase):
    def test_merge_applies_overrides(self) -> None:
        meta = FieldMeta(display_name="Name", order=1)
        merged = meta.merged({"required": True, "display_name": "Title"}, "name")
        self.assertTrue(merged.required)
        self.assertEqual(merged.display_name, "Title")
        self.assertEqual(merged.order, 1)
        self.assertFalse(meta.required)

    def test_merge_rejects_unknown_keys(self) -> None:
        with self.assertRaises(InvalidOverrideError) as ctx:
            FieldMeta().merged({"colour": "red"}, "name")
        self.assertIn("name", ctx.exception.message)
        self.assertEqual(ctx.exception.detail, {"keys": ["colour"]})

    def test_merge_checks_value_types(self) -> None:
        with self.assertRaises(InvalidOverrideError) as ctx:
            FieldMeta().merged({"max_length": "2000"}, "notes")
        self.assertEqual(ctx.exception.code, "OVERRIDE_VALUE_INVALID")
        self.assertEqual(ctx.exception.field, "notes")
        self.assertEqual(ctx.exception.detail, {"key": "max_length", "expected": "int"})
        with self.assertRaises(InvalidOverrideError):
            FieldMeta().merged({"max_length": True}, "notes")
        merged = FieldMeta().merged({"min": 0, "max": 9.5, "order": None, "width": "12em"}, "size")
        self.assertEqual((merged.min, merged.max, merged.width), (0, 9.5, "12em"))

    def test_provider_class_is_not_overridable(self) -> None:
        with self.assertRaises(InvalidOverrideError):
            FieldMeta().merged({"data_provider_class": "x"}, "owner")


if __name__ == "__main__":
    unittest.main()
