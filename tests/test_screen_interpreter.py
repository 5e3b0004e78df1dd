import os
import sys
import unittest
from dataclasses import dataclass
from datetime import date


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from binder import Binder
from data_provider import DataProviderResolver
from definitions import ScreenDefinition
from engine_errors import (
    ConfigurationError,
    EntityTypeNotFoundError,
    FieldNotFoundError,
    InvalidOverrideError,
    MissingMetadataError,
)
from entities import Entity
from entity_catalog import EntityCatalog
from field_meta import ui_field
from form_builder import FormBuilder
from registry import ServiceRegistry
from screen_interpreter import ScreenInterpreter
from widgets import DatePicker, Section, TextArea, TextField


@dataclass(eq=False)
class Task(Entity):
    name: str | None = ui_field(display_name="Name", order=1)
    done: bool = ui_field(False, display_name="Done", order=2)
    due: date | None = ui_field(display_name="Due", order=3)
    notes: str | None = ui_field(display_name="Notes", order=4, max_length=500)
    secret: str | None = ui_field(display_name="Secret", order=5, hidden=True)
    raw: str | None = None


def _interpreter() -> ScreenInterpreter:
    registry = ServiceRegistry()
    registry.freeze()
    catalog = EntityCatalog()
    catalog.register(Task)
    return ScreenInterpreter(catalog, FormBuilder(DataProviderResolver(registry)))


def _screen(lines, entity_type="Task") -> ScreenDefinition:
    return ScreenDefinition.from_dict({"id": "task.screen", "project_id": "1", "entity_type": entity_type, "lines": lines})


class TestScreenInterpreter(unittest.TestCase):
    def test_two_sections_hold_their_fields(self) -> None:
        screen = _screen(
            [
                {"kind": "section", "caption": "Main"},
                {"kind": "field", "field": "name"},
                {"kind": "section", "caption": "Dates"},
                {"kind": "field", "field": "due"},
            ]
        )
        binder = Binder(Task)
        form = _interpreter().build(screen, binder)
        self.assertEqual([type(c) for c in form.layout.children], [Section, Section])
        main = form.get_section("Main")
        dates = form.get_section("Dates")
        self.assertEqual([row.name for row in main.children], ["name"])
        self.assertEqual([row.name for row in dates.children], ["due"])
        self.assertIsInstance(form.get_component_by_name("Main", "name"), TextField)
        self.assertIsInstance(form.get_component_by_name("Dates", "due"), DatePicker)
        self.assertIsNone(form.get_component_by_name("Main", "due"))
        self.assertIsNone(form.get_component_by_name("Missing", "name"))
        self.assertEqual(binder.bound_properties(), ["name", "due"])

    def test_fields_before_any_section_go_to_top_level(self) -> None:
        screen = _screen([{"field": "name"}, {"kind": "section", "caption": "More"}, {"field": "done"}])
        form = _interpreter().build(screen, Binder(Task))
        self.assertEqual(form.layout.children[0].name, "name")
        self.assertIsNotNone(form.get_component_by_name(None, "name"))
        self.assertIsNone(form.get_component_by_name(None, "done"))
        self.assertIsNotNone(form.get_component_by_name("More", "done"))
        self.assertEqual(sorted(form.components), ["done", "name"])

    def test_unknown_field_is_a_configuration_error(self) -> None:
        screen = _screen([{"field": "name"}, {"field": "colour"}])
        with self.assertRaises(FieldNotFoundError) as ctx:
            _interpreter().build(screen, Binder(Task))
        self.assertEqual(ctx.exception.field, "colour")
        self.assertIn("task.screen", ctx.exception.message)

    def test_unknown_override_key_is_rejected(self) -> None:
        screen = _screen([{"field": "name", "overrides": {"colour": "red"}}])
        with self.assertRaises(InvalidOverrideError):
            _interpreter().build(screen, Binder(Task))

    def test_override_value_of_wrong_type_names_the_field(self) -> None:
        cases = [
            ({"max_length": "2000"}, "max_length"),
            ({"required": "yes"}, "required"),
            ({"order": True}, "order"),
            ({"display_name": None}, "display_name"),
        ]
        for overrides, key in cases:
            with self.subTest(key=key):
                with self.assertRaises(InvalidOverrideError) as ctx:
                    _interpreter().build(_screen([{"field": "notes", "overrides": overrides}]), Binder(Task))
                self.assertEqual(ctx.exception.code, "OVERRIDE_VALUE_INVALID")
                self.assertEqual(ctx.exception.field, "notes")
                self.assertEqual(ctx.exception.detail["key"], key)

    def test_numeric_overrides_accept_ints_for_floats(self) -> None:
        screen = _screen([{"field": "notes", "overrides": {"order": None, "min": 1, "max": 2.5}}])
        form = _interpreter().build(screen, Binder(Task))
        self.assertIn("notes", form.components)

    def test_repeated_field_keeps_the_bound_widget(self) -> None:
        screen = _screen([{"field": "name"}, {"field": "name"}])
        binder = Binder(Task)
        with self.assertLogs("screenkit.forms", level="WARNING"):
            form = _interpreter().build(screen, binder)
        self.assertEqual([r.ok for r in form.results], [True, False])
        self.assertIs(form.components["name"], binder.get_binding("name").widget)

    def test_overrides_merge_with_declared_metadata(self) -> None:
        screen = _screen(
            [{"field": "notes", "overrides": {"max_length": 4000, "required": True, "display_name": "Remarks"}}]
        )
        form = _interpreter().build(screen, Binder(Task))
        widget = form.components["notes"]
        self.assertIsInstance(widget, TextArea)
        self.assertTrue(widget.required_indicator)
        row = form.layout.children[0]
        self.assertEqual(row.label.text, "Remarks")
        self.assertTrue(row.label.bold)

    def test_hidden_lines_are_skipped(self) -> None:
        screen = _screen([{"field": "name", "overrides": {"hidden": True}}, {"field": "done"}])
        binder = Binder(Task)
        form = _interpreter().build(screen, binder)
        self.assertEqual(list(form.components), ["done"])
        self.assertEqual(binder.bound_properties(), ["done"])

    def test_override_can_reveal_hidden_field(self) -> None:
        screen = _screen([{"field": "secret", "overrides": {"hidden": False}}])
        form = _interpreter().build(screen, Binder(Task))
        self.assertIn("secret", form.components)

    def test_field_without_metadata(self) -> None:
        with self.assertRaises(MissingMetadataError):
            _interpreter().build(_screen([{"field": "raw"}]), Binder(Task))
        form = _interpreter().build(_screen([{"field": "raw", "overrides": {"display_name": "Raw"}}]), Binder(Task))
        self.assertIsInstance(form.components["raw"], TextField)

    def test_empty_screen_renders_empty_form(self) -> None:
        with self.assertLogs("screenkit.screens", level="WARNING"):
            form = _interpreter().build(_screen([]), Binder(Task))
        self.assertEqual(form.layout.children, [])
        self.assertEqual(form.components, {})

    def test_line_order_controls_placement(self) -> None:
        screen = _screen(
            [
                {"field": "name", "line_order": 5},
                {"field": "done", "line_order": 0},
                {"field": "due", "line_order": 2},
            ]
        )
        form = _interpreter().build(screen, Binder(Task))
        self.assertEqual([row.name for row in form.layout.children], ["done", "due", "name"])

    def test_unknown_entity_type(self) -> None:
        with self.assertRaises(EntityTypeNotFoundError):
            _interpreter().build(_screen([{"field": "name"}], entity_type="Ghost"), Binder(Task))

    def test_missing_binder(self) -> None:
        with self.assertRaises(ConfigurationError) as ctx:
            _interpreter().build(_screen([{"field": "name"}]), None)
        self.assertEqual(ctx.exception.code, "SCREEN_BINDER_MISSING")


if __name__ == "__main__":
    unittest.main()
