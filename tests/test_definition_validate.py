import os
import sys
import unittest
from dataclasses import dataclass


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app.definition_validate import validate_definition, validate_grid, validate_screen
from entities import ProjectEntity
from entity_catalog import EntityCatalog
from field_meta import ui_field


@dataclass(eq=False)
class Task(ProjectEntity):
    done: bool = ui_field(False, display_name="Done", order=4)
    raw: str | None = None


def _catalog() -> EntityCatalog:
    catalog = EntityCatalog()
    catalog.register(Task, service="taskService")
    return catalog


def _codes(issues) -> list:
    return [i["code"] for i in issues]


class TestValidateScreen(unittest.TestCase):
    def test_valid_screen(self) -> None:
        screen = {
            "id": "s1",
            "project_id": "1",
            "entity_type": "Task",
            "lines": [{"kind": "section", "caption": "Main"}, {"field": "name", "overrides": {"required": True}}],
        }
        errors, warnings = validate_screen(screen, _catalog(), "1")
        self.assertEqual(errors, [])
        self.assertEqual(warnings, [])

    def test_structure_errors(self) -> None:
        screen = {
            "id": "s1",
            "project_id": "2",
            "entity_type": "Task",
            "extra": True,
            "lines": [
                "name",
                {"kind": "section"},
                {"kind": "tab"},
                {"field": ""},
                {"field": "name", "overrides": {"colour": "red"}},
                {"field": "ghost"},
                {"field": "raw"},
            ],
        }
        errors, _ = validate_screen(screen, _catalog(), "1")
        self.assertEqual(
            _codes(errors),
            [
                "DEFINITION_UNKNOWN_KEY",
                "DEFINITION_PROJECT_MISMATCH",
                "LINE_INVALID",
                "SECTION_CAPTION_MISSING",
                "LINE_KIND_INVALID",
                "LINE_FIELD_INVALID",
                "LINE_OVERRIDE_UNKNOWN",
                "LINE_FIELD_UNKNOWN",
                "LINE_FIELD_NO_METADATA",
            ],
        )
        self.assertEqual(errors[6]["path"], "lines[4].overrides.colour")

    def test_override_values_are_type_checked(self) -> None:
        screen = {
            "id": "s1",
            "project_id": "1",
            "entity_type": "Task",
            "lines": [
                {"field": "name", "overrides": {"max_length": "2000", "required": 1, "min": 0.5}},
                {"field": "done", "overrides": {"overrides": []}},
                {"field": "done", "overrides": ""},
            ],
        }
        errors, _ = validate_screen(screen, _catalog())
        self.assertEqual(
            [(e["code"], e["path"]) for e in errors],
            [
                ("OVERRIDE_VALUE_INVALID", "lines[0].overrides.max_length"),
                ("OVERRIDE_VALUE_INVALID", "lines[0].overrides.required"),
                ("LINE_OVERRIDE_UNKNOWN", "lines[1].overrides.overrides"),
                ("LINE_OVERRIDES_INVALID", "lines[2].overrides"),
            ],
        )
        self.assertEqual(errors[0]["detail"], {"key": "max_length", "expected": "int"})

    def test_field_without_metadata_allowed_with_overrides(self) -> None:
        screen = {"id": "s1", "project_id": "1", "entity_type": "Task", "lines": [{"field": "raw", "overrides": {"display_name": "Raw"}}]}
        errors, _ = validate_screen(screen, _catalog())
        self.assertEqual(errors, [])

    def test_warnings(self) -> None:
        empty = {"id": "s1", "project_id": "1", "entity_type": "Task", "lines": []}
        self.assertEqual(_codes(validate_screen(empty, _catalog())[1]), ["SCREEN_EMPTY"])
        dup = dict(empty, lines=[{"field": "name"}, {"field": "name"}])
        self.assertEqual(_codes(validate_screen(dup, _catalog())[1]), ["LINE_FIELD_DUPLICATE"])

    def test_unknown_entity_type(self) -> None:
        errors, _ = validate_screen({"id": "s1", "project_id": "1", "entity_type": "Ghost"}, _catalog())
        self.assertEqual(_codes(errors), ["DEFINITION_ENTITY_TYPE_UNKNOWN"])


class TestValidateGrid(unittest.TestCase):
    def test_valid_grid(self) -> None:
        grid = {"id": "g1", "project_id": "1", "entity_type": "Task", "data_service": "taskService", "fields": "name:1,done:2"}
        self.assertEqual(validate_grid(grid, _catalog(), "1"), ([], []))

    def test_grid_warnings(self) -> None:
        grid = {"id": "g1", "project_id": "1", "entity_type": "Task", "data_service": "taskService", "fields": "name:1,ghost:1"}
        errors, warnings = validate_grid(grid, _catalog())
        self.assertEqual(errors, [])
        self.assertEqual(_codes(warnings), ["GRID_ORDER_DUPLICATE", "GRID_FIELD_UNKNOWN"])

    def test_grid_errors(self) -> None:
        grid = {"id": "g1", "project_id": "1", "fields": [{"field": "name", "width": 3}]}
        errors, _ = validate_grid(grid, _catalog())
        self.assertEqual(_codes(errors), ["GRID_SERVICE_INVALID", "DEFINITION_UNKNOWN_KEY"])
        bad_order = dict(grid, data_service="taskService", fields="name:x")
        errors, _ = validate_grid(bad_order, _catalog())
        self.assertEqual(_codes(errors), ["GRID_FIELD_ORDER_INVALID"])

    def test_empty_grid_without_entity_type(self) -> None:
        errors, warnings = validate_grid({"id": "g1", "project_id": "1", "data_service": "taskService"}, _catalog())
        self.assertEqual(errors, [])
        self.assertEqual(_codes(warnings), ["GRID_EMPTY"])


class TestValidateDefinition(unittest.TestCase):
    def test_dispatch(self) -> None:
        errors, _ = validate_definition("report", {}, _catalog())
        self.assertEqual(_codes(errors), ["DEFINITION_KIND_INVALID"])
        errors, _ = validate_definition("screen", [], _catalog())
        self.assertEqual(_codes(errors), ["DEFINITION_INVALID"])


if __name__ == "__main__":
    unittest.main()
