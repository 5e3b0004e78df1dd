"""Validation of raw screen and grid definitions before they are stored."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from definitions import LINE_FIELD, LINE_SECTION, parse_grid_fields
from engine_errors import DefinitionError
from entity_catalog import EntityCatalog
from field_meta import find_field, override_keys, override_type_mismatch


Issue = Dict[str, Any]


ALLOWED_SCREEN_KEYS = {"id", "project_id", "name", "entity_type", "lines"}
ALLOWED_SECTION_KEYS = {"kind", "caption", "name", "line_order"}
ALLOWED_FIELD_LINE_KEYS = {"kind", "field", "overrides", "line_order"}
ALLOWED_GRID_KEYS = {"id", "project_id", "name", "entity_type", "data_service", "fields"}
ALLOWED_GRID_FIELD_KEYS = {"field", "order"}


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


def _reject_unknown_keys(errors: list[Issue], obj: dict, allowed: set[str], path: str) -> None:
    for key in obj.keys():
        if key not in allowed:
            errors.append(_issue("DEFINITION_UNKNOWN_KEY", f"Unknown key: {key}", f"{path}.{key}" if path else key))


def _check_ids(errors: list[Issue], definition: dict, expected_project_id: str | None) -> None:
    for key in ("id", "project_id"):
        value = definition.get(key)
        if not isinstance(value, str) or not value:
            errors.append(_issue("DEFINITION_ID_INVALID", f"{key} is required", key))
    if expected_project_id and definition.get("project_id") != expected_project_id:
        errors.append(
            _issue(
                "DEFINITION_PROJECT_MISMATCH",
                "project_id does not match target project",
                "project_id",
                {"expected": expected_project_id, "actual": definition.get("project_id")},
            )
        )


def _resolve_entity(errors: list[Issue], catalog: EntityCatalog, entity_type: Any, required: bool) -> type | None:
    if entity_type is None and not required:
        return None
    if not isinstance(entity_type, str) or not entity_type:
        errors.append(_issue("DEFINITION_ENTITY_TYPE_INVALID", "entity_type is required", "entity_type"))
        return None
    if not catalog.has(entity_type):
        errors.append(_issue("DEFINITION_ENTITY_TYPE_UNKNOWN", f"unknown entity type {entity_type}", "entity_type"))
        return None
    return catalog.resolve(entity_type)


def validate_screen(definition: Any, catalog: EntityCatalog, expected_project_id: str | None = None) -> Tuple[List[Issue], List[Issue]]:
    errors: list[Issue] = []
    warnings: list[Issue] = []
    if not isinstance(definition, dict):
        errors.append(_issue("DEFINITION_INVALID", "definition must be an object", None))
        return errors, warnings
    _reject_unknown_keys(errors, definition, ALLOWED_SCREEN_KEYS, "")
    _check_ids(errors, definition, expected_project_id)
    entity_cls = _resolve_entity(errors, catalog, definition.get("entity_type"), required=True)

    lines = definition.get("lines")
    if lines is None:
        lines = []
    if not isinstance(lines, list):
        errors.append(_issue("SCREEN_LINES_INVALID", "lines must be a list", "lines"))
        return errors, warnings
    if not lines:
        warnings.append(_issue("SCREEN_EMPTY", "screen has no lines", "lines"))

    allowed_overrides = override_keys()
    seen_fields: set[str] = set()
    for idx, line in enumerate(lines):
        path = f"lines[{idx}]"
        if not isinstance(line, dict):
            errors.append(_issue("LINE_INVALID", "line must be an object", path))
            continue
        kind = line.get("kind", LINE_FIELD)
        if kind == LINE_SECTION:
            _reject_unknown_keys(errors, line, ALLOWED_SECTION_KEYS, path)
            if not line.get("caption") and not line.get("name"):
                errors.append(_issue("SECTION_CAPTION_MISSING", "section needs a caption", f"{path}.caption"))
            continue
        if kind != LINE_FIELD:
            errors.append(_issue("LINE_KIND_INVALID", f"unknown line kind {kind}", f"{path}.kind"))
            continue
        _reject_unknown_keys(errors, line, ALLOWED_FIELD_LINE_KEYS, path)
        field_name = line.get("field")
        if not isinstance(field_name, str) or not field_name:
            errors.append(_issue("LINE_FIELD_INVALID", "field must be a non-empty string", f"{path}.field"))
            continue
        if field_name in seen_fields:
            warnings.append(_issue("LINE_FIELD_DUPLICATE", f"field {field_name} appears more than once; only the first is bound", f"{path}.field"))
        seen_fields.add(field_name)
        overrides = line.get("overrides")
        if overrides is None:
            overrides = {}
        if not isinstance(overrides, dict):
            errors.append(_issue("LINE_OVERRIDES_INVALID", "overrides must be an object", f"{path}.overrides"))
            overrides = {}
        for key, value in overrides.items():
            if key not in allowed_overrides:
                errors.append(_issue("LINE_OVERRIDE_UNKNOWN", f"unknown override {key}", f"{path}.overrides.{key}"))
                continue
            expected = override_type_mismatch(key, value)
            if expected:
                errors.append(
                    _issue(
                        "OVERRIDE_VALUE_INVALID",
                        f"override {key} must be {expected}",
                        f"{path}.overrides.{key}",
                        {"key": key, "expected": expected},
                    )
                )
        if entity_cls is None:
            continue
        descriptor = find_field(entity_cls, field_name)
        if descriptor is None:
            errors.append(
                _issue(
                    "LINE_FIELD_UNKNOWN",
                    f"{entity_cls.__name__} has no field {field_name}",
                    f"{path}.field",
                    {"entity_type": entity_cls.__name__},
                )
            )
        elif descriptor.meta is None and not overrides:
            errors.append(_issue("LINE_FIELD_NO_METADATA", f"field {field_name} carries no metadata", f"{path}.field"))
    return errors, warnings


def validate_grid(definition: Any, catalog: EntityCatalog, expected_project_id: str | None = None) -> Tuple[List[Issue], List[Issue]]:
    errors: list[Issue] = []
    warnings: list[Issue] = []
    if not isinstance(definition, dict):
        errors.append(_issue("DEFINITION_INVALID", "definition must be an object", None))
        return errors, warnings
    _reject_unknown_keys(errors, definition, ALLOWED_GRID_KEYS, "")
    _check_ids(errors, definition, expected_project_id)
    service = definition.get("data_service")
    if not isinstance(service, str) or not service:
        errors.append(_issue("GRID_SERVICE_INVALID", "data_service is required", "data_service"))
    entity_cls = _resolve_entity(errors, catalog, definition.get("entity_type"), required=False)

    raw_fields = definition.get("fields")
    if isinstance(raw_fields, list):
        for idx, entry in enumerate(raw_fields):
            if isinstance(entry, dict):
                _reject_unknown_keys(errors, entry, ALLOWED_GRID_FIELD_KEYS, f"fields[{idx}]")
    try:
        fields = parse_grid_fields(raw_fields, definition.get("id") or "grid")
    except DefinitionError as exc:
        errors.append(_issue(exc.code, exc.message, "fields"))
        return errors, warnings
    if not fields:
        warnings.append(_issue("GRID_EMPTY", "grid has no columns", "fields"))
    orders = [f.order for f in fields]
    if len(set(orders)) != len(orders):
        warnings.append(_issue("GRID_ORDER_DUPLICATE", "several columns share an order; their relative position is stored order", "fields"))
    if entity_cls is not None:
        for f in fields:
            if find_field(entity_cls, f.field) is None:
                # grids skip unresolved columns at build time
                warnings.append(_issue("GRID_FIELD_UNKNOWN", f"{entity_cls.__name__} has no field {f.field}", "fields", {"field": f.field}))
    return errors, warnings


def validate_definition(kind: str, definition: Any, catalog: EntityCatalog, expected_project_id: str | None = None) -> Tuple[List[Issue], List[Issue]]:
    if kind == "screen":
        return validate_screen(definition, catalog, expected_project_id)
    if kind == "grid":
        return validate_grid(definition, catalog, expected_project_id)
    return [_issue("DEFINITION_KIND_INVALID", f"unknown definition kind {kind}", "kind")], []
