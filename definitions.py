"""Persisted screen and grid definitions.

Definitions arrive as JSON-shaped dicts (from the definition store or the HTTP
host) and are parsed into immutable dataclasses before the interpreter or the
column builder touches them.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from engine_errors import DefinitionError


LINE_SECTION = "section"
LINE_FIELD = "field"
_LINE_KINDS = {LINE_SECTION, LINE_FIELD}


def _require_str(data: dict, key: str, owner: str, optional: bool = False) -> str | None:
    value = data.get(key)
    if value is None and optional:
        return None
    if not isinstance(value, str) or not value:
        raise DefinitionError(
            code="DEFINITION_FIELD_INVALID",
            message=f"{owner}: {key} must be a non-empty string",
            field=key,
            detail={"definition": owner},
        )
    return value


@dataclass(frozen=True)
class ScreenLine:
    kind: str
    field: str | None = None
    caption: str = ""
    name: str | None = None
    overrides: Dict[str, Any] = dataclasses.field(default_factory=dict)
    line_order: int | None = None

    @property
    def is_section(self) -> bool:
        return self.kind == LINE_SECTION

    @classmethod
    def from_dict(cls, data: Any, owner: str, index: int) -> "ScreenLine":
        path = f"{owner}.lines[{index}]"
        if not isinstance(data, dict):
            raise DefinitionError(code="LINE_INVALID", message=f"{path} must be an object", field=path)
        kind = data.get("kind", LINE_FIELD)
        if kind not in _LINE_KINDS:
            raise DefinitionError(code="LINE_KIND_INVALID", message=f"{path}: unknown line kind {kind!r}", field=path)
        overrides = data.get("overrides")
        if overrides is None:
            overrides = {}
        if not isinstance(overrides, dict):
            raise DefinitionError(code="LINE_OVERRIDES_INVALID", message=f"{path}: overrides must be an object", field=path)
        line_order = data.get("line_order")
        if line_order is not None and (isinstance(line_order, bool) or not isinstance(line_order, int)):
            raise DefinitionError(code="LINE_ORDER_INVALID", message=f"{path}: line_order must be an integer", field=path)
        if kind == LINE_SECTION:
            caption = data.get("caption") or data.get("name") or ""
            if not isinstance(caption, str):
                raise DefinitionError(code="LINE_CAPTION_INVALID", message=f"{path}: caption must be a string", field=path)
            return cls(kind=kind, caption=caption, name=data.get("name") or caption, line_order=line_order)
        field_name = _require_str(data, "field", path)
        return cls(kind=kind, field=field_name, overrides=dict(overrides), line_order=line_order)

    def to_dict(self) -> dict:
        if self.is_section:
            out: dict = {"kind": LINE_SECTION, "caption": self.caption, "name": self.name}
        else:
            out = {"kind": LINE_FIELD, "field": self.field}
            if self.overrides:
                out["overrides"] = dict(self.overrides)
        if self.line_order is not None:
            out["line_order"] = self.line_order
        return out


@dataclass(frozen=True)
class ScreenDefinition:
    id: str
    project_id: str
    entity_type: str
    name: str = ""
    lines: Tuple[ScreenLine, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "ScreenDefinition":
        if not isinstance(data, dict):
            raise DefinitionError(code="SCREEN_INVALID", message="screen definition must be an object")
        screen_id = _require_str(data, "id", "screen")
        project_id = _require_str(data, "project_id", screen_id)
        entity_type = _require_str(data, "entity_type", screen_id)
        raw_lines = data.get("lines") or []
        if not isinstance(raw_lines, list):
            raise DefinitionError(code="SCREEN_LINES_INVALID", message=f"{screen_id}: lines must be a list", field="lines")
        lines = tuple(ScreenLine.from_dict(line, screen_id, i) for i, line in enumerate(raw_lines))
        return cls(id=screen_id, project_id=project_id, entity_type=entity_type, name=data.get("name") or "", lines=lines)

    def ordered_lines(self) -> List[ScreenLine]:
        # stable: lines without line_order keep their stored position
        indexed = list(enumerate(self.lines))
        indexed.sort(key=lambda item: (item[1].line_order if item[1].line_order is not None else item[0]))
        return [line for _, line in indexed]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "entity_type": self.entity_type,
            "lines": [line.to_dict() for line in self.lines],
        }


@dataclass(frozen=True)
class GridField:
    field: str
    order: int


def parse_grid_fields(raw: Any, owner: str = "grid") -> List[GridField]:
    """Accepts ``[{"field", "order"}]`` or the compact ``"name:1,description:2"`` form."""
    if raw is None or raw == "":
        return []
    items: List[GridField] = []
    if isinstance(raw, str):
        for index, chunk in enumerate(part.strip() for part in raw.split(",")):
            if not chunk:
                continue
            name, sep, order_text = chunk.partition(":")
            name = name.strip()
            if not name:
                raise DefinitionError(code="GRID_FIELD_INVALID", message=f"{owner}: empty field name in {chunk!r}", field=owner)
            if not sep:
                items.append(GridField(name, index))
                continue
            try:
                order = int(order_text.strip())
            except ValueError:
                raise DefinitionError(
                    code="GRID_FIELD_ORDER_INVALID",
                    message=f"{owner}: order {order_text!r} for field {name!r} is not an integer",
                    field=name,
                )
            items.append(GridField(name, order))
        return items
    if not isinstance(raw, list):
        raise DefinitionError(code="GRID_FIELDS_INVALID", message=f"{owner}: fields must be a list or string", field="fields")
    for index, entry in enumerate(raw):
        path = f"{owner}.fields[{index}]"
        if not isinstance(entry, dict):
            raise DefinitionError(code="GRID_FIELD_INVALID", message=f"{path} must be an object", field=path)
        name = _require_str(entry, "field", path)
        order = entry.get("order", index)
        if isinstance(order, bool) or not isinstance(order, int):
            raise DefinitionError(code="GRID_FIELD_ORDER_INVALID", message=f"{path}: order must be an integer", field=name)
        items.append(GridField(name, order))
    return items


@dataclass(frozen=True)
class GridDefinition:
    id: str
    project_id: str
    data_service: str
    entity_type: str | None = None
    name: str = ""
    fields: Tuple[GridField, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "GridDefinition":
        if not isinstance(data, dict):
            raise DefinitionError(code="GRID_INVALID", message="grid definition must be an object")
        grid_id = _require_str(data, "id", "grid")
        return cls(
            id=grid_id,
            project_id=_require_str(data, "project_id", grid_id),
            data_service=_require_str(data, "data_service", grid_id),
            entity_type=_require_str(data, "entity_type", grid_id, optional=True),
            name=data.get("name") or "",
            fields=tuple(parse_grid_fields(data.get("fields"), grid_id)),
        )

    def ordered_fields(self) -> List[GridField]:
        return sorted(self.fields, key=lambda f: f.order)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "entity_type": self.entity_type,
            "data_service": self.data_service,
            "fields": [{"field": f.field, "order": f.order} for f in self.fields],
        }
