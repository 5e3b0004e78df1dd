"""Builds tabular views from stored grid definitions.

Unlike forms, grids degrade: unresolved columns are skipped, broken columns
fall back to a plain property column and failed loads show an empty grid.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Tuple

from definitions import GridDefinition
from engine_errors import ConfigurationError
from entities import display_text
from field_meta import FieldDescriptor, FieldKind, find_field
from registry import ServiceRegistry


logger = logging.getLogger("screenkit.grids")

PAGE_SIZE = int(os.getenv("SCREENKIT_GRID_PAGE_SIZE", "1000"))
LONG_TEXT_LENGTH = int(os.getenv("SCREENKIT_GRID_LONG_TEXT_LENGTH", "100"))
PROJECT_CHANGED = "project.changed"

_LONG_TEXT_NAMES = ("description", "comment")

Renderer = Callable[[Any], str]
SelectionListener = Callable[["Grid", Any], None]


def _format_date(value: Any) -> str:
    return value.isoformat()


def _format_datetime(value: Any) -> str:
    return value.strftime("%Y-%m-%d %H:%M")


def _format_decimal(value: Any) -> str:
    return f"{Decimal(value):.2f}"


def _format_boolean(value: Any) -> str:
    return "Yes" if value else "No"


def _format_collection(value: Any) -> str:
    return ", ".join(display_text(item) for item in value)


def _truncate(limit: int) -> Renderer:
    def render(value: Any) -> str:
        text = str(value)
        return text if len(text) <= limit else text[:limit] + "..."

    return render


@dataclass
class Column:
    key: str
    header: str
    kind: str
    renderer: Renderer = display_text
    style: Callable[[Any], Dict[str, Any]] | None = None

    def value_of(self, item: Any) -> Any:
        return getattr(item, self.key, None)

    def render(self, item: Any) -> str:
        value = self.value_of(item)
        if value is None:
            return ""
        return self.renderer(value)

    def cell(self, item: Any) -> dict:
        cell: dict = {"text": self.render(item)}
        if self.style is not None:
            value = self.value_of(item)
            if value is not None:
                cell.update(self.style(value))
        return cell


@dataclass
class Grid:
    name: str
    entity_type: type
    columns: List[Column] = field(default_factory=list)
    items: List[Any] = field(default_factory=list)
    selected: Any = None
    _listeners: List[SelectionListener] = field(default_factory=list, repr=False)

    def column_keys(self) -> List[str]:
        return [c.key for c in self.columns]

    def get_column(self, key: str) -> Column | None:
        for column in self.columns:
            if column.key == key:
                return column
        return None

    def set_items(self, items: List[Any]) -> None:
        self.items = list(items)
        if self.selected is not None and self.selected not in self.items:
            self.select(None)

    def add_selection_listener(self, listener: SelectionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def select(self, item: Any) -> None:
        if item is self.selected:
            return
        self.selected = item
        for listener in list(self._listeners):
            listener(self, item)

    def rows(self) -> List[dict]:
        return [
            {"id": getattr(item, "id", None), "cells": {c.key: c.cell(item) for c in self.columns}}
            for item in self.items
        ]

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "entity_type": self.entity_type.__name__,
            "columns": [{"key": c.key, "header": c.header, "kind": c.kind} for c in self.columns],
            "rows": self.rows(),
            "selected": getattr(self.selected, "id", None),
        }


def _entity_style(meta: Any) -> Callable[[Any], Dict[str, Any]] | None:
    if meta is None or not (meta.set_background_from_color or meta.use_icon):
        return None

    def style(value: Any) -> Dict[str, Any]:
        hints: Dict[str, Any] = {}
        if meta.set_background_from_color and getattr(value, "color", None):
            hints["background"] = value.color
        if meta.use_icon and getattr(value, "icon", None):
            hints["icon"] = value.icon
        return hints

    return style


def _is_long_text(descriptor: FieldDescriptor, long_text_length: int) -> bool:
    # name and length signals are independent; either one is enough
    lowered = descriptor.name.lower()
    if any(marker in lowered for marker in _LONG_TEXT_NAMES):
        return True
    return descriptor.meta is not None and descriptor.meta.max_length > long_text_length


class GridColumnBuilder:
    def __init__(self, registry: ServiceRegistry, long_text_length: int | None = None, page_size: int | None = None) -> None:
        self.registry = registry
        self.long_text_length = LONG_TEXT_LENGTH if long_text_length is None else long_text_length
        self.page_size = PAGE_SIZE if page_size is None else page_size

    def build_grid(
        self,
        definition: GridDefinition,
        entity_cls: type | None = None,
        project_id: Any = None,
    ) -> Tuple[Grid, "GridDataLoader"]:
        if entity_cls is None:
            entity_cls = self._entity_from_service(definition)
        grid = Grid(definition.id, entity_cls)
        for selection in definition.ordered_fields():
            descriptor = find_field(entity_cls, selection.field)
            if descriptor is None:
                logger.warning(
                    "grid %s: field %s not found on %s, skipping column",
                    definition.id,
                    selection.field,
                    entity_cls.__name__,
                )
                continue
            grid.columns.append(self.build_column(descriptor))
        logger.debug("built grid %s with columns %s", definition.id, grid.column_keys())
        loader = GridDataLoader(self.registry, definition.data_service, grid, project_id, self.page_size)
        return grid, loader

    def _entity_from_service(self, definition: GridDefinition) -> type:
        service = self.registry.lookup(definition.data_service)
        entity_cls = getattr(service, "entity_class", None)
        if not isinstance(entity_cls, type):
            raise ConfigurationError(
                code="GRID_ENTITY_UNRESOLVED",
                message=f"grid {definition.id!r}: no entity class given and service {definition.data_service!r} declares none",
                field=definition.data_service,
            )
        return entity_cls

    def build_column(self, descriptor: FieldDescriptor) -> Column:
        header = descriptor.meta.display_name if descriptor.meta is not None else descriptor.name
        try:
            return self._typed_column(descriptor, header)
        except Exception as exc:
            logger.warning("column %s could not be built, using property column: %s", descriptor.name, exc)
            return Column(descriptor.name, header or descriptor.name, "property", str)

    def _typed_column(self, descriptor: FieldDescriptor, header: str) -> Column:
        name = descriptor.name
        kind = descriptor.kind()
        if kind == FieldKind.ENTITY:
            return Column(name, header, "entity", display_text, _entity_style(descriptor.meta))
        if kind == FieldKind.COLLECTION:
            return Column(name, header, "collection", _format_collection)
        if kind == FieldKind.INTEGER:
            if "id" in name.lower():
                return Column(name, header, "id", str)
            return Column(name, header, "integer", str)
        if kind == FieldKind.DECIMAL:
            return Column(name, header, "decimal", _format_decimal)
        if kind == FieldKind.DATE:
            return Column(name, header, "date", _format_date)
        if kind == FieldKind.DATETIME:
            return Column(name, header, "datetime", _format_datetime)
        if kind == FieldKind.BOOLEAN:
            return Column(name, header, "boolean", _format_boolean)
        if kind == FieldKind.STRING:
            if _is_long_text(descriptor, self.long_text_length):
                return Column(name, header, "long_text", _truncate(self.long_text_length))
            return Column(name, header, "text", str)
        return Column(name, header, "entity", display_text)


class GridDataLoader:
    """Fills a grid from its data service; one full reload per project change."""

    def __init__(
        self,
        registry: ServiceRegistry,
        service_name: str,
        grid: Grid,
        project_id: Any = None,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self.registry = registry
        self.service_name = service_name
        self.grid = grid
        self.project_id = project_id
        self.page_size = page_size
        self.reload_count = 0
        self.last_error: str | None = None

    def fetch(self) -> List[Any]:
        service = self.registry.lookup(self.service_name)
        if callable(getattr(service, "list_by_project", None)):
            if self.project_id is None:
                logger.debug("grid %s: no active project, nothing to load", self.grid.name)
                return []
            return list(service.list_by_project(self.project_id, limit=self.page_size))
        return list(service.list(limit=self.page_size))

    def load(self) -> List[Any]:
        self.reload_count += 1
        try:
            items = self.fetch()
        except Exception as exc:
            self.last_error = str(exc)
            logger.error("grid %s: loading from %s failed: %s", self.grid.name, self.service_name, exc)
            items = []
        else:
            self.last_error = None
        self.grid.set_items(items)
        logger.debug("grid %s loaded %d row(s)", self.grid.name, len(items))
        return items

    def on_project_changed(self, event: dict) -> None:
        self.project_id = event.get("payload", {}).get("project_id")
        self.load()

    def attach(self, bus: Any) -> None:
        bus.subscribe(PROJECT_CHANGED, self.on_project_changed)

    def detach(self, bus: Any) -> bool:
        return bus.unsubscribe(PROJECT_CHANGED, self.on_project_changed)
