"""Live form instances bound to one displayed entity, and grid master-detail."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List

from binder import Binder
from definitions import ScreenDefinition
from engine_errors import BindingError, Issue
from form_builder import FieldResult, FormBuilder
from grid_builder import Grid
from screen_interpreter import ScreenForm, ScreenInterpreter
from widgets import ComboBox, DatePicker, DateTimePicker, FormLayout, MultiSelectComboBox, Section, Widget


logger = logging.getLogger("screenkit.forms")


def _option_for_label(widget: ComboBox, label: Any) -> Any:
    if label is None or label == "":
        return None
    for item in widget.items:
        if widget.item_label(item) == label:
            return item
    if widget.allow_custom_value and isinstance(label, str):
        return label
    raise BindingError(code="INPUT_OPTION_UNKNOWN", message=f"{label!r} is not an available option", field=widget.name)


def coerce_input(widget: Widget, raw: Any) -> Any:
    """Translate a submitted JSON value into what ``widget`` holds."""
    if isinstance(widget, MultiSelectComboBox):
        if raw is None:
            return []
        labels = raw if isinstance(raw, list) else [raw]
        return [_option_for_label(widget, label) for label in labels]
    if isinstance(widget, ComboBox):
        return _option_for_label(widget, raw)
    if isinstance(widget, DateTimePicker):
        return datetime.fromisoformat(raw) if isinstance(raw, str) and raw else raw or None
    if isinstance(widget, DatePicker):
        return date.fromisoformat(raw) if isinstance(raw, str) and raw else raw or None
    return raw


class BoundForm:
    """Owns the widget tree and binder for one displayed entity; the entity is borrowed."""

    def __init__(
        self,
        entity_cls: type,
        binder: Binder,
        layout: FormLayout,
        components: Dict[str, Widget],
        results: List[FieldResult] | None = None,
        sections: Dict[str, Section] | None = None,
    ) -> None:
        self.entity_cls = entity_cls
        self.binder = binder
        self.layout = layout
        self.components = components
        self.results = list(results or [])
        self.sections = dict(sections or {})
        self.entity: Any = None
        self.closed = False

    @classmethod
    def from_class(cls, entity_cls: type, builder: FormBuilder, field_names: List[str] | None = None) -> "BoundForm":
        binder = Binder(entity_cls)
        layout = builder.build_form(entity_cls, binder, field_names)
        return cls(entity_cls, binder, layout, dict(layout.components), layout.results)

    @classmethod
    def from_screen(cls, screen: ScreenDefinition, interpreter: ScreenInterpreter) -> "BoundForm":
        entity_cls = interpreter.catalog.resolve(screen.entity_type)
        binder = Binder(entity_cls)
        form: ScreenForm = interpreter.build(screen, binder)
        return cls(entity_cls, binder, form.layout, dict(form.components), form.results, form.sections)

    def get_component(self, name: str) -> Widget | None:
        return self.components.get(name)

    def failed_fields(self) -> List[str]:
        return [r.name for r in self.results if not r.ok]

    def populate(self, entity: Any, keep_defaults: bool = False) -> None:
        """Show ``entity``; with ``keep_defaults`` the widgets keep their metadata defaults (new records)."""
        if entity is not None and not isinstance(entity, self.entity_cls):
            raise BindingError(
                code="FORM_ENTITY_MISMATCH",
                message=f"form for {self.entity_cls.__name__} cannot show {type(entity).__name__}",
                field=self.entity_cls.__name__,
            )
        self.entity = entity
        if entity is not None and not keep_defaults:
            self.binder.read_bean(entity)

    def set_values(self, values: Dict[str, Any]) -> List[Issue]:
        """Apply submitted values by field name; returns issues for inputs that could not be applied."""
        issues: List[Issue] = []
        for name, raw in values.items():
            widget = self.components.get(name)
            if widget is None:
                issues.append({"code": "INPUT_FIELD_UNKNOWN", "message": f"no field {name!r} on this form", "path": name, "detail": None})
                continue
            if widget.read_only:
                continue
            try:
                widget.set_value(coerce_input(widget, raw))
            except BindingError as exc:
                issues.append(exc.as_issue())
            except (TypeError, ValueError) as exc:
                issues.append({"code": "INPUT_INVALID", "message": str(exc), "path": name, "detail": None})
        return issues

    def validate(self) -> List[Issue]:
        return self.binder.validate()

    def write_back(self, entity: Any = None) -> Any:
        """Write widget values into ``entity`` (default: the populated one). Raises on invalid input."""
        target = entity if entity is not None else self.entity
        if target is None:
            raise BindingError(code="FORM_NO_ENTITY", message=f"no {self.entity_cls.__name__} to write into")
        self.binder.write_bean(target)
        return target

    def values(self) -> Dict[str, Any]:
        return {name: widget.to_dict()["value"] for name, widget in self.components.items()}

    def to_dict(self) -> dict:
        return {
            "entity_type": self.entity_cls.__name__,
            "entity_id": getattr(self.entity, "id", None),
            "layout": self.layout.to_dict(),
            "unbound": self.failed_fields(),
        }

    def unbind(self) -> None:
        if self.closed:
            return
        self.binder.unbind()
        self.entity = None
        self.closed = True


class MasterDetail:
    """Re-populates a detail form whenever the grid selection changes.

    The previous form is torn down before a new one is built; ``related`` maps
    the selected row to the entity the detail form shows (default: the row).
    """

    def __init__(
        self,
        grid: Grid,
        form_factory: Callable[[], BoundForm],
        related: Callable[[Any], Any] | None = None,
    ) -> None:
        self.grid = grid
        self.form_factory = form_factory
        self.related = related
        self.form: BoundForm | None = None
        self._remove = grid.add_selection_listener(self._on_select)

    def _on_select(self, grid: Grid, item: Any) -> None:
        if self.form is not None:
            self.form.unbind()
            self.form = None
        if item is None:
            return
        target = self.related(item) if self.related is not None else item
        if target is None:
            logger.debug("grid %s: selection has no related entity", grid.name)
            return
        form = self.form_factory()
        form.populate(target)
        self.form = form

    def save(self) -> Any:
        if self.form is None:
            raise BindingError(code="DETAIL_NO_SELECTION", message=f"grid {self.grid.name} has no selected row")
        return self.form.write_back()

    def close(self) -> None:
        self._remove()
        if self.form is not None:
            self.form.unbind()
            self.form = None
