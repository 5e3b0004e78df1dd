"""Builds bound widget forms from field metadata."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence, Tuple, get_origin

from binder import Binder, Converter, DecimalConverter, EnumConverter, IntegerConverter
from data_provider import DataProviderResolver
from engine_errors import BindingError, ConfigurationError, EngineError, FieldNotFoundError, UnsupportedFieldTypeError
from field_meta import FieldDescriptor, FieldKind, FieldMeta, describe
from widgets import (
    Checkbox,
    ComboBox,
    Container,
    DatePicker,
    DateTimePicker,
    FieldRow,
    FormLayout,
    Label,
    MultiSelectComboBox,
    NumberField,
    RadioGroup,
    TextArea,
    TextField,
    Widget,
)


logger = logging.getLogger("screenkit.forms")

LONG_TEXT_THRESHOLD = int(os.getenv("SCREENKIT_LONG_TEXT_THRESHOLD", "1000"))
INTEGER_STEP = 1
DECIMAL_STEP = 0.01
FLOAT_STEP = 0.1

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


@dataclass
class FieldResult:
    name: str
    widget: Widget | None
    error: EngineError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CollectionConverter(Converter):
    def __init__(self, collection_type: type) -> None:
        self.collection_type = collection_type

    def to_presentation(self, value: Any) -> Any:
        return None if value is None else list(value)

    def to_model(self, value: Any, field_name: str | None = None) -> Any:
        if value is None:
            return None
        return self.collection_type(value)


def parse_default(descriptor: FieldDescriptor, kind: FieldKind, text: str) -> Any:
    """Parse a metadata default into the value the widget presents."""
    if kind == FieldKind.STRING:
        return text
    if kind == FieldKind.BOOLEAN:
        lowered = text.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ValueError(f"not a boolean: {text!r}")
    if kind == FieldKind.INTEGER:
        return float(int(text.strip()))
    if kind == FieldKind.DECIMAL:
        return Decimal(text.strip())
    if kind == FieldKind.FLOAT:
        return float(text)
    if kind == FieldKind.DATE:
        return date.fromisoformat(text.strip())
    if kind == FieldKind.DATETIME:
        return datetime.fromisoformat(text.strip())
    if kind == FieldKind.ENUM:
        return descriptor.type[text.strip()].name
    raise ValueError(f"defaults are not supported for {kind.value} fields")


class FormBuilder:
    def __init__(self, resolver: DataProviderResolver, long_text_threshold: int | None = None) -> None:
        self.resolver = resolver
        self.long_text_threshold = LONG_TEXT_THRESHOLD if long_text_threshold is None else long_text_threshold

    def build_form(self, entity_cls: type, binder: Binder, field_names: Sequence[str] | None = None) -> FormLayout:
        if entity_cls is None:
            raise ConfigurationError(code="FORM_ENTITY_CLASS_MISSING", message="entity class cannot be None")
        if binder is None:
            raise ConfigurationError(code="FORM_BINDER_MISSING", message="binder cannot be None", field=entity_cls.__name__)
        descriptors = describe(entity_cls)
        if field_names is not None:
            by_name = {d.name: d for d in descriptors}
            missing = [name for name in field_names if name not in by_name]
            if missing:
                raise FieldNotFoundError(
                    code="FORM_FIELD_NOT_FOUND",
                    message=f"field(s) {missing} not found among visible fields of {entity_cls.__name__}",
                    field=missing[0],
                    detail={"entity": entity_cls.__name__, "missing": missing},
                )
            descriptors = [by_name[name] for name in field_names]
        layout = FormLayout(entity_cls.__name__)
        for descriptor in descriptors:
            self.add_field(layout, descriptor, binder)
        binder.ensure_complete()
        failed = [r.name for r in layout.results if not r.ok]
        logger.debug("built form for %s with %d field(s), %d unbound", entity_cls.__name__, len(descriptors), len(failed))
        return layout

    def add_field(
        self,
        container: Container,
        descriptor: FieldDescriptor,
        binder: Binder,
        meta: FieldMeta | None = None,
    ) -> FieldResult:
        """Create, configure, bind and append the widget for one field.

        Construction and type-selection errors propagate; a failed binding is
        removed and reported in the returned :class:`FieldResult`.
        """
        meta = meta if meta is not None else descriptor.require_meta()
        widget, converter = self.create_component(descriptor, meta)
        self._apply_state(widget, meta)
        self._apply_default(widget, descriptor, meta)
        if meta.width:
            widget.set_width(meta.width)
        else:
            widget.set_width_full()
        result = self._bind(binder, widget, descriptor, meta, converter)
        row = FieldRow(Label(meta.display_name, bold=meta.required), widget)
        container.add(row)
        components = getattr(container, "components", None)
        # a repeated field keeps the widget that is actually bound
        if components is not None and (result.ok or descriptor.name not in components):
            components[descriptor.name] = widget
        results = getattr(container, "results", None)
        if results is not None:
            results.append(result)
        return result

    def create_component(self, descriptor: FieldDescriptor, meta: FieldMeta) -> Tuple[Widget, Converter | None]:
        kind = descriptor.kind()
        name = descriptor.name
        if meta.has_data_provider() and kind == FieldKind.STRING:
            return self._string_combobox(descriptor, meta), None
        if meta.has_data_provider() or kind == FieldKind.ENTITY:
            return self._entity_selection(descriptor, meta, kind)
        if kind == FieldKind.BOOLEAN:
            return Checkbox(name), None
        if kind == FieldKind.STRING:
            if meta.max_length >= self.long_text_threshold:
                return TextArea(name, meta.max_length), None
            return TextField(name, meta.max_length), None
        if kind == FieldKind.INTEGER:
            return NumberField(name, INTEGER_STEP, meta.min, meta.max), IntegerConverter()
        if kind == FieldKind.DECIMAL:
            return NumberField(name, DECIMAL_STEP, meta.min, meta.max), DecimalConverter()
        if kind == FieldKind.FLOAT:
            return NumberField(name, FLOAT_STEP, meta.min, meta.max), None
        if kind == FieldKind.DATE:
            return DatePicker(name), None
        if kind == FieldKind.DATETIME:
            return DateTimePicker(name), None
        if kind == FieldKind.ENUM:
            widget = RadioGroup(name) if meta.use_radio_buttons else ComboBox(name)
            widget.set_items(member.name for member in descriptor.type)
            return widget, EnumConverter(descriptor.type)
        raise UnsupportedFieldTypeError(
            code="FORM_FIELD_TYPE_UNSUPPORTED",
            message=f"unsupported type {descriptor.type_name} for field {name!r} of {descriptor.owner.__name__}",
            field=name,
            detail={"type": descriptor.type_name},
        )

    def _string_combobox(self, descriptor: FieldDescriptor, meta: FieldMeta) -> ComboBox:
        combo = ComboBox(descriptor.name)
        combo.set_allow_custom_value(meta.allow_custom_value)
        self._populate(combo, descriptor, meta, str)
        return combo

    def _entity_selection(self, descriptor: FieldDescriptor, meta: FieldMeta, kind: FieldKind) -> Tuple[Widget, Converter | None]:
        element_type = descriptor.element_type()
        if kind == FieldKind.COLLECTION:
            collection_type = get_origin(descriptor.type) or descriptor.type
            combo: ComboBox = MultiSelectComboBox(descriptor.name)
            converter: Converter | None = CollectionConverter(collection_type)
        else:
            combo = ComboBox(descriptor.name)
            converter = None
        # selection only unless explicitly allowed
        combo.set_allow_custom_value(meta.allow_custom_value)
        self._populate(combo, descriptor, meta, element_type)
        return combo, converter

    def _populate(self, combo: ComboBox, descriptor: FieldDescriptor, meta: FieldMeta, element_type: Any) -> None:
        options = self.resolver.resolve(descriptor.name, element_type, meta)
        combo.set_items(options)
        if meta.filter_method:
            combo.set_filter(lambda text: self.resolver.filter(descriptor.name, element_type, meta, text))
        self.resolver.apply_selection_policy(combo, options, meta, descriptor.name)

    def _apply_state(self, widget: Widget, meta: FieldMeta) -> None:
        widget.set_required_indicator_visible(meta.required)
        widget.set_read_only(meta.read_only or (isinstance(widget, ComboBox) and meta.combobox_read_only))
        widget.helper_text = meta.description
        widget.placeholder = meta.placeholder

    def _apply_default(self, widget: Widget, descriptor: FieldDescriptor, meta: FieldMeta) -> None:
        # provider-backed selections take their default from the resolved options
        if not meta.default_value or meta.has_data_provider() or descriptor.kind() == FieldKind.ENTITY:
            return
        try:
            widget.set_value(parse_default(descriptor, descriptor.kind(), meta.default_value))
        except (ValueError, KeyError, InvalidOperation) as exc:
            logger.warning("ignoring malformed default %r for field %s: %s", meta.default_value, descriptor.name, exc)

    def _bind(
        self,
        binder: Binder,
        widget: Widget,
        descriptor: FieldDescriptor,
        meta: FieldMeta,
        converter: Converter | None,
    ) -> FieldResult:
        builder = binder.for_field(widget).with_converter(converter).as_required(meta.required)
        try:
            builder.bind(descriptor.name)
        except BindingError as exc:
            builder.discard()
            stale = binder.get_binding(descriptor.name)
            if stale is not None and stale.widget is widget:
                binder.remove_binding(descriptor.name)
            logger.warning("binding failed for field %s, continuing without it: %s", descriptor.name, exc)
            return FieldResult(descriptor.name, widget, exc)
        return FieldResult(descriptor.name, widget)


def build_form(
    entity_cls: type,
    binder: Binder,
    field_names: Sequence[str] | None = None,
    *,
    resolver: DataProviderResolver,
) -> FormLayout:
    return FormBuilder(resolver).build_form(entity_cls, binder, field_names)
