"""Two-way binding between widgets and properties of a model instance."""

from __future__ import annotations

import dataclasses
import enum
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List

from engine_errors import BindingError, BindingValidationError, ConversionError, IncompleteBindingError, Issue
from widgets import Widget


logger = logging.getLogger("screenkit.binder")


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


class Converter:
    """Converts between the model value and the value a widget presents."""

    def to_presentation(self, value: Any) -> Any:
        return value

    def to_model(self, value: Any, field_name: str | None = None) -> Any:
        return value


class IntegerConverter(Converter):
    def to_presentation(self, value: Any) -> Any:
        return None if value is None else float(value)

    def to_model(self, value: Any, field_name: str | None = None) -> Any:
        if value is None or value == "":
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ConversionError(code="CONVERT_INTEGER", message=f"{value!r} is not a number", field=field_name)
        if not number.is_integer():
            raise ConversionError(code="CONVERT_INTEGER", message=f"{value!r} is not a whole number", field=field_name)
        return int(number)


class DecimalConverter(Converter):
    def to_presentation(self, value: Any) -> Any:
        if value is None or isinstance(value, Decimal):
            return value
        return Decimal(str(value))

    def to_model(self, value: Any, field_name: str | None = None) -> Any:
        if value is None or value == "":
            return None
        try:
            return Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ConversionError(code="CONVERT_DECIMAL", message=f"{value!r} is not a decimal", field=field_name)


class EnumConverter(Converter):
    """Enum member <-> its constant name."""

    def __init__(self, enum_cls: type[enum.Enum]) -> None:
        self.enum_cls = enum_cls

    def to_presentation(self, value: Any) -> Any:
        return None if value is None else value.name

    def to_model(self, value: Any, field_name: str | None = None) -> Any:
        if value is None or value == "":
            return None
        try:
            return self.enum_cls[value]
        except KeyError:
            raise ConversionError(
                code="CONVERT_ENUM",
                message=f"{value!r} is not a member of {self.enum_cls.__name__}",
                field=field_name,
            )


class Binding:
    def __init__(self, binder: "Binder", widget: Widget, property_name: str, converter: Converter, required: bool) -> None:
        self.binder = binder
        self.widget = widget
        self.property_name = property_name
        self.converter = converter
        self.required = required
        self._remove_listener: Callable[[], None] | None = None

    def read(self, bean: Any) -> None:
        value = getattr(bean, self.property_name, None)
        self.widget.set_value(self.converter.to_presentation(value))

    def convert(self) -> Any:
        return self.converter.to_model(self.widget.get_value(), self.property_name)

    def write(self, bean: Any, value: Any) -> None:
        setattr(bean, self.property_name, value)

    def validate(self) -> List[Issue]:
        issues: List[Issue] = []
        self.widget.invalid = False
        self.widget.error_message = ""
        if self.required and self.widget.is_empty():
            issues.append(_issue("FIELD_REQUIRED", f"{self.property_name} is required", self.property_name))
        else:
            try:
                self.convert()
            except ConversionError as exc:
                issues.append(exc.as_issue())
        if issues:
            self.widget.invalid = True
            self.widget.error_message = issues[0]["message"]
        return issues

    def attach(self) -> None:
        self._remove_listener = self.widget.add_value_change_listener(self._on_widget_change)

    def detach(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    def _on_widget_change(self, widget: Widget, old: Any, new: Any) -> None:
        self.binder._write_through(self)


class BindingBuilder:
    """Pending binding: must end in :meth:`bind` or :meth:`discard`."""

    def __init__(self, binder: "Binder", widget: Widget) -> None:
        self.binder = binder
        self.widget = widget
        self.converter: Converter = Converter()
        self.required = False
        self.done = False

    def with_converter(self, converter: Converter | None) -> "BindingBuilder":
        if converter is not None:
            self.converter = converter
        return self

    def as_required(self, required: bool = True) -> "BindingBuilder":
        self.required = required
        return self

    def bind(self, property_name: str) -> Binding:
        self.done = True
        return self.binder._complete(self, property_name)

    def discard(self) -> None:
        self.done = True
        if self in self.binder._pending:
            self.binder._pending.remove(self)


class Binder:
    def __init__(self, bean_type: type) -> None:
        self.bean_type = bean_type
        self._bindings: Dict[str, Binding] = {}
        self._pending: List[BindingBuilder] = []
        self._bean: Any = None
        self._writing = False

    # construction

    def for_field(self, widget: Widget) -> BindingBuilder:
        builder = BindingBuilder(self, widget)
        self._pending.append(builder)
        return builder

    def bind(self, widget: Widget, property_name: str, converter: Converter | None = None, required: bool = False) -> Binding:
        builder = self.for_field(widget).with_converter(converter).as_required(required)
        try:
            return builder.bind(property_name)
        except BindingError:
            builder.discard()
            raise

    def _writable_properties(self) -> set[str]:
        if dataclasses.is_dataclass(self.bean_type):
            return {f.name for f in dataclasses.fields(self.bean_type)}
        return set(getattr(self.bean_type, "__annotations__", {}))

    def _complete(self, builder: BindingBuilder, property_name: str) -> Binding:
        if property_name not in self._writable_properties():
            raise BindingError(
                code="BIND_PROPERTY_UNKNOWN",
                message=f"{self.bean_type.__name__} has no writable property {property_name!r}",
                field=property_name,
            )
        if property_name in self._bindings:
            raise BindingError(
                code="BIND_PROPERTY_DUPLICATE",
                message=f"property {property_name!r} is already bound",
                field=property_name,
            )
        binding = Binding(self, builder.widget, property_name, builder.converter, builder.required)
        binding.attach()
        self._bindings[property_name] = binding
        if builder in self._pending:
            self._pending.remove(builder)
        if self._bean is not None:
            binding.read(self._bean)
        return binding

    def remove_binding(self, property_name: str) -> bool:
        binding = self._bindings.pop(property_name, None)
        if binding is None:
            return False
        binding.detach()
        logger.debug("removed binding for %s", property_name)
        return True

    def ensure_complete(self) -> None:
        pending = [b for b in self._pending if not b.done]
        if pending:
            names = [b.widget.name for b in pending]
            raise IncompleteBindingError(
                code="BIND_INCOMPLETE",
                message=f"{len(pending)} binding(s) neither bound nor discarded: {names}",
                field=names[0],
                detail={"widgets": names},
            )

    # access

    def get_binding(self, property_name: str) -> Binding | None:
        return self._bindings.get(property_name)

    def bound_properties(self) -> List[str]:
        return list(self._bindings.keys())

    @property
    def bean(self) -> Any:
        return self._bean

    # reading and writing

    def read_bean(self, bean: Any) -> None:
        """Populate every bound widget from ``bean`` (buffered mode)."""
        self._bean = None
        for binding in self._bindings.values():
            binding.read(bean)

    def set_bean(self, bean: Any) -> None:
        """Populate from ``bean`` and write widget changes straight back into it."""
        self._bean = None
        if bean is not None:
            for binding in self._bindings.values():
                binding.read(bean)
        self._bean = bean

    def _write_through(self, binding: Binding) -> None:
        if self._bean is None or self._writing:
            return
        if binding.validate():
            return
        binding.write(self._bean, binding.convert())

    def validate(self) -> List[Issue]:
        issues: List[Issue] = []
        for binding in self._bindings.values():
            issues.extend(binding.validate())
        return issues

    def is_valid(self) -> bool:
        return not self.validate()

    def write_bean(self, bean: Any) -> None:
        issues = self.validate()
        if issues:
            raise BindingValidationError(
                code="BIND_VALIDATION_FAILED",
                message=f"{len(issues)} validation error(s) for {type(bean).__name__}",
                field=issues[0]["path"],
                issues=issues,
            )
        values = {name: binding.convert() for name, binding in self._bindings.items()}
        self._writing = True
        try:
            for name, value in values.items():
                self._bindings[name].write(bean, value)
        finally:
            self._writing = False

    def write_bean_if_valid(self, bean: Any) -> bool:
        try:
            self.write_bean(bean)
        except BindingValidationError as exc:
            logger.warning("validation failed for %s: %s", type(bean).__name__, exc.issues)
            return False
        return True

    def unbind(self) -> None:
        for binding in self._bindings.values():
            binding.detach()
        self._bindings.clear()
        self._pending.clear()
        self._bean = None
