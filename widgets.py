"""Headless widget model hosting generated forms.

Each widget exposes the uniform capability set the engine relies on: get/set
value, read-only, required indicator and width. The tree serialises to plain
dicts so a web front-end (or the HTML renderer) can draw it.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List

from entities import display_text


ValueListener = Callable[["Widget", Any, Any], None]

LABEL_MIN_WIDTH = "210px"
FULL_WIDTH = "100%"


class Widget:
    kind = "widget"
    empty_value: Any = None

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        self._value: Any = self.empty_value
        self.read_only = False
        self.required_indicator = False
        self.width: str | None = None
        self.helper_text = ""
        self.placeholder = ""
        self.invalid = False
        self.error_message = ""
        self._listeners: List[ValueListener] = []

    def get_value(self) -> Any:
        return self._value

    def set_value(self, value: Any) -> None:
        old = self._value
        self._value = value
        if old != value:
            for listener in list(self._listeners):
                listener(self, old, value)

    def clear(self) -> None:
        self.set_value(self.empty_value)

    def is_empty(self) -> bool:
        return self._value is None or self._value == self.empty_value

    def set_read_only(self, read_only: bool) -> None:
        self.read_only = bool(read_only)

    def set_required_indicator_visible(self, visible: bool) -> None:
        self.required_indicator = bool(visible)

    def set_width(self, width: str | None) -> None:
        self.width = width or None

    def set_width_full(self) -> None:
        self.width = FULL_WIDTH

    def add_value_change_listener(self, listener: ValueListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def listener_count(self) -> int:
        return len(self._listeners)

    def _value_for_dict(self) -> Any:
        value = self._value
        if value is None or isinstance(value, (str, int, float, bool)):
            return value
        return str(value)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "name": self.name,
            "value": self._value_for_dict(),
            "read_only": self.read_only,
            "required": self.required_indicator,
            "width": self.width,
            "helper_text": self.helper_text or None,
            "placeholder": self.placeholder or None,
            "invalid": self.invalid,
            "error": self.error_message or None,
        }


class TextField(Widget):
    kind = "text"

    def __init__(self, name: str | None = None, max_length: int = -1) -> None:
        super().__init__(name)
        self.max_length = max_length

    def is_empty(self) -> bool:
        return not self._value

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["max_length"] = self.max_length if self.max_length > 0 else None
        return data


class TextArea(TextField):
    kind = "textarea"


class Checkbox(Widget):
    kind = "checkbox"
    empty_value = False


class NumberField(Widget):
    kind = "number"

    def __init__(
        self,
        name: str | None = None,
        step: float = 1,
        min_value: float | None = None,
        max_value: float | None = None,
    ) -> None:
        super().__init__(name)
        self.step = step
        self.min_value = min_value
        self.max_value = max_value

    def _value_for_dict(self) -> Any:
        if isinstance(self._value, Decimal):
            return float(self._value)
        return super()._value_for_dict()

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"step": self.step, "min": self.min_value, "max": self.max_value})
        return data


class DatePicker(Widget):
    kind = "date"

    def _value_for_dict(self) -> Any:
        return self._value.isoformat() if self._value is not None else None


class DateTimePicker(DatePicker):
    kind = "datetime"


class _ItemWidget(Widget):
    def __init__(self, name: str | None = None, item_label: Callable[[Any], str] = display_text) -> None:
        super().__init__(name)
        self.items: List[Any] = []
        self.item_label = item_label

    def set_items(self, items: Iterable[Any]) -> None:
        self.items = list(items)

    def item_labels(self) -> List[str]:
        return [self.item_label(item) for item in self.items]

    def select_option(self, option: Any) -> None:
        self.set_value(option)

    def _value_for_dict(self) -> Any:
        return self.item_label(self._value) if self._value is not None else None

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["items"] = self.item_labels()
        return data


class ComboBox(_ItemWidget):
    kind = "combobox"

    def __init__(self, name: str | None = None, item_label: Callable[[Any], str] = display_text) -> None:
        super().__init__(name, item_label)
        self.allow_custom_value = False
        self.filter: Callable[[str], List[Any]] | None = None

    def set_allow_custom_value(self, allow: bool) -> None:
        self.allow_custom_value = bool(allow)

    def set_filter(self, fetch: Callable[[str], List[Any]] | None) -> None:
        self.filter = fetch

    def filtered_items(self, text: str) -> List[Any]:
        if self.filter is not None:
            return list(self.filter(text))
        needle = (text or "").lower()
        return [item for item in self.items if needle in self.item_label(item).lower()]

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["allow_custom_value"] = self.allow_custom_value
        return data


class MultiSelectComboBox(ComboBox):
    kind = "multiselect"

    def is_empty(self) -> bool:
        return not self._value

    def select_option(self, option: Any) -> None:
        self.set_value([option])

    def _value_for_dict(self) -> Any:
        return [self.item_label(item) for item in self._value] if self._value else []


class RadioGroup(_ItemWidget):
    kind = "radio"


class Label(Widget):
    kind = "label"

    def __init__(self, text: str, bold: bool = False) -> None:
        super().__init__(None)
        self._value = text
        self.bold = bold
        self.min_width = LABEL_MIN_WIDTH

    @property
    def text(self) -> str:
        return self._value

    def to_dict(self) -> dict:
        return {"kind": self.kind, "text": self._value, "bold": self.bold, "min_width": self.min_width}


class Container:
    kind = "container"

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        self.children: List[Any] = []

    def add(self, *children: Any) -> None:
        self.children.extend(children)

    def remove(self, child: Any) -> bool:
        if child in self.children:
            self.children.remove(child)
            return True
        return False

    def __len__(self) -> int:
        return len(self.children)

    def walk(self) -> Iterable[Any]:
        for child in self.children:
            yield child
            if isinstance(child, Container):
                yield from child.walk()

    def widgets(self) -> List[Widget]:
        return [node for node in self.walk() if isinstance(node, Widget) and not isinstance(node, Label)]

    def to_dict(self) -> dict:
        return {"kind": self.kind, "name": self.name, "children": [child.to_dict() for child in self.children]}


class FieldRow(Container):
    """Label + widget pair."""

    kind = "row"

    def __init__(self, label: Label, widget: Widget) -> None:
        super().__init__(widget.name)
        self.label = label
        self.widget = widget
        self.add(label, widget)


class FormLayout(Container):
    kind = "form"

    def __init__(self, name: str | None = None) -> None:
        super().__init__(name)
        self.components: Dict[str, Widget] = {}
        self.results: List[Any] = []

    def get_component(self, name: str) -> Widget | None:
        return self.components.get(name)


class Section(FormLayout):
    kind = "section"

    def __init__(self, name: str, caption: str) -> None:
        super().__init__(name)
        self.caption = caption

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["caption"] = self.caption
        return data
