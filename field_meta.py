"""Declarative per-field presentation metadata and model introspection.

Metadata is attached to dataclass fields with :func:`ui_field`::

    @dataclass
    class Task(Entity):
        name: str | None = ui_field(display_name="Name", order=1, required=True)

:func:`describe` turns a model class into the ordered list of visible field
descriptors that the form builder consumes: discover every instance field across
the class and its ancestors, keep the ones carrying metadata, drop hidden ones,
then stable-sort by ``order``.
"""

from __future__ import annotations

import dataclasses
import enum
import types
import typing
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Tuple, get_args, get_origin

from engine_errors import InvalidOverrideError, MissingMetadataError


META_KEY = "ui"
ORDER_LAST = 2**31 - 1
NO_PROVIDER = "none"


@dataclass(frozen=True)
class FieldMeta:
    display_name: str = "Field"
    description: str = ""
    order: int | None = None
    hidden: bool = False
    required: bool = False
    read_only: bool = False
    default_value: str = ""
    max_length: int = -1
    min: float | None = None
    max: float | None = None
    width: str = ""
    placeholder: str = ""
    use_radio_buttons: bool = False
    allow_custom_value: bool = False
    auto_select_first: bool = False
    clear_on_empty_data: bool = False
    combobox_read_only: bool = False
    data_provider_bean: str = ""
    data_provider_method: str = "list"
    data_provider_param_method: str = ""
    filter_method: str = ""
    data_provider_class: type | None = None
    use_icon: bool = False
    set_background_from_color: bool = False

    @property
    def sort_key(self) -> int:
        return ORDER_LAST if self.order is None else self.order

    def has_data_provider(self) -> bool:
        return bool(self.data_provider_bean) or self.data_provider_class is not None

    def merged(self, overrides: dict | None, field_name: str | None = None) -> "FieldMeta":
        """Return a copy with ``overrides`` applied; unknown keys are rejected."""
        if not overrides:
            return self
        allowed = override_keys()
        unknown = sorted(key for key in overrides if key not in allowed)
        if unknown:
            raise InvalidOverrideError(
                code="OVERRIDE_UNKNOWN_KEY",
                message=f"unknown metadata override(s) {unknown} for field {field_name!r}",
                field=field_name,
                detail={"keys": unknown},
            )
        for key in sorted(overrides):
            expected = override_type_mismatch(key, overrides[key])
            if expected:
                raise InvalidOverrideError(
                    code="OVERRIDE_VALUE_INVALID",
                    message=f"override {key} for field {field_name!r} must be {expected}, got {overrides[key]!r}",
                    field=field_name,
                    detail={"key": key, "expected": expected},
                )
        return dataclasses.replace(self, **overrides)


def override_keys() -> set[str]:
    # data_provider_class is code, not configuration
    return {f.name for f in dataclasses.fields(FieldMeta) if f.name != "data_provider_class"}


_SCALARS = {"bool": (bool,), "int": (int,), "float": (int, float), "str": (str,)}


def override_type_mismatch(key: str, value: Any) -> str | None:
    """Return the expected type text when ``value`` does not fit ``FieldMeta.<key>``."""
    # annotations are strings here, e.g. "int | None"
    hint = FieldMeta.__dataclass_fields__[key].type
    names = [part.strip() for part in str(hint).split("|")]
    if value is None:
        return None if "None" in names else " or ".join(names)
    for name in names:
        accepted = _SCALARS.get(name)
        if accepted is None:
            continue
        if isinstance(value, bool) and name != "bool":
            continue
        if isinstance(value, accepted):
            return None
    return " or ".join(names)


def ui_field(default: Any = None, *, default_factory: Any = dataclasses.MISSING, **meta: Any) -> Any:
    """Declare a dataclass field carrying :class:`FieldMeta`."""
    info = FieldMeta(**meta)
    if default_factory is not dataclasses.MISSING:
        return dataclasses.field(default_factory=default_factory, metadata={META_KEY: info})
    return dataclasses.field(default=default, metadata={META_KEY: info})


class FieldKind(enum.Enum):
    STRING = "string"
    ENTITY = "entity"
    COLLECTION = "collection"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    DECIMAL = "decimal"
    FLOAT = "float"
    DATE = "date"
    DATETIME = "datetime"
    ENUM = "enum"
    UNSUPPORTED = "unsupported"


_COLLECTION_ORIGINS = (list, set, frozenset, tuple)


def _unwrap_optional(tp: Any) -> Any:
    origin = get_origin(tp)
    if origin is typing.Union or origin is types.UnionType:
        args = [arg for arg in get_args(tp) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


def is_entity_type(tp: Any) -> bool:
    # imported lazily: entities.py declares its fields with ui_field
    from entities import Entity

    return isinstance(tp, type) and issubclass(tp, Entity)


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    type: Any
    meta: FieldMeta | None
    owner: type

    def require_meta(self) -> FieldMeta:
        if self.meta is None:
            raise MissingMetadataError(
                code="FIELD_METADATA_MISSING",
                message=f"field {self.name!r} of {self.owner.__name__} carries no metadata",
                field=self.name,
            )
        return self.meta

    def with_meta(self, meta: FieldMeta) -> "FieldDescriptor":
        return dataclasses.replace(self, meta=meta)

    @property
    def type_name(self) -> str:
        return getattr(self.type, "__name__", None) or str(self.type)

    def element_type(self) -> Any:
        """Item type for collections, the field type otherwise."""
        if self.kind() == FieldKind.COLLECTION:
            args = [arg for arg in get_args(self.type) if arg is not Ellipsis]
            return args[0] if args else None
        return self.type

    def kind(self) -> FieldKind:
        tp = self.type
        if is_entity_type(tp):
            return FieldKind.ENTITY
        if tp in _COLLECTION_ORIGINS or get_origin(tp) in _COLLECTION_ORIGINS:
            return FieldKind.COLLECTION
        # identity checks: bool is an int and datetime is a date
        if tp is bool:
            return FieldKind.BOOLEAN
        if tp is str:
            return FieldKind.STRING
        if tp is int:
            return FieldKind.INTEGER
        if tp is Decimal:
            return FieldKind.DECIMAL
        if tp is float:
            return FieldKind.FLOAT
        if tp is date:
            return FieldKind.DATE
        if tp is datetime:
            return FieldKind.DATETIME
        if isinstance(tp, type) and issubclass(tp, enum.Enum):
            return FieldKind.ENUM
        return FieldKind.UNSUPPORTED


_CACHE: Dict[type, Tuple[FieldDescriptor, ...]] = {}


def all_fields(cls: type) -> List[FieldDescriptor]:
    """Every instance field of ``cls`` and its ancestors, in declaration order."""
    cached = _CACHE.get(cls)
    if cached is not None:
        return list(cached)
    if not dataclasses.is_dataclass(cls):
        raise MissingMetadataError(
            code="MODEL_NOT_DESCRIBABLE",
            message=f"{getattr(cls, '__name__', cls)!r} is not a dataclass model",
            field=None,
        )
    hints = typing.get_type_hints(cls)
    owners: Dict[str, type] = {}
    for klass in reversed(cls.__mro__):
        for name in getattr(klass, "__annotations__", {}):
            owners.setdefault(name, klass)
    items = []
    for f in dataclasses.fields(cls):
        items.append(
            FieldDescriptor(
                name=f.name,
                type=_unwrap_optional(hints.get(f.name, f.type)),
                meta=f.metadata.get(META_KEY),
                owner=owners.get(f.name, cls),
            )
        )
    _CACHE[cls] = tuple(items)
    return items


def describe(cls: type) -> List[FieldDescriptor]:
    """Visible metadata-carrying fields of ``cls`` sorted by ``order``."""
    visible = [d for d in all_fields(cls) if d.meta is not None and not d.meta.hidden]
    # sorted() is stable, so equal orders keep discovery order
    return sorted(visible, key=lambda d: d.meta.sort_key)


def find_field(cls: type, name: str) -> FieldDescriptor | None:
    for descriptor in all_fields(cls):
        if descriptor.name == name:
            return descriptor
    return None


def visible_field_names(cls: type) -> List[str]:
    return [d.name for d in describe(cls)]


def describe_as_dicts(cls: type) -> list[dict]:
    """JSON-friendly field listing used by authoring tools."""
    items = []
    for d in describe(cls):
        items.append(
            {
                "name": d.name,
                "type": d.type_name,
                "kind": d.kind().value,
                "display_name": d.meta.display_name,
                "order": d.meta.order,
                "required": d.meta.required,
                "read_only": d.meta.read_only,
                "max_length": d.meta.max_length,
            }
        )
    return items
