"""Deterministic canonical JSON serialization."""

from __future__ import annotations

import enum
import json
import math
from datetime import date, datetime
from decimal import Decimal
from typing import Any


class CanonicalJsonTypeError(TypeError):
    """Raised when an object cannot be serialized to canonical JSON."""


def _validate(obj: Any, path: str = "$") -> None:
    if isinstance(obj, dict):
        for key, value in obj.items():
            if not isinstance(key, str):
                raise CanonicalJsonTypeError(f"Unsupported key type at {path}: {type(key).__name__}")
            _validate(value, f"{path}.{key}")
        return
    if isinstance(obj, list):
        for idx, item in enumerate(obj):
            _validate(item, f"{path}[{idx}]")
        return
    if obj is None or isinstance(obj, (str, int, bool)):
        return
    if isinstance(obj, float):
        if not math.isfinite(obj):
            raise ValueError(f"Non-finite float at {path}: {obj!r}")
        return
    raise CanonicalJsonTypeError(f"Unsupported type at {path}: {type(obj).__name__}")


def to_jsonable(value: Any) -> Any:
    """Convert entity field values (dates, decimals, enums, entities) to JSON primitives."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [to_jsonable(v) for v in value]
        return sorted(items, key=canonical_dumps) if isinstance(value, (set, frozenset)) else items
    if hasattr(value, "id"):
        # entity references serialise as their id
        return to_jsonable(value.id)
    raise CanonicalJsonTypeError(f"Unsupported type: {type(value).__name__}")


def canonical_dumps(obj: Any) -> str:
    """Serialize an object to deterministic canonical JSON.

    Rules:
    - Sort dict keys recursively.
    - Preserve list order.
    - UTF-8 with non-ASCII preserved.
    - No extra whitespace.
    """
    _validate(obj)
    return json.dumps(obj, sort_keys=True, ensure_ascii=False, separators=(",", ":"), allow_nan=False)
