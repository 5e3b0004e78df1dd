"""Shared serialisation helpers for screen and grid definitions."""

from .canonical_json import CanonicalJsonTypeError, canonical_dumps, to_jsonable
from .definition_hash import definition_hash

__all__ = [
    "CanonicalJsonTypeError",
    "canonical_dumps",
    "definition_hash",
    "to_jsonable",
]
