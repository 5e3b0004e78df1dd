"""Content hashes for stored screen and grid definitions."""

from __future__ import annotations

import hashlib
from typing import Any

from .canonical_json import canonical_dumps


# bookkeeping keys do not change what a definition renders
_VOLATILE_KEYS = ("updated_at", "created_at", "definition_hash")


def definition_hash(definition: Any) -> str:
    """Return ``sha256:<hex>`` over the canonical JSON of ``definition``."""
    if isinstance(definition, dict):
        definition = {k: v for k, v in definition.items() if k not in _VOLATILE_KEYS}
    data = canonical_dumps(definition).encode("utf-8")
    return f"sha256:{hashlib.sha256(data).hexdigest()}"
