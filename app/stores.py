"""In-memory entity data services."""

from __future__ import annotations

import copy
import itertools
from datetime import datetime, timezone
from typing import Any, Dict, List


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0, tzinfo=None)


class MemoryEntityService:
    """Unscoped entity service: ``list(limit)`` plus CRUD by id."""

    def __init__(self, entity_class: type) -> None:
        self.entity_class = entity_class
        self._items: Dict[int, Any] = {}
        self._ids = itertools.count(1)

    def _check(self, entity: Any) -> None:
        if not isinstance(entity, self.entity_class):
            raise TypeError(f"{type(self).__name__} stores {self.entity_class.__name__}, got {type(entity).__name__}")

    def save(self, entity: Any) -> Any:
        self._check(entity)
        now = _now()
        if entity.id is None:
            entity.id = next(self._ids)
            if hasattr(entity, "created_date") and entity.created_date is None:
                entity.created_date = now
        if hasattr(entity, "last_modified_date"):
            entity.last_modified_date = now
        self._items[entity.id] = copy.deepcopy(entity)
        return copy.deepcopy(entity)

    def get(self, entity_id: int) -> Any | None:
        item = self._items.get(entity_id)
        return copy.deepcopy(item) if item is not None else None

    def delete(self, entity_id: int) -> bool:
        return self._items.pop(entity_id, None) is not None

    def count(self) -> int:
        return len(self._items)

    def list(self, limit: int | None = None) -> List[Any]:
        items = [copy.deepcopy(v) for _, v in sorted(self._items.items())]
        return items[:limit] if limit is not None else items

    def search(self, text: str) -> List[Any]:
        needle = (text or "").strip().lower()
        return [item for item in self.list() if needle in (getattr(item, "name", "") or "").lower()]

    def find_by_name(self, name: str) -> Any | None:
        for item in self.list():
            if getattr(item, "name", None) == name:
                return item
        return None


class MemoryProjectEntityService(MemoryEntityService):
    """Project-scoped service; grids query it with ``list_by_project``."""

    def list_by_project(self, project_id: Any, limit: int | None = None) -> List[Any]:
        items = [item for item in self.list() if getattr(item, "project_id", None) == project_id]
        return items[:limit] if limit is not None else items
