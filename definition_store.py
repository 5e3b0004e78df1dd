"""In-memory, project-scoped store of screen and grid definitions."""

from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from definitions import GridDefinition, ScreenDefinition
from engine_errors import DefinitionError, Issue
from screenkit.definition_hash import definition_hash


logger = logging.getLogger("screenkit.definitions")

KIND_SCREEN = "screen"
KIND_GRID = "grid"
_PARSERS = {KIND_SCREEN: ScreenDefinition, KIND_GRID: GridDefinition}

Key = Tuple[str, str, str]


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


def parse_definition(kind: str, data: Any) -> ScreenDefinition | GridDefinition:
    parser = _PARSERS.get(kind)
    if parser is None:
        raise DefinitionError(code="DEFINITION_KIND_INVALID", message=f"unknown definition kind {kind!r}", field=kind)
    return parser.from_dict(data)


class DefinitionStore:
    def __init__(self) -> None:
        self._records: Dict[Key, dict] = {}
        self._audit: Dict[Key, List[dict]] = {}

    def _record_audit(self, key: Key, action: str, from_hash: str | None, to_hash: str | None, actor: dict | None, reason: str) -> str:
        audit_id = str(uuid.uuid4())
        audit = {
            "audit_id": audit_id,
            "kind": key[0],
            "project_id": key[1],
            "definition_id": key[2],
            "action": action,
            "from_hash": from_hash,
            "to_hash": to_hash,
            "actor": actor,
            "reason": reason,
            "at": _now(),
        }
        self._audit.setdefault(key, []).insert(0, audit)
        return audit_id

    def save(self, kind: str, definition: dict, actor: dict | None = None, reason: str = "save") -> dict:
        errors: List[Issue] = []
        warnings: List[Issue] = []
        try:
            parsed = parse_definition(kind, definition)
        except DefinitionError as exc:
            errors.append(exc.as_issue())
            return {"ok": False, "errors": errors, "warnings": warnings, "definition_hash": None, "audit_id": None, "changed": False}

        stored = parsed.to_dict()
        key = (kind, parsed.project_id, parsed.id)
        new_hash = definition_hash(stored)
        existing = self._records.get(key)
        from_hash = existing["definition_hash"] if existing else None
        if from_hash == new_hash:
            return {"ok": True, "errors": errors, "warnings": warnings, "definition_hash": new_hash, "audit_id": None, "changed": False}

        now = _now()
        self._records[key] = {
            "kind": kind,
            "project_id": parsed.project_id,
            "definition": stored,
            "definition_hash": new_hash,
            "created_at": existing["created_at"] if existing else now,
            "updated_at": now,
            "updated_by": actor,
        }
        audit_id = self._record_audit(key, "create" if existing is None else "update", from_hash, new_hash, actor, reason)
        logger.info("saved %s %s/%s (%s)", kind, parsed.project_id, parsed.id, new_hash)
        return {"ok": True, "errors": errors, "warnings": warnings, "definition_hash": new_hash, "audit_id": audit_id, "changed": True}

    def get(self, kind: str, project_id: str, definition_id: str) -> dict:
        record = self._records.get((kind, project_id, definition_id))
        if record is None:
            raise KeyError("Definition not found")
        return copy.deepcopy(record["definition"])

    def get_record(self, kind: str, project_id: str, definition_id: str) -> dict:
        record = self._records.get((kind, project_id, definition_id))
        if record is None:
            raise KeyError("Definition not found")
        return copy.deepcopy(record)

    def load(self, kind: str, project_id: str, definition_id: str) -> ScreenDefinition | GridDefinition:
        return parse_definition(kind, self.get(kind, project_id, definition_id))

    def list(self, kind: str, project_id: str) -> list[dict]:
        items = []
        for (k, project, definition_id), record in self._records.items():
            if k != kind or project != project_id:
                continue
            definition = record["definition"]
            items.append(
                {
                    "id": definition_id,
                    "name": definition.get("name"),
                    "entity_type": definition.get("entity_type"),
                    "definition_hash": record["definition_hash"],
                    "updated_at": record["updated_at"],
                }
            )
        items.sort(key=lambda r: r["id"])
        return items

    def delete(self, kind: str, project_id: str, definition_id: str, actor: dict | None = None, reason: str = "delete") -> bool:
        key = (kind, project_id, definition_id)
        record = self._records.pop(key, None)
        if record is None:
            return False
        self._record_audit(key, "delete", record["definition_hash"], None, actor, reason)
        logger.info("deleted %s %s/%s", kind, project_id, definition_id)
        return True

    def list_history(self, kind: str, project_id: str, definition_id: str) -> list[dict]:
        return copy.deepcopy(self._audit.get((kind, project_id, definition_id), []))
