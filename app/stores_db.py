"""DB-backed definition store (PostgreSQL via psycopg2)."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, List

from app.db import execute, fetch_all, fetch_one, get_conn
from definition_store import parse_definition
from engine_errors import DefinitionError, Issue
from screenkit.definition_hash import definition_hash


logger = logging.getLogger("screenkit.db")

_SCHEMA_READY = False


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _ensure_json(value):
    if isinstance(value, str):
        return json.loads(value)
    return value


def _to_iso(value):
    if hasattr(value, "strftime"):
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")
    return value


def _json_dumps(value: object) -> str:
    return json.dumps(value, default=str)


class DbDefinitionStore:
    """Same contract as :class:`definition_store.DefinitionStore`, persisted in two tables."""

    def ensure_schema(self) -> None:
        global _SCHEMA_READY
        if _SCHEMA_READY:
            return
        with get_conn() as conn:
            execute(
                conn,
                """
                create table if not exists ui_definitions (
                  kind text not null,
                  project_id text not null,
                  definition_id text not null,
                  definition jsonb not null,
                  definition_hash text not null,
                  created_at timestamptz not null,
                  updated_at timestamptz not null,
                  updated_by jsonb null,
                  primary key (kind, project_id, definition_id)
                );
                """,
                query_name="ui_definitions.ensure",
            )
            execute(
                conn,
                """
                create table if not exists ui_definition_audit (
                  audit_id text primary key,
                  kind text not null,
                  project_id text not null,
                  definition_id text not null,
                  audit jsonb not null,
                  created_at timestamptz not null
                );
                """,
                query_name="ui_definition_audit.ensure",
            )
        _SCHEMA_READY = True
        logger.info("ui definition tables ready")

    def _record_audit(self, conn, kind: str, project_id: str, definition_id: str, action: str,
                      from_hash: str | None, to_hash: str | None, actor: dict | None, reason: str) -> str:
        audit_id = str(uuid.uuid4())
        now = _now()
        audit = {
            "audit_id": audit_id,
            "kind": kind,
            "project_id": project_id,
            "definition_id": definition_id,
            "action": action,
            "from_hash": from_hash,
            "to_hash": to_hash,
            "actor": actor,
            "reason": reason,
            "at": now,
        }
        execute(
            conn,
            """
            insert into ui_definition_audit (audit_id, kind, project_id, definition_id, audit, created_at)
            values (%s,%s,%s,%s,%s,%s)
            """,
            [audit_id, kind, project_id, definition_id, _json_dumps(audit), now],
            query_name="ui_definition_audit.insert",
        )
        return audit_id

    def save(self, kind: str, definition: dict, actor: dict | None = None, reason: str = "save") -> dict:
        errors: List[Issue] = []
        warnings: List[Issue] = []
        try:
            parsed = parse_definition(kind, definition)
        except DefinitionError as exc:
            errors.append(exc.as_issue())
            return {"ok": False, "errors": errors, "warnings": warnings, "definition_hash": None, "audit_id": None, "changed": False}

        self.ensure_schema()
        stored = parsed.to_dict()
        new_hash = definition_hash(stored)
        with get_conn() as conn:
            existing = fetch_one(
                conn,
                """
                select definition_hash from ui_definitions
                where kind=%s and project_id=%s and definition_id=%s
                """,
                [kind, parsed.project_id, parsed.id],
                query_name="ui_definitions.head",
            )
            from_hash = existing["definition_hash"] if existing else None
            if from_hash == new_hash:
                return {"ok": True, "errors": errors, "warnings": warnings, "definition_hash": new_hash, "audit_id": None, "changed": False}
            now = _now()
            execute(
                conn,
                """
                insert into ui_definitions (kind, project_id, definition_id, definition, definition_hash, created_at, updated_at, updated_by)
                values (%s,%s,%s,%s,%s,%s,%s,%s)
                on conflict (kind, project_id, definition_id)
                do update set definition=excluded.definition, definition_hash=excluded.definition_hash,
                              updated_at=excluded.updated_at, updated_by=excluded.updated_by
                """,
                [kind, parsed.project_id, parsed.id, _json_dumps(stored), new_hash, now, now, _json_dumps(actor) if actor else None],
                query_name="ui_definitions.upsert",
            )
            action = "create" if existing is None else "update"
            audit_id = self._record_audit(conn, kind, parsed.project_id, parsed.id, action, from_hash, new_hash, actor, reason)
        logger.info("saved %s %s/%s (%s)", kind, parsed.project_id, parsed.id, new_hash)
        return {"ok": True, "errors": errors, "warnings": warnings, "definition_hash": new_hash, "audit_id": audit_id, "changed": True}

    def get_record(self, kind: str, project_id: str, definition_id: str) -> dict:
        self.ensure_schema()
        with get_conn() as conn:
            row = fetch_one(
                conn,
                """
                select kind, project_id, definition, definition_hash, created_at, updated_at, updated_by
                from ui_definitions
                where kind=%s and project_id=%s and definition_id=%s
                """,
                [kind, project_id, definition_id],
                query_name="ui_definitions.get",
            )
        if not row:
            raise KeyError("Definition not found")
        return {
            "kind": row["kind"],
            "project_id": row["project_id"],
            "definition": _ensure_json(row["definition"]),
            "definition_hash": row["definition_hash"],
            "created_at": _to_iso(row.get("created_at")),
            "updated_at": _to_iso(row.get("updated_at")),
            "updated_by": _ensure_json(row.get("updated_by")),
        }

    def get(self, kind: str, project_id: str, definition_id: str) -> dict:
        return self.get_record(kind, project_id, definition_id)["definition"]

    def load(self, kind: str, project_id: str, definition_id: str) -> Any:
        return parse_definition(kind, self.get(kind, project_id, definition_id))

    def list(self, kind: str, project_id: str) -> list[dict]:
        self.ensure_schema()
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                """
                select definition_id, definition, definition_hash, updated_at
                from ui_definitions
                where kind=%s and project_id=%s
                order by definition_id
                """,
                [kind, project_id],
                query_name="ui_definitions.list",
            )
        items = []
        for r in rows:
            definition = _ensure_json(r["definition"])
            items.append(
                {
                    "id": r["definition_id"],
                    "name": definition.get("name"),
                    "entity_type": definition.get("entity_type"),
                    "definition_hash": r["definition_hash"],
                    "updated_at": _to_iso(r.get("updated_at")),
                }
            )
        return items

    def delete(self, kind: str, project_id: str, definition_id: str, actor: dict | None = None, reason: str = "delete") -> bool:
        self.ensure_schema()
        with get_conn() as conn:
            row = fetch_one(
                conn,
                """
                delete from ui_definitions
                where kind=%s and project_id=%s and definition_id=%s
                returning definition_hash
                """,
                [kind, project_id, definition_id],
                query_name="ui_definitions.delete",
            )
            if not row:
                return False
            self._record_audit(conn, kind, project_id, definition_id, "delete", row["definition_hash"], None, actor, reason)
        logger.info("deleted %s %s/%s", kind, project_id, definition_id)
        return True

    def list_history(self, kind: str, project_id: str, definition_id: str) -> list[dict]:
        self.ensure_schema()
        with get_conn() as conn:
            rows = fetch_all(
                conn,
                """
                select audit from ui_definition_audit
                where kind=%s and project_id=%s and definition_id=%s
                order by created_at desc
                """,
                [kind, project_id, definition_id],
                query_name="ui_definition_audit.list",
            )
        return [_ensure_json(r["audit"]) for r in rows]
