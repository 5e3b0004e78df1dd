"""FastAPI host for metadata-driven screens and grids."""

from __future__ import annotations

import dataclasses
import logging
import os
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


_load_env_file(ROOT / "app" / ".env")

from app.definition_validate import validate_definition
from app.demo_domain import default_definitions, register_services, seed
from app.form_render import render_form_html, render_grid_html
from app.stores_db import DbDefinitionStore
from bound_form import BoundForm, MasterDetail
from data_provider import DataProviderResolver
from definition_store import KIND_GRID, KIND_SCREEN, DefinitionStore
from engine_errors import BindingError, BindingValidationError, ConfigurationError
from entities import ProjectEntity
from entity_catalog import EntityCatalog
from form_builder import FormBuilder
from grid_builder import Grid, GridColumnBuilder, GridDataLoader
from registry import ServiceRegistry
from screen_interpreter import ScreenInterpreter
from screenkit.canonical_json import to_jsonable
from session import UiSession


app = FastAPI(title="screenkit")
logger = logging.getLogger("screenkit")
logging.basicConfig(level=logging.INFO)

USE_DB = os.getenv("USE_DB", "").strip() == "1"
SESSION_IDLE_SECONDS = float(os.getenv("SCREENKIT_SESSION_IDLE_SECONDS", "1800"))


def _error_response(code: str, message: str, path: str | None = None, detail: dict | None = None, status: int = 400) -> JSONResponse:
    body = {
        "ok": False,
        "errors": [{"code": code, "message": message, "path": path, "detail": detail}],
        "warnings": [],
    }
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _issues_response(errors: list, warnings: list | None = None, status: int = 400) -> JSONResponse:
    body = {"ok": False, "errors": errors, "warnings": warnings or []}
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _ok_response(payload: dict, warnings: list | None = None, status: int = 200) -> JSONResponse:
    body = {"ok": True, **payload, "errors": [], "warnings": warnings or []}
    return JSONResponse(jsonable_encoder(body), status_code=status)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.warning("configuration error on %s: %s", request.url.path, exc)
    return _error_response(exc.code, exc.message, exc.field, exc.detail, status=422)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s", request.url.path)
    return _error_response("INTERNAL_ERROR", "Unexpected server error", detail={"error": str(exc)}, status=500)


# engine wiring: registry is populated once and frozen before serving

services = ServiceRegistry()
catalog = EntityCatalog()
register_services(services, catalog)
seeded_projects = seed(services)
services.freeze()

resolver = DataProviderResolver(services)
form_builder = FormBuilder(resolver)
interpreter = ScreenInterpreter(catalog, form_builder)
grid_builder = GridColumnBuilder(services)

if USE_DB:
    definitions = DbDefinitionStore()
else:
    definitions = DefinitionStore()
    for _project_id in seeded_projects.values():
        for _kind, _definition in default_definitions(str(_project_id)):
            definitions.save(_kind, _definition, reason="seed")


@dataclass
class SessionState:
    session: UiSession
    grids: Dict[str, Grid] = field(default_factory=dict)
    details: Dict[str, MasterDetail] = field(default_factory=dict)
    last_seen: float = field(default_factory=time.monotonic)

    def close(self) -> None:
        for detail in self.details.values():
            detail.close()
        self.details.clear()
        self.session.close()


_sessions: Dict[str, SessionState] = {}


def _project_key(project_id: str) -> Any:
    # definitions are keyed by string, entities by their integer id
    return int(project_id) if project_id.isdigit() else project_id


def _record_json(entity: Any) -> dict:
    return {f.name: to_jsonable(getattr(entity, f.name)) for f in dataclasses.fields(entity)}


def _entity_service(entity_type: str) -> Any:
    name = catalog.service_for(entity_type) or f"{entity_type}Service"
    return services.lookup(name)


async def _safe_json(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _load_definition(kind: str, project_id: str, definition_id: str):
    try:
        return definitions.load(kind, project_id, definition_id)
    except KeyError:
        return None


def _screen_form(project_id: str, screen_id: str) -> BoundForm | JSONResponse:
    screen = _load_definition(KIND_SCREEN, project_id, screen_id)
    if screen is None:
        return _error_response("SCREEN_NOT_FOUND", "screen not found", "screen_id", status=404)
    return BoundForm.from_screen(screen, interpreter)


@app.get("/health")
async def health() -> dict:
    return {"ok": True}


@app.get("/entity-types")
async def list_entity_types() -> JSONResponse:
    return _ok_response({"entity_types": catalog.listing()})


@app.get("/projects")
async def list_projects() -> JSONResponse:
    projects = services.lookup("ProjectService").list()
    return _ok_response({"projects": [{"id": p.id, "name": p.name} for p in projects]})


# definition CRUD


def _list_definitions(kind: str, project_id: str) -> JSONResponse:
    return _ok_response({"items": definitions.list(kind, project_id)})


def _get_definition(kind: str, project_id: str, definition_id: str) -> JSONResponse:
    try:
        record = definitions.get_record(kind, project_id, definition_id)
    except KeyError:
        return _error_response("DEFINITION_NOT_FOUND", f"{kind} not found", "definition_id", status=404)
    return _ok_response({"definition": record["definition"], "definition_hash": record["definition_hash"]})


async def _save_definition(kind: str, project_id: str, request: Request) -> JSONResponse:
    body = await _safe_json(request)
    definition = body.get("definition", body)
    errors, warnings = validate_definition(kind, definition, catalog, expected_project_id=project_id)
    if errors:
        return _issues_response(errors, warnings)
    result = definitions.save(kind, definition, actor=body.get("actor"), reason=body.get("reason") or "save")
    if not result["ok"]:
        return _issues_response(result["errors"], warnings + result["warnings"])
    return _ok_response(
        {"definition_hash": result["definition_hash"], "audit_id": result["audit_id"], "changed": result["changed"]},
        warnings=warnings,
    )


def _delete_definition(kind: str, project_id: str, definition_id: str) -> JSONResponse:
    if not definitions.delete(kind, project_id, definition_id):
        return _error_response("DEFINITION_NOT_FOUND", f"{kind} not found", "definition_id", status=404)
    return _ok_response({})


@app.get("/projects/{project_id}/screens")
async def list_screens(project_id: str) -> JSONResponse:
    return _list_definitions(KIND_SCREEN, project_id)


@app.post("/projects/{project_id}/screens")
async def save_screen(project_id: str, request: Request) -> JSONResponse:
    return await _save_definition(KIND_SCREEN, project_id, request)


@app.get("/projects/{project_id}/screens/{screen_id}")
async def get_screen(project_id: str, screen_id: str) -> JSONResponse:
    return _get_definition(KIND_SCREEN, project_id, screen_id)


@app.delete("/projects/{project_id}/screens/{screen_id}")
async def delete_screen(project_id: str, screen_id: str) -> JSONResponse:
    return _delete_definition(KIND_SCREEN, project_id, screen_id)


@app.get("/projects/{project_id}/screens/{screen_id}/history")
async def screen_history(project_id: str, screen_id: str) -> JSONResponse:
    return _ok_response({"history": definitions.list_history(KIND_SCREEN, project_id, screen_id)})


@app.get("/projects/{project_id}/grids")
async def list_grids(project_id: str) -> JSONResponse:
    return _list_definitions(KIND_GRID, project_id)


@app.post("/projects/{project_id}/grids")
async def save_grid(project_id: str, request: Request) -> JSONResponse:
    return await _save_definition(KIND_GRID, project_id, request)


@app.get("/projects/{project_id}/grids/{grid_id}")
async def get_grid(project_id: str, grid_id: str) -> JSONResponse:
    return _get_definition(KIND_GRID, project_id, grid_id)


@app.delete("/projects/{project_id}/grids/{grid_id}")
async def delete_grid(project_id: str, grid_id: str) -> JSONResponse:
    return _delete_definition(KIND_GRID, project_id, grid_id)


# rendering and write-back


@app.get("/projects/{project_id}/screens/{screen_id}/render")
async def render_screen(project_id: str, screen_id: str, record_id: int | None = None, format: str = "json"):
    form = _screen_form(project_id, screen_id)
    if isinstance(form, JSONResponse):
        return form
    try:
        if record_id is not None:
            record = _entity_service(form.entity_cls.__name__).get(record_id)
            if record is None:
                return _error_response("RECORD_NOT_FOUND", "record not found", "record_id", status=404)
            form.populate(record)
        if format == "html":
            return HTMLResponse(render_form_html(form.to_dict(), action=f"/projects/{project_id}/screens/{screen_id}/submit"))
        return _ok_response({"form": form.to_dict()})
    finally:
        form.unbind()


@app.post("/projects/{project_id}/screens/{screen_id}/submit")
async def submit_screen(project_id: str, screen_id: str, request: Request) -> JSONResponse:
    body = await _safe_json(request)
    values = body.get("values")
    if not isinstance(values, dict):
        return _error_response("SUBMIT_VALUES_INVALID", "values must be an object", "values")
    form = _screen_form(project_id, screen_id)
    if isinstance(form, JSONResponse):
        return form
    try:
        service = _entity_service(form.entity_cls.__name__)
        record_id = body.get("record_id")
        if record_id is not None:
            record = service.get(record_id)
            if record is None:
                return _error_response("RECORD_NOT_FOUND", "record not found", "record_id", status=404)
            form.populate(record)
        else:
            record = form.entity_cls()
            if isinstance(record, ProjectEntity):
                record.project = services.lookup("ProjectService").get(_project_key(project_id))
            form.populate(record, keep_defaults=True)
        issues = form.set_values(values)
        if issues:
            return _issues_response(issues)
        try:
            form.write_back()
        except BindingValidationError as exc:
            return _issues_response(exc.issues)
        saved = service.save(record)
        return _ok_response({"record": _record_json(saved)})
    finally:
        form.unbind()


@app.get("/projects/{project_id}/grids/{grid_id}/rows")
async def grid_rows(project_id: str, grid_id: str, format: str = "json"):
    definition = _load_definition(KIND_GRID, project_id, grid_id)
    if definition is None:
        return _error_response("GRID_NOT_FOUND", "grid not found", "grid_id", status=404)
    entity_cls = catalog.resolve(definition.entity_type) if definition.entity_type else None
    grid, loader = grid_builder.build_grid(definition, entity_cls, project_id=_project_key(project_id))
    loader.load()
    warnings = []
    if loader.last_error:
        warnings.append({"code": "GRID_LOAD_FAILED", "message": loader.last_error, "path": "data_service", "detail": None})
    if format == "html":
        return HTMLResponse(render_grid_html(grid.to_dict()))
    return _ok_response({"grid": grid.to_dict()}, warnings=warnings)


# sessions: active project, live grids, master-detail


def _expire_sessions(now: float | None = None) -> int:
    now = time.monotonic() if now is None else now
    stale = [sid for sid, state in _sessions.items() if now - state.last_seen > SESSION_IDLE_SECONDS]
    for sid in stale:
        _sessions.pop(sid).close()
    if stale:
        logger.info("expired %d idle session(s)", len(stale))
    return len(stale)


def _get_session(session_id: str) -> SessionState | None:
    _expire_sessions()
    state = _sessions.get(session_id)
    if state is not None:
        state.last_seen = time.monotonic()
    return state


@app.post("/sessions")
async def create_session(request: Request) -> JSONResponse:
    body = await _safe_json(request)
    _expire_sessions()
    session = UiSession(project_id=body.get("project_id"))
    _sessions[session.session_id] = SessionState(session)
    return _ok_response({"session_id": session.session_id, "project_id": session.project_id}, status=201)


@app.delete("/sessions/{session_id}")
async def close_session(session_id: str) -> JSONResponse:
    state = _sessions.pop(session_id, None)
    if state is None:
        return _error_response("SESSION_NOT_FOUND", "session not found", "session_id", status=404)
    state.close()
    return _ok_response({})


@app.post("/sessions/{session_id}/project")
async def switch_project(session_id: str, request: Request) -> JSONResponse:
    state = _get_session(session_id)
    if state is None:
        return _error_response("SESSION_NOT_FOUND", "session not found", "session_id", status=404)
    body = await _safe_json(request)
    project_id = body.get("project_id")
    if isinstance(project_id, bool) or not isinstance(project_id, (int, str)):
        return _error_response("PROJECT_ID_INVALID", "project_id must be an integer or string", "project_id")
    if isinstance(project_id, str):
        project_id = _project_key(project_id)
    changed = state.session.set_active_project(project_id)
    counts = {key: len(grid.items) for key, grid in state.grids.items()}
    return _ok_response({"project_id": project_id, "changed": changed, "rows": counts})


@app.get("/sessions/{session_id}/grids/{grid_id}")
async def session_grid(session_id: str, grid_id: str, screen_id: str | None = None) -> JSONResponse:
    state = _get_session(session_id)
    if state is None:
        return _error_response("SESSION_NOT_FOUND", "session not found", "session_id", status=404)
    grid = state.grids.get(grid_id)
    if grid is None:
        project_id = state.session.project_id
        if project_id is None:
            return _error_response("SESSION_NO_PROJECT", "select a project first", "project_id", status=409)
        definition = _load_definition(KIND_GRID, str(project_id), grid_id)
        if definition is None:
            return _error_response("GRID_NOT_FOUND", "grid not found", "grid_id", status=404)
        entity_cls = catalog.resolve(definition.entity_type) if definition.entity_type else None
        grid, loader = grid_builder.build_grid(definition, entity_cls)
        state.session.attach_loader(grid_id, loader)
        loader.load()
        state.grids[grid_id] = grid
        if screen_id:
            screen = _load_definition(KIND_SCREEN, str(project_id), screen_id)
            if screen is None:
                return _error_response("SCREEN_NOT_FOUND", "screen not found", "screen_id", status=404)
            state.details[grid_id] = MasterDetail(grid, lambda: BoundForm.from_screen(screen, interpreter))
    return _ok_response({"grid": grid.to_dict()})


@app.post("/sessions/{session_id}/grids/{grid_id}/select")
async def select_row(session_id: str, grid_id: str, request: Request) -> JSONResponse:
    state = _get_session(session_id)
    if state is None:
        return _error_response("SESSION_NOT_FOUND", "session not found", "session_id", status=404)
    grid = state.grids.get(grid_id)
    if grid is None:
        return _error_response("GRID_NOT_OPEN", "open the grid first", "grid_id", status=409)
    body = await _safe_json(request)
    record_id = body.get("record_id")
    item = None
    if record_id is not None:
        item = next((row for row in grid.items if row.id == record_id), None)
        if item is None:
            return _error_response("RECORD_NOT_FOUND", "record not in grid", "record_id", status=404)
    grid.select(item)
    detail = state.details.get(grid_id)
    form = detail.form.to_dict() if detail is not None and detail.form is not None else None
    return _ok_response({"selected": record_id, "form": form})


@app.post("/sessions/{session_id}/grids/{grid_id}/save")
async def save_detail(session_id: str, grid_id: str, request: Request) -> JSONResponse:
    state = _get_session(session_id)
    if state is None:
        return _error_response("SESSION_NOT_FOUND", "session not found", "session_id", status=404)
    detail = state.details.get(grid_id)
    if detail is None or detail.form is None:
        return _error_response("DETAIL_NO_SELECTION", "no selected row", "grid_id", status=409)
    body = await _safe_json(request)
    issues = detail.form.set_values(body.get("values") or {})
    if issues:
        return _issues_response(issues)
    try:
        entity = detail.save()
    except BindingValidationError as exc:
        return _issues_response(exc.issues)
    except BindingError as exc:
        return _issues_response([exc.as_issue()])
    saved = _entity_service(detail.form.entity_cls.__name__).save(entity)
    loader: GridDataLoader | None = state.session.loaders.get(grid_id)
    if loader is not None:
        loader.load()
    return _ok_response({"record": _record_json(saved)})
