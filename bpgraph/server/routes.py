"""
Blueprint REST routes.

All routes are mounted under /api by main.py.
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, HTTPException
from pydantic import BaseModel

from bpgraph.compiler import CompilerOptions, compile_with_report, generate_helper_library
from bpgraph.serializer import (
    SchemaError, blueprint_from_dict, definition_from_dict, definition_to_dict, load_document,
)
from bpgraph.serializer.schema import validate_definition

from . import state

logger = logging.getLogger(__name__)

router = APIRouter()


# ── GET /catalog ──────────────────────────────────────────────────────────────

@router.get("/catalog")
async def get_catalog() -> List[Dict[str, Any]]:
    try:
        definitions = state.project_state.load_catalog()
    except SchemaError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return [definition_to_dict(d) for d in definitions]


# ── GET /helpers ──────────────────────────────────────────────────────────────

@router.get("/helpers")
async def get_helpers() -> Dict[str, str]:
    return {
        "filename": state.project_state.options.helper_filename,
        "code": generate_helper_library(),
    }


# ── POST /compile ─────────────────────────────────────────────────────────────

class CompileBody(BaseModel):
    blueprint: Dict[str, Any]
    nodeDefinitions: Optional[List[Dict[str, Any]]] = None
    options: Optional[Dict[str, Any]] = None


@router.post("/compile")
async def compile_route(body: CompileBody) -> Dict[str, Any]:
    project = state.project_state
    try:
        blueprint = blueprint_from_dict(body.blueprint)
        extra = []
        for i, data in enumerate(body.nodeDefinitions or []):
            validate_definition(data, f"nodeDefinitions[{i}]")
            extra.append(definition_from_dict(data))
        options = CompilerOptions.from_dict({**asdict(project.options), **(body.options or {})})
        catalog = project.catalog_for(extra)
    except (SchemaError, ValueError, TypeError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    result = compile_with_report(blueprint, catalog, options)
    return result.to_dict()


# ── GET /blueprints ───────────────────────────────────────────────────────────

@router.get("/blueprints")
async def list_blueprints() -> List[Dict[str, str]]:
    return [{"name": name, "file": f"{name}.bp"} for name in state.project_state.list_blueprints()]


# ── GET /blueprints/:name ─────────────────────────────────────────────────────

@router.get("/blueprints/{name}")
async def get_blueprint(name: str) -> Dict[str, Any]:
    project = state.project_state
    try:
        path = project.path_for(name)
        if not path.exists():
            raise FileNotFoundError(name)
        data = json.loads(path.read_text(encoding="utf-8"))
        load_document(data)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"Blueprint '{name}' not found")
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail=f"invalid JSON: {exc}")
    except SchemaError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return data


# ── PUT /blueprints/:name ─────────────────────────────────────────────────────

@router.put("/blueprints/{name}")
async def put_blueprint(name: str, document: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    try:
        load_document(document)
    except SchemaError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    path = state.project_state.persist(name, json.dumps(document, indent=2, ensure_ascii=False))
    if path is None:
        raise HTTPException(status_code=400, detail="Blueprint name is empty")
    return {"name": path.stem, "path": str(path)}


# ── POST /blueprints/:name/export ─────────────────────────────────────────────

@router.post("/blueprints/{name}/export")
async def export_blueprint(name: str) -> Dict[str, Any]:
    project = state.project_state
    try:
        document = project.load_document(name)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"Blueprint '{name}' not found")
    except SchemaError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    written = project.export(document.blueprint, project.catalog_for(document.node_definitions))
    return {"files": [p.name for p in written]}
