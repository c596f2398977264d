"""
Blueprint document: JSON Schema + Validator
===========================================
Defines the persisted `.bp` format and a lightweight validator that runs
without any third-party JSON Schema library.

Document format
---------------

    {
      "version": "1.0.0",                        // format version (str, required)
      "name":    "PlayerController",             // display name (str, required)
      "blueprint": {
        "id":   "blueprint_1",                   // (str, required)
        "name": "PlayerController",              // (str, required)
        "type": "component",                     // "function" | "component" (optional → function)
        "description": "...",                    // (str, optional)
        "variables": { "speed": 5 },             // (object, optional)
        "nodes": [
          {
            "id":           "node_3",            // unique within the blueprint (str, required)
            "definitionId": "print",             // catalog id (str, required)
            "name":         "Print",             // (str, optional → definition id)
            "position":     { "x": 120, "y": 80 },
            "inputs":       { "value": 42 },     // literal overrides (object, optional)
            "outputs":      {}                   // preview values (object, optional)
          }
        ],
        "connections": [
          {
            "id": "conn_7",
            "fromNodeId": "node_2", "fromParamId": "exec",
            "toNodeId":   "node_3", "toParamId":   "exec"
          }
        ]
      },
      "nodeDefinitions": [
        {
          "id": "print", "name": "Print", "category": "Event",
          "description": "...", "color": "#4CAF50",
          "inputs":  [ { "id": "exec", "name": "Exec", "type": "exec" }, ... ],
          "outputs": [ ... ]
        }
      ],
      "metadata": {
        "createdAt": "2024-01-01T00:00:00Z",     // (str, required)
        "lastModified": "2024-01-01T00:00:00Z",  // (str, optional)
        "author": "...", "description": "..."    // (str, optional)
      }
    }

Connections that point at missing nodes are *not* a schema error: the
compiler reports them as `dangling-connection` diagnostics instead.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Union

FORMAT_VERSION = "1.0.0"

BLUEPRINT_TYPES: frozenset[str] = frozenset({"function", "component"})
PARAM_KINDS: frozenset[str] = frozenset({"string", "number", "boolean", "object", "exec", "select"})


# ── Validation helpers ────────────────────────────────────────────────────────

class SchemaError(ValueError):
    """Raised when a blueprint document fails structural validation."""


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise SchemaError(message)


def _require_keys(obj: Dict, keys: List[str], context: str) -> None:
    for key in keys:
        _require(key in obj, f"{context}: missing required field '{key}'")


def _require_str_fields(obj: Dict, keys: List[str], context: str) -> None:
    for key in keys:
        if key in obj:
            _require(isinstance(obj[key], str), f"{context}.{key} must be a string")


# ── Section validators ───────────────────────────────────────────────────────

def validate_param(param: Any, ctx: str) -> None:
    _require(isinstance(param, dict), f"{ctx}: each param must be a JSON object")
    _require_keys(param, ["id", "name", "type"], ctx)
    _require_str_fields(param, ["id", "name", "type", "description"], ctx)
    _require(param["type"] in PARAM_KINDS,
             f"{ctx}.type must be one of {sorted(PARAM_KINDS)}, got '{param['type']}'")
    if "options" in param and param["options"] is not None:
        _require(isinstance(param["options"], list), f"{ctx}.options must be a list")
    for flag in ("hidden", "noPort"):
        if flag in param:
            _require(isinstance(param[flag], bool), f"{ctx}.{flag} must be a boolean")


def validate_definition(definition: Any, ctx: str) -> None:
    _require(isinstance(definition, dict), f"{ctx}: each definition must be a JSON object")
    _require_keys(definition, ["id", "name", "category"], ctx)
    _require_str_fields(definition, ["id", "name", "category", "description", "color"], ctx)
    for direction in ("inputs", "outputs"):
        params = definition.get(direction, [])
        _require(isinstance(params, list), f"{ctx}.{direction} must be a list")
        seen: set[str] = set()
        for j, param in enumerate(params):
            pctx = f"{ctx}.{direction}[{j}]"
            validate_param(param, pctx)
            _require(param["id"] not in seen, f"{pctx}: duplicate param id '{param['id']}'")
            seen.add(param["id"])


def validate_blueprint(blueprint: Any, ctx: str = "blueprint") -> None:
    _require(isinstance(blueprint, dict), f"{ctx} must be a JSON object")
    _require_keys(blueprint, ["id", "name", "nodes", "connections"], ctx)
    _require_str_fields(blueprint, ["id", "name", "description"], ctx)
    if "type" in blueprint:
        _require(blueprint["type"] in BLUEPRINT_TYPES,
                 f"{ctx}.type must be 'function' or 'component', got '{blueprint['type']}'")
    if "variables" in blueprint:
        _require(isinstance(blueprint["variables"], dict), f"{ctx}.variables must be an object")
    _require(isinstance(blueprint["nodes"], list), f"{ctx}.nodes must be a list")
    _require(isinstance(blueprint["connections"], list), f"{ctx}.connections must be a list")

    # ── Nodes ────────────────────────────────────────────────────────────────

    node_ids: set[str] = set()
    for i, node in enumerate(blueprint["nodes"]):
        nctx = f"{ctx}.nodes[{i}]"
        _require(isinstance(node, dict), f"{nctx}: each node must be a JSON object")
        _require_keys(node, ["id", "definitionId"], nctx)
        _require_str_fields(node, ["id", "definitionId", "name"], nctx)
        _require(node["id"] not in node_ids, f"{nctx}: duplicate node id '{node['id']}'")
        node_ids.add(node["id"])

        for field in ("inputs", "outputs", "position"):
            if field in node:
                _require(isinstance(node[field], dict), f"{nctx}.{field} must be an object")
        if "position" in node:
            for axis in ("x", "y"):
                value = node["position"].get(axis, 0)
                _require(isinstance(value, (int, float)) and not isinstance(value, bool),
                         f"{nctx}.position.{axis} must be a number")

    # ── Connections ──────────────────────────────────────────────────────────

    conn_ids: set[str] = set()
    for i, conn in enumerate(blueprint["connections"]):
        cctx = f"{ctx}.connections[{i}]"
        _require(isinstance(conn, dict), f"{cctx}: each connection must be a JSON object")
        fields = ["id", "fromNodeId", "fromParamId", "toNodeId", "toParamId"]
        _require_keys(conn, fields, cctx)
        for field in fields:
            _require(isinstance(conn[field], str), f"{cctx}.{field} must be a string")
        _require(conn["id"] not in conn_ids, f"{cctx}: duplicate connection id '{conn['id']}'")
        conn_ids.add(conn["id"])


# ── Public validator ─────────────────────────────────────────────────────────

def validate(data: Any) -> None:
    """
    Validate a parsed `.bp` document.

    Args:
        data: A pre-parsed dict (result of json.load / json.loads).

    Raises:
        SchemaError: On any structural violation.
    """
    _require(isinstance(data, dict), "blueprint document must be a JSON object at the top level")
    _require_keys(data, ["version", "name", "blueprint", "nodeDefinitions", "metadata"], "document")
    _require(isinstance(data["version"], str), "version must be a string")
    _require(isinstance(data["name"], str), "name must be a string")

    validate_blueprint(data["blueprint"])

    _require(isinstance(data["nodeDefinitions"], list), "nodeDefinitions must be a list")
    definition_ids: set[str] = set()
    for i, definition in enumerate(data["nodeDefinitions"]):
        ctx = f"nodeDefinitions[{i}]"
        validate_definition(definition, ctx)
        _require(definition["id"] not in definition_ids,
                 f"{ctx}: duplicate definition id '{definition['id']}'")
        definition_ids.add(definition["id"])

    metadata = data["metadata"]
    _require(isinstance(metadata, dict), "metadata must be an object")
    _require_keys(metadata, ["createdAt"], "metadata")
    _require_str_fields(metadata, ["createdAt", "lastModified", "author", "description"], "metadata")


def validate_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load and validate a `.bp` file.

    Returns:
        The parsed dict on success.

    Raises:
        FileNotFoundError: If the file does not exist.
        SchemaError: If the file is not valid JSON or the structure is invalid.
    """
    path = Path(path)
    with path.open(encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise SchemaError(f"{path}: invalid JSON ({exc})") from exc
    validate(data)
    return data


__all__ = ["FORMAT_VERSION", "SchemaError", "validate", "validate_blueprint",
           "validate_definition", "validate_file"]
