"""
Blueprint document (de)serialiser
=================================
Converts between the graph dataclasses and the persisted `.bp` JSON document
described in schema.py.

Pipeline
--------
    Blueprint + definitions  →  [serialize]    →  .bp JSON text
    .bp JSON text            →  [deserialize]  →  SerializedBlueprint

`deserialize` validates the whole document before building anything, so a
malformed file either loads completely or raises SchemaError.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from bpgraph.core.GraphPrimitives import (
    Blueprint, NodeConnection, NodeDefinition, NodeInstance, NodeParam,
)
from bpgraph.core.Types import BlueprintType, ParamKind

from .schema import FORMAT_VERSION, SchemaError, validate, validate_blueprint

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class DocumentMetadata:
    created_at: str = field(default_factory=_now)
    last_modified: str = field(default_factory=_now)
    author: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"createdAt": self.created_at, "lastModified": self.last_modified}
        if self.author is not None:
            data["author"] = self.author
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentMetadata":
        return cls(
            created_at=data["createdAt"],
            last_modified=data.get("lastModified", data["createdAt"]),
            author=data.get("author"),
            description=data.get("description"),
        )


@dataclass
class SerializedBlueprint:
    version: str
    name: str
    blueprint: Blueprint
    node_definitions: List[NodeDefinition]
    metadata: DocumentMetadata


# ── Params & definitions ─────────────────────────────────────────────────────

def param_to_dict(param: NodeParam) -> Dict[str, Any]:
    data: Dict[str, Any] = {"id": param.id, "name": param.name, "type": param.kind.value}
    if param.default_value is not None:
        data["defaultValue"] = param.default_value
    if param.description is not None:
        data["description"] = param.description
    if param.options is not None:
        data["options"] = list(param.options)
    if param.hidden:
        data["hidden"] = True
    return data


def param_from_dict(data: Dict[str, Any]) -> NodeParam:
    options = data.get("options")
    return NodeParam(
        id=data["id"],
        name=data["name"],
        kind=ParamKind(data["type"]),
        default_value=data.get("defaultValue"),
        options=tuple(options) if options is not None else None,
        description=data.get("description"),
        hidden=bool(data.get("hidden", data.get("noPort", False))),
    )


def definition_to_dict(definition: NodeDefinition) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": definition.id,
        "name": definition.name,
        "category": definition.category,
        "inputs": [param_to_dict(p) for p in definition.inputs],
        "outputs": [param_to_dict(p) for p in definition.outputs],
    }
    if definition.description is not None:
        data["description"] = definition.description
    if definition.color is not None:
        data["color"] = definition.color
    return data


def definition_from_dict(data: Dict[str, Any]) -> NodeDefinition:
    return NodeDefinition(
        id=data["id"],
        name=data["name"],
        category=data["category"],
        inputs=tuple(param_from_dict(p) for p in data.get("inputs", [])),
        outputs=tuple(param_from_dict(p) for p in data.get("outputs", [])),
        description=data.get("description"),
        color=data.get("color"),
    )


# ── Blueprints ────────────────────────────────────────────────────────────────

def blueprint_to_dict(blueprint: Blueprint) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": blueprint.id,
        "name": blueprint.name,
        "type": blueprint.type.value,
        "nodes": [
            {
                "id": n.id,
                "definitionId": n.definition_id,
                "name": n.name,
                "position": dict(n.position),
                "inputs": dict(n.inputs),
                "outputs": dict(n.outputs),
            }
            for n in blueprint.nodes
        ],
        "connections": [
            {
                "id": c.id,
                "fromNodeId": c.from_node_id,
                "fromParamId": c.from_param_id,
                "toNodeId": c.to_node_id,
                "toParamId": c.to_param_id,
            }
            for c in blueprint.connections
        ],
        "variables": dict(blueprint.variables),
    }
    if blueprint.description is not None:
        data["description"] = blueprint.description
    return data


def blueprint_from_dict(data: Dict[str, Any], *, validated: bool = False) -> Blueprint:
    """Build a Blueprint from its dict form; validates unless told it already was."""
    if not validated:
        validate_blueprint(data)
    return Blueprint(
        id=data["id"],
        name=data["name"],
        type=BlueprintType(data.get("type", BlueprintType.FUNCTION.value)),
        nodes=[
            NodeInstance(
                id=n["id"],
                definition_id=n["definitionId"],
                name=n.get("name", n["definitionId"]),
                position=dict(n.get("position", {"x": 0, "y": 0})),
                inputs=dict(n.get("inputs", {})),
                outputs=dict(n.get("outputs", {})),
            )
            for n in data["nodes"]
        ],
        connections=[
            NodeConnection(
                id=c["id"],
                from_node_id=c["fromNodeId"],
                from_param_id=c["fromParamId"],
                to_node_id=c["toNodeId"],
                to_param_id=c["toParamId"],
            )
            for c in data["connections"]
        ],
        variables=dict(data.get("variables", {})),
        description=data.get("description"),
    )


# ── Documents ─────────────────────────────────────────────────────────────────

def serialize(blueprint: Blueprint, definitions: Iterable[NodeDefinition],
              metadata: Optional[Union[DocumentMetadata, Dict[str, Any]]] = None) -> str:
    """Render a `.bp` document.  `metadata` may override any metadata field."""
    if metadata is None:
        meta = DocumentMetadata()
    elif isinstance(metadata, DocumentMetadata):
        meta = metadata
    else:
        meta = DocumentMetadata.from_dict({**DocumentMetadata().to_dict(), **metadata})

    document = {
        "version": FORMAT_VERSION,
        "name": blueprint.name,
        "blueprint": blueprint_to_dict(blueprint),
        "nodeDefinitions": [definition_to_dict(d) for d in definitions],
        "metadata": meta.to_dict(),
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def load_document(data: Dict[str, Any]) -> SerializedBlueprint:
    validate(data)
    if data["version"] != FORMAT_VERSION:
        logger.warning(f"document version {data['version']} differs from {FORMAT_VERSION}")
    return SerializedBlueprint(
        version=data["version"],
        name=data["name"],
        blueprint=blueprint_from_dict(data["blueprint"], validated=True),
        node_definitions=[definition_from_dict(d) for d in data["nodeDefinitions"]],
        metadata=DocumentMetadata.from_dict(data["metadata"]),
    )


def deserialize(text: str) -> SerializedBlueprint:
    """
    Parse and validate a `.bp` document.

    Raises:
        SchemaError: If the text is not JSON or the structure is invalid.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SchemaError(f"invalid JSON: {exc}") from exc
    return load_document(data)


def load_file(path: Union[str, Path]) -> SerializedBlueprint:
    path = Path(path)
    return deserialize(path.read_text(encoding="utf-8"))
