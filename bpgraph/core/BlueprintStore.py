"""
BlueprintStore: the only writer of Blueprint objects.

Holds the open blueprints (one per editor tab) and a DefinitionCatalog.  The
compiler never goes through the store; it receives a `snapshot()` instead so
edits made while compiling cannot be observed half-way.
"""
from __future__ import annotations

import copy
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .Catalog import DefinitionCatalog
from .GraphPrimitives import Blueprint, NodeConnection, NodeInstance
from .Types import LIFECYCLE_HOOKS, BlueprintType

logger = logging.getLogger(__name__)


# Initial `inputs` for freshly placed constant nodes.
_CONSTANT_DEFAULTS: Dict[str, Any] = {
    "number_constant": 0,
    "string_constant": "",
    "boolean_constant": False,
}

# Canvas positions for the scaffolded lifecycle nodes of a component.
_HOOK_POSITIONS = {
    "onLoad": (100, 100), "start": (100, 200), "update": (100, 300),
    "lateUpdate": (100, 400), "onEnable": (400, 100), "onDisable": (400, 200),
    "onDestroy": (400, 300),
}


@dataclass
class OpenBlueprint:
    blueprint: Blueprint
    dirty: bool = False


class BlueprintStore:
    """Holds open blueprints and mutates them on behalf of the editor."""

    def __init__(self, catalog: Optional[DefinitionCatalog] = None) -> None:
        self.catalog = catalog if catalog is not None else DefinitionCatalog.builtin()
        self._open: Dict[str, OpenBlueprint] = {}
        self._ids = itertools.count(1)

    # ── Id generation ───────────────────────────────────────────────────────

    def _next_id(self, prefix: str) -> str:
        # Node ids end in a number; the compiler's temporary names rely on it.
        return f"{prefix}_{next(self._ids)}"

    # ── Blueprints ──────────────────────────────────────────────────────────

    def create_blueprint(self, name: str = "NewBlueprint",
                         type: BlueprintType = BlueprintType.COMPONENT) -> Blueprint:
        """Create a blueprint with its default entry nodes already placed."""
        blueprint = Blueprint(id=self._next_id("blueprint"), name=name, type=BlueprintType(type))

        if blueprint.type is BlueprintType.COMPONENT:
            for hook in LIFECYCLE_HOOKS:
                x, y = _HOOK_POSITIONS[hook]
                self._place(blueprint, hook, {"x": x, "y": y})
        else:
            self._place(blueprint, "function_start", {"x": 100, "y": 200})

        self._open[blueprint.id] = OpenBlueprint(blueprint)
        logger.debug(f"created {blueprint.type.value} blueprint '{name}' ({blueprint.id})")
        return blueprint

    def open_blueprint(self, blueprint: Blueprint) -> Blueprint:
        """Adopt an existing (e.g. freshly loaded) blueprint."""
        if blueprint.id in self._open:
            raise ValueError(f"Blueprint '{blueprint.id}' is already open")
        self._open[blueprint.id] = OpenBlueprint(blueprint)
        return blueprint

    def close_blueprint(self, blueprint_id: str) -> Optional[Blueprint]:
        entry = self._open.pop(blueprint_id, None)
        return entry.blueprint if entry else None

    def get(self, blueprint_id: str) -> Blueprint:
        return self._entry(blueprint_id).blueprint

    def blueprints(self) -> List[Blueprint]:
        return [entry.blueprint for entry in self._open.values()]

    def snapshot(self, blueprint_id: str) -> Blueprint:
        """Deep copy safe to hand to the compiler while editing continues."""
        return copy.deepcopy(self.get(blueprint_id))

    def is_dirty(self, blueprint_id: str) -> bool:
        return self._entry(blueprint_id).dirty

    def mark_clean(self, blueprint_id: str) -> None:
        self._entry(blueprint_id).dirty = False

    def _entry(self, blueprint_id: str) -> OpenBlueprint:
        entry = self._open.get(blueprint_id)
        if entry is None:
            raise KeyError(f"Blueprint '{blueprint_id}' is not open")
        return entry

    # ── Nodes ───────────────────────────────────────────────────────────────

    def _place(self, blueprint: Blueprint, definition_id: str,
               position: Dict[str, float]) -> NodeInstance:
        definition = self.catalog.find(definition_id)
        node = NodeInstance(
            id=self._next_id("node"),
            definition_id=definition_id,
            name=definition.name if definition else definition_id,
            position=dict(position),
        )
        if definition_id in _CONSTANT_DEFAULTS:
            node.inputs["value"] = _CONSTANT_DEFAULTS[definition_id]
        blueprint.nodes.append(node)
        return node

    def add_node(self, blueprint_id: str, definition_id: str,
                 position: Optional[Dict[str, float]] = None,
                 inputs: Optional[Dict[str, Any]] = None) -> NodeInstance:
        entry = self._entry(blueprint_id)
        if definition_id not in self.catalog:
            raise ValueError(f"Unknown node definition '{definition_id}'")
        node = self._place(entry.blueprint, definition_id, position or {"x": 0, "y": 0})
        if inputs:
            node.inputs.update(inputs)
        entry.dirty = True
        return node

    def set_input(self, blueprint_id: str, node_id: str, param_id: str, value: Any) -> None:
        entry = self._entry(blueprint_id)
        node = entry.blueprint.find_instance(node_id)
        if node is None:
            raise KeyError(f"Node '{node_id}' not found")
        node.inputs[param_id] = value
        entry.dirty = True

    def move_node(self, blueprint_id: str, node_id: str, x: float, y: float) -> None:
        entry = self._entry(blueprint_id)
        node = entry.blueprint.find_instance(node_id)
        if node is None:
            raise KeyError(f"Node '{node_id}' not found")
        node.position = {"x": x, "y": y}
        entry.dirty = True

    def remove_node(self, blueprint_id: str, node_id: str) -> bool:
        """Remove a node and every connection touching it."""
        entry = self._entry(blueprint_id)
        blueprint = entry.blueprint
        before = len(blueprint.nodes)
        blueprint.nodes = [n for n in blueprint.nodes if n.id != node_id]
        blueprint.connections = [c for c in blueprint.connections if not c.touches(node_id)]
        removed = len(blueprint.nodes) != before
        if removed:
            entry.dirty = True
        return removed

    # ── Connections ─────────────────────────────────────────────────────────

    def add_connection(self, blueprint_id: str, from_node_id: str, from_param_id: str,
                       to_node_id: str, to_param_id: str) -> NodeConnection:
        entry = self._entry(blueprint_id)
        blueprint = entry.blueprint
        for node_id in (from_node_id, to_node_id):
            if blueprint.find_instance(node_id) is None:
                raise KeyError(f"Node '{node_id}' not found")

        connection = NodeConnection(
            id=self._next_id("conn"),
            from_node_id=from_node_id,
            from_param_id=from_param_id,
            to_node_id=to_node_id,
            to_param_id=to_param_id,
        )
        blueprint.connections.append(connection)
        entry.dirty = True
        return connection

    def remove_connection(self, blueprint_id: str, connection_id: str) -> bool:
        entry = self._entry(blueprint_id)
        blueprint = entry.blueprint
        before = len(blueprint.connections)
        blueprint.connections = [c for c in blueprint.connections if c.id != connection_id]
        removed = len(blueprint.connections) != before
        if removed:
            entry.dirty = True
        return removed

    # ── Variables ───────────────────────────────────────────────────────────

    def set_variable(self, blueprint_id: str, name: str, value: Any) -> None:
        entry = self._entry(blueprint_id)
        entry.blueprint.variables[name] = value
        entry.dirty = True

    def remove_variable(self, blueprint_id: str, name: str) -> None:
        entry = self._entry(blueprint_id)
        if name in entry.blueprint.variables:
            del entry.blueprint.variables[name]
            entry.dirty = True
