"""
Blueprint graph primitives
==========================
Plain dataclasses describing a blueprint graph.  The compiler, the store and
the serializer all share these; none of them hold live editor objects.

    NodeDefinition  ─ the *class* of a node (ports + metadata), immutable
    NodeInstance    ─ one placed occurrence of a definition
    NodeConnection  ─ directed edge  from (node, output param) → to (node, input param)
    Blueprint       ─ the aggregate: nodes + connections + variables
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .Types import BlueprintType, ParamKind


# ── Params & definitions ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class NodeParam:
    id: str
    name: str
    kind: ParamKind
    default_value: Any = None
    options: Optional[tuple] = None     # choices when kind == SELECT
    description: Optional[str] = None
    hidden: bool = False                # no visual port (metadata input)

    @property
    def is_exec(self) -> bool:
        return self.kind is ParamKind.EXEC


@dataclass(frozen=True)
class NodeDefinition:
    id: str
    name: str
    category: str
    inputs: tuple = ()
    outputs: tuple = ()
    description: Optional[str] = None
    color: Optional[str] = None

    def input(self, param_id: str) -> Optional[NodeParam]:
        return next((p for p in self.inputs if p.id == param_id), None)

    def output(self, param_id: str) -> Optional[NodeParam]:
        return next((p for p in self.outputs if p.id == param_id), None)

    def exec_outputs(self) -> List[NodeParam]:
        return [p for p in self.outputs if p.is_exec]

    def data_outputs(self) -> List[NodeParam]:
        return [p for p in self.outputs if not p.is_exec]

    def data_inputs(self) -> List[NodeParam]:
        return [p for p in self.inputs if not p.is_exec]

    @property
    def has_exec_ports(self) -> bool:
        return any(p.is_exec for p in self.inputs) or any(p.is_exec for p in self.outputs)

    def check_unique_params(self) -> None:
        """Raise ValueError when a param id repeats within one direction."""
        for direction, params in (("input", self.inputs), ("output", self.outputs)):
            seen = set()
            for p in params:
                if p.id in seen:
                    raise ValueError(
                        f"Definition '{self.id}' declares {direction} param '{p.id}' twice"
                    )
                seen.add(p.id)


# ── Instances & connections ──────────────────────────────────────────────────

@dataclass
class NodeInstance:
    id: str
    definition_id: str
    name: str
    position: Dict[str, float] = field(default_factory=lambda: {"x": 0, "y": 0})
    inputs: Dict[str, Any] = field(default_factory=dict)
    outputs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class NodeConnection:
    id: str
    from_node_id: str
    from_param_id: str
    to_node_id: str
    to_param_id: str

    def touches(self, node_id: str) -> bool:
        return self.from_node_id == node_id or self.to_node_id == node_id

    def __repr__(self):
        return (f"NodeConnection({self.from_node_id}.{self.from_param_id} -> "
                f"{self.to_node_id}.{self.to_param_id})")


# ── Blueprint ────────────────────────────────────────────────────────────────

@dataclass
class Blueprint:
    id: str
    name: str
    type: BlueprintType = BlueprintType.FUNCTION
    nodes: List[NodeInstance] = field(default_factory=list)
    connections: List[NodeConnection] = field(default_factory=list)
    variables: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None

    def __post_init__(self):
        self.type = BlueprintType(self.type)

    # ── Convenience queries ────────────────────────────────────────────────

    def find_instance(self, node_id: str) -> Optional[NodeInstance]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def connections_from(self, node_id: str, param_id: str) -> List[NodeConnection]:
        return [c for c in self.connections
                if c.from_node_id == node_id and c.from_param_id == param_id]

    def connections_to(self, node_id: str, param_id: str) -> List[NodeConnection]:
        return [c for c in self.connections
                if c.to_node_id == node_id and c.to_param_id == param_id]

    def connections_touching(self, node_id: str) -> List[NodeConnection]:
        return [c for c in self.connections if c.touches(node_id)]
