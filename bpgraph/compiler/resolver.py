"""
Data-Flow Resolver
==================
Turns one input slot of one node into the TypeScript expression that supplies
its value.

    no data edge        → instance override, else declared default, as a literal
    function_parameter  → the parameter name (no temporary)
    entry-node output   → the method parameter named after the output (deltaTime),
                          when the blueprint shape declares that method
    anything else       → the producer's output temporary

Fan-in (several data edges into one slot) resolves to the first edge in
blueprint order and records a `fan-in` diagnostic.

Temporary names are fixed up front for every (node, data output) pair in
blueprint order, so a name never depends on which consumer asked first.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from bpgraph.core.GraphPrimitives import NodeDefinition, NodeInstance
from bpgraph.core.Types import FUNCTION_ENTRY_IDS, LIFECYCLE_HOOKS, BlueprintType, ParamKind

from .diagnostics import DiagnosticLog
from .indexer import ConnectionIndex

logger = logging.getLogger(__name__)

ENTRY_IDS = frozenset(LIFECYCLE_HOOKS) | FUNCTION_ENTRY_IDS
PARAMETER_ID = "function_parameter"

_TS_TYPE_RE = re.compile(r"[A-Za-z_$][\w$<>\[\], |]*")


class SourceExpression(NamedTuple):
    text: str
    ts_type: str
    origin: str                         # "literal" | "parameter" | "temporary"
    producer_id: Optional[str] = None


@dataclass(frozen=True)
class Parameter:
    node_id: str
    name: str
    ts_type: str
    default: Optional[str] = None       # already a TS literal

    def signature(self) -> str:
        entry = f"{self.name}: {self.ts_type}"
        if self.default is not None:
            entry += f" = {self.default}"
        return entry


# ── Literals ──────────────────────────────────────────────────────────────────

def ts_literal(value: Any) -> str:
    """Render a JSON-ish Python value as a TypeScript literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, str):
        return json.dumps(value)
    return json.dumps(value)


def _coerce(value: Any, kind: Optional[ParamKind]) -> Any:
    # Text fields in the editor hand numbers over as strings.
    if kind is ParamKind.NUMBER and isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return value
        return int(number) if number.is_integer() else number
    return value


def literal_type(value: Any, kind: Optional[ParamKind]) -> str:
    if kind is not None and kind.ts_type() != "any":
        return kind.ts_type()
    if value is None:
        return "any"
    return ParamKind.from_value(value).ts_type()


def ts_type_name(raw: Any) -> str:
    """Map a declared parameter type onto a TypeScript type name."""
    text = str(raw or "any").strip()
    try:
        return ParamKind(text.lower()).ts_type()
    except ValueError:
        pass
    return text if _TS_TYPE_RE.fullmatch(text) else "any"


# ── Naming ────────────────────────────────────────────────────────────────────

def _sanitize(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", str(text).lower())


def node_suffix(node: NodeInstance) -> str:
    """Numeric tail of a node id (`node_12` → `12`), else the sanitized id."""
    match = re.search(r"(\d+)$", node.id)
    if match:
        return match.group(1)
    return _sanitize(node.id) or "0"


def identifier(text: Any, fallback: str = "value") -> str:
    ident = re.sub(r"[^\w$]", "_", str(text if text is not None else "").strip())
    if not ident:
        ident = fallback
    if ident[0].isdigit():
        ident = "_" + ident
    return ident


def temp_base_name(node: NodeInstance, definition: Optional[NodeDefinition],
                   param_id: str) -> str:
    prefix = ""
    if definition is not None:
        prefix = _sanitize(definition.name) or _sanitize(definition.id)
    prefix = prefix or _sanitize(node.definition_id) or "node"
    if prefix[0].isdigit():
        prefix = "n" + prefix
    return f"{prefix}_{node_suffix(node)}_{identifier(param_id)}"


class TempAllocator:
    """Owns the (node, output) → temporary-name map for one compilation."""

    def __init__(self, index: ConnectionIndex, diagnostics: DiagnosticLog):
        self.index = index
        self.diagnostics = diagnostics
        self._names: Dict[Tuple[str, str], str] = {}
        self._taken: Dict[str, Tuple[str, str]] = {}
        for node in index.nodes.values():
            definition = index.definition(node)
            if definition is None or definition.id in ENTRY_IDS or definition.id == PARAMETER_ID:
                continue
            for param in definition.data_outputs():
                self.name_for(node, definition, param.id)

    def name_for(self, node: NodeInstance, definition: Optional[NodeDefinition],
                 param_id: str) -> str:
        key = (node.id, param_id)
        if key in self._names:
            return self._names[key]

        base = temp_base_name(node, definition, param_id)
        name, n = base, 2
        while name in self._taken:
            name = f"{base}_{n}"
            n += 1
        if name != base:
            self.diagnostics.add(
                "temp-collision",
                f"Temporary '{base}' is already taken; using '{name}' for {node.id}.{param_id}",
                node.id,
            )
        self._names[key] = name
        self._taken[name] = key
        return name

    def names(self) -> Dict[Tuple[str, str], str]:
        return dict(self._names)


# ── Parameters ────────────────────────────────────────────────────────────────

def collect_parameters(index: ConnectionIndex, diagnostics: DiagnosticLog) -> List[Parameter]:
    """One Parameter per function_parameter instance, in blueprint order."""
    parameters: List[Parameter] = []
    used = set()
    for node in index.instances_of([PARAMETER_ID]):
        base = identifier(node.inputs.get("param_name") or "param", "param")
        name, n = base, 2
        while name in used:
            name = f"{base}_{n}"
            n += 1
        if name != base:
            diagnostics.add("duplicate-parameter",
                            f"Parameter name '{base}' is used twice; renamed to '{name}'",
                            node.id)
        used.add(name)

        ts_type = ts_type_name(node.inputs.get("param_type"))
        default = node.inputs.get("default_value")
        if default is None or default == "":
            rendered = None
        else:
            kind = ParamKind(ts_type) if ts_type in ("number", "string", "boolean") else None
            rendered = ts_literal(_coerce(default, kind))
        parameters.append(Parameter(node.id, name, ts_type, rendered))
    return parameters


# ── Resolver ──────────────────────────────────────────────────────────────────

class DataFlowResolver:
    def __init__(self, index: ConnectionIndex, temps: TempAllocator,
                 parameters: List[Parameter], diagnostics: DiagnosticLog):
        self.index = index
        self.temps = temps
        self.diagnostics = diagnostics
        self.parameters = {p.node_id: p for p in parameters}

    def resolve_value(self, node_id: str, param_id: str) -> SourceExpression:
        node = self.index.instance(node_id)
        if node is None:
            return SourceExpression("undefined", "any", "literal")

        edges = self.index.data_in(node_id, param_id)
        if not edges:
            return self.literal(node, param_id)

        if len(edges) > 1:
            self.diagnostics.add(
                "fan-in",
                f"{node_id}.{param_id} has {len(edges)} incoming connections; "
                f"using '{edges[0].id}'",
                node_id,
            )
        edge = edges[0]
        producer = self.index.instance(edge.from_node_id)
        definition = self.index.definition(producer)

        if definition is not None and definition.id == PARAMETER_ID:
            param = self.parameters[producer.id]
            return SourceExpression(param.name, param.ts_type, "parameter", producer.id)

        output = definition.output(edge.from_param_id) if definition else None
        ts_type = output.kind.ts_type() if output is not None else "any"

        if definition is not None and definition.id in ENTRY_IDS:
            if not self._provides_method_parameters(definition.id):
                self.diagnostics.add(
                    "unbound-entry-output",
                    f"{producer.id}.{edge.from_param_id} is only available inside the "
                    f"'{definition.id}' method of a component",
                    node_id,
                )
                return SourceExpression("undefined", ts_type, "literal")
            return SourceExpression(identifier(edge.from_param_id), ts_type,
                                    "parameter", producer.id)

        name = self.temps.name_for(producer, definition, edge.from_param_id)
        return SourceExpression(name, ts_type, "temporary", producer.id)

    def _provides_method_parameters(self, entry_id: str) -> bool:
        # Function blueprints have one signature; hook outputs exist only as method params.
        if self.index.blueprint.type is BlueprintType.COMPONENT:
            return True
        return entry_id in FUNCTION_ENTRY_IDS

    def literal(self, node: NodeInstance, param_id: str) -> SourceExpression:
        """Unconnected slot: the instance override, else the declared default."""
        definition = self.index.definition(node)
        param = definition.input(param_id) if definition else None
        kind = param.kind if param is not None else None

        if param_id in node.inputs:
            value = _coerce(node.inputs[param_id], kind)
        elif param is not None and param.default_value is not None:
            value = _coerce(param.default_value, kind)
        else:
            return SourceExpression("undefined", literal_type(None, kind), "literal")
        return SourceExpression(ts_literal(value), literal_type(value, kind), "literal")

    def is_connected(self, node_id: str, param_id: str) -> bool:
        return bool(self.index.data_in(node_id, param_id))
