"""
Connection Indexer
==================
Per-compilation lookup tables over a Blueprint snapshot.

    node id                     → NodeInstance
    "{fromNodeId}:{fromParamId}" → [NodeConnection, ...]   (blueprint order)
    "{toNodeId}:{toParamId}"     → [NodeConnection, ...]   (blueprint order)
    node id                     → outgoing connections     (blueprint order)

Blueprint order is significant: it is the fan-out firing order of a plain
exec output and the "first found" order for fan-in.

Exec vs data is decided by the declared kind of the *source* output param in
the node's definition, never by the param id's spelling.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Optional

from bpgraph.core.Catalog import DefinitionCatalog
from bpgraph.core.GraphPrimitives import Blueprint, NodeConnection, NodeDefinition, NodeInstance

from .diagnostics import DiagnosticLog

logger = logging.getLogger(__name__)


def endpoint_key(node_id: str, param_id: str) -> str:
    return f"{node_id}:{param_id}"


class ConnectionIndex:
    def __init__(self, blueprint: Blueprint, catalog: DefinitionCatalog,
                 diagnostics: Optional[DiagnosticLog] = None):
        self.blueprint = blueprint
        self.catalog = catalog
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()

        self.nodes: Dict[str, NodeInstance] = {}
        for node in blueprint.nodes:
            if node.id in self.nodes:
                self.diagnostics.add(
                    "duplicate-node",
                    f"Node id '{node.id}' appears more than once; the first one is used",
                    node.id,
                )
                continue
            self.nodes[node.id] = node

        self.outgoing: Dict[str, List[NodeConnection]] = defaultdict(list)
        self.incoming: Dict[str, List[NodeConnection]] = defaultdict(list)
        self.by_source_node: Dict[str, List[NodeConnection]] = defaultdict(list)

        for conn in blueprint.connections:
            missing = [nid for nid in (conn.from_node_id, conn.to_node_id) if nid not in self.nodes]
            if missing:
                self.diagnostics.add(
                    "dangling-connection",
                    f"Connection '{conn.id}' references missing node(s) {', '.join(missing)}",
                )
                continue
            self.outgoing[endpoint_key(conn.from_node_id, conn.from_param_id)].append(conn)
            self.incoming[endpoint_key(conn.to_node_id, conn.to_param_id)].append(conn)
            self.by_source_node[conn.from_node_id].append(conn)

        logger.debug(f"indexed {len(self.nodes)} nodes, "
                     f"{sum(len(v) for v in self.outgoing.values())} connections")

    # ── Lookups ───────────────────────────────────────────────────────────

    def instance(self, node_id: str) -> Optional[NodeInstance]:
        return self.nodes.get(node_id)

    def definition(self, node: Optional[NodeInstance]) -> Optional[NodeDefinition]:
        if node is None:
            return None
        return self.catalog.find(node.definition_id)

    def definition_of(self, node_id: str) -> Optional[NodeDefinition]:
        return self.definition(self.instance(node_id))

    def instances_of(self, definition_ids) -> List[NodeInstance]:
        """Instances whose definition id is in `definition_ids`, blueprint order."""
        wanted = set(definition_ids)
        return [n for n in self.nodes.values() if n.definition_id in wanted]

    # ── Edge views ────────────────────────────────────────────────────────

    def connections_from(self, node_id: str, param_id: str) -> List[NodeConnection]:
        return self.outgoing.get(endpoint_key(node_id, param_id), [])

    def connections_to(self, node_id: str, param_id: str) -> List[NodeConnection]:
        return self.incoming.get(endpoint_key(node_id, param_id), [])

    def is_exec_output(self, node_id: str, param_id: str) -> bool:
        definition = self.definition_of(node_id)
        if definition is None:
            return False
        param = definition.output(param_id)
        return param is not None and param.is_exec

    def exec_out(self, node_id: str) -> List[NodeConnection]:
        """All execution-out edges of a node, in blueprint order."""
        definition = self.definition_of(node_id)
        if definition is None:
            return []
        exec_ports = {p.id for p in definition.exec_outputs()}
        return [c for c in self.by_source_node.get(node_id, []) if c.from_param_id in exec_ports]

    def exec_targets(self, node_id: str, param_id: str) -> List[NodeConnection]:
        """Execution edges leaving one exec output port."""
        if not self.is_exec_output(node_id, param_id):
            return []
        return self.connections_from(node_id, param_id)

    def data_in(self, node_id: str, param_id: str) -> List[NodeConnection]:
        """Data edges arriving at one input slot (exec edges filtered out)."""
        return [c for c in self.connections_to(node_id, param_id)
                if not self.is_exec_output(c.from_node_id, c.from_param_id)]
