"""
Control-Flow Traverser
======================
Linearizes execution edges into nested statement blocks.

The walk is a guarded depth-first traversal driven by an explicit LIFO work
list of (node_id, Scope) items, so graph depth is bounded by memory rather
than the interpreter stack.

Scopes
------
A Scope is one layer of two sets plus the Block statements are written to:

  visited    exec nodes already emitted on this path (cycle guard)
  evaluated  pure data nodes whose temporaries are assigned on this path

Branching templates (sequence, parallel, if, for, switch) give every branch a
new layer over the current one: the branch sees everything emitted before the
branching node but never its siblings' emissions.  Plain fan-out stays in the
same scope.

Pure data nodes (no exec ports) are never scheduled.  They are evaluated when
a consumer first reads them, in dependency order (iterative post-order), and
their assignments land just before the consumer's statement.

Failure containment
-------------------
Each node's statements are staged and only committed when its template
returns.  An exception inside a template becomes an `emit-error` diagnostic
and a comment; the path continues along the node's exec outputs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from bpgraph.core.GraphPrimitives import NodeConnection, NodeDefinition, NodeInstance

from .diagnostics import DiagnosticLog
from .indexer import ConnectionIndex
from .resolver import ENTRY_IDS, PARAMETER_ID, DataFlowResolver, SourceExpression, TempAllocator
from .templates import Block, get_template

logger = logging.getLogger(__name__)


# ── Scopes ────────────────────────────────────────────────────────────────────

class Scope:
    def __init__(self, block: Block, parent: Optional["Scope"] = None):
        self.block = block
        self.parent = parent
        self._visited: Set[str] = set()
        self._evaluated: Set[str] = set()

    def branch(self, block: Block) -> "Scope":
        return Scope(block, self)

    def is_visited(self, node_id: str) -> bool:
        scope = self
        while scope is not None:
            if node_id in scope._visited:
                return True
            scope = scope.parent
        return False

    def mark_visited(self, node_id: str) -> None:
        self._visited.add(node_id)

    def is_evaluated(self, node_id: str) -> bool:
        scope = self
        while scope is not None:
            if node_id in scope._evaluated:
                return True
            scope = scope.parent
        return False

    def mark_evaluated(self, node_ids) -> None:
        self._evaluated.update(node_ids)


@dataclass
class TraversalResult:
    block: Block
    helpers: Set[str] = field(default_factory=set)
    temporaries: Dict[str, str] = field(default_factory=dict)     # name → TS type
    is_async: bool = False
    returns: List[str] = field(default_factory=list)               # reached return nodes
    uses_variables: bool = False
    return_node_id: Optional[str] = None
    return_source: Optional[SourceExpression] = None


class _Staging:
    """Statements and evaluations of one node, committed only on success."""

    def __init__(self, evaluated: Optional[Set[str]] = None):
        self.items: List = []
        self.evaluated: Set[str] = evaluated if evaluated is not None else set()

    def commit(self, scope: Scope) -> None:
        scope.block.items.extend(self.items)
        scope.mark_evaluated(self.evaluated)


# ── Emission context ──────────────────────────────────────────────────────────

class EmitContext:
    """What a template sees while emitting one node."""

    def __init__(self, traverser: "Traverser", node: NodeInstance, definition: NodeDefinition,
                 scope: Scope, result: TraversalResult, staging: _Staging):
        self.traverser = traverser
        self.node = node
        self.definition = definition
        self.scope = scope
        self.result = result
        self.staging = staging
        self.scheduled: List[Tuple[str, Scope]] = []

    # inputs / outputs

    def source(self, param_id: str) -> SourceExpression:
        src = self.traverser.resolver.resolve_value(self.node.id, param_id)
        if src.origin == "temporary":
            self.declare(src.text, src.ts_type)
            self.traverser.pull(self, src.producer_id)
        return src

    def value(self, param_id: str) -> str:
        return self.source(param_id).text

    def is_connected(self, param_id: str) -> bool:
        return self.traverser.resolver.is_connected(self.node.id, param_id)

    def output(self, param_id: str) -> str:
        name = self.traverser.temps.name_for(self.node, self.definition, param_id)
        param = self.definition.output(param_id)
        self.declare(name, param.kind.ts_type() if param is not None else "any")
        return name

    def declare(self, name: str, ts_type: str) -> None:
        self.result.temporaries.setdefault(name, ts_type)

    # statements

    def line(self, text: str) -> None:
        self.staging.items.append(text)

    def comment(self, text: str) -> None:
        self.staging.items.append(f"// {text}")

    def open_block(self, header: Optional[str] = None, footer: Optional[str] = "}") -> Block:
        block = Block(header, footer if header is not None else None)
        self.staging.items.append(block)
        return block

    # bookkeeping

    def use_helper(self, name: str) -> str:
        self.result.helpers.add(name)
        return name

    def mark_async(self) -> None:
        self.result.is_async = True

    def record_return(self) -> None:
        self.result.returns.append(self.node.id)

    def variables(self) -> str:
        self.result.uses_variables = True
        return self.traverser.variables_ref

    def diagnostic(self, code: str, message: str, severity: str = "warning") -> None:
        self.traverser.diagnostics.add(code, message, self.node.id, severity)

    # scheduling

    def is_visited(self, node_id: str) -> bool:
        return self.scope.is_visited(node_id)

    def is_evaluated(self, node_id: str) -> bool:
        return node_id in self.staging.evaluated or self.scope.is_evaluated(node_id)

    def exec_edges(self, port_id: str) -> List[NodeConnection]:
        return self.traverser.index.exec_targets(self.node.id, port_id)

    def follow(self, port_id: str) -> None:
        """Continue along one exec port in the current scope."""
        for edge in self.exec_edges(port_id):
            self.scheduled.append((edge.to_node_id, self.scope))

    def branch(self, port_id: str, block: Block) -> None:
        """Run one exec port in a new scope layer writing into `block`."""
        child = self.scope.branch(block)
        for edge in self.exec_edges(port_id):
            self.scheduled.append((edge.to_node_id, child))

    def branch_to(self, node_id: str, block: Block) -> None:
        self.scheduled.append((node_id, self.scope.branch(block)))

    def continue_all(self) -> None:
        """Every exec-out edge, fan-out order, current scope."""
        for edge in self.traverser.index.exec_out(self.node.id):
            self.scheduled.append((edge.to_node_id, self.scope))


# ── Traverser ─────────────────────────────────────────────────────────────────

class Traverser:
    def __init__(self, index: ConnectionIndex, resolver: DataFlowResolver,
                 temps: TempAllocator, diagnostics: DiagnosticLog,
                 variables_ref: str = "variables"):
        self.index = index
        self.resolver = resolver
        self.temps = temps
        self.diagnostics = diagnostics
        self.variables_ref = variables_ref

    def run(self, entry_ids: Sequence[str]) -> TraversalResult:
        """Walk from each entry in turn; all entries share one routine body."""
        result = TraversalResult(block=Block())
        for entry_id in entry_ids:
            self._walk(entry_id, Scope(result.block.open()), result)
        return result

    def emit_return(self, result: TraversalResult, node_id: str) -> SourceExpression:
        """Resolve a return node's value at the end of the routine body."""
        node = self.index.instance(node_id)
        definition = self.index.definition(node)
        scope = Scope(result.block.open())
        staging = _Staging()
        ctx = EmitContext(self, node, definition, scope, result, staging)
        source = ctx.source("value")
        staging.commit(scope)
        result.return_node_id = node_id
        result.return_source = source
        return source

    # ── Walk ─────────────────────────────────────────────────────────────

    def _walk(self, entry_id: str, scope: Scope, result: TraversalResult) -> None:
        work: List[Tuple[str, Scope]] = [(entry_id, scope)]
        while work:
            node_id, scope = work.pop()
            if scope.is_visited(node_id):
                logger.debug(f"skip {node_id}: already on this path")
                continue
            scope.mark_visited(node_id)
            scheduled = self._emit_node(node_id, scope, result)
            work.extend(reversed(scheduled))

    def _emit_node(self, node_id: str, scope: Scope,
                   result: TraversalResult) -> List[Tuple[str, Scope]]:
        node = self.index.instance(node_id)
        definition = self.index.definition(node)
        if definition is None:
            self.diagnostics.add(
                "unknown-definition",
                f"Node '{node_id}' uses unknown definition '{node.definition_id}'",
                node_id,
            )
            scope.block.add(f"// Unknown node type: {node.definition_id} ({node_id})")
            return []

        logger.debug(f"emit {definition.id} ({node_id})")
        staging = _Staging()
        ctx = EmitContext(self, node, definition, scope, result, staging)
        try:
            get_template(definition.id).emit(ctx)
        except Exception as exc:
            logger.exception(f"template for '{definition.id}' failed on {node_id}")
            self.diagnostics.add("emit-error", f"{definition.id} ({node_id}): {exc}",
                                 node_id, severity="error")
            scope.block.add(f"// Error emitting {definition.id} ({node_id}): {exc}")
            return [(edge.to_node_id, scope) for edge in self.index.exec_out(node_id)]

        staging.commit(scope)
        return ctx.scheduled

    # ── Data pull ────────────────────────────────────────────────────────

    @staticmethod
    def is_pure(definition: Optional[NodeDefinition]) -> bool:
        return (definition is not None
                and not definition.has_exec_ports
                and definition.id not in ENTRY_IDS
                and definition.id != PARAMETER_ID)

    def pull(self, ctx: EmitContext, root_id: str) -> None:
        """Evaluate `root_id` and its pure producers not yet evaluated on this path."""
        order: List[str] = []
        state: Dict[str, int] = {}          # 1 = expanding, 2 = done
        stack: List[Tuple[str, bool]] = [(root_id, False)]
        while stack:
            node_id, expanded = stack.pop()
            if expanded:
                state[node_id] = 2
                order.append(node_id)
                continue
            if state.get(node_id) == 2:
                continue
            if state.get(node_id) == 1:
                self.diagnostics.add("data-cycle", f"Data cycle through node '{node_id}'", node_id)
                ctx.comment(f"Data cycle through {node_id}")
                continue

            node = self.index.instance(node_id)
            definition = self.index.definition(node)
            if (definition is None or get_template(definition.id).cacheable) \
                    and ctx.is_evaluated(node_id):
                continue
            if definition is None:
                self.diagnostics.add(
                    "unknown-definition",
                    f"Node '{node_id}' uses unknown definition '{node.definition_id}'",
                    node_id,
                )
                ctx.comment(f"Unknown node type: {node.definition_id} ({node_id})")
                state[node_id] = 2
                continue
            if not self.is_pure(definition):
                continue

            state[node_id] = 1
            stack.append((node_id, True))
            for param in reversed(definition.data_inputs()):
                edges = self.index.data_in(node_id, param.id)
                if edges:
                    stack.append((edges[0].from_node_id, False))

        for node_id in order:
            self._evaluate(ctx, node_id)

    def _evaluate(self, ctx: EmitContext, node_id: str) -> None:
        node = self.index.instance(node_id)
        definition = self.index.definition(node)
        ctx.staging.evaluated.add(node_id)
        staging = _Staging(ctx.staging.evaluated)
        sub = EmitContext(self, node, definition, ctx.scope, ctx.result, staging)
        try:
            get_template(definition.id).emit_inline(sub)
        except Exception as exc:
            logger.exception(f"template for '{definition.id}' failed on {node_id}")
            self.diagnostics.add("emit-error", f"{definition.id} ({node_id}): {exc}",
                                 node_id, severity="error")
            ctx.comment(f"Error emitting {definition.id} ({node_id}): {exc}")
            return
        ctx.staging.items.extend(staging.items)
