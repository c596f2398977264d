"""
Program Assembler
=================
Wraps traversal output in the shell the blueprint type calls for.

Function blueprint
------------------
    /** header */
    import { add, log } from './BlueprintHelpers'

    const variables: Record<string, any> = { ... }     (when used)

    export [async] function BP_<name>(x: number): Ret {
      let <temporaries>
      <entry blocks>
      return <expr>
    }

Component blueprint
-------------------
    /** header */
    import { _decorator, Component } from 'cc'
    import { log } from './BlueprintHelpers'

    const { ccclass } = _decorator

    @ccclass('BP_<name>')
    export class BP_<name> extends Component {
      private variables: Record<string, any> = { ... }

      [async] update(deltaTime: number) {
        ...
      }
    }

One method per lifecycle hook that produced any statement, in engine order.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from bpgraph.core.Catalog import DefinitionCatalog
from bpgraph.core.GraphPrimitives import Blueprint, NodeDefinition
from bpgraph.core.Types import FUNCTION_ENTRY_IDS, LIFECYCLE_HOOKS, BlueprintType

from . import helpers
from .diagnostics import Diagnostic, DiagnosticLog
from .indexer import ConnectionIndex
from .resolver import (
    Parameter, DataFlowResolver, TempAllocator, collect_parameters, identifier, ts_literal,
)
from .templates import CodeWriter
from .traverser import TraversalResult, Traverser

logger = logging.getLogger(__name__)

HELPER_MODES = ("import", "inline")


def as_catalog(definitions: Union[DefinitionCatalog, Iterable[NodeDefinition]]
               ) -> DefinitionCatalog:
    """Accept a catalog or a plain list of definitions; the first one per id wins."""
    if isinstance(definitions, DefinitionCatalog):
        return definitions
    catalog = DefinitionCatalog()
    catalog.merge(definitions)
    return catalog


# ── Options / results ─────────────────────────────────────────────────────────

@dataclass
class CompilerOptions:
    helper_mode: str = "import"                 # "import" | "inline"
    helper_module: str = "./BlueprintHelpers"
    function_prefix: str = "BP_"
    indent: str = "  "
    include_timestamp: bool = True
    engine_module: str = "cc"

    def __post_init__(self):
        if self.helper_mode not in HELPER_MODES:
            raise ValueError(f"helper_mode must be one of {HELPER_MODES}, got {self.helper_mode!r}")

    _KEYS = {
        "helperMode": "helper_mode", "helperModule": "helper_module",
        "functionPrefix": "function_prefix", "includeTimestamp": "include_timestamp",
        "engineModule": "engine_module",
    }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CompilerOptions":
        """Build from snake_case or camelCase keys; unknown keys are ignored."""
        kwargs = {}
        for key, value in (data or {}).items():
            name = cls._KEYS.get(key, key)
            if name in cls.__dataclass_fields__ and not name.startswith("_"):
                kwargs[name] = value
        return cls(**kwargs)

    @property
    def helper_filename(self) -> str:
        return self.helper_module.rstrip("/").rsplit("/", 1)[-1] + ".ts"


@dataclass
class CompilationResult:
    code: str
    diagnostics: List[Diagnostic] = field(default_factory=list)
    helpers: List[str] = field(default_factory=list)
    is_async: bool = False
    parameters: List[Parameter] = field(default_factory=list)
    return_type: str = "void"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "helpers": list(self.helpers),
            "isAsync": self.is_async,
            "parameters": [{"name": p.name, "type": p.ts_type, "default": p.default}
                           for p in self.parameters],
            "returnType": self.return_type,
        }


# ── Assembler ─────────────────────────────────────────────────────────────────

class ProgramAssembler:
    def __init__(self, blueprint: Blueprint,
                 catalog: Union[DefinitionCatalog, Iterable[NodeDefinition]],
                 options: Optional[CompilerOptions] = None):
        self.blueprint = blueprint
        self.catalog = catalog = as_catalog(catalog)
        self.options = options or CompilerOptions()
        self.diagnostics = DiagnosticLog()
        self.index = ConnectionIndex(blueprint, catalog, self.diagnostics)
        self.temps = TempAllocator(self.index, self.diagnostics)
        self.parameters = collect_parameters(self.index, self.diagnostics)
        self.resolver = DataFlowResolver(self.index, self.temps, self.parameters, self.diagnostics)

    @property
    def routine_name(self) -> str:
        return self.options.function_prefix + identifier(self.blueprint.name, "Blueprint")

    def assemble(self) -> CompilationResult:
        logger.debug(f"compiling {self.blueprint.type.value} blueprint '{self.blueprint.name}' "
                     f"({len(self.blueprint.nodes)} nodes)")
        if self.blueprint.type is BlueprintType.COMPONENT:
            return self._component()
        return self._function()

    # ── Function ─────────────────────────────────────────────────────────

    def _function(self) -> CompilationResult:
        traverser = Traverser(self.index, self.resolver, self.temps, self.diagnostics, "variables")
        entries = [n.id for n in self.index.instances_of(FUNCTION_ENTRY_IDS)]
        result = traverser.run(entries)

        return_node = self._pick_return(result)
        return_type = "void"
        if return_node is not None:
            return_type = traverser.emit_return(result, return_node).ts_type
        signature_type = f"Promise<{return_type}>" if result.is_async else return_type

        writer = CodeWriter(unit=self.options.indent)
        self._write_header(writer)
        self._write_imports(writer, result.helpers)
        if self.blueprint.variables or result.uses_variables:
            self._write_variables(writer, "const variables")
            writer.blank()

        params = ", ".join(p.signature() for p in self.parameters)
        prefix = "async " if result.is_async else ""
        writer.writeln(f"export {prefix}function {self.routine_name}({params}): {signature_type} {{")
        writer.push()
        self._write_body(writer, result, empty_note=None if entries else "No entry node found")
        if result.return_source is not None:
            writer.writeln(f"return {result.return_source.text}")
        writer.pop()
        writer.writeln("}")

        return CompilationResult(
            code=writer.result() + "\n",
            diagnostics=self.diagnostics.items(),
            helpers=helpers.ordered(result.helpers),
            is_async=result.is_async,
            parameters=list(self.parameters),
            return_type=return_type,
        )

    def _pick_return(self, result: TraversalResult) -> Optional[str]:
        """First return reached by the walk, else the first one in blueprint order."""
        candidates = [n.id for n in self.index.instances_of(["function_return"])]
        if not candidates:
            return None
        chosen = result.returns[0] if result.returns else candidates[0]
        if len(candidates) > 1:
            self.diagnostics.add(
                "multiple-returns",
                f"{len(candidates)} return nodes found; only '{chosen}' is used",
                chosen,
            )
        if not result.returns:
            self.diagnostics.add("unreachable-return",
                                 f"Return node '{chosen}' is not reachable from an entry node",
                                 chosen, severity="info")
        return chosen

    # ── Component ────────────────────────────────────────────────────────

    def _component(self) -> CompilationResult:
        traverser = Traverser(self.index, self.resolver, self.temps, self.diagnostics,
                              "this.variables")
        methods = []
        for hook in LIFECYCLE_HOOKS:
            hook_nodes = self.index.instances_of([hook])
            if not hook_nodes:
                continue
            result = traverser.run([n.id for n in hook_nodes])
            if result.block.is_empty():
                continue
            methods.append((hook, result))

        used_helpers = set()
        for _, result in methods:
            used_helpers |= result.helpers
        uses_variables = bool(self.blueprint.variables) or any(r.uses_variables for _, r in methods)

        writer = CodeWriter(unit=self.options.indent)
        self._write_header(writer)
        writer.writeln(f"import {{ _decorator, Component }} from '{self.options.engine_module}'")
        self._write_imports(writer, used_helpers)
        writer.writeln("const { ccclass } = _decorator")
        writer.blank()
        writer.writeln(f"@ccclass('{self.routine_name}')")
        writer.writeln(f"export class {self.routine_name} extends Component {{")
        writer.push()
        if uses_variables:
            self._write_variables(writer, "private variables")
        if not methods:
            writer.comment("No lifecycle hooks connected")

        for i, (hook, result) in enumerate(methods):
            if i or uses_variables:
                writer.blank()
            definition = self.catalog.find(hook)
            params = ", ".join(f"{identifier(p.id)}: {p.kind.ts_type()}"
                               for p in (definition.data_outputs() if definition else []))
            prefix = "async " if result.is_async else ""
            writer.writeln(f"{prefix}{hook}({params}) {{")
            writer.push()
            self._write_body(writer, result)
            writer.pop()
            writer.writeln("}")

        writer.pop()
        writer.writeln("}")

        return CompilationResult(
            code=writer.result() + "\n",
            diagnostics=self.diagnostics.items(),
            helpers=helpers.ordered(used_helpers),
            is_async=any(r.is_async for _, r in methods),
            parameters=[],
            return_type="void",
        )

    # ── Shared pieces ────────────────────────────────────────────────────

    def _write_header(self, writer: CodeWriter) -> None:
        writer.writeln("/**")
        writer.writeln(f" * Generated from blueprint: {self.blueprint.name}")
        if self.blueprint.description:
            writer.writeln(f" * {self.blueprint.description}")
        if self.options.include_timestamp:
            stamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
            writer.writeln(f" * Generated at: {stamp}")
        writer.writeln(" * Auto-generated - do not modify manually")
        writer.writeln(" */")
        writer.blank()

    def _write_imports(self, writer: CodeWriter, used) -> None:
        if self.options.helper_mode == "inline":
            lines = helpers.inline_definitions(used)
            if lines:
                _ensure_blank(writer)
                writer.extend(lines)
        else:
            line = helpers.import_line(used, self.options.helper_module)
            if line:
                writer.writeln(line)
        _ensure_blank(writer)

    def _write_variables(self, writer: CodeWriter, declaration: str) -> None:
        variables = self.blueprint.variables
        if not variables:
            writer.writeln(f"{declaration}: Record<string, any> = {{}}")
            return
        writer.writeln(f"{declaration}: Record<string, any> = {{")
        writer.push()
        for name, value in variables.items():
            writer.writeln(f"{json.dumps(name)}: {ts_literal(value)},")
        writer.pop()
        writer.writeln("}")

    def _write_body(self, writer: CodeWriter, result: TraversalResult,
                    empty_note: Optional[str] = None) -> None:
        for name, ts_type in result.temporaries.items():
            writer.writeln(f"let {name}: {ts_type}")
        if result.temporaries and not result.block.is_empty():
            writer.blank()
        if empty_note:
            writer.comment(empty_note)
        result.block.render(writer)


def _ensure_blank(writer: CodeWriter) -> None:
    lines = writer.lines()
    if lines and lines[-1] != "":
        writer.blank()


def compile_with_report(blueprint: Blueprint,
                        catalog: Union[DefinitionCatalog, Iterable[NodeDefinition]],
                        options: Optional[CompilerOptions] = None) -> CompilationResult:
    return ProgramAssembler(blueprint, catalog, options).assemble()
