"""
Built-in node definitions.

`builtin_definitions()` returns the catalog a fresh editor starts with.  The
`DefinitionCatalog` wraps any list of definitions (built-in, authored, or
loaded from a document) with id lookup and the authoring operations.

The catalog is always passed explicitly; there is no module-level registry the
compiler reads from.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .GraphPrimitives import NodeDefinition, NodeParam
from .Types import ParamKind

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Param shorthands
# ---------------------------------------------------------------------------

def _exec(param_id: str = "exec", name: str = "Exec") -> NodeParam:
    return NodeParam(param_id, name, ParamKind.EXEC)


def _data(param_id: str, name: str, kind: ParamKind, default: Any = None, *,
          hidden: bool = False, options: Optional[tuple] = None) -> NodeParam:
    return NodeParam(param_id, name, kind, default_value=default,
                     hidden=hidden, options=options)


def _binary(def_id: str, name: str, category: str, kind: ParamKind, result: ParamKind,
            default: Any, description: str, color: str) -> NodeDefinition:
    return NodeDefinition(
        id=def_id, name=name, category=category, description=description, color=color,
        inputs=(_data("a", "A", kind, default), _data("b", "B", kind, default)),
        outputs=(_data("result", "Result", result),),
    )


def _unary(def_id: str, name: str, category: str, kind: ParamKind, result: ParamKind,
           default: Any, description: str, color: str) -> NodeDefinition:
    return NodeDefinition(
        id=def_id, name=name, category=category, description=description, color=color,
        inputs=(_data("value", "Value", kind, default),),
        outputs=(_data("result", "Result", result),),
    )


def _hook(hook_id: str, description: str, with_delta: bool = False) -> NodeDefinition:
    outputs = [_exec()]
    if with_delta:
        outputs.append(_data("deltaTime", "Delta Time", ParamKind.NUMBER))
    return NodeDefinition(id=hook_id, name=hook_id, category="Lifecycle",
                          description=description, color="#FF9800",
                          outputs=tuple(outputs))


N, S, B, O = ParamKind.NUMBER, ParamKind.STRING, ParamKind.BOOLEAN, ParamKind.OBJECT


# ---------------------------------------------------------------------------
# Built-in catalog
# ---------------------------------------------------------------------------

def builtin_definitions() -> List[NodeDefinition]:
    return [
        # ── Function ────────────────────────────────────────────────────────
        NodeDefinition(
            id="function_parameter", name="Function Parameter", category="Function",
            description="Declares one input parameter of the function",
            inputs=(
                _data("param_name", "Name", S, "param", hidden=True),
                _data("param_type", "Type", S, "any", hidden=True),
                _data("default_value", "Default", O, hidden=True),
            ),
            outputs=(_data("value", "Value", O),),
            color="#9C27B0",
        ),
        NodeDefinition(
            id="function_return", name="Function Return", category="Function",
            description="Declares the return value of the function",
            inputs=(_exec(), _data("value", "Return Value", O)),
            color="#E91E63",
        ),

        # ── Constants ───────────────────────────────────────────────────────
        NodeDefinition(id="number_constant", name="Number Constant", category="Constant",
                       description="A fixed number", color="#3F51B5",
                       outputs=(_data("value", "Value", N),)),
        NodeDefinition(id="string_constant", name="String Constant", category="Constant",
                       description="A fixed string", color="#3F51B5",
                       outputs=(_data("value", "Value", S),)),
        NodeDefinition(id="boolean_constant", name="Boolean Constant", category="Constant",
                       description="A fixed boolean", color="#3F51B5",
                       outputs=(_data("value", "Value", B),)),
        NodeDefinition(id="null_constant", name="Null Constant", category="Constant",
                       description="The null value", color="#3F51B5",
                       outputs=(_data("value", "Value", O),)),

        # ── Events ──────────────────────────────────────────────────────────
        NodeDefinition(id="function_start", name="Function Start", category="Event",
                       description="Entry point of a function blueprint", color="#4CAF50",
                       outputs=(_exec(),)),
        NodeDefinition(id="print", name="Print", category="Event",
                       description="Print a value to the console", color="#4CAF50",
                       inputs=(_exec(), _data("value", "Value", N, 0)),
                       outputs=(_exec(),)),
        NodeDefinition(id="end", name="End", category="Event",
                       description="Stops execution of the current path", color="#F44336",
                       inputs=(_exec(),)),
        NodeDefinition(id="delay", name="Delay", category="Event",
                       description="Wait before continuing", color="#9C27B0",
                       inputs=(_exec(), _data("duration", "Duration (ms)", N, 1000)),
                       outputs=(_exec(),)),

        # ── Lifecycle ───────────────────────────────────────────────────────
        _hook("onLoad", "Called when the component is loaded, before start"),
        _hook("start", "Called before the first frame the component is active"),
        _hook("update", "Called every frame", with_delta=True),
        _hook("lateUpdate", "Called after every component's update", with_delta=True),
        _hook("onEnable", "Called when the component is enabled"),
        _hook("onDisable", "Called when the component is disabled"),
        _hook("onDestroy", "Called when the component is destroyed"),

        # ── Control flow ────────────────────────────────────────────────────
        NodeDefinition(
            id="sequence", name="Sequence", category="Flow",
            description="Run each output in order", color="#FF5722",
            inputs=(_exec(),),
            outputs=(_exec("exec_1", "Then 1"), _exec("exec_2", "Then 2"),
                     _exec("exec_3", "Then 3")),
        ),
        NodeDefinition(
            id="parallel", name="Parallel", category="Flow",
            description="Run every output concurrently and wait for all",
            color="#FF5722",
            inputs=(_exec(),),
            outputs=(_exec("exec_1", "Branch 1"), _exec("exec_2", "Branch 2"),
                     _exec("exec_3", "Branch 3"), _exec("completed", "Completed")),
        ),
        NodeDefinition(
            id="if_condition", name="Branch", category="Flow",
            description="Choose a path from a condition", color="#FF5722",
            inputs=(_exec(), _data("condition", "Condition", B, True)),
            outputs=(_exec("true", "True"), _exec("false", "False")),
        ),
        NodeDefinition(
            id="for_loop", name="For Loop", category="Flow",
            description="Run the body a number of times", color="#795548",
            inputs=(_exec(), _data("count", "Count", N, 10)),
            outputs=(_exec("loop_body", "Loop Body"), _data("index", "Index", N),
                     _exec("completed", "Completed")),
        ),
        NodeDefinition(
            id="switch", name="Switch", category="Flow",
            description="Choose a path from a value", color="#607D8B",
            inputs=(_exec(), _data("value", "Value", N, 0)),
            outputs=(_exec("case_0", "Case 0"), _exec("case_1", "Case 1"),
                     _exec("default", "Default")),
        ),

        # ── Math ────────────────────────────────────────────────────────────
        _binary("add_numbers", "Add", "Math", N, N, 0, "A + B", "#2196F3"),
        _binary("subtract_numbers", "Subtract", "Math", N, N, 0, "A - B", "#2196F3"),
        _binary("multiply_numbers", "Multiply", "Math", N, N, 1, "A * B", "#2196F3"),
        _binary("divide_numbers", "Divide", "Math", N, N, 1, "A / B", "#2196F3"),
        NodeDefinition(
            id="random_number", name="Random Number", category="Math",
            description="Random number in [min, max)", color="#2196F3",
            inputs=(_data("min", "Min", N, 0), _data("max", "Max", N, 100)),
            outputs=(_data("result", "Result", N),),
        ),
        _unary("math_abs", "Absolute", "Math", N, N, 0, "|value|", "#2196F3"),

        # ── String ──────────────────────────────────────────────────────────
        _binary("string_concat", "Concatenate", "String", S, S, "", "A + B", "#8BC34A"),
        NodeDefinition(
            id="string_length", name="String Length", category="String",
            description="Length of a string", color="#8BC34A",
            inputs=(_data("text", "Text", S, ""),),
            outputs=(_data("length", "Length", N),),
        ),
        NodeDefinition(
            id="string_contains", name="Contains", category="String",
            description="Whether text contains search", color="#8BC34A",
            inputs=(_data("text", "Text", S, ""), _data("search", "Search", S, "")),
            outputs=(_data("result", "Result", B),),
        ),
        NodeDefinition(
            id="string_replace", name="Replace", category="String",
            description="Replace every occurrence of search", color="#8BC34A",
            inputs=(_data("text", "Text", S, ""), _data("search", "Search", S, ""),
                    _data("replace", "Replace", S, "")),
            outputs=(_data("result", "Result", S),),
        ),

        # ── Logic ───────────────────────────────────────────────────────────
        _binary("logic_and", "And", "Logic", B, B, True, "A && B", "#E91E63"),
        _binary("logic_or", "Or", "Logic", B, B, False, "A || B", "#E91E63"),
        _unary("logic_not", "Not", "Logic", B, B, True, "!value", "#E91E63"),

        # ── Compare ─────────────────────────────────────────────────────────
        _binary("compare_equal", "Equal", "Compare", N, B, 0, "A === B", "#FF9800"),
        _binary("compare_greater", "Greater", "Compare", N, B, 0, "A > B", "#FF9800"),
        _binary("compare_less", "Less", "Compare", N, B, 0, "A < B", "#FF9800"),

        # ── Variables ───────────────────────────────────────────────────────
        NodeDefinition(
            id="get_variable", name="Get Variable", category="Variable",
            description="Read a blueprint variable", color="#673AB7",
            inputs=(_data("name", "Name", S, "variable"),),
            outputs=(_data("value", "Value", O),),
        ),
        NodeDefinition(
            id="set_variable", name="Set Variable", category="Variable",
            description="Write a blueprint variable", color="#673AB7",
            inputs=(_exec(), _data("name", "Name", S, "variable"), _data("value", "Value", O)),
            outputs=(_exec(),),
        ),

        # ── Conversion ──────────────────────────────────────────────────────
        _unary("to_string", "To String", "Conversion", O, S, None, "String(value)", "#00BCD4"),
        _unary("to_number", "To Number", "Conversion", S, N, "0", "Number(value)", "#00BCD4"),
        _unary("to_boolean", "To Boolean", "Conversion", O, B, None, "Boolean(value)", "#00BCD4"),

        # ── Debug ───────────────────────────────────────────────────────────
        NodeDefinition(
            id="debug_log", name="Debug Log", category="Debug",
            description="Log a debug message", color="#FF9800",
            inputs=(_exec(), _data("message", "Message", S, "Hello World")),
            outputs=(_exec(),),
        ),
        NodeDefinition(
            id="debug_break", name="Breakpoint", category="Debug",
            description="Pause in the debugger", color="#F44336",
            inputs=(_exec(),), outputs=(_exec(),),
        ),
        NodeDefinition(
            id="debug_watch", name="Watch", category="Debug",
            description="Log a labelled value", color="#FF9800",
            inputs=(_exec(), _data("value", "Value", O), _data("label", "Label", S, "Watch")),
            outputs=(_exec(),),
        ),
    ]


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class DefinitionCatalog:
    """Ordered, id-keyed collection of node definitions."""

    def __init__(self, definitions: Iterable[NodeDefinition] = ()):
        self._definitions: Dict[str, NodeDefinition] = {}
        for definition in definitions:
            self.add(definition)

    @classmethod
    def builtin(cls) -> "DefinitionCatalog":
        return cls(builtin_definitions())

    def __iter__(self) -> Iterator[NodeDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, definition_id: str) -> bool:
        return definition_id in self._definitions

    def find(self, definition_id: str) -> Optional[NodeDefinition]:
        return self._definitions.get(definition_id)

    def add(self, definition: NodeDefinition) -> NodeDefinition:
        if definition.id in self._definitions:
            raise ValueError(f"Definition '{definition.id}' already exists in the catalog")
        definition.check_unique_params()
        self._definitions[definition.id] = definition
        return definition

    def replace(self, definition: NodeDefinition) -> NodeDefinition:
        """Swap in a new version of an existing definition (definitions are immutable)."""
        if definition.id not in self._definitions:
            raise KeyError(definition.id)
        definition.check_unique_params()
        self._definitions[definition.id] = definition
        return definition

    def remove(self, definition_id: str) -> Optional[NodeDefinition]:
        return self._definitions.pop(definition_id, None)

    def merge(self, definitions: Iterable[NodeDefinition]) -> List[NodeDefinition]:
        """Add every definition whose id is not present yet; existing ids win."""
        added = []
        for definition in definitions:
            if definition.id in self._definitions:
                logger.debug(f"merge: keeping existing definition '{definition.id}'")
                continue
            added.append(self.add(definition))
        return added

    def to_list(self) -> List[NodeDefinition]:
        return list(self._definitions.values())
