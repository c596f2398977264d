"""
Blueprint Compiler: Node Code Templates
=======================================
A NodeTemplate provides two emission hooks:

  emit(ctx)
      Full control over one execution node: emit its statements, then decide
      which execution outputs run next (ctx.follow / ctx.branch /
      ctx.continue_all).  The default emits the inline logic and continues
      along every exec output in fan-out order.

  emit_inline(ctx)
      The statements of the node itself.  Pure data nodes only ever get this
      hook, called when a consumer first reads one of their outputs.

The EmitContext handed to both hooks (see traverser.py) resolves inputs
(`ctx.value`), names outputs (`ctx.output`), writes lines and nested blocks
and records helper use and async-ness.

Adding a new node kind
----------------------
1. Add a member to NodeKind whose value is the definition id.
2. Subclass NodeTemplate and override the hooks you need.
3. Register: TEMPLATE_REGISTRY[NodeKind.MY_KIND] = MyTemplate()

Definitions whose id is not a NodeKind (authored or imported ones) get
DefaultTemplate, which leaves a comment and keeps the execution path going.
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Union

from .resolver import node_suffix, ts_literal

if TYPE_CHECKING:
    from .traverser import EmitContext

logger = logging.getLogger(__name__)


# ── Code writer ───────────────────────────────────────────────────────────────

class CodeWriter:
    """Simple indented string accumulator."""

    def __init__(self, indent: int = 0, unit: str = "  "):
        self._lines: List[str] = []
        self._indent = indent
        self._unit = unit

    def writeln(self, line: str = "") -> "CodeWriter":
        if line:
            self._lines.append(self._unit * self._indent + line)
        else:
            self._lines.append("")
        return self

    def blank(self) -> "CodeWriter":
        return self.writeln()

    def comment(self, text: str) -> "CodeWriter":
        return self.writeln(f"// {text}")

    def push(self) -> "CodeWriter":
        self._indent += 1
        return self

    def pop(self) -> "CodeWriter":
        self._indent = max(0, self._indent - 1)
        return self

    def extend(self, lines: List[str]) -> "CodeWriter":
        for line in lines:
            self.writeln(line)
        return self

    def lines(self) -> List[str]:
        return self._lines

    def result(self) -> str:
        return "\n".join(self._lines)


# ── Statement blocks ──────────────────────────────────────────────────────────

class Block:
    """
    A run of statements, optionally wrapped in `header {` ... `footer`.

    Blocks are placed in their parent when created and filled later, which is
    how a branch keeps its textual position while the traverser works through
    its siblings.  A block without a header renders its items at the parent's
    indent.
    """

    def __init__(self, header: Optional[str] = None, footer: Optional[str] = None):
        self.header = header
        self.footer = footer
        self.items: List[Union[str, "Block"]] = []

    def add(self, line: str) -> None:
        self.items.append(line)

    def open(self, header: Optional[str] = None, footer: Optional[str] = "}") -> "Block":
        child = Block(header, footer if header is not None else None)
        self.items.append(child)
        return child

    def is_empty(self) -> bool:
        for item in self.items:
            if isinstance(item, str):
                return False
            if item.header is not None or not item.is_empty():
                return False
        return True

    def render(self, writer: CodeWriter) -> None:
        if self.header is not None:
            writer.writeln(self.header)
            writer.push()
        for item in self.items:
            if isinstance(item, Block):
                item.render(writer)
            else:
                writer.writeln(item)
        if self.header is not None:
            writer.pop()
        if self.footer is not None:
            writer.writeln(self.footer)


# ── Node kinds ────────────────────────────────────────────────────────────────

class NodeKind(str, Enum):
    """Every built-in definition id the compiler knows how to emit."""
    FUNCTION_PARAMETER = "function_parameter"
    FUNCTION_RETURN = "function_return"
    NUMBER_CONSTANT = "number_constant"
    STRING_CONSTANT = "string_constant"
    BOOLEAN_CONSTANT = "boolean_constant"
    NULL_CONSTANT = "null_constant"
    FUNCTION_START = "function_start"
    PRINT = "print"
    END = "end"
    DELAY = "delay"
    ON_LOAD = "onLoad"
    START = "start"
    UPDATE = "update"
    LATE_UPDATE = "lateUpdate"
    ON_ENABLE = "onEnable"
    ON_DISABLE = "onDisable"
    ON_DESTROY = "onDestroy"
    SEQUENCE = "sequence"
    PARALLEL = "parallel"
    IF_CONDITION = "if_condition"
    FOR_LOOP = "for_loop"
    SWITCH = "switch"
    ADD_NUMBERS = "add_numbers"
    SUBTRACT_NUMBERS = "subtract_numbers"
    MULTIPLY_NUMBERS = "multiply_numbers"
    DIVIDE_NUMBERS = "divide_numbers"
    RANDOM_NUMBER = "random_number"
    MATH_ABS = "math_abs"
    STRING_CONCAT = "string_concat"
    STRING_LENGTH = "string_length"
    STRING_CONTAINS = "string_contains"
    STRING_REPLACE = "string_replace"
    LOGIC_AND = "logic_and"
    LOGIC_OR = "logic_or"
    LOGIC_NOT = "logic_not"
    COMPARE_EQUAL = "compare_equal"
    COMPARE_GREATER = "compare_greater"
    COMPARE_LESS = "compare_less"
    GET_VARIABLE = "get_variable"
    SET_VARIABLE = "set_variable"
    TO_STRING = "to_string"
    TO_NUMBER = "to_number"
    TO_BOOLEAN = "to_boolean"
    DEBUG_LOG = "debug_log"
    DEBUG_BREAK = "debug_break"
    DEBUG_WATCH = "debug_watch"

    @classmethod
    def lookup(cls, definition_id: str) -> Optional["NodeKind"]:
        try:
            return cls(definition_id)
        except ValueError:
            return None


# ── Base template ─────────────────────────────────────────────────────────────

class NodeTemplate:
    """
    Base class. Subclass and override the hooks you need.
    All hooks have safe default implementations.

    `cacheable` pure nodes are evaluated once per path; set it to False for
    nodes that read mutable state so every consumer re-reads.
    """

    cacheable = True

    def emit(self, ctx: "EmitContext") -> None:
        self.emit_inline(ctx)
        ctx.continue_all()

    def emit_inline(self, ctx: "EmitContext") -> None:
        pass


class DefaultTemplate(NodeTemplate):
    """Definition the compiler has no rule for: comment, stub outputs, carry on."""

    def emit_inline(self, ctx: "EmitContext") -> None:
        ctx.diagnostic("unsupported-kind",
                       f"No code template for node type '{ctx.definition.id}'")
        ctx.comment(f"Unsupported node type: {ctx.definition.id} ({ctx.node.id})")
        for param in ctx.definition.data_outputs():
            ctx.line(f"{ctx.output(param.id)} = undefined")


# ── Entry / function shape ────────────────────────────────────────────────────

class EntryTemplate(NodeTemplate):
    """Lifecycle hooks and function_start emit nothing themselves."""


class ParameterTemplate(NodeTemplate):
    """Contributes a signature entry only; consumers read the name directly."""

    def emit(self, ctx: "EmitContext") -> None:
        pass


class ReturnTemplate(NodeTemplate):
    """The return statement is written by the assembler after traversal."""

    def emit(self, ctx: "EmitContext") -> None:
        ctx.record_return()


class EndTemplate(NodeTemplate):
    def emit(self, ctx: "EmitContext") -> None:
        ctx.comment("End of execution")


# ── Constants ─────────────────────────────────────────────────────────────────

class ConstantTemplate(NodeTemplate):
    """Emits a single assignment of the instance's stored value."""

    def __init__(self, fallback):
        self.fallback = fallback

    def emit_inline(self, ctx: "EmitContext") -> None:
        value = ctx.node.inputs.get("value", self.fallback)
        ctx.line(f"{ctx.output('value')} = {ts_literal(value)}")


class NullConstantTemplate(NodeTemplate):
    def emit_inline(self, ctx: "EmitContext") -> None:
        ctx.line(f"{ctx.output('value')} = null")


# ── Logging / debugging ───────────────────────────────────────────────────────

class PrintTemplate(NodeTemplate):
    def emit_inline(self, ctx: "EmitContext") -> None:
        if ctx.is_connected("value") or "value" in ctx.node.inputs:
            expr = ctx.value("value")
        else:
            expr = ts_literal(ctx.node.inputs.get("message", "Hello World"))
        ctx.line(f"{ctx.use_helper('log')}({expr})")


class DebugLogTemplate(NodeTemplate):
    def emit_inline(self, ctx: "EmitContext") -> None:
        ctx.line(f"{ctx.use_helper('log')}({ctx.value('message')})")


class DebugWatchTemplate(NodeTemplate):
    def emit_inline(self, ctx: "EmitContext") -> None:
        label = ctx.value("label")
        value = ctx.value("value")
        ctx.line(f"{ctx.use_helper('log')}({label} + \": \" + "
                 f"{ctx.use_helper('toString')}({value}))")


class DebugBreakTemplate(NodeTemplate):
    def emit_inline(self, ctx: "EmitContext") -> None:
        ctx.line("debugger")


class DelayTemplate(NodeTemplate):
    def emit_inline(self, ctx: "EmitContext") -> None:
        duration = ctx.value("duration")
        ctx.line(f"await {ctx.use_helper('delay')}({duration})")
        ctx.mark_async()


# ── Pure expressions ──────────────────────────────────────────────────────────

class HelperCallTemplate(NodeTemplate):
    """`temp = helper(inputs...)` for math, logic, compare and conversion nodes."""

    def __init__(self, helper: str, inputs: Sequence[str] = ("a", "b"), output: str = "result"):
        self.helper = helper
        self.inputs = tuple(inputs)
        self.output = output

    def emit_inline(self, ctx: "EmitContext") -> None:
        args = ", ".join(ctx.value(pid) for pid in self.inputs)
        ctx.line(f"{ctx.output(self.output)} = {ctx.use_helper(self.helper)}({args})")


class ExpressionTemplate(NodeTemplate):
    """`temp = <inline expression>` with inputs substituted by param id."""

    def __init__(self, pattern: str, output: str = "result", helpers: Sequence[str] = ()):
        self.pattern = pattern
        self.output = output
        self.helpers = tuple(helpers)
        self.inputs = re.findall(r"\{(\w+)\}", pattern)

    def emit_inline(self, ctx: "EmitContext") -> None:
        for helper in self.helpers:
            ctx.use_helper(helper)
        values = {pid: ctx.value(pid) for pid in dict.fromkeys(self.inputs)}
        ctx.line(f"{ctx.output(self.output)} = {self.pattern.format(**values)}")


# ── Variables ─────────────────────────────────────────────────────────────────

class GetVariableTemplate(NodeTemplate):
    cacheable = False

    def emit_inline(self, ctx: "EmitContext") -> None:
        name = ctx.value("name")
        ctx.line(f"{ctx.output('value')} = {ctx.variables()}[{name}]")


class SetVariableTemplate(NodeTemplate):
    def emit_inline(self, ctx: "EmitContext") -> None:
        name = ctx.value("name")
        value = ctx.value("value")
        ctx.line(f"{ctx.variables()}[{name}] = {value}")


# ── Structured control flow ───────────────────────────────────────────────────

class SequenceTemplate(NodeTemplate):
    """Each exec output in declaration order, each in its own branch scope."""

    def emit(self, ctx: "EmitContext") -> None:
        for port in ctx.definition.exec_outputs():
            for edge in ctx.exec_edges(port.id):
                if ctx.is_visited(edge.to_node_id):
                    continue
                block = ctx.open_block()
                block.add(f"// Sequence: {port.name}")
                ctx.branch_to(edge.to_node_id, block)


class ParallelTemplate(NodeTemplate):
    """
    Every exec-out edge of the branch ports becomes a zero-argument async
    closure; the closures are started together and joined with Promise.all.
    The `completed` port continues after the join.
    """

    join_port = "completed"

    def emit(self, ctx: "EmitContext") -> None:
        ctx.mark_async()
        tasks: List[str] = []
        for port in ctx.definition.exec_outputs():
            if port.id == self.join_port:
                continue
            for edge in ctx.exec_edges(port.id):
                if ctx.is_visited(edge.to_node_id):
                    continue
                name = f"task_{node_suffix(ctx.node)}_{len(tasks) + 1}"
                block = ctx.open_block(f"const {name} = async () => {{", "}")
                ctx.branch_to(edge.to_node_id, block)
                tasks.append(name)

        if tasks:
            ctx.line(f"await Promise.all([{', '.join(tasks)}].map(task => task()))")
        ctx.follow(self.join_port)


class IfTemplate(NodeTemplate):
    def emit(self, ctx: "EmitContext") -> None:
        condition = ctx.value("condition")
        if_block = ctx.open_block(f"if ({condition}) {{", "}")
        ctx.branch("true", if_block)
        if ctx.exec_edges("false"):
            if_block.footer = None
            else_block = ctx.open_block("} else {", "}")
            ctx.branch("false", else_block)


class ForLoopTemplate(NodeTemplate):
    def emit(self, ctx: "EmitContext") -> None:
        count = ctx.value("count")
        index = ctx.output("index")
        loop = ctx.open_block(f"for ({index} = 0; {index} < {count}; {index}++) {{", "}")
        ctx.branch("loop_body", loop)
        ctx.follow("completed")


class SwitchTemplate(NodeTemplate):
    """`case_<label>` ports become `case <label>:`, `default` becomes `default:`."""

    def emit(self, ctx: "EmitContext") -> None:
        value = ctx.value("value")
        switch = ctx.open_block(f"switch ({value}) {{", "}")
        for port in ctx.definition.exec_outputs():
            if not ctx.exec_edges(port.id):
                continue
            if port.id == "default":
                header = "default: {"
            else:
                header = f"case {self._label(port.id)}: {{"
            case = switch.open(header, "}")
            body = case.open()
            case.add("break")
            ctx.branch(port.id, body)

    @staticmethod
    def _label(port_id: str) -> str:
        label = port_id[len("case_"):] if port_id.startswith("case_") else port_id
        if re.fullmatch(r"-?\d+(\.\d+)?", label):
            return label
        return json.dumps(label)


# ── Registry ──────────────────────────────────────────────────────────────────

_ENTRY = EntryTemplate()

TEMPLATE_REGISTRY: Dict[NodeKind, NodeTemplate] = {
    NodeKind.FUNCTION_PARAMETER: ParameterTemplate(),
    NodeKind.FUNCTION_RETURN:    ReturnTemplate(),
    NodeKind.NUMBER_CONSTANT:    ConstantTemplate(0),
    NodeKind.STRING_CONSTANT:    ConstantTemplate(""),
    NodeKind.BOOLEAN_CONSTANT:   ConstantTemplate(False),
    NodeKind.NULL_CONSTANT:      NullConstantTemplate(),
    NodeKind.FUNCTION_START:     _ENTRY,
    NodeKind.PRINT:              PrintTemplate(),
    NodeKind.END:                EndTemplate(),
    NodeKind.DELAY:              DelayTemplate(),
    NodeKind.ON_LOAD:            _ENTRY,
    NodeKind.START:              _ENTRY,
    NodeKind.UPDATE:             _ENTRY,
    NodeKind.LATE_UPDATE:        _ENTRY,
    NodeKind.ON_ENABLE:          _ENTRY,
    NodeKind.ON_DISABLE:         _ENTRY,
    NodeKind.ON_DESTROY:         _ENTRY,
    NodeKind.SEQUENCE:           SequenceTemplate(),
    NodeKind.PARALLEL:           ParallelTemplate(),
    NodeKind.IF_CONDITION:       IfTemplate(),
    NodeKind.FOR_LOOP:           ForLoopTemplate(),
    NodeKind.SWITCH:             SwitchTemplate(),
    NodeKind.ADD_NUMBERS:        HelperCallTemplate("add"),
    NodeKind.SUBTRACT_NUMBERS:   HelperCallTemplate("subtract"),
    NodeKind.MULTIPLY_NUMBERS:   HelperCallTemplate("multiply"),
    NodeKind.DIVIDE_NUMBERS:     HelperCallTemplate("divide"),
    NodeKind.RANDOM_NUMBER:      ExpressionTemplate("Math.random() * ({max} - {min}) + {min}"),
    NodeKind.MATH_ABS:           ExpressionTemplate("Math.abs({value})"),
    NodeKind.STRING_CONCAT:      ExpressionTemplate("toString({a}) + toString({b})",
                                                    helpers=("toString",)),
    NodeKind.STRING_LENGTH:      ExpressionTemplate("toString({text}).length", output="length",
                                                    helpers=("toString",)),
    NodeKind.STRING_CONTAINS:    ExpressionTemplate("toString({text}).includes(toString({search}))",
                                                    helpers=("toString",)),
    NodeKind.STRING_REPLACE:     ExpressionTemplate(
        "toString({text}).split(toString({search})).join(toString({replace}))",
        helpers=("toString",)),
    NodeKind.LOGIC_AND:          HelperCallTemplate("logicAnd"),
    NodeKind.LOGIC_OR:           HelperCallTemplate("logicOr"),
    NodeKind.LOGIC_NOT:          HelperCallTemplate("logicNot", inputs=("value",)),
    NodeKind.COMPARE_EQUAL:      HelperCallTemplate("equal"),
    NodeKind.COMPARE_GREATER:    HelperCallTemplate("greater"),
    NodeKind.COMPARE_LESS:       HelperCallTemplate("less"),
    NodeKind.GET_VARIABLE:       GetVariableTemplate(),
    NodeKind.SET_VARIABLE:       SetVariableTemplate(),
    NodeKind.TO_STRING:          HelperCallTemplate("toString", inputs=("value",)),
    NodeKind.TO_NUMBER:          HelperCallTemplate("toNumber", inputs=("value",)),
    NodeKind.TO_BOOLEAN:         HelperCallTemplate("toBoolean", inputs=("value",)),
    NodeKind.DEBUG_LOG:          DebugLogTemplate(),
    NodeKind.DEBUG_BREAK:        DebugBreakTemplate(),
    NodeKind.DEBUG_WATCH:        DebugWatchTemplate(),
}

_missing = [kind.value for kind in NodeKind if kind not in TEMPLATE_REGISTRY]
if _missing:
    raise RuntimeError(f"No code template registered for node kinds: {', '.join(_missing)}")

_DEFAULT_TEMPLATE = DefaultTemplate()


def get_template(definition_id: str) -> NodeTemplate:
    kind = NodeKind.lookup(definition_id)
    if kind is None:
        return _DEFAULT_TEMPLATE
    return TEMPLATE_REGISTRY[kind]
