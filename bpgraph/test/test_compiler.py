import logging
import re

import pytest

from bpgraph.compiler import (
    CompilerOptions, NodeKind, TEMPLATE_REGISTRY, compile_blueprint, compile_project,
    compile_with_report, generate_helper_library,
)
from bpgraph.compiler import templates
from bpgraph.compiler.helpers import HELPER_DEFS
from bpgraph.core import (
    Blueprint, BlueprintType, DefinitionCatalog, NodeConnection, NodeDefinition, NodeInstance,
    NodeParam, ParamKind, builtin_definitions,
)


def _suffix(node):
    return node.id.rsplit("_", 1)[-1]


class TestTemplateRegistry:

    def test_every_kind_has_a_template(self):
        for kind in NodeKind:
            assert kind in TEMPLATE_REGISTRY

    def test_every_builtin_definition_is_a_kind(self):
        for definition in builtin_definitions():
            assert NodeKind.lookup(definition.id) is not None, definition.id

    def test_unknown_kind_gets_default(self):
        assert isinstance(templates.get_template("nope"), templates.DefaultTemplate)


class TestFunctionCompilation:

    @pytest.fixture(autouse=True)
    def _setup(self, store, function_bp, options):
        self.store = store
        self.bp = function_bp
        self.start = function_bp.nodes[0]
        self.options = options

    def add(self, definition_id, **inputs):
        return self.store.add_node(self.bp.id, definition_id, inputs=inputs or None)

    def wire(self, a, a_param, b, b_param):
        return self.store.add_connection(self.bp.id, a.id, a_param, b.id, b_param)

    def compile(self, **kwargs):
        options = CompilerOptions(include_timestamp=False, **kwargs)
        return compile_with_report(self.store.snapshot(self.bp.id), self.store.catalog, options)

    # ── basic shape ──────────────────────────────────────────────────────

    def test_empty_blueprint(self):
        result = compile_with_report(Blueprint(id="e", name="Empty"), self.store.catalog,
                                     self.options)
        assert "export function BP_Empty(): void {" in result.code
        assert "// No entry node found" in result.code
        assert result.code.rstrip().endswith("}")
        assert result.helpers == []
        assert result.return_type == "void"

    def test_start_only(self):
        result = self.compile()
        assert "export function BP_Demo(): void {" in result.code
        assert "import" not in result.code

    def test_header(self):
        code = compile_blueprint(self.store.snapshot(self.bp.id), self.store.catalog)
        assert "Generated from blueprint: Demo" in code
        assert "Generated at:" in code
        assert "Generated at:" not in self.compile().code

    # ── data flow ────────────────────────────────────────────────────────

    def test_constant_to_print(self):
        const = self.add("number_constant", value=42)
        printer = self.add("print")
        self.wire(self.start, "exec", printer, "exec")
        self.wire(const, "value", printer, "value")

        result = self.compile()
        temp = f"numberconstant_{_suffix(const)}_value"
        assert f"let {temp}: number" in result.code
        assert f"{temp} = 42" in result.code
        assert f"log({temp})" in result.code
        assert "log" in result.helpers
        assert "import { log } from './BlueprintHelpers'" in result.code

    def test_constant_is_assigned_before_use(self):
        const = self.add("number_constant", value=42)
        printer = self.add("print")
        self.wire(self.start, "exec", printer, "exec")
        self.wire(const, "value", printer, "value")

        code = self.compile().code
        temp = f"numberconstant_{_suffix(const)}_value"
        assert code.index(f"{temp} = 42") < code.index(f"log({temp})")

    def test_print_fallback_message(self):
        printer = self.add("print")
        self.wire(self.start, "exec", printer, "exec")
        assert 'log("Hello World")' in self.compile().code

    def test_print_literal_override(self):
        printer = self.add("print", value=7)
        self.wire(self.start, "exec", printer, "exec")
        assert "log(7)" in self.compile().code

    def test_pure_chain(self):
        a = self.add("number_constant", value=2)
        b = self.add("number_constant", value=3)
        adder = self.add("add_numbers")
        printer = self.add("print")
        self.wire(self.start, "exec", printer, "exec")
        self.wire(a, "value", adder, "a")
        self.wire(b, "value", adder, "b")
        self.wire(adder, "result", printer, "value")

        result = self.compile()
        code = result.code
        ta = f"numberconstant_{_suffix(a)}_value"
        tb = f"numberconstant_{_suffix(b)}_value"
        tr = f"add_{_suffix(adder)}_result"
        assert f"{tr} = add({ta}, {tb})" in code
        assert code.index(f"{ta} = 2") < code.index(f"{tr} = add(")
        assert code.index(f"{tb} = 3") < code.index(f"{tr} = add(")
        assert code.index(f"{tr} = add(") < code.index(f"log({tr})")
        assert result.helpers == ["log", "add"]
        assert "import { log, add } from './BlueprintHelpers'" in code

    def test_shared_producer_evaluated_once_per_path(self):
        const = self.add("number_constant", value=1)
        p1 = self.add("print")
        p2 = self.add("print")
        self.wire(self.start, "exec", p1, "exec")
        self.wire(p1, "exec", p2, "exec")
        self.wire(const, "value", p1, "value")
        self.wire(const, "value", p2, "value")

        code = self.compile().code
        assert code.count(f"numberconstant_{_suffix(const)}_value = 1") == 1

    def test_data_param_named_exec_is_data(self):
        catalog = DefinitionCatalog.builtin()
        catalog.add(NodeDefinition(
            "exec_counter", "Exec Counter", "Custom",
            outputs=(NodeParam("exec_count", "Count", ParamKind.NUMBER),),
        ))
        bp = Blueprint(
            id="bp", name="Tricky",
            nodes=[NodeInstance("node_1", "function_start", "Start"),
                   NodeInstance("node_2", "exec_counter", "Counter"),
                   NodeInstance("node_3", "print", "Print")],
            connections=[NodeConnection("c1", "node_1", "exec", "node_3", "exec"),
                         NodeConnection("c2", "node_2", "exec_count", "node_3", "value")],
        )
        result = compile_with_report(bp, catalog, self.options)
        assert "log(execcounter_2_exec_count)" in result.code
        assert "execcounter_2_exec_count = undefined" in result.code
        assert "unsupported-kind" in [d.code for d in result.diagnostics]

    def test_variables(self):
        self.store.set_variable(self.bp.id, "score", 10)
        setter = self.add("set_variable", name="score", value=11)
        getter = self.add("get_variable", name="score")
        printer = self.add("print")
        self.wire(self.start, "exec", setter, "exec")
        self.wire(setter, "exec", printer, "exec")
        self.wire(getter, "value", printer, "value")

        code = self.compile().code
        assert "const variables: Record<string, any> = {" in code
        assert '"score": 10,' in code
        assert 'variables["score"] = 11' in code
        assert f'getvariable_{_suffix(getter)}_value = variables["score"]' in code

    def test_variable_read_after_write_is_fresh(self):
        first = self.add("set_variable", name="x", value=1)
        getter = self.add("get_variable", name="x")
        p1 = self.add("print")
        second = self.add("set_variable", name="x", value=2)
        p2 = self.add("print")
        self.wire(self.start, "exec", first, "exec")
        self.wire(first, "exec", p1, "exec")
        self.wire(p1, "exec", second, "exec")
        self.wire(second, "exec", p2, "exec")
        self.wire(getter, "value", p1, "value")
        self.wire(getter, "value", p2, "value")

        code = self.compile().code
        temp = f"getvariable_{_suffix(getter)}_value"
        read = f'{temp} = variables["x"]'
        assert code.count(read) == 2
        assert code.count(f"let {temp}: any") == 1
        second_write = code.index('variables["x"] = 2')
        assert code.index(read) < second_write < code.rindex(read) < code.rindex(f"log({temp})")

    def test_plain_definition_list(self):
        printer = self.add("print", value=5)
        self.wire(self.start, "exec", printer, "exec")
        snapshot = self.store.snapshot(self.bp.id)

        code = compile_blueprint(snapshot, builtin_definitions(), self.options)
        assert "log(5)" in code
        files = compile_project([snapshot], iter(builtin_definitions()), self.options)
        assert "log(5)" in files["BP_Demo.ts"]

    def test_type_given_as_string(self):
        bp = Blueprint(id="c", name="Comp", type="component")
        assert bp.type is BlueprintType.COMPONENT
        code = compile_with_report(bp, self.store.catalog, self.options).code
        assert "export class BP_Comp extends Component {" in code

    def test_hook_output_outside_component(self):
        update = self.add("update")
        printer = self.add("print")
        self.wire(self.start, "exec", printer, "exec")
        self.wire(update, "deltaTime", printer, "value")

        result = self.compile()
        assert "log(undefined)" in result.code
        assert "deltaTime" not in result.code
        assert [d.code for d in result.diagnostics] == ["unbound-entry-output"]

    # ── function shape ───────────────────────────────────────────────────

    def test_parameter_returned_directly(self):
        param = self.add("function_parameter", param_name="x", param_type="number")
        ret = self.add("function_return")
        self.wire(self.start, "exec", ret, "exec")
        self.wire(param, "value", ret, "value")

        result = self.compile()
        assert "export function BP_Demo(x: number): number {" in result.code
        assert "return x" in result.code
        assert "let " not in result.code
        assert result.return_type == "number"
        assert [p.name for p in result.parameters] == ["x"]

    def test_unreachable_return_still_shapes_signature(self):
        param = self.add("function_parameter", param_name="x", param_type="string")
        ret = self.add("function_return")
        self.wire(param, "value", ret, "value")

        result = self.compile()
        assert "): string {" in result.code
        assert "return x" in result.code

    def test_multiple_returns_first_reached_wins(self):
        first = self.add("function_return", value=1)
        second = self.add("function_return", value=2)
        self.wire(self.start, "exec", second, "exec")

        result = self.compile()
        assert "return 2" in result.code
        assert "return 1" not in result.code
        assert "multiple-returns" in [d.code for d in result.diagnostics]

    def test_delay_makes_async(self):
        param = self.add("function_parameter", param_name="x", param_type="number")
        delay = self.add("delay", duration=250)
        ret = self.add("function_return")
        self.wire(self.start, "exec", delay, "exec")
        self.wire(delay, "exec", ret, "exec")
        self.wire(param, "value", ret, "value")

        result = self.compile()
        assert "export async function BP_Demo(x: number): Promise<number> {" in result.code
        assert "await delay(250)" in result.code
        assert result.is_async
        assert "delay" in result.helpers

    def test_delay_without_return_is_promise_void(self):
        delay = self.add("delay")
        self.wire(self.start, "exec", delay, "exec")
        code = self.compile().code
        assert "export async function BP_Demo(): Promise<void> {" in code
        assert "await delay(1000)" in code

    # ── control flow ─────────────────────────────────────────────────────

    def test_self_loop_terminates(self):
        printer = self.add("print", value="again")
        self.wire(self.start, "exec", printer, "exec")
        self.wire(printer, "exec", printer, "exec")
        assert self.compile().code.count('log("again")') == 1

    def test_cycle_between_nodes(self):
        a = self.add("print", value="a")
        b = self.add("print", value="b")
        self.wire(self.start, "exec", a, "exec")
        self.wire(a, "exec", b, "exec")
        self.wire(b, "exec", a, "exec")
        code = self.compile().code
        assert code.count('log("a")') == 1
        assert code.count('log("b")') == 1

    def test_sequence_uses_declaration_order(self):
        seq = self.add("sequence")
        first = self.add("set_variable", name="result", value="first")
        second = self.add("set_variable", name="result", value="second")
        self.wire(self.start, "exec", seq, "exec")
        # Wired in reverse on purpose.
        self.wire(seq, "exec_2", second, "exec")
        self.wire(seq, "exec_1", first, "exec")

        code = self.compile().code
        assert code.index('variables["result"] = "first"') < code.index('variables["result"] = "second"')

    def test_sequence_branches_reemit_shared_node(self):
        seq = self.add("sequence")
        a = self.add("print", value="a")
        b = self.add("print", value="b")
        shared = self.add("print", value="shared")
        self.wire(self.start, "exec", seq, "exec")
        self.wire(seq, "exec_1", a, "exec")
        self.wire(seq, "exec_2", b, "exec")
        self.wire(a, "exec", shared, "exec")
        self.wire(b, "exec", shared, "exec")

        code = self.compile().code
        assert code.count('log("shared")') == 2
        assert code.index('log("a")') < code.index('log("shared")') < code.index('log("b")')

    def test_fan_out_order(self):
        a = self.add("print", value="a")
        b = self.add("print", value="b")
        self.wire(self.start, "exec", b, "exec")
        self.wire(self.start, "exec", a, "exec")
        code = self.compile().code
        assert code.index('log("b")') < code.index('log("a")')

    def test_if_else(self):
        branch = self.add("if_condition", condition=False)
        yes = self.add("print", value="yes")
        no = self.add("print", value="no")
        self.wire(self.start, "exec", branch, "exec")
        self.wire(branch, "true", yes, "exec")
        self.wire(branch, "false", no, "exec")

        lines = [line.strip() for line in self.compile().code.splitlines()]
        i = lines.index("if (false) {")
        assert lines[i + 1] == 'log("yes")'
        assert lines[i + 2] == "} else {"
        assert lines[i + 3] == 'log("no")'
        assert lines[i + 4] == "}"

    def test_if_without_else(self):
        branch = self.add("if_condition")
        yes = self.add("print", value="yes")
        self.wire(self.start, "exec", branch, "exec")
        self.wire(branch, "true", yes, "exec")
        code = self.compile().code
        assert "if (true) {" in code
        assert "else" not in code

    def test_for_loop(self):
        loop = self.add("for_loop", count=3)
        body = self.add("print")
        after = self.add("print", value="done")
        self.wire(self.start, "exec", loop, "exec")
        self.wire(loop, "loop_body", body, "exec")
        self.wire(loop, "index", body, "value")
        self.wire(loop, "completed", after, "exec")

        code = self.compile().code
        index = f"forloop_{_suffix(loop)}_index"
        assert f"let {index}: number" in code
        assert f"for ({index} = 0; {index} < 3; {index}++) {{" in code
        assert f"log({index})" in code
        assert code.index(f"log({index})") < code.index('log("done")')

    def test_switch(self):
        switch = self.add("switch", value=1)
        zero = self.add("print", value="zero")
        other = self.add("print", value="other")
        self.wire(self.start, "exec", switch, "exec")
        self.wire(switch, "case_0", zero, "exec")
        self.wire(switch, "default", other, "exec")

        lines = [line.strip() for line in self.compile().code.splitlines()]
        assert "switch (1) {" in lines
        i = lines.index("case 0: {")
        assert lines[i + 1:i + 4] == ['log("zero")', "break", "}"]
        assert "case 1: {" not in lines
        assert "default: {" in lines

    def test_parallel(self):
        par = self.add("parallel")
        a = self.add("delay", duration=10)
        b = self.add("print", value="b")
        after = self.add("print", value="after")
        self.wire(self.start, "exec", par, "exec")
        self.wire(par, "exec_1", a, "exec")
        self.wire(par, "exec_2", b, "exec")
        self.wire(par, "completed", after, "exec")

        result = self.compile()
        code = result.code
        n = _suffix(par)
        assert f"const task_{n}_1 = async () => {{" in code
        assert f"const task_{n}_2 = async () => {{" in code
        assert f"await Promise.all([task_{n}_1, task_{n}_2].map(task => task()))" in code
        assert code.index("await Promise.all") < code.index('log("after")')
        assert result.is_async
        assert code.startswith("/**")
        assert "export async function" in code

    def test_end_stops_path(self):
        end = self.add("end")
        self.wire(self.start, "exec", end, "exec")
        assert "// End of execution" in self.compile().code

    def test_debug_nodes(self):
        watch = self.add("debug_watch", label="hp", value=3)
        brk = self.add("debug_break")
        dbg = self.add("debug_log")
        self.wire(self.start, "exec", watch, "exec")
        self.wire(watch, "exec", brk, "exec")
        self.wire(brk, "exec", dbg, "exec")

        result = self.compile()
        assert 'log("hp" + ": " + toString(3))' in result.code
        assert "debugger" in result.code
        assert 'log("Hello World")' in result.code
        assert result.helpers == ["log", "toString"]

    # ── degradation ──────────────────────────────────────────────────────

    def test_unknown_definition_is_a_comment(self, caplog):
        bp = self.store.snapshot(self.bp.id)
        bp.nodes.append(NodeInstance("node_99", "teleport", "Teleport"))
        bp.connections.append(NodeConnection("c99", self.start.id, "exec", "node_99", "exec"))

        caplog.set_level(logging.WARNING)
        result = compile_with_report(bp, self.store.catalog, self.options)
        assert "// Unknown node type: teleport (node_99)" in result.code
        assert [d.code for d in result.diagnostics] == ["unknown-definition"]
        assert "teleport" in caplog.text

    def test_dangling_connection_is_reported(self):
        bp = self.store.snapshot(self.bp.id)
        bp.connections.append(NodeConnection("c99", self.start.id, "exec", "ghost", "exec"))
        result = compile_with_report(bp, self.store.catalog, self.options)
        assert "dangling-connection" in [d.code for d in result.diagnostics]
        assert "export function BP_Demo(): void {" in result.code

    def test_template_failure_is_contained(self, monkeypatch):
        class Broken(templates.NodeTemplate):
            def emit_inline(self, ctx):
                raise RuntimeError("boom")

        monkeypatch.setitem(templates.TEMPLATE_REGISTRY, NodeKind.PRINT, Broken())
        printer = self.add("print")
        after = self.add("debug_break")
        self.wire(self.start, "exec", printer, "exec")
        self.wire(printer, "exec", after, "exec")

        result = self.compile()
        assert f"// Error emitting print ({printer.id}): boom" in result.code
        assert "debugger" in result.code
        assert [d.code for d in result.diagnostics] == ["emit-error"]

    def test_fan_in_reported(self):
        a = self.add("number_constant", value=1)
        b = self.add("number_constant", value=2)
        printer = self.add("print")
        self.wire(self.start, "exec", printer, "exec")
        self.wire(a, "value", printer, "value")
        self.wire(b, "value", printer, "value")
        result = self.compile()
        assert f"log(numberconstant_{_suffix(a)}_value)" in result.code
        assert [d.code for d in result.diagnostics] == ["fan-in"]

    # ── helper modes ─────────────────────────────────────────────────────

    def test_inline_helpers(self):
        printer = self.add("print", value=1)
        self.wire(self.start, "exec", printer, "exec")
        code = self.compile(helper_mode="inline").code
        assert "import" not in code
        assert "function log(value: any): void {" in code
        assert "export function log" not in code
        assert "function delay" not in code

    def test_bad_helper_mode(self):
        with pytest.raises(ValueError):
            CompilerOptions(helper_mode="bundle")

    def test_options_from_dict(self):
        options = CompilerOptions.from_dict({"helperMode": "inline", "function_prefix": "X_",
                                             "unknown": 1})
        assert options.helper_mode == "inline"
        assert options.function_prefix == "X_"


class TestComponentCompilation:

    def setup_method(self):
        from bpgraph.core import BlueprintStore

        self.store = BlueprintStore()
        self.bp = self.store.create_blueprint("Player", BlueprintType.COMPONENT)
        self.hooks = {n.definition_id: n for n in self.bp.nodes}
        self.options = CompilerOptions(include_timestamp=False)

    def compile(self):
        return compile_with_report(self.store.snapshot(self.bp.id), self.store.catalog, self.options)

    def test_class_shell(self):
        code = self.compile().code
        assert "import { _decorator, Component } from 'cc'" in code
        assert "const { ccclass } = _decorator" in code
        assert "@ccclass('BP_Player')" in code
        assert "export class BP_Player extends Component {" in code
        assert "// No lifecycle hooks connected" in code

    def test_methods_only_for_populated_hooks(self):
        printer = self.store.add_node(self.bp.id, "print", inputs={"value": "loaded"})
        self.store.add_connection(self.bp.id, self.hooks["onLoad"].id, "exec", printer.id, "exec")
        tick = self.store.add_node(self.bp.id, "print")
        self.store.add_connection(self.bp.id, self.hooks["update"].id, "exec", tick.id, "exec")
        self.store.add_connection(self.bp.id, self.hooks["update"].id, "deltaTime", tick.id, "value")

        result = self.compile()
        code = result.code
        assert "onLoad() {" in code
        assert "update(deltaTime: number) {" in code
        assert "log(deltaTime)" in code
        assert "start()" not in code
        assert "onDestroy" not in code
        assert code.index("onLoad() {") < code.index("update(deltaTime: number) {")
        assert result.helpers == ["log"]
        assert not result.is_async

    def test_async_method(self):
        delay = self.store.add_node(self.bp.id, "delay")
        self.store.add_connection(self.bp.id, self.hooks["start"].id, "exec", delay.id, "exec")
        result = self.compile()
        assert "async start() {" in result.code
        assert result.is_async

    def test_variables_field(self):
        self.store.set_variable(self.bp.id, "hp", 100)
        setter = self.store.add_node(self.bp.id, "set_variable", inputs={"name": "hp", "value": 0})
        self.store.add_connection(self.bp.id, self.hooks["onDestroy"].id, "exec", setter.id, "exec")
        code = self.compile().code
        assert "private variables: Record<string, any> = {" in code
        assert 'this.variables["hp"] = 0' in code

    def test_temporaries_are_method_local(self):
        const = self.store.add_node(self.bp.id, "number_constant", inputs={"value": 5})
        printer = self.store.add_node(self.bp.id, "print")
        self.store.add_connection(self.bp.id, self.hooks["start"].id, "exec", printer.id, "exec")
        self.store.add_connection(self.bp.id, const.id, "value", printer.id, "value")
        lines = self.compile().code.splitlines()
        temp = f"numberconstant_{_suffix(const)}_value"
        start = lines.index("  start() {")
        assert lines[start + 1] == f"    let {temp}: number"


class TestProjectCompilation:

    def test_helper_library_written_once(self):
        from bpgraph.core import BlueprintStore

        store = BlueprintStore()
        blueprints = []
        for name in ("One", "Two"):
            bp = store.create_blueprint(name, BlueprintType.FUNCTION)
            printer = store.add_node(bp.id, "print")
            store.add_connection(bp.id, bp.nodes[0].id, "exec", printer.id, "exec")
            blueprints.append(bp)

        files = compile_project(blueprints, store.catalog, CompilerOptions(include_timestamp=False))
        assert sorted(files) == ["BP_One.ts", "BP_Two.ts", "BlueprintHelpers.ts"]
        assert files["BlueprintHelpers.ts"] == generate_helper_library()

    def test_no_library_when_unused_or_inlined(self):
        from bpgraph.core import BlueprintStore

        store = BlueprintStore()
        bp = store.create_blueprint("Quiet", BlueprintType.FUNCTION)
        assert list(compile_project([bp], store.catalog)) == ["BP_Quiet.ts"]

        printer = store.add_node(bp.id, "print")
        store.add_connection(bp.id, bp.nodes[0].id, "exec", printer.id, "exec")
        files = compile_project([bp], store.catalog, CompilerOptions(helper_mode="inline"))
        assert list(files) == ["BP_Quiet.ts"]

    def test_helper_library_contents(self):
        library = generate_helper_library()
        for name in HELPER_DEFS:
            assert re.search(rf"export function {name}\(", library)
