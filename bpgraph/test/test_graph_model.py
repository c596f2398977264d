import copy

import pytest

from bpgraph.core import (
    Blueprint, BlueprintStore, BlueprintType, DefinitionCatalog, LIFECYCLE_HOOKS,
    NodeConnection, NodeDefinition, NodeInstance, NodeParam, ParamKind, builtin_definitions,
)


class TestParamKind:

    def test_ts_types(self):
        assert ParamKind.NUMBER.ts_type() == "number"
        assert ParamKind.STRING.ts_type() == "string"
        assert ParamKind.BOOLEAN.ts_type() == "boolean"
        assert ParamKind.OBJECT.ts_type() == "any"
        assert ParamKind.SELECT.ts_type() == "any"

    def test_from_value(self):
        assert ParamKind.from_value(True) is ParamKind.BOOLEAN
        assert ParamKind.from_value(3.5) is ParamKind.NUMBER
        assert ParamKind.from_value("x") is ParamKind.STRING
        assert ParamKind.from_value([1]) is ParamKind.OBJECT


class TestDefinitionCatalog:

    def setup_method(self):
        self.catalog = DefinitionCatalog.builtin()

    def test_builtin_ids_are_unique(self):
        ids = [d.id for d in builtin_definitions()]
        assert len(ids) == len(set(ids))
        assert len(self.catalog) == len(ids)

    def test_find(self):
        print_def = self.catalog.find("print")
        assert print_def is not None
        assert [p.id for p in print_def.exec_outputs()] == ["exec"]
        assert self.catalog.find("does_not_exist") is None

    def test_lifecycle_hooks_present(self):
        for hook in LIFECYCLE_HOOKS:
            assert hook in self.catalog
        update = self.catalog.find("update")
        assert [p.id for p in update.data_outputs()] == ["deltaTime"]

    def test_add_duplicate_raises(self):
        with pytest.raises(ValueError):
            self.catalog.add(NodeDefinition("print", "Print again", "Event"))

    def test_duplicate_param_ids_rejected(self):
        bad = NodeDefinition(
            "bad", "Bad", "Custom",
            inputs=(NodeParam("a", "A", ParamKind.NUMBER), NodeParam("a", "A2", ParamKind.NUMBER)),
        )
        with pytest.raises(ValueError):
            self.catalog.add(bad)

    def test_replace_and_remove(self):
        new_print = NodeDefinition("print", "Shout", "Event")
        self.catalog.replace(new_print)
        assert self.catalog.find("print").name == "Shout"
        assert self.catalog.remove("print") is new_print
        assert "print" not in self.catalog
        with pytest.raises(KeyError):
            self.catalog.replace(new_print)

    def test_merge_keeps_existing(self):
        added = self.catalog.merge([
            NodeDefinition("print", "Other Print", "Event"),
            NodeDefinition("custom", "Custom", "Custom"),
        ])
        assert [d.id for d in added] == ["custom"]
        assert self.catalog.find("print").name == "Print"


class TestBlueprint:

    def setup_method(self):
        self.bp = Blueprint(
            id="bp", name="B",
            nodes=[NodeInstance("n1", "print", "Print"), NodeInstance("n2", "print", "Print")],
            connections=[
                NodeConnection("c1", "n1", "exec", "n2", "exec"),
                NodeConnection("c2", "n2", "exec", "n1", "exec"),
            ],
        )

    def test_queries(self):
        assert self.bp.find_instance("n2").id == "n2"
        assert self.bp.find_instance("zz") is None
        assert [c.id for c in self.bp.connections_from("n1", "exec")] == ["c1"]
        assert [c.id for c in self.bp.connections_to("n1", "exec")] == ["c2"]
        assert len(self.bp.connections_touching("n1")) == 2

    def test_connection_repr(self):
        assert "n1.exec -> n2.exec" in repr(self.bp.connections[0])


class TestBlueprintStore:

    def setup_method(self):
        self.store = BlueprintStore()

    def test_component_scaffold(self):
        bp = self.store.create_blueprint("Player", BlueprintType.COMPONENT)
        assert [n.definition_id for n in bp.nodes] == list(LIFECYCLE_HOOKS)
        assert bp.connections == []

    def test_function_scaffold(self):
        bp = self.store.create_blueprint("Sum", BlueprintType.FUNCTION)
        assert [n.definition_id for n in bp.nodes] == ["function_start"]

    def test_node_ids_end_in_numbers(self):
        bp = self.store.create_blueprint("Sum", BlueprintType.FUNCTION)
        node = self.store.add_node(bp.id, "add_numbers")
        assert node.id.split("_")[-1].isdigit()
        assert node.id != bp.nodes[0].id

    def test_constant_defaults(self):
        bp = self.store.create_blueprint("Sum", BlueprintType.FUNCTION)
        node = self.store.add_node(bp.id, "number_constant")
        assert node.inputs == {"value": 0}
        node = self.store.add_node(bp.id, "string_constant", inputs={"value": "hi"})
        assert node.inputs == {"value": "hi"}

    def test_add_unknown_definition_raises(self):
        bp = self.store.create_blueprint()
        with pytest.raises(ValueError):
            self.store.add_node(bp.id, "nope")

    def test_add_connection_unknown_node_raises(self):
        bp = self.store.create_blueprint("F", BlueprintType.FUNCTION)
        with pytest.raises(KeyError):
            self.store.add_connection(bp.id, bp.nodes[0].id, "exec", "node_999", "exec")

    def test_remove_node_cascades(self):
        bp = self.store.create_blueprint("F", BlueprintType.FUNCTION)
        start = bp.nodes[0]
        first = self.store.add_node(bp.id, "print")
        second = self.store.add_node(bp.id, "print")
        self.store.add_connection(bp.id, start.id, "exec", first.id, "exec")
        self.store.add_connection(bp.id, first.id, "exec", second.id, "exec")
        keep = self.store.add_connection(bp.id, start.id, "exec", second.id, "exec")

        assert self.store.remove_node(bp.id, first.id) is True
        assert [c.id for c in bp.connections] == [keep.id]
        assert self.store.remove_node(bp.id, first.id) is False

    def test_dirty_tracking(self):
        bp = self.store.create_blueprint("F", BlueprintType.FUNCTION)
        assert not self.store.is_dirty(bp.id)
        self.store.add_node(bp.id, "print")
        assert self.store.is_dirty(bp.id)
        self.store.mark_clean(bp.id)
        self.store.move_node(bp.id, bp.nodes[0].id, 10, 20)
        assert self.store.is_dirty(bp.id)
        assert bp.nodes[0].position == {"x": 10, "y": 20}

    def test_variables(self):
        bp = self.store.create_blueprint("F", BlueprintType.FUNCTION)
        self.store.set_variable(bp.id, "target", None)
        self.store.mark_clean(bp.id)
        self.store.remove_variable(bp.id, "target")
        assert "target" not in bp.variables
        assert self.store.is_dirty(bp.id)

    def test_snapshot_is_independent(self):
        bp = self.store.create_blueprint("F", BlueprintType.FUNCTION)
        snap = self.store.snapshot(bp.id)
        self.store.add_node(bp.id, "print")
        assert len(snap.nodes) == 1
        assert len(bp.nodes) == 2
        assert snap == copy.deepcopy(snap)

    def test_open_close(self):
        bp = Blueprint(id="loaded", name="Loaded")
        self.store.open_blueprint(bp)
        with pytest.raises(ValueError):
            self.store.open_blueprint(bp)
        assert self.store.get("loaded") is bp
        assert self.store.close_blueprint("loaded") is bp
        with pytest.raises(KeyError):
            self.store.get("loaded")
