import json

import pytest

from bpgraph.compile_blueprint import _build_parser, main
from bpgraph.core import BlueprintStore, BlueprintType
from bpgraph.serializer import serialize


@pytest.fixture
def bp_file(tmp_path):
    store = BlueprintStore()
    bp = store.create_blueprint("Greeter", BlueprintType.FUNCTION)
    printer = store.add_node(bp.id, "print", inputs={"value": "hi"})
    store.add_connection(bp.id, bp.nodes[0].id, "exec", printer.id, "exec")
    path = tmp_path / "Greeter.bp"
    path.write_text(serialize(bp, []), encoding="utf-8")
    return path


class TestParser:

    def test_defaults(self):
        args = _build_parser().parse_args(["x.bp"])
        assert args.out == "scripts"
        assert args.helpers == "import"
        assert args.timestamp is True
        assert not args.print_only

    def test_flags(self):
        args = _build_parser().parse_args(["x.bp", "--print", "--helpers", "inline",
                                           "--no-timestamp"])
        assert args.print_only
        assert args.helpers == "inline"
        assert args.timestamp is False


class TestMain:

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "nope.bp")]) == 1
        assert "File not found" in capsys.readouterr().err

    def test_schema_error(self, tmp_path, capsys):
        path = tmp_path / "bad.bp"
        path.write_text(json.dumps({"version": "1.0.0"}), encoding="utf-8")
        assert main([str(path)]) == 1
        assert "Schema validation failed" in capsys.readouterr().err

    def test_print(self, bp_file, capsys):
        assert main([str(bp_file), "--print", "--no-timestamp"]) == 0
        out = capsys.readouterr().out
        assert "export function BP_Greeter(): void {" in out
        assert 'log("hi")' in out
        assert "Generated at:" not in out

    def test_writes_files(self, bp_file, tmp_path):
        out_dir = tmp_path / "generated"
        assert main([str(bp_file), "--out", str(out_dir)]) == 0
        assert sorted(p.name for p in out_dir.iterdir()) == ["BP_Greeter.ts", "BlueprintHelpers.ts"]

    def test_inline_writes_single_file(self, bp_file, tmp_path):
        out_dir = tmp_path / "generated"
        assert main([str(bp_file), "--out", str(out_dir), "--helpers", "inline"]) == 0
        files = list(out_dir.iterdir())
        assert [p.name for p in files] == ["BP_Greeter.ts"]
        assert "function log(" in files[0].read_text()
