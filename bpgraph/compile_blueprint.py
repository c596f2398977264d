"""
compile_blueprint.py: CLI for the blueprint compiler
====================================================
Compiles a persisted `.bp` blueprint document into TypeScript.

Usage
-----
    bpgraph-compile <blueprint.bp> [options]
    python -m bpgraph.compile_blueprint <blueprint.bp> [options]

Options
-------
    --out      <dir>         Output directory (default: scripts/)
    --print                  Print the generated source to stdout instead of writing files
    --helpers  {import,inline}
                             import (default): import from ./BlueprintHelpers and write
                                                BlueprintHelpers.ts next to the output
                             inline:           embed the used helpers in the output file
    --no-timestamp           Leave the generation time out of the header comment
    --verbose                Log traversal details

Examples
--------
    # Compile into scripts/ (writes BP_Player.ts and BlueprintHelpers.ts):
    bpgraph-compile blueprints/Player.bp

    # Print a self-contained file without writing anything:
    bpgraph-compile blueprints/Player.bp --print --helpers inline
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from bpgraph.compiler import CompilerOptions, compile_project, compile_with_report
from bpgraph.core.Catalog import DefinitionCatalog
from bpgraph.serializer import SchemaError, load_file

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bpgraph-compile",
        description="Compile a blueprint document to TypeScript.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    p.add_argument(
        "blueprint",
        metavar="blueprint.bp",
        help="Path to the blueprint document to compile.",
    )
    p.add_argument(
        "--out",
        metavar="DIR",
        default="scripts",
        help="Output directory for the generated .ts files (default: scripts/).",
    )
    p.add_argument(
        "--print",
        dest="print_only",
        action="store_true",
        help="Print generated source to stdout instead of writing files.",
    )
    p.add_argument(
        "--helpers",
        choices=["import", "inline"],
        default="import",
        help="Import helpers from a shared module (default) or inline the used ones.",
    )
    p.add_argument(
        "--no-timestamp",
        dest="timestamp",
        action="store_false",
        help="Omit the generation timestamp from the header comment.",
    )
    p.add_argument(
        "--verbose",
        action="store_true",
        help="Log compiler debug output.",
    )
    return p


def main(argv=None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    bp_path = Path(args.blueprint)
    if not bp_path.exists():
        print(f"[error] File not found: {bp_path}", file=sys.stderr)
        return 1

    # ── Load + validate ──────────────────────────────────────────────────────
    try:
        document = load_file(bp_path)
    except SchemaError as exc:
        print(f"[error] Schema validation failed: {exc}", file=sys.stderr)
        return 1

    blueprint = document.blueprint
    catalog = DefinitionCatalog.builtin()
    catalog.merge(document.node_definitions)
    options = CompilerOptions(helper_mode=args.helpers, include_timestamp=args.timestamp)

    print(f"[bpgraph-compile] blueprint : {blueprint.name} ({blueprint.type.value})", file=sys.stderr)
    print(f"[bpgraph-compile] nodes     : {len(blueprint.nodes)}", file=sys.stderr)
    print(f"[bpgraph-compile] edges     : {len(blueprint.connections)}", file=sys.stderr)

    # ── Output ───────────────────────────────────────────────────────────────
    if args.print_only:
        result = compile_with_report(blueprint, catalog, options)
        print(result.code)
        return 0

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    for filename, source in compile_project([blueprint], catalog, options).items():
        out_path = out_dir / filename
        out_path.write_text(source, encoding="utf-8")
        print(f"[bpgraph-compile] wrote     : {out_path}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
