"""
Blueprint compiler: Blueprint + definition catalog → TypeScript source.

    from bpgraph.compiler import compile_blueprint
    source = compile_blueprint(blueprint, catalog)

Every call rebuilds its indices from the blueprint it is given; nothing is
shared between calls.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Union

from bpgraph.core.Catalog import DefinitionCatalog
from bpgraph.core.GraphPrimitives import Blueprint, NodeDefinition

from .diagnostics import Diagnostic
from .emitter import (
    CompilationResult, CompilerOptions, ProgramAssembler, as_catalog, compile_with_report,
)
from .helpers import generate_helper_library
from .resolver import identifier
from .templates import NodeKind, TEMPLATE_REGISTRY

logger = logging.getLogger(__name__)


def compile_blueprint(blueprint: Blueprint,
                      catalog: Union[DefinitionCatalog, Iterable[NodeDefinition]],
                      options: Optional[CompilerOptions] = None) -> str:
    return compile_with_report(blueprint, catalog, options).code


def compile_project(blueprints: Iterable[Blueprint],
                    catalog: Union[DefinitionCatalog, Iterable[NodeDefinition]],
                    options: Optional[CompilerOptions] = None) -> Dict[str, str]:
    """
    Compile several blueprints into `{filename: source}`.

    The helper library is added once, and only when helpers are imported
    (not inlined) and at least one blueprint calls one.
    """
    options = options or CompilerOptions()
    catalog = as_catalog(catalog)
    files: Dict[str, str] = {}
    needs_library = False
    for blueprint in blueprints:
        result = compile_with_report(blueprint, catalog, options)
        stem = options.function_prefix + identifier(blueprint.name, "Blueprint")
        filename, n = f"{stem}.ts", 2
        while filename in files:
            filename = f"{stem}_{n}.ts"
            n += 1
        files[filename] = result.code
        needs_library = needs_library or bool(result.helpers)

    if needs_library and options.helper_mode == "import":
        files[options.helper_filename] = generate_helper_library()
    logger.debug(f"compiled project: {', '.join(files)}")
    return files


__all__ = [
    "CompilationResult",
    "CompilerOptions",
    "Diagnostic",
    "NodeKind",
    "ProgramAssembler",
    "as_catalog",
    "TEMPLATE_REGISTRY",
    "compile_blueprint",
    "compile_project",
    "compile_with_report",
    "generate_helper_library",
]
