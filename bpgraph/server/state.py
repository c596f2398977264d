"""
ProjectState: the editor's collaborators, backed by a project directory.

    <project>/
        definitions.json     optional list of authored node definitions
        blueprints/*.bp      persisted blueprint documents
        scripts/*.ts         exported TypeScript (plus BlueprintHelpers.ts)

Routes import this module and use `state.project_state`; tests swap it for a
ProjectState pointing at a temporary directory.
"""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from bpgraph.compiler import CompilerOptions, compile_project
from bpgraph.core.Catalog import DefinitionCatalog
from bpgraph.core.GraphPrimitives import Blueprint, NodeDefinition
from bpgraph.serializer import (
    SchemaError, SerializedBlueprint, definition_from_dict, deserialize, serialize,
)
from bpgraph.serializer.schema import validate_definition

from .config import ServerSettings

logger = logging.getLogger(__name__)

BLUEPRINT_SUFFIX = ".bp"


def safe_name(name: str) -> str:
    """File-system safe stem for a blueprint name ("" when nothing usable is left)."""
    stem = name.strip()
    if stem.endswith(BLUEPRINT_SUFFIX):
        stem = stem[: -len(BLUEPRINT_SUFFIX)]
    return re.sub(r"[^\w\-. ]", "_", stem).strip(". ")


class ProjectState:
    """Loads catalogs and blueprints, persists documents, exports TypeScript."""

    def __init__(self, project_dir: Union[str, Path],
                 options: Optional[CompilerOptions] = None) -> None:
        self.project_dir = Path(project_dir)
        self.options = options or CompilerOptions()

    @classmethod
    def from_settings(cls, settings: ServerSettings) -> "ProjectState":
        return cls(settings.project_dir, CompilerOptions(helper_mode=settings.helper_mode))

    @property
    def blueprint_dir(self) -> Path:
        return self.project_dir / "blueprints"

    @property
    def export_dir(self) -> Path:
        return self.project_dir / "scripts"

    # ── Catalog ─────────────────────────────────────────────────────────────

    def load_catalog(self) -> List[NodeDefinition]:
        """Built-in definitions plus the project's definitions.json, if any."""
        catalog = DefinitionCatalog.builtin()
        path = self.project_dir / "definitions.json"
        if path.exists():
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise SchemaError(f"{path}: invalid JSON ({exc})") from exc
            if not isinstance(raw, list):
                raise SchemaError(f"{path}: expected a list of node definitions")
            for i, data in enumerate(raw):
                validate_definition(data, f"definitions[{i}]")
            added = catalog.merge(definition_from_dict(d) for d in raw)
            logger.debug(f"loaded {len(added)} project definitions from {path}")
        return catalog.to_list()

    def catalog_for(self, extra: Iterable[NodeDefinition] = ()) -> DefinitionCatalog:
        catalog = DefinitionCatalog(self.load_catalog())
        catalog.merge(extra)
        return catalog

    # ── Blueprints ──────────────────────────────────────────────────────────

    def list_blueprints(self) -> List[str]:
        if not self.blueprint_dir.is_dir():
            return []
        return sorted(p.stem for p in self.blueprint_dir.glob(f"*{BLUEPRINT_SUFFIX}"))

    def path_for(self, ref: str) -> Path:
        stem = safe_name(ref)
        if not stem:
            raise FileNotFoundError(f"No blueprint named {ref!r}")
        return self.blueprint_dir / f"{stem}{BLUEPRINT_SUFFIX}"

    def load_document(self, ref: str) -> SerializedBlueprint:
        """Raises FileNotFoundError when missing, SchemaError when malformed."""
        path = self.path_for(ref)
        if not path.exists():
            raise FileNotFoundError(f"No blueprint named {ref!r}")
        return deserialize(path.read_text(encoding="utf-8"))

    def load_blueprint(self, ref: str) -> Blueprint:
        return self.load_document(ref).blueprint

    def persist(self, name: str, text: str) -> Optional[Path]:
        """Write a document under `name`; None when the name is empty (cancelled)."""
        stem = safe_name(name)
        if not stem:
            logger.info("persist cancelled: empty blueprint name")
            return None
        self.blueprint_dir.mkdir(parents=True, exist_ok=True)
        path = self.blueprint_dir / f"{stem}{BLUEPRINT_SUFFIX}"
        path.write_text(text, encoding="utf-8")
        logger.info(f"saved blueprint {path}")
        return path

    def save_blueprint(self, blueprint: Blueprint, name: Optional[str] = None,
                       metadata: Optional[Dict[str, Any]] = None) -> Optional[Path]:
        """Serialize with the definitions the blueprint references, then persist."""
        catalog = DefinitionCatalog(self.load_catalog())
        used = dict.fromkeys(n.definition_id for n in blueprint.nodes)
        definitions = [catalog.find(d) for d in used if d in catalog]
        return self.persist(name or blueprint.name, serialize(blueprint, definitions, metadata))

    # ── Export ──────────────────────────────────────────────────────────────

    def export(self, blueprint: Blueprint,
               catalog: Optional[DefinitionCatalog] = None) -> List[Path]:
        """
        Write `<prefix><name>.ts` into scripts/.  The helper library is written
        only when it is missing or out of date, never once per blueprint.
        """
        catalog = catalog if catalog is not None else self.catalog_for()
        files = compile_project([blueprint], catalog, self.options)
        self.export_dir.mkdir(parents=True, exist_ok=True)

        written: List[Path] = []
        for filename, text in files.items():
            path = self.export_dir / filename
            if filename == self.options.helper_filename and path.exists() \
                    and path.read_text(encoding="utf-8") == text:
                continue
            path.write_text(text, encoding="utf-8")
            written.append(path)
        logger.info(f"exported {blueprint.name}: {', '.join(p.name for p in written)}")
        return written


project_state = ProjectState.from_settings(ServerSettings.from_env())
