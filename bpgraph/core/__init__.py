from .Types import BlueprintType, ParamKind, LIFECYCLE_HOOKS, FUNCTION_ENTRY_IDS
from .GraphPrimitives import Blueprint, NodeConnection, NodeDefinition, NodeInstance, NodeParam
from .Catalog import DefinitionCatalog, builtin_definitions
from .BlueprintStore import BlueprintStore

__all__ = [
    "Blueprint",
    "BlueprintStore",
    "BlueprintType",
    "DefinitionCatalog",
    "FUNCTION_ENTRY_IDS",
    "LIFECYCLE_HOOKS",
    "NodeConnection",
    "NodeDefinition",
    "NodeInstance",
    "NodeParam",
    "ParamKind",
    "builtin_definitions",
]
