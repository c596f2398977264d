from enum import Enum
from typing import Any


class ParamKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    EXEC = "exec"
    SELECT = "select"

    @property
    def is_exec(self) -> bool:
        return self is ParamKind.EXEC

    def ts_type(self) -> str:
        """TypeScript type used for values of this kind."""
        if self in (ParamKind.STRING, ParamKind.NUMBER, ParamKind.BOOLEAN):
            return self.value
        return "any"

    @staticmethod
    def from_value(value: Any) -> "ParamKind":
        """Best guess at the kind of a literal value."""
        if isinstance(value, bool):
            return ParamKind.BOOLEAN
        if isinstance(value, (int, float)):
            return ParamKind.NUMBER
        if isinstance(value, str):
            return ParamKind.STRING
        return ParamKind.OBJECT


class BlueprintType(str, Enum):
    FUNCTION = "function"
    COMPONENT = "component"


# Cocos Creator component lifecycle, in the order the engine calls them.
LIFECYCLE_HOOKS = (
    "onLoad",
    "start",
    "update",
    "lateUpdate",
    "onEnable",
    "onDisable",
    "onDestroy",
)

FUNCTION_ENTRY_IDS = frozenset({"function_start", "start"})
