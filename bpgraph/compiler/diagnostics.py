"""
Compiler diagnostics.

The compiler never raises for a bad graph: dangling references, unsupported
kinds and ambiguous shapes become Diagnostic records (and a log warning) while
the generated source gets a comment in place of the offending node.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Diagnostic:
    code: str                       # e.g. "fan-in", "unsupported-kind"
    message: str
    node_id: Optional[str] = None
    severity: str = "warning"       # "warning" | "error" | "info"

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message,
                "nodeId": self.node_id, "severity": self.severity}


class DiagnosticLog:
    """Accumulates diagnostics for one compilation, dropping exact repeats."""

    def __init__(self) -> None:
        self._items: List[Diagnostic] = []
        self._seen = set()

    def add(self, code: str, message: str, node_id: Optional[str] = None,
            severity: str = "warning") -> None:
        diagnostic = Diagnostic(code, message, node_id, severity)
        if diagnostic in self._seen:
            return
        self._seen.add(diagnostic)
        self._items.append(diagnostic)
        if severity == "info":
            logger.info(f"[{code}] {message}")
        else:
            logger.warning(f"[{code}] {message}")

    def items(self) -> List[Diagnostic]:
        return list(self._items)

    def codes(self) -> List[str]:
        return [d.code for d in self._items]

    def __len__(self) -> int:
        return len(self._items)
