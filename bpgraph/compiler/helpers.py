"""
Blueprint helper library
========================
The TypeScript runtime support every compiled blueprint may call into.

Each entry of `HELPER_DEFS` is the full source of one exported helper.  The
dict order is the library order: generated import lists and inline blocks are
always sorted by it, so output does not depend on which node used a helper
first.

To add a helper, add an entry here and call `ctx.use_helper("<name>")` from
the template that needs it.
"""

from __future__ import annotations

import textwrap
from typing import Dict, Iterable, List


HELPER_DEFS: Dict[str, str] = {
    "log": textwrap.dedent("""\
        export function log(value: any): void {
          console.log(value)
        }
        """),
    "delay": textwrap.dedent("""\
        export function delay(ms: number): Promise<void> {
          return new Promise(resolve => setTimeout(resolve, ms))
        }
        """),
    "add": textwrap.dedent("""\
        export function add(a: number, b: number): number {
          return a + b
        }
        """),
    "subtract": textwrap.dedent("""\
        export function subtract(a: number, b: number): number {
          return a - b
        }
        """),
    "multiply": textwrap.dedent("""\
        export function multiply(a: number, b: number): number {
          return a * b
        }
        """),
    "divide": textwrap.dedent("""\
        export function divide(a: number, b: number): number {
          if (b === 0) {
            console.warn('Division by zero')
            return 0
          }
          return a / b
        }
        """),
    "logicAnd": textwrap.dedent("""\
        export function logicAnd(a: boolean, b: boolean): boolean {
          return a && b
        }
        """),
    "logicOr": textwrap.dedent("""\
        export function logicOr(a: boolean, b: boolean): boolean {
          return a || b
        }
        """),
    "logicNot": textwrap.dedent("""\
        export function logicNot(value: boolean): boolean {
          return !value
        }
        """),
    "equal": textwrap.dedent("""\
        export function equal(a: any, b: any): boolean {
          return a === b
        }
        """),
    "greater": textwrap.dedent("""\
        export function greater(a: number, b: number): boolean {
          return a > b
        }
        """),
    "less": textwrap.dedent("""\
        export function less(a: number, b: number): boolean {
          return a < b
        }
        """),
    "toString": textwrap.dedent("""\
        export function toString(value: any): string {
          return String(value)
        }
        """),
    "toNumber": textwrap.dedent("""\
        export function toNumber(value: any): number {
          const result = Number(value)
          return isNaN(result) ? 0 : result
        }
        """),
    "toBoolean": textwrap.dedent("""\
        export function toBoolean(value: any): boolean {
          return Boolean(value)
        }
        """),
}

_ORDER = {name: i for i, name in enumerate(HELPER_DEFS)}


def ordered(names: Iterable[str]) -> List[str]:
    """Known helper names from `names`, deduplicated, in library order."""
    return sorted({n for n in names if n in HELPER_DEFS}, key=_ORDER.__getitem__)


def import_line(names: Iterable[str], module: str) -> str:
    """`import { a, b } from '<module>'`, or "" when nothing is used."""
    used = ordered(names)
    if not used:
        return ""
    return f"import {{ {', '.join(used)} }} from '{module}'"


def inline_definitions(names: Iterable[str]) -> List[str]:
    """Source lines of the used helpers, unexported, for single-file output."""
    lines: List[str] = []
    for name in ordered(names):
        source = HELPER_DEFS[name].replace("export function", "function", 1)
        lines.extend(source.rstrip("\n").splitlines())
        lines.append("")
    return lines


def generate_helper_library() -> str:
    """The complete helper module, written once per project."""
    parts = [
        "/**",
        " * Blueprint helper functions",
        " * Auto-generated - do not modify manually",
        " */",
        "",
    ]
    for source in HELPER_DEFS.values():
        parts.extend(source.rstrip("\n").splitlines())
        parts.append("")
    return "\n".join(parts)
