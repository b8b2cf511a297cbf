# pegc/compiler/passes/report_duplicate_rules.py
from __future__ import annotations
from typing import Dict, Optional

from ...grammar.ast import Grammar, Location
from .. import visitor
from ..options import CompileOptions


def report_duplicate_rules(ast: Grammar, options: CompileOptions) -> None:
    emit_error = options.collector.emit_error
    seen: Dict[str, Optional[Location]] = {}

    def rule(node):
        if node.name in seen:
            emit_error(
                f'Rule "{node.name}" is already defined {_at(seen[node.name])}.',
                node.location,
            )
        seen[node.name] = node.location

    check = visitor.build({"rule": rule})
    check(ast)


def _at(location: Optional[Location]) -> str:
    if location is None:
        return "elsewhere"
    return f"at line {location.start.line}, column {location.start.column}"
