# pegc/compiler/passes/report_unused_rules.py
from __future__ import annotations
from typing import Set

from ...grammar.ast import Grammar
from .. import visitor
from ..options import CompileOptions


def report_unused_rules(ast: Grammar, options: CompileOptions) -> None:
    """Warn about rules that are neither referenced nor start rules."""
    used: Set[str] = set(options.allowed_start_rules)

    def rule_ref(node):
        used.add(node.name)

    check = visitor.build({"rule_ref": rule_ref})
    check(ast)

    for rule in ast.rules:
        if rule.name not in used:
            options.collector.emit_warning(f'Rule "{rule.name}" not used.', rule.location)
