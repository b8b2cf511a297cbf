# pegc/compiler/passes/report_undefined_rules.py
"""Every rule reference and every configured start rule must name a rule."""

from __future__ import annotations

from ...grammar.ast import Grammar
from .. import asts, visitor
from ..options import CompileOptions


def report_undefined_rules(ast: Grammar, options: CompileOptions) -> None:
    emit_error = options.collector.emit_error

    def rule_ref(node):
        if asts.find_rule(ast, node.name) is None:
            emit_error(f'Rule "{node.name}" is not defined.', node.location)

    check = visitor.build({"rule_ref": rule_ref})
    check(ast)

    for name in options.allowed_start_rules:
        if asts.find_rule(ast, name) is None:
            emit_error(f'Start rule "{name}" is not defined.')
