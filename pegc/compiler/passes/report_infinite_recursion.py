# pegc/compiler/passes/report_infinite_recursion.py
"""
Reports left recursion, which would make the generated parser recurse forever.

Both direct and indirect recursion are found, including cases hidden behind
expressions that can succeed without consuming input:

    start = "a"? start

A sequence is only followed up to (and including) the first element that always
consumes input; anything after it can only be reached at a later position.
"""

from __future__ import annotations
from typing import List

from ...grammar.ast import Grammar
from .. import asts, visitor
from ..options import CompileOptions


def report_infinite_recursion(ast: Grammar, options: CompileOptions) -> None:
    emit_error = options.collector.emit_error
    visited_rules: List[str] = []

    def rule(node):
        visited_rules.append(node.name)
        check(node.expression)
        visited_rules.pop()

    def sequence(node):
        for element in node.elements:
            check(element)
            if asts.always_consumes_on_success(ast, element):
                break

    def range_(node):
        check(node.expression)
        # the delimiter runs at the position the expression left off
        if node.delimiter is not None and not asts.always_consumes_on_success(ast, node.expression):
            check(node.delimiter)

    def rule_ref(node):
        if node.name in visited_rules:
            path = " -> ".join(visited_rules + [node.name])
            emit_error(
                f"Possible infinite loop when parsing (left recursion: {path}).",
                node.location,
            )
            return
        target = asts.find_rule(ast, node.name)
        if target is not None:
            check(target)

    check = visitor.build({
        "rule":     rule,
        "sequence": sequence,
        "range":    range_,
        "rule_ref": rule_ref,
    })
    check(ast)
