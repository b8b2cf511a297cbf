# pegc/compiler/passes/calc_report_failures.py
"""
Decides which rules record failure expectations (`report_failures`).

Start rules always report. A rule referenced from a reporting rule reports too,
unless the reference sits inside a `named` wrapper: a display name replaces every
expectation recorded beneath it, so rules reachable only from there stay silent.
"""

from __future__ import annotations
from typing import List

from ...grammar.ast import Grammar, Rule
from .. import asts, visitor
from ..options import CompileOptions


def calc_report_failures(ast: Grammar, options: CompileOptions) -> None:
    for rule in ast.rules:
        rule.report_failures = False

    changed: List[Rule] = []
    for name in options.allowed_start_rules:
        rule = asts.find_rule(ast, name)
        if rule is not None:
            rule.report_failures = True
            changed.append(rule)

    def named(node):
        pass

    def rule_ref(node):
        target = asts.find_rule(ast, node.name)
        if target is not None and not target.report_failures:
            target.report_failures = True
            changed.append(target)

    calc = visitor.build({"named": named, "rule_ref": rule_ref})

    while changed:
        calc(changed.pop())
