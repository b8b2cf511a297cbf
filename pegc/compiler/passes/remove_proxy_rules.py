# pegc/compiler/passes/remove_proxy_rules.py
"""
Removes proxy rules (`a = b`): references to a proxy are redirected to its target.
Proxies listed as start rules stay in the grammar so they remain callable.
"""

from __future__ import annotations
from typing import List

from ...grammar.ast import Grammar, Rule
from .. import visitor
from ..options import CompileOptions


def _is_proxy_rule(rule: Rule) -> bool:
    return rule.expression.type == "rule_ref"


def remove_proxy_rules(ast: Grammar, options: CompileOptions) -> None:
    emit_info = options.collector.emit_info

    def replace_rule_refs(source: str, target: str) -> None:
        def rule_ref(node):
            if node.name == source:
                node.name = target
                emit_info(f"Proxy rule {source} replaced to rule {target}.", node.location)

        replace = visitor.build({"rule_ref": rule_ref})
        replace(ast)

    removed: List[int] = []
    for i, rule in enumerate(ast.rules):
        if _is_proxy_rule(rule):
            replace_rule_refs(rule.name, rule.expression.name)
            if rule.name not in options.allowed_start_rules:
                removed.append(i)

    for i in reversed(removed):
        del ast.rules[i]
