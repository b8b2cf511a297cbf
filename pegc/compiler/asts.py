# pegc/compiler/asts.py
"""Queries over the grammar tree shared by several passes."""

from __future__ import annotations
from typing import Optional

from ..grammar.ast import Expression, Grammar, Rule
from . import visitor


def find_rule(ast: Grammar, name: str) -> Optional[Rule]:
    for rule in ast.rules:
        if rule.name == name:
            return rule
    return None


def index_of_rule(ast: Grammar, name: str) -> int:
    for i, rule in enumerate(ast.rules):
        if rule.name == name:
            return i
    return -1


def always_consumes_on_success(ast: Grammar, node: Expression) -> bool:
    """True if every successful match of `node` advances the input position."""
    active = set()

    def consumes_true(node):
        return True

    def consumes_false(node):
        return False

    def choice(node):
        return all(consumes(a) for a in node.alternatives)

    def sequence(node):
        return any(consumes(e) for e in node.elements)

    def range_(node):
        if not node.min.constant or node.min.value == 0:
            return False
        if consumes(node.expression):
            return True
        if node.min.value > 1 and node.delimiter is not None and consumes(node.delimiter):
            return True
        return False

    def rule_ref(node):
        rule = find_rule(ast, node.name)
        # undefined references are reported elsewhere; a rule already being
        # expanded is left recursion, which is reported elsewhere too
        if rule is None or rule.name in active:
            return False
        active.add(rule.name)
        try:
            return consumes(rule)
        finally:
            active.discard(rule.name)

    def literal(node):
        return node.value != ""

    def char_class(node):
        return len(node.parts) > 0

    consumes = visitor.build({
        "choice":       choice,
        "sequence":     sequence,
        "simple_and":   consumes_false,
        "simple_not":   consumes_false,
        "optional":     consumes_false,
        "zero_or_more": consumes_false,
        "range":        range_,
        "semantic_and": consumes_false,
        "semantic_not": consumes_false,
        "rule_ref":     rule_ref,
        "literal":      literal,
        "class":        char_class,
        "any":          consumes_true,
    })

    return consumes(node)
