# pegc/compiler/visitor.py
"""Node dispatcher.

`build(handlers)` returns `visit(node, *args)`, which calls `handlers[node.type]`.
Node kinds missing from `handlers` get a structural default: leaves do nothing,
composites visit their children. Extra arguments are passed through unchanged to
every recursive call made by the defaults.
"""

from __future__ import annotations
from typing import Any, Callable, Dict

Handler = Callable[..., Any]


def build(handlers: Dict[str, Handler]) -> Handler:
    def visit(node, *args):
        if node is None:
            raise ValueError("Visitor function called with no node")
        func = table.get(node.type)
        if func is None:
            raise ValueError(f"Visitor function for node type '{node.type}' not defined")
        return func(node, *args)

    def visit_nop(node, *args):
        return None

    def visit_expression(node, *args):
        return visit(node.expression, *args)

    def visit_children(attr: str) -> Handler:
        def visit_all(node, *args):
            for child in getattr(node, attr):
                visit(child, *args)
        return visit_all

    def visit_grammar(node, *args):
        if node.initializer is not None:
            visit(node.initializer, *args)
        for rule in node.rules:
            visit(rule, *args)

    def visit_range(node, *args):
        if node.delimiter is not None:
            visit(node.delimiter, *args)
        return visit(node.expression, *args)

    table: Dict[str, Handler] = {
        "grammar":      visit_grammar,
        "initializer":  visit_nop,
        "rule":         visit_expression,
        "named":        visit_expression,
        "choice":       visit_children("alternatives"),
        "action":       visit_expression,
        "sequence":     visit_children("elements"),
        "labeled":      visit_expression,
        "text":         visit_expression,
        "simple_and":   visit_expression,
        "simple_not":   visit_expression,
        "optional":     visit_expression,
        "zero_or_more": visit_expression,
        "one_or_more":  visit_expression,
        "range":        visit_range,
        "group":        visit_expression,
        "semantic_and": visit_nop,
        "semantic_not": visit_nop,
        "rule_ref":     visit_nop,
        "literal":      visit_nop,
        "class":        visit_nop,
        "any":          visit_nop,
    }
    table.update(handlers)
    return visit
