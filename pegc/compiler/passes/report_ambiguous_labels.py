# pegc/compiler/passes/report_ambiguous_labels.py
"""An auto label (`@`) cannot share a sequence scope with an action."""

from __future__ import annotations

from ...grammar.ast import Grammar
from .. import visitor
from ..options import CompileOptions


def report_ambiguous_labels(ast: Grammar, options: CompileOptions) -> None:
    emit_error = options.collector.emit_error

    def scope(node, action=None):
        check(node.expression)

    def choice(node, action=None):
        for alternative in node.alternatives:
            check(alternative)

    def action_(node, action=None):
        check(node.expression, node)

    def labeled(node, action=None):
        check(node.expression)
        if node.auto and action is not None:
            label = f'"{node.label}" ' if node.label else ""
            emit_error(
                f"Automatic label {label}can not be used together with an action.",
                node.location,
            )

    def range_(node, action=None):
        if node.delimiter is not None:
            check(node.delimiter)
        check(node.expression)

    check = visitor.build({
        "choice":       choice,
        "action":       action_,
        "labeled":      labeled,
        "text":         scope,
        "simple_and":   scope,
        "simple_not":   scope,
        "optional":     scope,
        "zero_or_more": scope,
        "one_or_more":  scope,
        "range":        range_,
        "group":        scope,
    })
    check(ast)
