# pegc/compiler/passes/report_infinite_repetition.py
"""
Reports repetitions whose body may succeed without consuming input.

An unbounded repetition of such a body never terminates (error). A bounded one
terminates after `max` iterations, but only by spinning in place (warning).
"""

from __future__ import annotations

from ...grammar.ast import Grammar
from .. import asts, visitor
from ..options import CompileOptions

MESSAGE = ("Possible infinite loop when parsing "
           "(repetition used with an expression that may not consume any input).")


def report_infinite_repetition(ast: Grammar, options: CompileOptions) -> None:
    collector = options.collector

    def consumes(node) -> bool:
        return asts.always_consumes_on_success(ast, node)

    def unbounded(node):
        if not consumes(node.expression):
            collector.emit_error(MESSAGE, node.location)
        check(node.expression)

    def range_(node):
        # with a delimiter every iteration after the first also runs the delimiter
        progresses = consumes(node.expression) or (
            node.delimiter is not None and consumes(node.delimiter)
        )
        if not progresses:
            if node.max.value is None:
                collector.emit_error(MESSAGE, node.location)
            else:
                collector.emit_warning(MESSAGE, node.location)
        if node.delimiter is not None:
            check(node.delimiter)
        check(node.expression)

    check = visitor.build({
        "zero_or_more": unbounded,
        "one_or_more":  unbounded,
        "range":        range_,
    })
    check(ast)
